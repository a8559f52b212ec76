"""Transaction history store backed by the loan_transactions table."""
import time
from collections import defaultdict
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from smart_retry.config import settings
from smart_retry.logging import get_logger
from smart_retry.models import LoanTransaction
from smart_retry import metrics

logger = get_logger(__name__)


class HistoryStoreError(Exception):
    """Raised when transaction history cannot be loaded."""
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"History store error: {detail}")


class TransactionHistoryStore:
    """Loads the most recent transactions for a set of loans."""

    def __init__(
        self,
        db: Session,
        max_per_loan: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ):
        """
        Initialize the store.

        Args:
            db: SQLAlchemy database session
            max_per_loan: Newest rows kept per loan. Defaults to settings.history_max_per_loan.
            chunk_size: Loan ids per query. Defaults to settings.history_chunk_size.
        """
        self.db = db
        self.max_per_loan = max_per_loan or settings.history_max_per_loan
        self.chunk_size = chunk_size or settings.history_chunk_size

    def fetch_history(self, loan_ids: Iterable[str]) -> list[dict]:
        """
        Fetch transaction history for the given loans.

        Ids are queried in chunks to bound the size of each IN (...) clause.
        The newest max_per_loan rows of each loan are kept and returned
        oldest first. Rows with the same created_at are ordered by id.

        Args:
            loan_ids: Trimmed, de-duplicated loan ids

        Returns:
            Flat list of transaction records for all loans

        Raises:
            HistoryStoreError: If the database query fails
        """
        ids = list(dict.fromkeys(loan_ids))
        if not ids:
            return []

        start_time = time.perf_counter()
        logger.info("history_fetch_started", loan_count=len(ids), chunk_size=self.chunk_size)

        buckets: dict[str, list[dict]] = defaultdict(list)
        try:
            for offset in range(0, len(ids), self.chunk_size):
                chunk = ids[offset:offset + self.chunk_size]
                rows = (
                    self.db.query(LoanTransaction)
                    .filter(LoanTransaction.loan_id.in_(chunk))
                    .order_by(LoanTransaction.created_at.desc(), LoanTransaction.id.desc())
                    .all()
                )
                for row in rows:
                    bucket = buckets[row.loan_id]
                    if len(bucket) < self.max_per_loan:
                        bucket.append(row.to_record())

        except SQLAlchemyError as e:
            duration_seconds = time.perf_counter() - start_time

            logger.error(
                "history_fetch_failed",
                loan_count=len(ids),
                duration_ms=round(duration_seconds * 1000, 2),
                error=str(e),
                outcome="error",
            )
            metrics.record_history_fetch(
                success=False,
                latency_seconds=duration_seconds,
                error_type=type(e).__name__,
            )
            raise HistoryStoreError("failed_to_fetch_history") from e

        # Oldest first, so rows sharing a timestamp reach the summarizer in id order
        history = [record for bucket in buckets.values() for record in reversed(bucket)]
        duration_seconds = time.perf_counter() - start_time

        logger.info(
            "history_fetch_completed",
            loan_count=len(ids),
            loans_with_history=len(buckets),
            transaction_count=len(history),
            duration_ms=round(duration_seconds * 1000, 2),
            outcome="success",
        )
        metrics.record_history_fetch(success=True, latency_seconds=duration_seconds)

        return history
