"""Decision service for portfolio retry decisions."""
import time
from datetime import datetime
from typing import Any, Mapping, Optional

from smart_retry.config import settings
from smart_retry.engine import DecisionConfig, decide
from smart_retry.engine.models import normalize_loan_id
from smart_retry.logging import get_logger, log_batch_decision
from smart_retry.schemas import DecideResponse, DecisionItem
from smart_retry.services.history_store import TransactionHistoryStore
from smart_retry import metrics

logger = get_logger(__name__)


def build_config(overrides: Optional[Mapping[str, Any]] = None) -> DecisionConfig:
    """
    Build the per-request decision config.

    The service-wide decision mode is the base; request overrides win.

    Raises:
        InvalidConfigError: If an override has an invalid value
    """
    base = DecisionConfig.from_overrides({"decisionMode": settings.decision_mode})
    return DecisionConfig.from_overrides(overrides, base=base)


class DecisionService:
    """
    Service for deciding a portfolio of delinquent loans.

    This service orchestrates:
    1. Dropping loans without an identifier
    2. Fetching transaction history from the store
    3. Running the decision engine over every loan
    4. Recording decision metrics and logs
    """

    def __init__(self, history_store: TransactionHistoryStore):
        """
        Initialize the decision service.

        Args:
            history_store: Source of transaction history for the loans
        """
        self.history_store = history_store

    def decide_portfolio(
        self,
        loans: list,
        config_overrides: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> DecideResponse:
        """
        Decide every identifiable loan of a portfolio.

        Args:
            loans: Raw loan records from the request body
            config_overrides: Decision configuration overrides
            now: Decision moment; defaults to the current UTC time

        Returns:
            DecideResponse with one decision per loan that has a loan_id

        Raises:
            InvalidConfigError: If the config overrides are invalid
            HistoryStoreError: If the history cannot be loaded
        """
        config = build_config(config_overrides)

        valid_loans = [
            loan for loan in loans
            if isinstance(loan, Mapping) and normalize_loan_id(loan.get("loan_id"))
        ]
        dropped = len(loans) - len(valid_loans)
        if dropped:
            logger.warning("loans_without_id_dropped", dropped=dropped)

        loan_ids = list(dict.fromkeys(normalize_loan_id(loan["loan_id"]) for loan in valid_loans))

        logger.info(
            "processing_portfolio",
            loan_count=len(valid_loans),
            unique_loan_ids=len(loan_ids),
            decision_mode=config.decision_mode,
        )

        transactions = self.history_store.fetch_history(loan_ids)

        start_time = time.perf_counter()
        decisions = decide(valid_loans, transactions, config, now)
        duration_seconds = time.perf_counter() - start_time

        log_batch_decision(
            logger=logger,
            decisions=decisions,
            loan_count=len(valid_loans),
            transaction_count=len(transactions),
            decision_mode=config.decision_mode,
            duration_ms=duration_seconds * 1000,
        )
        metrics.record_decisions(decisions, latency_seconds=duration_seconds)

        return DecideResponse(
            decisions=[DecisionItem(**decision.to_dict()) for decision in decisions]
        )
