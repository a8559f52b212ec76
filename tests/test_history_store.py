"""Tests for the SQLAlchemy-backed transaction history store."""
import uuid
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from smart_retry.engine import decide, summarize_history
from smart_retry.models import LoanTransaction
from smart_retry.services.history_store import HistoryStoreError, TransactionHistoryStore
from tests.conftest import NOW


def add_attempts(session, loan_id, days_ago, status="failed", message=None):
    for days in days_ago:
        session.add(LoanTransaction(
            loan_id=loan_id,
            status=status,
            amount=100,
            failed_message=message,
            created_at=NOW - timedelta(days=days),
        ))
    session.commit()


class TestFetchHistory:
    """Tests for TransactionHistoryStore.fetch_history."""

    def test_empty_ids_skip_the_database(self):
        db = MagicMock()
        store = TransactionHistoryStore(db)

        assert store.fetch_history([]) == []
        db.query.assert_not_called()

    def test_returns_rows_for_requested_loans_only(self, db_session):
        add_attempts(db_session, "L1", [1, 2])
        add_attempts(db_session, "L2", [1])
        add_attempts(db_session, "OTHER", [1])

        history = TransactionHistoryStore(db_session).fetch_history(["L1", "L2"])

        assert sorted(record["loan_id"] for record in history) == ["L1", "L1", "L2"]

    def test_keeps_newest_rows_per_loan(self, db_session):
        add_attempts(db_session, "L1", [5, 4, 3, 2, 1])
        add_attempts(db_session, "L2", [10])

        history = TransactionHistoryStore(db_session, max_per_loan=2).fetch_history(["L1", "L2"])

        l1 = [r for r in history if r["loan_id"] == "L1"]
        assert len(l1) == 2
        assert [r["created_at"].day for r in l1] == [8, 9]
        assert len([r for r in history if r["loan_id"] == "L2"]) == 1

    def test_same_timestamp_rows_are_ordered_by_id(self, db_session):
        created_at = NOW - timedelta(days=1)
        for id_int, status in ((2, "successful"), (1, "failed")):
            db_session.add(LoanTransaction(
                id=uuid.UUID(int=id_int),
                loan_id="L1",
                status=status,
                created_at=created_at,
            ))
        db_session.commit()

        history = TransactionHistoryStore(db_session).fetch_history(["L1"])

        assert [r["status"] for r in history] == ["failed", "successful"]
        assert summarize_history(history).last_status == "successful"

    def test_ids_are_queried_in_chunks(self, db_session):
        add_attempts(db_session, "L1", [1])
        add_attempts(db_session, "L2", [1])
        add_attempts(db_session, "L3", [1])

        history = TransactionHistoryStore(db_session, chunk_size=2).fetch_history(
            ["L1", "L2", "L3"]
        )

        assert len(history) == 3

    def test_chunk_count(self):
        db = MagicMock()
        db.query.return_value.filter.return_value.order_by.return_value.all.return_value = []
        store = TransactionHistoryStore(db, chunk_size=2)

        store.fetch_history(["A", "B", "C", "D", "E", "A"])

        # Five unique ids in chunks of two
        assert db.query.call_count == 3

    def test_records_have_engine_shape(self, db_session):
        add_attempts(db_session, "L1", [1], message="Fondos insuficientes")

        record = TransactionHistoryStore(db_session).fetch_history(["L1"])[0]

        assert record["status"] == "failed"
        assert record["failed_message"] == "Fondos insuficientes"
        assert record["amount"] == 100.0
        assert record["chargeback_at"] is None

    def test_database_failure_raises_store_error(self):
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
        store = TransactionHistoryStore(db)

        with pytest.raises(HistoryStoreError) as exc_info:
            store.fetch_history(["L1"])

        assert exc_info.value.detail == "failed_to_fetch_history"


class TestStoreWithEngine:
    """Stored history drives the decision engine end to end."""

    def test_stored_failures_reach_attempt_limit(self, db_session):
        add_attempts(db_session, "L1", range(1, 13), message="Fondos insuficientes")
        loans = [{"loan_id": "L1", "total_amount_outstanding": 2000, "overdue_days": 15}]

        history = TransactionHistoryStore(db_session).fetch_history(["L1"])
        decision = decide(loans, history, now=NOW)[0]

        assert decision.decision_reason.value == "attempt_limit_exceeded"

    def test_stored_success_resets_cycle(self, db_session):
        add_attempts(db_session, "L1", range(3, 15))
        add_attempts(db_session, "L1", [2], status="successful")
        add_attempts(db_session, "L1", [1], message="Timeout")
        loans = [{"loan_id": "L1", "total_amount_outstanding": 2000, "overdue_days": 15}]

        history = TransactionHistoryStore(db_session).fetch_history(["L1"])
        decision = decide(loans, history, now=NOW)[0]

        assert decision.decision_reason.value == "mid_range_delinquency"
