"""Tests for summarizing a loan's transaction history."""
from datetime import datetime, timezone

from smart_retry.engine.history import (
    EMPTY_STATE,
    STATUS_CHARGEBACK,
    STATUS_SUCCESSFUL,
    summarize_history,
)
from tests.conftest import NOW, make_txn


class TestEmptyHistory:
    """Tests for loans without transactions."""

    def test_empty_history_is_new(self):
        state = summarize_history([])

        assert state == EMPTY_STATE
        assert state.last_status == "new"
        assert state.last_failed_message == ""
        assert state.attempts_in_cycle == 0
        assert state.last_attempt_at is None


class TestAttemptCounter:
    """Tests for the attempts-in-cycle fold."""

    def test_failures_are_counted(self):
        txns = [make_txn(days_ago=d) for d in (3, 2, 1)]
        assert summarize_history(txns).attempts_in_cycle == 3

    def test_success_resets_counter_and_message(self):
        txns = [
            make_txn(days_ago=3, message="Fondos insuficientes"),
            make_txn(days_ago=2, message="Fondos insuficientes"),
            make_txn(status="successful", days_ago=1),
        ]

        state = summarize_history(txns)

        assert state.last_status == STATUS_SUCCESSFUL
        assert state.attempts_in_cycle == 0
        assert state.effective_attempts == 0
        assert state.last_failed_message == ""

    def test_failures_after_success_start_a_new_cycle(self):
        txns = [
            make_txn(days_ago=5),
            make_txn(status="successful", days_ago=4),
            make_txn(days_ago=3, message="Timeout"),
            make_txn(days_ago=2, message="Fondos insuficientes"),
        ]

        state = summarize_history(txns)

        assert state.attempts_in_cycle == 2
        assert state.last_failed_message == "Fondos insuficientes"

    def test_input_order_does_not_matter(self):
        txns = [
            make_txn(days_ago=2, message="second"),
            make_txn(status="successful", days_ago=4),
            make_txn(days_ago=1, message="third"),
            make_txn(days_ago=3, message="first"),
        ]

        state = summarize_history(txns)

        assert state.attempts_in_cycle == 3
        assert state.last_failed_message == "third"
        assert state.transaction_count == 4

    def test_chargeback_continues_the_cycle(self):
        txns = [
            make_txn(days_ago=2),
            make_txn(status="chargeback", days_ago=1),
        ]
        state = summarize_history(txns)
        assert state.attempts_in_cycle == 2
        assert state.last_status == STATUS_CHARGEBACK


class TestStatusNormalization:
    """Tests for status and message normalization."""

    def test_status_is_lowercased_and_aliases_mapped(self):
        state = summarize_history([make_txn(status="  SUCCESS ")])
        assert state.last_status == STATUS_SUCCESSFUL

    def test_chargeback_timestamp_overrides_status(self):
        txns = [make_txn(status="successful", chargeback_at="2025-01-09T00:00:00Z")]

        state = summarize_history(txns)

        assert state.last_status == STATUS_CHARGEBACK
        assert state.chargeback_seen is True

    def test_older_chargeback_is_remembered(self):
        txns = [
            make_txn(days_ago=5, chargeback_at="2025-01-06T00:00:00Z"),
            make_txn(days_ago=1, status="failed"),
        ]

        state = summarize_history(txns)

        assert state.last_status == "failed"
        assert state.chargeback_seen is True

    def test_older_chargeback_status_is_not_sticky(self):
        """Without a chargeback timestamp only the latest status counts."""
        txns = [
            make_txn(days_ago=5, status="chargeback"),
            make_txn(days_ago=2, status="successful"),
            make_txn(days_ago=1, status="failed"),
        ]

        state = summarize_history(txns)

        assert state.last_status == "failed"
        assert state.chargeback_seen is False

    def test_failed_reason_is_used_when_message_missing(self):
        txn = make_txn(failed_reason="Cuenta bloqueada")
        txn["failed_message"] = None
        assert summarize_history([txn]).last_failed_message == "Cuenta bloqueada"

    def test_message_survives_failures_without_message(self):
        txns = [
            make_txn(days_ago=2, message="Fondos insuficientes"),
            make_txn(days_ago=1, message=""),
        ]
        assert summarize_history(txns).last_failed_message == "Fondos insuficientes"


class TestOrdering:
    """Tests for chronological ordering edge cases."""

    def test_missing_timestamp_sorts_first(self):
        undated = {"loan_id": "L1", "status": "successful"}
        dated = make_txn(days_ago=1, message="Timeout")

        state = summarize_history([dated, undated])

        assert state.last_status == "failed"
        assert state.attempts_in_cycle == 1

    def test_unparseable_timestamp_does_not_abort(self):
        broken = {"loan_id": "L1", "status": "failed", "created_at": "not-a-date"}
        dated = make_txn(status="successful", days_ago=1)

        state = summarize_history([dated, broken])

        assert state.last_status == STATUS_SUCCESSFUL
        assert state.attempts_in_cycle == 0

    def test_out_of_range_timestamp_is_treated_as_missing(self):
        """An offset that moves the instant before year 1 cannot be converted to UTC."""
        broken = {"loan_id": "L1", "status": "successful", "created_at": "0001-01-01T00:00:00+05:00"}
        dated = make_txn(days_ago=1, message="Timeout")

        state = summarize_history([dated, broken])

        assert state.last_status == "failed"
        assert state.attempts_in_cycle == 1
        assert state.last_attempt_at == NOW.replace(day=9)

    def test_identical_timestamps_keep_input_order(self):
        first = make_txn(days_ago=1, message="A")
        second = make_txn(days_ago=1, message="B")

        assert summarize_history([first, second]).last_failed_message == "B"
        assert summarize_history([second, first]).last_failed_message == "A"

    def test_completed_at_is_fallback_timestamp(self):
        early = {"loan_id": "L1", "status": "failed", "completed_at": "2025-01-01T00:00:00Z"}
        late = {"loan_id": "L1", "status": "successful", "completed_at": "2025-01-05T00:00:00Z"}

        state = summarize_history([late, early])

        assert state.last_status == STATUS_SUCCESSFUL
        assert state.last_attempt_at == datetime(2025, 1, 5, tzinfo=timezone.utc)

    def test_last_attempt_is_latest_timestamp(self):
        txns = [make_txn(days_ago=d) for d in (1, 7, 3)]
        state = summarize_history(txns)
        assert state.last_attempt_at == NOW.replace(day=9)
