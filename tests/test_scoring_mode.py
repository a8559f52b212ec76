"""Tests for the continuous scoring mode."""
import pytest

from smart_retry.engine import decide
from smart_retry.engine.classifier import FailureCategory
from smart_retry.engine.config import DecisionConfig
from smart_retry.engine.history import EMPTY_STATE, summarize_history
from smart_retry.engine.models import Loan
from smart_retry.engine.rules import LoanContext
from smart_retry.engine.scoring import compute_score, sigmoid
from tests.conftest import NOW, make_txn

SCORE_MODE = DecisionConfig.from_overrides({"decisionMode": "score"})


def decide_scored(loan, txns=(), config=SCORE_MODE) -> dict:
    loan = {"loan_id": "L1", **loan}
    return decide([loan], list(txns), config=config, now=NOW)[0].to_dict()


class TestSigmoid:
    """Tests for the logistic squashing function."""

    def test_midpoint(self):
        assert sigmoid(0) == 0.5

    def test_extremes_do_not_overflow(self):
        assert sigmoid(1000) == 1.0
        assert sigmoid(-1000) == 0.0

    def test_monotonic(self):
        assert sigmoid(-1) < sigmoid(0) < sigmoid(1)


class TestComputeScore:
    """Tests for the feature weighting."""

    def _ctx(self, category, txns=(), amount=2000):
        loan = Loan.from_record({"loan_id": "L1", "total_amount_outstanding": amount})
        state = summarize_history(list(txns)) if txns else EMPTY_STATE
        return LoanContext(
            loan=loan, state=state, category=category, config=SCORE_MODE, now=NOW
        )

    def test_network_error_scores_above_fraud(self):
        txns = [make_txn(days_ago=3)]
        network = compute_score(self._ctx(FailureCategory.NETWORK_ERROR, txns))
        fraud = compute_score(self._ctx(FailureCategory.FRAUD, txns))
        assert network > fraud

    def test_longer_rest_scores_higher(self):
        recent = compute_score(self._ctx(FailureCategory.UNKNOWN, [make_txn(days_ago=1)]))
        rested = compute_score(self._ctx(FailureCategory.UNKNOWN, [make_txn(days_ago=14)]))
        assert rested > recent

    def test_larger_balance_scores_lower(self):
        txns = [make_txn(days_ago=3)]
        small = compute_score(self._ctx(FailureCategory.UNKNOWN, txns, amount=200))
        large = compute_score(self._ctx(FailureCategory.UNKNOWN, txns, amount=9000))
        assert small > large

    def test_score_is_a_probability(self):
        score = compute_score(self._ctx(FailureCategory.UNKNOWN))
        assert 0.0 < score < 1.0


class TestScoreDecisions:
    """Tests for decisions made in scoring mode."""

    def test_high_score_retries(self):
        result = decide_scored(
            {"total_amount_outstanding": 500, "overdue_days": 10},
            [make_txn(days_ago=10, message="Timeout")],
        )

        assert result["decision"] == "RETRY"
        assert result["decision_reason"] == "score_retry"
        assert result["confidence"] == pytest.approx(0.8977, abs=1e-3)
        assert result["reason_label"].startswith("RETRY: Score ")
        # 5-14 days since the last attempt: next semi-monthly date from now
        assert result["next_attempt_date"] == "2025-01-15T00:00:00.000Z"

    def test_low_score_is_scheduled(self):
        txns = [make_txn(days_ago=d) for d in range(11, 1, -1)]
        txns.append(make_txn(days_ago=1, message="Posible fraude"))

        result = decide_scored({"total_amount_outstanding": 4000, "overdue_days": 30}, txns)

        assert result["decision"] == "SCHEDULE"
        assert result["decision_reason"] == "score_schedule"
        assert result["confidence"] == pytest.approx(0.079, abs=1e-3)
        # Attempted yesterday: the next day
        assert result["next_attempt_date"] == "2025-01-11T00:00:00.000Z"

    def test_old_attempt_date_is_moved_into_the_future(self):
        result = decide_scored(
            {"total_amount_outstanding": 2000, "overdue_days": 30},
            [make_txn(days_ago=20, message="Timeout")],
        )
        assert result["next_attempt_date"] == "2025-01-15T00:00:00.000Z"

    def test_overdue_date_is_reference_without_history(self):
        result = decide_scored({
            "total_amount_outstanding": 2000,
            "overdue_days": 2,
            "overdue_at": "2025-01-08T00:00:00Z",
        })

        assert result["decision"] == "RETRY"
        assert result["next_attempt_date"] == "2025-01-11T00:00:00.000Z"

    def test_no_reference_date_uses_next_semimonthly(self):
        result = decide_scored({"total_amount_outstanding": 2000, "overdue_days": 2})
        assert result["next_attempt_date"] == "2025-01-15T00:00:00.000Z"

    def test_threshold_override(self):
        config = DecisionConfig.from_overrides({"decisionMode": "score", "scoreThreshold": 0.95})

        result = decide_scored(
            {"total_amount_outstanding": 500, "overdue_days": 10},
            [make_txn(days_ago=10, message="Timeout")],
            config=config,
        )

        assert result["decision"] == "SCHEDULE"
        assert result["decision_reason"] == "score_schedule"


class TestKillSwitchesStillApply:
    """Scoring replaces only the scheduling tail of the cascade."""

    def test_kill_bank_stops(self):
        result = decide_scored({
            "payment_method_bank": "Monterrey Regional",
            "total_amount_outstanding": 2000,
        })
        assert result["decision_reason"] == "bank_blocked"

    def test_settled_stops(self):
        result = decide_scored({"total_amount_outstanding": 0})
        assert result["decision_reason"] == "settled"

    def test_attempt_limit_stops(self):
        txns = [make_txn(days_ago=d, message="Timeout") for d in range(12, 0, -1)]
        result = decide_scored({"total_amount_outstanding": 2000, "overdue_days": 10}, txns)
        assert result["decision_reason"] == "attempt_limit_exceeded"

    def test_micro_debt_rule_is_not_used(self):
        result = decide_scored({"total_amount_outstanding": 500, "overdue_days": 2})
        assert result["decision_reason"] in ("score_retry", "score_schedule")
