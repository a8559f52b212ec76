"""Retry decision engine for delinquent loans."""
from smart_retry.engine.batch import decide, decide_loan
from smart_retry.engine.config import DecisionConfig, InvalidConfigError
from smart_retry.engine.history import LoanState, summarize_history
from smart_retry.engine.models import Decision, DecisionType, Loan, ReasonCode

__all__ = [
    "decide",
    "decide_loan",
    "Decision",
    "DecisionConfig",
    "DecisionType",
    "InvalidConfigError",
    "Loan",
    "LoanState",
    "ReasonCode",
    "summarize_history",
]
