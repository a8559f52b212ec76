"""
History Summarizer

Reduces a loan's raw transaction log to the compact state the rule cascade
needs: last observed status, last failure message and the number of attempts
in the current collection cycle.

CYCLE CONVENTION:
-----------------
A cycle is the run of attempts since the last successful transaction.

- A successful transaction resets the counter to 0 and is not counted itself
- Every other transaction (failed, chargeback, pending, ...) adds 1
- A success also clears the last failure message

Chargebacks do not reset the cycle. A transaction carrying a chargeback
timestamp is treated as status "chargeback" whatever its status field says,
and marks the loan as charged back for good. A bare "chargeback" status only
matters while it is the latest one.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from functools import reduce
from typing import Any, Iterable, Mapping, Optional

from smart_retry.engine.models import parse_timestamp

STATUS_NEW = "new"
STATUS_SUCCESSFUL = "successful"
STATUS_CHARGEBACK = "chargeback"
STATUS_UNKNOWN = "unknown"

# Processor spellings of a successful charge
_SUCCESS_ALIASES = frozenset({"successful", "success", "succeeded"})

# Sort key for rows without a usable timestamp
_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class LoanState:
    """Derived per-loan state; recomputed on every invocation."""
    last_status: str = STATUS_NEW
    last_failed_message: str = ""
    attempts_in_cycle: int = 0
    last_attempt_at: Optional[datetime] = None
    chargeback_seen: bool = False
    transaction_count: int = 0

    @property
    def effective_attempts(self) -> int:
        """Attempts to check against limits; a success cancels the cycle."""
        if self.last_status == STATUS_SUCCESSFUL:
            return 0
        return self.attempts_in_cycle


EMPTY_STATE = LoanState()


def normalize_status(transaction: Mapping[str, Any]) -> str:
    """Lower-cased status, forced to chargeback when a chargeback date exists."""
    if transaction.get("chargeback_at"):
        return STATUS_CHARGEBACK
    raw = transaction.get("status")
    status = "" if raw is None else str(raw).strip().lower()
    if status in _SUCCESS_ALIASES:
        return STATUS_SUCCESSFUL
    return status


def failure_message(transaction: Mapping[str, Any]) -> str:
    """The failure detail of a transaction, preferring failed_message."""
    for key in ("failed_message", "failed_reason"):
        value = transaction.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def transaction_timestamp(transaction: Mapping[str, Any]) -> Optional[datetime]:
    """Ordering timestamp: created_at, falling back to completed_at."""
    return parse_timestamp(transaction.get("created_at")) or parse_timestamp(
        transaction.get("completed_at")
    )


def sort_chronologically(transactions: Iterable[Mapping[str, Any]]) -> list:
    """
    Sort transactions oldest first.

    Rows without a parseable timestamp sort as earliest. The sort is stable,
    so rows with equal timestamps keep their input order.
    """
    return sorted(transactions, key=lambda t: transaction_timestamp(t) or _EARLIEST)


def _fold(state: LoanState, transaction: Mapping[str, Any]) -> LoanState:
    status = normalize_status(transaction)
    timestamp = transaction_timestamp(transaction)
    last_attempt_at = state.last_attempt_at
    if timestamp is not None and (last_attempt_at is None or timestamp >= last_attempt_at):
        last_attempt_at = timestamp

    if status == STATUS_SUCCESSFUL:
        return replace(
            state,
            last_status=status,
            last_failed_message="",
            attempts_in_cycle=0,
            last_attempt_at=last_attempt_at,
            transaction_count=state.transaction_count + 1,
        )

    message = failure_message(transaction)
    return replace(
        state,
        last_status=status or STATUS_UNKNOWN,
        last_failed_message=message or state.last_failed_message,
        attempts_in_cycle=state.attempts_in_cycle + 1,
        last_attempt_at=last_attempt_at,
        chargeback_seen=state.chargeback_seen or bool(transaction.get("chargeback_at")),
        transaction_count=state.transaction_count + 1,
    )


def summarize_history(transactions: Iterable[Mapping[str, Any]]) -> LoanState:
    """
    Summarize one loan's transactions (any order) into a LoanState.

    Args:
        transactions: Transaction records belonging to a single loan

    Returns:
        LoanState; EMPTY_STATE when there is no history
    """
    return reduce(_fold, sort_chronologically(transactions), EMPTY_STATE)
