"""Domain types for the retry decision engine."""
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional


class DecisionType(str, Enum):
    """What to do next with a delinquent loan."""
    STOP = "STOP"
    RETRY = "RETRY"
    SCHEDULE = "SCHEDULE"


class ReasonCode(str, Enum):
    """Stable reason codes attached to every decision."""
    SETTLED = "settled"
    CHARGEBACK = "chargeback"
    CUSTOMER_STOP = "customer_stop"
    POSSIBLE_ERROR = "possible_error"
    HARD_DECLINE = "hard_decline"
    BANK_BLOCKED = "bank_blocked"
    AGE_LIMIT_EXCEEDED = "age_limit_exceeded"
    ZOMBIE_SEMIMONTHLY = "zombie_semimonthly"
    ATTEMPT_LIMIT_EXCEEDED = "attempt_limit_exceeded"
    MICRO_DEBT = "micro_debt"
    FRESH_DEBT = "fresh_debt"
    RISK_BANK_OR_HIGH_AMOUNT = "risk_bank_or_high_amount"
    MID_RANGE_DELINQUENCY = "mid_range_delinquency"
    AGED_DELINQUENCY = "aged_delinquency"
    DEFAULT = "default"
    SCORE_RETRY = "score_retry"
    SCORE_SCHEDULE = "score_schedule"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp into an aware UTC datetime.

    Accepts datetime objects and ISO-8601 strings ("Z" suffix allowed).
    Naive values are taken as UTC. Returns None for anything unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        # Offset pushes the instant outside the representable range
        return None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Render a UTC timestamp as ISO-8601 with milliseconds and a Z suffix."""
    if value is None:
        return None
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def coerce_number(value: Any, default: float = 0) -> float:
    """Coerce a numeric field, falling back to default when invalid."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if not isinstance(value, (int, float)):
        return default
    try:
        if not math.isfinite(value):
            return default
    except OverflowError:
        # Integer too large for a float
        return default
    return value


def normalize_loan_id(value: Any) -> str:
    """Loan ids are compared as trimmed strings."""
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class Loan:
    """One delinquent loan, with invalid fields already coerced."""
    loan_id: str
    payment_method_bank: str = ""
    total_amount_outstanding: float = 0
    overdue_days: int = 0
    overdue_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Loan":
        bank = record.get("payment_method_bank")
        return cls(
            loan_id=normalize_loan_id(record.get("loan_id")),
            payment_method_bank="" if bank is None else str(bank),
            total_amount_outstanding=coerce_number(record.get("total_amount_outstanding")),
            overdue_days=int(coerce_number(record.get("overdue_days"))),
            overdue_at=parse_timestamp(record.get("overdue_at")),
            created_at=parse_timestamp(record.get("created_at")),
        )


@dataclass(frozen=True)
class Decision:
    """The outcome for one loan."""
    loan_id: str
    decision: DecisionType
    decision_reason: ReasonCode
    reason_label: str
    confidence: float
    next_attempt_date: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "loan_id": self.loan_id,
            "decision": self.decision.value,
            "decision_reason": self.decision_reason.value,
            "reason_label": self.reason_label,
            "confidence": self.confidence,
            "next_attempt_date": format_timestamp(self.next_attempt_date),
        }
