"""
Decision configuration.

Every threshold and weight used by the decision engine lives here as a fixed,
hand-tuned default. Callers may override individual values per request; the
result is an immutable DecisionConfig that is passed explicitly to every
component of the engine.

DEFAULTS:
---------
- microDebtThreshold: 1000     (0 < amount < 1000 is a micro-debt)
- zombieDaysThreshold: 365     (overdue > 365 days is zombie debt)
- maxAttempts: 12              (standard attempt cap per cycle)
- zombieMaxAttempts: 3         (attempt cap for zombie debt)
- freshDaysThreshold: 5        (0-5 days overdue is fresh debt)
- highAmountThreshold: 5000    (amount > 5000 is spread out)
- minDaysBetweenAttempts: 0    (no minimum gap unless configured)
- riskBanks: ["AZTECA"]        (scheduled on semi-monthly dates)
- killBanks: ["MONTERREY"]     (collection stopped outright)
"""
import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping, Optional

from smart_retry.logging import get_logger

logger = get_logger(__name__)

DECISION_MODES = ("rules", "score")


class InvalidConfigError(ValueError):
    """Raised when a configuration override has the wrong type or range."""


@dataclass(frozen=True)
class ConfidenceWeights:
    """Fixed confidence attached to the decision of each rule."""
    stop_settled: float = 0.99
    stop_chargeback: float = 0.95
    stop_by_customer: float = 0.9
    stop_hard_decline: float = 0.9
    stop_possible_error: float = 0.75
    stop_zombie_limit: float = 0.85
    stop_attempts_limit: float = 0.85
    stop_kill_bank: float = 0.85

    schedule_zombie: float = 0.7
    schedule_risk_amount: float = 0.7
    schedule_standard_quincena: float = 0.6

    retry_micro_debt: float = 0.8
    retry_fresh: float = 0.8
    retry_standard: float = 0.65
    retry_default: float = 0.6


@dataclass(frozen=True)
class ScoringWeights:
    """
    Weights of the continuous scoring mode.

    The score is sigmoid(bias + reason*r + recency*d + amount*a + budget*b)
    where each feature is already scaled to roughly [-1, 1].
    """
    bias: float = -0.5
    reason: float = 1.5
    recency: float = 1.0
    amount: float = -0.75
    budget: float = 1.0
    amount_scale: float = 10000.0


@dataclass(frozen=True)
class DecisionConfig:
    """Immutable configuration for one invocation of the decision engine."""
    micro_debt_threshold: float = 1000
    zombie_days_threshold: int = 365
    max_attempts: int = 12
    zombie_max_attempts: int = 3
    fresh_days_threshold: int = 5
    high_amount_threshold: float = 5000
    min_days_between_attempts: int = 0
    risk_banks: tuple[str, ...] = ("AZTECA",)
    kill_banks: tuple[str, ...] = ("MONTERREY",)
    confidence: ConfidenceWeights = field(default_factory=ConfidenceWeights)
    decision_mode: str = "rules"
    score_threshold: float = 0.5
    scoring_weights: ScoringWeights = field(default_factory=ScoringWeights)

    @classmethod
    def from_overrides(
        cls,
        overrides: Optional[Mapping[str, Any]] = None,
        base: Optional["DecisionConfig"] = None,
    ) -> "DecisionConfig":
        """
        Build a config from caller overrides, field by field.

        Keys may be camelCase (as sent by API callers) or snake_case.
        Unknown keys are ignored.

        Raises:
            InvalidConfigError: If a recognized key has an invalid value
        """
        config = base or cls()
        if not overrides:
            return config
        if not isinstance(overrides, Mapping):
            raise InvalidConfigError("config must be an object")

        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            name = _snake_case(key)
            if name not in _SCALAR_FIELDS and name not in _NESTED_FIELDS:
                logger.warning("unknown_config_key", key=key)
                continue
            if value is None:
                continue

            if name in ("risk_banks", "kill_banks"):
                changes[name] = _bank_tokens(key, value)
            elif name == "confidence":
                changes[name] = _override_dataclass(
                    config.confidence, key, value, probability=True
                )
            elif name == "scoring_weights":
                changes[name] = _override_dataclass(config.scoring_weights, key, value)
            elif name == "decision_mode":
                mode = str(value).strip().lower()
                if mode not in DECISION_MODES:
                    raise InvalidConfigError(
                        f"{key} must be one of {', '.join(DECISION_MODES)}"
                    )
                changes[name] = mode
            elif name == "score_threshold":
                changes[name] = _probability(key, value)
            else:
                changes[name] = _number(key, value, as_int=_SCALAR_FIELDS[name] is int)

        return replace(config, **changes)


_SCALAR_FIELDS = {
    "micro_debt_threshold": float,
    "zombie_days_threshold": int,
    "max_attempts": int,
    "zombie_max_attempts": int,
    "fresh_days_threshold": int,
    "high_amount_threshold": float,
    "min_days_between_attempts": int,
    "decision_mode": str,
    "score_threshold": float,
}

_NESTED_FIELDS = ("risk_banks", "kill_banks", "confidence", "scoring_weights")


def _snake_case(key: str) -> str:
    out = []
    for ch in str(key):
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out).lstrip("_")


def _is_finite(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # Integer too large for a float
        return False


def _number(key: str, value: Any, as_int: bool = False) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfigError(f"{key} must be a number")
    if not _is_finite(value) or value < 0:
        raise InvalidConfigError(f"{key} must be a finite, non-negative number")
    return int(value) if as_int else float(value)


def _probability(key: str, value: Any) -> float:
    number = _number(key, value)
    if number > 1:
        raise InvalidConfigError(f"{key} must be between 0 and 1")
    return number


def _bank_tokens(key: str, value: Any) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise InvalidConfigError(f"{key} must be a list of bank names")
    tokens = []
    for item in value:
        if not isinstance(item, str):
            raise InvalidConfigError(f"{key} must contain only strings")
        token = item.strip().upper()
        if token:
            tokens.append(token)
    return tuple(tokens)


def _override_dataclass(current, key: str, value: Any, probability: bool = False):
    if not isinstance(value, Mapping):
        raise InvalidConfigError(f"{key} must be an object")
    known = {f.name for f in fields(current)}
    changes = {}
    for sub_key, sub_value in value.items():
        name = _snake_case(sub_key)
        if name not in known:
            logger.warning("unknown_config_key", key=f"{key}.{sub_key}")
            continue
        label = f"{key}.{sub_key}"
        if probability:
            changes[name] = _probability(label, sub_value)
        elif not _is_finite(sub_value):
            # Scoring weights may be negative.
            raise InvalidConfigError(f"{label} must be a finite number")
        else:
            changes[name] = float(sub_value)
    return replace(current, **changes)
