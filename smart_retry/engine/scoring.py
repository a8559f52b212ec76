"""
Continuous Scoring Mode

Drop-in replacement for the scheduling tail of the rule cascade. Kill switches
and hard caps still run first; a loan that survives them gets a 0-1 score
instead of a fixed rule.

SCORE:
------
    score = sigmoid(bias
                    + w_reason  * reason_weight(category)
                    + w_recency * (1 - exp(-days_since_last_attempt / 7))
                    + w_amount  * min(1, ln(1 + amount) / ln(1 + amount_scale))
                    + w_budget  * remaining_attempt_budget)

- reason_weight: how likely the last failure is to clear on its own. Network
  errors clear fast, insufficient funds clear on payday, fraud does not.
- recency: saturates after a couple of weeks of rest.
- amount: larger balances are harder to collect in one charge.
- budget: fraction of max_attempts still unused in this cycle.

A score at or above score_threshold retries; below it the loan is scheduled.

DATE BANDS (days since the last attempt):
-----------------------------------------
- <= 4:  the next day
- 5-14:  next semi-monthly date from now
- >= 15: next semi-monthly date from the last attempt (or the loan's overdue
         reference date when there is no history)
"""
import math
from datetime import datetime
from typing import Optional

from smart_retry.engine.classifier import FailureCategory
from smart_retry.engine.models import Decision, ReasonCode
from smart_retry.engine.rules import LoanContext
from smart_retry.engine import scheduler

RECENCY_HALF_LIFE_DAYS = 7.0
NEXT_DAY_MAX_DAYS = 4
FROM_NOW_MAX_DAYS = 14

REASON_WEIGHTS: dict[FailureCategory, float] = {
    FailureCategory.NETWORK_ERROR: 1.0,
    FailureCategory.INSUFFICIENT_FUNDS: 0.4,
    FailureCategory.UNKNOWN: 0.2,
    FailureCategory.FRAUD: -1.0,
}


def sigmoid(x: float) -> float:
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def reference_date(ctx: LoanContext) -> Optional[datetime]:
    """Last attempt, else the loan's overdue reference date."""
    return ctx.state.last_attempt_at or ctx.loan.overdue_at or ctx.loan.created_at


def days_since_last_attempt(ctx: LoanContext) -> Optional[int]:
    reference = reference_date(ctx)
    if reference is None:
        return None
    return max(0, (ctx.now - reference).days)


def compute_score(ctx: LoanContext) -> float:
    """Score a loan between 0 and 1; higher means retry sooner."""
    w = ctx.config.scoring_weights

    reason = REASON_WEIGHTS.get(ctx.category, 0.0)

    days = days_since_last_attempt(ctx)
    # No reference date means the loan has been resting indefinitely.
    recency = 1.0 if days is None else 1.0 - math.exp(-days / RECENCY_HALF_LIFE_DAYS)

    scale = math.log1p(max(w.amount_scale, 1.0))
    amount = min(1.0, math.log1p(max(ctx.amount, 0.0)) / scale)

    max_attempts = ctx.config.max_attempts
    if max_attempts > 0:
        budget = max(0, max_attempts - ctx.attempts) / max_attempts
    else:
        budget = 0.0

    return sigmoid(
        w.bias
        + w.reason * reason
        + w.recency * recency
        + w.amount * amount
        + w.budget * budget
    )


def proposed_date(ctx: LoanContext) -> datetime:
    days = days_since_last_attempt(ctx)
    if days is None:
        return scheduler.next_semimonthly_date(ctx.now)
    if days <= NEXT_DAY_MAX_DAYS:
        return scheduler.next_day(ctx.now)
    if days <= FROM_NOW_MAX_DAYS:
        return scheduler.next_semimonthly_date(ctx.now)
    return scheduler.next_semimonthly_date(reference_date(ctx))


def score_decision(ctx: LoanContext) -> Decision:
    """Decide a loan that passed every kill switch using the continuous score."""
    score = compute_score(ctx)
    confidence = round(score, 4)
    proposed = proposed_date(ctx)

    if score >= ctx.config.score_threshold:
        return ctx.retry(
            ReasonCode.SCORE_RETRY,
            f"RETRY: Score {confidence:.2f}",
            proposed,
            confidence,
        )
    return ctx.schedule(
        ReasonCode.SCORE_SCHEDULE,
        f"SCHEDULE: Score {confidence:.2f} below threshold",
        proposed,
        confidence,
    )
