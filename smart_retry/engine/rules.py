"""
Rule Cascade

The decision core: an ordered list of rules evaluated first-match-wins. Each
rule pairs a predicate with an outcome that builds the Decision, including its
reason, its fixed confidence and (for RETRY/SCHEDULE) the next attempt date.

ORDER:
------
Kill switches and hard caps (always evaluated, in both decision modes):
    1. settled             amount <= 1.0                          STOP
    2. chargeback          chargeback status/timestamp/message    STOP
    3. customer_stop       customer-ordered cancellation          STOP
    4. possible_error      nonexistent account / wrong bank       STOP
    5. hard_decline        cancelled, blocked, unauthorized       STOP
    6. kill_bank           bank on the kill list                  STOP
    7. zombie              overdue > 365 days                     STOP or SCHEDULE
    8. max_attempts        attempts in cycle >= 12                STOP

Scheduling tail (replaced by the score in scoring mode):
    9.  micro_debt         0 < amount < 1000                      RETRY now
    10. fresh              overdue <= 5 days                      RETRY now
    11. risk_or_high       risk bank or amount > 5000             SCHEDULE quincena
    12. mid_range          6 <= overdue <= 20                     RETRY in 4 days
    13. aged               overdue > 20                           SCHEDULE quincena
    14. default                                                   RETRY in 4 days

Reordering these rules changes collection outcomes; the order is part of the
policy.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from smart_retry.engine.classifier import FailureCategory, SETTLED_AMOUNT, bank_matches
from smart_retry.engine.config import DecisionConfig
from smart_retry.engine.history import STATUS_CHARGEBACK, LoanState
from smart_retry.engine.models import Decision, DecisionType, Loan, ReasonCode
from smart_retry.engine import scheduler

MID_RANGE_MIN_DAYS = 6
MID_RANGE_MAX_DAYS = 20


@dataclass(frozen=True)
class LoanContext:
    """Everything a rule may look at for one loan."""
    loan: Loan
    state: LoanState
    category: FailureCategory
    config: DecisionConfig
    now: datetime

    @property
    def amount(self) -> float:
        return self.loan.total_amount_outstanding

    @property
    def overdue_days(self) -> int:
        return self.loan.overdue_days

    @property
    def attempts(self) -> int:
        return self.state.effective_attempts

    @property
    def is_chargeback(self) -> bool:
        return (
            self.state.last_status == STATUS_CHARGEBACK
            or self.state.chargeback_seen
            or self.category == FailureCategory.CHARGEBACK
        )

    @property
    def is_zombie(self) -> bool:
        return self.overdue_days > self.config.zombie_days_threshold

    @property
    def on_kill_list(self) -> bool:
        return bank_matches(self.loan.payment_method_bank, self.config.kill_banks)

    @property
    def on_risk_list(self) -> bool:
        return bank_matches(self.loan.payment_method_bank, self.config.risk_banks)

    def stop(self, reason: ReasonCode, label: str, confidence: float) -> Decision:
        return Decision(
            loan_id=self.loan.loan_id,
            decision=DecisionType.STOP,
            decision_reason=reason,
            reason_label=label,
            confidence=confidence,
        )

    def attempt(
        self,
        decision: DecisionType,
        reason: ReasonCode,
        label: str,
        proposed: datetime,
        confidence: float,
    ) -> Decision:
        next_date = scheduler.enforce_min_gap(
            proposed,
            self.state.last_attempt_at,
            self.now,
            self.config.min_days_between_attempts,
        )
        return Decision(
            loan_id=self.loan.loan_id,
            decision=decision,
            decision_reason=reason,
            reason_label=label,
            confidence=confidence,
            next_attempt_date=next_date,
        )

    def retry(self, reason: ReasonCode, label: str, proposed: datetime, confidence: float) -> Decision:
        return self.attempt(DecisionType.RETRY, reason, label, proposed, confidence)

    def schedule(self, reason: ReasonCode, label: str, proposed: datetime, confidence: float) -> Decision:
        return self.attempt(DecisionType.SCHEDULE, reason, label, proposed, confidence)


@dataclass(frozen=True)
class Rule:
    name: str
    applies: Callable[[LoanContext], bool]
    outcome: Callable[[LoanContext], Decision]


def _zombie_outcome(ctx: LoanContext) -> Decision:
    c = ctx.config.confidence
    if ctx.attempts >= ctx.config.zombie_max_attempts:
        return ctx.stop(
            ReasonCode.AGE_LIMIT_EXCEEDED,
            "STOP: Age limit exceeded (>1 year)",
            c.stop_zombie_limit,
        )
    return ctx.schedule(
        ReasonCode.ZOMBIE_SEMIMONTHLY,
        "SCHEDULE: Semi-monthly only (zombie)",
        scheduler.next_semimonthly_date(ctx.now),
        c.schedule_zombie,
    )


KILL_SWITCH_RULES: tuple[Rule, ...] = (
    Rule(
        "settled",
        lambda ctx: ctx.amount <= SETTLED_AMOUNT,
        lambda ctx: ctx.stop(
            ReasonCode.SETTLED,
            "STOP: Debt settled (zero balance)",
            ctx.config.confidence.stop_settled,
        ),
    ),
    Rule(
        "chargeback",
        lambda ctx: ctx.is_chargeback,
        lambda ctx: ctx.stop(
            ReasonCode.CHARGEBACK,
            "STOP: Chargeback risk",
            ctx.config.confidence.stop_chargeback,
        ),
    ),
    Rule(
        "customer_stop",
        lambda ctx: ctx.category == FailureCategory.CUSTOMER_STOP,
        lambda ctx: ctx.stop(
            ReasonCode.CUSTOMER_STOP,
            "STOP: By customer order",
            ctx.config.confidence.stop_by_customer,
        ),
    ),
    Rule(
        "possible_error",
        lambda ctx: ctx.category == FailureCategory.POSSIBLE_ERROR,
        lambda ctx: ctx.stop(
            ReasonCode.POSSIBLE_ERROR,
            "STOP: Possible error (invalid account)",
            ctx.config.confidence.stop_possible_error,
        ),
    ),
    Rule(
        "hard_decline",
        lambda ctx: ctx.category == FailureCategory.HARD_DECLINE,
        lambda ctx: ctx.stop(
            ReasonCode.HARD_DECLINE,
            "STOP: Invalid account (hard decline)",
            ctx.config.confidence.stop_hard_decline,
        ),
    ),
    Rule(
        "kill_bank",
        lambda ctx: ctx.on_kill_list,
        lambda ctx: ctx.stop(
            ReasonCode.BANK_BLOCKED,
            "STOP: Bank blocked",
            ctx.config.confidence.stop_kill_bank,
        ),
    ),
    Rule("zombie", lambda ctx: ctx.is_zombie, _zombie_outcome),
    Rule(
        "max_attempts",
        lambda ctx: ctx.attempts >= ctx.config.max_attempts,
        lambda ctx: ctx.stop(
            ReasonCode.ATTEMPT_LIMIT_EXCEEDED,
            f"STOP: Attempt limit exceeded ({ctx.config.max_attempts})",
            ctx.config.confidence.stop_attempts_limit,
        ),
    ),
)


SCHEDULING_RULES: tuple[Rule, ...] = (
    Rule(
        "micro_debt",
        lambda ctx: 0 < ctx.amount < ctx.config.micro_debt_threshold,
        lambda ctx: ctx.retry(
            ReasonCode.MICRO_DEBT,
            "RETRY: Immediate (micro-debt)",
            scheduler.immediate_retry(ctx.now),
            ctx.config.confidence.retry_micro_debt,
        ),
    ),
    Rule(
        "fresh",
        lambda ctx: ctx.overdue_days <= ctx.config.fresh_days_threshold,
        lambda ctx: ctx.retry(
            ReasonCode.FRESH_DEBT,
            "RETRY: Immediate (fresh debt)",
            scheduler.immediate_retry(ctx.now),
            ctx.config.confidence.retry_fresh,
        ),
    ),
    Rule(
        "risk_or_high_amount",
        lambda ctx: ctx.on_risk_list or ctx.amount > ctx.config.high_amount_threshold,
        lambda ctx: ctx.schedule(
            ReasonCode.RISK_BANK_OR_HIGH_AMOUNT,
            "SCHEDULE: Next semi-monthly date (risk bank/amount)",
            scheduler.next_semimonthly_date(ctx.now),
            ctx.config.confidence.schedule_risk_amount,
        ),
    ),
    Rule(
        "mid_range",
        lambda ctx: MID_RANGE_MIN_DAYS <= ctx.overdue_days <= MID_RANGE_MAX_DAYS,
        lambda ctx: ctx.retry(
            ReasonCode.MID_RANGE_DELINQUENCY,
            "RETRY: Standard (every 4 days)",
            scheduler.standard_retry(ctx.now),
            ctx.config.confidence.retry_standard,
        ),
    ),
    Rule(
        "aged",
        lambda ctx: ctx.overdue_days > MID_RANGE_MAX_DAYS,
        lambda ctx: ctx.schedule(
            ReasonCode.AGED_DELINQUENCY,
            "SCHEDULE: Next semi-monthly date",
            scheduler.next_semimonthly_date(ctx.now),
            ctx.config.confidence.schedule_standard_quincena,
        ),
    ),
    Rule(
        "default",
        lambda ctx: True,
        lambda ctx: ctx.retry(
            ReasonCode.DEFAULT,
            "RETRY: Standard",
            scheduler.standard_retry(ctx.now),
            ctx.config.confidence.retry_default,
        ),
    ),
)

RULES: tuple[Rule, ...] = KILL_SWITCH_RULES + SCHEDULING_RULES


def first_match(ctx: LoanContext, rules: Sequence[Rule]) -> Optional[tuple[Rule, Decision]]:
    """Evaluate rules in order and return the first that applies, with its decision."""
    for rule in rules:
        if rule.applies(ctx):
            return rule, rule.outcome(ctx)
    return None
