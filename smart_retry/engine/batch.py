"""Batch orchestrator: one independent decision per loan in a portfolio."""
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from smart_retry.engine.classifier import classify_loan
from smart_retry.engine.config import DecisionConfig
from smart_retry.engine.history import EMPTY_STATE, LoanState, summarize_history
from smart_retry.engine.models import Decision, Loan, normalize_loan_id
from smart_retry.engine.rules import KILL_SWITCH_RULES, RULES, LoanContext, first_match
from smart_retry.engine.scoring import score_decision
from smart_retry.logging import get_logger

logger = get_logger(__name__)


def group_by_loan(transactions: Iterable[Mapping[str, Any]]) -> dict[str, list]:
    """Bucket transactions by trimmed loan id, keeping input order."""
    grouped: dict[str, list] = defaultdict(list)
    for txn in transactions or ():
        if not isinstance(txn, Mapping):
            continue
        loan_id = normalize_loan_id(txn.get("loan_id"))
        if loan_id:
            grouped[loan_id].append(txn)
    return grouped


def decide_loan(
    loan: Loan,
    state: LoanState,
    config: DecisionConfig,
    now: datetime,
) -> Decision:
    """Run the cascade (or kill switches plus score) for a single loan."""
    ctx = LoanContext(
        loan=loan,
        state=state,
        category=classify_loan(loan.total_amount_outstanding, state.last_failed_message),
        config=config,
        now=now,
    )

    if config.decision_mode == "score":
        matched = first_match(ctx, KILL_SWITCH_RULES)
        if matched is None:
            rule_name, decision = "score", score_decision(ctx)
        else:
            rule_name, decision = matched[0].name, matched[1]
    else:
        # The default rule always applies, so a match is guaranteed.
        rule, decision = first_match(ctx, RULES)
        rule_name = rule.name

    logger.debug(
        "loan_decided",
        loan_id=loan.loan_id,
        rule=rule_name,
        category=ctx.category.value,
        last_status=state.last_status,
        attempts_in_cycle=state.attempts_in_cycle,
        decision=decision.decision.value,
        decision_reason=decision.decision_reason.value,
        confidence=decision.confidence,
    )
    return decision


def decide(
    loans: Iterable[Mapping[str, Any]],
    transactions: Iterable[Mapping[str, Any]],
    config: Optional[DecisionConfig] = None,
    now: Optional[datetime] = None,
) -> list[Decision]:
    """
    Decide every loan of a portfolio.

    Args:
        loans: Loan records; invalid fields are coerced to safe defaults
        transactions: Transaction history for any mix of the loans
        config: Decision configuration (defaults when omitted)
        now: Decision moment; defaults to the current UTC time

    Returns:
        One Decision per loan with a non-empty loan_id, in input order
    """
    config = config or DecisionConfig()
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)

    history = group_by_loan(transactions)
    decisions = []
    skipped = 0

    for record in loans or ():
        if not isinstance(record, Mapping):
            skipped += 1
            continue
        loan = Loan.from_record(record)
        if not loan.loan_id:
            skipped += 1
            continue

        txns = history.get(loan.loan_id)
        state = summarize_history(txns) if txns else EMPTY_STATE
        decisions.append(decide_loan(loan, state, config, now))

    if skipped:
        logger.warning("loans_skipped_without_id", skipped=skipped)

    return decisions
