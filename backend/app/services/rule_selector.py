"""Pick the approval rule that applies to an expense amount.

Rules are tried in creation order; the first active rule whose
[min_amount, max_amount] range contains the amount wins. Bounds are
inclusive and a NULL bound is unbounded on that side.
"""
import logging
import uuid
from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from app.models.approval_rule import ApprovalRule

logger = logging.getLogger(__name__)


def rule_matches_amount(rule: ApprovalRule, amount: Decimal) -> bool:
    if rule.min_amount is not None and Decimal(rule.min_amount) > amount:
        return False
    if rule.max_amount is not None and amount > Decimal(rule.max_amount):
        return False
    return True


def pick_rule(rules: Iterable[ApprovalRule], amount: Decimal) -> ApprovalRule | None:
    """Return the first rule in ``rules`` that is active and covers ``amount``."""
    amount = Decimal(str(amount))
    for rule in rules:
        if rule.is_active and rule_matches_amount(rule, amount):
            return rule
    return None


def select_rule(db: Session, company_id: uuid.UUID, amount: Decimal) -> ApprovalRule | None:
    """Return the earliest-created active rule of the company covering ``amount``.

    Only the first match is applied; overlapping rules are never merged.
    """
    amount = Decimal(str(amount))
    stmt = (
        select(ApprovalRule)
        .where(
            and_(
                ApprovalRule.company_id == company_id,
                ApprovalRule.is_active.is_(True),
                or_(ApprovalRule.min_amount.is_(None), ApprovalRule.min_amount <= amount),
                or_(ApprovalRule.max_amount.is_(None), ApprovalRule.max_amount >= amount),
            )
        )
        .order_by(ApprovalRule.created_at.asc())
    )
    candidates = list(db.execute(stmt).scalars().all())

    rule = pick_rule(candidates, amount)
    if rule is None:
        logger.info("select_rule: no active rule for company=%s amount=%s", company_id, amount)
    else:
        logger.info(
            "select_rule: company=%s amount=%s -> rule=%s (%s)",
            company_id, amount, rule.id, rule.rule_type.value,
        )
    return rule
