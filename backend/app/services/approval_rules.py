"""Approval rule administration.

Every write goes through the ``rule_type`` discriminated union, and the
columns a variant does not use are nulled, so a stored rule never carries
stale fields from a previous type.
"""
import logging
import uuid
from typing import Any

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, InvalidInputError, NotFoundError
from app.models.approval import ApprovalFlow
from app.models.approval_rule import ApprovalRule, RuleType
from app.models.user import APPROVER_ROLES
from app.schemas.approval_rule import ApprovalRuleIn
from app.services import audit as audit_svc
from app.services.users import get_user

logger = logging.getLogger(__name__)

_rule_adapter: TypeAdapter = TypeAdapter(ApprovalRuleIn)


def _snapshot(rule: ApprovalRule) -> dict[str, Any]:
    return {
        "name": rule.name,
        "rule_type": rule.rule_type.value if rule.rule_type else None,
        "percentage_threshold": rule.percentage_threshold,
        "specific_approver_id": rule.specific_approver_id,
        "is_manager_first": rule.is_manager_first,
        "min_amount": rule.min_amount,
        "max_amount": rule.max_amount,
        "is_active": rule.is_active,
    }


def parse_rule(data: dict[str, Any]):
    """Validate a raw payload into its rule-type variant."""
    try:
        return _rule_adapter.validate_python(data)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise InvalidInputError(f"Invalid approval rule: {errors}") from exc


def _apply(db: Session, rule: ApprovalRule, company_id: uuid.UUID, payload) -> None:
    specific_approver_id = getattr(payload, "specific_approver_id", None)
    if specific_approver_id is not None:
        approver = get_user(db, specific_approver_id, company_id=company_id)
        if not approver.is_active:
            raise InvalidInputError(f"Specific approver {approver.id} is inactive.")
        if approver.role not in APPROVER_ROLES:
            raise InvalidInputError(
                f"Specific approver {approver.id} has role '{approver.role.value}'; "
                "only ADMIN or MANAGER users can decide approval steps."
            )

    rule.name = payload.name
    rule.rule_type = RuleType(payload.rule_type)
    rule.percentage_threshold = getattr(payload, "percentage_threshold", None)
    rule.specific_approver_id = specific_approver_id
    rule.is_manager_first = payload.is_manager_first
    rule.min_amount = payload.min_amount
    rule.max_amount = payload.max_amount
    rule.is_active = payload.is_active


# ─── Queries ───

def get_rule(db: Session, company_id: uuid.UUID, rule_id: uuid.UUID) -> ApprovalRule:
    rule = db.execute(
        select(ApprovalRule).where(
            ApprovalRule.id == rule_id,
            ApprovalRule.company_id == company_id,
        )
    ).scalars().first()
    if rule is None:
        raise NotFoundError(f"Approval rule {rule_id} not found.")
    return rule


def list_rules(db: Session, company_id: uuid.UUID) -> list[ApprovalRule]:
    """All rules of the company, newest first."""
    stmt = (
        select(ApprovalRule)
        .where(ApprovalRule.company_id == company_id)
        .order_by(ApprovalRule.created_at.desc())
    )
    return list(db.execute(stmt).scalars().all())


def flow_counts(db: Session, rule_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
    """Number of approval flows bound to each rule."""
    if not rule_ids:
        return {}
    rows = db.execute(
        select(ApprovalFlow.rule_id, func.count(ApprovalFlow.id))
        .where(ApprovalFlow.rule_id.in_(rule_ids))
        .group_by(ApprovalFlow.rule_id)
    ).all()
    return {rule_id: count for rule_id, count in rows}


# ─── Writes ───

def create_rule(
    db: Session,
    company_id: uuid.UUID,
    data: dict[str, Any],
    actor_id: uuid.UUID | None = None,
) -> ApprovalRule:
    payload = parse_rule(data)
    rule = ApprovalRule(company_id=company_id)
    try:
        _apply(db, rule, company_id, payload)
        db.add(rule)
        db.flush()
        audit_svc.log(
            db=db,
            action="approval_rule_created",
            entity_type="approval_rule",
            entity_id=rule.id,
            actor_id=actor_id,
            after=_snapshot(rule),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("create_rule: company=%s rule=%s type=%s", company_id, rule.id, rule.rule_type.value)
    return rule


def update_rule(
    db: Session,
    company_id: uuid.UUID,
    rule_id: uuid.UUID,
    changes: dict[str, Any],
    actor_id: uuid.UUID | None = None,
) -> ApprovalRule:
    """Merge ``changes`` into the stored rule and re-validate the result.

    Switching ``rule_type`` nulls the fields the new type does not use.
    """
    rule = get_rule(db, company_id, rule_id)
    before = _snapshot(rule)

    merged = {k: v for k, v in before.items() if v is not None}
    merged.update({k: (v.value if isinstance(v, RuleType) else v) for k, v in changes.items()})
    payload = parse_rule(merged)

    try:
        _apply(db, rule, company_id, payload)
        db.flush()
        audit_svc.log(
            db=db,
            action="approval_rule_updated",
            entity_type="approval_rule",
            entity_id=rule.id,
            actor_id=actor_id,
            before=before,
            after=_snapshot(rule),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("update_rule: rule=%s fields=%s", rule.id, sorted(changes))
    return rule


def delete_rule(
    db: Session,
    company_id: uuid.UUID,
    rule_id: uuid.UUID,
    actor_id: uuid.UUID | None = None,
) -> None:
    """Hard-delete a rule that no approval flow references.

    Raises:
        ConflictError: the rule is still bound to at least one flow.
    """
    rule = get_rule(db, company_id, rule_id)
    in_use = flow_counts(db, [rule.id]).get(rule.id, 0)
    if in_use:
        raise ConflictError(
            f"Cannot delete rule {rule.id}: it is used by {in_use} existing approval flow(s)."
        )

    try:
        audit_svc.log(
            db=db,
            action="approval_rule_deleted",
            entity_type="approval_rule",
            entity_id=rule.id,
            actor_id=actor_id,
            before=_snapshot(rule),
        )
        db.delete(rule)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("delete_rule: rule=%s", rule_id)
