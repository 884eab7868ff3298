"""Approval rule administration (ADMIN only).

  GET    /approval-rules
  POST   /approval-rules
  GET    /approval-rules/{id}
  PUT    /approval-rules/{id}
  DELETE /approval-rules/{id}   refused while any approval flow uses the rule
"""
import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Response, status
from sqlalchemy.orm import Session

from app.core.deps import require_role
from app.db.session import get_session
from app.models.approval_rule import ApprovalRule
from app.models.user import User, UserRole
from app.schemas.approval_rule import ApprovalRuleIn, ApprovalRuleOut, ApprovalRuleUpdate
from app.services import approval_rules as rules_svc

router = APIRouter()

AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN))]
DbSession = Annotated[Session, Depends(get_session)]


def _out(rule: ApprovalRule, flow_count: int = 0) -> ApprovalRuleOut:
    return ApprovalRuleOut.model_validate(rule).model_copy(update={"flow_count": flow_count})


@router.get("", response_model=list[ApprovalRuleOut])
def list_rules(db: DbSession, current_user: AdminUser):
    rules = rules_svc.list_rules(db, current_user.company_id)
    counts = rules_svc.flow_counts(db, [r.id for r in rules])
    return [_out(r, counts.get(r.id, 0)) for r in rules]


@router.post("", response_model=ApprovalRuleOut, status_code=status.HTTP_201_CREATED)
def create_rule(
    db: DbSession,
    current_user: AdminUser,
    body: Annotated[ApprovalRuleIn, Body()],
):
    rule = rules_svc.create_rule(
        db, current_user.company_id, body.model_dump(), actor_id=current_user.id
    )
    return _out(rule)


@router.get("/{rule_id}", response_model=ApprovalRuleOut)
def get_rule(rule_id: uuid.UUID, db: DbSession, current_user: AdminUser):
    rule = rules_svc.get_rule(db, current_user.company_id, rule_id)
    return _out(rule, rules_svc.flow_counts(db, [rule.id]).get(rule.id, 0))


@router.put("/{rule_id}", response_model=ApprovalRuleOut)
def update_rule(
    rule_id: uuid.UUID,
    body: ApprovalRuleUpdate,
    db: DbSession,
    current_user: AdminUser,
):
    changes: dict[str, Any] = body.model_dump(exclude_unset=True)
    rule = rules_svc.update_rule(
        db, current_user.company_id, rule_id, changes, actor_id=current_user.id
    )
    return _out(rule, rules_svc.flow_counts(db, [rule.id]).get(rule.id, 0))


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(rule_id: uuid.UUID, db: DbSession, current_user: AdminUser):
    rules_svc.delete_rule(db, current_user.company_id, rule_id, actor_id=current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
