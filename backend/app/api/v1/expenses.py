"""Expense API endpoints.

  POST /expenses                 : submit an expense into approval
  GET  /expenses                 : role-scoped list
  GET  /expenses/{id}            : detail with approval flow
  POST /expenses/{id}/approve    : approver decision (APPROVED / REJECTED)
"""
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.deps import get_current_user, require_role
from app.db.session import get_session
from app.models.user import User, UserRole
from app.schemas.approval import ApprovalDecisionRequest, DecisionOut
from app.schemas.expense import ExpenseCreate, ExpenseListResponse, ExpenseOut
from app.services import approval_flow as flow_svc
from app.services import expenses as expense_svc

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=ExpenseOut,
    status_code=status.HTTP_201_CREATED,
    summary="Submit an expense",
)
def submit_expense(
    body: ExpenseCreate,
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    expense = expense_svc.submit_expense(
        db,
        current_user,
        amount=body.amount,
        currency=body.currency,
        category=body.category,
        description=body.description,
        expense_date=body.expense_date,
    )
    return expense_svc.get_expense(db, expense.id, current_user.company_id)


@router.get("", response_model=ExpenseListResponse, summary="List expenses visible to the current user")
def list_expenses(
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    items = expense_svc.list_expenses_for_user(db, current_user)
    return ExpenseListResponse(
        items=[ExpenseOut.model_validate(e) for e in items], total=len(items)
    )


@router.get("/{expense_id}", response_model=ExpenseOut, summary="Get expense detail")
def get_expense(
    expense_id: uuid.UUID,
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    return expense_svc.get_expense(db, expense_id, current_user.company_id)


@router.post(
    "/{expense_id}/approve",
    response_model=DecisionOut,
    summary="Approve or reject an expense as one of its approvers",
)
def decide_expense(
    expense_id: uuid.UUID,
    body: ApprovalDecisionRequest,
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(require_role(UserRole.ADMIN, UserRole.MANAGER))],
):
    expense = expense_svc.get_expense(db, expense_id, current_user.company_id)
    flow = flow_svc.get_flow_for_expense(db, expense.id)
    result = flow_svc.decide(db, flow.id, current_user.id, body.action, body.comment)
    logger.info(
        "decide_expense: expense=%s approver=%s action=%s status=%s",
        expense_id, current_user.id, body.action, result.expense_status.value,
    )
    return result
