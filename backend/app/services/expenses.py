"""Expense submission and role-scoped listing.

Submission runs conversion, rule selection and flow creation in one
transaction. A failed currency conversion never blocks submission: the
expense is stored with ``converted_amount`` NULL.
"""
import logging
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import DependencyFailureError, NotFoundError
from app.models.approval import ApprovalFlow
from app.models.company import Company
from app.models.expense import Expense, ExpenseStatus
from app.models.user import User, UserRole
from app.services import audit as audit_svc
from app.services.approval_flow import awaiting_expense_ids, build_flow, notify_pending_approvers
from app.services.fx import convert_currency
from app.services.rule_selector import select_rule
from app.services.users import get_direct_report_ids

logger = logging.getLogger(__name__)


def _convert_to_base(amount: Decimal, currency: str, base_currency: str) -> Decimal | None:
    if currency.upper() == base_currency.upper():
        return amount
    try:
        return convert_currency(amount, currency, base_currency)
    except DependencyFailureError as exc:
        logger.warning(
            "Currency conversion %s -> %s failed, storing expense without converted amount: %s",
            currency, base_currency, exc,
        )
        return None


def submit_expense(
    db: Session,
    submitter: User,
    amount: Decimal,
    currency: str,
    category: str,
    description: str | None = None,
    expense_date: date | None = None,
) -> Expense:
    """Create a PENDING expense and route it into approval.

    Returns the expense; its status is already APPROVED when an ADMIN
    submits and no rule applies.
    """
    company = db.get(Company, submitter.company_id)
    if company is None:
        raise NotFoundError(f"Company {submitter.company_id} not found.")

    amount = Decimal(str(amount))
    currency = currency.upper()
    converted = _convert_to_base(amount, currency, company.currency)

    try:
        expense = Expense(
            company_id=company.id,
            submitted_by_id=submitter.id,
            amount=amount,
            currency=currency,
            converted_amount=converted,
            category=category,
            description=description,
            expense_date=expense_date,
            status=ExpenseStatus.PENDING,
        )
        db.add(expense)
        db.flush()

        audit_svc.log(
            db=db,
            action="expense_submitted",
            entity_type="expense",
            entity_id=expense.id,
            actor_id=submitter.id,
            after={
                "amount": amount,
                "currency": currency,
                "converted_amount": converted,
                "category": category,
            },
        )

        rule = select_rule(db, company.id, amount)
        flow = build_flow(db, expense, submitter, rule, commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "submit_expense: expense=%s submitter=%s amount=%s %s status=%s flow=%s",
        expense.id, submitter.id, amount, currency, expense.status.value,
        flow.id if flow else None,
    )

    if flow is not None:
        notify_pending_approvers(db, expense, flow)
    return expense


# ─── Queries ───

def _with_flow(stmt):
    return stmt.options(
        selectinload(Expense.approval_flow).selectinload(ApprovalFlow.steps)
    )


def get_expense(db: Session, expense_id: uuid.UUID, company_id: uuid.UUID) -> Expense:
    expense = db.execute(
        _with_flow(select(Expense)).where(
            Expense.id == expense_id,
            Expense.company_id == company_id,
        )
    ).scalars().first()
    if expense is None:
        raise NotFoundError(f"Expense {expense_id} not found.")
    return expense


def list_expenses_for_user(db: Session, user: User) -> list[Expense]:
    """ADMIN: whole company. MANAGER: own, direct reports', and those awaiting their decision.
    EMPLOYEE: own only.
    """
    stmt = _with_flow(select(Expense)).where(Expense.company_id == user.company_id)

    if user.role == UserRole.MANAGER:
        member_ids = [user.id, *get_direct_report_ids(db, user.id)]
        stmt = stmt.where(
            or_(
                Expense.submitted_by_id.in_(member_ids),
                Expense.id.in_(awaiting_expense_ids(user.id)),
            )
        )
    elif user.role != UserRole.ADMIN:
        stmt = stmt.where(Expense.submitted_by_id == user.id)

    stmt = stmt.order_by(Expense.created_at.desc())
    return list(db.execute(stmt).scalars().unique().all())
