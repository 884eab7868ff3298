"""Row builders for service and API tests."""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.models.approval_rule import ApprovalRule, RuleType
from app.models.company import Company
from app.models.expense import Expense, ExpenseStatus
from app.models.user import User, UserRole

RULE_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_company(db, name: str = "Acme", currency: str = "USD") -> Company:
    company = Company(name=name, currency=currency)
    db.add(company)
    db.flush()
    return company


def make_user(
    db,
    company: Company,
    role: UserRole = UserRole.EMPLOYEE,
    manager: User | None = None,
    name: str | None = None,
    is_active: bool = True,
) -> User:
    name = name or f"{role.value.lower()}-{uuid.uuid4().hex[:6]}"
    user = User(
        company_id=company.id,
        email=f"{name}@example.com",
        name=name,
        password_hash="not-a-real-hash",
        role=role,
        manager_id=manager.id if manager else None,
        is_active=is_active,
    )
    db.add(user)
    db.flush()
    return user


def make_rule(
    db,
    company: Company,
    rule_type: RuleType = RuleType.PERCENTAGE,
    order: int = 0,
    percentage_threshold: str | None = None,
    specific_approver: User | None = None,
    is_manager_first: bool = False,
    min_amount: str | None = None,
    max_amount: str | None = None,
    is_active: bool = True,
    name: str | None = None,
) -> ApprovalRule:
    """``order`` fixes created_at so selection order is deterministic."""
    rule = ApprovalRule(
        company_id=company.id,
        name=name or f"{rule_type.value} rule {order}",
        rule_type=rule_type,
        percentage_threshold=Decimal(percentage_threshold) if percentage_threshold else None,
        specific_approver_id=specific_approver.id if specific_approver else None,
        is_manager_first=is_manager_first,
        min_amount=Decimal(min_amount) if min_amount is not None else None,
        max_amount=Decimal(max_amount) if max_amount is not None else None,
        is_active=is_active,
        created_at=RULE_EPOCH + timedelta(minutes=order),
    )
    db.add(rule)
    db.flush()
    return rule


def make_expense(db, submitter: User, amount: str = "150.00", currency: str = "USD") -> Expense:
    expense = Expense(
        company_id=submitter.company_id,
        submitted_by_id=submitter.id,
        amount=Decimal(amount),
        currency=currency,
        converted_amount=Decimal(amount),
        category="Travel",
        status=ExpenseStatus.PENDING,
    )
    db.add(expense)
    db.flush()
    return expense
