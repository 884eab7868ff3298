"""Tests for approval flow construction."""
import pytest
from sqlalchemy import func, select

from app.core.exceptions import ConflictError
from app.models.approval import ApprovalFlow, ApprovalStep, StepStatus
from app.models.approval_rule import RuleType
from app.models.audit import AuditLog
from app.models.expense import ExpenseStatus
from app.models.user import UserRole
from app.services import approval_flow
from app.services.approval_flow import build_flow, plan_steps
from factories import make_company, make_expense, make_rule, make_user


def _steps(db, flow):
    return list(
        db.execute(
            select(ApprovalStep)
            .where(ApprovalStep.flow_id == flow.id)
            .order_by(ApprovalStep.step_number)
        ).scalars().all()
    )


def _flow_count(db):
    return db.execute(select(func.count(ApprovalFlow.id))).scalar_one()


@pytest.fixture
def org(db):
    company = make_company(db)
    admin = make_user(db, company, UserRole.ADMIN, name="admin")
    manager = make_user(db, company, UserRole.MANAGER, name="manager")
    employee = make_user(db, company, UserRole.EMPLOYEE, manager=manager, name="employee")
    loner = make_user(db, company, UserRole.EMPLOYEE, name="loner")
    return {"company": company, "admin": admin, "manager": manager, "employee": employee, "loner": loner}


# ─── No rule ──────────────────────────────────────────────────────────────────

def test_admin_without_rule_is_auto_approved(db, org):
    expense = make_expense(db, org["admin"])

    flow = build_flow(db, expense, org["admin"], rule=None)

    assert flow is None
    assert expense.status == ExpenseStatus.APPROVED
    assert _flow_count(db) == 0
    actions = db.execute(select(AuditLog.action)).scalars().all()
    assert "expense_auto_approved" in actions


def test_employee_without_rule_gets_single_manager_step(db, org):
    expense = make_expense(db, org["employee"])

    flow = build_flow(db, expense, org["employee"], rule=None)

    assert flow is not None
    assert flow.rule_id is None
    assert flow.current_step == 1
    assert flow.is_completed is False
    steps = _steps(db, flow)
    assert [(s.step_number, s.approver_id, s.status) for s in steps] == [
        (1, org["manager"].id, StepStatus.PENDING)
    ]
    assert expense.status == ExpenseStatus.PENDING


def test_employee_without_rule_or_manager_stays_pending(db, org):
    expense = make_expense(db, org["loner"])

    flow = build_flow(db, expense, org["loner"], rule=None)

    assert flow is None
    assert expense.status == ExpenseStatus.PENDING
    assert _flow_count(db) == 0


def test_existing_flow_conflicts(db, org):
    expense = make_expense(db, org["employee"])
    build_flow(db, expense, org["employee"], rule=None)

    with pytest.raises(ConflictError):
        build_flow(db, expense, org["employee"], rule=None)
    assert _flow_count(db) == 1


def test_racing_flow_insert_surfaces_as_conflict(db, org, monkeypatch):
    expense = make_expense(db, org["employee"])
    build_flow(db, expense, org["employee"], rule=None)
    # a second submission that passed the existence check before the first committed
    monkeypatch.setattr(approval_flow, "_existing_flow_id", lambda db, expense_id: None)

    with pytest.raises(ConflictError):
        build_flow(db, expense, org["employee"], rule=None)
    assert _flow_count(db) == 1


# ─── Rule-bound ───────────────────────────────────────────────────────────────

def test_specific_rule_creates_one_step(db, org):
    rule = make_rule(db, org["company"], RuleType.SPECIFIC, specific_approver=org["admin"])
    expense = make_expense(db, org["employee"])

    flow = build_flow(db, expense, org["employee"], rule)

    assert flow.rule_id == rule.id
    assert [(s.step_number, s.approver_id) for s in _steps(db, flow)] == [(1, org["admin"].id)]


def test_percentage_rule_creates_parallel_cohort_without_submitter(db, org):
    second_manager = make_user(db, org["company"], UserRole.MANAGER, name="m2")
    make_user(db, org["company"], UserRole.MANAGER, name="retired", is_active=False)
    rule = make_rule(db, org["company"], RuleType.PERCENTAGE, percentage_threshold="60")
    expense = make_expense(db, second_manager)

    flow = build_flow(db, expense, second_manager, rule)

    steps = _steps(db, flow)
    assert {s.approver_id for s in steps} == {org["admin"].id, org["manager"].id}
    assert {s.step_number for s in steps} == {1}
    assert all(s.status == StepStatus.PENDING for s in steps)


def test_manager_first_prefixes_the_rule_approvers(db, org):
    rule = make_rule(
        db, org["company"], RuleType.SPECIFIC,
        specific_approver=org["admin"], is_manager_first=True,
    )
    expense = make_expense(db, org["employee"])

    flow = build_flow(db, expense, org["employee"], rule)

    assert [(s.step_number, s.approver_id) for s in _steps(db, flow)] == [
        (1, org["manager"].id),
        (2, org["admin"].id),
    ]


def test_manager_first_without_manager_starts_at_step_one(db, org):
    rule = make_rule(
        db, org["company"], RuleType.SPECIFIC,
        specific_approver=org["admin"], is_manager_first=True,
    )
    expense = make_expense(db, org["loner"])

    flow = build_flow(db, expense, org["loner"], rule)

    assert [(s.step_number, s.approver_id) for s in _steps(db, flow)] == [(1, org["admin"].id)]


def test_hybrid_rule_has_specific_approver_once(db, org):
    rule = make_rule(
        db, org["company"], RuleType.HYBRID,
        specific_approver=org["admin"], percentage_threshold="50",
    )
    expense = make_expense(db, org["employee"])

    flow = build_flow(db, expense, org["employee"], rule)

    approvers = [s.approver_id for s in _steps(db, flow)]
    assert sorted(approvers, key=str) == sorted([org["admin"].id, org["manager"].id], key=str)


def test_empty_cohort_creates_flow_without_steps(db):
    company = make_company(db)
    only_admin = make_user(db, company, UserRole.ADMIN)
    rule = make_rule(db, company, RuleType.PERCENTAGE, percentage_threshold="50")
    expense = make_expense(db, only_admin)

    flow = build_flow(db, expense, only_admin, rule)

    assert flow is not None
    assert _steps(db, flow) == []
    assert expense.status == ExpenseStatus.PENDING


def test_plan_steps_is_pure():
    from types import SimpleNamespace
    import uuid

    submitter = SimpleNamespace(id=uuid.uuid4(), manager_id=uuid.uuid4())
    specific = uuid.uuid4()
    cohort = [SimpleNamespace(id=uuid.uuid4()) for _ in range(2)]
    rule = SimpleNamespace(
        rule_type=RuleType.HYBRID, is_manager_first=True, specific_approver_id=specific,
    )

    planned = plan_steps(rule, submitter, cohort)

    assert planned == [
        (1, submitter.manager_id),
        (2, specific),
        (2, cohort[0].id),
        (2, cohort[1].id),
    ]
