"""Approval flow lifecycle service.

``build_flow`` materializes the approvers an expense needs; ``decide``
applies one approver's decision and settles the expense once the flow
reaches a terminal status.

All functions accept a sync SQLAlchemy Session. Each public operation is a
single transaction: rows are flushed as they are written and committed
once at the end, with a rollback on any error.
"""
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from app.db.base import utcnow
from app.models.approval import ApprovalFlow, ApprovalStep, StepStatus
from app.models.approval_rule import ApprovalRule, RuleType
from app.models.expense import Expense, ExpenseStatus
from app.models.user import APPROVER_ROLES, User, UserRole
from app.services import audit as audit_svc
from app.services import email as email_svc

logger = logging.getLogger(__name__)

DECISION_ACTIONS = (StepStatus.APPROVED, StepStatus.REJECTED)


@dataclass
class DecisionResult:
    flow_id: uuid.UUID
    expense_id: uuid.UUID
    action: StepStatus
    flow_status: ExpenseStatus
    expense_status: ExpenseStatus
    is_completed: bool
    current_step: int


# ─── Approver directory ───

def _cohort_approvers(
    db: Session, company_id: uuid.UUID, exclude_ids: Sequence[uuid.UUID]
) -> list[User]:
    """Active ADMIN/MANAGER users of the company, minus ``exclude_ids``."""
    stmt = (
        select(User)
        .where(
            User.company_id == company_id,
            User.role.in_(APPROVER_ROLES),
            User.is_active.is_(True),
            User.id.not_in(list(exclude_ids)),
        )
        .order_by(User.created_at.asc())
    )
    return list(db.execute(stmt).scalars().all())


# ─── Flow builder ───

def plan_steps(
    rule: ApprovalRule, submitter: User, cohort: Sequence[User]
) -> list[tuple[int, uuid.UUID]]:
    """Return the (step_number, approver_id) pairs for a rule-bound flow.

    A manager-first rule puts the submitter's manager alone at step 1 and
    shifts the rule's own approvers to step 2. Every approver the rule
    itself contributes shares one step number (a parallel cohort).
    """
    planned: list[tuple[int, uuid.UUID]] = []
    step_number = 1

    if rule.is_manager_first and submitter.manager_id:
        planned.append((step_number, submitter.manager_id))
        step_number += 1

    if rule.rule_type == RuleType.SPECIFIC:
        if rule.specific_approver_id:
            planned.append((step_number, rule.specific_approver_id))
    elif rule.rule_type == RuleType.PERCENTAGE:
        planned.extend((step_number, user.id) for user in cohort if user.id != submitter.id)
    elif rule.rule_type == RuleType.HYBRID:
        if rule.specific_approver_id:
            planned.append((step_number, rule.specific_approver_id))
        planned.extend(
            (step_number, user.id)
            for user in cohort
            if user.id not in (submitter.id, rule.specific_approver_id)
        )

    return planned


def _create_flow(
    db: Session,
    expense: Expense,
    rule: ApprovalRule | None,
    planned: Sequence[tuple[int, uuid.UUID]],
) -> ApprovalFlow:
    flow = ApprovalFlow(
        expense_id=expense.id,
        rule_id=rule.id if rule else None,
        current_step=1,
        is_completed=False,
    )
    db.add(flow)
    db.flush()

    for step_number, approver_id in planned:
        db.add(
            ApprovalStep(
                flow_id=flow.id,
                step_number=step_number,
                approver_id=approver_id,
                status=StepStatus.PENDING,
            )
        )
    db.flush()

    audit_svc.log(
        db=db,
        action="approval_flow_created",
        entity_type="approval_flow",
        entity_id=flow.id,
        after={
            "expense_id": str(expense.id),
            "rule_id": str(rule.id) if rule else None,
            "steps": [
                {"step_number": n, "approver_id": str(a)} for n, a in planned
            ],
        },
    )
    return flow


def _existing_flow_id(db: Session, expense_id: uuid.UUID) -> uuid.UUID | None:
    return db.execute(
        select(ApprovalFlow.id).where(ApprovalFlow.expense_id == expense_id)
    ).scalar_one_or_none()


def build_flow(
    db: Session,
    expense: Expense,
    submitter: User,
    rule: ApprovalRule | None = None,
    commit: bool = True,
) -> ApprovalFlow | None:
    """Create the approval flow for a freshly submitted expense.

    Without a rule, an ADMIN's expense is approved on the spot (no flow),
    anyone else with a manager gets a one-step flow for that manager, and a
    submitter with neither stays PENDING with no flow.

    Args:
        commit: When False the caller owns the transaction (and the
            follow-up ``notify_pending_approvers`` call).

    Returns:
        The new ApprovalFlow, or None when no flow was created.

    Raises:
        ConflictError: The expense already has a flow.
    """
    existing = _existing_flow_id(db, expense.id)
    if existing is not None:
        raise ConflictError(f"Expense {expense.id} already has approval flow {existing}.")

    flow: ApprovalFlow | None = None
    try:
        if rule is None:
            if submitter.role == UserRole.ADMIN:
                expense.status = ExpenseStatus.APPROVED
                db.flush()
                audit_svc.log(
                    db=db,
                    action="expense_auto_approved",
                    entity_type="expense",
                    entity_id=expense.id,
                    actor_id=submitter.id,
                    before={"status": ExpenseStatus.PENDING.value},
                    after={"status": ExpenseStatus.APPROVED.value},
                    notes="Submitted by ADMIN with no applicable approval rule",
                )
                logger.info("build_flow: expense=%s auto-approved (ADMIN submitter, no rule)", expense.id)
            elif submitter.manager_id:
                flow = _create_flow(db, expense, None, [(1, submitter.manager_id)])
                logger.info(
                    "build_flow: expense=%s default flow=%s manager=%s",
                    expense.id, flow.id, submitter.manager_id,
                )
            else:
                logger.warning(
                    "build_flow: expense=%s has no applicable rule and submitter=%s has no manager; "
                    "expense stays PENDING without an approval flow.",
                    expense.id, submitter.id,
                )
        else:
            cohort: list[User] = []
            if rule.rule_type in (RuleType.PERCENTAGE, RuleType.HYBRID):
                exclude = [submitter.id]
                if rule.rule_type == RuleType.HYBRID and rule.specific_approver_id:
                    exclude.append(rule.specific_approver_id)
                cohort = _cohort_approvers(db, expense.company_id, exclude)

            planned = plan_steps(rule, submitter, cohort)
            flow = _create_flow(db, expense, rule, planned)
            if not planned:
                logger.warning(
                    "build_flow: rule=%s produced no approval steps for expense=%s; "
                    "flow=%s can never reach a decision.",
                    rule.id, expense.id, flow.id,
                )
            logger.info(
                "build_flow: expense=%s flow=%s rule=%s type=%s steps=%d",
                expense.id, flow.id, rule.id, rule.rule_type.value, len(planned),
            )

        if commit:
            db.commit()
    except IntegrityError as exc:
        # unique expense_id: a concurrent submission created the flow first
        if commit:
            db.rollback()
        raise ConflictError(f"Expense {expense.id} already has an approval flow.") from exc
    except Exception:
        if commit:
            db.rollback()
        raise

    if commit and flow is not None:
        notify_pending_approvers(db, expense, flow)
    return flow


def notify_pending_approvers(db: Session, expense: Expense, flow: ApprovalFlow) -> None:
    """Notify approvers whose PENDING steps are currently actionable.

    Default (rule-less) flows are sequential, so only the steps at
    ``current_step`` are notified; rule-bound flows accept decisions from
    every step at once.
    """
    steps = db.execute(
        select(ApprovalStep).where(
            ApprovalStep.flow_id == flow.id,
            ApprovalStep.status == StepStatus.PENDING,
        )
    ).scalars().all()
    for step in steps:
        if flow.rule_id is None and step.step_number != flow.current_step:
            continue
        email_svc.send_approval_request_email(step, expense, approver=db.get(User, step.approver_id))


# ─── Step evaluator ───

def approval_percentage(steps: Sequence[ApprovalStep]) -> Decimal:
    """Percentage of all flow steps that are APPROVED (0 when the flow is empty)."""
    if not steps:
        return Decimal(0)
    approved = sum(1 for s in steps if s.status == StepStatus.APPROVED)
    return Decimal(approved) * 100 / Decimal(len(steps))


def _threshold_met(rule: ApprovalRule, steps: Sequence[ApprovalStep]) -> bool:
    if not steps:
        return False
    threshold = rule.percentage_threshold or settings.DEFAULT_PERCENTAGE_THRESHOLD
    return approval_percentage(steps) >= Decimal(str(threshold))


def _sequential_status(
    steps: Sequence[ApprovalStep], acting_step: ApprovalStep
) -> tuple[ExpenseStatus, bool]:
    index = next(i for i, s in enumerate(steps) if s.id == acting_step.id)
    if not all(s.status == StepStatus.APPROVED for s in steps[: index + 1]):
        return ExpenseStatus.PENDING, False
    if index == len(steps) - 1:
        return ExpenseStatus.APPROVED, False
    return ExpenseStatus.PENDING, True


def evaluate_flow_status(
    rule: ApprovalRule | None,
    steps: Sequence[ApprovalStep],
    acting_step: ApprovalStep,
) -> tuple[ExpenseStatus, bool]:
    """Decide the flow's status right after ``acting_step`` was decided.

    ``steps`` is the flow's full step list ordered by step number, with the
    acting step already in its terminal status.

    Returns:
        (status, advance): status is PENDING while undecided; ``advance`` is
        True when a sequential flow should move ``current_step`` forward.
    """
    if acting_step.status == StepStatus.REJECTED:
        return ExpenseStatus.REJECTED, False

    if rule is None:
        return _sequential_status(steps, acting_step)

    is_specific = (
        rule.specific_approver_id is not None
        and acting_step.approver_id == rule.specific_approver_id
    )

    if rule.rule_type == RuleType.SPECIFIC:
        approved = is_specific
    elif rule.rule_type == RuleType.PERCENTAGE:
        approved = _threshold_met(rule, steps)
    elif rule.rule_type == RuleType.HYBRID:
        approved = is_specific or _threshold_met(rule, steps)
    else:
        raise InvalidInputError(f"Unknown rule type '{rule.rule_type}'.")

    return (ExpenseStatus.APPROVED if approved else ExpenseStatus.PENDING), False


def _parse_action(action: str | StepStatus) -> StepStatus:
    try:
        parsed = StepStatus(action)
    except ValueError:
        parsed = None
    if parsed not in DECISION_ACTIONS:
        raise InvalidInputError(f"Invalid action '{action}'. Must be 'APPROVED' or 'REJECTED'.")
    return parsed


def decide(
    db: Session,
    flow_id: uuid.UUID,
    actor_id: uuid.UUID,
    action: str | StepStatus,
    comment: str | None = None,
) -> DecisionResult:
    """Apply one approver's decision to their PENDING step in a flow.

    The flow row is locked for the whole read-modify-write, and its version
    column is bumped on every decision, so concurrent decisions on the same
    flow are serialized.

    Raises:
        InvalidInputError: ``action`` is not APPROVED or REJECTED.
        NotFoundError: No such flow.
        ConflictError: The flow is already completed, or was modified concurrently.
        ForbiddenError: The actor has no PENDING step in the flow.
    """
    action = _parse_action(action)

    try:
        flow = db.execute(
            select(ApprovalFlow)
            .where(ApprovalFlow.id == flow_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().first()
        if flow is None:
            raise NotFoundError(f"Approval flow {flow_id} not found.")
        if flow.is_completed:
            raise ConflictError(f"Approval flow {flow_id} is already completed.")

        step = db.execute(
            select(ApprovalStep)
            .where(
                ApprovalStep.flow_id == flow.id,
                ApprovalStep.approver_id == actor_id,
                ApprovalStep.status == StepStatus.PENDING,
            )
            .order_by(ApprovalStep.step_number.asc(), ApprovalStep.created_at.asc())
        ).scalars().first()
        if step is None:
            raise ForbiddenError("No pending approval step for this approver.")

        now = utcnow()
        step.status = action
        step.comment = comment
        step.approved_at = now
        db.flush()

        audit_svc.log(
            db=db,
            action="approval_step_decided",
            entity_type="approval_step",
            entity_id=step.id,
            actor_id=actor_id,
            before={"status": StepStatus.PENDING.value},
            after={"status": action.value, "step_number": step.step_number},
            notes=comment,
        )

        steps = list(
            db.execute(
                select(ApprovalStep)
                .where(ApprovalStep.flow_id == flow.id)
                .order_by(ApprovalStep.step_number.asc(), ApprovalStep.created_at.asc())
            ).scalars().all()
        )
        rule = db.get(ApprovalRule, flow.rule_id) if flow.rule_id else None

        flow_status, advance = evaluate_flow_status(rule, steps, step)

        expense = db.get(Expense, flow.expense_id)
        if expense is None:
            raise NotFoundError(f"Expense {flow.expense_id} not found.")

        if advance:
            flow.current_step += 1

        if flow_status != ExpenseStatus.PENDING:
            before = {"status": expense.status.value}
            expense.status = flow_status
            flow.is_completed = True
            audit_svc.log(
                db=db,
                action=f"expense_{flow_status.value.lower()}",
                entity_type="expense",
                entity_id=expense.id,
                actor_id=actor_id,
                before=before,
                after={"status": flow_status.value, "flow_id": str(flow.id)},
            )

        flow.updated_at = now
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConflictError(f"Approval flow {flow_id} was modified concurrently; retry.") from exc
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Approval decision: flow=%s expense=%s actor=%s action=%s -> %s (current_step=%s)",
        flow.id, expense.id, actor_id, action.value, flow_status.value, flow.current_step,
    )

    if advance:
        notify_pending_approvers(db, expense, flow)
    elif flow.is_completed:
        email_svc.send_expense_decision_email(expense, flow_status.value)

    return DecisionResult(
        flow_id=flow.id,
        expense_id=expense.id,
        action=action,
        flow_status=flow_status,
        expense_status=expense.status,
        is_completed=flow.is_completed,
        current_step=flow.current_step,
    )


# ─── Queries ───

def get_flow_for_expense(db: Session, expense_id: uuid.UUID) -> ApprovalFlow:
    flow = db.execute(
        select(ApprovalFlow).where(ApprovalFlow.expense_id == expense_id)
    ).scalars().first()
    if flow is None:
        raise NotFoundError(f"No approval flow found for expense {expense_id}.")
    return flow


def awaiting_expense_ids(approver_id: uuid.UUID):
    """Select of expense ids whose open flow holds a PENDING step for the approver."""
    return (
        select(ApprovalFlow.expense_id)
        .join(ApprovalStep, ApprovalStep.flow_id == ApprovalFlow.id)
        .where(
            ApprovalStep.approver_id == approver_id,
            ApprovalStep.status == StepStatus.PENDING,
            ApprovalFlow.is_completed.is_(False),
        )
    )


def list_flows_for_user(db: Session, user: User, status: str = "all") -> list[ApprovalFlow]:
    """Flows visible to ``user``, optionally filtered to pending/completed.

    ADMIN sees every flow of the company, MANAGER the flows they approve in
    or submitted, EMPLOYEE only flows of their own expenses.
    """
    stmt = (
        select(ApprovalFlow)
        .join(Expense, Expense.id == ApprovalFlow.expense_id)
        .where(Expense.company_id == user.company_id)
        .options(selectinload(ApprovalFlow.steps), selectinload(ApprovalFlow.expense))
    )

    if user.role == UserRole.MANAGER:
        approving = select(ApprovalStep.flow_id).where(ApprovalStep.approver_id == user.id)
        stmt = stmt.where(
            or_(ApprovalFlow.id.in_(approving), Expense.submitted_by_id == user.id)
        )
    elif user.role != UserRole.ADMIN:
        stmt = stmt.where(Expense.submitted_by_id == user.id)

    if status == "pending":
        stmt = stmt.where(ApprovalFlow.is_completed.is_(False))
    elif status == "completed":
        stmt = stmt.where(ApprovalFlow.is_completed.is_(True))
    elif status != "all":
        raise InvalidInputError(f"Unknown status filter '{status}'. Use all, pending or completed.")

    stmt = stmt.order_by(ApprovalFlow.created_at.desc())
    return list(db.execute(stmt).scalars().unique().all())
