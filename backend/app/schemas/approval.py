"""Pydantic schemas for approval flow API endpoints."""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.approval import StepStatus
from app.models.expense import ExpenseStatus


# ─── Flow output ───

class ApprovalStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    step_number: int
    approver_id: uuid.UUID
    status: StepStatus
    comment: str | None
    approved_at: datetime | None


class ApprovalFlowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    expense_id: uuid.UUID
    rule_id: uuid.UUID | None
    current_step: int
    is_completed: bool
    created_at: datetime
    steps: list[ApprovalStepOut] = []


class ApprovalFlowListResponse(BaseModel):
    items: list[ApprovalFlowOut]
    total: int


# ─── Decision ───

class ApprovalDecisionRequest(BaseModel):
    action: str  # APPROVED or REJECTED; checked by the decision service
    comment: str | None = Field(default=None, max_length=2000)


class DecisionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    flow_id: uuid.UUID
    expense_id: uuid.UUID
    action: StepStatus
    flow_status: ExpenseStatus
    expense_status: ExpenseStatus
    is_completed: bool
    current_step: int
