"""Pydantic schemas for expense submission and listing."""
import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.expense import ExpenseStatus
from app.schemas.approval import ApprovalFlowOut


class ExpenseCreate(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=18, decimal_places=2)
    currency: str = Field(min_length=3, max_length=3)
    category: str = Field(min_length=1, max_length=100)
    description: str | None = None
    expense_date: date | None = None

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        return v.upper()


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    company_id: uuid.UUID
    submitted_by_id: uuid.UUID
    amount: Decimal
    currency: str
    converted_amount: Decimal | None
    category: str
    description: str | None
    expense_date: date | None
    status: ExpenseStatus
    created_at: datetime

    approval_flow: ApprovalFlowOut | None = None


class ExpenseListResponse(BaseModel):
    items: list[ExpenseOut]
    total: int
