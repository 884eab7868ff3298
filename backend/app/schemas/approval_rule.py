"""Pydantic schemas for approval rules.

Input is a discriminated union on ``rule_type`` so each variant carries
exactly the fields it needs; anything else in the payload is dropped.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.approval_rule import RuleType


# ─── Input variants ───

class _RuleBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    is_manager_first: bool = False
    min_amount: Decimal | None = Field(default=None, ge=0)
    max_amount: Decimal | None = Field(default=None, ge=0)
    is_active: bool = True

    @model_validator(mode="after")
    def _check_amount_range(self):
        if self.min_amount is not None and self.max_amount is not None and self.min_amount > self.max_amount:
            raise ValueError("min_amount must not exceed max_amount")
        return self


class PercentageRuleIn(_RuleBase):
    rule_type: Literal["PERCENTAGE"]
    percentage_threshold: Decimal = Field(gt=0, le=100)


class SpecificRuleIn(_RuleBase):
    rule_type: Literal["SPECIFIC"]
    specific_approver_id: uuid.UUID


class HybridRuleIn(_RuleBase):
    rule_type: Literal["HYBRID"]
    specific_approver_id: uuid.UUID
    percentage_threshold: Decimal | None = Field(default=None, gt=0, le=100)  # evaluated as 50 when unset


ApprovalRuleIn = Annotated[
    Union[PercentageRuleIn, SpecificRuleIn, HybridRuleIn],
    Field(discriminator="rule_type"),
]


class ApprovalRuleUpdate(BaseModel):
    """Partial update; merged with the stored rule and re-validated as ApprovalRuleIn."""

    name: str | None = None
    rule_type: RuleType | None = None
    percentage_threshold: Decimal | None = None
    specific_approver_id: uuid.UUID | None = None
    is_manager_first: bool | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    is_active: bool | None = None


# ─── Output ───

class ApprovalRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    rule_type: RuleType
    percentage_threshold: Decimal | None
    specific_approver_id: uuid.UUID | None
    is_manager_first: bool
    min_amount: Decimal | None
    max_amount: Decimal | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    flow_count: int = 0
