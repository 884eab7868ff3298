import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin, UUIDMixin


class StepStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ApprovalFlow(Base, UUIDMixin, TimestampMixin):
    """Per-expense approval workflow instance (at most one per expense)."""

    __tablename__ = "approval_flows"

    expense_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("expenses.id"), nullable=False, unique=True
    )
    rule_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("approval_rules.id"), nullable=True, index=True
    )  # NULL = default sequential manager flow
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    expense: Mapped["Expense"] = relationship("Expense", back_populates="approval_flow")
    rule: Mapped[Optional["ApprovalRule"]] = relationship("ApprovalRule")
    steps: Mapped[list["ApprovalStep"]] = relationship(
        "ApprovalStep",
        back_populates="flow",
        cascade="all, delete-orphan",
        order_by=lambda: [ApprovalStep.step_number, ApprovalStep.created_at],
    )

    __mapper_args__ = {"version_id_col": version}


class ApprovalStep(Base, UUIDMixin, TimestampMixin):
    """One approver's slot in a flow; steps sharing step_number form a parallel cohort."""

    __tablename__ = "approval_steps"

    flow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("approval_flows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    approver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    status: Mapped[StepStatus] = mapped_column(
        SAEnum(StepStatus, name="approval_step_status", native_enum=False, length=20),
        nullable=False,
        default=StepStatus.PENDING,
    )
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    flow: Mapped["ApprovalFlow"] = relationship("ApprovalFlow", back_populates="steps")
    approver: Mapped["User"] = relationship("User")
