"""Company approval rules, selected per expense by amount range."""
import enum
import uuid
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Numeric, String, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, UUIDMixin


class RuleType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    SPECIFIC = "SPECIFIC"
    HYBRID = "HYBRID"


class ApprovalRule(Base, UUIDMixin, TimestampMixin):
    """Who must approve an expense whose amount falls in [min_amount, max_amount].

    Only the columns required by ``rule_type`` are populated; the write
    routines in ``services.approval_rules`` null the rest.
    """

    __tablename__ = "approval_rules"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    rule_type: Mapped[RuleType] = mapped_column(
        SAEnum(RuleType, name="approval_rule_type", native_enum=False, length=20),
        nullable=False,
    )
    percentage_threshold: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    specific_approver_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    is_manager_first: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    min_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
