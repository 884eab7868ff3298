import enum
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin, UUIDMixin


class ExpenseStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Expense(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "expenses"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True
    )
    submitted_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)  # native currency
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    converted_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(18, 2), nullable=True
    )  # company base currency; NULL when conversion failed
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    expense_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[ExpenseStatus] = mapped_column(
        SAEnum(ExpenseStatus, name="expense_status", native_enum=False, length=20),
        nullable=False,
        default=ExpenseStatus.PENDING,
        index=True,
    )

    submitted_by: Mapped["User"] = relationship("User", foreign_keys=[submitted_by_id])
    approval_flow: Mapped[Optional["ApprovalFlow"]] = relationship(
        "ApprovalFlow", back_populates="expense", uselist=False
    )

    @property
    def base_amount(self) -> Decimal:
        """Amount in company currency, falling back to the native amount."""
        return self.converted_amount if self.converted_amount is not None else self.amount
