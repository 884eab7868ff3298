from app.models.company import Company
from app.models.user import User, UserRole, APPROVER_ROLES
from app.models.approval_rule import ApprovalRule, RuleType
from app.models.expense import Expense, ExpenseStatus
from app.models.approval import ApprovalFlow, ApprovalStep, StepStatus
from app.models.audit import AuditLog

__all__ = [
    "Company",
    "User", "UserRole", "APPROVER_ROLES",
    "ApprovalRule", "RuleType",
    "Expense", "ExpenseStatus",
    "ApprovalFlow", "ApprovalStep", "StepStatus",
    "AuditLog",
]
