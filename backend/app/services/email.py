"""Approver notifications: console mock (MAIL_ENABLED=False).

When MAIL_ENABLED is False the message is written to the log instead of
being sent. Set MAIL_ENABLED=True once an SMTP transport is wired.
"""
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def _format_amount(expense) -> str:
    amount = getattr(expense, "amount", None)
    currency = getattr(expense, "currency", "") or ""
    return f"{currency} {float(amount):,.2f}".strip() if amount is not None else "N/A"


# ─── Approval request ───

def send_approval_request_email(step, expense, approver=None) -> None:
    """Tell an approver that a step of ``expense`` now awaits their decision.

    Args:
        step: ApprovalStep ORM object (approver_id, step_number).
        expense: Expense ORM object (id, category, amount, currency).
        approver: Optional User; only used for the recipient address.
    """
    recipient = getattr(approver, "email", None) or f"user:{step.approver_id}"
    category = getattr(expense, "category", None) or "Expense"
    amount_str = _format_amount(expense)

    if not settings.MAIL_ENABLED:
        logger.info(
            "\n"
            "=== APPROVAL REQUEST ===\n"
            "From: %s\n"
            "To: %s\n"
            "Subject: Action Required: %s expense %s (step %s)\n"
            "Expense: %s\n"
            "========================",
            settings.MAIL_FROM,
            recipient,
            category,
            amount_str,
            step.step_number,
            expense.id,
        )
        return

    logger.warning(
        "MAIL_ENABLED=True but SMTP transport is not configured. "
        "Falling back to console log for expense %s.",
        expense.id,
    )
    logger.info(
        "APPROVAL EMAIL (unsent): expense=%s to=%s amount=%s step=%s",
        expense.id, recipient, amount_str, step.step_number,
    )


# ─── Final decision ───

def send_expense_decision_email(expense, status: str) -> None:
    """Tell the submitter their expense reached a terminal status."""
    if not settings.MAIL_ENABLED:
        logger.info(
            "EXPENSE DECISION: expense=%s submitter=%s status=%s amount=%s",
            expense.id, expense.submitted_by_id, status, _format_amount(expense),
        )
        return

    logger.warning(
        "MAIL_ENABLED=True but SMTP transport is not configured. "
        "Decision for expense %s (%s) not sent.",
        expense.id, status,
    )
