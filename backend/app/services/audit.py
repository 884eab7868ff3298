"""Append-only audit trail for approval activity.

Entries are flushed, never committed here: they land in the same
transaction as the state change they describe.
"""
import json
import logging
import uuid
from typing import Any

from sqlalchemy.orm import Session

from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


def _dump(state: Any | None) -> str | None:
    return json.dumps(state, default=str) if state is not None else None


def _as_uuid(value: uuid.UUID | str | None) -> uuid.UUID | None:
    return uuid.UUID(str(value)) if value else None


def log(
    db: Session,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str | None = None,
    actor_id: uuid.UUID | str | None = None,
    before: Any | None = None,
    after: Any | None = None,
    notes: str | None = None,
) -> AuditLog:
    """Record one state transition.

    Args:
        action: Short verb, e.g. 'approval_flow_created', 'expense_approved'.
        entity_type: Domain name of the affected row, e.g. 'expense', 'approval_step'.
        actor_id: User who acted; None for system-driven transitions.
        before / after: JSON-serialisable snapshots.
    """
    entry = AuditLog(
        actor_id=_as_uuid(actor_id),
        action=action,
        entity_type=entity_type,
        entity_id=_as_uuid(entity_id),
        before_state=_dump(before),
        after_state=_dump(after),
        notes=notes,
    )
    db.add(entry)
    db.flush()
    logger.debug("Audit: %s %s/%s", action, entity_type, entity_id)
    return entry
