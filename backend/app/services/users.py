"""User directory lookups and reporting-line maintenance."""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidInputError, NotFoundError
from app.models.user import User
from app.services import audit as audit_svc

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: uuid.UUID, company_id: uuid.UUID | None = None) -> User:
    """Load a user, optionally scoped to a company; NotFoundError otherwise."""
    stmt = select(User).where(User.id == user_id)
    if company_id is not None:
        stmt = stmt.where(User.company_id == company_id)
    user = db.execute(stmt).scalars().first()
    if user is None:
        raise NotFoundError(f"User {user_id} not found.")
    return user


def get_direct_report_ids(db: Session, manager_id: uuid.UUID) -> list[uuid.UUID]:
    return list(db.execute(select(User.id).where(User.manager_id == manager_id)).scalars().all())


def _would_create_cycle(db: Session, user_id: uuid.UUID, manager_id: uuid.UUID) -> bool:
    """True if ``user_id`` already sits above ``manager_id`` in the reporting chain."""
    seen: set[uuid.UUID] = set()
    current: uuid.UUID | None = manager_id
    while current is not None:
        if current == user_id:
            return True
        if current in seen:
            # pre-existing cycle that does not involve user_id
            logger.warning("Reporting chain above user %s already contains a cycle at %s", manager_id, current)
            return True
        seen.add(current)
        current = db.execute(select(User.manager_id).where(User.id == current)).scalar_one_or_none()
    return False


def assign_manager(
    db: Session,
    user_id: uuid.UUID,
    manager_id: uuid.UUID | None,
    actor_id: uuid.UUID | None = None,
) -> User:
    """Set (or clear) a user's manager, keeping the reporting lines a forest.

    Raises:
        NotFoundError: user or manager missing.
        InvalidInputError: self-management, cross-company manager, or a cycle.
    """
    user = get_user(db, user_id)
    before = {"manager_id": str(user.manager_id) if user.manager_id else None}

    if manager_id is not None:
        if manager_id == user.id:
            raise InvalidInputError("A user cannot be their own manager.")
        manager = get_user(db, manager_id)
        if manager.company_id != user.company_id:
            raise InvalidInputError("Manager must belong to the same company.")
        if _would_create_cycle(db, user.id, manager.id):
            raise InvalidInputError(
                f"Assigning {manager.id} as manager of {user.id} would create a reporting cycle."
            )

    try:
        user.manager_id = manager_id
        db.flush()
        audit_svc.log(
            db=db,
            action="user_manager_assigned",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor_id,
            before=before,
            after={"manager_id": str(manager_id) if manager_id else None},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("assign_manager: user=%s manager=%s", user.id, manager_id)
    return user
