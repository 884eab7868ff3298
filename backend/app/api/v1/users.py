"""User API endpoints."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_user, require_role
from app.db.session import get_session
from app.models.user import User, UserRole
from app.schemas.auth import ManagerAssignment, UserOut
from app.services import users as users_svc

router = APIRouter()


@router.get(
    "/me",
    response_model=UserOut,
    summary="Get current authenticated user info",
)
def get_current_user_info(
    current_user: Annotated[User, Depends(get_current_user)],
):
    return current_user


@router.put(
    "/{user_id}/manager",
    response_model=UserOut,
    summary="Assign or clear a user's manager (ADMIN only)",
)
def set_manager(
    user_id: uuid.UUID,
    body: ManagerAssignment,
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(require_role(UserRole.ADMIN))],
):
    """Reject assignments that would make the manager chain cyclic."""
    users_svc.get_user(db, user_id, company_id=current_user.company_id)
    return users_svc.assign_manager(db, user_id, body.manager_id, actor_id=current_user.id)
