import uuid

from pydantic import BaseModel, ConfigDict

from app.models.user import UserRole


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    company_id: uuid.UUID
    email: str
    name: str
    role: UserRole
    manager_id: uuid.UUID | None
    is_active: bool


class ManagerAssignment(BaseModel):
    """``manager_id`` null detaches the user from their manager."""

    manager_id: uuid.UUID | None = None
