"""Approval flow listing."""
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_user
from app.db.session import get_session
from app.models.user import User
from app.schemas.approval import ApprovalFlowListResponse, ApprovalFlowOut
from app.services.approval_flow import list_flows_for_user

router = APIRouter()


@router.get(
    "",
    response_model=ApprovalFlowListResponse,
    summary="List approval flows visible to the current user",
)
def list_approval_flows(
    db: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
    status: Literal["all", "pending", "completed"] = Query("all"),
):
    flows = list_flows_for_user(db, current_user, status=status)
    return ApprovalFlowListResponse(
        items=[ApprovalFlowOut.model_validate(f) for f in flows], total=len(flows)
    )
