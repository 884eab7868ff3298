from fastapi import APIRouter

from app.api.v1 import approval_flows, approval_rules, auth, expenses, users

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(expenses.router, prefix="/expenses", tags=["expenses"])
api_router.include_router(approval_flows.router, prefix="/approval-flows", tags=["approval-flows"])
api_router.include_router(approval_rules.router, prefix="/approval-rules", tags=["approval-rules"])
