from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.auth_controller import get_me, login, logout
from app.core.database import get_db
from app.core.dependencies import get_audit_recorder, get_current_user, get_staff_audit_recorder
from app.models.user import User
from app.schemas.auth import LoginRequest, LoginResponse, MeResponse
from app.services.audit_recorder import AuditRecorder

router = APIRouter(prefix="/auth", tags=["Staff Auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Staff Login",
    description="""
Authenticate a registrar or superadmin with email + password.
Returns a JWT Bearer token to use in all back-office requests.

**How to use the token:**
Add to request headers: `Authorization: Bearer <your_token>`
    """,
)
async def staff_login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
) -> LoginResponse:
    return await login(payload, db, audit)


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Get Current Staff User",
    description="Returns the authenticated user's profile. Requires Bearer token in header.",
)
async def me(
    current_user: User = Depends(get_current_user),
) -> MeResponse:
    return await get_me(current_user)


@router.post(
    "/logout",
    summary="Logout",
    description="""
JWT tokens are stateless, the server has no session to destroy.
The logout is recorded in the audit log; the frontend deletes its token.
    """,
)
async def staff_logout(
    current_user: User = Depends(get_current_user),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
) -> dict:
    return await logout(current_user, audit)
