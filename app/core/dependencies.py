from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select

from app.core.database import get_db, get_session_factory
from app.core.security import decode_access_token
from app.models.user import User, UserRole
from app.services.audit_recorder import AuditRecorder, RequestContext
from app.services.verification_gate import GateStatus, VerificationGate

bearer = HTTPBearer(auto_error=False)

REQUEST_SCOPE = "request"
DASHBOARD_SCOPE = "dashboard"


def _not_authenticated_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing token",
        headers={"WWW-Authenticate": "Bearer"},
    )


# ── Staff ─────────────────────────────────────────────────────────────

async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    not_authenticated = _not_authenticated_exception()

    if not credentials:
        raise not_authenticated

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = int(payload["sub"])

        if payload.get("type") != "access":
            raise not_authenticated

    except (JWTError, KeyError, ValueError):
        raise not_authenticated

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise not_authenticated

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This account has been deactivated",
        )

    return user


def require_roles(*roles: UserRole) -> Callable:
    """Role guard. The role is read from the DB row, never trusted from the token."""

    async def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return user

    return _guard


require_staff = require_roles(UserRole.SUPERADMIN, UserRole.REGISTRAR)
require_superadmin = require_roles(UserRole.SUPERADMIN)


# ── Audit ─────────────────────────────────────────────────────────────

def get_request_context(request: Request) -> RequestContext:
    return RequestContext.from_request(request)


def get_audit_recorder(
    context: RequestContext = Depends(get_request_context),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AuditRecorder:
    """Recorder without an actor: applicant actions and failed logins."""
    return AuditRecorder(session_factory, context)


def get_staff_audit_recorder(
    user: User = Depends(require_staff),
    context: RequestContext = Depends(get_request_context),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AuditRecorder:
    context.actor = user
    return AuditRecorder(session_factory, context)


# ── Applicant verification gates ──────────────────────────────────────

def get_request_gate(request: Request) -> VerificationGate:
    return VerificationGate(request.session, REQUEST_SCOPE)


def get_dashboard_gate(request: Request) -> VerificationGate:
    return VerificationGate(request.session, DASHBOARD_SCOPE)


def _require_verified(gate: VerificationGate) -> VerificationGate:
    result = gate.check()
    if result == GateStatus.EXPIRED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your email verification has expired. Please verify again.",
        )
    if result != GateStatus.VERIFIED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Please verify your email first.",
        )
    return gate


def require_request_gate(gate: VerificationGate = Depends(get_request_gate)) -> VerificationGate:
    return _require_verified(gate)


def require_dashboard_gate(gate: VerificationGate = Depends(get_dashboard_gate)) -> VerificationGate:
    return _require_verified(gate)
