import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.config import settings
from app.core.security import create_access_token, verify_password
from app.models.user import User
from app.schemas.auth import LoginRequest, LoginResponse, MeResponse, UserInfo
from app.services.audit_recorder import AuditRecorder

logger = logging.getLogger(__name__)


async def login(payload: LoginRequest, db: AsyncSession, audit: AuditRecorder) -> LoginResponse:
    """
    Staff login. All business logic lives here, not in the route.

    Security measures:
    ─────────────────
    1. verify_password always runs a bcrypt check, even when the email is
       unknown, so response time does not reveal which emails exist.

    2. Wrong email and wrong password return the same error.

    3. is_active is checked AFTER the password check.

    4. Every failure is written to the audit log as LOGIN_FAILED, every
       success as LOGIN.
    """
    result = await db.execute(select(User).where(User.email == payload.email))
    user = result.scalar_one_or_none()

    password_ok = verify_password(payload.password, user.password_hash if user else None)

    if not user or not password_ok:
        logger.warning("Failed staff login", extra={"login_email": payload.email})
        await audit.record_login_failed(payload.email, user)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not user.is_active:
        await audit.record_login_failed(payload.email, user)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated. Contact the superadmin.",
        )

    user.last_login_at = clock.utcnow()
    await db.commit()

    await audit.record_login(user)

    token = create_access_token(user.id, user.email, user.role.value)
    return LoginResponse(
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserInfo.model_validate(user),
    )


async def logout(user: User, audit: AuditRecorder) -> dict:
    # tokens are stateless, the client drops it; we only record the event
    await audit.record_logout(user)
    return {"detail": "Logged out. Delete your token on the client side."}


async def get_me(user: User) -> MeResponse:
    """Current staff profile. No DB call needed, the dependency already loaded it."""
    return MeResponse.model_validate(user)
