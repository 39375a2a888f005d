import enum
import logging
import secrets
from datetime import datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.config import settings
from app.core.email_service import EmailNotifier
from app.core.security import hash_otp
from app.models.otp_code import OtpCode, OtpPurpose

logger = logging.getLogger(__name__)

OTP_LENGTH = 6


class OtpFailure(str, enum.Enum):
    """Why a verify failed. Logged only, callers just see False."""
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


async def issue_otp(
    db: AsyncSession,
    email: str,
    purpose: OtpPurpose = OtpPurpose.REQUEST,
) -> tuple[str, datetime]:
    """
    Create a fresh code for (email, purpose) and return it with its expiry.

    Every earlier unused code for the pair is marked used first, so only the
    newest one can ever verify.
    """
    now = clock.utcnow()

    await db.execute(
        update(OtpCode)
        .where(OtpCode.email == email)
        .where(OtpCode.purpose == purpose)
        .where(OtpCode.used.is_(False))
        .values(used=True, updated_at=now)
    )

    code = generate_code()
    expires_at = now + timedelta(minutes=settings.OTP_TTL_MINUTES)
    db.add(
        OtpCode(
            email=email,
            code_hash=hash_otp(code),
            purpose=purpose,
            expires_at=expires_at,
            used=False,
        )
    )
    await db.commit()

    logger.info("OTP issued", extra={"otp_purpose": purpose.value})
    return code, expires_at


async def _failure_reason(db: AsyncSession, email: str, code_hash: str, purpose: OtpPurpose) -> OtpFailure:
    res = await db.execute(
        select(OtpCode.used, OtpCode.expires_at)
        .where(OtpCode.email == email)
        .where(OtpCode.purpose == purpose)
        .where(OtpCode.code_hash == code_hash)
        .order_by(OtpCode.id.desc())
        .limit(1)
    )
    row = res.first()
    if row is None:
        return OtpFailure.NOT_FOUND
    if row.used:
        return OtpFailure.ALREADY_USED
    return OtpFailure.EXPIRED


async def verify_otp(
    db: AsyncSession,
    email: str,
    code: str,
    purpose: OtpPurpose = OtpPurpose.REQUEST,
) -> bool:
    """
    Consume a code. True exactly once per issued code.

    Check and consume happen in one conditional UPDATE, so two concurrent
    verifies of the same code cannot both see an affected row.
    """
    code_hash = hash_otp(code.strip())
    now = clock.utcnow()

    result = await db.execute(
        update(OtpCode)
        .where(OtpCode.email == email)
        .where(OtpCode.purpose == purpose)
        .where(OtpCode.code_hash == code_hash)
        .where(OtpCode.used.is_(False))
        .where(OtpCode.expires_at > now)
        .values(used=True, updated_at=now)
    )
    await db.commit()

    if result.rowcount == 1:
        logger.info("OTP verified", extra={"otp_purpose": purpose.value})
        return True

    reason = await _failure_reason(db, email, code_hash, purpose)
    logger.warning("OTP verification failed: %s", reason.value, extra={"otp_purpose": purpose.value})
    return False


async def send_otp(
    db: AsyncSession,
    notifier: EmailNotifier,
    email: str,
    purpose: OtpPurpose = OtpPurpose.REQUEST,
) -> datetime:
    """Issue a code and email it. Returns the expiry."""
    code, expires_at = await issue_otp(db, email, purpose)

    sent = await notifier.dispatch(
        email,
        "otp",
        {"code": code, "purpose": purpose.value, "ttl_minutes": settings.OTP_TTL_MINUTES},
    )
    if not sent:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to send OTP. Please try again.",
        )
    return expires_at
