import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import hash_password
from app.models.audit_log import AuditAction
from app.models.user import User, UserRole
from app.schemas.user import UserCreate, UserUpdate
from app.services.audit_recorder import AuditRecorder, snapshot

logger = logging.getLogger(__name__)


async def _email_taken(db: AsyncSession, email: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(User.id).where(User.email == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def list_users(
    db: AsyncSession,
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
) -> list[User]:
    stmt = select(User)
    if search and search.strip():
        like = f"%{search.strip()}%"
        stmt = stmt.where(or_(User.name.ilike(like), User.email.ilike(like)))
    if role is not None:
        stmt = stmt.where(User.role == role)
    res = await db.execute(stmt.order_by(User.created_at.desc(), User.id.desc()))
    return list(res.scalars().all())


async def _active_superadmins(db: AsyncSession) -> int:
    return int(
        await db.scalar(
            select(func.count(User.id)).where(User.role == UserRole.SUPERADMIN).where(User.is_active.is_(True))
        )
        or 0
    )


async def create_user(db: AsyncSession, payload: UserCreate, audit: AuditRecorder) -> User:
    if await _email_taken(db, payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A user with this email already exists")

    user = User(
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=payload.role,
        is_active=payload.is_active,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("Staff user created", extra={"user_id": user.id})
    await audit.record_create(user)
    return user


async def update_user(db: AsyncSession, user: User, payload: UserUpdate, actor: User, audit: AuditRecorder) -> User:
    data = payload.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in data and await _email_taken(db, data["email"], exclude_id=user.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A user with this email already exists")

    if (
        data.get("role") == UserRole.REGISTRAR
        and user.is_superadmin
        and (user.id == actor.id or await _active_superadmins(db) <= 1)
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot demote yourself or the last active superadmin.",
        )

    before = snapshot(user)
    for key, value in data.items():
        setattr(user, key, value)
    await db.commit()
    await db.refresh(user)

    await audit.record_update(user, before)
    return user


async def set_user_active(db: AsyncSession, user: User, is_active: bool, actor: User, audit: AuditRecorder) -> User:
    if not is_active and user.id == actor.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot suspend your own account.")

    before = snapshot(user)
    user.is_active = is_active
    await db.commit()
    await db.refresh(user)

    await audit.record_update(user, before)
    return user


async def reset_password(db: AsyncSession, user: User, password: str, audit: AuditRecorder) -> None:
    # password_hash is excluded from snapshots, so the diff alone would be empty
    user.password_hash = hash_password(password)
    await db.commit()
    await audit.record(AuditAction.UPDATE, f"Password reset for {user.email}", user)


async def delete_user(db: AsyncSession, user: User, actor: User, audit: AuditRecorder) -> None:
    if user.id == actor.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account.")

    before = snapshot(user)
    await db.delete(user)
    await db.commit()

    logger.info("Staff user deleted", extra={"user_id": before["id"]})
    await audit.record_delete(user, before)
