from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from fastapi import Request
from sqlalchemy import delete, func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core import clock
from app.models.audit_log import AuditAction, AuditLog
from app.models.user import User

logger = logging.getLogger(__name__)

# bookkeeping columns that change on every save and say nothing about the edit
_UNTRACKED = frozenset({"updated_at"})


# ─────────────────────────────────────────────────────────────
# Snapshots
# ─────────────────────────────────────────────────────────────

def _json_safe(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def snapshot(entity: Any) -> dict[str, Any]:
    """Column values of a mapped entity as a JSON-ready dict.

    Columns listed in the model's ``__audit_exclude__`` are left out.
    """
    excluded = set(getattr(entity, "__audit_exclude__", ()))
    state = inspect(entity)
    out: dict[str, Any] = {}
    for attr in state.mapper.column_attrs:
        if attr.key in excluded:
            continue
        out[attr.key] = _json_safe(state.dict.get(attr.key))
    return out


def diff(before: dict[str, Any], after: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return (old_values, new_values) restricted to the keys that changed."""
    old_values: dict[str, Any] = {}
    new_values: dict[str, Any] = {}
    for key, new in after.items():
        if key in _UNTRACKED:
            continue
        old = before.get(key)
        if old != new:
            old_values[key] = old
            new_values[key] = new
    return old_values, new_values


# ─────────────────────────────────────────────────────────────
# Ambient request context
# ─────────────────────────────────────────────────────────────

@dataclass
class RequestContext:
    actor: Optional[User] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request, actor: Optional[User] = None) -> "RequestContext":
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
        else:
            ip = request.client.host if request.client else None
        return cls(actor=actor, ip_address=ip, user_agent=request.headers.get("user-agent"))


_UNSET: Any = object()


# ─────────────────────────────────────────────────────────────
# Recorder
# ─────────────────────────────────────────────────────────────

class AuditRecorder:
    """
    Writes AuditLog rows for entity create/update/delete and staff auth events.

    Entries go through a session of their own, opened after the business
    change has been committed. A failing audit write is logged and dropped,
    it never reaches the caller.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        context: Optional[RequestContext] = None,
    ):
        self.session_factory = session_factory
        self.context = context or RequestContext()

    async def record(
        self,
        action: AuditAction | str,
        description: str,
        subject: Any = None,
        old_values: Optional[dict[str, Any]] = None,
        new_values: Optional[dict[str, Any]] = None,
        actor: Optional[User] = _UNSET,
    ) -> Optional[AuditLog]:
        if actor is _UNSET:
            actor = self.context.actor

        entry = AuditLog(
            user_id=actor.id if actor else None,
            user_role=actor.role.value if actor else "system",
            action=action.value if isinstance(action, AuditAction) else str(action),
            subject_type=type(subject).__name__ if subject is not None else None,
            subject_id=getattr(subject, "id", None) if subject is not None else None,
            description=description,
            old_values=old_values,
            new_values=new_values,
            ip_address=self.context.ip_address,
            user_agent=self.context.user_agent,
        )

        try:
            async with self.session_factory() as session:
                session.add(entry)
                await session.commit()
        except Exception:
            logger.exception(
                "Failed to write audit entry",
                extra={"audit_action": entry.action, "subject_type": entry.subject_type},
            )
            return None
        return entry

    async def record_create(self, entity: Any) -> Optional[AuditLog]:
        return await self.record(
            AuditAction.CREATE,
            f"{type(entity).__name__} created",
            entity,
            None,
            snapshot(entity),
        )

    async def record_update(self, entity: Any, before: dict[str, Any]) -> Optional[AuditLog]:
        old_values, new_values = diff(before, snapshot(entity))
        if not new_values:
            return None
        return await self.record(
            AuditAction.UPDATE,
            f"{type(entity).__name__} updated",
            entity,
            old_values,
            new_values,
        )

    async def record_delete(self, entity: Any, before: Optional[dict[str, Any]] = None) -> Optional[AuditLog]:
        return await self.record(
            AuditAction.DELETE,
            f"{type(entity).__name__} deleted",
            entity,
            before if before is not None else snapshot(entity),
            None,
        )

    async def record_login(self, user: User) -> Optional[AuditLog]:
        return await self.record(AuditAction.LOGIN, f"User {user.email} logged in", user, actor=user)

    async def record_logout(self, user: User) -> Optional[AuditLog]:
        return await self.record(AuditAction.LOGOUT, f"User {user.email} logged out", user, actor=user)

    async def record_login_failed(self, email: str, user: Optional[User] = None) -> Optional[AuditLog]:
        # user is only known when the account exists but the password was wrong
        return await self.record(
            AuditAction.LOGIN_FAILED,
            f"Failed login attempt for {email or 'unknown'}",
            user,
            actor=None,
        )


# ─────────────────────────────────────────────────────────────
# Back-office queries
# ─────────────────────────────────────────────────────────────

async def list_audit_logs(
    db: AsyncSession,
    action: Optional[str] = None,
    subject_type: Optional[str] = None,
    subject_id: Optional[int] = None,
    user_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[AuditLog], int]:
    stmt = select(AuditLog)
    if action:
        stmt = stmt.where(AuditLog.action == action.upper())
    if subject_type:
        stmt = stmt.where(AuditLog.subject_type == subject_type)
    if subject_id is not None:
        stmt = stmt.where(AuditLog.subject_id == subject_id)
    if user_id is not None:
        stmt = stmt.where(AuditLog.user_id == user_id)

    total = await db.scalar(select(func.count()).select_from(stmt.subquery()))
    rows = await db.execute(
        stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).offset(offset)
    )
    return list(rows.scalars().all()), int(total or 0)


async def prune_audit_logs(db: AsyncSession, days: int) -> int:
    """Delete audit entries older than ``days``. Used by the retention script."""
    cutoff = clock.utcnow() - timedelta(days=days)
    result = await db.execute(delete(AuditLog).where(AuditLog.created_at < cutoff))
    await db.commit()
    logger.info("Pruned %s audit logs older than %s days", result.rowcount, days)
    return result.rowcount or 0
