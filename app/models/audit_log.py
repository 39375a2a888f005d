import enum
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core import clock
from app.core.database import Base


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    LOGIN_FAILED = "LOGIN_FAILED"


class AuditLog(Base):
    """
    Append-only record of who changed what, or who tried to sign in.

    user_id and subject_id are plain integers on purpose: entries outlive the
    staff account and the subject row they point at. user_role is copied at
    write time so a later role change does not rewrite history.
    """
    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("ix_audit_logs_subject", "subject_type", "subject_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    user_role: Mapped[str] = mapped_column(String(30), nullable=False, default="system")

    # AuditAction value, kept as plain text so new actions need no migration
    action: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    subject_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    subject_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    description: Mapped[str] = mapped_column(Text, nullable=False)

    old_values: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    new_values: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: clock.utcnow(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.subject_type}#{self.subject_id} by {self.user_id}>"
