from __future__ import annotations

from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core import clock
from app.core.database import Base

if TYPE_CHECKING:
    from app.models.document_request import DocumentRequest
    from app.models.user import User


class RequestLog(Base):
    """
    Append-only history of one document request (status changes, notes).

    document_request_id is empty for actions that span several requests
    (bulk delete) and user_id is empty for applicant/system actions.
    Rows are only ever inserted.
    """
    __tablename__ = "request_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    document_request_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("document_requests.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    user_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: clock.utcnow(),
        nullable=False,
    )

    document_request: Mapped[Optional["DocumentRequest"]] = relationship(
        "DocumentRequest",
        back_populates="logs",
    )

    user: Mapped[Optional["User"]] = relationship("User", lazy="joined")
