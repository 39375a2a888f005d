from __future__ import annotations

import enum
from datetime import date, datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core import clock
from app.core.database import Base

if TYPE_CHECKING:
    from app.models.document_type import DocumentType
    from app.models.request_log import RequestLog
    from app.models.user import User


# --------------------------------------------------
# ENUM
# --------------------------------------------------

class RequestStatus(str, enum.Enum):
    PENDING = "Pending"
    VERIFIED = "Verified"
    PROCESSING = "Processing"
    READY = "Ready"
    COMPLETED = "Completed"
    REJECTED = "Rejected"


SHS_GRADE_LEVELS = ("Grade 11", "Grade 12")


# --------------------------------------------------
# MODEL
# --------------------------------------------------

class DocumentRequest(Base):
    __tablename__ = "document_requests"

    __table_args__ = (
        UniqueConstraint("tracking_id", name="uq_document_requests_tracking_id"),
        Index("ix_document_requests_email_type_status", "email", "document_type_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # public, shareable identifier, never changes after creation
    tracking_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    # --------------------------------------------------
    # APPLICANT
    # --------------------------------------------------

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    middle_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    lrn: Mapped[str] = mapped_column(String(12), nullable=False, index=True)
    grade_level: Mapped[str] = mapped_column(String(20), nullable=False)
    section: Mapped[str] = mapped_column(String(255), nullable=False)
    track_strand: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    school_year_last_attended: Mapped[str] = mapped_column(String(20), nullable=False)

    # --------------------------------------------------
    # REQUEST
    # --------------------------------------------------

    document_type_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("document_types.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")

    status: Mapped[RequestStatus] = mapped_column(
        SAEnum(RequestStatus, name="request_status_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=RequestStatus.PENDING,
        index=True,
    )

    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    processed_by: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    estimated_completion_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # set once, the first time the request reaches Completed
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    otp_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: clock.utcnow(),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: clock.utcnow(),
        onupdate=lambda: clock.utcnow(),
        nullable=False,
    )

    # soft delete marker
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    # --------------------------------------------------
    # RELATIONSHIPS
    # --------------------------------------------------

    document_type: Mapped["DocumentType"] = relationship(
        "DocumentType",
        back_populates="requests",
        lazy="joined",
    )

    processor: Mapped[Optional["User"]] = relationship(
        "User",
        foreign_keys=[processed_by],
        lazy="joined",
    )

    logs: Mapped[List["RequestLog"]] = relationship(
        "RequestLog",
        back_populates="document_request",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="RequestLog.id",
    )

    @property
    def full_name(self) -> str:
        parts = [self.first_name]
        if self.middle_name:
            parts.append(self.middle_name[0].upper() + ".")
        parts.append(self.last_name)
        return " ".join(p for p in parts if p)
