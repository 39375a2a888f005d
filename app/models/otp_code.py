import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core import clock
from app.core.database import Base


class OtpPurpose(str, enum.Enum):
    REQUEST = "request"        # submitting a new document request
    TRACKING = "tracking"      # viewing one request by tracking id
    DASHBOARD = "dashboard"    # listing every request for the email


class OtpCode(Base):
    __tablename__ = "otp_codes"

    __table_args__ = (
        Index("ix_otp_codes_lookup", "email", "purpose", "used"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # sha256 of the 6-digit code, the code itself only goes out by email
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    purpose: Mapped[OtpPurpose] = mapped_column(
        SAEnum(OtpPurpose, name="otp_purpose_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OtpPurpose.REQUEST,
    )

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: clock.utcnow(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: clock.utcnow(),
        onupdate=lambda: clock.utcnow(),
        nullable=False,
    )
