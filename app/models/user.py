import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core import clock
from app.core.database import Base


class UserRole(str, enum.Enum):
    SUPERADMIN = "superadmin"
    REGISTRAR = "registrar"


class User(Base):
    """
    Back-office staff account (registrar or superadmin).

    Columns:
      id             INT  : auto-increment primary key
      name           TEXT : display name shown in the UI header
      email          TEXT : unique login email
      password_hash  TEXT : bcrypt hash (plaintext never stored)
      role           ENUM : superadmin | registrar
      is_active      BOOL : False = account disabled, cannot login
      last_login_at  TS   : updated on every successful login

    Applicants never get a row here, they prove their email with an OTP.
    """
    __tablename__ = "users"

    # never copied into audit snapshots
    __audit_exclude__ = ("password_hash",)

    id:            Mapped[int]             = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
    name:          Mapped[str]             = mapped_column(String(255), nullable=False)
    email:         Mapped[str]             = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str]             = mapped_column(Text, nullable=False)
    role:          Mapped[UserRole]        = mapped_column(
        SAEnum(UserRole, name="user_role_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.REGISTRAR,
    )
    is_active:     Mapped[bool]            = mapped_column(Boolean, default=True, nullable=False, server_default="true")
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at:    Mapped[datetime]        = mapped_column(
        DateTime(timezone=True),
        default=lambda: clock.utcnow(),
        nullable=False,
    )
    updated_at:    Mapped[datetime]        = mapped_column(
        DateTime(timezone=True),
        default=lambda: clock.utcnow(),
        onupdate=lambda: clock.utcnow(),
        nullable=False,
    )

    @property
    def is_superadmin(self) -> bool:
        return self.role == UserRole.SUPERADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role} active={self.is_active}>"
