from __future__ import annotations

from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core import clock
from app.core.database import Base

if TYPE_CHECKING:
    from app.models.document_request import DocumentRequest


class DocumentType(Base):
    __tablename__ = "document_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # weekdays until the document is expected to be ready
    processing_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7, server_default="7")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

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

    requests: Mapped[List["DocumentRequest"]] = relationship(
        "DocumentRequest",
        back_populates="document_type",
    )
