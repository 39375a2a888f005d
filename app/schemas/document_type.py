from datetime import datetime

from pydantic import BaseModel, Field


class DocumentTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    processing_days: int = Field(7, ge=1, le=30)
    is_active: bool = True


class DocumentTypeUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    category: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    processing_days: int | None = Field(None, ge=1, le=30)
    is_active: bool | None = None


class DocumentTypeOut(BaseModel):
    id: int
    name: str
    category: str
    description: str | None
    processing_days: int
    is_active: bool

    model_config = {"from_attributes": True}


class DocumentTypeAdminOut(DocumentTypeOut):
    requests_count: int = 0
    created_at: datetime
    updated_at: datetime
