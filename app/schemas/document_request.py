from datetime import date, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, EmailStr, Field, StringConstraints, model_validator

from app.models.document_request import SHS_GRADE_LEVELS, RequestStatus


NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
LRNStr = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^\d{12}$")]
SchoolYearStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=4, max_length=20)]

GradeLevelStr = Literal["Grade 7", "Grade 8", "Grade 9", "Grade 10", "Grade 11", "Grade 12"]


# ── Request Bodies ────────────────────────────────────────────────────
class DocumentRequestCreate(BaseModel):
    """Applicant form. The email must match the verified session."""
    email: EmailStr
    first_name: NameStr
    middle_name: NameStr | None = None
    last_name: NameStr
    lrn: LRNStr
    grade_level: GradeLevelStr
    section: NameStr
    track_strand: NameStr | None = None
    school_year_last_attended: SchoolYearStr
    document_type_id: int
    purpose: str = Field(..., min_length=1, max_length=1000)
    quantity: int = Field(1, ge=1, le=10)

    @model_validator(mode="after")
    def _track_strand_for_shs(self):
        if self.grade_level in SHS_GRADE_LEVELS and not self.track_strand:
            raise ValueError("track_strand is required for Grade 11 and Grade 12")
        return self


class AdminDocumentRequestCreate(DocumentRequestCreate):
    otp_verified: bool = False


class StatusUpdate(BaseModel):
    status: RequestStatus
    notes: str | None = Field(None, max_length=1000)


class NotesUpdate(BaseModel):
    admin_notes: str | None = Field(None, max_length=2000)


class BulkAction(BaseModel):
    action: Literal["delete", "status_update"]
    request_ids: list[int] = Field(..., min_length=1)
    status: RequestStatus | None = None

    @model_validator(mode="after")
    def _status_for_update(self):
        if self.action == "status_update" and self.status is None:
            raise ValueError("status is required for status_update")
        return self


# ── Response Bodies ───────────────────────────────────────────────────
class RequestLogOut(BaseModel):
    id: int
    action: str
    old_value: str | None
    new_value: str | None
    description: str | None
    user_name: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class DocumentRequestSummary(BaseModel):
    id: int
    tracking_id: str
    email: str
    first_name: str
    middle_name: str | None
    last_name: str
    lrn: str
    grade_level: str
    document_type: str | None
    document_category: str | None
    status: RequestStatus
    created_at: datetime
    updated_at: datetime


class DocumentRequestDetail(DocumentRequestSummary):
    full_name: str
    section: str
    track_strand: str | None
    school_year_last_attended: str
    purpose: str
    quantity: int
    admin_notes: str | None
    processed_by: str | None
    estimated_completion_date: date | None
    completed_at: datetime | None
    otp_verified: bool
    deleted_at: datetime | None = None
    logs: list[RequestLogOut] = []


class DocumentRequestPage(BaseModel):
    items: list[DocumentRequestSummary]
    total: int
    limit: int
    offset: int


class BulkActionResult(BaseModel):
    action: str
    count: int
    message: str


class SubmitResponse(BaseModel):
    tracking_id: str
    status: RequestStatus
    estimated_completion_date: date | None
    message: str


class QuickTrackResponse(BaseModel):
    """Public status lookup without personal details."""
    tracking_id: str
    status: RequestStatus
    document_type: str
    document_category: str
    created_at: datetime
    updated_at: datetime


class DashboardRequest(BaseModel):
    id: int
    tracking_id: str
    document_type: str
    document_category: str
    purpose: str
    quantity: int
    status: RequestStatus
    status_description: str
    estimated_completion_date: date | None
    completed_at: datetime | None
    admin_notes: str | None
    created_at: datetime
    updated_at: datetime
    activity_logs: list[RequestLogOut] = []


class DashboardResponse(BaseModel):
    email: str
    user_name: str | None
    has_requests: bool
    latest_request: DashboardRequest | None
    request_history: list[DashboardRequest]
