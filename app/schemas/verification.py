from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.schemas.document_type import DocumentTypeOut


class OtpRequest(BaseModel):
    email: EmailStr


class OtpVerify(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")


class TrackingOtpRequest(BaseModel):
    email: EmailStr
    tracking_id: str = Field(..., min_length=4, max_length=32)


class TrackingOtpVerify(TrackingOtpRequest):
    otp: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")


class DashboardVerify(BaseModel):
    """``otp`` may be omitted only when the development bypass is active."""
    email: EmailStr
    otp: str | None = Field(None, min_length=6, max_length=6, pattern=r"^\d{6}$")


class OtpSentResponse(BaseModel):
    message: str
    expires_at: datetime


class VerifiedResponse(BaseModel):
    verified: bool = True
    email: str
    message: str


class FormContext(BaseModel):
    """What the request form needs once the email is verified."""
    email: str
    verified_at: datetime | None
    document_types: list[DocumentTypeOut]

