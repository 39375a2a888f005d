from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from app.models.user import UserRole


# ── Request Body ──────────────────────────────────────────────────────
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    model_config = {
        "json_schema_extra": {
            "example": {
                "email": "registrar@school.edu.ph",
                "password": "YourPassword123",
            }
        }
    }


# ── Response Bodies ───────────────────────────────────────────────────
class UserInfo(BaseModel):
    """
    Safe staff info sent to the frontend after login.
    password_hash is never included here.
    """
    id: int
    name: str
    email: str
    role: UserRole

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until the token expires
    user: UserInfo


class MeResponse(BaseModel):
    """Full staff profile returned by GET /auth/me"""
    id: int
    name: str
    email: str
    role: UserRole
    is_active: bool
    last_login_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
