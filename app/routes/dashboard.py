import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.document_request_controller import (
    email_has_requests,
    list_requests_for_email,
    to_dashboard_item,
)
from app.controllers.otp_controller import send_otp, verify_otp
from app.core.config import settings
from app.core.database import get_db
from app.core.dependencies import get_dashboard_gate, require_dashboard_gate
from app.core.email_service import EmailNotifier, get_notifier
from app.models.otp_code import OtpPurpose
from app.schemas.document_request import DashboardResponse
from app.schemas.verification import DashboardVerify, OtpRequest, OtpSentResponse, VerifiedResponse
from app.services.verification_gate import VerificationGate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["Applicant Dashboard"])

_NO_REQUESTS = "No requests found for this email address."


@router.post("/otp", response_model=OtpSentResponse)
async def dashboard_otp(
    payload: OtpRequest,
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
):
    email = str(payload.email)
    if not await email_has_requests(db, email):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NO_REQUESTS)

    expires_at = await send_otp(db, notifier, email, OtpPurpose.DASHBOARD)
    return OtpSentResponse(message="Verification code sent to your email.", expires_at=expires_at)


@router.post("/verify-otp", response_model=VerifiedResponse)
async def dashboard_verify(
    payload: DashboardVerify,
    db: AsyncSession = Depends(get_db),
    gate: VerificationGate = Depends(get_dashboard_gate),
):
    email = str(payload.email)

    if payload.otp is None:
        if not settings.otp_bypass_active:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="OTP is required.")
        if not await email_has_requests(db, email):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NO_REQUESTS)
        logger.warning("Dashboard OTP bypassed (development mode)")
    elif not await verify_otp(db, email, payload.otp, OtpPurpose.DASHBOARD):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid or expired OTP.")

    gate.mark_verified(email)
    return VerifiedResponse(email=email, message="Email verified.")


@router.get("", response_model=DashboardResponse)
async def dashboard(
    db: AsyncSession = Depends(get_db),
    gate: VerificationGate = Depends(require_dashboard_gate),
):
    email = gate.verified_email
    requests = await list_requests_for_email(db, email)
    items = [to_dashboard_item(r) for r in requests]
    return DashboardResponse(
        email=email,
        user_name=requests[0].full_name if requests else None,
        has_requests=bool(items),
        latest_request=items[0] if items else None,
        request_history=items,
    )


@router.post("/logout")
async def dashboard_logout(gate: VerificationGate = Depends(get_dashboard_gate)):
    gate.clear()
    return {"detail": "Signed out of the dashboard."}
