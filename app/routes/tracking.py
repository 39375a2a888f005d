from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.document_request_controller import find_by_tracking_id, to_detail
from app.controllers.otp_controller import send_otp, verify_otp
from app.core.database import get_db
from app.core.email_service import EmailNotifier, get_notifier
from app.models.otp_code import OtpPurpose
from app.schemas.document_request import DocumentRequestDetail, QuickTrackResponse
from app.schemas.verification import OtpSentResponse, TrackingOtpRequest, TrackingOtpVerify

router = APIRouter(prefix="/tracking", tags=["Tracking"])

_NOT_FOUND = "No request found with that tracking ID and email."


@router.post("/otp", response_model=OtpSentResponse)
async def tracking_otp(
    payload: TrackingOtpRequest,
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
):
    email = str(payload.email)
    if await find_by_tracking_id(db, payload.tracking_id, email) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)

    expires_at = await send_otp(db, notifier, email, OtpPurpose.TRACKING)
    return OtpSentResponse(message="Verification code sent to your email.", expires_at=expires_at)


@router.post("/verify", response_model=DocumentRequestDetail)
async def tracking_verify(payload: TrackingOtpVerify, db: AsyncSession = Depends(get_db)):
    email = str(payload.email)
    # a mistyped tracking id must not consume the code
    req = await find_by_tracking_id(db, payload.tracking_id, email, with_logs=True)
    if req is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)

    if not await verify_otp(db, email, payload.otp, OtpPurpose.TRACKING):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid or expired OTP.")
    return to_detail(req, req.logs)


@router.get("/{tracking_id}", response_model=QuickTrackResponse)
async def quick_track(tracking_id: str, db: AsyncSession = Depends(get_db)):
    """Status only. Anyone holding the tracking id may see it."""
    req = await find_by_tracking_id(db, tracking_id)
    if req is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tracking ID not found")
    return QuickTrackResponse(
        tracking_id=req.tracking_id,
        status=req.status,
        document_type=req.document_type.name,
        document_category=req.document_type.category,
        created_at=req.created_at,
        updated_at=req.updated_at,
    )
