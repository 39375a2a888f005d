from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.document_request_controller import create_request
from app.controllers.document_type_controller import list_active_document_types
from app.controllers.otp_controller import send_otp, verify_otp
from app.core.database import get_db
from app.core.dependencies import (
    get_audit_recorder,
    get_dashboard_gate,
    get_request_gate,
    require_request_gate,
)
from app.core.email_service import EmailNotifier, get_notifier
from app.models.otp_code import OtpPurpose
from app.schemas.document_request import DocumentRequestCreate, SubmitResponse
from app.schemas.document_type import DocumentTypeOut
from app.schemas.verification import FormContext, OtpRequest, OtpSentResponse, OtpVerify, VerifiedResponse
from app.services.audit_recorder import AuditRecorder
from app.services.verification_gate import VerificationGate

router = APIRouter(prefix="/requests", tags=["Document Requests"])


@router.post("/otp", response_model=OtpSentResponse)
async def request_form_otp(
    payload: OtpRequest,
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
):
    expires_at = await send_otp(db, notifier, str(payload.email), OtpPurpose.REQUEST)
    return OtpSentResponse(message="Verification code sent to your email.", expires_at=expires_at)


@router.post("/verify-otp", response_model=VerifiedResponse)
async def verify_form_otp(
    payload: OtpVerify,
    db: AsyncSession = Depends(get_db),
    gate: VerificationGate = Depends(get_request_gate),
):
    email = str(payload.email)
    if not await verify_otp(db, email, payload.otp, OtpPurpose.REQUEST):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid or expired OTP.")

    gate.mark_verified(email)
    return VerifiedResponse(email=email, message="Email verified. You can now fill out the request form.")


@router.get("/form", response_model=FormContext)
async def request_form(
    db: AsyncSession = Depends(get_db),
    gate: VerificationGate = Depends(require_request_gate),
):
    return FormContext(
        email=gate.verified_email,
        verified_at=gate.verified_at,
        document_types=[DocumentTypeOut.model_validate(t) for t in await list_active_document_types(db)],
    )


@router.post("", response_model=SubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_request(
    payload: DocumentRequestCreate,
    db: AsyncSession = Depends(get_db),
    gate: VerificationGate = Depends(require_request_gate),
    dashboard_gate: VerificationGate = Depends(get_dashboard_gate),
    audit: AuditRecorder = Depends(get_audit_recorder),
    notifier: EmailNotifier = Depends(get_notifier),
):
    """
    Submit the request form. The session must hold a live verification for
    exactly the email in the form.
    """
    if str(payload.email) != gate.verified_email:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The email does not match your verified email.",
        )

    req = await create_request(db, payload, audit=audit, notifier=notifier)

    # one submission per verification; the applicant lands on their dashboard
    gate.clear()
    dashboard_gate.mark_verified(req.email)

    return SubmitResponse(
        tracking_id=req.tracking_id,
        status=req.status,
        estimated_completion_date=req.estimated_completion_date,
        message="Your request has been submitted successfully.",
    )
