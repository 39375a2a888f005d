from __future__ import annotations

import logging
import secrets
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional

from fastapi import HTTPException, status
from sqlalchemy import delete, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core import clock
from app.core.config import settings
from app.core.email_service import EmailNotifier
from app.models.document_request import DocumentRequest, RequestStatus
from app.models.document_type import DocumentType
from app.models.request_log import RequestLog
from app.models.user import User
from app.schemas.document_request import DocumentRequestCreate
from app.services.audit_recorder import AuditRecorder, snapshot

logger = logging.getLogger(__name__)

# no 0/O or 1/I, people read these ids out over the phone
TRACKING_ID_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
TRACKING_ID_LENGTH = 8

STATUS_DESCRIPTIONS = {
    RequestStatus.PENDING: "Your request is currently under review.",
    RequestStatus.VERIFIED: "Your request has been verified and is ready for processing.",
    RequestStatus.PROCESSING: "Your document is currently being prepared.",
    RequestStatus.READY: "Your document is ready for pickup!",
    RequestStatus.COMPLETED: "Your request has been completed successfully.",
    RequestStatus.REJECTED: "Your request has been rejected. Please check the admin notes for details.",
}

DUPLICATE_REQUEST_DETAIL = (
    "You have a pending request for this document type. "
    "Please wait for it to be processed before submitting a new one."
)


def status_description(value: RequestStatus | str) -> str:
    try:
        return STATUS_DESCRIPTIONS[RequestStatus(value)]
    except ValueError:
        return "Status update available."


def add_weekdays(start: date, days: int) -> date:
    current = start
    remaining = days
    while remaining > 0:
        current += timedelta(days=1)
        if current.weekday() < 5:
            remaining -= 1
    return current


def _actor_label(actor: User) -> str:
    return f"{actor.role.value.capitalize()} {actor.name}"


# ─────────────────────────────────────────────────────────────
# Tracking ids
# ─────────────────────────────────────────────────────────────

def _random_tracking_id(prefix: str) -> str:
    body = "".join(secrets.choice(TRACKING_ID_ALPHABET) for _ in range(TRACKING_ID_LENGTH))
    return f"{prefix}-{body}"


async def _tracking_id_taken(db: AsyncSession, tracking_id: str) -> bool:
    # soft-deleted rows still hold their id under the unique constraint
    return bool(await db.scalar(select(exists().where(DocumentRequest.tracking_id == tracking_id))))


async def generate_tracking_id(
    db: AsyncSession,
    prefix: Optional[str] = None,
    max_attempts: Optional[int] = None,
) -> str:
    """
    PREFIX-XXXXXXXX, retried on collision. After max_attempts the last
    candidate gets a -HHMMSS suffix, plus a counter if that one is taken too.
    """
    prefix = prefix or settings.TRACKING_ID_PREFIX
    attempts = max(1, max_attempts or settings.TRACKING_ID_MAX_ATTEMPTS)

    candidate = ""
    for _ in range(attempts):
        candidate = _random_tracking_id(prefix)
        if not await _tracking_id_taken(db, candidate):
            return candidate

    logger.warning("Tracking id space exhausted after %s attempts, using time suffix", attempts)
    fallback = f"{candidate}-{clock.utcnow():%H%M%S}"
    tracking_id = fallback
    counter = 1
    while await _tracking_id_taken(db, tracking_id):
        counter += 1
        tracking_id = f"{fallback}-{counter}"
    return tracking_id


# ─────────────────────────────────────────────────────────────
# Lookups
# ─────────────────────────────────────────────────────────────

async def find_recent_duplicate(db: AsyncSession, email: str, document_type_id: int) -> Optional[DocumentRequest]:
    cutoff = clock.utcnow() - timedelta(hours=settings.DUPLICATE_WINDOW_HOURS)
    res = await db.execute(
        select(DocumentRequest)
        .where(DocumentRequest.email == email)
        .where(DocumentRequest.document_type_id == document_type_id)
        .where(DocumentRequest.status == RequestStatus.PENDING)
        .where(DocumentRequest.created_at >= cutoff)
        .where(DocumentRequest.deleted_at.is_(None))
        .limit(1)
    )
    return res.scalars().first()


async def get_request(
    db: AsyncSession,
    request_id: int,
    *,
    with_logs: bool = False,
    trashed: bool = False,
) -> DocumentRequest:
    """Load one request or 404. ``trashed`` selects soft-deleted rows only."""
    stmt = (
        select(DocumentRequest)
        .where(DocumentRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    if trashed:
        stmt = stmt.where(DocumentRequest.deleted_at.is_not(None))
    else:
        stmt = stmt.where(DocumentRequest.deleted_at.is_(None))
    if with_logs:
        stmt = stmt.options(selectinload(DocumentRequest.logs))

    res = await db.execute(stmt)
    req = res.unique().scalar_one_or_none()
    if req is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")
    return req


async def find_by_tracking_id(
    db: AsyncSession,
    tracking_id: str,
    email: Optional[str] = None,
    *,
    with_logs: bool = False,
) -> Optional[DocumentRequest]:
    stmt = (
        select(DocumentRequest)
        .where(DocumentRequest.tracking_id == tracking_id.strip().upper())
        .where(DocumentRequest.deleted_at.is_(None))
    )
    if email is not None:
        stmt = stmt.where(DocumentRequest.email == email)
    if with_logs:
        stmt = stmt.options(selectinload(DocumentRequest.logs))
    res = await db.execute(stmt)
    return res.unique().scalar_one_or_none()


async def email_has_requests(db: AsyncSession, email: str) -> bool:
    return bool(
        await db.scalar(
            select(exists().where(DocumentRequest.email == email).where(DocumentRequest.deleted_at.is_(None)))
        )
    )


async def list_requests_for_email(db: AsyncSession, email: str) -> list[DocumentRequest]:
    res = await db.execute(
        select(DocumentRequest)
        .where(DocumentRequest.email == email)
        .where(DocumentRequest.deleted_at.is_(None))
        .options(selectinload(DocumentRequest.logs))
        .order_by(DocumentRequest.created_at.desc(), DocumentRequest.id.desc())
    )
    return list(res.unique().scalars().all())


async def list_requests(
    db: AsyncSession,
    search: Optional[str] = None,
    status_filter: Optional[RequestStatus] = None,
    document_type_id: Optional[int] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    trashed: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[DocumentRequest], int]:
    stmt = select(DocumentRequest)
    if trashed:
        stmt = stmt.where(DocumentRequest.deleted_at.is_not(None))
    else:
        stmt = stmt.where(DocumentRequest.deleted_at.is_(None))

    if search and search.strip():
        like = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                DocumentRequest.tracking_id.ilike(like),
                DocumentRequest.email.ilike(like),
                DocumentRequest.first_name.ilike(like),
                DocumentRequest.last_name.ilike(like),
                DocumentRequest.lrn.ilike(like),
            )
        )
    if status_filter is not None:
        stmt = stmt.where(DocumentRequest.status == status_filter)
    if document_type_id is not None:
        stmt = stmt.where(DocumentRequest.document_type_id == document_type_id)
    if from_date is not None:
        stmt = stmt.where(DocumentRequest.created_at >= datetime.combine(from_date, datetime.min.time()))
    if to_date is not None:
        stmt = stmt.where(DocumentRequest.created_at < datetime.combine(to_date + timedelta(days=1), datetime.min.time()))

    total = await db.scalar(select(func.count()).select_from(stmt.subquery()))
    res = await db.execute(
        stmt.order_by(DocumentRequest.created_at.desc(), DocumentRequest.id.desc()).limit(limit).offset(offset)
    )
    return list(res.unique().scalars().all()), int(total or 0)


async def _load_many(db: AsyncSession, ids: Iterable[int]) -> list[DocumentRequest]:
    res = await db.execute(
        select(DocumentRequest)
        .where(DocumentRequest.id.in_(list(ids)))
        .where(DocumentRequest.deleted_at.is_(None))
        .order_by(DocumentRequest.id)
    )
    return list(res.unique().scalars().all())


# ─────────────────────────────────────────────────────────────
# Lifecycle
# ─────────────────────────────────────────────────────────────

async def create_request(
    db: AsyncSession,
    payload: DocumentRequestCreate,
    *,
    audit: AuditRecorder,
    notifier: Optional[EmailNotifier] = None,
    actor: Optional[User] = None,
    otp_verified: bool = True,
) -> DocumentRequest:
    """
    Create a Pending request with a fresh tracking id and its first log row.

    Rejected with 409 before anything is written when the same email already
    has a Pending request for this document type inside the duplicate window.
    """
    if await find_recent_duplicate(db, payload.email, payload.document_type_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_REQUEST_DETAIL)

    doc_type = await db.get(DocumentType, payload.document_type_id)
    if doc_type is None or not doc_type.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document type not found")

    tracking_id = await generate_tracking_id(db)
    processing_days = doc_type.processing_days or settings.DEFAULT_PROCESSING_DAYS

    fields = payload.model_dump(include=set(DocumentRequestCreate.model_fields))
    req = DocumentRequest(
        **fields,
        tracking_id=tracking_id,
        status=RequestStatus.PENDING,
        estimated_completion_date=add_weekdays(clock.utcnow().date(), processing_days),
        otp_verified=otp_verified,
    )
    req.document_type = doc_type
    db.add(req)
    await db.flush()

    if actor is None:
        description = "Document request has been submitted and is pending verification."
    else:
        description = f"{_actor_label(actor)} created request {tracking_id}"

    db.add(
        RequestLog(
            document_request_id=req.id,
            user_id=actor.id if actor else None,
            action="request_created",
            new_value=RequestStatus.PENDING.value,
            description=description,
        )
    )
    await db.commit()

    logger.info("Document request created", extra={"tracking_id": tracking_id})
    await audit.record_create(req)

    if notifier is not None:
        await notifier.dispatch(
            req.email,
            "request_submitted",
            {
                "tracking_id": req.tracking_id,
                "document_type": doc_type.name,
                "estimated_completion_date": req.estimated_completion_date.strftime("%B %d, %Y"),
            },
        )
    return req


async def update_status(
    db: AsyncSession,
    request: DocumentRequest,
    new_status: RequestStatus | str,
    *,
    audit: AuditRecorder,
    actor: Optional[User] = None,
    notes: Optional[str] = None,
    notifier: Optional[EmailNotifier] = None,
) -> RequestStatus:
    """
    Move a request to any status and log it. Returns the previous status.

    No transition table: staff may move a request anywhere, including
    backwards, to correct mistakes. completed_at is stamped the first time
    the request reaches Completed and is never cleared or moved afterwards.
    """
    try:
        new_status = RequestStatus(new_status)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Invalid status: {new_status}")

    before = snapshot(request)
    old_status = request.status

    request.status = new_status
    if notes:
        request.admin_notes = notes
    if actor is not None:
        request.processed_by = actor.id
    if new_status == RequestStatus.COMPLETED and request.completed_at is None:
        request.completed_at = clock.utcnow()

    db.add(
        RequestLog(
            document_request_id=request.id,
            user_id=actor.id if actor else None,
            action="status_change",
            old_value=old_status.value,
            new_value=new_status.value,
            description=notes or f"Status changed from {old_status.value} to {new_status.value}",
        )
    )
    await db.commit()

    logger.info(
        "Request status %s -> %s",
        old_status.value,
        new_status.value,
        extra={"tracking_id": request.tracking_id},
    )
    await audit.record_update(request, before)

    if notifier is not None:
        await notifier.dispatch(
            request.email,
            "status_updated",
            {
                "tracking_id": request.tracking_id,
                "old_status": old_status.value,
                "new_status": new_status.value,
                "admin_notes": request.admin_notes,
            },
        )
    return old_status


async def update_notes(
    db: AsyncSession,
    request: DocumentRequest,
    notes: Optional[str],
    *,
    audit: AuditRecorder,
    actor: Optional[User] = None,
) -> bool:
    """Replace admin notes. Returns False (and logs nothing) when unchanged."""
    notes = notes or None
    old_notes = request.admin_notes
    if old_notes == notes:
        return False

    before = snapshot(request)
    request.admin_notes = notes

    db.add(
        RequestLog(
            document_request_id=request.id,
            user_id=actor.id if actor else None,
            action="note_updated",
            old_value="Previous note" if old_notes else None,
            new_value="Note updated" if notes else "Note cleared",
            description=notes,
        )
    )
    await db.commit()
    await audit.record_update(request, before)
    return True


async def bulk_update_status(
    db: AsyncSession,
    ids: Iterable[int],
    new_status: RequestStatus,
    *,
    audit: AuditRecorder,
    actor: Optional[User] = None,
    notifier: Optional[EmailNotifier] = None,
) -> int:
    count = 0
    for req in await _load_many(db, ids):
        await update_status(db, req, new_status, audit=audit, actor=actor, notifier=notifier)
        count += 1
    return count


async def delete_request(
    db: AsyncSession,
    request: DocumentRequest,
    *,
    audit: AuditRecorder,
    actor: Optional[User] = None,
) -> None:
    """Soft delete. The request and its logs stay until force-deleted."""
    before = snapshot(request)
    request.deleted_at = clock.utcnow()

    who = _actor_label(actor) if actor else "System"
    db.add(
        RequestLog(
            user_id=actor.id if actor else None,
            action="request_deleted",
            description=f"{who} deleted request {request.tracking_id}",
        )
    )
    await db.commit()
    await audit.record_delete(request, before)


async def bulk_delete(
    db: AsyncSession,
    ids: Iterable[int],
    *,
    audit: AuditRecorder,
    actor: Optional[User] = None,
) -> int:
    """Soft delete many; one summary log row, one audit entry per request."""
    deleted: list[tuple[DocumentRequest, dict[str, Any]]] = []
    now = clock.utcnow()
    for req in await _load_many(db, ids):
        deleted.append((req, snapshot(req)))
        req.deleted_at = now

    if not deleted:
        return 0

    who = _actor_label(actor) if actor else "System"
    db.add(
        RequestLog(
            user_id=actor.id if actor else None,
            action="bulk_delete",
            description=f"{who} bulk deleted {len(deleted)} requests",
        )
    )
    await db.commit()

    for req, before in deleted:
        await audit.record_delete(req, before)
    return len(deleted)


async def restore_request(
    db: AsyncSession,
    request_id: int,
    *,
    audit: AuditRecorder,
    actor: Optional[User] = None,
) -> DocumentRequest:
    req = await get_request(db, request_id, trashed=True)
    before = snapshot(req)
    req.deleted_at = None

    db.add(
        RequestLog(
            document_request_id=req.id,
            user_id=actor.id if actor else None,
            action="request_restored",
            description=f"Request {req.tracking_id} restored from trash",
        )
    )
    await db.commit()
    await audit.record_update(req, before)
    return req


async def force_delete_request(
    db: AsyncSession,
    request_id: int,
    *,
    audit: AuditRecorder,
) -> None:
    """Permanently remove a trashed request together with its log rows."""
    req = await get_request(db, request_id, trashed=True)
    before = snapshot(req)

    await db.execute(delete(RequestLog).where(RequestLog.document_request_id == req.id))
    await db.delete(req)
    await db.commit()

    logger.info("Request permanently deleted", extra={"tracking_id": req.tracking_id})
    await audit.record_delete(req, before)


# ─────────────────────────────────────────────────────────────
# Serialisation
# ─────────────────────────────────────────────────────────────

def log_to_dict(log: RequestLog) -> dict:
    return {
        "id": log.id,
        "action": log.action,
        "old_value": log.old_value,
        "new_value": log.new_value,
        "description": log.description,
        "user_name": log.user.name if log.user else "System",
        "created_at": log.created_at,
    }


def to_summary(req: DocumentRequest) -> dict:
    dt = req.document_type
    return {
        "id": req.id,
        "tracking_id": req.tracking_id,
        "email": req.email,
        "first_name": req.first_name,
        "middle_name": req.middle_name,
        "last_name": req.last_name,
        "lrn": req.lrn,
        "grade_level": req.grade_level,
        "document_type": dt.name if dt else None,
        "document_category": dt.category if dt else None,
        "status": req.status,
        "created_at": req.created_at,
        "updated_at": req.updated_at,
    }


def to_detail(req: DocumentRequest, logs: Optional[list[RequestLog]] = None) -> dict:
    out = to_summary(req)
    out.update(
        {
            "full_name": req.full_name,
            "section": req.section,
            "track_strand": req.track_strand,
            "school_year_last_attended": req.school_year_last_attended,
            "purpose": req.purpose,
            "quantity": req.quantity,
            "admin_notes": req.admin_notes,
            "processed_by": req.processor.name if req.processor else None,
            "estimated_completion_date": req.estimated_completion_date,
            "completed_at": req.completed_at,
            "otp_verified": req.otp_verified,
            "deleted_at": req.deleted_at,
            "logs": [log_to_dict(log) for log in (logs or [])],
        }
    )
    return out


def to_dashboard_item(req: DocumentRequest) -> dict:
    return {
        "id": req.id,
        "tracking_id": req.tracking_id,
        "document_type": req.document_type.name,
        "document_category": req.document_type.category,
        "purpose": req.purpose,
        "quantity": req.quantity or 1,
        "status": req.status,
        "status_description": status_description(req.status),
        "estimated_completion_date": req.estimated_completion_date,
        "completed_at": req.completed_at,
        "admin_notes": req.admin_notes,
        "created_at": req.created_at,
        "updated_at": req.updated_at,
        "activity_logs": [log_to_dict(log) for log in req.logs],
    }
