from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers import document_request_controller as requests_ctl
from app.core.database import get_db
from app.core.dependencies import get_staff_audit_recorder, require_staff, require_superadmin
from app.core.email_service import EmailNotifier, get_notifier
from app.models.document_request import RequestStatus
from app.models.user import User
from app.schemas.document_request import (
    AdminDocumentRequestCreate,
    BulkAction,
    BulkActionResult,
    DocumentRequestDetail,
    DocumentRequestPage,
    NotesUpdate,
    StatusUpdate,
)
from app.services.audit_recorder import AuditRecorder

router = APIRouter(prefix="/admin/requests", tags=["Admin - Requests"])


async def _detail(db: AsyncSession, request_id: int) -> dict:
    req = await requests_ctl.get_request(db, request_id, with_logs=True)
    return requests_ctl.to_detail(req, req.logs)


# ─────────────────────────────────────────────────────────────
# LIST / CREATE
# ─────────────────────────────────────────────────────────────

@router.get("", response_model=DocumentRequestPage)
async def list_requests(
    q: Optional[str] = Query(None, description="Search tracking id, email, name or LRN"),
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    document_type_id: Optional[int] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    items, total = await requests_ctl.list_requests(
        db,
        search=q,
        status_filter=status_filter,
        document_type_id=document_type_id,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
        offset=offset,
    )
    return {"items": [requests_ctl.to_summary(r) for r in items], "total": total, "limit": limit, "offset": offset}


@router.post("", response_model=DocumentRequestDetail, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: AdminDocumentRequestCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
    notifier: EmailNotifier = Depends(get_notifier),
):
    """Walk-in request entered by staff. Same duplicate rule as the public form."""
    req = await requests_ctl.create_request(
        db,
        payload,
        audit=audit,
        notifier=notifier,
        actor=user,
        otp_verified=payload.otp_verified,
    )
    return await _detail(db, req.id)


# ─────────────────────────────────────────────────────────────
# TRASH / BULK  (declared before /{request_id})
# ─────────────────────────────────────────────────────────────

@router.get("/trash", response_model=DocumentRequestPage)
async def list_trash(
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_superadmin),
):
    items, total = await requests_ctl.list_requests(db, trashed=True, limit=limit, offset=offset)
    return {"items": [requests_ctl.to_summary(r) for r in items], "total": total, "limit": limit, "offset": offset}


@router.post("/bulk", response_model=BulkActionResult)
async def bulk_action(
    payload: BulkAction,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_superadmin),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
    notifier: EmailNotifier = Depends(get_notifier),
):
    if payload.action == "delete":
        count = await requests_ctl.bulk_delete(db, payload.request_ids, audit=audit, actor=user)
        message = f"{count} requests deleted."
    else:
        count = await requests_ctl.bulk_update_status(
            db, payload.request_ids, payload.status, audit=audit, actor=user, notifier=notifier
        )
        message = f"{count} requests updated to {payload.status.value}."
    return BulkActionResult(action=payload.action, count=count, message=message)


# ─────────────────────────────────────────────────────────────
# SINGLE REQUEST
# ─────────────────────────────────────────────────────────────

@router.get("/{request_id}", response_model=DocumentRequestDetail)
async def get_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    return await _detail(db, request_id)


@router.patch("/{request_id}/status", response_model=DocumentRequestDetail)
async def update_status(
    request_id: int,
    payload: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
    notifier: EmailNotifier = Depends(get_notifier),
):
    req = await requests_ctl.get_request(db, request_id)
    await requests_ctl.update_status(
        db, req, payload.status, audit=audit, actor=user, notes=payload.notes, notifier=notifier
    )
    return await _detail(db, request_id)


@router.patch("/{request_id}/notes", response_model=DocumentRequestDetail)
async def update_notes(
    request_id: int,
    payload: NotesUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
):
    req = await requests_ctl.get_request(db, request_id)
    await requests_ctl.update_notes(db, req, payload.admin_notes, audit=audit, actor=user)
    return await _detail(db, request_id)


@router.delete("/{request_id}")
async def delete_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_superadmin),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
):
    req = await requests_ctl.get_request(db, request_id)
    await requests_ctl.delete_request(db, req, audit=audit, actor=user)
    return {"detail": f"Request {req.tracking_id} moved to trash."}


@router.post("/{request_id}/restore", response_model=DocumentRequestDetail)
async def restore_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_superadmin),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
):
    await requests_ctl.restore_request(db, request_id, audit=audit, actor=user)
    return await _detail(db, request_id)


@router.delete("/{request_id}/force")
async def force_delete_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_superadmin),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
):
    await requests_ctl.force_delete_request(db, request_id, audit=audit)
    return {"detail": "Request permanently deleted."}
