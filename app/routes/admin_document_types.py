from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers import document_type_controller as doc_types
from app.core.database import get_db
from app.core.dependencies import get_staff_audit_recorder, require_superadmin
from app.models.user import User
from app.schemas.document_type import DocumentTypeAdminOut, DocumentTypeCreate, DocumentTypeOut, DocumentTypeUpdate
from app.services.audit_recorder import AuditRecorder

router = APIRouter(prefix="/admin/document-types", tags=["Admin - Document Types"])


@router.get("", response_model=list[DocumentTypeAdminOut])
async def list_document_types(
    category: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_superadmin),
):
    return await doc_types.list_document_types(db, category)


@router.post("", response_model=DocumentTypeOut, status_code=status.HTTP_201_CREATED)
async def create_document_type(
    payload: DocumentTypeCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_superadmin),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
):
    return await doc_types.create_document_type(db, payload, audit)


@router.patch("/{document_type_id}", response_model=DocumentTypeOut)
async def update_document_type(
    document_type_id: int,
    payload: DocumentTypeUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_superadmin),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
):
    doc_type = await doc_types.get_document_type(db, document_type_id)
    return await doc_types.update_document_type(db, doc_type, payload, audit)


@router.delete("/{document_type_id}")
async def delete_document_type(
    document_type_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_superadmin),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
):
    doc_type = await doc_types.get_document_type(db, document_type_id)
    await doc_types.delete_document_type(db, doc_type, audit)
    return {"detail": "Document type deleted."}
