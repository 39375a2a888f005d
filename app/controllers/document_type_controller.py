from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.document_request import DocumentRequest
from app.models.document_type import DocumentType
from app.schemas.document_type import DocumentTypeCreate, DocumentTypeUpdate
from app.services.audit_recorder import AuditRecorder, snapshot


async def list_active_document_types(db: AsyncSession) -> list[DocumentType]:
    res = await db.execute(
        select(DocumentType)
        .where(DocumentType.is_active.is_(True))
        .order_by(DocumentType.category, DocumentType.name)
    )
    return list(res.scalars().all())


async def list_document_types(db: AsyncSession, category: Optional[str] = None) -> list[dict]:
    """All types with how many live requests reference each."""
    counts = (
        select(DocumentRequest.document_type_id, func.count(DocumentRequest.id).label("n"))
        .where(DocumentRequest.deleted_at.is_(None))
        .group_by(DocumentRequest.document_type_id)
        .subquery()
    )
    stmt = select(DocumentType, func.coalesce(counts.c.n, 0)).outerjoin(
        counts, counts.c.document_type_id == DocumentType.id
    )
    if category:
        stmt = stmt.where(DocumentType.category == category)
    res = await db.execute(stmt.order_by(DocumentType.category, DocumentType.name))

    out = []
    for doc_type, n in res.all():
        out.append(
            {
                "id": doc_type.id,
                "name": doc_type.name,
                "category": doc_type.category,
                "description": doc_type.description,
                "processing_days": doc_type.processing_days,
                "is_active": doc_type.is_active,
                "requests_count": int(n),
                "created_at": doc_type.created_at,
                "updated_at": doc_type.updated_at,
            }
        )
    return out


async def get_document_type(db: AsyncSession, document_type_id: int) -> DocumentType:
    doc_type = await db.get(DocumentType, document_type_id)
    if doc_type is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document type not found")
    return doc_type


async def create_document_type(db: AsyncSession, payload: DocumentTypeCreate, audit: AuditRecorder) -> DocumentType:
    doc_type = DocumentType(**payload.model_dump())
    db.add(doc_type)
    await db.commit()
    await db.refresh(doc_type)
    await audit.record_create(doc_type)
    return doc_type


async def update_document_type(
    db: AsyncSession,
    doc_type: DocumentType,
    payload: DocumentTypeUpdate,
    audit: AuditRecorder,
) -> DocumentType:
    before = snapshot(doc_type)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key != "description":
            continue
        setattr(doc_type, key, value)
    await db.commit()
    await db.refresh(doc_type)
    await audit.record_update(doc_type, before)
    return doc_type


async def delete_document_type(db: AsyncSession, doc_type: DocumentType, audit: AuditRecorder) -> None:
    in_use = await db.scalar(
        select(func.count(DocumentRequest.id)).where(DocumentRequest.document_type_id == doc_type.id)
    )
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Document type is referenced by existing requests. Deactivate it instead.",
        )

    before = snapshot(doc_type)
    await db.delete(doc_type)
    await db.commit()
    await audit.record_delete(doc_type, before)
