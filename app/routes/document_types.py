from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.document_type_controller import list_active_document_types
from app.core.database import get_db
from app.schemas.document_type import DocumentTypeOut

router = APIRouter(prefix="/document-types", tags=["Document Types"])


@router.get("", response_model=list[DocumentTypeOut])
async def list_document_types(db: AsyncSession = Depends(get_db)):
    return await list_active_document_types(db)
