from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.dependencies import require_superadmin
from app.models.user import User
from app.schemas.audit_log import AuditLogPage
from app.services.audit_recorder import list_audit_logs

router = APIRouter(prefix="/admin/audit-logs", tags=["Admin - Audit Logs"])


@router.get("", response_model=AuditLogPage)
async def audit_logs(
    action: Optional[str] = Query(None, description="CREATE | UPDATE | DELETE | LOGIN | LOGOUT | LOGIN_FAILED"),
    subject_type: Optional[str] = Query(None, description="Model name, e.g. DocumentRequest"),
    subject_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_superadmin),
):
    rows, total = await list_audit_logs(
        db,
        action=action,
        subject_type=subject_type,
        subject_id=subject_id,
        user_id=user_id,
        limit=limit,
        offset=offset,
    )
    return {"items": rows, "total": total, "limit": limit, "offset": offset}
