from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers import user_controller
from app.core.database import get_db
from app.core.dependencies import get_staff_audit_recorder, require_superadmin
from app.models.user import User, UserRole
from app.schemas.user import PasswordReset, UserActiveUpdate, UserCreate, UserOut, UserUpdate
from app.services.audit_recorder import AuditRecorder

router = APIRouter(prefix="/admin/users", tags=["Admin - Users"])


@router.get("", response_model=list[UserOut])
async def list_users(
    q: Optional[str] = Query(None, description="Search by name or email"),
    role: Optional[UserRole] = Query(None),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_superadmin),
):
    return await user_controller.list_users(db, search=q, role=role)


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_superadmin),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
):
    return await user_controller.create_user(db, payload, audit)


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_superadmin),
):
    return await user_controller.get_user(db, user_id)


@router.patch("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_superadmin),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
):
    user = await user_controller.get_user(db, user_id)
    return await user_controller.update_user(db, user, payload, admin, audit)


@router.patch("/{user_id}/status", response_model=UserOut)
async def set_user_status(
    user_id: int,
    payload: UserActiveUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_superadmin),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
):
    user = await user_controller.get_user(db, user_id)
    return await user_controller.set_user_active(db, user, payload.is_active, admin, audit)


@router.post("/{user_id}/reset-password")
async def reset_password(
    user_id: int,
    payload: PasswordReset,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_superadmin),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
):
    user = await user_controller.get_user(db, user_id)
    await user_controller.reset_password(db, user, payload.password, audit)
    return {"detail": "Password has been reset."}


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_superadmin),
    audit: AuditRecorder = Depends(get_staff_audit_recorder),
):
    user = await user_controller.get_user(db, user_id)
    await user_controller.delete_user(db, user, admin, audit)
    return {"detail": "User deleted."}
