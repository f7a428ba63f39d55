"""Роуты администрирования пользователей: роли и блокировки"""
import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies.security import require_admin
from ..models import User
from ..schemas.auth import BlockHistoryRead, BlockRequest, RoleUpdate, UserRead
from ..services.user_service import UserService

router = APIRouter()


@router.get("", response_model=List[UserRead])
async def list_users(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).list_users()


@router.post("/{user_id}/block", response_model=UserRead)
async def block_user(
    user_id: uuid.UUID,
    payload: BlockRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Блокировка на duration_hours часов, без срока - бессрочно"""
    return await UserService(db).block(
        user_id,
        blocked_by=admin.id,
        reason=payload.reason,
        duration_hours=payload.duration_hours,
    )


@router.post("/{user_id}/unblock", response_model=UserRead)
async def unblock_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).unblock(user_id)


@router.get("/{user_id}/block-history", response_model=List[BlockHistoryRead])
async def block_history(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).block_history(user_id)


@router.put("/{user_id}/role", response_model=UserRead)
async def update_role(
    user_id: uuid.UUID,
    payload: RoleUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).set_role(user_id, payload.role)
