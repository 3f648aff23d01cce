"""
User API Endpoints
只能查看和管理角色低于自己的用户
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from common.auth_filter import Identity, require_identity
from common.errors import UserNotFound
from common.roles import creatable_roles, ensure_can_access
from app.database import get_db
from app.schemas.user import UserResponse, UserListResponse, UserStatusUpdate
from app.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern=r'^(active|banned)$'),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    """获取可见的用户列表（同级及以上不可见）"""
    visible_roles = creatable_roles(identity.role)
    if not visible_roles:
        return UserListResponse(users=[], total=0, page=page, page_size=page_size)

    users, total = await user_service.get_list(
        db, page, page_size, roles=visible_roles, status=status
    )

    return UserListResponse(
        users=[UserResponse.from_user(u) for u in users],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/subordinates", response_model=list[UserResponse])
async def list_subordinates(
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    """获取我直接邀请/创建的下级"""
    users = await user_service.list_subordinates(db, identity.subject_id)
    return [UserResponse.from_user(u) for u in users]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    """获取用户详情"""
    user = await user_service.find_by_id(db, user_id)
    if not user:
        raise UserNotFound()

    if user.id != identity.subject_id:
        ensure_can_access(identity.role, user.user_role)

    return UserResponse.from_user(user)


@router.put("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: int,
    request: UserStatusUpdate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    """封禁/解封用户"""
    user = await user_service.find_by_id(db, user_id)
    if not user:
        raise UserNotFound()

    ensure_can_access(identity.role, user.user_role)

    user = await user_service.update(db, user, status=request.status)
    return UserResponse.from_user(user)
