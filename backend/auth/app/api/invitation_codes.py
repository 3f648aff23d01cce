"""
Invitation Code API Endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from common.auth_filter import Identity, require_identity
from common.errors import AuthError, CodeNotFound, PermissionDenied
from common.roles import UserRole, ensure_can_access, ensure_can_create
from app.database import get_db
from app.schemas.invitation import (
    InvitationCodeCreate, InvitationCodeResponse, InvitationCodeListResponse,
    InvitationCodeValidateResponse, InvitationRecordResponse
)
from app.services.invitation_service import invitation_ledger
from app.services.user_service import user_service

router = APIRouter(prefix="/api/invitation-codes", tags=["invitation-codes"])


@router.get("/validate/{code}", response_model=InvitationCodeValidateResponse)
async def validate_invitation_code(
    code: str,
    db: AsyncSession = Depends(get_db)
):
    """验证邀请码（公开接口，不消耗次数）"""
    try:
        invitation_code = await invitation_ledger.check(db, code)
    except AuthError as e:
        return InvitationCodeValidateResponse(valid=False, message=e.message)

    return InvitationCodeValidateResponse(
        valid=True,
        target_role=UserRole(invitation_code.target_role).code,
        message="邀请码有效"
    )


@router.post("", response_model=InvitationCodeResponse)
async def create_invitation_code(
    request: InvitationCodeCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    """创建邀请码（只能邀请比自己角色低的用户）"""
    target_role = UserRole.from_code(request.target_role)
    ensure_can_create(identity.role, target_role)

    code = await invitation_ledger.create(
        db,
        user_id=identity.subject_id,
        target_role=target_role,
        max_usage=request.max_usage,
        expires_days=request.expires_days,
        note=request.note
    )
    return InvitationCodeResponse.from_code(code)


@router.get("", response_model=InvitationCodeListResponse)
async def list_invitation_codes(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern=r'^(active|inactive)$'),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    """获取邀请码列表（超管看全部，其他人只看自己创建的）"""
    user_id = None if identity.role == UserRole.SUPER_ADMIN else identity.subject_id

    codes, total = await invitation_ledger.get_list(db, page, page_size, user_id, status)

    return InvitationCodeListResponse(
        codes=[InvitationCodeResponse.from_code(c) for c in codes],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/records", response_model=list[InvitationRecordResponse])
async def list_invitation_records(
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    """获取我的邀请记录"""
    records = await invitation_ledger.list_records(db, inviter_id=identity.subject_id)
    return [InvitationRecordResponse.model_validate(r) for r in records]


@router.put("/{code}/deactivate", response_model=InvitationCodeResponse)
async def deactivate_invitation_code(
    code: str,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    """停用邀请码（创建者本人或更高角色）"""
    invitation_code = await invitation_ledger.get_by_code(db, code)
    if not invitation_code:
        raise CodeNotFound()

    if invitation_code.user_id != identity.subject_id:
        owner = await user_service.find_by_id(db, invitation_code.user_id)
        if owner is not None:
            ensure_can_access(identity.role, owner.user_role)
        elif identity.role != UserRole.SUPER_ADMIN:
            raise PermissionDenied("邀请码创建者不存在，仅超级管理员可停用")

    invitation_code = await invitation_ledger.deactivate(db, code)
    return InvitationCodeResponse.from_code(invitation_code)
