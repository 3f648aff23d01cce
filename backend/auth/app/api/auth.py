"""
Auth API Endpoints
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from common.auth_filter import Identity, require_identity, extract_bearer_token
from common.errors import TokenInvalid, WeakPassword
from common.roles import UserRole, ensure_can_create
from app.database import get_db
from app.schemas.auth import (
    SendCodeRequest, RegisterRequest, LoginRequest,
    AuthResponse, TokenResponse, CreateSubordinateRequest, MessageResponse
)
from app.schemas.user import UserResponse
from app.services.auth_service import auth_service
from app.services.verification_service import verification_service
from app.api.deps import get_current_user
from app.models.user import User
from app.utils.password import check_password_strength

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _ensure_strong_password(password: str) -> None:
    is_strong, msg = check_password_strength(password)
    if not is_strong:
        raise WeakPassword(msg)


@router.post("/send-code", response_model=MessageResponse)
async def send_code(request: SendCodeRequest):
    """发送注册验证码"""
    verification_service.send_code(request.phone)
    return MessageResponse(success=True, message="验证码发送成功")


@router.post("/register", response_model=AuthResponse)
async def register(
    request: RegisterRequest,
    req: Request,
    db: AsyncSession = Depends(get_db)
):
    """用户注册（邀请码可选）"""
    _ensure_strong_password(request.password)

    result = await auth_service.register(
        db,
        phone=request.phone,
        code=request.code,
        password=request.password,
        invite_code=request.invite_code,
        nickname=request.nickname,
        ip_address=req.client.host if req.client else None,
        user_agent=req.headers.get("User-Agent")
    )

    return AuthResponse(
        user=UserResponse.from_user(result.user),
        token=result.token,
        expires_in=result.expires_in
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """用户登录"""
    result = await auth_service.login(db, phone=request.phone, password=request.password)

    return AuthResponse(
        user=UserResponse.from_user(result.user),
        token=result.token,
        expires_in=result.expires_in
    )


@router.get("/current", response_model=UserResponse)
async def get_current(current_user: User = Depends(get_current_user)):
    """获取当前用户信息"""
    return UserResponse.from_user(current_user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(req: Request):
    """使用旧 token 换取新 token"""
    old_token = extract_bearer_token(req.headers.get("Authorization"))
    if not old_token:
        raise TokenInvalid("无效的Authorization header")

    new_token = auth_service.refresh(old_token)
    return TokenResponse(token=new_token, expires_in=auth_service.codec.expires_in)


@router.post("/logout", response_model=MessageResponse)
async def logout(identity: Identity = Depends(require_identity)):
    """退出登录，使 token 失效"""
    auth_service.logout(identity.token, identity.subject_id)
    return MessageResponse(success=True, message="已退出登录")


@router.post("/create-subordinate", response_model=UserResponse)
async def create_subordinate(
    request: CreateSubordinateRequest,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    """快速创建下级用户（只能创建比自己权限低的角色）"""
    target_role = UserRole.from_code(request.role)
    ensure_can_create(identity.role, target_role)
    _ensure_strong_password(request.password)

    user = await auth_service.create_subordinate(
        db,
        actor_role=identity.role,
        actor_id=identity.subject_id,
        phone=request.phone,
        role=target_role,
        password=request.password,
        nickname=request.nickname
    )
    return UserResponse.from_user(user)
