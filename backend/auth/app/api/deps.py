"""
Auth Dependencies
身份由认证过滤器绑定在 request.state 上，这里只负责取出并加载用户
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from common.auth_filter import Identity, require_identity
from common.errors import AuthenticationFailure, AccountBanned
from app.database import get_db
from app.models.user import User
from app.services.user_service import user_service


async def get_current_user(
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
) -> User:
    """获取当前登录用户"""
    user = await user_service.find_by_id(db, identity.subject_id)

    if not user:
        raise AuthenticationFailure("用户不存在")

    if user.is_banned:
        raise AccountBanned()

    return user
