"""
Auth Service
注册、登录、刷新、登出、创建下级
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from common.errors import (
    InvalidPhone, InvalidVerificationCode, PhoneAlreadyExists,
    InvalidCredentials, AccountBanned, TokenExpired, TokenInvalid
)
from common.roles import UserRole, ensure_can_create
from common.session_cache import SessionCache, session_cache, revoked_token_key
from common.tokens import TokenCodec, create_codec
from app.config import DEFAULT_REGISTER_ROLE
from app.models.invitation import RecordStatus
from app.models.user import User
from app.services.invitation_service import InvitationLedger, invitation_ledger
from app.services.user_service import UserService, user_service
from app.services.verification_service import VerificationService, verification_service
from app.utils.password import verify_password, pwd_context
from app.utils.phone import is_valid_phone, mask_phone

logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    user: User
    token: str
    expires_in: int


class AuthService:
    """认证服务"""

    def __init__(
        self,
        codec: TokenCodec,
        cache: SessionCache,
        verification: VerificationService,
        users: UserService = user_service,
        ledger: InvitationLedger = invitation_ledger
    ):
        self.codec = codec
        self.cache = cache
        self.verification = verification
        self.users = users
        self.ledger = ledger

    def _issue(self, user: User) -> AuthResult:
        token = self.codec.issue(user.id, user.user_role)
        return AuthResult(user=user, token=token, expires_in=self.codec.expires_in)

    async def register(
        self,
        db: AsyncSession,
        phone: str,
        code: str,
        password: str,
        invite_code: Optional[str] = None,
        nickname: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> AuthResult:
        """用户注册"""
        logger.info(f"用户注册请求: phone={mask_phone(phone)}")

        # 1. 手机号格式
        if not is_valid_phone(phone):
            raise InvalidPhone()

        # 2. 验证码（注册成功后才作废）
        if not self.verification.verify_code(phone, code, consume=False):
            raise InvalidVerificationCode()

        # 3. 手机号是否已注册
        if await self.users.exists_by_phone(db, phone):
            raise PhoneAlreadyExists()

        # 4. 核销邀请码，单独提交：后续注册失败不回滚使用次数
        role = DEFAULT_REGISTER_ROLE
        outcome = None
        if invite_code:
            outcome = await self.ledger.redeem(db, invite_code)
            await db.commit()
            role = outcome.target_role

        # 5. 创建用户并写入邀请记录
        try:
            user = await self.users.insert(
                db, phone, password,
                role=role,
                nickname=nickname,
                inviter_id=outcome.inviter_id if outcome else None
            )
            if outcome:
                await self.ledger.record(
                    db, outcome.inviter_id, invite_code, RecordStatus.SUCCESS,
                    invitee_id=user.id, ip_address=ip_address, user_agent=user_agent
                )
            await db.commit()
        except Exception:
            await db.rollback()
            if outcome:
                logger.warning(f"核销成功但注册失败: code={invite_code}, phone={mask_phone(phone)}")
                await self.ledger.record(
                    db, outcome.inviter_id, invite_code, RecordStatus.FAILED,
                    ip_address=ip_address, user_agent=user_agent
                )
                await db.commit()
            raise

        self.verification.discard_code(phone)

        logger.info(f"用户注册成功: userId={user.id}, role={user.role_name}")
        return self._issue(user)

    async def login(self, db: AsyncSession, phone: str, password: str) -> AuthResult:
        """用户登录"""
        logger.info(f"用户登录请求: phone={mask_phone(phone)}")

        user = await self.users.find_by_phone(db, phone)
        if not user:
            # 保持与密码错误相同的耗时
            pwd_context.dummy_verify()
            raise InvalidCredentials()

        if not verify_password(password, user.password_hash):
            logger.warning(f"密码错误: userId={user.id}")
            raise InvalidCredentials()

        if user.is_banned:
            raise AccountBanned()

        await self.users.update_last_login(db, user)

        logger.info(f"用户登录成功: userId={user.id}")
        return self._issue(user)

    def is_revoked(self, token_id: str) -> bool:
        return self.cache.exists(revoked_token_key(token_id))

    def refresh(self, old_token: str) -> str:
        """刷新令牌：旧令牌作废，签发新令牌"""
        claims = self.codec.validate(old_token)
        if claims is None:
            if self.codec.is_expired(old_token):
                raise TokenExpired()
            raise TokenInvalid()

        if self.is_revoked(claims.token_id):
            raise TokenInvalid("Token 已失效")

        new_token = self.codec.issue(claims.subject_id, claims.role)
        self.cache.set(
            revoked_token_key(claims.token_id),
            str(claims.subject_id),
            claims.remaining_seconds(self.codec.now())
        )

        logger.info(f"Token 刷新成功: userId={claims.subject_id}")
        return new_token

    def logout(self, token: str, user_id: int) -> bool:
        """
        登出 - 把 token 加入黑名单直到其自然过期
        返回: 是否写入了黑名单（已过期或无效的 token 无需处理）
        """
        claims = self.codec.validate(token)
        if claims is None:
            return False

        ttl = claims.remaining_seconds(self.codec.now())
        if ttl <= 0:
            return False

        self.cache.set(revoked_token_key(claims.token_id), str(user_id), ttl)
        logger.info(f"用户退出登录: userId={user_id}")
        return True

    async def create_subordinate(
        self,
        db: AsyncSession,
        actor_role: UserRole,
        actor_id: int,
        phone: str,
        role: UserRole,
        password: str,
        nickname: Optional[str] = None
    ) -> User:
        """上级直接创建下级账号，不消耗邀请码"""
        ensure_can_create(actor_role, role)

        if not is_valid_phone(phone):
            raise InvalidPhone()

        if await self.users.exists_by_phone(db, phone):
            raise PhoneAlreadyExists()

        user = await self.users.insert(
            db, phone, password,
            role=role,
            nickname=nickname,
            inviter_id=actor_id
        )

        logger.info(
            f"下级账号已创建: actor={actor_id}, userId={user.id}, role={user.role_name}"
        )
        return user


# 全局实例
auth_service = AuthService(create_codec(), session_cache, verification_service)
