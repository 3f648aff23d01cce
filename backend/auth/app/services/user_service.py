"""
User Service
用户凭据存储，手机号唯一性由数据库唯一约束保证
"""
import logging
import secrets
from typing import Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from common.errors import PhoneAlreadyExists
from common.roles import UserRole
from common.utils import utcnow
from app.models.user import User, UserStatus
from app.utils.password import hash_password
from app.utils.phone import mask_phone

logger = logging.getLogger(__name__)


class UserService:
    """用户服务"""

    def _generate_invite_code(self) -> str:
        """生成随机个人邀请码"""
        return f"INV{secrets.randbelow(1000000):06d}"

    async def find_by_id(self, db: AsyncSession, user_id: int) -> Optional[User]:
        """通过ID获取用户"""
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def find_by_phone(self, db: AsyncSession, phone: str) -> Optional[User]:
        """通过手机号获取用户"""
        result = await db.execute(select(User).where(User.phone == phone))
        return result.scalar_one_or_none()

    async def find_by_invite_code(self, db: AsyncSession, invite_code: str) -> Optional[User]:
        """通过个人邀请码获取用户"""
        result = await db.execute(select(User).where(User.invite_code == invite_code))
        return result.scalar_one_or_none()

    async def exists_by_phone(self, db: AsyncSession, phone: str) -> bool:
        """检查手机号是否已存在"""
        result = await db.execute(select(User.id).where(User.phone == phone))
        return result.scalar_one_or_none() is not None

    async def insert(
        self,
        db: AsyncSession,
        phone: str,
        password: str,
        role: UserRole = UserRole.AGENT,
        nickname: Optional[str] = None,
        inviter_id: Optional[int] = None
    ) -> User:
        """创建用户"""
        invite_code = self._generate_invite_code()
        while await self.find_by_invite_code(db, invite_code):
            invite_code = self._generate_invite_code()

        user = User(
            phone=phone,
            password_hash=hash_password(password),
            nickname=nickname or f"用户{phone[7:]}",
            invite_code=invite_code,
            role=int(role),
            inviter_id=inviter_id,
            status=UserStatus.ACTIVE
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # 并发注册同一手机号时由唯一约束兜底
            logger.warning(f"手机号唯一约束冲突: {mask_phone(phone)}")
            raise PhoneAlreadyExists()
        await db.refresh(user)
        return user

    async def update(
        self,
        db: AsyncSession,
        user: User,
        nickname: Optional[str] = None,
        status: Optional[str] = None,
        role: Optional[UserRole] = None
    ) -> User:
        """更新用户"""
        if nickname is not None:
            user.nickname = nickname
        if status is not None:
            user.status = status
        if role is not None:
            user.role = int(role)

        user.updated_at = utcnow()
        await db.flush()
        await db.refresh(user)
        return user

    async def update_last_login(self, db: AsyncSession, user: User) -> User:
        """更新最后登录时间"""
        user.last_login_at = utcnow()
        await db.flush()
        return user

    async def get_list(
        self,
        db: AsyncSession,
        page: int = 1,
        page_size: int = 20,
        roles: Optional[Sequence[UserRole]] = None,
        status: Optional[str] = None,
        inviter_id: Optional[int] = None
    ) -> tuple[list[User], int]:
        """获取用户列表"""
        query = select(User)

        # 筛选条件
        if roles is not None:
            query = query.where(User.role.in_([int(r) for r in roles]))
        if status is not None:
            query = query.where(User.status == status)
        if inviter_id is not None:
            query = query.where(User.inviter_id == inviter_id)

        # 计算总数
        count_query = select(func.count()).select_from(query.subquery())
        total = await db.scalar(count_query)

        # 分页
        query = query.order_by(User.created_at.desc(), User.id.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await db.execute(query)
        users = result.scalars().all()

        return list(users), total or 0

    async def list_subordinates(self, db: AsyncSession, inviter_id: int) -> list[User]:
        """获取直接下级"""
        result = await db.execute(
            select(User).where(User.inviter_id == inviter_id).order_by(User.id)
        )
        return list(result.scalars().all())

    async def count(self, db: AsyncSession) -> int:
        """获取用户总数"""
        result = await db.scalar(select(func.count(User.id)))
        return result or 0


# 全局实例
user_service = UserService()
