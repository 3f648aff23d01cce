"""
Invitation Ledger
邀请码的签发、核销和停用

核销流程（同一个事务内完成）：
1. SELECT ... FOR UPDATE 锁定邀请码行
2. 不存在 -> CodeNotFound
3. 已停用 -> CodeInactive
4. 已过期 -> CodeExpired
5. 次数用完 -> CodeExhausted
6. 条件更新 usage_count = usage_count + 1

使用次数只增不减，注册失败也不回滚
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from common.errors import CodeNotFound, CodeInactive, CodeExpired, CodeExhausted
from common.roles import UserRole
from common.utils import utcnow
from app.config import INVITE_CODE_LENGTH, DEFAULT_INVITE_CODE_EXPIRE_DAYS
from app.models.invitation import InvitationCode, InvitationRecord, CodeStatus, CodeState, RecordStatus

logger = logging.getLogger(__name__)

# 邀请码字符集（去掉易混淆的 0/O/1/I）
_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


@dataclass(frozen=True)
class RedemptionOutcome:
    """核销结果"""
    inviter_id: int
    target_role: UserRole
    usage_count: int


class InvitationLedger:
    """邀请码账本"""

    def _generate_code(self) -> str:
        """生成随机邀请码"""
        return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))

    async def get_by_code(self, db: AsyncSession, code: str) -> Optional[InvitationCode]:
        """通过邀请码获取"""
        result = await db.execute(select(InvitationCode).where(InvitationCode.code == code))
        return result.scalar_one_or_none()

    async def create(
        self,
        db: AsyncSession,
        user_id: int,
        target_role: UserRole = UserRole.AGENT,
        max_usage: Optional[int] = None,
        expires_days: Optional[int] = DEFAULT_INVITE_CODE_EXPIRE_DAYS,
        note: Optional[str] = None
    ) -> InvitationCode:
        """创建邀请码"""
        # 生成唯一邀请码
        code = self._generate_code()
        while await self.get_by_code(db, code):
            code = self._generate_code()

        expires_at = None
        if expires_days:
            expires_at = utcnow() + timedelta(days=expires_days)

        invitation_code = InvitationCode(
            user_id=user_id,
            code=code,
            target_role=int(target_role),
            status=CodeStatus.ACTIVE,
            usage_count=0,
            max_usage=max_usage,
            expires_at=expires_at,
            note=note
        )
        db.add(invitation_code)
        await db.flush()
        await db.refresh(invitation_code)

        logger.info(
            f"邀请码已创建: code={code}, owner={user_id}, "
            f"targetRole={UserRole(target_role).code}, maxUsage={max_usage}"
        )
        return invitation_code

    async def select_for_update(self, db: AsyncSession, code: str) -> Optional[InvitationCode]:
        """加排他锁读取邀请码"""
        result = await db.execute(
            select(InvitationCode)
            .where(InvitationCode.code == code)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def increment_usage(self, db: AsyncSession, code: str) -> bool:
        """
        条件自增使用次数
        返回: 是否有一行被更新
        """
        result = await db.execute(
            update(InvitationCode)
            .where(
                InvitationCode.code == code,
                InvitationCode.status == CodeStatus.ACTIVE,
                or_(
                    InvitationCode.max_usage.is_(None),
                    InvitationCode.usage_count < InvitationCode.max_usage
                )
            )
            .values(
                usage_count=InvitationCode.usage_count + 1,
                updated_at=utcnow()
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def redeem(self, db: AsyncSession, code: str, now: Optional[datetime] = None) -> RedemptionOutcome:
        """核销邀请码，事务边界由调用方控制"""
        now = now or utcnow()

        invitation_code = await self.select_for_update(db, code)
        if invitation_code is None:
            raise CodeNotFound()

        if invitation_code.status != CodeStatus.ACTIVE:
            raise CodeInactive()

        if invitation_code.is_expired(now):
            raise CodeExpired()

        if invitation_code.is_exhausted:
            raise CodeExhausted()

        if not await self.increment_usage(db, code):
            # 锁不生效的存储（如 SQLite）下由条件更新兜底
            logger.warning(f"邀请码并发核销失败: code={code}")
            raise CodeExhausted()

        await db.refresh(invitation_code)

        logger.info(
            f"邀请码核销成功: code={code}, inviter={invitation_code.user_id}, "
            f"usage={invitation_code.usage_count}/{invitation_code.max_usage}"
        )
        return RedemptionOutcome(
            inviter_id=invitation_code.user_id,
            target_role=UserRole(invitation_code.target_role),
            usage_count=invitation_code.usage_count
        )

    async def check(self, db: AsyncSession, code: str, now: Optional[datetime] = None) -> InvitationCode:
        """只读校验，不消耗次数"""
        invitation_code = await self.get_by_code(db, code)
        if invitation_code is None:
            raise CodeNotFound()

        state = invitation_code.state(now)
        if state == CodeState.INACTIVE:
            raise CodeInactive()
        if state == CodeState.EXPIRED:
            raise CodeExpired()
        if state == CodeState.EXHAUSTED:
            raise CodeExhausted()
        return invitation_code

    async def deactivate(self, db: AsyncSession, code: str) -> InvitationCode:
        """停用邀请码（幂等）"""
        await db.execute(
            update(InvitationCode)
            .where(InvitationCode.code == code, InvitationCode.status != CodeStatus.INACTIVE)
            .values(status=CodeStatus.INACTIVE, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        invitation_code = await self.get_by_code(db, code)
        if invitation_code is None:
            raise CodeNotFound()
        await db.refresh(invitation_code)

        logger.info(f"邀请码已停用: code={code}")
        return invitation_code

    async def record(
        self,
        db: AsyncSession,
        inviter_id: int,
        code: str,
        status: str,
        invitee_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> InvitationRecord:
        """追加邀请记录"""
        record = InvitationRecord(
            inviter_id=inviter_id,
            invitee_id=invitee_id,
            invite_code=code,
            status=status,
            registered_at=utcnow() if status == RecordStatus.SUCCESS else None,
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None
        )
        db.add(record)
        await db.flush()
        return record

    async def get_list(
        self,
        db: AsyncSession,
        page: int = 1,
        page_size: int = 20,
        user_id: Optional[int] = None,
        status: Optional[str] = None
    ) -> tuple[list[InvitationCode], int]:
        """获取邀请码列表"""
        query = select(InvitationCode)

        if user_id is not None:
            query = query.where(InvitationCode.user_id == user_id)
        if status is not None:
            query = query.where(InvitationCode.status == status)

        # 计算总数
        count_query = select(func.count()).select_from(query.subquery())
        total = await db.scalar(count_query)

        # 分页
        query = query.order_by(InvitationCode.created_at.desc(), InvitationCode.id.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await db.execute(query)
        codes = result.scalars().all()

        return list(codes), total or 0

    async def list_records(
        self,
        db: AsyncSession,
        inviter_id: Optional[int] = None,
        code: Optional[str] = None
    ) -> list[InvitationRecord]:
        """获取邀请记录"""
        query = select(InvitationRecord)
        if inviter_id is not None:
            query = query.where(InvitationRecord.inviter_id == inviter_id)
        if code is not None:
            query = query.where(InvitationRecord.invite_code == code)
        result = await db.execute(query.order_by(InvitationRecord.id))
        return list(result.scalars().all())


# 全局实例
invitation_ledger = InvitationLedger()
