"""
Invitation Models
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from common.roles import UserRole
from common.utils import utcnow
from app.database import Base


class CodeStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"


class CodeState:
    """邀请码的逻辑状态"""
    AVAILABLE = "active-available"
    EXHAUSTED = "active-exhausted"
    EXPIRED = "expired"
    INACTIVE = "inactive"


class RecordStatus:
    SUCCESS = "success"
    PENDING = "pending"
    FAILED = "failed"


class InvitationCode(Base):
    __tablename__ = "invitation_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    target_role: Mapped[int] = mapped_column(Integer, nullable=False, default=UserRole.AGENT)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=CodeStatus.ACTIVE)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_usage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # NULL 表示无限
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)  # NULL 表示永不过期
    note: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == CodeStatus.ACTIVE

    @property
    def is_exhausted(self) -> bool:
        return self.max_usage is not None and self.usage_count >= self.max_usage

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.expires_at is not None and now >= self.expires_at

    def state(self, now: Optional[datetime] = None) -> str:
        if not self.is_active:
            return CodeState.INACTIVE
        if self.is_expired(now):
            return CodeState.EXPIRED
        if self.is_exhausted:
            return CodeState.EXHAUSTED
        return CodeState.AVAILABLE

    @property
    def remaining_uses(self) -> Optional[int]:
        if self.max_usage is None:
            return None
        return max(0, self.max_usage - self.usage_count)


class InvitationRecord(Base):
    """邀请记录（只追加，不修改）"""
    __tablename__ = "invitation_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    inviter_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    invitee_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    invite_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    registered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
