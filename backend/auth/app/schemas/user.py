"""
User Schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

PHONE_REGEX = r'^1[3-9]\d{9}$'
ROLE_CODE_REGEX = r'^(super_admin|director|leader|sales|agent)$'


class UserResponse(BaseModel):
    id: int
    nickname: str
    phone: str
    role: str
    role_name: str
    invite_code: str
    inviter_id: Optional[int] = None
    status: str
    total_gmv: Decimal
    created_at: datetime
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            nickname=user.nickname,
            phone=user.phone,
            role=user.user_role.code,
            role_name=user.user_role.description,
            invite_code=user.invite_code,
            inviter_id=user.inviter_id,
            status=user.status,
            total_gmv=user.total_gmv,
            created_at=user.created_at,
            last_login_at=user.last_login_at
        )


class UserListResponse(BaseModel):
    users: list[UserResponse]
    total: int
    page: int
    page_size: int


class UserStatusUpdate(BaseModel):
    status: str = Field(..., pattern=r'^(active|banned)$')
