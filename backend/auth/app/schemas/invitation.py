"""
Invitation Schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from common.roles import UserRole
from app.schemas.user import ROLE_CODE_REGEX


class InvitationCodeCreate(BaseModel):
    target_role: str = Field(default="agent", pattern=ROLE_CODE_REGEX)
    max_usage: Optional[int] = Field(default=None, ge=1, le=100000)
    expires_days: Optional[int] = Field(default=7, ge=1, le=365)
    note: Optional[str] = Field(None, max_length=255)


class InvitationCodeResponse(BaseModel):
    id: int
    code: str
    user_id: int
    target_role: str
    status: str
    state: str
    usage_count: int
    max_usage: Optional[int]
    remaining_uses: Optional[int]
    expires_at: Optional[datetime]
    note: Optional[str]
    created_at: datetime

    @classmethod
    def from_code(cls, code) -> "InvitationCodeResponse":
        return cls(
            id=code.id,
            code=code.code,
            user_id=code.user_id,
            target_role=UserRole(code.target_role).code,
            status=code.status,
            state=code.state(),
            usage_count=code.usage_count,
            max_usage=code.max_usage,
            remaining_uses=code.remaining_uses,
            expires_at=code.expires_at,
            note=code.note,
            created_at=code.created_at
        )


class InvitationCodeListResponse(BaseModel):
    codes: list[InvitationCodeResponse]
    total: int
    page: int
    page_size: int


class InvitationCodeValidateResponse(BaseModel):
    valid: bool
    target_role: Optional[str] = None
    message: str


class InvitationRecordResponse(BaseModel):
    id: int
    inviter_id: int
    invitee_id: Optional[int]
    invite_code: str
    status: str
    registered_at: Optional[datetime]
    ip_address: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
