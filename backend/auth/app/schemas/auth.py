"""
Auth Schemas
"""
from typing import Optional
from pydantic import BaseModel, Field

from app.schemas.user import UserResponse, PHONE_REGEX, ROLE_CODE_REGEX


class SendCodeRequest(BaseModel):
    phone: str = Field(..., pattern=PHONE_REGEX)


class RegisterRequest(BaseModel):
    phone: str = Field(..., pattern=PHONE_REGEX)
    code: str = Field(..., min_length=4, max_length=8)
    password: str = Field(..., min_length=6, max_length=20)
    invite_code: Optional[str] = Field(None, min_length=1, max_length=32)
    nickname: Optional[str] = Field(None, max_length=50)


class LoginRequest(BaseModel):
    phone: str
    password: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "Bearer"
    expires_in: int  # 秒


class AuthResponse(BaseModel):
    user: UserResponse
    token: str
    token_type: str = "Bearer"
    expires_in: int


class CreateSubordinateRequest(BaseModel):
    """快速创建下级用户"""
    phone: str = Field(..., pattern=PHONE_REGEX)
    password: str = Field(..., min_length=6, max_length=20)
    role: str = Field(..., pattern=ROLE_CODE_REGEX)
    nickname: Optional[str] = Field(None, max_length=50)


class MessageResponse(BaseModel):
    success: bool
    message: str
