"""
JWT Token 编解码
所有服务共享同一个签名密钥，Token 自包含身份信息，校验时无需查询会话
"""
import calendar
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from jose import jwt, JWTError

from common.roles import UserRole
from common.settings import get_settings
from common.utils import utcnow

logger = logging.getLogger(__name__)

TOKEN_TYPE = "access"


@dataclass(frozen=True)
class TokenClaims:
    """已校验通过的 Token 内容"""
    subject_id: int
    role: UserRole
    issued_at: datetime
    expires_at: datetime
    token_id: str

    def remaining_seconds(self, now: datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds()))


def _timestamp(value: datetime) -> int:
    return calendar.timegm(value.utctimetuple())


def _from_timestamp(value: int) -> datetime:
    return datetime(1970, 1, 1) + timedelta(seconds=int(value))


class TokenCodec:
    """Token 签发与校验"""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        default_ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        if not secret_key:
            raise ValueError("JWT 密钥不能为空")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._default_ttl = default_ttl or timedelta(hours=24)
        self._clock = clock

    @property
    def expires_in(self) -> int:
        """默认有效期（秒）"""
        return int(self._default_ttl.total_seconds())

    def now(self) -> datetime:
        return self._clock()

    def issue(self, subject_id: int, role: UserRole, ttl: Optional[timedelta] = None) -> str:
        """签发访问令牌"""
        issued_at = self._clock()
        expires_at = issued_at + (ttl if ttl is not None else self._default_ttl)

        payload = {
            "sub": str(subject_id),
            "role": UserRole(role).code,
            "iat": _timestamp(issued_at),
            "exp": _timestamp(expires_at),
            "jti": uuid.uuid4().hex,
            "type": TOKEN_TYPE,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def validate(self, token: str) -> Optional[TokenClaims]:
        """
        校验令牌
        返回: TokenClaims 或 None(签名错误、格式错误、已过期)
        """
        if not token or not isinstance(token, str):
            return None

        try:
            # 先验签再读取内容；过期时间用本地时钟判断
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False}
            )
        except JWTError as e:
            logger.debug(f"JWT 解码失败: {e}")
            return None

        if payload.get("type") != TOKEN_TYPE:
            return None

        try:
            claims = TokenClaims(
                subject_id=int(payload["sub"]),
                role=UserRole.from_code(payload["role"]),
                issued_at=_from_timestamp(payload.get("iat", 0)),
                expires_at=_from_timestamp(payload["exp"]),
                token_id=str(payload["jti"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"JWT 内容不完整: {e}")
            return None

        if self._clock() >= claims.expires_at:
            return None

        return claims

    def is_expired(self, token: str) -> bool:
        """签名有效但已过期"""
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False}
            )
            return self._clock() >= _from_timestamp(payload["exp"])
        except (JWTError, KeyError, TypeError, ValueError):
            return False


def subject_from(claims: TokenClaims) -> int:
    return claims.subject_id


def role_from(claims: TokenClaims) -> UserRole:
    return claims.role


def create_codec(clock: Callable[[], datetime] = utcnow) -> TokenCodec:
    """按统一配置创建编解码器"""
    settings = get_settings()
    return TokenCodec(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        default_ttl=timedelta(minutes=settings.access_token_expire_minutes),
        clock=clock
    )
