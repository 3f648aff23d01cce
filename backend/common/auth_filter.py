"""
认证过滤器
网关和每个下游服务都安装同一个过滤器：
- 公开接口直接放行
- 解析 Bearer Token，校验通过后把身份绑定到 request.state.identity
- 缺少或无效的 Token 不拦截请求，由下游接口自行返回 401/403
- 请求结束（无论成功还是异常）后清除身份
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from fastapi import FastAPI, Request

from common.errors import AuthenticationFailure
from common.roles import UserRole
from common.session_cache import SessionCache, revoked_token_key
from common.settings import SharedSettings, get_settings
from common.tokens import TokenCodec

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Identity:
    """当前请求的身份"""
    subject_id: int
    role: UserRole
    token_id: str
    expires_at: datetime
    token: str


class PublicEndpoints:
    """公开接口白名单"""

    def __init__(self, exact_paths: Iterable[str] = (), prefixes: Iterable[str] = ()):
        self.exact_paths = frozenset(exact_paths)
        self.prefixes = tuple(prefixes)

    @classmethod
    def from_settings(cls, settings: Optional[SharedSettings] = None) -> "PublicEndpoints":
        settings = settings or get_settings()
        return cls(settings.public_paths, settings.public_path_prefixes)

    def is_public(self, method: str, path: str) -> bool:
        # CORS 预检
        if method.upper() == "OPTIONS":
            return True
        if path in self.exact_paths:
            return True
        return any(path.startswith(prefix) for prefix in self.prefixes)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """从 Authorization 头中提取 token"""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


@contextmanager
def bind_identity(request: Request, identity: Optional[Identity]):
    """在请求范围内绑定身份，退出时无条件清除"""
    request.state.identity = identity
    try:
        yield identity
    finally:
        request.state.identity = None


class AuthFilter:
    """认证过滤器（作为 http 中间件使用）"""

    def __init__(
        self,
        codec: TokenCodec,
        public_endpoints: Optional[PublicEndpoints] = None,
        revocation_cache: Optional[SessionCache] = None
    ):
        self.codec = codec
        self.public_endpoints = public_endpoints or PublicEndpoints.from_settings()
        self.revocation_cache = revocation_cache

    def resolve_identity(self, request: Request) -> Optional[Identity]:
        """解析请求身份，任何失败都返回 None"""
        try:
            token = extract_bearer_token(request.headers.get("Authorization"))
            if not token:
                logger.debug(f"请求未携带 Bearer Token: {request.url.path}")
                return None

            claims = self.codec.validate(token)
            if not claims:
                logger.warning(f"Token无效或已过期: {request.url.path}")
                return None

            if self.revocation_cache and self.revocation_cache.exists(revoked_token_key(claims.token_id)):
                logger.warning(f"Token已注销: userId={claims.subject_id}, path={request.url.path}")
                return None

            return Identity(
                subject_id=claims.subject_id,
                role=claims.role,
                token_id=claims.token_id,
                expires_at=claims.expires_at,
                token=token
            )
        except Exception as e:
            logger.error(f"Token解析异常: {e}")
            return None

    async def __call__(self, request: Request, call_next):
        if self.public_endpoints.is_public(request.method, request.url.path):
            with bind_identity(request, None):
                return await call_next(request)

        identity = self.resolve_identity(request)
        if identity:
            logger.debug(
                f"用户认证成功: userId={identity.subject_id}, role={identity.role.code}, "
                f"path={request.url.path}"
            )

        with bind_identity(request, identity):
            return await call_next(request)


def install_auth_filter(
    app: FastAPI,
    codec: TokenCodec,
    public_endpoints: Optional[PublicEndpoints] = None,
    revocation_cache: Optional[SessionCache] = None
) -> AuthFilter:
    """为服务安装认证过滤器"""
    auth_filter = AuthFilter(codec, public_endpoints, revocation_cache)
    app.middleware("http")(auth_filter)
    return auth_filter


# ---------- 接口层依赖 ----------

def get_identity(request: Request) -> Optional[Identity]:
    """获取当前身份（可选）"""
    return getattr(request.state, "identity", None)


def require_identity(request: Request) -> Identity:
    """要求已登录"""
    identity = get_identity(request)
    if identity is None:
        raise AuthenticationFailure()
    return identity
