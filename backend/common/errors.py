"""
统一错误定义
业务异常带稳定的错误码，由 register_exception_handlers 转换为统一响应格式，
内部异常信息（堆栈、SQL 错误）不会返回给客户端
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """业务异常基类"""
    status_code = 400
    error_code = "BAD_REQUEST"
    default_message = "请求参数错误"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------- 认证失败 (401) ----------

class AuthenticationFailure(AuthError):
    status_code = 401
    error_code = "UNAUTHORIZED"
    default_message = "未登录或token已过期"


class InvalidCredentials(AuthenticationFailure):
    error_code = "AUTH_001"
    default_message = "手机号或密码错误"


class TokenExpired(AuthenticationFailure):
    error_code = "AUTH_004"
    default_message = "Token已过期"


class TokenInvalid(AuthenticationFailure):
    error_code = "AUTH_005"
    default_message = "Token无效"


# ---------- 授权失败 (403) ----------

class AuthorizationFailure(AuthError):
    status_code = 403
    error_code = "FORBIDDEN"
    default_message = "权限不足"


class PermissionDenied(AuthorizationFailure):
    error_code = "PERMISSION_DENIED"
    default_message = "权限被拒绝"


class AccountBanned(AuthorizationFailure):
    error_code = "AUTH_003"
    default_message = "账号已被禁用"


# ---------- 参数校验失败 ----------

class ValidationFailure(AuthError):
    status_code = 400
    error_code = "BAD_REQUEST"
    default_message = "请求参数错误"


class InvalidPhone(ValidationFailure):
    error_code = "USER_005"
    default_message = "手机号格式不正确"


class InvalidVerificationCode(ValidationFailure):
    error_code = "AUTH_008"
    default_message = "验证码错误或已过期"


class WeakPassword(ValidationFailure):
    status_code = 422
    error_code = "AUTH_010"
    default_message = "密码强度不足"


class RateLimited(ValidationFailure):
    status_code = 429
    error_code = "AUTH_007"
    default_message = "操作过于频繁"


# ---------- 冲突 (409) ----------

class ConflictFailure(AuthError):
    status_code = 409
    error_code = "CONFLICT"
    default_message = "资源冲突"


class PhoneAlreadyExists(ConflictFailure):
    error_code = "USER_004"
    default_message = "该手机号已注册"


class CodeInactive(ConflictFailure):
    error_code = "INVITE_003"
    default_message = "邀请码已停用"


class CodeExpired(ConflictFailure):
    error_code = "INVITE_002"
    default_message = "邀请码已过期"


class CodeExhausted(ConflictFailure):
    error_code = "INVITE_006"
    default_message = "邀请码使用次数已达上限"


# ---------- 不存在 (404) ----------

class NotFoundFailure(AuthError):
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "资源不存在"


class UserNotFound(NotFoundFailure):
    error_code = "USER_001"
    default_message = "用户不存在"


class CodeNotFound(NotFoundFailure):
    error_code = "INVITE_001"
    default_message = "邀请码无效或不存在"


# ---------- 外部服务 ----------

class SmsDeliveryFailed(AuthError):
    status_code = 502
    error_code = "COMMON_005"
    default_message = "验证码发送失败，请稍后重试"


def error_body(status_code: int, error_code: str, message: str) -> dict:
    """统一错误响应体"""
    return {
        "code": status_code,
        "success": False,
        "message": message,
        "data": {"error_code": error_code},
        "timestamp": int(time.time() * 1000),
    }


def register_exception_handlers(app: FastAPI) -> None:
    """注册全局异常处理"""

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.status_code, exc.error_code, exc.message)
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"未处理的异常: {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content=error_body(500, "INTERNAL_SERVER_ERROR", "系统内部错误")
        )
