"""
统一配置
网关和所有下游服务读取同一份配置，保证 JWT 密钥和公开接口白名单一致
"""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings

# 开发环境默认密钥，生产环境必须通过环境变量 AUTH_JWT_SECRET 设置
_DEFAULT_JWT_SECRET = "dev_jwt_secret_key_for_local_development_only_change_in_production"


class SharedSettings(BaseSettings):
    """环境变量配置"""
    # JWT 配置（所有服务共用）
    jwt_secret: str = _DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 24 * 60

    # 公开接口白名单：精确路径 + 前缀
    public_paths: List[str] = [
        "/",
        "/health",
        "/api/auth/login",
        "/api/auth/register",
        "/api/auth/send-code",
        "/favicon.ico",
    ]
    public_path_prefixes: List[str] = [
        "/docs",
        "/redoc",
        "/openapi.json",
        "/api/invitation-codes/validate/",
    ]

    # 短信验证码
    sms_code_length: int = 6
    sms_code_expire_minutes: int = 5
    sms_send_interval_seconds: int = 60

    # 服务端口
    auth_host: str = "0.0.0.0"
    auth_port: int = 8001

    class Config:
        env_prefix = "AUTH_"
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> SharedSettings:
    """获取配置单例"""
    return SharedSettings()
