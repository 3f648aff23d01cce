"""
Auth Service Configuration
共享配置从 common.settings 读取，本服务独有的配置在这里定义
"""
import os
from pathlib import Path

from common.roles import UserRole
from common.settings import get_settings

_settings = get_settings()

# 基础路径
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"

# 数据库配置
DATABASE_URL = os.getenv("AUTH_DATABASE_URL", f"sqlite+aiosqlite:///{DATA_DIR}/auth.db")

# 密码配置
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 20
BCRYPT_ROUNDS = int(os.getenv("AUTH_BCRYPT_ROUNDS", "12"))

# 手机号格式
PHONE_PATTERN = r"^1[3-9]\d{9}$"

# 短信验证码配置
SMS_CODE_LENGTH = _settings.sms_code_length
SMS_CODE_EXPIRE_MINUTES = _settings.sms_code_expire_minutes
SMS_SEND_INTERVAL_SECONDS = _settings.sms_send_interval_seconds

# 邀请码配置
INVITE_CODE_LENGTH = 12
DEFAULT_INVITE_CODE_EXPIRE_DAYS = 7
DEFAULT_REGISTER_ROLE = UserRole.AGENT

# CORS配置
CORS_ORIGINS = [
    "http://localhost",
    "http://localhost:80",
    "http://127.0.0.1",
    "http://127.0.0.1:80",
    "http://localhost:5173",
]

# 初始超管配置
INITIAL_ADMIN_PHONE = os.getenv("AUTH_ADMIN_PHONE", "13800000001")
INITIAL_ADMIN_PASSWORD = os.getenv("AUTH_ADMIN_PASSWORD", "admin123456")
INITIAL_ADMIN_NICKNAME = os.getenv("AUTH_ADMIN_NICKNAME", "超级管理员")

# 服务端口配置
AUTH_HOST = _settings.auth_host
AUTH_PORT = _settings.auth_port
