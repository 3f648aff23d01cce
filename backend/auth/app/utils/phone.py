"""
手机号工具
"""
import re

from app.config import PHONE_PATTERN

_PHONE_RE = re.compile(PHONE_PATTERN)


def is_valid_phone(phone: str) -> bool:
    """验证手机号格式"""
    return bool(phone) and _PHONE_RE.fullmatch(phone) is not None


def mask_phone(phone: str) -> str:
    """日志中隐藏手机号中间四位"""
    if not phone or len(phone) < 11:
        return phone
    return f"{phone[:3]}****{phone[7:]}"
