"""
验证码服务
生成、存储和验证短信验证码，存储在会话缓存中
"""
import hmac
import logging
import secrets
from typing import Optional

from common.errors import InvalidPhone, RateLimited, SmsDeliveryFailed
from common.session_cache import SessionCache, session_cache, sms_code_key, sms_limit_key
from app.config import SMS_CODE_LENGTH, SMS_CODE_EXPIRE_MINUTES, SMS_SEND_INTERVAL_SECONDS
from app.services.sms_service import SmsSender, sms_sender
from app.utils.phone import is_valid_phone, mask_phone

logger = logging.getLogger(__name__)


class VerificationService:
    """验证码服务"""

    def __init__(self, cache: SessionCache, sender: SmsSender):
        self.cache = cache
        self.sender = sender

    def _generate_code(self, length: int = SMS_CODE_LENGTH) -> str:
        """生成随机数字验证码"""
        return "".join(str(secrets.randbelow(10)) for _ in range(length))

    def send_code(self, phone: str) -> str:
        """
        发送验证码

        Returns:
            生成的验证码（仅供调用方记录/测试使用，不返回给客户端）
        """
        if not is_valid_phone(phone):
            raise InvalidPhone()

        # 频率限制
        if self.cache.exists(sms_limit_key(phone)):
            raise RateLimited("验证码发送太频繁，请稍后再试")

        code = self._generate_code()
        if not self.sender.send_verification_code(phone, code, SMS_CODE_EXPIRE_MINUTES):
            raise SmsDeliveryFailed()

        self.cache.set(sms_code_key(phone), code, SMS_CODE_EXPIRE_MINUTES * 60)
        self.cache.set(sms_limit_key(phone), "1", SMS_SEND_INTERVAL_SECONDS)

        logger.info(f"验证码已发送: {mask_phone(phone)}")
        return code

    def verify_code(self, phone: Optional[str], code: Optional[str], consume: bool = True) -> bool:
        """验证验证码，consume 为真时验证成功后删除"""
        if not phone or not code:
            return False

        key = sms_code_key(phone)
        stored = self.cache.get(key)
        if stored is None:
            logger.warning(f"验证码已过期或不存在: {mask_phone(phone)}")
            return False

        if not hmac.compare_digest(stored.encode(), code.encode()):
            logger.warning(f"验证码错误: {mask_phone(phone)}")
            return False

        if consume:
            self.cache.delete(key)
        return True

    def discard_code(self, phone: str) -> None:
        """作废验证码"""
        self.cache.delete(sms_code_key(phone))


# 创建单例实例
verification_service = VerificationService(session_cache, sms_sender)
