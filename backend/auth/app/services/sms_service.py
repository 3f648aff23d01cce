"""
短信发送服务
实际短信通道由外部服务提供，开发环境只把验证码写入日志
"""
import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class SmsSender(ABC):
    """短信发送接口"""

    @abstractmethod
    def send_verification_code(self, phone: str, code: str, expire_minutes: int) -> bool:
        """
        发送验证码短信

        Args:
            phone: 手机号
            code: 验证码
            expire_minutes: 验证码有效期（分钟）

        Returns:
            是否发送成功
        """


class LoggingSmsSender(SmsSender):
    """开发用短信通道：验证码输出到日志"""

    def send_verification_code(self, phone: str, code: str, expire_minutes: int) -> bool:
        logger.info(f"[MockSMS] 向 {phone} 发送注册验证码：{code}（有效期 {expire_minutes} 分钟）")
        return True


# 创建单例实例
sms_sender = LoggingSmsSender()
