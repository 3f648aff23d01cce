"""
会话/验证码缓存
键值存储，每个键独立过期时间，用于短信验证码和登出黑名单
"""
import time
from abc import ABC, abstractmethod
from threading import Lock
from typing import Optional

SMS_CODE_PREFIX = "sms:code:"
SMS_LIMIT_PREFIX = "sms:limit:"
TOKEN_BLACKLIST_PREFIX = "token:blacklist:"


def sms_code_key(phone: str) -> str:
    return SMS_CODE_PREFIX + phone


def sms_limit_key(phone: str) -> str:
    return SMS_LIMIT_PREFIX + phone


def revoked_token_key(token_id: str) -> str:
    return TOKEN_BLACKLIST_PREFIX + token_id


class SessionCache(ABC):
    """缓存接口"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


class InMemorySessionCache(SessionCache):
    """进程内缓存实现"""

    def __init__(self, clock=time.monotonic):
        # {key: (value, expire_time)}
        self._items: dict = {}
        self._lock = Lock()
        self._clock = clock

    def _cleanup_expired(self):
        """清理过期键"""
        current_time = self._clock()
        with self._lock:
            expired_keys = [
                key for key, (_, expire_time) in self._items.items()
                if current_time >= expire_time
            ]
            for key in expired_keys:
                del self._items[key]

    def _get_item(self, key: str):
        """读取单个键，已过期则顺便删除（调用方持有锁）"""
        item = self._items.get(key)
        if item and self._clock() >= item[1]:
            del self._items[key]
            return None
        return item

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._get_item(key)
            return item[0] if item else None

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        # 顺带清理所有过期键
        self._cleanup_expired()
        with self._lock:
            self._items[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def ttl(self, key: str) -> Optional[float]:
        """剩余有效秒数，不存在返回 None"""
        with self._lock:
            item = self._get_item(key)
            if not item:
                return None
            return item[1] - self._clock()

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


# 单例实例
session_cache = InMemorySessionCache()
