from common.session_cache import InMemorySessionCache, revoked_token_key


class FakeMonotonic:
    def __init__(self):
        self.value = 1000.0

    def __call__(self):
        return self.value


def test_key_expires_after_ttl():
    clock = FakeMonotonic()
    cache = InMemorySessionCache(clock=clock)
    cache.set("sms:code:13800000000", "123456", 300)

    clock.value += 299
    assert cache.get("sms:code:13800000000") == "123456"
    assert cache.ttl("sms:code:13800000000") == 1

    clock.value += 1
    assert cache.get("sms:code:13800000000") is None
    assert not cache.exists("sms:code:13800000000")


def test_non_positive_ttl_not_stored():
    cache = InMemorySessionCache()
    cache.set(revoked_token_key("abc"), "1", 0)
    assert not cache.exists(revoked_token_key("abc"))


def test_delete():
    cache = InMemorySessionCache()
    cache.set("k", "v", 60)
    cache.delete("k")
    cache.delete("missing")
    assert cache.get("k") is None


def test_read_expires_only_the_requested_key():
    clock = FakeMonotonic()
    cache = InMemorySessionCache(clock=clock)
    cache.set("a", "1", 10)
    cache.set("b", "2", 10)

    clock.value += 10
    assert cache.get("a") is None
    assert "a" not in cache._items
    # 读取不扫描其他键
    assert "b" in cache._items

    cache.set("c", "3", 10)
    assert "b" not in cache._items
    assert cache.get("c") == "3"
