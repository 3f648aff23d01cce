from datetime import datetime, timedelta

from jose import jwt

from common.roles import UserRole
from common.tokens import TokenCodec, subject_from, role_from


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def make_codec(clock=None, secret="unit-test-secret"):
    clock = clock or FakeClock(datetime(2026, 1, 1, 8, 0, 0))
    return TokenCodec(secret, default_ttl=timedelta(hours=24), clock=clock), clock


def test_issue_then_validate_returns_subject_and_role():
    codec, _ = make_codec()
    token = codec.issue(42, UserRole.LEADER)

    claims = codec.validate(token)
    assert claims is not None
    assert subject_from(claims) == 42
    assert role_from(claims) == UserRole.LEADER
    assert claims.expires_at - claims.issued_at == timedelta(hours=24)


def test_token_invalid_once_ttl_elapsed():
    codec, clock = make_codec()
    token = codec.issue(1, UserRole.AGENT, ttl=timedelta(minutes=10))

    clock.advance(minutes=9, seconds=59)
    assert codec.validate(token) is not None

    clock.advance(seconds=1)
    assert codec.validate(token) is None
    assert codec.is_expired(token)


def test_tampered_signature_rejected():
    codec, _ = make_codec()
    token = codec.issue(7, UserRole.SALES)
    header, payload, signature = token.split(".")

    middle = len(signature) // 2
    replacement = "A" if signature[middle] != "A" else "B"
    forged = f"{header}.{payload}.{signature[:middle]}{replacement}{signature[middle + 1:]}"

    assert codec.validate(forged) is None
    assert not codec.is_expired(forged)


def test_token_signed_with_other_secret_rejected():
    codec, clock = make_codec()
    other, _ = make_codec(clock, secret="another-secret")

    assert codec.validate(other.issue(1, UserRole.SUPER_ADMIN)) is None


def test_garbage_tokens_rejected():
    codec, _ = make_codec()
    assert codec.validate("") is None
    assert codec.validate("not-a-jwt") is None
    assert codec.validate("a.b.c") is None


def test_each_issue_has_unique_token_id():
    codec, _ = make_codec()
    first = codec.validate(codec.issue(1, UserRole.AGENT))
    second = codec.validate(codec.issue(1, UserRole.AGENT))
    assert first.token_id != second.token_id


def test_remaining_seconds():
    codec, clock = make_codec()
    claims = codec.validate(codec.issue(1, UserRole.AGENT, ttl=timedelta(seconds=100)))

    clock.advance(seconds=40)
    assert claims.remaining_seconds(clock()) == 60

    clock.advance(seconds=100)
    assert claims.remaining_seconds(clock()) == 0


def test_expiry_follows_codec_clock_not_wall_clock():
    # 时钟远早于当前时间：按墙钟早已过期，按编解码器时钟仍有效
    clock = FakeClock(datetime(2001, 1, 1, 0, 0, 0))
    codec = TokenCodec("unit-test-secret", default_ttl=timedelta(hours=1), clock=clock)
    token = codec.issue(42, UserRole.LEADER)

    claims = codec.validate(token)
    assert claims is not None
    assert claims.subject_id == 42
    assert not codec.is_expired(token)

    clock.advance(hours=1)
    assert codec.validate(token) is None
    assert codec.is_expired(token)


def test_token_missing_subject_rejected():
    codec, _ = make_codec()
    token = jwt.encode(
        {"role": "agent", "exp": 4102444800, "jti": "x", "type": "access"},
        "unit-test-secret",
        algorithm="HS256"
    )
    assert codec.validate(token) is None
