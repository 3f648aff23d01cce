from datetime import datetime, timedelta

import pytest
from fastapi import Depends, FastAPI, Request
from httpx import ASGITransport, AsyncClient

from common.auth_filter import (
    Identity, PublicEndpoints, extract_bearer_token, get_identity, install_auth_filter, require_identity
)
from common.errors import register_exception_handlers
from common.roles import UserRole, ensure_can_access
from common.session_cache import InMemorySessionCache, revoked_token_key
from common.tokens import TokenCodec


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 5, 1, 9, 0, 0)

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codec(clock):
    return TokenCodec("filter-test-secret", default_ttl=timedelta(minutes=30), clock=clock)


@pytest.fixture
def cache():
    return InMemorySessionCache()


@pytest.fixture
def downstream(codec, cache):
    """模拟一个安装了同一过滤器的下游服务"""
    app = FastAPI()
    install_auth_filter(app, codec, PublicEndpoints(["/api/auth/login"], ["/public/"]), cache)
    register_exception_handlers(app)
    seen = {}

    @app.post("/api/auth/login")
    async def login(request: Request):
        seen["identity"] = get_identity(request)
        return {"reached": True}

    @app.get("/public/ping")
    async def ping(request: Request):
        seen["identity"] = get_identity(request)
        return {"pong": True}

    @app.get("/orders")
    async def orders(request: Request):
        identity = get_identity(request)
        seen["identity"] = identity
        seen["request"] = request
        if identity is None:
            return {"anonymous": True}
        return {"user": identity.subject_id, "role": identity.role.code}

    @app.get("/team/{owner_role}")
    async def team(owner_role: str, identity: Identity = Depends(require_identity)):
        ensure_can_access(identity.role, UserRole.from_code(owner_role))
        return {"ok": True}

    @app.get("/boom")
    async def boom(request: Request):
        seen["request"] = request
        raise RuntimeError("handler failed")

    app.state.seen = seen
    return app


def _client(app):
    return AsyncClient(transport=ASGITransport(app=app, raise_app_exceptions=False), base_url="http://test")


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_public_path_without_header_reaches_handler(downstream):
    async with _client(downstream) as client:
        response = await client.post("/api/auth/login")

    assert response.status_code == 200
    assert response.json() == {"reached": True}
    assert downstream.state.seen["identity"] is None


@pytest.mark.asyncio
async def test_public_prefix(downstream, codec):
    async with _client(downstream) as client:
        response = await client.get("/public/ping", headers=_bearer(codec.issue(1, UserRole.AGENT)))

    assert response.status_code == 200
    assert downstream.state.seen["identity"] is None


@pytest.mark.asyncio
async def test_valid_token_binds_identity(downstream, codec):
    async with _client(downstream) as client:
        response = await client.get("/orders", headers=_bearer(codec.issue(9, UserRole.LEADER)))

    assert response.json() == {"user": 9, "role": "leader"}
    # 请求结束后身份已清除
    assert downstream.state.seen["request"].state.identity is None


@pytest.mark.asyncio
async def test_expired_token_reaches_handler_without_identity(downstream, codec, clock):
    token = codec.issue(9, UserRole.LEADER)
    clock.now += timedelta(hours=1)

    async with _client(downstream) as client:
        anonymous = await client.get("/orders", headers=_bearer(token))
        protected = await client.get("/team/sales", headers=_bearer(token))

    assert anonymous.status_code == 200
    assert anonymous.json() == {"anonymous": True}
    assert protected.status_code == 401
    assert protected.json()["data"]["error_code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_malformed_headers_degrade_to_anonymous(downstream):
    async with _client(downstream) as client:
        for header in ("Basic abc", "Bearer", "Bearer not.a.token", "bearer lowercase"):
            response = await client.get("/orders", headers={"Authorization": header})
            assert response.status_code == 200
            assert response.json() == {"anonymous": True}


@pytest.mark.asyncio
async def test_revoked_token_treated_as_anonymous(downstream, codec, cache):
    token = codec.issue(3, UserRole.SALES)
    cache.set(revoked_token_key(codec.validate(token).token_id), "3", 600)

    async with _client(downstream) as client:
        response = await client.get("/orders", headers=_bearer(token))

    assert response.json() == {"anonymous": True}


@pytest.mark.asyncio
async def test_role_check_after_filter(downstream, codec):
    token = codec.issue(3, UserRole.SALES)

    async with _client(downstream) as client:
        allowed = await client.get("/team/agent", headers=_bearer(token))
        denied = await client.get("/team/leader", headers=_bearer(token))

    assert allowed.status_code == 200
    assert denied.status_code == 403
    assert denied.json()["data"]["error_code"] == "PERMISSION_DENIED"


@pytest.mark.asyncio
async def test_identity_cleared_when_handler_fails(downstream, codec):
    async with _client(downstream) as client:
        response = await client.get("/boom", headers=_bearer(codec.issue(1, UserRole.AGENT)))

    assert response.status_code == 500
    assert response.json()["message"] == "系统内部错误"
    assert "handler failed" not in response.text
    assert downstream.state.seen["request"].state.identity is None


def test_options_always_public():
    endpoints = PublicEndpoints(["/login"], [])
    assert endpoints.is_public("OPTIONS", "/orders")
    assert endpoints.is_public("GET", "/login")
    assert not endpoints.is_public("GET", "/orders")


def test_extract_bearer_token():
    assert extract_bearer_token("Bearer abc.def") == "abc.def"
    assert extract_bearer_token("Bearer   ") is None
    assert extract_bearer_token(None) is None
    assert extract_bearer_token("Token abc") is None


class BrokenCodec(TokenCodec):
    def validate(self, token):
        raise RuntimeError("codec failure")


@pytest.mark.asyncio
async def test_filter_internal_error_degrades_to_anonymous(cache):
    app = FastAPI()
    install_auth_filter(app, BrokenCodec("broken-secret"), PublicEndpoints(), cache)

    @app.get("/orders")
    async def orders(request: Request):
        return {"anonymous": get_identity(request) is None}

    async with _client(app) as client:
        response = await client.get("/orders", headers=_bearer("any.token.value"))

    assert response.status_code == 200
    assert response.json() == {"anonymous": True}
