import asyncio
from datetime import timedelta

import pytest

from common.errors import CodeExhausted, CodeExpired, CodeInactive, CodeNotFound
from common.roles import UserRole
from common.utils import utcnow
from app.models.invitation import CodeState
from app.services.invitation_service import invitation_ledger


async def _create_code(session_factory, owner_id, **kwargs):
    async with session_factory() as session:
        code = await invitation_ledger.create(session, owner_id, **kwargs)
        await session.commit()
        return code.code


async def _redeem(session_factory, code, now=None):
    async with session_factory() as session:
        try:
            outcome = await invitation_ledger.redeem(session, code, now)
            await session.commit()
            return outcome
        except Exception:
            await session.rollback()
            raise


async def _usage(session_factory, code):
    async with session_factory() as session:
        return (await invitation_ledger.get_by_code(session, code)).usage_count


@pytest.mark.asyncio
async def test_create_code_defaults(session_factory, make_user):
    owner = await make_user("13800000001", UserRole.LEADER)
    async with session_factory() as session:
        code = await invitation_ledger.create(session, owner.id, target_role=UserRole.SALES, max_usage=5)
        await session.commit()

    assert len(code.code) == 12
    assert code.usage_count == 0
    assert code.target_role == UserRole.SALES
    assert code.state() == CodeState.AVAILABLE
    assert code.expires_at is not None


@pytest.mark.asyncio
async def test_redeem_returns_inviter_and_role(session_factory, make_user):
    owner = await make_user("13800000001", UserRole.DIRECTOR)
    code = await _create_code(session_factory, owner.id, target_role=UserRole.LEADER)

    outcome = await _redeem(session_factory, code)

    assert outcome.inviter_id == owner.id
    assert outcome.target_role == UserRole.LEADER
    assert outcome.usage_count == 1


@pytest.mark.asyncio
async def test_concurrent_redeem_of_single_use_code(session_factory, make_user):
    owner = await make_user("13800000001", UserRole.SALES)
    code = await _create_code(session_factory, owner.id, max_usage=1)

    results = await asyncio.gather(
        _redeem(session_factory, code),
        _redeem(session_factory, code),
        return_exceptions=True
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], CodeExhausted)
    assert await _usage(session_factory, code) == 1


@pytest.mark.asyncio
async def test_expired_code_rejected_even_with_uses_left(session_factory, make_user):
    owner = await make_user("13800000001", UserRole.SALES)
    code = await _create_code(session_factory, owner.id, max_usage=10, expires_days=1)

    with pytest.raises(CodeExpired):
        await _redeem(session_factory, code, now=utcnow() + timedelta(days=2))

    assert await _usage(session_factory, code) == 0


@pytest.mark.asyncio
async def test_unlimited_code_redeems_repeatedly(session_factory, make_user):
    owner = await make_user("13800000001", UserRole.SALES)
    code = await _create_code(session_factory, owner.id, max_usage=None, expires_days=None)

    counts = [(await _redeem(session_factory, code)).usage_count for _ in range(5)]

    assert counts == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_last_use_then_exhausted(session_factory, make_user):
    owner = await make_user("13800000001", UserRole.SALES)
    code = await _create_code(session_factory, owner.id, max_usage=3)
    await _redeem(session_factory, code)
    await _redeem(session_factory, code)

    outcome = await _redeem(session_factory, code)
    assert outcome.usage_count == 3

    with pytest.raises(CodeExhausted):
        await _redeem(session_factory, code)
    assert await _usage(session_factory, code) == 3


@pytest.mark.asyncio
async def test_unknown_code(session_factory):
    with pytest.raises(CodeNotFound):
        await _redeem(session_factory, "NOSUCHCODE22")


@pytest.mark.asyncio
async def test_deactivate_is_idempotent_and_blocks_redeem(session_factory, make_user):
    owner = await make_user("13800000001", UserRole.SALES)
    code = await _create_code(session_factory, owner.id)

    async with session_factory() as session:
        first = await invitation_ledger.deactivate(session, code)
        second = await invitation_ledger.deactivate(session, code)
        await session.commit()
    assert first.state() == CodeState.INACTIVE
    assert second.state() == CodeState.INACTIVE

    with pytest.raises(CodeInactive):
        await _redeem(session_factory, code)

    async with session_factory() as session:
        with pytest.raises(CodeNotFound):
            await invitation_ledger.deactivate(session, "NOSUCHCODE22")


@pytest.mark.asyncio
async def test_check_does_not_consume(session_factory, make_user):
    owner = await make_user("13800000001", UserRole.SALES)
    code = await _create_code(session_factory, owner.id, max_usage=1)

    async with session_factory() as session:
        await invitation_ledger.check(session, code)
        await invitation_ledger.check(session, code)

    assert await _usage(session_factory, code) == 0
