"""
Integration tests for the security session store
"""

from datetime import datetime, timedelta

import pytest

from src.domain.entities import SecuritySession

NOW = datetime(2024, 3, 1, 10, 0, 0)


def _session(token, user_id="user-1", **overrides):
    values = dict(
        session_token=token,
        user_id=user_id,
        created_at=NOW,
        last_activity_at=NOW,
        expires_at=NOW + timedelta(hours=24),
    )
    values.update(overrides)
    return SecuritySession(**values)


@pytest.mark.asyncio
async def test_create_and_get_active(uow):
    await uow.sessions.create(_session("tok-1"))

    found = await uow.sessions.get_active_by_token("tok-1")

    assert found is not None
    assert found.user_id == "user-1"
    assert await uow.sessions.get_active_by_token("tok-2") is None


@pytest.mark.asyncio
async def test_token_reusable_after_termination(uow):
    """Test one active row per token while terminated rows are kept"""
    await uow.sessions.create(_session("tok-1"))
    assert await uow.sessions.terminate_by_token("tok-1", "superseded", NOW) == 1

    await uow.sessions.create(_session("tok-1"))

    found = await uow.sessions.get_active_by_token("tok-1")
    assert found is not None
    assert found.termination_reason is None


@pytest.mark.asyncio
async def test_touch_only_writes_stale_rows(uow):
    await uow.sessions.create(_session("tok-1"))

    later = NOW + timedelta(seconds=30)
    assert await uow.sessions.touch("tok-1", later, stale_before=later - timedelta(seconds=60)) is False

    later = NOW + timedelta(seconds=90)
    assert await uow.sessions.touch("tok-1", later, stale_before=later - timedelta(seconds=60)) is True


@pytest.mark.asyncio
async def test_terminate_records_reason(uow, db_session):
    created = await uow.sessions.create(_session("tok-1"))

    assert await uow.sessions.terminate_by_token("tok-1", "logout", NOW) == 1
    assert await uow.sessions.terminate_by_token("tok-1", "logout", NOW) == 0

    await db_session.refresh(created)
    assert created.is_active is False
    assert created.termination_reason == "logout"
    assert created.terminated_at == NOW


@pytest.mark.asyncio
async def test_terminate_all_except_current(uow):
    for token in ("tok-1", "tok-2", "tok-3"):
        await uow.sessions.create(_session(token))
    await uow.sessions.create(_session("other", user_id="user-2"))

    count = await uow.sessions.terminate_all_by_user_id("user-1", "forced", NOW, except_token="tok-2")

    assert count == 2
    remaining = await uow.sessions.list_active_by_user_id("user-1", NOW)
    assert [s.session_token for s in remaining] == ["tok-2"]
    assert await uow.sessions.count_active_by_user_id("user-2", NOW) == 1


@pytest.mark.asyncio
async def test_expired_sessions_not_counted(uow):
    await uow.sessions.create(_session("live"))
    await uow.sessions.create(_session("stale", expires_at=NOW - timedelta(minutes=1)))

    assert await uow.sessions.count_active_by_user_id("user-1", NOW) == 1
    assert [s.session_token for s in await uow.sessions.list_active_by_user_id("user-1", NOW)] == ["live"]

    assert await uow.sessions.expire_before(NOW) == 1
    assert await uow.sessions.get_active_by_token("stale") is None
