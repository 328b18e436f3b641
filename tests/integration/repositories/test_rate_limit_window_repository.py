"""
Integration tests for the rate limit window store
"""

from datetime import datetime, timedelta

import pytest

from src.domain.entities import EndpointCategory, IdentifierType

START = datetime(2024, 3, 1, 10, 0, 0)
END = START + timedelta(minutes=15)


async def _increment(uow, identifier="198.51.100.4", category=EndpointCategory.auth, start=START):
    return await uow.rate_limit_windows.increment(
        identifier,
        IdentifierType.origin,
        category,
        start,
        start + timedelta(minutes=15),
        start + timedelta(seconds=30),
    )


@pytest.mark.asyncio
async def test_increment_creates_then_counts(uow):
    """Test the first request creates the window and later ones increment it"""
    counts = [await _increment(uow) for _ in range(4)]
    await uow.commit()

    assert counts == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_windows_keyed_by_identifier_category_and_start(uow):
    assert await _increment(uow) == 1
    assert await _increment(uow, category=EndpointCategory.read) == 1
    assert await _increment(uow, identifier="203.0.113.7") == 1
    assert await _increment(uow, start=END) == 1
    assert await _increment(uow) == 2


@pytest.mark.asyncio
async def test_mark_exceeded_is_compare_and_set(uow):
    """Test only the first caller observes the transition"""
    await _increment(uow)

    assert await uow.rate_limit_windows.mark_exceeded("198.51.100.4", EndpointCategory.auth, START) is True
    assert await uow.rate_limit_windows.mark_exceeded("198.51.100.4", EndpointCategory.auth, START) is False


@pytest.mark.asyncio
async def test_count_violations_since(uow):
    for offset in range(4):
        start = START + timedelta(minutes=15 * offset)
        await _increment(uow, start=start)
        if offset != 2:
            await uow.rate_limit_windows.mark_exceeded("198.51.100.4", EndpointCategory.auth, start)
    await _increment(uow, identifier="203.0.113.7")
    await uow.rate_limit_windows.mark_exceeded("203.0.113.7", EndpointCategory.auth, START)

    assert await uow.rate_limit_windows.count_violations_since("198.51.100.4", START) == 3
    assert (
        await uow.rate_limit_windows.count_violations_since(
            "198.51.100.4", START + timedelta(minutes=15)
        )
        == 2
    )


@pytest.mark.asyncio
async def test_delete_ended_before(uow):
    await _increment(uow, start=START)
    await _increment(uow, start=END)

    deleted = await uow.rate_limit_windows.delete_ended_before(END + timedelta(minutes=1))

    assert deleted == 1
    assert await _increment(uow, start=END) == 2
    assert await _increment(uow, start=START) == 1
