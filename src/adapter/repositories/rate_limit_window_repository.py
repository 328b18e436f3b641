from datetime import datetime
from uuid import uuid4

from sqlalchemy import delete, func
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlmodel import select, update
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.repositories.rate_limit_window_repository import IRateLimitWindowRepository
from src.domain.entities import EndpointCategory, IdentifierType, RateLimitWindow

_UPSERT_DIALECTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


class RateLimitWindowRepository(IRateLimitWindowRepository):
    """RateLimitWindow repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _window_conditions(
        self, identifier: str, endpoint_category: EndpointCategory, window_start: datetime
    ) -> list:
        return [
            RateLimitWindow.identifier == identifier,
            RateLimitWindow.endpoint_category == endpoint_category,
            RateLimitWindow.window_start == window_start,
        ]

    async def increment(
        self,
        identifier: str,
        identifier_type: IdentifierType,
        endpoint_category: EndpointCategory,
        window_start: datetime,
        window_end: datetime,
        now: datetime,
    ) -> int:
        """
        Create-or-increment in a single statement:
        INSERT ... ON CONFLICT DO UPDATE SET request_count = request_count + 1
        RETURNING request_count
        """
        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            return await self._increment_portable(
                identifier, identifier_type, endpoint_category, window_start, window_end, now
            )

        table = RateLimitWindow.__table__
        stmt = insert(table).values(
            id=uuid4(),
            identifier=identifier,
            identifier_type=identifier_type,
            endpoint_category=endpoint_category,
            window_start=window_start,
            window_end=window_end,
            request_count=1,
            limit_exceeded=False,
            last_request_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["identifier", "endpoint_category", "window_start"],
            set_={
                "request_count": table.c.request_count + 1,
                "last_request_at": now,
            },
        ).returning(table.c.request_count)

        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def _increment_portable(
        self,
        identifier: str,
        identifier_type: IdentifierType,
        endpoint_category: EndpointCategory,
        window_start: datetime,
        window_end: datetime,
        now: datetime,
    ) -> int:
        """Increment-in-place first; insert only when no row exists yet"""
        conditions = self._window_conditions(identifier, endpoint_category, window_start)
        bump = (
            update(RateLimitWindow)
            .where(*conditions)
            .values(request_count=RateLimitWindow.request_count + 1, last_request_at=now)
        )

        result = await self.session.execute(bump)
        if result.rowcount == 0:
            try:
                async with self.session.begin_nested():
                    self.session.add(
                        RateLimitWindow(
                            identifier=identifier,
                            identifier_type=identifier_type,
                            endpoint_category=endpoint_category,
                            window_start=window_start,
                            window_end=window_end,
                            request_count=1,
                            last_request_at=now,
                        )
                    )
                return 1
            except IntegrityError:
                # Lost the insert race; the row exists now
                await self.session.execute(bump)

        count = await self.session.execute(
            select(RateLimitWindow.request_count).where(*conditions)
        )
        return int(count.scalar_one())

    async def mark_exceeded(
        self, identifier: str, endpoint_category: EndpointCategory, window_start: datetime
    ) -> bool:
        """Compare-and-set on the sticky flag"""
        stmt = (
            update(RateLimitWindow)
            .where(
                *self._window_conditions(identifier, endpoint_category, window_start),
                RateLimitWindow.limit_exceeded == False,
            )
            .values(limit_exceeded=True)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount == 1

    async def count_violations_since(self, identifier: str, since: datetime) -> int:
        stmt = select(func.count()).select_from(RateLimitWindow).where(
            RateLimitWindow.identifier == identifier,
            RateLimitWindow.limit_exceeded == True,
            RateLimitWindow.last_request_at >= since,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one() or 0)

    async def delete_ended_before(self, cutoff: datetime) -> int:
        stmt = delete(RateLimitWindow).where(RateLimitWindow.window_end < cutoff)
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount
