from typing import Callable

from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from src.adapter.repositories.audit_event_repository import AuditEventRepository
from src.adapter.repositories.rate_limit_window_repository import RateLimitWindowRepository
from src.adapter.repositories.session_repository import SessionRepository
from src.app.services.unit_of_work import UnitOfWork


class SqlAlchemyUnitOfWork(UnitOfWork):
    """SQLAlchemy implementation of UnitOfWork pattern"""

    def __init__(self, session: AsyncSession, owns_session: bool = False):
        self.session = session
        self._owns_session = owns_session

    async def __aenter__(self):
        # Initialize all repositories with the session
        self.audit_events = AuditEventRepository(self.session)
        self.sessions = SessionRepository(self.session)
        self.rate_limit_windows = RateLimitWindowRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            await self.rollback()
        if self._owns_session:
            # Rows already loaded stay readable once detached
            self.session.expunge_all()
            await self.session.close()

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()


def unit_of_work_factory(session_factory: sessionmaker) -> Callable[[], UnitOfWork]:
    """
    Build a factory yielding a fresh, self-closing unit of work per call.

    Telemetry writes run in their own transaction so they commit (or fail)
    independently of the business request that triggered them.
    """

    def factory() -> UnitOfWork:
        return SqlAlchemyUnitOfWork(session_factory(), owns_session=True)

    return factory
