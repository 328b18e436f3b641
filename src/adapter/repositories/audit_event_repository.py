from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.repositories.audit_event_repository import IAuditEventRepository
from src.domain.entities import AuditCategory, AuditEvent, AuditSeverity


class AuditEventRepository(IAuditEventRepository):
    """AuditEvent repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, audit_event: AuditEvent) -> AuditEvent:
        """Append a new audit event"""
        self.session.add(audit_event)
        await self.session.flush()
        await self.session.refresh(audit_event)
        return audit_event

    async def search(
        self,
        actor_id: Optional[str] = None,
        event_type: Optional[str] = None,
        category: Optional[AuditCategory] = None,
        severity: Optional[AuditSeverity] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[AuditEvent], int]:
        """
        Filtered search. The page and the total share one WHERE clause so the
        count always describes the same set the page was cut from.
        """
        conditions = []
        if actor_id:
            conditions.append(AuditEvent.actor_id == actor_id)
        if event_type:
            conditions.append(AuditEvent.event_type == event_type)
        if category:
            conditions.append(AuditEvent.category == category)
        if severity:
            conditions.append(AuditEvent.severity == severity)
        if start_date:
            conditions.append(AuditEvent.created_at >= start_date)
        if end_date:
            conditions.append(AuditEvent.created_at <= end_date)

        stmt = (
            select(AuditEvent)
            .where(*conditions)
            .order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.exec(stmt)
        events = list(result.all())

        count_stmt = select(func.count()).select_from(AuditEvent).where(*conditions)
        count_result = await self.session.exec(count_stmt)
        total = count_result.one()

        return events, int(total or 0)

    async def count_by_type_and_severity(
        self, since: datetime
    ) -> List[Tuple[str, AuditSeverity, int]]:
        """Single grouped aggregation over the trailing window"""
        stmt = (
            select(AuditEvent.event_type, AuditEvent.severity, func.count())
            .where(AuditEvent.created_at >= since)
            .group_by(AuditEvent.event_type, AuditEvent.severity)
        )
        result = await self.session.exec(stmt)
        return [(row[0], row[1], int(row[2])) for row in result.all()]

    async def exists_for_target_since(
        self, event_type: str, target_id: str, since: datetime
    ) -> bool:
        stmt = (
            select(AuditEvent.id)
            .where(
                AuditEvent.event_type == event_type,
                AuditEvent.target_id == target_id,
                AuditEvent.created_at >= since,
            )
            .limit(1)
        )
        result = await self.session.exec(stmt)
        return result.first() is not None
