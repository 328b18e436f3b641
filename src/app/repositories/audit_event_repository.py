from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

from src.domain.entities import AuditCategory, AuditEvent, AuditSeverity


class IAuditEventRepository(ABC):
    """AuditEvent repository interface - application layer (append-only)"""

    @abstractmethod
    async def create(self, audit_event: AuditEvent) -> AuditEvent:
        """Append a new audit event"""
        pass

    @abstractmethod
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
        Filtered, offset-paginated search.

        Returns:
            Tuple of (events, total)
            - events: page ordered by created_at DESC
            - total: count of all rows matching the same filters
        """
        pass

    @abstractmethod
    async def count_by_type_and_severity(
        self, since: datetime
    ) -> List[Tuple[str, AuditSeverity, int]]:
        """Grouped (event_type, severity, count) rows created at or after since"""
        pass

    @abstractmethod
    async def exists_for_target_since(
        self, event_type: str, target_id: str, since: datetime
    ) -> bool:
        """Whether an event of this type targeting target_id was written since"""
        pass
