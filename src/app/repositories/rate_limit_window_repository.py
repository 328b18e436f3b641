from abc import ABC, abstractmethod
from datetime import datetime

from src.domain.entities import EndpointCategory, IdentifierType


class IRateLimitWindowRepository(ABC):
    """RateLimitWindow repository interface - application layer"""

    @abstractmethod
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
        Atomically create-or-increment the window row.

        Returns:
            The request count after this increment (1 for a new window)
        """
        pass

    @abstractmethod
    async def mark_exceeded(
        self, identifier: str, endpoint_category: EndpointCategory, window_start: datetime
    ) -> bool:
        """
        Set limit_exceeded if it is not set yet.

        Returns:
            True only for the caller that performed the transition
        """
        pass

    @abstractmethod
    async def count_violations_since(self, identifier: str, since: datetime) -> int:
        """Windows with limit_exceeded and last_request_at >= since"""
        pass

    @abstractmethod
    async def delete_ended_before(self, cutoff: datetime) -> int:
        """Delete windows whose window_end is before cutoff. Returns count."""
        pass
