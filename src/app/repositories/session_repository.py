from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from src.domain.entities import SecuritySession


class ISessionRepository(ABC):
    """SecuritySession repository interface - application layer"""

    @abstractmethod
    async def get_active_by_token(self, session_token: str) -> Optional[SecuritySession]:
        """Get the active session for a token"""
        pass

    @abstractmethod
    async def create(self, session: SecuritySession) -> SecuritySession:
        """Create a new session"""
        pass

    @abstractmethod
    async def touch(
        self, session_token: str, now: datetime, stale_before: datetime
    ) -> bool:
        """Set last_activity_at=now if it is older than stale_before. Returns True if written."""
        pass

    @abstractmethod
    async def terminate_by_token(
        self, session_token: str, reason: str, now: datetime
    ) -> int:
        """Terminate active sessions for a token. Returns count."""
        pass

    @abstractmethod
    async def terminate_all_by_user_id(
        self,
        user_id: str,
        reason: str,
        now: datetime,
        except_token: Optional[str] = None,
    ) -> int:
        """Terminate all active sessions for a user, optionally keeping one. Returns count."""
        pass

    @abstractmethod
    async def list_active_by_user_id(
        self, user_id: str, now: datetime
    ) -> List[SecuritySession]:
        """Active, unexpired sessions for a user, most recently active first"""
        pass

    @abstractmethod
    async def count_active_by_user_id(self, user_id: str, now: datetime) -> int:
        """Number of active, unexpired sessions for a user"""
        pass

    @abstractmethod
    async def expire_before(self, now: datetime) -> int:
        """Terminate active sessions whose expires_at has passed. Returns count."""
        pass
