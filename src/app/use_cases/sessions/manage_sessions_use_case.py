"""
Manage Sessions Use Case

Authorization around the session registry for the HTTP surface.
"""

from typing import List, Optional

from libs.result import Error, Result, Return
from src.app.services.request_context import Identity, RequestContext
from src.app.services.session_registry import SessionRegistry
from src.domain.entities import CallerRole, SecuritySession, TerminationReason

ADMIN_ROLES = (CallerRole.admin.value, CallerRole.owner.value)


def is_admin(identity: Optional[Identity]) -> bool:
    return identity is not None and identity.role in ADMIN_ROLES


class ManageSessionsUseCase:
    """
    Use case for listing and terminating sessions.

    Business Rules:
    - Users can list and terminate their own sessions
    - Admins/owners can terminate any user's sessions
    - An admin terminating another user's sessions is recorded as a force logout
    """

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    async def list_sessions(self, requester: Identity) -> Result[List[SecuritySession]]:
        return Return.ok(await self.registry.list_active(requester.user_id))

    async def terminate_session(
        self,
        session_token: str,
        requester: Identity,
        context: Optional[RequestContext] = None,
    ) -> Result[dict]:
        """
        Terminate one session.

        Returns:
            Result with {"session_token", "terminated"}, or Error
            (SESSION_NOT_FOUND, FORBIDDEN)
        """
        session = await self.registry.get_active(session_token)
        if session is None:
            return Return.err(Error("SESSION_NOT_FOUND", "Session not found"))

        is_self = session.user_id == requester.user_id
        if not is_self and not is_admin(requester):
            return Return.err(
                Error("FORBIDDEN", "Only admins can terminate other users' sessions")
            )

        reason = TerminationReason.logout.value if is_self else TerminationReason.admin.value
        terminated = await self.registry.terminate(
            session_token, reason=reason, identity=requester, context=context
        )
        return Return.ok({"session_token": session_token, "terminated": terminated})

    async def terminate_all(
        self,
        target_user_id: str,
        requester: Identity,
        except_token: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> Result[dict]:
        """
        Terminate every active session of a user.

        Returns:
            Result with {"terminated_count", "user_id"}, or FORBIDDEN
        """
        is_self = target_user_id == requester.user_id
        if not is_self and not is_admin(requester):
            return Return.err(
                Error("FORBIDDEN", "Only admins can terminate other users' sessions")
            )

        reason = TerminationReason.forced.value if is_self else TerminationReason.admin.value
        count = await self.registry.terminate_all(
            target_user_id,
            except_token=except_token,
            reason=reason,
            identity=requester,
            context=context,
        )
        return Return.ok({"terminated_count": count, "user_id": target_user_id})
