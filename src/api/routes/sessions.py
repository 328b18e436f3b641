from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from src.api.error import ClientError, ServerError
from src.app.services.request_context import Identity, RequestContext
from src.app.services.session_registry import SessionRegistry
from src.app.use_cases.sessions import ManageSessionsUseCase
from src.depends import get_current_user, get_request_context, get_session_registry

router = APIRouter(prefix="/sessions", tags=["Sessions"])


class SessionResponse(BaseModel):
    """Active session as shown to its owner"""

    session_token: str
    ip_address: Optional[str]
    device_type: Optional[str]
    browser: Optional[str]
    os: Optional[str]
    created_at: datetime
    last_activity_at: datetime
    expires_at: datetime


class SessionListResponse(BaseModel):
    sessions: List[SessionResponse]


class TerminateAllSessionsRequest(BaseModel):
    """Request to terminate all sessions for a user"""

    user_id: str = Field(..., description="User whose sessions will be terminated")
    except_token: Optional[str] = Field(None, description="Session to keep active")


class TerminateAllSessionsResponse(BaseModel):
    message: str
    terminated_count: int


class TerminateSessionResponse(BaseModel):
    message: str
    session_token: str
    terminated: bool


def _raise_for(error):
    if error.code == "FORBIDDEN":
        raise ClientError(error, status_code=status.HTTP_403_FORBIDDEN)
    if error.code == "SESSION_NOT_FOUND":
        raise ClientError(error, status_code=status.HTTP_404_NOT_FOUND)
    raise ServerError(error)


@router.get("", status_code=status.HTTP_200_OK, response_model=SessionListResponse)
async def list_sessions(
    current_user: Identity = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """List the caller's active, unexpired sessions"""
    result = await ManageSessionsUseCase(registry).list_sessions(current_user)
    if result.is_err():
        _raise_for(result.error)

    return {
        "sessions": [
            SessionResponse.model_validate(session, from_attributes=True)
            for session in result.value
        ]
    }


@router.post(
    "/terminate-all",
    status_code=status.HTTP_200_OK,
    response_model=TerminateAllSessionsResponse,
)
async def terminate_all_sessions(
    request: TerminateAllSessionsRequest,
    current_user: Identity = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
    context: RequestContext = Depends(get_request_context),
):
    """
    Terminate All Sessions

    Authorization:
    - Users can terminate their own sessions
    - Admins/owners can terminate any user's sessions (recorded as force logout)

    Raises:
        - 403 Forbidden: Insufficient permissions
    """
    result = await ManageSessionsUseCase(registry).terminate_all(
        request.user_id,
        current_user,
        except_token=request.except_token,
        context=context,
    )
    if result.is_err():
        _raise_for(result.error)

    data = result.value
    return {
        "message": f"Successfully terminated {data['terminated_count']} session(s)",
        "terminated_count": data["terminated_count"],
    }


@router.delete(
    "/{session_token}",
    status_code=status.HTTP_200_OK,
    response_model=TerminateSessionResponse,
)
async def terminate_session(
    session_token: str,
    current_user: Identity = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
    context: RequestContext = Depends(get_request_context),
):
    """
    Terminate Session

    Raises:
        - 403 Forbidden: Session belongs to another user and caller is not admin
        - 404 Not Found: No active session with this token
    """
    result = await ManageSessionsUseCase(registry).terminate_session(
        session_token, current_user, context=context
    )
    if result.is_err():
        _raise_for(result.error)

    data = result.value
    return {
        "message": "Session terminated successfully",
        "session_token": data["session_token"],
        "terminated": data["terminated"],
    }
