"""
Request Context

Framework-neutral description of who is calling and from where. The API
layer builds these from the inbound request; services only read them.
"""

from typing import Any, Optional

from pydantic import BaseModel

SESSION_HEADER = "x-session-id"
SESSION_COOKIE = "session_id"
FINGERPRINT_HEADER = "x-device-fingerprint"


class Identity(BaseModel):
    """Authenticated caller"""

    user_id: str
    email: Optional[str] = None
    role: Optional[str] = None


def client_ip(request: Any) -> Optional[str]:
    """
    Resolve the network origin of a request.

    Order: first X-Forwarded-For hop, X-Real-IP, then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client is not None:
        return request.client.host
    return None


class RequestContext(BaseModel):
    """Network and transport details of the current request"""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None
    method: Optional[str] = None
    path: Optional[str] = None
    device_fingerprint: Optional[str] = None

    @classmethod
    def from_request(cls, request: Any) -> "RequestContext":
        """Build from a Starlette/FastAPI Request"""
        return cls(
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
            session_id=request.headers.get(SESSION_HEADER)
            or request.cookies.get(SESSION_COOKIE),
            method=request.method,
            path=request.url.path,
            device_fingerprint=request.headers.get(FINGERPRINT_HEADER),
        )
