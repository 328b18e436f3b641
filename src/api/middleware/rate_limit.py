"""
Rate Limit Middleware

Runs every non-exempt request through the RateLimiter, decorates responses
with quota headers and answers denied requests with 429.
"""

import logging
import math
from typing import Any, Iterable, Optional

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from src.api.utils.jwt import identity_from_authorization
from src.app.services.rate_limiter import RateLimitDecision, RateLimiter
from src.app.services.request_context import Identity, RequestContext

logger = logging.getLogger(__name__)

TOO_MANY_REQUESTS_MESSAGE = "Too many requests. Please slow down."


def format_reset(decision: RateLimitDecision) -> str:
    return decision.reset_at.replace(microsecond=0).isoformat() + "Z"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-request throttling.

    Business Rules:
    - Exempt paths (default /health) are never counted
    - Allowlisted identities (by user id or email) are never counted
    - Identity comes from request.state.identity when an upstream layer set
      it, otherwise from the bearer token; anonymous callers use their origin
    - Every counted response carries X-RateLimit-Limit/Remaining/Reset
    - Denied requests get 429 with Retry-After and trigger abuse detection
    """

    def __init__(
        self,
        app: ASGIApp,
        rate_limiter: RateLimiter,
        skip_allowlist: Optional[Iterable[Any]] = None,
        exempt_paths: Iterable[str] = ("/health",),
    ):
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.skip_allowlist = {
            entry.user_id if isinstance(entry, Identity) else str(entry)
            for entry in (skip_allowlist or [])
        }
        self.exempt_paths = tuple(path.rstrip("/") or "/" for path in exempt_paths)

    def is_exempt(self, path: str) -> bool:
        for exempt in self.exempt_paths:
            if path == exempt or path.startswith(exempt.rstrip("/") + "/"):
                return True
        return False

    def is_allowlisted(self, identity: Optional[Identity]) -> bool:
        if identity is None or not self.skip_allowlist:
            return False
        return identity.user_id in self.skip_allowlist or (
            identity.email is not None and identity.email in self.skip_allowlist
        )

    @staticmethod
    def resolve_identity(request: Request) -> Optional[Identity]:
        identity = getattr(request.state, "identity", None)
        if isinstance(identity, Identity):
            return identity
        return identity_from_authorization(request.headers.get("authorization"))

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if self.is_exempt(path):
            return await call_next(request)

        identity = self.resolve_identity(request)
        if self.is_allowlisted(identity):
            return await call_next(request)

        context = RequestContext.from_request(request)
        decision = await self.rate_limiter.check(
            identity, context.ip_address, path, request.method, context=context
        )

        if decision.allowed:
            response = await call_next(request)
        else:
            await self.rate_limiter.detect_abuse(identity, context.ip_address, context=context)
            retry_after = max(
                0,
                math.ceil((decision.reset_at - self.rate_limiter.clock()).total_seconds()),
            )
            response = JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "message": TOO_MANY_REQUESTS_MESSAGE,
                    "retryAfterSeconds": retry_after,
                },
            )
            response.headers["Retry-After"] = str(retry_after)

        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        response.headers["X-RateLimit-Reset"] = format_reset(decision)
        return response
