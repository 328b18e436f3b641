"""
Rate Limiter & Abuse Detector

Fixed-window request throttling per (identifier, endpoint category), with
escalation of repeated violations into an abuse signal.

Fail-open: if the window store is slow or unavailable the request is allowed
with its full quota reported, so an outage of this layer never becomes an
outage of the service.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from src.app.services.audit_logger import AuditLogger
from src.app.services.request_context import Identity, RequestContext
from src.app.services.unit_of_work import UnitOfWork
from src.domain.base import utc_now
from src.domain.entities import EndpointCategory, IdentifierType
from src.domain.taxonomy import AuditEventType
from src.domain.windows import window_bounds

logger = logging.getLogger(__name__)

AUTH_PATH_MARKERS = ("/auth/login", "/auth/register", "/auth/reset")
SENSITIVE_PATH_MARKERS = ("/admin", "/billing", "/payment")
WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
READ_METHODS = frozenset({"GET", "HEAD"})

RATE_LIMIT_RISK_SCORE = 60
ABUSE_RISK_SCORE = 80
ABUSE_TARGET_TYPE = "rate_limit_identifier"


@dataclass(frozen=True)
class RateLimitPolicy:
    max_requests: int
    window_seconds: int


DEFAULT_POLICIES: Dict[EndpointCategory, RateLimitPolicy] = {
    EndpointCategory.auth: RateLimitPolicy(max_requests=5, window_seconds=15 * 60),
    EndpointCategory.sensitive: RateLimitPolicy(max_requests=20, window_seconds=60),
    EndpointCategory.write: RateLimitPolicy(max_requests=50, window_seconds=60),
    EndpointCategory.read: RateLimitPolicy(max_requests=200, window_seconds=60),
    EndpointCategory.default: RateLimitPolicy(max_requests=100, window_seconds=60),
}


def build_policies(
    overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Dict[EndpointCategory, RateLimitPolicy]:
    """
    Merge configured overrides over the default policies.

    Args:
        overrides: {"auth": {"max_requests": 10, "window_seconds": 600}, ...}

    Raises:
        ValueError: unknown category or non-positive limits
    """
    policies = dict(DEFAULT_POLICIES)
    for name, values in (overrides or {}).items():
        category = EndpointCategory(name)
        base = policies[category]
        policy = RateLimitPolicy(
            max_requests=int(values.get("max_requests", base.max_requests)),
            window_seconds=int(values.get("window_seconds", base.window_seconds)),
        )
        if policy.max_requests <= 0 or policy.window_seconds <= 0:
            raise ValueError(f"Rate limit for {name!r} must be positive")
        policies[category] = policy
    return policies


def classify_endpoint(path: str, method: str) -> EndpointCategory:
    """Ordered rules: auth paths, sensitive paths, write verbs, read verbs"""
    path = (path or "").lower()
    method = (method or "").upper()

    if any(marker in path for marker in AUTH_PATH_MARKERS):
        return EndpointCategory.auth
    if any(marker in path for marker in SENSITIVE_PATH_MARKERS):
        return EndpointCategory.sensitive
    if method in WRITE_METHODS:
        return EndpointCategory.write
    if method in READ_METHODS:
        return EndpointCategory.read
    return EndpointCategory.default


def resolve_identifier(
    identity: Optional[Identity], network_origin: Optional[str]
) -> Tuple[str, IdentifierType]:
    """Authenticated callers are keyed by user id, everyone else by origin"""
    if identity is not None and identity.user_id:
        return identity.user_id, IdentifierType.user
    return network_origin or "unknown", IdentifierType.origin


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_at: datetime
    limit: int
    category: EndpointCategory


@dataclass(frozen=True)
class AbuseReport:
    is_abusive: bool
    violations: int


class RateLimiter:
    """
    Per-identity fixed-window rate limiter.

    Business Rules:
    - window_start is the duration-aligned floor of now; reset_at is window_end
    - The Nth request of a window sees count N; the (max+1)th is denied
    - limit_exceeded is sticky for the window and its transition emits exactly
      one security.rate_limit audit event
    - abuse_threshold exceeded windows within abuse_window => abusive
    - Store failure or timeout => allowed with full quota
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        audit_logger: Optional[AuditLogger] = None,
        policies: Optional[Mapping[EndpointCategory, RateLimitPolicy]] = None,
        abuse_threshold: int = 3,
        abuse_window_seconds: int = 3600,
        retention_seconds: int = 3600,
        store_timeout: float = 2.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.uow_factory = uow_factory
        self.audit_logger = audit_logger
        self.policies = dict(policies or DEFAULT_POLICIES)
        self.abuse_threshold = abuse_threshold
        self.abuse_window = timedelta(seconds=abuse_window_seconds)
        self.retention = timedelta(seconds=retention_seconds)
        self.store_timeout = store_timeout
        self.clock = clock

    def policy_for(self, category: EndpointCategory) -> RateLimitPolicy:
        return self.policies.get(category, DEFAULT_POLICIES[category])

    async def check(
        self,
        identity: Optional[Identity],
        network_origin: Optional[str],
        path: str,
        method: str,
        context: Optional[RequestContext] = None,
    ) -> RateLimitDecision:
        """
        Count this request and decide whether it may proceed.

        Args:
            identity: Authenticated caller, or None
            network_origin: Client address, used when identity is None
            path: Request path
            method: HTTP verb
            context: Request details for the audit trail

        Returns:
            RateLimitDecision(allowed, remaining, reset_at, limit, category)
        """
        category = classify_endpoint(path, method)
        policy = self.policy_for(category)
        identifier, identifier_type = resolve_identifier(identity, network_origin)

        now = self.clock()
        window_start, window_end = window_bounds(now, policy.window_seconds)

        try:
            count, transitioned = await asyncio.wait_for(
                self._count_request(
                    identifier,
                    identifier_type,
                    category,
                    window_start,
                    window_end,
                    now,
                    policy.max_requests,
                ),
                timeout=self.store_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Rate limit store timed out for {identifier_type.value}:{identifier}, failing open"
            )
            return self._fail_open(policy, window_end, category)
        except Exception:
            logger.exception(
                f"Rate limit check failed for {identifier_type.value}:{identifier}, failing open"
            )
            return self._fail_open(policy, window_end, category)

        if transitioned:
            logger.warning(
                f"Rate limit exceeded: {identifier_type.value}:{identifier} "
                f"category={category.value} count={count} limit={policy.max_requests}"
            )
            if self.audit_logger:
                await self.audit_logger.log_security_event(
                    AuditEventType.SECURITY_RATE_LIMIT,
                    f"Rate limit exceeded for {category.value} endpoint",
                    identity=identity,
                    context=context,
                    details={
                        "identifier": identifier,
                        "identifier_type": identifier_type.value,
                        "endpoint_category": category.value,
                        "request_count": count,
                        "limit": policy.max_requests,
                        "window_start": window_start.isoformat(),
                    },
                    risk_score=RATE_LIMIT_RISK_SCORE,
                )

        return RateLimitDecision(
            allowed=count <= policy.max_requests,
            remaining=max(0, policy.max_requests - count),
            reset_at=window_end,
            limit=policy.max_requests,
            category=category,
        )

    async def _count_request(
        self,
        identifier: str,
        identifier_type: IdentifierType,
        category: EndpointCategory,
        window_start: datetime,
        window_end: datetime,
        now: datetime,
        max_requests: int,
    ) -> Tuple[int, bool]:
        """Returns (count after this request, whether this request set limit_exceeded)"""
        async with self.uow_factory() as uow:
            count = await uow.rate_limit_windows.increment(
                identifier, identifier_type, category, window_start, window_end, now
            )
            transitioned = False
            if count > max_requests:
                transitioned = await uow.rate_limit_windows.mark_exceeded(
                    identifier, category, window_start
                )
            await uow.commit()
        return count, transitioned

    @staticmethod
    def _fail_open(
        policy: RateLimitPolicy, window_end: datetime, category: EndpointCategory
    ) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=True,
            remaining=policy.max_requests,
            reset_at=window_end,
            limit=policy.max_requests,
            category=category,
        )

    async def detect_abuse(
        self,
        identity: Optional[Identity],
        network_origin: Optional[str],
        context: Optional[RequestContext] = None,
    ) -> AbuseReport:
        """
        Escalate repeated rate limit violations.

        Counts exceeded windows with activity inside the trailing abuse window.
        The suspicious-activity event is written once per identifier per
        abuse window.
        """
        identifier, identifier_type = resolve_identifier(identity, network_origin)
        since = self.clock() - self.abuse_window

        async def _violations() -> Tuple[int, bool]:
            async with self.uow_factory() as uow:
                violations = await uow.rate_limit_windows.count_violations_since(
                    identifier, since
                )
                already_reported = False
                if violations >= self.abuse_threshold:
                    already_reported = await uow.audit_events.exists_for_target_since(
                        AuditEventType.SECURITY_SUSPICIOUS_ACTIVITY, identifier, since
                    )
                return violations, already_reported

        try:
            violations, already_reported = await asyncio.wait_for(
                _violations(), timeout=self.store_timeout
            )
        except Exception:
            logger.exception(f"Abuse detection failed for {identifier_type.value}:{identifier}")
            return AbuseReport(is_abusive=False, violations=0)

        is_abusive = violations >= self.abuse_threshold
        if is_abusive and not already_reported and self.audit_logger:
            await self.audit_logger.log_security_event(
                AuditEventType.SECURITY_SUSPICIOUS_ACTIVITY,
                "Potential API abuse detected",
                identity=identity,
                target_id=identifier,
                target_type=ABUSE_TARGET_TYPE,
                context=context,
                details={
                    "identifier": identifier,
                    "identifier_type": identifier_type.value,
                    "violation_count": violations,
                    "timeframe_seconds": int(self.abuse_window.total_seconds()),
                },
                risk_score=ABUSE_RISK_SCORE,
                is_anomaly=True,
            )

        return AbuseReport(is_abusive=is_abusive, violations=violations)

    async def cleanup(self) -> int:
        """
        Delete windows that ended more than the retention horizon ago.

        Storage hygiene only; live windows are never touched.
        """
        cutoff = self.clock() - self.retention

        async def _cleanup() -> int:
            async with self.uow_factory() as uow:
                deleted = await uow.rate_limit_windows.delete_ended_before(cutoff)
                await uow.commit()
                return deleted

        try:
            deleted = await asyncio.wait_for(_cleanup(), timeout=self.store_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Rate limit window cleanup timed out after {self.store_timeout}s")
            return 0
        except Exception:
            logger.exception("Rate limit window cleanup failed")
            return 0

        if deleted:
            logger.info(f"Purged {deleted} expired rate limit window(s)")
        return deleted

    def middleware(self, skip_allowlist: Optional[Iterable[Any]] = None, **options: Any):
        """
        Build the request interceptor for this limiter.

        Args:
            skip_allowlist: Identities (Identity, user id or email) never throttled
            **options: Extra RateLimitMiddleware options (e.g. exempt_paths)

        Returns:
            starlette Middleware, usable in FastAPI(middleware=[...])
        """
        from starlette.middleware import Middleware

        from src.api.middleware.rate_limit import RateLimitMiddleware

        return Middleware(
            RateLimitMiddleware,
            rate_limiter=self,
            skip_allowlist=skip_allowlist,
            **options,
        )
