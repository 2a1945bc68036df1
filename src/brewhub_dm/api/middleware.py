"""Per-IP edge rate limiting for selected routes."""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from brewhub_dm.core.settings import EdgeRateLimitRule, settings
from brewhub_dm.services.audit import RateLimitAuditEvent, emit_rate_limit_log
from brewhub_dm.services.rate_limit import get_edge_rate_limiter

UNKNOWN_IP = "unknown"


def get_request_ip(request: Request) -> str:
    """Return the client IP as reported by the nearest trusted proxy header."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = (request.headers.get(header) or "").strip()
        if value:
            return value
    return UNKNOWN_IP


class EdgeRateLimitMiddleware(BaseHTTPMiddleware):
    """Reject bursts on configured method+path pairs before routing."""

    def __init__(self, app, rules: list[EdgeRateLimitRule] | None = None) -> None:
        super().__init__(app)
        source = settings.edge_rate_limit_rules if rules is None else rules
        self.rules = {(rule.method.upper(), rule.path): rule for rule in source}

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rule = self.rules.get((request.method.upper(), request.url.path))
        if rule is None or not settings.edge_rate_limit_enabled:
            return await call_next(request)

        ip = get_request_ip(request)
        result = get_edge_rate_limiter().consume(
            f"edge:{rule.path}:{rule.method}:{ip}",
            rule.limit,
            rule.window_seconds * 1000,
        )
        if result.allowed:
            return await call_next(request)

        emit_rate_limit_log(
            RateLimitAuditEvent(
                source="edge",
                endpoint=rule.path,
                method=rule.method,
                key_scope="edge:ip",
                retry_after_seconds=result.retry_after_seconds,
                identifier=ip,
            )
        )
        return JSONResponse(
            status_code=429,
            content={"error": "Rate limit exceeded", "details": "Too many requests. Try again shortly."},
            headers={"Retry-After": str(result.retry_after_seconds)},
        )
