"""Fixed-window rate limiting with an edge tier and a persistent tier.

Both backends share :func:`evaluate_rate_limit`. The edge limiter keeps its
counters in process memory (reset on restart, per worker) and is only a cheap
first filter. The persistent limiter stores counters in ``rate_limit_counters``
and is the authority; it reads, evaluates, then writes without a row lock, so
concurrent bursts from one identity may slightly exceed the limit, and it fails
open when the store is unavailable.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from threading import Lock

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from brewhub_dm.models import RateLimitCounter
from brewhub_dm.services.audit import RateLimitAuditEvent, persist_rate_limit_audit
from brewhub_dm.services.errors import RateLimitedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRecord:
    """Counter state for one key."""

    count: int
    window_start_ms: int


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single ``consume`` call."""

    allowed: bool
    retry_after_seconds: int = 0


def current_time_ms() -> int:
    """Return the wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


def evaluate_rate_limit(
    record: RateLimitRecord | None,
    limit: int,
    window_ms: int,
    now_ms: int,
) -> tuple[RateLimitResult, RateLimitRecord]:
    """Apply the fixed-window algorithm.

    Returns the result together with the record to store when allowed (the
    unchanged record when denied).
    """
    if record is None or now_ms - record.window_start_ms >= window_ms:
        return RateLimitResult(allowed=True), RateLimitRecord(count=1, window_start_ms=now_ms)

    if record.count >= limit:
        window_end_ms = record.window_start_ms + window_ms
        retry_after = max(1, math.ceil((window_end_ms - now_ms) / 1000))
        return RateLimitResult(allowed=False, retry_after_seconds=retry_after), record

    return (
        RateLimitResult(allowed=True),
        RateLimitRecord(count=record.count + 1, window_start_ms=record.window_start_ms),
    )


class EdgeRateLimiter:
    """Process-local counters for per-IP edge checks.

    Counters whose window has ended are swept at most once per
    ``sweep_interval_ms`` so idle client keys do not accumulate.
    """

    def __init__(self, sweep_interval_ms: int = 60_000) -> None:
        self._store: dict[str, RateLimitRecord] = {}
        self._expires_at: dict[str, int] = {}
        self._sweep_interval_ms = sweep_interval_ms
        self._last_sweep_ms = 0
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def _sweep(self, now_ms: int) -> None:
        if now_ms - self._last_sweep_ms < self._sweep_interval_ms:
            return
        self._last_sweep_ms = now_ms
        for key in [key for key, expires_at in self._expires_at.items() if expires_at <= now_ms]:
            self._store.pop(key, None)
            del self._expires_at[key]

    def consume(
        self,
        key: str,
        limit: int,
        window_ms: int,
        now_ms: int | None = None,
    ) -> RateLimitResult:
        """Count one request against ``key``."""
        now = current_time_ms() if now_ms is None else now_ms
        with self._lock:
            self._sweep(now)
            result, next_record = evaluate_rate_limit(self._store.get(key), limit, window_ms, now)
            if result.allowed:
                self._store[key] = next_record
                self._expires_at[key] = next_record.window_start_ms + window_ms
        return result

    def reset(self) -> None:
        """Forget every counter."""
        with self._lock:
            self._store.clear()
            self._expires_at.clear()


class DbRateLimiter:
    """Row-backed counters for strict per-user, per-route limits."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def consume(
        self,
        key: str,
        limit: int,
        window_ms: int,
        now_ms: int | None = None,
    ) -> RateLimitResult:
        """Count one request against ``key``, allowing it if the store fails."""
        now = current_time_ms() if now_ms is None else now_ms
        try:
            row = self.db.get(RateLimitCounter, key)
        except SQLAlchemyError as exc:
            logger.warning("Rate limit read failed for %s, allowing request: %s", key, exc)
            self.db.rollback()
            return RateLimitResult(allowed=True)

        current = None
        if row is not None and row.count >= 0 and row.window_start_ms >= 0:
            current = RateLimitRecord(count=row.count, window_start_ms=row.window_start_ms)

        result, next_record = evaluate_rate_limit(current, limit, window_ms, now)
        if not result.allowed:
            return result

        try:
            if row is None:
                self.db.add(
                    RateLimitCounter(
                        key=key,
                        count=next_record.count,
                        window_start_ms=next_record.window_start_ms,
                    )
                )
            else:
                row.count = next_record.count
                row.window_start_ms = next_record.window_start_ms
            self.db.commit()
        except SQLAlchemyError as exc:
            logger.warning("Rate limit write failed for %s, allowing request: %s", key, exc)
            self.db.rollback()
        return result


def require_quota(
    db: Session,
    *,
    scope: str,
    identifier: str,
    endpoint: str,
    method: str,
    limit: int,
    window_seconds: int,
    detail: str,
    now_ms: int | None = None,
) -> None:
    """Consume from the persistent limiter or raise :class:`RateLimitedError`.

    Denials are written to the audit sink before raising.
    """
    key = f"db:{scope}:{identifier}"
    result = DbRateLimiter(db).consume(key, limit, window_seconds * 1000, now_ms)
    if result.allowed:
        return

    persist_rate_limit_audit(
        db,
        RateLimitAuditEvent(
            source="db",
            endpoint=endpoint,
            method=method,
            key_scope=f"db:{scope}",
            retry_after_seconds=result.retry_after_seconds,
            identifier=identifier,
            actor_id=identifier,
        ),
    )
    raise RateLimitedError(
        "Rate limit exceeded",
        detail,
        retry_after_seconds=result.retry_after_seconds,
    )


_EDGE_LIMITER = EdgeRateLimiter()


def get_edge_rate_limiter() -> EdgeRateLimiter:
    """Return the process-wide edge limiter."""
    return _EDGE_LIMITER
