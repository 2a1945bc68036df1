"""Tests for the fixed-window rate limiters."""

from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from brewhub_dm.models import AuditLog, RateLimitCounter
from brewhub_dm.services.errors import RateLimitedError
from brewhub_dm.services.rate_limit import (
    DbRateLimiter,
    EdgeRateLimiter,
    RateLimitRecord,
    evaluate_rate_limit,
    require_quota,
)

WINDOW_MS = 60_000


class TestEvaluateRateLimit:
    """Fixed-window algorithm shared by both backends."""

    def test_first_call_opens_window(self):
        result, record = evaluate_rate_limit(None, 2, WINDOW_MS, 1_000)
        assert result.allowed
        assert record == RateLimitRecord(count=1, window_start_ms=1_000)

    def test_denies_when_limit_reached(self):
        record = RateLimitRecord(count=2, window_start_ms=0)
        result, unchanged = evaluate_rate_limit(record, 2, WINDOW_MS, 30_000)
        assert not result.allowed
        assert result.retry_after_seconds == 30
        assert unchanged is record

    def test_retry_after_rounds_up_and_is_at_least_one(self):
        record = RateLimitRecord(count=2, window_start_ms=0)
        result, _ = evaluate_rate_limit(record, 2, WINDOW_MS, WINDOW_MS - 1)
        assert result.retry_after_seconds == 1
        result, _ = evaluate_rate_limit(record, 2, WINDOW_MS, 30_500)
        assert result.retry_after_seconds == 30

    def test_window_elapsed_resets_count(self):
        record = RateLimitRecord(count=5, window_start_ms=0)
        result, fresh = evaluate_rate_limit(record, 2, WINDOW_MS, WINDOW_MS)
        assert result.allowed
        assert fresh == RateLimitRecord(count=1, window_start_ms=WINDOW_MS)


class TestEdgeRateLimiter:
    def test_boundary(self):
        limiter = EdgeRateLimiter()
        assert limiter.consume("edge:k", 2, WINDOW_MS, now_ms=0).allowed
        assert limiter.consume("edge:k", 2, WINDOW_MS, now_ms=10).allowed
        denied = limiter.consume("edge:k", 2, WINDOW_MS, now_ms=20)
        assert not denied.allowed
        assert denied.retry_after_seconds >= 1
        assert limiter.consume("edge:k", 2, WINDOW_MS, now_ms=WINDOW_MS + 1).allowed

    def test_keys_are_independent(self):
        limiter = EdgeRateLimiter()
        assert limiter.consume("a", 1, WINDOW_MS, now_ms=0).allowed
        assert not limiter.consume("a", 1, WINDOW_MS, now_ms=1).allowed
        assert limiter.consume("b", 1, WINDOW_MS, now_ms=1).allowed

    def test_expired_keys_are_swept(self):
        limiter = EdgeRateLimiter(sweep_interval_ms=1_000)
        limiter.consume("edge:idle", 5, 1_000, now_ms=0)
        limiter.consume("edge:busy", 5, WINDOW_MS, now_ms=0)
        assert len(limiter) == 2

        limiter.consume("edge:busy", 5, WINDOW_MS, now_ms=1_500)
        assert len(limiter) == 1

    def test_reset_forgets_counters(self):
        limiter = EdgeRateLimiter()
        limiter.consume("a", 1, WINDOW_MS, now_ms=0)
        limiter.reset()
        assert limiter.consume("a", 1, WINDOW_MS, now_ms=1).allowed


class TestDbRateLimiter:
    def test_boundary_and_fresh_window(self, db_session):
        limiter = DbRateLimiter(db_session)
        assert limiter.consume("db:test:u1", 2, WINDOW_MS, now_ms=0).allowed
        assert limiter.consume("db:test:u1", 2, WINDOW_MS, now_ms=1_000).allowed
        denied = limiter.consume("db:test:u1", 2, WINDOW_MS, now_ms=2_000)
        assert not denied.allowed
        assert denied.retry_after_seconds == 58

        assert limiter.consume("db:test:u1", 2, WINDOW_MS, now_ms=WINDOW_MS + 5).allowed
        row = db_session.get(RateLimitCounter, "db:test:u1")
        assert row.count == 1
        assert row.window_start_ms == WINDOW_MS + 5

    def test_denial_does_not_touch_row(self, db_session):
        limiter = DbRateLimiter(db_session)
        limiter.consume("db:test:u2", 1, WINDOW_MS, now_ms=0)
        limiter.consume("db:test:u2", 1, WINDOW_MS, now_ms=1)
        row = db_session.get(RateLimitCounter, "db:test:u2")
        assert row.count == 1
        assert row.window_start_ms == 0

    def test_fails_open_when_store_unreadable(self, db_session):
        limiter = DbRateLimiter(db_session)
        error = OperationalError("SELECT", {}, Exception("database is locked"))
        with patch.object(db_session, "get", side_effect=error):
            for _ in range(5):
                assert limiter.consume("db:test:u3", 1, WINDOW_MS, now_ms=0).allowed

    def test_fails_open_when_store_unwritable(self, db_session):
        limiter = DbRateLimiter(db_session)
        error = OperationalError("INSERT", {}, Exception("disk I/O error"))
        with patch.object(db_session, "commit", side_effect=error):
            assert limiter.consume("db:test:u4", 1, WINDOW_MS, now_ms=0).allowed


def test_require_quota_raises_and_audits(db_session, caplog):
    kwargs = dict(
        scope="dm:message",
        identifier="user-1",
        endpoint="/api/v1/messages/conversations/c/messages",
        method="POST",
        limit=1,
        window_seconds=60,
        detail="Slow down.",
    )
    require_quota(db_session, now_ms=0, **kwargs)

    with caplog.at_level("WARNING"), pytest.raises(RateLimitedError) as exc_info:
        require_quota(db_session, now_ms=15_000, **kwargs)

    assert exc_info.value.status_code == 429
    assert exc_info.value.retry_after_seconds == 45
    assert exc_info.value.detail == "Slow down."
    assert "[rate-limit]" in caplog.text

    audit = db_session.execute(select(AuditLog)).scalar_one()
    assert audit.action == "rate_limit.hit"
    assert audit.actor_id == "user-1"
    assert audit.audit_metadata["key_scope"] == "db:dm:message"
    assert audit.audit_metadata["source"] == "db"
    assert audit.audit_metadata["retry_after_seconds"] == 45
