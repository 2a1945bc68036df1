# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from itertools import count
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-brewhub-dm")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from brewhub_dm.api.v1.dependencies import get_storage
from brewhub_dm.core.security import create_access_token
from brewhub_dm.core.settings import settings
from brewhub_dm.db.session import Base
from brewhub_dm.db.session import get_db as app_get_session
from brewhub_dm.main import app as fastapi_app
from brewhub_dm.models import Profile
from brewhub_dm.models.user import ROLE_SUPERUSER, STATUS_ACTIVE
from brewhub_dm.services.rate_limit import get_edge_rate_limiter

TEST_DB_URL = "sqlite://"

_PROFILE_COUNTER = count(1)


class InMemoryStorage:
    """Object-storage double recording uploads and removals."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.removed: list[tuple[str, list[str]]] = []
        self.fail_remove = False

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        self.objects[(bucket, path)] = data
        return f"{settings.storage_base_url}/storage/v1/object/public/{bucket}/{path}"

    async def remove(self, bucket: str, paths: list[str]) -> None:
        from brewhub_dm.services.storage import StorageError

        if self.fail_remove:
            raise StorageError("storage offline")
        self.removed.append((bucket, list(paths)))
        for path in paths:
            self.objects.pop((bucket, path), None)


class RecordingNotifier:
    """Notification sink double that keeps every event."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def notify(self, recipient_id: str, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append((recipient_id, event_type, payload))


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT to behave.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(autouse=True)
def override_dependencies(app: FastAPI, db_session: Session, storage: InMemoryStorage) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_storage, None)


@pytest.fixture(autouse=True)
def reset_edge_limiter() -> Iterator[None]:
    get_edge_rate_limiter().reset()
    yield
    get_edge_rate_limiter().reset()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_profile(db_session: Session) -> Callable[..., Profile]:
    """Return a factory persisting profiles with overridable fields."""

    def _make(**overrides: Any) -> Profile:
        number = next(_PROFILE_COUNTER)
        fields: dict[str, Any] = {
            "email": f"member{number}@brewhub.test",
            "display_name": f"Member {number}",
            "status": STATUS_ACTIVE,
        }
        fields.update(overrides)
        profile = Profile(**fields)
        db_session.add(profile)
        db_session.commit()
        return profile

    return _make


@pytest.fixture()
def alice(make_profile: Callable[..., Profile]) -> Profile:
    return make_profile(display_name="Alice Brewer")


@pytest.fixture()
def bob(make_profile: Callable[..., Profile]) -> Profile:
    return make_profile(display_name="Bob Hops")


@pytest.fixture()
def moderator(make_profile: Callable[..., Profile]) -> Profile:
    return make_profile(display_name="Mod", role=ROLE_SUPERUSER)


@pytest.fixture()
def auth_headers() -> Callable[[Profile], dict[str, str]]:
    """Return a helper building bearer headers for a profile."""

    def _headers(profile: Profile) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(profile.id)}"}

    return _headers
