"""Pytest configuration: in-memory SQLite test database & FastAPI TestClient."""

from __future__ import annotations

import json
import os
import tempfile
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ADMIN_TOKEN = "test-admin-token"
CLIENT_A_TOKEN = "test-client-a-token"
CLIENT_B_TOKEN = "test-client-b-token"

# Override env BEFORE importing app modules so Settings picks up test values.
os.environ.update(
    {
        "DATABASE_URL": "sqlite:///:memory:",
        "APP_ENV": "test",
        "RESEND_API_KEY": "",
        "RUN_MIGRATIONS": "false",
        "UPLOAD_DIR": tempfile.mkdtemp(prefix="caseportal-test-"),
        "AUTH_TOKENS": json.dumps(
            {
                ADMIN_TOKEN: {"sub": "idp|admin", "email": "admin@civilci.com", "role": "admin"},
                CLIENT_A_TOKEN: {"sub": "idp|client-a", "email": "alice@example.com", "role": "client"},
                CLIENT_B_TOKEN: {"sub": "idp|client-b", "email": "bob@example.com", "role": "client"},
            }
        ),
    }
)

from caseportal.api.deps import get_evidence_store, get_notifier  # noqa: E402
from caseportal.auth.identity import ExternalIdentity, upsert_user  # noqa: E402
from caseportal.core.database import Base, get_db  # noqa: E402
from caseportal.core.errors import NotificationFailure  # noqa: E402
from caseportal.main import app  # noqa: E402
from caseportal.models.user import Role  # noqa: E402
from caseportal.services.notifications import NotificationService  # noqa: E402
from caseportal.services.storage_backend import LocalFSStore  # noqa: E402

# ── Force all models to register on Base.metadata ──────────────────
import caseportal.models  # noqa: E402, F401

# ── In-memory SQLite engine shared across threadpool workers ───────

_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,
)


# SQLite doesn't enforce FK by default
@event.listens_for(_engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


_TestSession = sessionmaker(bind=_engine, class_=Session, expire_on_commit=False)

CASE_SUMMARY = (
    "Officers entered my home without a warrant and took my phone. "
    "Nobody will tell me why or when I will get it back."
)


class RecordingNotifier(NotificationService):
    """Configured notifier that records sends instead of calling Resend."""

    def __init__(self, fail: bool = False):
        super().__init__(
            "re_test_key",
            from_email="Civil CI <noreply@civilci.com>",
            admin_email="intake@civilci.com",
            site_url="https://civilci.com",
        )
        self.fail = fail
        self.sent: list[dict] = []

    async def send_email(self, to, subject, html_body, text_body=None) -> bool:
        self.sent.append({"to": to, "subject": subject, "text": text_body})
        if self.fail:
            raise NotificationFailure("provider down")
        return True

    def subjects(self, fragment: str) -> list[str]:
        return [m["subject"] for m in self.sent if fragment in m["subject"]]


@pytest.fixture(autouse=True)
def _create_tables():
    """Create all tables before each test and drop after."""
    Base.metadata.create_all(bind=_engine)
    yield
    Base.metadata.drop_all(bind=_engine)


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Yield a test DB session."""
    session = _TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(tmp_path) -> LocalFSStore:
    return LocalFSStore(root=str(tmp_path / "evidence"))


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def client(db: Session, store: LocalFSStore, notifier: RecordingNotifier) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the in-memory DB, a temp blob dir and a recording notifier."""

    def _override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_evidence_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc

    app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture()
def alice_headers() -> dict:
    return {"Authorization": f"Bearer {CLIENT_A_TOKEN}"}


@pytest.fixture()
def bob_headers() -> dict:
    return {"Authorization": f"Bearer {CLIENT_B_TOKEN}"}


@pytest.fixture()
def alice(db: Session):
    """The User row for client A (same subject as CLIENT_A_TOKEN)."""
    return upsert_user(
        db, ExternalIdentity(subject="idp|client-a", email="alice@example.com", role=Role.client)
    )


@pytest.fixture()
def bob(db: Session):
    return upsert_user(
        db, ExternalIdentity(subject="idp|client-b", email="bob@example.com", role=Role.client)
    )


@pytest.fixture()
def admin(db: Session):
    return upsert_user(
        db, ExternalIdentity(subject="idp|admin", email="admin@civilci.com", role=Role.admin)
    )


def _case_payload(**overrides) -> dict:
    payload = {
        "name": "Alice Example",
        "email": "alice@example.com",
        "phone": "555-0100",
        "caseSummary": CASE_SUMMARY,
        "urgency": "medium",
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def case_payload():
    """Factory for a valid submission body; keyword overrides replace fields."""
    return _case_payload


@pytest.fixture()
def alice_case_id(client: TestClient, alice_headers: dict) -> str:
    """A case submitted by client A; returns its id."""
    resp = client.post("/api/case-reviews", json=_case_payload(), headers=alice_headers)
    assert resp.status_code == 201
    return resp.json()["id"]
