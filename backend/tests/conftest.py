import os
# Override DATABASE_URL before any app imports so the app and the tests share one file database
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
# Tables are managed per test below; the recurring sweep is started explicitly by the tests that need it.
os.environ["DATABASE_AUTO_CREATE"] = "false"
os.environ["SESSION_CLEANUP_AUTOSTART"] = "false"
os.environ["SESSION_CONFLICT_POLICY"] = "auto_expire_previous"

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from assessment_delivery.components.results import service as result_service
from assessment_delivery.components.sessions import service as session_service
from assessment_delivery.main import app
from assessment_delivery.models.result import Result
from assessment_delivery.models.session import AssessmentSession, SessionStatus
from assessment_delivery.platform.database import Base

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, poolclass=NullPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

# Enable foreign key support for SQLite
@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Clock helpers
# ---------------------------------------------------------------------------

BASE_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = BASE_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def api_clock(monkeypatch):
    """Freeze the time the session and result services see during API calls."""
    fake = FakeClock(datetime.now(timezone.utc).replace(microsecond=0))
    monkeypatch.setattr(session_service, "utcnow", fake)
    monkeypatch.setattr(result_service, "utcnow", fake)
    return fake


# ---------------------------------------------------------------------------
# Factory helpers: create test entities directly in the DB
# ---------------------------------------------------------------------------

_counter = 0

def _unique_id() -> str:
    global _counter
    _counter += 1
    return f"{_counter}-{uuid.uuid4().hex[:8]}"


def make_session(
    db,
    student_id="student-1",
    assessment_id="assessment-1",
    status=SessionStatus.ACTIVE,
    created_at=None,
    updated_at=None,
    expires_at="default",
    external_session_id=None,
    now=None,
):
    """Insert a session row. ``expires_at`` defaults to one hour after creation; pass None for no expiry."""
    now = now or BASE_TIME
    created_at = created_at or now
    session = AssessmentSession(
        id=str(uuid.uuid4()),
        student_id=student_id,
        assessment_id=assessment_id,
        external_session_id=external_session_id or str(uuid.uuid4()),
        status=status,
        created_at=created_at,
        updated_at=updated_at or created_at,
        expires_at=created_at + timedelta(minutes=60) if expires_at == "default" else expires_at,
    )
    db.add(session)
    db.commit()
    return session


def make_result(db, session, response=None, score=None, time_spent=None, created_at=None):
    created_at = created_at or session.created_at
    result = Result(
        id=str(uuid.uuid4()),
        session=session,
        response=response if response is not None else {"item": f"item-{_unique_id()}", "value": "A"},
        score=score,
        time_spent=time_spent,
        created_at=created_at,
        updated_at=created_at,
    )
    db.add(result)
    db.commit()
    return result


def reload_session(db, session_id):
    """Fresh read of a session, bypassing the identity map."""
    db.expire_all()
    return db.get(AssessmentSession, session_id)


def count_results(db, session_id=None):
    stmt = select(func.count()).select_from(Result)
    if session_id is not None:
        stmt = stmt.where(Result.session_id == session_id)
    return db.execute(stmt).scalar_one()


def create_session_via_api(client, student_id=None, assessment_id="assessment-1"):
    """Create a session via the API. Returns the response."""
    student_id = student_id or f"student-{_unique_id()}"
    return client.post("/api/v1/sessions", json={"studentId": student_id, "assessmentId": assessment_id})


def submit_result_via_api(client, session_id, response=None, **extra):
    payload = {"sessionId": session_id, "response": response or {"item": "q1", "value": "B"}}
    payload.update(extra)
    return client.post("/api/v1/results", json=payload)
