import os
import uuid
from datetime import datetime, timedelta


# Configure the app for tests before importing installhub modules.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("HISTORY_INTEGRITY_SECRET", "test-history-secret")
os.environ.setdefault("RATE_LIMIT", "10000/minute")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from installhub.auth.security import create_access_token
from installhub.db import Base, get_db
from installhub.main import app
from installhub.models import models  # noqa: F401
from installhub.services import projects as project_service
from installhub.services import reclamations as reclamation_service
from installhub.services import roster


FIRM_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
OTHER_FIRM_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
ACTOR_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")


@pytest.fixture
def engine():
    """In-memory SQLite shared across threads for the duration of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token(str(ACTOR_ID))}"}


_counter = {"n": 0}


def _next_number(prefix: str) -> str:
    _counter["n"] += 1
    return f"{prefix}-{_counter['n']:04d}"


def make_crew(db, name="Crew A", firm_id=FIRM_ID, members=("Anna Leader", "Ben Worker")):
    crew = roster.create_crew(
        db,
        {"firm_id": firm_id, "name": name, "unique_number": _next_number("BR"), "leader_name": members[0] if members else name},
        ACTOR_ID,
    )
    for index, full_name in enumerate(members):
        first, _, last = full_name.partition(" ")
        roster.add_member(
            db,
            crew.id,
            {
                "first_name": first,
                "last_name": last or "X",
                "unique_number": _next_number("WRK"),
                "role": "leader" if index == 0 else "worker",
                "phone": "+49 30 1234",
            },
            ACTOR_ID,
        )
    db.refresh(crew)
    return crew


def active_members(db, crew):
    return roster.list_members(db, crew.id)


def make_project(db, firm_id=FIRM_ID, **fields):
    payload = {"firm_id": firm_id}
    payload.update(fields)
    return project_service.create_project(db, payload, ACTOR_ID)


def make_reclamation(db, project, crew, deadline=None, description="Loose panel on the south roof"):
    return reclamation_service.create_reclamation(
        db,
        project.id,
        firm_id=project.firm_id,
        description=description,
        deadline=deadline or datetime.utcnow().date() + timedelta(days=7),
        crew_id=crew.id,
        actor_id=ACTOR_ID,
    )


@pytest.fixture
def crew(db):
    return make_crew(db)


@pytest.fixture
def project(db):
    return make_project(db)


def make_completed_project(db, firm_id=FIRM_ID, status="work_completed", **fields):
    project = make_project(db, firm_id=firm_id, **fields)
    return project_service.update_status(db, project.id, status, ACTOR_ID)


@pytest.fixture
def completed_project(db):
    return make_completed_project(db)
