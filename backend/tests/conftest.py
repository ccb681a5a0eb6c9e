from pathlib import Path
from types import SimpleNamespace
from datetime import date, datetime
import os

# Point the application engine at a throwaway file before anything imports it.
TEST_DB = Path(__file__).resolve().parents[1] / "test_app.db"
if TEST_DB.exists():
    TEST_DB.unlink()
os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB}")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, create_engine  # noqa: E402

from groupdesk import models  # noqa: E402
from groupdesk.database import create_db_and_tables, get_session  # noqa: E402
from groupdesk.main import app  # noqa: E402
from groupdesk.services import PWD_CTX  # noqa: E402

PASSWORD = "pass"
PASSWORD_HASH = PWD_CTX.hash(PASSWORD)


@pytest.fixture
def session():
    """Fresh in-memory database per test."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_db_and_tables(engine)
    with Session(engine) as s:
        yield s
    engine.dispose()


def _user(session, username, role, location=None):
    u = models.User(
        username=username,
        password_hash=PASSWORD_HASH,
        role=role,
        location_id=location.id if location else None,
    )
    session.add(u)
    return u


@pytest.fixture
def seeded(session):
    """Two locations, three groups, a handful of users and events.

    - DP-095: Dnipro, in progress, teacher_dnipro, one student
    - DP-090: Dnipro, Graduated (capitalised on purpose), teacher_dnipro
    - KV-101: Kyiv, planned, teacher_kyiv and teacher_dnipro
    """
    dnipro = models.Location(name="Dnipro")
    kyiv = models.Location(name="Kyiv")
    planned = models.Status(name="planned")
    in_progress = models.Status(name="in progress")
    graduated = models.Status(name="Graduated")
    intermediate = models.EnglishLevel(name="Intermediate")
    advanced = models.EnglishLevel(name="Advanced")
    expert = models.Expert(expert_name="Anna Expert")
    lecture = models.EventType(name="Lecture", is_key_date=False)
    demo = models.EventType(name="Demo", is_key_date=True)
    session.add_all([dnipro, kyiv, planned, in_progress, graduated, intermediate, advanced, expert, lecture, demo])
    session.commit()

    admin = _user(session, "admin", models.Role.ADMIN)
    coord_dnipro = _user(session, "coord_dnipro", models.Role.COORDINATOR, dnipro)
    coord_kyiv = _user(session, "coord_kyiv", models.Role.COORDINATOR, kyiv)
    teacher_dnipro = _user(session, "teacher_dnipro", models.Role.TEACHER, dnipro)
    teacher_kyiv = _user(session, "teacher_kyiv", models.Role.TEACHER, kyiv)
    teacher_other = _user(session, "teacher_other", models.Role.TEACHER, dnipro)
    session.commit()

    dp_active = models.Group(name="DP-095", location_id=dnipro.id, status_id=in_progress.id,
                             start_date=date(2026, 9, 1), finish_date=date(2026, 12, 20))
    dp_graduated = models.Group(name="DP-090", location_id=dnipro.id, status_id=graduated.id,
                                start_date=date(2026, 1, 10), finish_date=date(2026, 5, 30))
    kv_planned = models.Group(name="KV-101", location_id=kyiv.id, status_id=planned.id)
    session.add_all([dp_active, dp_graduated, kv_planned])
    dp_active.teachers = [teacher_dnipro]
    dp_graduated.teachers = [teacher_dnipro]
    kv_planned.teachers = [teacher_kyiv, teacher_dnipro]
    session.commit()

    student = models.Student(group_id=dp_active.id, first_name="Ivan", last_name="Petrenko",
                             english_level_id=intermediate.id, expert_id=expert.id,
                             entry_score=4.5, incoming_test=True)
    session.add(student)
    session.add_all([
        models.Event(group_id=dp_active.id, event_type_id=lecture.id, date_time=datetime(2026, 9, 1, 10)),
        models.Event(group_id=dp_active.id, event_type_id=demo.id, date_time=datetime(2026, 10, 15, 16)),
        models.Event(group_id=kv_planned.id, event_type_id=demo.id, date_time=datetime(2026, 11, 1, 12)),
    ])
    session.commit()

    return SimpleNamespace(
        dnipro=dnipro, kyiv=kyiv,
        planned=planned, in_progress=in_progress, graduated=graduated,
        intermediate=intermediate, advanced=advanced, expert=expert,
        lecture=lecture, demo=demo,
        admin=admin, coord_dnipro=coord_dnipro, coord_kyiv=coord_kyiv,
        teacher_dnipro=teacher_dnipro, teacher_kyiv=teacher_kyiv, teacher_other=teacher_other,
        dp_active=dp_active, dp_graduated=dp_graduated, kv_planned=kv_planned,
        student=student,
    )


@pytest.fixture
def client(session):
    """TestClient whose requests share the test's in-memory session."""
    app.dependency_overrides[get_session] = lambda: session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Return bearer headers for a seeded username."""
    def _login(username: str) -> dict:
        r = client.post('/auth/login', json={'username': username, 'password': PASSWORD})
        assert r.status_code == 200
        return {'Authorization': f"Bearer {r.json()['access_token']}"}
    return _login
