import itertools
from datetime import datetime, timedelta

import pytest

from app import create_app
from config import Config
from models import db
from models.user import ROLE_FACULTY, ROLE_STUDENT, User
from security.session import create_session
from services import slots

# a Monday
MONDAY_10AM = datetime(2030, 1, 7, 10, 0)


class TestConfig(Config):
    TESTING = True
    SMTP_HOST = None
    SLOT_LOCK_TIMEOUT_SECONDS = 2
    LOG_LEVEL = "WARNING"


@pytest.fixture
def app(tmp_path):
    # file-backed so worker threads share the same database
    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "test.db")

    app = create_app(_Config)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(role=ROLE_STUDENT, name=None, department=None):
        n = next(counter)
        user = User(
            email=f"{role}{n}@uni.test",
            name=name or f"{role.title()} {n}",
            role=role,
            department=department,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def faculty(make_user):
    return make_user(ROLE_FACULTY, name="Ada Lovelace", department="Computer Science")


@pytest.fixture
def student(make_user):
    return make_user(ROLE_STUDENT)


@pytest.fixture
def other_student(make_user):
    return make_user(ROLE_STUDENT)


@pytest.fixture
def make_slot(faculty):
    def _make(capacity=1, start=MONDAY_10AM, minutes=30, owner=None, location="Room 101", notes=None):
        owner_id = owner.id if owner is not None else faculty.id
        return slots.create_slot(
            owner_id,
            start,
            start + timedelta(minutes=minutes),
            location,
            notes=notes,
            capacity=capacity,
        )

    return _make


@pytest.fixture
def auth_header(app):
    def _header(user):
        return {"Authorization": f"Bearer {create_session(user.id)}"}

    return _header


@pytest.fixture
def fail_session_call(monkeypatch):
    """
    Make the ``nth`` call of ``db.session.<method>`` raise RuntimeError.

    With ``flush_first`` the pending rows are written before the failure.
    """

    def _arm(method, nth=1, flush_first=False):
        real = getattr(db.session, method)
        real_flush = db.session.flush
        calls = itertools.count(1)

        def _call(*args, **kwargs):
            if next(calls) == nth:
                if flush_first:
                    real_flush()
                raise RuntimeError(f"{method} failed")
            return real(*args, **kwargs)

        monkeypatch.setattr(db.session, method, _call)

    return _arm
