from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from eiga.core.auth import Identity
from eiga.core.config import Settings
from eiga.core.database import init_db, make_engine, make_session_factory
from eiga.core.security import create_access_token
from eiga.core.timeutils import utc_now_naive
from eiga.main import create_app
from eiga.models.invite import InviteCode
from eiga.models.user import User


class RecordingMailer:
    def __init__(self):
        self.sent = []
        self.invites = []

    def send_magic_link(self, to, link):
        self.sent.append((to, link))
        return True

    def send_invite(self, to, redeem_url, expires_in_days):
        self.invites.append((to, redeem_url, expires_in_days))
        return True


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, film_id, event, **ids):
        self.events.append((film_id, event, ids))
        return True


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    return Settings(_env_file=None, SECRET_KEY="test-secret", LOG_LEVEL="WARNING")


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = make_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def make_user(db):
    def _make(username, role="member", email=None):
        user = User(email=email or f"{username}@cinephile.org", username=username, role=role)
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def admin(make_user):
    return make_user("curator", role="admin")


@pytest.fixture
def as_identity():
    def _identity(user):
        return Identity(id=user.id, username=user.username, role=user.role)

    return _identity


@pytest.fixture
def make_invite(db):
    def _make(code="EIGA-TEST-0001", expires_in=timedelta(days=7), used_by=None):
        now = utc_now_naive()
        invite = InviteCode(
            code=code,
            expires_at=now + expires_in,
            used_by=used_by,
            used_at=now if used_by is not None else None,
        )
        db.add(invite)
        db.commit()
        return invite

    return _make


@pytest.fixture
def app(settings, engine, mailer):
    return create_app(settings=settings, engine=engine, mailer=mailer)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_header(settings):
    def _header(user):
        return {"Authorization": f"Bearer {create_access_token(str(user.id), settings)}"}

    return _header
