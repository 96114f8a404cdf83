import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from api import create_app  # noqa: E402
from models import storage  # noqa: E402
from models.user import User  # noqa: E402
from utils.security import hash_password  # noqa: E402

TEST_SECRET = "test-secret-key-for-testing-only-do-not-use-in-production"
PASSWORD = "Password123"


class FakeClock:
    """Settable UTC clock for moving time forward in tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def make_app(tmp_path, **overrides):
    config = {"DATABASE_URL": f"sqlite:///{tmp_path / 'sessions.db'}"}
    config.update(overrides)
    return create_app("testing", overrides=config)


@pytest.fixture
def app(tmp_path):
    app = make_app(tmp_path)
    yield app
    storage.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def tokens(app):
    return app.extensions["token_service"]


@pytest.fixture
def store(tokens):
    return tokens.store


@pytest.fixture
def user(app):
    """A persisted user with password PASSWORD."""
    with app.app_context():
        u = User(username="test", email="test@test.com", password_hash=hash_password(PASSWORD), password_version=1)
        storage.new(u)
        storage.save()
        return u.id


@pytest.fixture
def other_user(app):
    with app.app_context():
        u = User(username="other", email="other@test.com", password_hash=hash_password(PASSWORD), password_version=1)
        storage.new(u)
        storage.save()
        return u.id


def auth_header(token: str) -> dict:
    return {"Authorization": "jwt " + token}
