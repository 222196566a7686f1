import os
import sys
from datetime import datetime, timezone

import pytest

# Ensure the backend root (containing the `predictx` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from predictx import create_app, db, socketio
from predictx.services.game import rounds


def utc_ms(*args) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    CHECK_RESULTS_DEFAULT_LIMIT = 10
    CHECK_RESULTS_MAX_LIMIT = 50
    LEADERBOARD_MAX_LIMIT = 100
    HISTORY_MAX_LIMIT = 50


class FakeClock:
    def __init__(self, start_ms: int):
        self.value = start_ms

    def __call__(self) -> int:
        return self.value

    def set(self, *args) -> int:
        self.value = utc_ms(*args)
        return self.value

    def advance(self, ms: int) -> int:
        self.value += ms
        return self.value


@pytest.fixture()
def clock(monkeypatch):
    # 2025-03-10 12:01:00 UTC: quick round open for 4 more minutes, big not locked
    fake = FakeClock(utc_ms(2025, 3, 10, 12, 1))
    monkeypatch.setattr(rounds, 'now_ms', fake)
    return fake


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import predictx.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
