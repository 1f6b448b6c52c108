import os
import sys
import pytest

# Ensure the backend root (containing the `partyfinder` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from partyfinder import create_app, socketio
from partyfinder.services.container import EXTENSION_KEY
from partyfinder.services.parties.store import PartyStore
from partyfinder.services.sessions import DiscordUser

START_MS = 1_700_000_000_000


def make_test_config(tmp_path):
    class TestConfig:
        TESTING = True
        SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
        CORS_ORIGINS = '*'
        WEB_ORIGIN = 'http://localhost:3000'
        DISCORD_CLIENT_ID = 'test-client'
        DISCORD_CLIENT_SECRET = 'test-secret'
        DISCORD_REDIRECT_URI = 'http://localhost/auth/discord/callback'
        AUTH_COOKIE_NAME = 'ml_session'
        SESSION_TTL_SEC = 3600
        PARTY_TTL_MS = 2 * 60 * 60 * 1000
        MEMBER_IDLE_TTL_MS = 30 * 60 * 1000
        MAX_MEMBERS = 6
        PERSIST_FILE = str(tmp_path / 'parties.json')
        PROFILES_FILE = str(tmp_path / 'profiles.json')
        PERSIST_DEBOUNCE_MS = 10
        BROADCAST_DEBOUNCE_MS = 10
        REAPER_INTERVAL_SEC = 60
        RATE_LIMIT_ENABLED = False
    return TestConfig


class ManualClock:
    def __init__(self, start=START_MS):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class ManualSpawner:
    """Collects background tasks instead of starting them."""

    def __init__(self):
        self.calls = []

    def __call__(self, fn, *args):
        self.calls.append((fn, args))

    def run_all(self):
        calls, self.calls = self.calls, []
        for fn, args in calls:
            fn(*args)
        return len(calls)


def no_sleep(_seconds):
    return None


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def spawner():
    return ManualSpawner()


@pytest.fixture()
def persist_path(tmp_path):
    return str(tmp_path / 'parties.json')


@pytest.fixture()
def make_store(persist_path, clock, spawner):
    def _make(**overrides):
        options = dict(
            party_ttl_ms=60_000,
            member_idle_ttl_ms=10_000,
            max_members=6,
            spawn=spawner,
            sleep=no_sleep,
            clock=clock,
        )
        options.update(overrides)
        return PartyStore(persist_path, **options)
    return _make


@pytest.fixture()
def store(make_store):
    return make_store()


@pytest.fixture()
def flask_app(tmp_path):
    application = create_app(make_test_config(tmp_path))
    # no app context held open here: Flask-Login caches the user on `g`,
    # so each request has to get a fresh context
    yield application
    application.extensions[EXTENSION_KEY].shutdown()


@pytest.fixture()
def services(flask_app):
    return flask_app.extensions[EXTENSION_KEY]


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def login(test_client, services, user_id='100000000000000001', username='alice'):
    session = services.sessions.create(DiscordUser(id=user_id, username=username))
    test_client.set_cookie('ml_session', session.session_id)
    return session


@pytest.fixture()
def auth_client(flask_app, services):
    test_client = flask_app.test_client()
    login(test_client, services)
    return test_client


@pytest.fixture()
def make_auth_client(flask_app, services):
    def _make(user_id, username='player'):
        test_client = flask_app.test_client()
        login(test_client, services, user_id=user_id, username=username)
        return test_client
    return _make


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
