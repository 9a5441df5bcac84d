import os
import sys
import pytest

# Ensure the project root (containing the `emotimatch` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from emotimatch import create_app, socketio


NAMESPACE = '/ws'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['http://localhost:3000']
    SOCKETIO_NAMESPACE = NAMESPACE
    MAX_ROOMS = 3
    MAX_PARTICIPANTS = 3
    ROUNDS = 1
    ROUND_PREPARE_DELAY_SEC = 0
    ROUND_START_DELAY_SEC = 0
    ROUND_MAX_TIME_SEC = 0
    PENALTY_TIME_SEC = 0
    GAME_FINISH_DELAY_SEC = 0
    CARD_SIZE = 3
    WIN_CARD_SIZE_ADD = 1


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def registry(flask_app):
    return flask_app.extensions['room_registry']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def _connect(flask_app):
    return socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace=NAMESPACE,
    )


@pytest.fixture()
def sio_client(flask_app):
    test_client = _connect(flask_app)
    yield test_client
    try:
        test_client.disconnect(namespace=NAMESPACE)
    except Exception:
        pass


@pytest.fixture()
def make_sio_client(flask_app):
    """Factory for additional Socket.IO clients, all disconnected on teardown."""
    created = []

    def factory():
        test_client = _connect(flask_app)
        created.append(test_client)
        return test_client

    yield factory
    for test_client in created:
        try:
            test_client.disconnect(namespace=NAMESPACE)
        except Exception:
            pass


@pytest.fixture()
def clock():
    return FakeClock()
