import os
import random
import sys

import pytest

# Ensure the backend root (containing the `oddword` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from oddword.config import Config
from oddword.game.timer import CountdownTimer
from oddword.store.memory import InMemoryStore
from oddword.sync.controller import SyncController

T0 = 1_700_000_000_000


class TestConfig(Config):
    __test__ = False

    TESTING = True
    SECRET_KEY = 'test-secret'
    TRUST_PROXY_HEADERS = False
    CLEANUP_INTERVAL_SEC = 0
    ROUND_DURATION_SEC = 180
    MIN_PLAYERS = 2
    MAX_PLAYERS = 10
    PRIVATE_WORDS_PER_PLAYER = 2


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms
        return self.now


class ManualTimer(CountdownTimer):
    """Countdown that only moves when a test calls ``evaluate``."""

    created = []

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        ManualTimer.created.append(self)

    def start(self, interval=1.0):
        self.evaluate()


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, event, payload):
        self.events.append((event, payload))

    def of(self, name):
        return [payload for event, payload in self.events if event == name]

    def last(self, name):
        found = self.of(name)
        return found[-1] if found else None

    def clear(self):
        self.events.clear()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store(clock):
    return InMemoryStore(clock=clock)


@pytest.fixture()
def rng():
    return random.Random(1234)


@pytest.fixture(autouse=True)
def _reset_timers():
    ManualTimer.created = []
    yield
    for timer in ManualTimer.created:
        timer.cancel()


@pytest.fixture()
def make_controller(store, clock):
    seeds = iter(range(100, 200))

    def _make(config=TestConfig):
        recorder = Recorder()
        controller = SyncController(
            store,
            listener=recorder,
            rng=random.Random(next(seeds)),
            clock=clock,
            timer_factory=ManualTimer,
            config=config,
        )
        return controller, recorder

    return _make


@pytest.fixture()
def flask_app(monkeypatch):
    monkeypatch.setenv('SOCKETIO_ASYNC_MODE', 'threading')
    from oddword.server import create_app

    application, _ = create_app(TestConfig)
    yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def hosted_store(flask_app):
    return flask_app.extensions['oddword.store']


@pytest.fixture()
def sio_client(flask_app):
    sio = flask_app.extensions['socketio']
    test_client = sio.test_client(flask_app, flask_test_client=flask_app.test_client())
    yield test_client
    try:
        test_client.disconnect()
    except Exception:
        pass
