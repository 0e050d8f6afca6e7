import os
import random
import sys
import pytest

# Ensure the backend root (containing the `derby` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from derby import create_app, socketio
from derby.services.race import QuestionBank, RaceEngine
from derby.sources import StaticQuestionSource


QUESTION_ROWS = [
    ('Difficulty', 'Question'),
    ('1', '[mcq|Capital of France?|Paris*|Rome|Berlin|Paris has been the capital since 987.]'),
    ('2', '[msq|Pick the primes|2*|3*|4|Two and three are prime.]'),
    ('3', '[text|Largest planet?|Jupiter*|Jupiter is the largest.]'),
]

TIER_EFFECTS = {
    1: (1, 5000, 5000),
    2: (2, 10000, 10000),
    3: (3, 15000, 15000),
}


class TestConfig:
    __test__ = False
    TESTING = True
    SECRET_KEY = 'test-secret'
    HOST_PASSWORD = 'start'
    QUESTION_ROWS = QUESTION_ROWS
    CORS_ORIGINS = ['http://localhost:3000']
    SOCKETIO_NAMESPACE = '/'
    RACE_START_DELAY_SEC = 5
    FINISH_LINE = 700
    STEP_DISTANCE = 35
    STARTING_PASSES = 3
    TIER_EFFECTS = TIER_EFFECTS


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class ManualScheduler:
    """Holds timers until the test advances the fake clock."""

    def __init__(self, clock):
        self.clock = clock
        self.timers = []
        self.spawned = []

    def call_later(self, delay_sec, callback, *args):
        self.timers.append((self.clock.now + delay_sec * 1000, callback, args))

    def spawn(self, callback, *args):
        self.spawned.append((callback, args))

    def advance(self, ms):
        target = self.clock.now + ms
        while True:
            due = sorted((t for t in self.timers if t[0] <= target), key=lambda t: t[0])
            if not due:
                break
            timer = due[0]
            self.timers.remove(timer)
            self.clock.now = timer[0]
            timer[1](*timer[2])
        self.clock.now = target

    def run_spawned(self):
        pending, self.spawned = self.spawned, []
        for callback, args in pending:
            callback(*args)


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send(self, event, payload=None, to=None, skip=None):
        self.sent.append({'event': event, 'payload': payload, 'to': to, 'skip': skip})

    def events(self, name):
        return [s for s in self.sent if s['event'] == name]

    def last(self, name):
        found = self.events(name)
        return found[-1] if found else None

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def source():
    return StaticQuestionSource(QUESTION_ROWS)


@pytest.fixture()
def engine(source, notifier, scheduler, clock):
    bank = QuestionBank(TIER_EFFECTS, rng=random.Random(7))
    race_engine = RaceEngine(
        bank,
        source,
        notifier,
        scheduler,
        host_password='start',
        clock=clock,
        rng=random.Random(7),
    )
    race_engine.load_questions()
    return race_engine


@pytest.fixture()
def host(engine):
    assert engine.host_login('host-sid', 'start')
    return 'host-sid'


@pytest.fixture()
def racing(engine, host, scheduler):
    """Engine with two joined players and the race already running."""
    engine.join('alice-sid', 'Alice', 'red')
    engine.join('bob-sid', 'Bob', 'blue')
    engine.start_race(host)
    scheduler.advance(5000)
    return engine


@pytest.fixture()
def flask_app(clock, scheduler):
    application = create_app(TestConfig, scheduler=scheduler, clock=clock, rng=random.Random(7))
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
    yield test_client
    try:
        test_client.disconnect()
    except Exception:
        pass
