import os
import sys
import pytest

# Ensure the backend root (containing the `cardmath` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from cardmath import create_app, socketio
from cardmath.services.games import GameHub


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    ALLOWED_ORIGINS = ['*']
    SOCKETIO_NAMESPACE = '/'
    LOG_LEVEL = 'DEBUG'
    AUTO_ADVANCE_DELAY_MS = 800
    PRESENCE_DEBOUNCE_MS = 200
    OPTIONS_PRESENCE_DEBOUNCE_MS = 100
    ROOM_TTL_SEC = 600
    ROOM_SWEEP_INTERVAL_SEC = 0
    DEFAULT_DIFFICULTY = 'easy'


class ManualTasks:
    """Stand-in for Socket.IO background tasks: queued, run on demand, no real sleeping."""

    def __init__(self):
        self.queue = []
        self.slept = []

    def spawn(self, fn, *args, **kwargs):
        self.queue.append((fn, args, kwargs))

    def sleep(self, seconds):
        self.slept.append(seconds)

    def run_pending(self):
        ran = 0
        while self.queue:
            fn, args, kwargs = self.queue.pop(0)
            fn(*args, **kwargs)
            ran += 1
        return ran


class Outbox:
    """Records what the hub emits, as ``(event, payload, sid)``."""

    def __init__(self):
        self.sent = []

    def __call__(self, event, *args, to=None):
        self.sent.append((event, args[0] if args else None, to))

    def events(self, name, to=None):
        return [p for e, p, sid in self.sent if e == name and (to is None or sid == to)]

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def tasks():
    return ManualTasks()


@pytest.fixture()
def outbox():
    return Outbox()


@pytest.fixture()
def hub(tasks, outbox):
    config = {k: getattr(TestConfig, k) for k in dir(TestConfig) if k.isupper()}
    return GameHub(outbox, tasks.spawn, tasks.sleep, config)


@pytest.fixture()
def two_player_room(hub):
    """A room with creator 's1' (player 1) and joiner 's2' (player 2)."""
    room, _ = hub.registry.create_room('s1')
    hub.registry.join_room(room.room_id, 's2')
    return room


@pytest.fixture()
def flask_app(tasks):
    application = create_app(TestConfig, spawn=tasks.spawn, sleep=tasks.sleep)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_sio(flask_app):
    clients = []

    def _make():
        test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        try:
            if test_client.is_connected():
                test_client.disconnect()
        except Exception:
            pass


@pytest.fixture()
def pick(hub):
    """Select a card of ``value`` from a player's hand, planting one if needed."""
    from cardmath.models import Card

    def _pick(room, number, value):
        hand = room.game.hands[number]
        card = next((c for c in hand if c.value == value), None)
        if card is None:
            card = Card(id=f"planted-{number}-{value}", value=value, suit='hearts')
            hand[0] = card
        return hub.rounds.select_card(room.room_id, number, card.id)

    return _pick
