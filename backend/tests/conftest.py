import os
import sys
import pytest

# Ensure the backend root (containing the `pairplay` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from pairplay import create_app, db, socketio
from pairplay.services.games import roster, rounds
from pairplay.services.games.registry import RoomRegistry


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    HOST_GRACE_PERIOD_SEC = 5
    BOT_MIN_DELAY_SEC = 0
    BOT_MAX_DELAY_SEC = 0
    MAX_BOTS = 8


class TaskRecorder:
    """Stands in for socketio.start_background_task; run() drains the queue."""

    def __init__(self):
        self.tasks = []

    def __call__(self, fn, *args):
        self.tasks.append((fn, args))

    def run(self):
        pending, self.tasks = self.tasks, []
        for fn, args in pending:
            fn(*args)
        return len(pending)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import pairplay.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def runtime(flask_app):
    rt = flask_app.extensions['pairplay']
    rt.spawn = TaskRecorder()
    rt.sleep = lambda seconds: None
    return rt


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app, runtime):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def registry():
    return RoomRegistry()


@pytest.fixture()
def room(registry):
    """Lobby with a host and four players, not yet paired."""
    r = registry.create_room('test')
    roster.add_player(r, 'host-socket', 'Host', is_host=True)
    roster.add_player(r, 'player1-socket', 'Alice')
    roster.add_player(r, 'player2-socket', 'Bob')
    roster.add_player(r, 'player3-socket', 'Carol')
    roster.add_player(r, 'player4-socket', 'Dave')
    return r


@pytest.fixture()
def started_room(room):
    """Alice & Bob and Carol & Dave paired, game started."""
    roster.pair_players(room, 'player1-socket', 'player2-socket')
    roster.pair_players(room, 'player3-socket', 'player4-socket')
    rounds.start_game(room)
    return room
