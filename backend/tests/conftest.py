import itertools
import os
import sys
from types import SimpleNamespace

import pytest

# Ensure the backend root (containing the `naming_things` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from naming_things import create_app, db, socketio
from naming_things.notify import NotificationSink


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    DEFAULT_TIMER_SEC = 60
    DEFAULT_TURN_TIMER_SEC = 5
    MIN_TURNS_PLAYERS = 2
    CODE_GENERATION_ATTEMPTS = 10
    NOTIFICATION_SINK = 'socketio'
    CORS_ORIGINS = 'http://localhost:3000'
    LOG_LEVEL = 'DEBUG'


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, seconds):
        self.current += seconds


class RecordingSink(NotificationSink):
    def __init__(self):
        self.codes = []

    def notify(self, game_code):
        self.codes.append(game_code)


@pytest.fixture(autouse=True)
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr('naming_things.services.games.clock.now', fake)
    return fake


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import naming_things.models  # noqa: F401
        db.create_all()
    # Requests get their own app context (and so their own flask.g / current_user)
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def notifications(flask_app):
    sink = RecordingSink()
    flask_app.extensions['notification_sink'] = sink
    return sink


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


@pytest.fixture()
def new_player(client):
    """Registers a session and returns its id and auth headers."""
    counter = itertools.count(1)

    def _make(name):
        token = f'session-{name.lower()}-{next(counter)}'
        res = client.post('/api/players/session', json={'session_token': token, 'display_name': name})
        assert res.status_code == 200
        return SimpleNamespace(
            id=res.get_json()['id'],
            name=name,
            token=token,
            headers={'X-Session-Token': token},
        )

    return _make


@pytest.fixture()
def lobby(client, new_player):
    """Host plus the given player names joined to a fresh lobby."""

    def _make(*names, mode='classic', category='fruits'):
        host = new_player('Host')
        res = client.post('/api/games/create', headers=host.headers)
        assert res.status_code == 201
        created = res.get_json()
        players = [host]
        for name in names:
            p = new_player(name)
            assert client.post('/api/games/join', json={'code': created['code']}, headers=p.headers).status_code == 200
            players.append(p)
        game_id = created['game_id']
        if mode != 'classic':
            assert client.post(f'/api/games/{game_id}/mode', json={'mode': mode}, headers=host.headers).status_code == 200
        if category:
            assert client.post(f'/api/games/{game_id}/category', json={'category': category}, headers=host.headers).status_code == 200
        return SimpleNamespace(id=game_id, code=created['code'], host=host, players=players)

    return _make
