import os
import sys
import pytest

# Ensure the backend root (containing the `phraseotomy` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from phraseotomy import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MIN_PLAYERS = 1
    MAX_PLAYERS = 12
    WHISP_API_KEY = ''


class SchedulerTestConfig(TestConfig):
    ENABLE_SCHEDULER_IN_TESTS = True
    CLEANUP_DELAY_SEC = 0


def _make_app(config_class):
    application = create_app(config_class)
    ctx = application.app_context()
    ctx.push()
    # Ensure models are imported so tables are created
    import phraseotomy.models  # noqa: F401
    db.create_all()
    return application, ctx


@pytest.fixture()
def flask_app():
    application, ctx = _make_app(TestConfig)
    yield application
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture()
def scheduler_app():
    application, ctx = _make_app(SchedulerTestConfig)
    yield application
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def store(flask_app):
    return db.session


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


@pytest.fixture()
def lobby(store):
    """Build a waiting lobby: ``lobby('alice', 'bob')`` seats alice as host."""
    from phraseotomy.schemas import CreateSessionRequest, JoinLobbyRequest
    from phraseotomy.services.games.lobby import create_session, join_lobby

    def _build(host, *others):
        created = create_session(store, CreateSessionRequest(host_id=host, host_name=host.title()))
        for pid in others:
            join_lobby(store, JoinLobbyRequest(lobby_code=created.lobby_code, player_id=pid, player_name=pid.title()))
        return created.session_id

    return _build


@pytest.fixture()
def started_game(store, lobby):
    """Build and start a game; returns its session id."""
    from phraseotomy.schemas import StartGameRequest
    from phraseotomy.services.games.progression import start_game

    def _build(host, *others):
        session_id = lobby(host, *others)
        start_game(store, StartGameRequest(session_id=session_id))
        return session_id

    return _build
