import os
import sys
from datetime import datetime, timezone
import pytest

# Ensure the backend root (containing the `dailyscore` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from dailyscore import create_app, db, socketio
from dailyscore.clock import FixedClock


TODAY = '2024-03-15'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LEADERBOARD_TIMEZONE = ''
    LEADERBOARD_TODAY_INCLUDE_PENDING = True
    SCORE_CONFLICT_ATTEMPTS = 3
    SCORE_REQUEST_TIMEOUT_SEC = 0
    RUN_STATS_PATH = 'run_stats.json'


@pytest.fixture()
def clock():
    return FixedClock(datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture()
def flask_app(clock, tmp_path):
    application = create_app(TestConfig, clock=clock)
    application.config['RUN_STATS_PATH'] = str(tmp_path / 'run_stats.json')
    with application.app_context():
        # Ensure models are imported so tables are created
        import dailyscore.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app, client):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=client,
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def store(flask_app):
    from dailyscore.services.scores.store import DocumentStore
    return DocumentStore()


@pytest.fixture()
def coordinator(store, clock):
    from dailyscore.services.scores.coordinator import ScoreCoordinator
    return ScoreCoordinator(store, clock)


@pytest.fixture()
def leaderboard(store, clock):
    from dailyscore.services.scores.leaderboard import LeaderboardQuery
    return LeaderboardQuery(store, clock)


@pytest.fixture()
def file_app(clock, tmp_path):
    """App on a SQLite file so each thread can work through its own connection."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'scores.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'check_same_thread': False, 'timeout': 10}}

    application = create_app(FileConfig, clock=clock)
    with application.app_context():
        import dailyscore.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()
