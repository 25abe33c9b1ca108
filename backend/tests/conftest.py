import os
import sys
import pytest

# Ensure the backend root (containing the `shape3d` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from shape3d import create_app, db, socketio, get_controller
from shape3d.services.game.domain import (
    Challenge,
    ChallengeSlot,
    Position,
    ShapeColor,
    ShapeType,
)
from shape3d.services.game.grid import now_ms


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    GRID_SIZE = 20
    MAX_HEIGHT = 10
    TOTAL_ROUNDS = 3
    SLOTS_PER_CHALLENGE = 3
    MAX_POSITION_ATTEMPTS = 100
    CHALLENGE_DURATION_SEC = 0
    CHALLENGE_INTERVAL_SEC = 0


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import shape3d.models  # noqa: F401
        db.create_all()
        yield application
        get_controller().shutdown()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def controller(flask_app):
    return get_controller()


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


# Round 1 layout used across the controller and API tests
SCENARIO_SLOTS = (
    ChallengeSlot(Position(3, 0, -2), ShapeType.CUBE, ShapeColor.RED),
    ChallengeSlot(Position(-5, 1, 4), ShapeType.SPHERE, ShapeColor.BLUE),
    ChallengeSlot(Position(0, 2, 0), ShapeType.TRIANGLE, ShapeColor.YELLOW),
)


@pytest.fixture()
def seed_challenge(controller):
    """Replace a session's current challenge with a known one."""
    def _seed(session_id, slots=SCENARIO_SLOTS, current_round=None):
        state = controller.store.load(session_id)
        state.current_challenge = Challenge(
            id='scenario1',
            slots=tuple(slots),
            start_time=now_ms(),
        )
        if current_round is not None:
            state.current_round = current_round
        controller.store.save(session_id, state)
        return state.current_challenge
    return _seed
