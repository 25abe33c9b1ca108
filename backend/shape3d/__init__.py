from flask import Flask, current_app
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import atexit
import uuid
import weakref
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

EXTENSION_KEY = 'shape3d'

# Controllers of every live app; one exit hook shuts them all down
_controllers = weakref.WeakSet()


@atexit.register
def shutdown_controllers():
    for controller in list(_controllers):
        controller.shutdown()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from shape3d.main import main
    flask_app.register_blueprint(main)

    from shape3d.api.game import game
    flask_app.register_blueprint(game, url_prefix='/api')

    # Register Socket.IO event handlers
    from shape3d.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    controller = build_controller(flask_app)
    flask_app.extensions[EXTENSION_KEY] = controller
    # Live challenge timers must not fire against a torn-down database
    _controllers.add(controller)

    @click.command('session-create')
    @click.argument('session_id', required=False)
    @click.option('--reset', is_flag=True, help='Discard any existing state for the session.')
    def session_create_command(session_id, reset):
        """Creates a session with round 1 and its first challenge."""
        session_id = session_id or uuid.uuid4().hex[:12]
        with flask_app.app_context():
            state = controller.initialize_session(session_id, reset=reset)
        click.echo(f"Session {session_id} ready: round {state.current_round}/{state.total_rounds}")

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the key-value table."""
        import shape3d.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
        click.echo('Database has been reset!')

    flask_app.cli.add_command(session_create_command)
    flask_app.cli.add_command(db_reset_command)

    return flask_app


def build_controller(flask_app):
    from shape3d.services.game.broadcast import BroadcastGateway
    from shape3d.services.game.controller import SessionController
    from shape3d.services.game.scheduler import ChallengeTimers
    from shape3d.services.game.store import SessionStore, SqlKeyValueStore

    cfg = flask_app.config
    store = SessionStore(SqlKeyValueStore(db), total_rounds=int(cfg.get('TOTAL_ROUNDS', 5)))
    broadcaster = BroadcastGateway(socketio, namespace='/ws', logger=flask_app.logger)
    timers = ChallengeTimers(flask_app, spawn=socketio.start_background_task)
    return SessionController.from_config(cfg, store, broadcaster, timers, logger=flask_app.logger)


def get_controller():
    return current_app.extensions[EXTENSION_KEY]
