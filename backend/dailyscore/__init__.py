from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config, clock=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # "Today" comes from one clock built at startup; tests pass a fixed one
    from dailyscore.clock import Clock
    flask_app.extensions['dailyscore_clock'] = clock or Clock(flask_app.config.get('LEADERBOARD_TIMEZONE') or None)

    from dailyscore.main import main
    flask_app.register_blueprint(main)

    from dailyscore.api.scores import scores, register_error_handlers
    flask_app.register_blueprint(scores, url_prefix='/api')
    register_error_handlers(flask_app)

    from dailyscore.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    # Flask-Login user loader: the session id is the normalized identity
    from dailyscore.models import SessionUser
    from dailyscore.services.scores.accounts import load_user
    from dailyscore.services.scores.store import DocumentStore

    @login_manager.user_loader
    def load_session_user(identity):
        record = load_user(DocumentStore(), identity)
        if record is None:
            return None
        return SessionUser(record.identity, record.display_name)

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from dailyscore.services.scores import get_coordinator
        from dailyscore.services.scores.accounts import sign_up
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            coordinator = get_coordinator()
            for name in ['Ana', 'Ben', 'Cleo']:
                sign_up(coordinator, f'{name.lower()}@example.com', name)

            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    from dailyscore.cli import leaderboard_cli, stats_cli
    flask_app.cli.add_command(leaderboard_cli)
    flask_app.cli.add_command(stats_cli)

    return flask_app
