from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException
import secrets
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def _allowed_origins(flask_app):
    raw = flask_app.config.get('CORS_ORIGINS') or ''
    return [o.strip() for o in raw.split(',') if o.strip()]


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    allowed_origins = _allowed_origins(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Pick the invalidation transport; the core only ever calls notify(code)
    from naming_things.notify import build_notification_sink
    flask_app.extensions['notification_sink'] = build_notification_sink(flask_app.config.get('NOTIFICATION_SINK'))

    # Session-token identity resolution
    from naming_things import session  # noqa: F401

    from naming_things.main import main
    flask_app.register_blueprint(main)

    from naming_things.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from naming_things.api.answers import answers
    flask_app.register_blueprint(answers, url_prefix='/api/answers')

    from naming_things.api.players import players
    flask_app.register_blueprint(players, url_prefix='/api/players')

    from naming_things.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @flask_app.errorhandler(HTTPException)
    def handle_http_error(exc):
        # Guard rejections must never leave a half-applied transaction behind
        db.session.rollback()
        return jsonify({'error': exc.description}), exc.code

    @click.command('db-reset')
    @click.option('--seed', default=0, help='Number of demo players to create.')
    def db_reset_command(seed):
        """Drops, recreates, and seeds the database."""
        from naming_things.models import Player
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            for i in range(seed):
                player = Player(session_token=secrets.token_urlsafe(24), display_name=f'player{i + 1}')
                db.session.add(player)

            db.session.commit()
            click.echo(f'Database has been reset with {seed} demo players!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
