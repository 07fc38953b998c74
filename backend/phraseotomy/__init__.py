from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from phraseotomy.main import main
    flask_app.register_blueprint(main)

    from phraseotomy.api.games import games
    # Mount game routes under /api to match frontend API client
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from phraseotomy.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates all game tables."""
        import phraseotomy.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('purge-sessions')
    @click.option('--status', 'statuses', multiple=True, default=('completed', 'active'),
                  help='Session statuses to purge (repeatable).')
    def purge_sessions_command(statuses):
        """Deletes every session in the given statuses along with its rows."""
        from phraseotomy.models import GameSession
        from phraseotomy.services.games.scheduler import delete_session_tree
        with flask_app.app_context():
            ids = [s.id for s in GameSession.query.filter(GameSession.status.in_(statuses)).all()]
            for sid in ids:
                delete_session_tree(db.session, sid)
            db.session.commit()
            print(f'Purged {len(ids)} session(s) with status in {", ".join(statuses)}')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(purge_sessions_command)

    return flask_app
