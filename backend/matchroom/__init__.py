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

SESSION_EXTENSION = 'matchroom.session'


def create_app(config_class=Config, prompt_generator=None, commentary_generator=None, broadcaster=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'
    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Wire the session state machine with its collaborators
    from matchroom.domain import SessionConfig
    from matchroom.services.broadcast import Broadcaster
    from matchroom.services.generation import CommentaryGenerator, PromptGenerator, build_openai_client
    from matchroom.services.session import GameSession
    from matchroom.services.store import RoomStore

    cfg = flask_app.config
    if prompt_generator is None or commentary_generator is None:
        client_factory = build_openai_client(cfg.get('OPENAI_API_KEY'))
        if prompt_generator is None:
            prompt_generator = PromptGenerator(
                client_factory,
                model=cfg.get('OPENAI_MODEL', 'gpt-4o-mini'),
                timeout=float(cfg.get('PROMPT_TIMEOUT_SEC', 30)),
            )
        if commentary_generator is None:
            commentary_generator = CommentaryGenerator(
                client_factory,
                model=cfg.get('OPENAI_MODEL', 'gpt-4o-mini'),
                timeout=float(cfg.get('COMMENTARY_TIMEOUT_SEC', 60)),
                limit=int(cfg.get('COMMENTARY_LIMIT', 30)),
            )
    if broadcaster is None:
        broadcaster = Broadcaster(socketio, namespace='/ws')

    flask_app.extensions[SESSION_EXTENSION] = GameSession(
        store=RoomStore(db),
        prompts=prompt_generator,
        commentary=commentary_generator,
        broadcaster=broadcaster,
        config=SessionConfig.from_mapping(cfg),
        logger=flask_app.logger,
    )

    from matchroom.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # Register Socket.IO event handlers
    from matchroom.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates every table (development only)."""
        import matchroom.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('purge-expired')
    def purge_expired_command():
        """Deletes rooms past their expiry together with their players and answers."""
        with flask_app.app_context():
            store = flask_app.extensions[SESSION_EXTENSION].store
            purged = store.purge_expired()
            print(f'Purged {purged} expired room(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(purge_expired_command)

    return flask_app
