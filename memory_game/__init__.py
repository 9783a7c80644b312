from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config, scheduler=None, rng=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from memory_game.routes import main
    flask_app.register_blueprint(main)

    from memory_game.api.card_sets import card_sets
    flask_app.register_blueprint(card_sets, url_prefix='/api')

    # One registry and dispatcher per app; handlers reach it through the app
    from memory_game.broadcast import SessionChannel
    from memory_game.dispatcher import SessionDispatcher
    from memory_game.models import load_card_set_images
    from memory_game.services.sessions.registry import SessionRegistry
    from memory_game.services.sessions.timers import BackgroundScheduler

    flask_app.extensions['session_dispatcher'] = SessionDispatcher(
        registry=SessionRegistry(),
        channel=SessionChannel(socketio.emit, logger=flask_app.logger),
        scheduler=scheduler or BackgroundScheduler(socketio, logger=flask_app.logger),
        reveal_delay=float(flask_app.config.get('REVEAL_DELAY_SEC', 1.0)),
        default_time_per_turn=int(flask_app.config.get('TURN_DURATION_SEC', 30)),
        rng=rng,
        card_set_loader=load_card_set_images,
        logger=flask_app.logger,
    )

    # Register Socket.IO event handlers
    from memory_game.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the card set tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
        click.echo('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
