from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

from derby.errors import ConfigError

socketio = SocketIO(async_mode=None)


def get_engine(flask_app):
    return flask_app.extensions['race_engine']


def create_app(config_class=Config, scheduler=None, clock=None, rng=None):
    """Build the race server.

    Loads the question bank before returning: a server with no questions or
    no host password must not start accepting connections.
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, supports_credentials=True, origins=origins)
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    if not flask_app.config.get('HOST_PASSWORD'):
        raise ConfigError('HOST_PASSWORD is not set')

    from derby.services.race import QuestionBank, RaceEngine, SocketIONotifier, SocketIOScheduler
    from derby.sources import build_question_source

    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/')
    bank = QuestionBank(flask_app.config.get('TIER_EFFECTS'), rng=rng)
    engine = RaceEngine.from_config(
        flask_app.config,
        bank,
        build_question_source(flask_app.config),
        SocketIONotifier(socketio, namespace),
        scheduler or SocketIOScheduler(socketio),
        clock=clock,
        rng=rng,
    )
    total = engine.load_questions()
    flask_app.logger.info(f"[startup] question bank ready with {total} questions")
    flask_app.extensions['race_engine'] = engine

    from derby.routes import main
    flask_app.register_blueprint(main)

    from derby.api.race import race
    flask_app.register_blueprint(race, url_prefix='/api/race')

    # Importing here ensures the handlers bind to the initialized socketio instance
    from derby.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace)

    return flask_app
