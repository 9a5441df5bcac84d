import json
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from emotimatch.config import Config

socketio = SocketIO(async_mode=None)


def create_app(config_class=Config, config_file=None):
    """Create the Flask app with its room registry and Socket.IO handlers.

    `config_file` (or the EMOTIMATCH_CONFIG environment variable) names an
    optional JSON file whose upper-case keys override `config_class`.
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    config_file = config_file or os.environ.get('EMOTIMATCH_CONFIG')
    if config_file:
        flask_app.config.from_file(os.path.abspath(config_file), load=json.load)

    from emotimatch.logs import configure_logging, config_entries, log_config
    configure_logging(flask_app)
    flask_app.logger.info('emotimatch start ------------------------------------------')
    log_config(flask_app)

    origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, supports_credentials=True, origins=origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    # One registry per app, handed to the handlers that use it
    from emotimatch.registry import RoomRegistry
    registry = RoomRegistry(
        capacity=flask_app.config['MAX_ROOMS'],
        room_capacity_default=flask_app.config['MAX_PARTICIPANTS'],
    )
    flask_app.extensions['room_registry'] = registry

    from emotimatch.main import main
    flask_app.register_blueprint(main)

    from emotimatch.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from emotimatch.socketio_events import register_socketio_handlers
    register_socketio_handlers(flask_app, registry)

    @click.command('config-dump')
    def config_dump_command():
        """Prints every effective configuration value."""
        for key, value in config_entries(flask_app.config):
            click.echo(f'{key}: {value}')

    flask_app.cli.add_command(config_dump_command)

    return flask_app
