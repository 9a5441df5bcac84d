import logging
import os
from logging.handlers import RotatingFileHandler

from flask.logging import default_handler


LOG_FORMAT = '%(asctime)s %(levelname)s: %(message)s'
LOG_FILE_NAME = 'emotimatch.log'
LOG_FILE_MAX_BYTES = 1024 * 1024
LOG_FILE_BACKUPS = 5


def configure_logging(flask_app) -> None:
    """Send the app logger to a rotating log file and the console.

    The level of the file is LOG_LEVEL; the console uses CONSOLE_LOG_LEVEL
    when set. Child loggers (`emotimatch.*`) propagate into these handlers.
    Does nothing in TESTING mode, where pytest captures Flask's default handler.
    """
    if flask_app.config.get('TESTING'):
        return

    level = flask_app.config.get('LOG_LEVEL', 'DEBUG').upper()
    console_level = (flask_app.config.get('CONSOLE_LOG_LEVEL') or level).upper()
    log_dir = flask_app.config.get('LOG_DIR', './log')
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, LOG_FILE_NAME),
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding='utf-8',
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)

    logger = flask_app.logger
    logger.removeHandler(default_handler)
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    logger.setLevel(min(logging.getLevelName(level), logging.getLevelName(console_level)))


SECRET_KEYS = {'SECRET_KEY'}


def config_entries(config):
    """Sorted (key, value) pairs of the upper-case settings of a Flask config, secrets masked."""
    return sorted(
        (key, '***' if key in SECRET_KEYS else value)
        for key, value in config.items()
        if key.isupper()
    )


def log_config(flask_app) -> None:
    for key, value in config_entries(flask_app.config):
        flask_app.logger.info(f"[config] {key}: {value}")
