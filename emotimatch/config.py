import os


def _origins(raw):
    return [origin.strip() for origin in raw.split(',') if origin.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    HOST = os.environ.get('EMOTIMATCH_HOST', 'localhost')
    PORT = int(os.environ.get('EMOTIMATCH_PORT', '3000'))
    CORS_ORIGINS = _origins(os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173',
    ))
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/ws')
    # Rooms
    MAX_ROOMS = int(os.environ.get('MAX_ROOMS', '9'))
    MAX_PARTICIPANTS = int(os.environ.get('MAX_PARTICIPANTS', '9'))
    # Game timing (seconds)
    ROUNDS = int(os.environ.get('ROUNDS', '5'))
    ROUND_PREPARE_DELAY_SEC = float(os.environ.get('ROUND_PREPARE_DELAY_SEC', '2'))
    ROUND_START_DELAY_SEC = float(os.environ.get('ROUND_START_DELAY_SEC', '3'))
    ROUND_MAX_TIME_SEC = float(os.environ.get('ROUND_MAX_TIME_SEC', '10'))
    PENALTY_TIME_SEC = float(os.environ.get('PENALTY_TIME_SEC', '2'))
    GAME_FINISH_DELAY_SEC = float(os.environ.get('GAME_FINISH_DELAY_SEC', '10'))
    # Cards
    CARD_SIZE = int(os.environ.get('CARD_SIZE', '3'))
    WIN_CARD_SIZE_ADD = float(os.environ.get('WIN_CARD_SIZE_ADD', '1'))
    # Logging; the console level defaults to LOG_LEVEL
    LOG_DIR = os.environ.get('LOG_DIR', './log')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')
    CONSOLE_LOG_LEVEL = os.environ.get('CONSOLE_LOG_LEVEL') or None
