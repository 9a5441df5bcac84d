"""User-facing messages for failed room and game operations.

A failure is reported to the client as an event named after the category
(the failed operation) carrying the type of the failure and a readable
message.
"""

ERROR_CATEGORIES = {
    'create_room_error': 'Cannot create room',
    'enter_room_error': 'Cannot enter room',
    'destruct_room_error': 'Cannot destruct room',
    'leave_room_error': 'Cannot leave room',
    'start_game_error': 'Cannot start game',
    'check_solution_error': 'Cannot check solution',
    'unspecific_error': 'Cannot proceed',
}

ERROR_TYPES = {
    'player_name_error': 'Player name is not accepted',
    'max_rooms_error': 'Maximum number of rooms reached. Please try again later',
    'room_id_error': 'Incorrect room ID. Please try with a correct one',
    'max_players_error': 'Maximum number of players reached. Please try in a different room',
    'permission_error': 'Player does not have permission for this operation',
    'player_not_found_error': 'Cannot find player in room',
    'game_ongoing_error': 'Cannot interrupt ongoing game',
    'game_finished_error': 'Game has already finished',
    'unknown_error': 'Reasons unknown',
}


def normalize(category, error_type):
    """Map unknown keys to the generic category and type."""
    if category not in ERROR_CATEGORIES:
        category = 'unspecific_error'
    if error_type not in ERROR_TYPES:
        error_type = 'unknown_error'
    return category, error_type


def error_message(category, error_type) -> str:
    category, error_type = normalize(category, error_type)
    return f"{ERROR_CATEGORIES[category]}. {ERROR_TYPES[error_type]}."


def error_payload(category, error_type=None):
    """Return (event name, payload) for a failure."""
    category, error_type = normalize(category, error_type)
    return category, {'type': error_type, 'message': error_message(category, error_type)}
