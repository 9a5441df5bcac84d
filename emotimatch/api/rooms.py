from flask import Blueprint, current_app, jsonify

rooms = Blueprint('rooms', __name__)


def _registry():
    return current_app.extensions['room_registry']


@rooms.route('', methods=['GET'])
def get_registry_stats():
    """
    Returns how many rooms are open and how many the server allows.
    """
    registry = _registry()
    return jsonify({
        'rooms': len(registry),
        'capacity': registry.capacity,
        'roomIdLength': registry.room_id_length(),
    }), 200


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    """
    Returns the public view of a room: participant names, scores and games played.
    """
    room = _registry().get_room(room_id)
    if room is None:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify(room.public_view()), 200
