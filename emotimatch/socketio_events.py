from flask import request
from flask_socketio import emit
from typing import Any, Dict, List, Optional

from emotimatch import socketio
from emotimatch.errors import error_payload
from emotimatch.models import Participant, Room
from emotimatch.registry import RoomIdSpaceExhausted, RoomRegistry
from emotimatch.services.games import GameInfo, GameOptions, RoundEngine


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _payload(data) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _participant_name(data: Dict[str, Any]) -> Optional[str]:
    name = data.get('name')
    if not isinstance(name, str) or not name.strip():
        return None
    return name.strip()


class GameEventHandler:
    """Translates Socket.IO events of the clients into room and game operations.

    Owns no state of its own beyond the registry it is given; every reply
    goes to the connections of the participants in the affected room.
    """

    def __init__(self, flask_app, registry: RoomRegistry, namespace: str = '/ws'):
        self.app = flask_app
        self.registry = registry
        self.namespace = namespace
        self.logger = flask_app.logger

    def routes(self):
        return [
            ('connect', self.handle_connect),
            ('disconnect', self.handle_disconnect),
            ('create_room', self.handle_create_room),
            ('enter_room', self.handle_enter_room),
            ('destruct_room', self.handle_destruct_room),
            ('leave_room', self.handle_leave_room),
            ('start_game', self.handle_start_game),
            ('check_solution', self.handle_check_solution),
        ]

    # ---- helpers ----

    def _fail(self, category: str, error_type: str = None) -> None:
        event, payload = error_payload(category, error_type)
        emit(event, payload)
        self.logger.error(f"[{event}] sid={_get_sid()} type={payload['type']} {payload['message']}")

    def _send(self, event: str, data, connection) -> None:
        socketio.emit(event, data, to=connection, namespace=self.namespace)

    def _find_room(self, data: Dict[str, Any]) -> Optional[Room]:
        room_id = data.get('roomId')
        if not isinstance(room_id, str):
            return None
        return self.registry.get_room(room_id)

    def _destruct(self, room: Room) -> None:
        self.registry.remove_room(room.id)
        room.unbind_game()
        view = room.public_view()
        for participant in room:
            self._send('room_destructed', view, participant.connection)

    def _leave(self, room: Room, connection) -> None:
        index, former = room.find_by_connection(connection)
        if index < 0:
            return
        if index == 0:
            # the room cannot live without its owner
            self._destruct(room)
            self.logger.info(f"[room-destructed] room={room.id} by {former} leaving")
            return
        room.remove_participant(former)
        view = room.public_view()
        view['formerParticipant'] = former.public_info()
        self._send('left_room', view, connection)
        for participant in room:
            self._send('participant_left', view, participant.connection)
        self.logger.info(f"[room-left] room={room.id} {former}")

    # ---- connection lifecycle ----

    def handle_connect(self):
        emit('connected', {'message': f'Connected to {self.namespace}'})

    def handle_disconnect(self, *args):
        sid = _get_sid()
        for room in self.registry.find_rooms_by_connection(sid):
            self._leave(room, sid)

    # ---- rooms ----

    def handle_create_room(self, data=None):
        data = _payload(data)
        name = _participant_name(data)
        if not name:
            return self._fail('create_room_error', 'player_name_error')
        if self.registry.is_full():
            return self._fail('create_room_error', 'max_rooms_error')
        try:
            room = self.registry.create_room()
        except RoomIdSpaceExhausted:
            self.logger.error('[create_room_error] room id space exhausted', exc_info=True)
            return self._fail('create_room_error', 'unknown_error')
        if room is None:
            return self._fail('create_room_error', 'max_rooms_error')
        participant = Participant(_get_sid(), name)
        room.add_participant(participant)
        emit('room_created', room.public_view())
        self.logger.info(f"[room-created] room={room.id} by {participant} rooms={len(self.registry)}")

    def handle_enter_room(self, data=None):
        data = _payload(data)
        name = _participant_name(data)
        if not name:
            return self._fail('enter_room_error', 'player_name_error')
        room = self._find_room(data)
        if room is None:
            return self._fail('enter_room_error', 'room_id_error')
        newcomer = Participant(_get_sid(), name)
        if not room.add_participant(newcomer):
            return self._fail('enter_room_error', 'max_players_error')
        view = room.public_view()
        view['newParticipant'] = newcomer.public_info()
        for participant in room:
            if participant.connection == newcomer.connection:
                emit('room_entered', view)
            else:
                self._send('participant_joined', view, participant.connection)
        self.logger.info(f"[room-entered] room={room.id} {newcomer} size={len(room)}")

    def handle_destruct_room(self, data=None):
        data = _payload(data)
        room = self._find_room(data)
        if room is None:
            # positive confirmation, e.g. the server restarted since the room was created
            emit('room_destructed', {'id': data.get('roomId')})
            return
        index, participant = room.find_by_connection(_get_sid())
        if index != 0:
            return self._fail('destruct_room_error', 'permission_error')
        self._destruct(room)
        self.logger.info(f"[room-destructed] room={room.id} by {participant}")

    def handle_leave_room(self, data=None):
        data = _payload(data)
        room = self._find_room(data)
        sid = _get_sid()
        if room is None or room.find_by_connection(sid)[0] < 0:
            # positive confirmation, the connection is not in that room (anymore)
            emit('left_room', {'id': data.get('roomId')})
            return
        self._leave(room, sid)

    # ---- game ----

    def handle_start_game(self, data=None):
        data = _payload(data)
        room = self._find_room(data)
        if room is None:
            return self._fail('start_game_error', 'room_id_error')
        if not room.is_game_finished():
            return self._fail('start_game_error', 'game_ongoing_error')
        if not room.is_owner(_get_sid()):
            return self._fail('start_game_error', 'permission_error')

        game = RoundEngine(
            len(room),
            options=GameOptions.from_config(self.app.config),
            sleep=socketio.sleep,
        )
        room.bind_game(game)
        self.logger.info(f"[game-start] room={room.id} participants={len(room)}")
        socketio.start_background_task(self._run_game, room, game)

    def _run_game(self, room: Room, game: RoundEngine) -> None:
        try:
            game.start(
                lambda infos: self._send_game_status(room, game, 'game_started', infos),
                lambda infos: self._send_game_status(room, game, 'round_prepared', infos),
                lambda infos: self._send_game_status(room, game, 'round_started', infos),
                lambda infos: self._send_game_status(room, game, 'round_finished', infos),
                lambda infos: self._finish_game(room, game, infos),
            )
        except Exception:
            self.logger.error(f"[game-error] room={room.id}", exc_info=True)
            game.abort()

    def _finish_game(self, room: Room, game: RoundEngine, infos: List[GameInfo]) -> None:
        if room.game is game:
            room.record_game(game.scores)
        self._send_game_status(room, game, 'game_finished', infos)
        self.logger.info(f"[game-finished] room={room.id} games_played={room.games_played}")

    def _send_game_status(self, room: Room, game: RoundEngine, event: str, infos: List[GameInfo]) -> None:
        if self.registry.get_room(room.id) is not room or room.game is not game:
            # stale callback of a destroyed room or replaced game
            return
        view = room.public_view()
        for participant in room:
            pid = room.game_participant_id(participant.connection)
            if 0 <= pid < len(infos):
                self._send(event, (view, infos[pid].to_dict()), participant.connection)
            else:
                self._send(event, view, participant.connection)

    def handle_check_solution(self, data=None):
        data = _payload(data)
        room = self._find_room(data)
        if room is None:
            return self._fail('check_solution_error', 'room_id_error')
        if room.is_game_finished():
            return self._fail('check_solution_error', 'game_finished_error')
        pid = room.game_participant_id(_get_sid())
        if pid < 0:
            return self._fail('check_solution_error', 'player_not_found_error')
        answer = room.game.submit_answer(pid, data)
        if answer is not None:
            emit('solution_checked', answer)


def register_socketio_handlers(flask_app, registry: RoomRegistry) -> GameEventHandler:
    """Register the Socket.IO event handlers of one app on its configured namespace."""
    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/ws')
    handler = GameEventHandler(flask_app, registry, namespace)
    for event, callback in handler.routes():
        socketio.on_event(event, callback, namespace=namespace)
    return handler
