import math
import secrets
from typing import Dict, Iterator, List, Optional

from emotimatch.models import Room


# added to the id size so ids stay hard to guess when there are few rooms
ROOM_ID_SECURITY_BYTES = 3
ROOM_ID_ATTEMPTS = 10


class RoomIdSpaceExhausted(RuntimeError):
    """No unused room id was found; the id size is too small for the number of rooms."""


def room_id_byte_length(capacity: int) -> int:
    """Bytes needed to number `capacity` rooms plus the security bytes."""
    return math.ceil(math.log2(capacity) / 8) + ROOM_ID_SECURITY_BYTES


class RoomRegistry:
    """Issues room ids and owns the rooms of one server."""

    def __init__(self, capacity: int = 5, room_capacity_default: int = 5):
        if capacity < 1:
            raise ValueError(f'registry capacity must be at least 1, got {capacity}')
        self.capacity = capacity
        self.room_capacity_default = room_capacity_default
        self.id_byte_length = room_id_byte_length(capacity)
        self.rooms: Dict[str, Room] = {}

    def __len__(self) -> int:
        return len(self.rooms)

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self.rooms.values()))

    def room_id_length(self) -> int:
        """Length of room id strings (hex, two characters per byte)."""
        return self.id_byte_length * 2

    def generate_room_id(self) -> str:
        return secrets.token_hex(self.id_byte_length)

    def is_full(self) -> bool:
        return len(self.rooms) >= self.capacity

    def has_room(self, room_id) -> bool:
        return room_id in self.rooms

    def get_room(self, room_id) -> Optional[Room]:
        return self.rooms.get(room_id)

    def create_room(self, capacity: Optional[int] = None) -> Optional[Room]:
        """Create a room with a fresh id.

        Returns None if the registry is full. Raises RoomIdSpaceExhausted when
        no unused id turns up within ROOM_ID_ATTEMPTS tries.
        """
        if self.is_full():
            return None
        for _ in range(ROOM_ID_ATTEMPTS):
            room_id = self.generate_room_id()
            if room_id in self.rooms:
                continue
            room = Room(room_id, capacity or self.room_capacity_default)
            self.rooms[room_id] = room
            return room
        raise RoomIdSpaceExhausted(
            f'cannot create new room after {ROOM_ID_ATTEMPTS} attempts '
            f'(room id size of {self.id_byte_length} bytes is probably too small)'
        )

    def remove_room(self, room_id) -> bool:
        return self.rooms.pop(room_id, None) is not None

    def find_rooms_by_connection(self, connection) -> List[Room]:
        return [room for room in self.rooms.values() if room.find_by_connection(connection)[0] >= 0]
