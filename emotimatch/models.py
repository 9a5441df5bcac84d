from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from emotimatch.services.games import RoundEngine


@dataclass(frozen=True)
class Participant:
    """A connected player. `connection` is the Socket.IO session id used to address them."""

    connection: Any
    name: str

    def public_info(self) -> Dict[str, Any]:
        return {'name': self.name}

    def __str__(self) -> str:
        return f'Participant "{self.name}"'


class Room:
    """A game room: a roster of participants, their scores and the bound game.

    The participant at index 0 created the room and owns it.
    """

    def __init__(self, room_id: str, capacity: int):
        self.id = room_id
        self.capacity = capacity
        self.participants: List[Participant] = []
        self.scores: List[int] = []
        self.game: Optional[RoundEngine] = None
        # connections of the participants when the game started, indexed by game participant id
        self.game_roster: List[Any] = []
        self.games_played = 0

    def __len__(self) -> int:
        return len(self.participants)

    def __iter__(self) -> Iterator[Participant]:
        return iter(list(self.participants))

    def is_full(self) -> bool:
        return len(self.participants) >= self.capacity

    def find_by_connection(self, connection) -> Tuple[int, Optional[Participant]]:
        """Return (index, participant) of the participant using `connection`, or (-1, None)."""
        for index, participant in enumerate(self.participants):
            if participant.connection == connection:
                return index, participant
        return -1, None

    def is_owner(self, connection) -> bool:
        return self.find_by_connection(connection)[0] == 0

    def add_participant(self, participant: Participant) -> bool:
        """Add a participant; one with the same connection is replaced in place.

        Returns False if the room is already full.
        """
        if self.is_full():
            return False
        index, _ = self.find_by_connection(participant.connection)
        if index < 0:
            self.participants.append(participant)
            self.scores.append(0)
        else:
            # reconnect keeps position and score
            self.participants[index] = participant
        return True

    def remove_participant(self, participant: Participant) -> bool:
        index, _ = self.find_by_connection(participant.connection)
        if index < 0:
            return False
        del self.participants[index]
        del self.scores[index]
        return True

    # ---- game binding ----

    def is_game_finished(self) -> bool:
        return self.game is None or self.game.is_finished()

    def bind_game(self, game: RoundEngine) -> bool:
        """Bind a new game unless another one is still running."""
        if not self.is_game_finished():
            return False
        self.game = game
        self.game_roster = [p.connection for p in self.participants]
        return True

    def unbind_game(self) -> Optional[RoundEngine]:
        """Drop the bound game, aborting it if it is still running."""
        game = self.game
        if game is not None and not game.is_finished():
            game.abort()
        self.game = None
        self.game_roster = []
        return game

    def game_participant_id(self, connection) -> int:
        """Id of a connection within the bound game, or -1 if it did not take part."""
        try:
            return self.game_roster.index(connection)
        except ValueError:
            return -1

    def record_game(self, scores: Sequence[int]) -> None:
        """Add the final scores of a finished game to the standings of those still in the room."""
        for pid, connection in enumerate(self.game_roster[:len(scores)]):
            index, _ = self.find_by_connection(connection)
            if index >= 0:
                self.scores[index] += scores[pid]
        self.games_played += 1

    def public_view(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'participants': [p.public_info() for p in self.participants],
            'scores': list(self.scores),
            'gamesPlayed': self.games_played,
        }
