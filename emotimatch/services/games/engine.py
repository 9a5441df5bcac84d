import logging
import math
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .sampler import Sampler
from .scoring import compute_ranks


logger = logging.getLogger(__name__)

EMOTICON_RANGE = (0x1F600, 0x1F637)
ROUND_TASK = 'match emotis'


@dataclass(frozen=True)
class GameOptions:
    """Tunable settings of one game. Durations are in seconds."""

    rounds: int = 5
    round_prepare_delay: float = 2.0
    round_start_delay: float = 3.0
    round_max_time: float = 10.0
    penalty_time: float = 2.0
    game_finish_delay: float = 10.0
    card_size: int = 3
    win_card_size_add: float = 1
    code_point_ranges: Tuple[Tuple[int, int], ...] = (EMOTICON_RANGE,)

    def __post_init__(self):
        if self.rounds < 0:
            raise ValueError(f'rounds must not be negative, got {self.rounds}')
        if self.card_size < 1:
            raise ValueError(f'card_size must be at least 1, got {self.card_size}')

    @classmethod
    def from_config(cls, config) -> 'GameOptions':
        """Build options from a Flask config mapping, falling back to the defaults."""
        return cls(
            rounds=int(config.get('ROUNDS', cls.rounds)),
            round_prepare_delay=float(config.get('ROUND_PREPARE_DELAY_SEC', cls.round_prepare_delay)),
            round_start_delay=float(config.get('ROUND_START_DELAY_SEC', cls.round_start_delay)),
            round_max_time=float(config.get('ROUND_MAX_TIME_SEC', cls.round_max_time)),
            penalty_time=float(config.get('PENALTY_TIME_SEC', cls.penalty_time)),
            game_finish_delay=float(config.get('GAME_FINISH_DELAY_SEC', cls.game_finish_delay)),
            card_size=int(config.get('CARD_SIZE', cls.card_size)),
            win_card_size_add=float(config.get('WIN_CARD_SIZE_ADD', cls.win_card_size_add)),
        )


class RoundStatus(str, Enum):
    PREPARED = 'prepared'
    STARTED = 'started'
    FINISHED = 'finished'


@dataclass
class Round:
    number: int
    solution: str
    cards: List[List[str]]
    penalty_ends: List[float]
    scores: List[int]
    status: RoundStatus = RoundStatus.PREPARED
    winner_id: Optional[int] = None
    # set once somebody found the solution; wakes the waiting game loop
    answered: threading.Event = field(default_factory=threading.Event)


@dataclass
class RoundInfo:
    number: int
    status: RoundStatus
    scores: List[int]
    task: str = ROUND_TASK
    cards: Optional[List[List[str]]] = None
    solution: Optional[str] = None
    winner_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'number': self.number,
            'status': self.status.value,
            'task': self.task,
            'scores': self.scores,
        }
        if self.cards is not None:
            data['cards'] = self.cards
        if self.status is RoundStatus.FINISHED:
            data['solution'] = self.solution
            data['winnerId'] = self.winner_id
        return data


@dataclass
class GameInfo:
    """What one participant gets to know about the game at a lifecycle step."""

    participant_id: int
    scores: List[int]
    round: Optional[RoundInfo] = None
    card_size: Optional[int] = None
    card: Optional[List[str]] = None
    ranks: Optional[List[int]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'participantId': self.participant_id, 'scores': self.scores}
        if self.round is not None:
            data['roundInfo'] = self.round.to_dict()
        if self.card_size is not None:
            data['cardSize'] = self.card_size
        if self.card is not None:
            data['card'] = self.card
        if self.ranks is not None:
            data['ranks'] = self.ranks
        return data


InfoCallback = Callable[[List[GameInfo]], Any]


def generate_symbols(code_point_ranges: Sequence[Tuple[int, int]]) -> List[str]:
    """Deduplicated, sorted symbols of the inclusive code point ranges."""
    symbols = {chr(cp) for start, end in code_point_ranges for cp in range(start, end + 1)}
    return sorted(symbols)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class RoundEngine:
    """Drives one game of a room through its rounds.

    `start()` runs the whole game and blocks until it is over, so callers run
    it as a background task. The step methods (`prepare_round`,
    `start_round`, `wait_for_answer`, `finish_round`, `finish_game`) can be
    called one by one to drive a game by hand.

    `submit_answer()` may be called from other tasks while a game runs; it
    and the round transitions are serialized by a lock.
    """

    def __init__(self, participant_count: int, options: Optional[GameOptions] = None,
                 scores: Optional[Sequence[int]] = None, sleep=None, clock=None, rng=None):
        if participant_count < 1:
            raise ValueError(f'a game needs at least one participant, got {participant_count}')
        self.participant_count = participant_count
        self.options = options or GameOptions()
        self.symbols = generate_symbols(self.options.code_point_ranges)
        self.round_number = 1
        self.round: Optional[Round] = None
        self.scores = list(scores) if scores is not None else [0] * participant_count
        self.card_sizes = [float(self.options.card_size)] * participant_count
        self.finished = False
        self.aborted = False
        self._sleep = sleep or time.sleep
        self._clock = clock or time.monotonic
        self._rng = rng
        self._lock = threading.Lock()

    # ---- game loop ----

    def start(self, on_game_started: InfoCallback, on_round_prepared: InfoCallback,
              on_round_started: InfoCallback, on_round_finished: InfoCallback,
              on_game_finished: InfoCallback) -> None:
        """Play the whole game, reporting every lifecycle step to the callbacks."""
        opts = self.options
        logger.info(f"[game-start] participants={self.participant_count} rounds={opts.rounds}")
        self._notify(on_game_started, self.game_infos())
        while self.round_number <= opts.rounds:
            self._sleep(opts.round_prepare_delay)
            if self.aborted:
                break
            self._notify(on_round_prepared, self.prepare_round())

            self._sleep(opts.round_start_delay)
            if self.aborted:
                break
            self._notify(on_round_started, self.start_round())

            self.wait_for_answer()
            if self.aborted:
                break
            self._notify(on_round_finished, self.finish_round())

        if self.aborted:
            logger.info(f"[game-abort] round={self.round_number}")
            return

        self._sleep(opts.game_finish_delay)
        if self.aborted:
            logger.info('[game-abort] before final ranking')
            return
        self._notify(on_game_finished, self.finish_game())

    def _notify(self, callback: InfoCallback, infos: List[GameInfo]) -> None:
        if self.aborted:
            return
        callback(infos)

    def abort(self) -> None:
        """Make this engine inert: no further callbacks, answers are ignored."""
        with self._lock:
            self.aborted = True
            if self.round is not None:
                self.round.answered.set()

    def is_finished(self) -> bool:
        return self.finished or self.aborted

    # ---- round steps ----

    def prepare_round(self) -> List[GameInfo]:
        with self._lock:
            if self.round is not None and self.round.status is not RoundStatus.FINISHED:
                raise RuntimeError(f'cannot prepare a round while round {self.round.number} is {self.round.status.value}')
            if self.finished:
                raise RuntimeError('cannot prepare a round of a finished game')
            solution, cards = self.generate_cards()
            n = self.participant_count
            self.round = Round(
                number=self.round_number,
                solution=solution,
                cards=cards,
                penalty_ends=[0.0] * n,
                scores=[0] * n,
            )
            logger.debug(f"[round-prepared] round={self.round_number} card_sizes={[len(c) for c in cards]}")
            return self.round_infos()

    def start_round(self) -> List[GameInfo]:
        with self._lock:
            self._require_status(RoundStatus.PREPARED)
            self.round.status = RoundStatus.STARTED
            logger.debug(f"[round-started] round={self.round.number}")
            return self.round_infos()

    def wait_for_answer(self) -> bool:
        """Block until somebody answers correctly or the round times out.

        Returns whether the round was solved (or the engine aborted) before the timeout.
        """
        rnd = self.round
        if rnd is None:
            return False
        return rnd.answered.wait(self.options.round_max_time)

    def finish_round(self) -> List[GameInfo]:
        with self._lock:
            self._require_status(RoundStatus.STARTED)
            rnd = self.round
            rnd.status = RoundStatus.FINISHED
            for pid in range(self.participant_count):
                self.scores[pid] += rnd.scores[pid]
                self.card_sizes[pid] += rnd.scores[pid] * self.options.win_card_size_add
            self.round_number += 1
            logger.info(f"[round-finished] round={rnd.number} winner={rnd.winner_id} scores={self.scores}")
            return self.round_infos()

    def finish_game(self) -> List[GameInfo]:
        with self._lock:
            if self.round is not None and self.round.status is not RoundStatus.FINISHED:
                raise RuntimeError(f'cannot finish the game while round {self.round.number} is {self.round.status.value}')
            ranks = compute_ranks(self.scores)
            self.finished = True
            logger.info(f"[game-finished] scores={self.scores} ranks={ranks}")
            return [
                GameInfo(participant_id=pid, scores=list(self.scores), ranks=list(ranks))
                for pid in range(self.participant_count)
            ]

    def _require_status(self, status: RoundStatus) -> None:
        if self.round is None:
            raise RuntimeError('no round has been prepared')
        if self.round.status is not status:
            raise RuntimeError(
                f'round {self.round.number} is {self.round.status.value}, expected {status.value}'
            )

    # ---- answers ----

    def submit_answer(self, participant_id: int, payload: Any) -> Optional[Dict[str, str]]:
        """Check a solution proposed by a participant.

        Returns the verdict for the participant, or None when the message is
        ignored: it carries no solution, the participant is unknown or no
        round is running. The round status is read under the lock, so an
        answer racing the end of the round is ignored once the round is over.
        The first correct answer wins the round; later ones are rejected.
        """
        if not isinstance(payload, dict) or 'solution' not in payload:
            return None
        if not isinstance(participant_id, int) or not 0 <= participant_id < self.participant_count:
            return None
        proposed = payload['solution']
        with self._lock:
            rnd = self.round
            if self.aborted or rnd is None or rnd.status is not RoundStatus.STARTED:
                return None
            now = self._clock()
            if rnd.penalty_ends[participant_id] > now:
                return {'solution': 'rejected', 'reason': 'penalty'}
            if rnd.winner_id is not None:
                return {'solution': 'rejected', 'reason': 'solved'}
            if proposed == rnd.solution:
                rnd.winner_id = participant_id
                rnd.scores[participant_id] += 1
                rnd.answered.set()
                return {'solution': 'correct'}
            rnd.penalty_ends[participant_id] = now + self.options.penalty_time
            return {'solution': 'incorrect', 'action': 'penalty'}

    # ---- cards ----

    def target_card_sizes(self) -> List[int]:
        return [round_half_up(size) for size in self.card_sizes]

    def generate_cards(self) -> Tuple[str, List[List[str]]]:
        """Draw the solution and one card per participant.

        Every card holds the solution. The first slots after it reuse a
        shared draw shifted by the participant id, so cards overlap partially
        without a second symbol common to all of them. Slots up to the
        smallest card size get symbols of their own; slots beyond that are
        shared by every card reaching them. Finally each card is shuffled.
        """
        n = self.participant_count
        sampler = Sampler(self.symbols, rng=self._rng)
        solution = sampler.select_one()
        sizes = self.target_card_sizes()
        cards: List[List[Optional[str]]] = [[None] * size for size in sizes]

        min_size = min(sizes)
        shared = sampler.select_many(n)
        shared_end = min(min_size, n)
        for pid, card in enumerate(cards):
            card[0] = solution
            for slot in range(1, shared_end):
                card[slot] = shared[(slot + pid) % n]
            for slot in range(shared_end, min_size):
                card[slot] = sampler.select_one()

        for slot in range(min_size, max(sizes)):
            symbol = sampler.select_one()
            for card in cards:
                if slot < len(card):
                    card[slot] = symbol

        shuffled = [Sampler(card, rng=self._rng).select_many(len(card)) for card in cards]
        return solution, shuffled

    # ---- infos ----

    def game_infos(self) -> List[GameInfo]:
        return [GameInfo(participant_id=pid, scores=list(self.scores)) for pid in range(self.participant_count)]

    def round_infos(self) -> List[GameInfo]:
        """Per participant view of the current round; cards are revealed once it has started."""
        rnd = self.round
        revealed = rnd.status is not RoundStatus.PREPARED
        finished = rnd.status is RoundStatus.FINISHED
        infos = []
        for pid in range(self.participant_count):
            round_info = RoundInfo(
                number=rnd.number,
                status=rnd.status,
                scores=list(rnd.scores),
                cards=[list(card) for card in rnd.cards] if revealed else None,
                solution=rnd.solution if finished else None,
                winner_id=rnd.winner_id if finished else None,
            )
            infos.append(GameInfo(
                participant_id=pid,
                scores=list(self.scores),
                round=round_info,
                card_size=len(rnd.cards[pid]),
                card=list(rnd.cards[pid]) if revealed else None,
            ))
        return infos
