import random
import threading

import pytest

from emotimatch.services.games import GameOptions, RoundEngine, RoundStatus
from emotimatch.services.games.engine import generate_symbols, round_half_up


def make_engine(players=3, clock=None, seed=1, **options):
    opts = dict(
        rounds=2,
        round_prepare_delay=0,
        round_start_delay=0,
        round_max_time=0,
        penalty_time=2,
        game_finish_delay=0,
    )
    opts.update(options)
    return RoundEngine(
        players,
        options=GameOptions(**opts),
        sleep=lambda _: None,
        clock=clock,
        rng=random.Random(seed),
    )


def started_engine(players=3, clock=None, **options):
    engine = make_engine(players, clock=clock, **options)
    engine.prepare_round()
    engine.start_round()
    return engine


def wrong_symbol(engine):
    return next(s for s in engine.symbols if s != engine.round.solution)


# ---- symbols and cards ----

def test_symbols_are_deduplicated_and_sorted():
    symbols = generate_symbols([(0x41, 0x43), (0x42, 0x44)])
    assert symbols == ['A', 'B', 'C', 'D']


def test_default_pool_is_emoticons():
    engine = make_engine()
    assert len(engine.symbols) == 0x1F637 - 0x1F600 + 1
    assert engine.symbols[0] == '\U0001F600'


@pytest.mark.parametrize('players', [1, 2, 3, 5])
def test_every_card_holds_the_solution_exactly_once(players):
    engine = make_engine(players)
    for seed in range(20):
        engine._rng = random.Random(seed)
        solution, cards = engine.generate_cards()
        assert len(cards) == players
        for card in cards:
            assert card.count(solution) == 1
            assert len(set(card)) == len(card)


@pytest.mark.parametrize('sizes', [[3, 3, 3], [3, 4, 5], [5, 5, 3, 4], [2, 6]])
def test_solution_is_the_only_symbol_common_to_all_cards(sizes):
    engine = make_engine(len(sizes))
    engine.card_sizes = [float(size) for size in sizes]
    for seed in range(20):
        engine._rng = random.Random(seed)
        solution, cards = engine.generate_cards()
        assert [len(card) for card in cards] == sizes
        common = set(cards[0]).intersection(*map(set, cards[1:]))
        assert common == {solution}


def test_cards_overlap_beyond_the_solution():
    engine = make_engine(3)
    solution, cards = engine.generate_cards()
    # with three cards of three symbols, the shared draw makes each pair share one more symbol
    for i in range(3):
        for j in range(i + 1, 3):
            assert len(set(cards[i]) & set(cards[j])) == 2


def test_fractional_card_size_growth_is_rounded():
    engine = make_engine(2, win_card_size_add=0.5)
    engine.card_sizes = [3.5, 3.0]
    assert engine.target_card_sizes() == [4, 3]
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2


# ---- round lifecycle ----

def test_round_steps_follow_the_state_machine():
    engine = make_engine()
    infos = engine.prepare_round()
    assert engine.round.status is RoundStatus.PREPARED
    assert infos[0].card is None
    assert infos[0].card_size == 3
    assert infos[0].round.cards is None

    infos = engine.start_round()
    assert engine.round.status is RoundStatus.STARTED
    assert infos[1].card == engine.round.cards[1]
    assert infos[1].round.cards == engine.round.cards

    infos = engine.finish_round()
    assert engine.round.status is RoundStatus.FINISHED
    assert infos[2].round.solution == engine.round.solution
    assert engine.round_number == 2


def test_steps_cannot_be_skipped_or_repeated():
    engine = make_engine()
    with pytest.raises(RuntimeError):
        engine.start_round()
    engine.prepare_round()
    with pytest.raises(RuntimeError):
        engine.finish_round()
    with pytest.raises(RuntimeError):
        engine.prepare_round()
    engine.start_round()
    with pytest.raises(RuntimeError):
        engine.start_round()


def test_prepared_info_serializes_without_symbols():
    engine = make_engine(2)
    info = engine.prepare_round()[0].to_dict()
    assert info['participantId'] == 0
    assert info['cardSize'] == 3
    assert 'card' not in info
    assert info['roundInfo']['status'] == 'prepared'
    assert 'cards' not in info['roundInfo']
    assert 'solution' not in info['roundInfo']


# ---- answers ----

def test_correct_answer_scores_one_and_fires_signal(clock):
    engine = started_engine(clock=clock)
    solution = engine.round.solution
    assert engine.submit_answer(1, {'solution': solution}) == {'solution': 'correct'}
    assert engine.round.scores == [0, 1, 0]
    assert engine.round.winner_id == 1
    assert engine.round.answered.is_set()
    assert engine.wait_for_answer()

    infos = engine.finish_round()
    assert engine.scores == [0, 1, 0]
    assert engine.card_sizes == [3, 4, 3]
    data = infos[0].to_dict()
    assert data['roundInfo']['winnerId'] == 1
    assert data['roundInfo']['solution'] == solution


def test_second_correct_answer_in_same_round_is_rejected(clock):
    # the first correct answer wins the round; later ones do not score or replace the winner
    engine = started_engine(clock=clock)
    solution = engine.round.solution
    assert engine.submit_answer(0, {'solution': solution}) == {'solution': 'correct'}
    assert engine.submit_answer(2, {'solution': solution}) == {'solution': 'rejected', 'reason': 'solved'}
    assert engine.round.scores == [1, 0, 0]
    assert engine.round.winner_id == 0
    engine.finish_round()
    assert engine.scores == [1, 0, 0]


def test_wrong_answer_sets_penalty(clock):
    engine = started_engine(clock=clock)
    result = engine.submit_answer(0, {'solution': wrong_symbol(engine)})
    assert result == {'solution': 'incorrect', 'action': 'penalty'}
    assert engine.round.penalty_ends[0] == clock.now + 2
    assert engine.round.scores == [0, 0, 0]


def test_answer_during_penalty_is_rejected_without_changes(clock):
    engine = started_engine(clock=clock)
    engine.submit_answer(0, {'solution': wrong_symbol(engine)})
    penalty_end = engine.round.penalty_ends[0]

    clock.advance(1)
    result = engine.submit_answer(0, {'solution': engine.round.solution})
    assert result == {'solution': 'rejected', 'reason': 'penalty'}
    assert engine.round.penalty_ends[0] == penalty_end
    assert engine.round.scores == [0, 0, 0]
    assert engine.round.winner_id is None

    clock.advance(1)
    assert engine.submit_answer(0, {'solution': engine.round.solution}) == {'solution': 'correct'}


def test_penalty_is_per_participant(clock):
    engine = started_engine(clock=clock)
    engine.submit_answer(0, {'solution': wrong_symbol(engine)})
    assert engine.submit_answer(1, {'solution': engine.round.solution}) == {'solution': 'correct'}


def test_answers_outside_started_round_are_ignored(clock):
    engine = make_engine(clock=clock)
    assert engine.submit_answer(0, {'solution': 'x'}) is None
    engine.prepare_round()
    assert engine.submit_answer(0, {'solution': engine.round.solution}) is None
    engine.start_round()
    engine.finish_round()
    assert engine.submit_answer(0, {'solution': engine.round.solution}) is None
    assert engine.round.scores == [0, 0, 0]


def test_unrelated_or_malformed_messages_are_ignored(clock):
    engine = started_engine(clock=clock)
    assert engine.submit_answer(0, {'chat': 'hi'}) is None
    assert engine.submit_answer(0, 'solution') is None
    assert engine.submit_answer(7, {'solution': engine.round.solution}) is None
    assert engine.submit_answer(-1, {'solution': engine.round.solution}) is None
    assert engine.round.winner_id is None


# ---- whole games ----

class Recorder:
    def __init__(self):
        self.events = []

    def callbacks(self):
        return [self._record(name) for name in
                ('game_started', 'round_prepared', 'round_started', 'round_finished', 'game_finished')]

    def _record(self, name):
        return lambda infos: self.events.append((name, infos))

    def names(self):
        return [name for name, _ in self.events]


def test_full_game_runs_all_rounds_and_ranks():
    engine = make_engine(players=2, rounds=2)
    recorder = Recorder()
    engine.start(*recorder.callbacks())
    assert recorder.names() == [
        'game_started',
        'round_prepared', 'round_started', 'round_finished',
        'round_prepared', 'round_started', 'round_finished',
        'game_finished',
    ]
    assert engine.is_finished()
    final = recorder.events[-1][1]
    assert final[0].ranks == [1, 1]
    assert final[0].to_dict()['ranks'] == [1, 1]


def test_answers_after_game_finished_have_no_effect():
    engine = make_engine(players=2, rounds=1)
    engine.start(*Recorder().callbacks())
    assert engine.is_finished()
    assert engine.submit_answer(0, {'solution': engine.round.solution}) is None
    assert engine.scores == [0, 0]


def test_correct_answer_ends_round_before_timeout():
    engine = make_engine(players=2, rounds=1, round_max_time=30)
    recorder = Recorder()

    def answer_when_started(infos):
        recorder.events.append(('round_started', infos))
        threading.Timer(0.05, engine.submit_answer, args=(1, {'solution': engine.round.solution})).start()

    callbacks = recorder.callbacks()
    callbacks[2] = answer_when_started
    runner = threading.Thread(target=engine.start, args=callbacks)
    runner.start()
    runner.join(timeout=5)
    assert not runner.is_alive()
    assert engine.scores == [0, 1]
    assert recorder.events[-1][1][1].ranks == [2, 1]


def test_scores_and_card_sizes_grow_across_rounds():
    engine = make_engine(players=2, rounds=2)

    def win_for_first(infos):
        engine.submit_answer(0, {'solution': engine.round.solution})

    recorder = Recorder()
    callbacks = recorder.callbacks()
    callbacks[2] = win_for_first
    engine.start(*callbacks)
    assert engine.scores == [2, 0]
    assert engine.target_card_sizes() == [5, 3]
    assert recorder.events[-1][1][0].ranks == [1, 2]


def test_abort_makes_engine_inert():
    engine = make_engine(players=2, rounds=3, round_max_time=30)
    recorder = Recorder()

    def abort_when_started(infos):
        recorder.events.append(('round_started', infos))
        engine.abort()

    callbacks = recorder.callbacks()
    callbacks[2] = abort_when_started
    runner = threading.Thread(target=engine.start, args=callbacks)
    runner.start()
    runner.join(timeout=5)
    assert not runner.is_alive()
    assert recorder.names() == ['game_started', 'round_prepared', 'round_started']
    assert engine.is_finished()
    assert engine.submit_answer(0, {'solution': engine.round.solution}) is None


def test_engine_requires_participants():
    with pytest.raises(ValueError):
        RoundEngine(0)


def test_options_from_config():
    options = GameOptions.from_config({'ROUNDS': '7', 'PENALTY_TIME_SEC': 0.5, 'CARD_SIZE': 4})
    assert options.rounds == 7
    assert options.penalty_time == 0.5
    assert options.card_size == 4
    assert options.round_max_time == GameOptions().round_max_time
