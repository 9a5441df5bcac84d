import random

from emotimatch.services.games import Sampler


def test_select_one_exhausts_pool_without_repeats():
    source = list(range(10))
    sampler = Sampler(source)
    picked = [sampler.select_one() for _ in range(10)]
    assert sorted(picked) == source
    assert len(sampler) == 0
    assert sampler.select_one() is None


def test_pool_shrinks_by_one_per_pick():
    sampler = Sampler('abcde')
    for remaining in range(4, -1, -1):
        sampler.select_one()
        assert len(sampler) == remaining


def test_source_is_copied():
    source = ['a', 'b', 'c']
    sampler = Sampler(source)
    source.clear()
    assert len(sampler) == 3
    assert sorted(sampler.select_many(3)) == ['a', 'b', 'c']


def test_select_many_pads_with_none_once_exhausted():
    sampler = Sampler(['x', 'y'])
    picked = sampler.select_many(4)
    assert sorted(picked[:2]) == ['x', 'y']
    assert picked[2:] == [None, None]


def test_seeded_rng_is_reproducible():
    first = Sampler(range(20), rng=random.Random(7)).select_many(20)
    second = Sampler(range(20), rng=random.Random(7)).select_many(20)
    assert first == second
