import random
from typing import Any, Iterable, List, Optional


class Sampler:
    """Selects random elements from a pool without replacement.

    The source is shallow-copied, so later changes to it have no influence
    on the selection.
    """

    def __init__(self, source: Iterable[Any], rng=None):
        self._pool = list(source)
        self._rng = rng or random

    def __len__(self) -> int:
        return len(self._pool)

    def select_one(self) -> Optional[Any]:
        """Remove and return one random element, or None once the pool is exhausted."""
        if not self._pool:
            return None
        index = self._rng.randrange(len(self._pool))
        return self._pool.pop(index)

    def select_many(self, size: int) -> List[Optional[Any]]:
        """Select `size` elements in call order. Trailing entries are None once exhausted."""
        return [self.select_one() for _ in range(size)]
