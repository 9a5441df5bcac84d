from typing import Dict, List, Sequence


def compute_ranks(scores: Sequence[int]) -> List[int]:
    """Create a list of ranks from a list of scores.

    The highest score gets rank 1. Participants with the same score share a
    rank and the following ranks are skipped by the size of that group
    (standard competition ranking), e.g. [3, 5, 5, 1] -> [3, 1, 1, 4].
    """
    groups: Dict[int, List[int]] = {}
    for pid, score in enumerate(scores):
        groups.setdefault(score, []).append(pid)

    ranks = [0] * len(scores)
    rank = 1
    for score in sorted(groups, reverse=True):
        pids = groups[score]
        for pid in pids:
            ranks[pid] = rank
        rank += len(pids)
    return ranks
