"""
Shared candidate scoring convention.

Every extractor turns DOM elements into ``ScoreCandidate`` values using pure
rule functions (higher is better, penalties are negative deltas) and picks a
winner with ``select_best``: maximum score, first-seen wins exact ties.
"""

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Optional, TypeVar

T = TypeVar("T")


@dataclass
class ScoreCandidate(Generic[T]):
    """A provisional extraction result with its plausibility score."""

    value: T
    score: float
    source: str = ""


def rank_candidates(candidates: Iterable[ScoreCandidate[T]]) -> list[ScoreCandidate[T]]:
    """Sort by score descending. The sort is stable so encounter order breaks ties."""
    return sorted(candidates, key=lambda c: c.score, reverse=True)


def select_best(
    candidates: Iterable[ScoreCandidate[T]],
    accept: Optional[Callable[[T], bool]] = None,
) -> Optional[ScoreCandidate[T]]:
    """
    Return the highest scoring candidate, or None.

    Args:
        candidates: Candidates in encounter order.
        accept: Optional filter; candidates it rejects are skipped.
    """
    best: Optional[ScoreCandidate[T]] = None
    for candidate in candidates:
        if accept is not None and not accept(candidate.value):
            continue
        if best is None or candidate.score > best.score:
            best = candidate
    return best


class CandidatePool(Generic[T]):
    """
    Ordered candidate collection keyed by value.

    ``add`` ignores values already present; ``boost`` raises the score of an
    existing value or adds it with a base score.
    """

    def __init__(self):
        self._items: list[ScoreCandidate[T]] = []
        self._index: dict[T, ScoreCandidate[T]] = {}

    def __contains__(self, value: T) -> bool:
        return value in self._index

    def __len__(self) -> int:
        return len(self._items)

    def add(self, value: T, score: float, source: str = "") -> bool:
        if value in self._index:
            return False
        candidate = ScoreCandidate(value=value, score=score, source=source)
        self._items.append(candidate)
        self._index[value] = candidate
        return True

    def boost(self, value: T, base_score: float, bonus: float, source: str = "") -> None:
        existing = self._index.get(value)
        if existing is not None:
            existing.score += bonus
        else:
            self.add(value, base_score, source)

    def candidates(self) -> list[ScoreCandidate[T]]:
        return list(self._items)

    def best(self, accept: Optional[Callable[[T], bool]] = None) -> Optional[ScoreCandidate[T]]:
        return select_best(self._items, accept)

    def ranked(self) -> list[ScoreCandidate[T]]:
        return rank_candidates(self._items)
