"""
Difficulty filtering and non-repeating question draws.

Rows without a ``difficulty`` value are playable at every level; choosing
``All`` (or no difficulty) keeps every row.
"""

from __future__ import annotations

import random
from typing import List, Optional, Set

from ..core.models import Record

ALL_DIFFICULTIES = 'All'
DIFFICULTY_LEVELS = ('Easy', 'Medium', 'Hard')


def filter_by_difficulty(records: List[Record], difficulty: Optional[str]) -> List[Record]:
    """Return the records playable at *difficulty*, preserving order."""
    if not difficulty or difficulty == ALL_DIFFICULTIES:
        return list(records)
    return [r for r in records if not r.get('difficulty') or r.get('difficulty') == difficulty]


class QuestionPicker:
    """Draw questions at random without repeating until the pool is exhausted."""

    def __init__(self, records: List[Record], rng: Optional[random.Random] = None):
        self.records = list(records)
        self.rng = rng or random.Random()
        self._used: Set[int] = set()

    @property
    def remaining(self) -> int:
        return len(self.records) - len(self._used)

    def reset(self) -> None:
        self._used.clear()

    def next(self) -> Optional[Record]:
        """Return the next question, or None when there are no records at all."""
        if not self.records:
            return None
        available = [i for i in range(len(self.records)) if i not in self._used]
        if not available:
            self._used.clear()
            available = list(range(len(self.records)))
        index = self.rng.choice(available)
        self._used.add(index)
        return self.records[index]


__all__ = [
    "ALL_DIFFICULTIES",
    "DIFFICULTY_LEVELS",
    "QuestionPicker",
    "filter_by_difficulty",
]
