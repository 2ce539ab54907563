"""
Fixed-capacity, id-ordered window of recent crawl outcomes.
"""

from __future__ import annotations

import bisect
from collections.abc import Iterable

from app.domain.crawl import Outcome


class OutcomeWindow:
    """
    Keeps the `capacity` highest-id outcomes sorted by id.

    Insertion beyond capacity evicts the lowest id, regardless of arrival
    order. Recording an id that is already present replaces its entry.
    Not thread-safe; callers sharing a window hold their own lock.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("OutcomeWindow capacity must be at least 1.")
        self._capacity = capacity
        self._ids: list[int] = []
        self._not_found: list[bool] = []
        self._not_found_count = 0

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[Outcome], capacity: int) -> OutcomeWindow:
        window = cls(capacity)
        for outcome in outcomes:
            window.record(outcome)
        return window

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._ids)

    def is_full(self) -> bool:
        return len(self._ids) >= self._capacity

    def record(self, outcome: Outcome) -> None:
        self.record_id(outcome.item_id, not_found=outcome.is_not_found)

    def record_id(self, item_id: int, *, not_found: bool) -> None:
        position = bisect.bisect_left(self._ids, item_id)
        if position < len(self._ids) and self._ids[position] == item_id:
            if self._not_found[position]:
                self._not_found_count -= 1
            self._not_found[position] = not_found
            if not_found:
                self._not_found_count += 1
            return

        self._ids.insert(position, item_id)
        self._not_found.insert(position, not_found)
        if not_found:
            self._not_found_count += 1

        if len(self._ids) > self._capacity:
            self._ids.pop(0)
            if self._not_found.pop(0):
                self._not_found_count -= 1

    def consecutive_trailing(self) -> int:
        """
        Count not-found outcomes at the high-id end of the window.
        """

        count = 0
        for not_found in reversed(self._not_found):
            if not not_found:
                break
            count += 1
        return count

    def rate(self) -> float:
        """
        Fraction of not-found outcomes in the whole window.
        """

        if not self._ids:
            return 0.0
        return self._not_found_count / len(self._ids)

    def highest_id(self) -> int | None:
        return self._ids[-1] if self._ids else None

    def snapshot(self) -> list[tuple[int, bool]]:
        return list(zip(self._ids, self._not_found))
