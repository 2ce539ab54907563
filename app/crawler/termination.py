"""
End-of-catalog termination decision shared by boundary search and the worker pool.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from app.crawler.outcome_window import OutcomeWindow
from app.domain.crawl import Outcome


@dataclass(frozen=True)
class TerminationCriteria:
    """
    Thresholds for deciding that the scan has run past the last valid id.
    """

    min_consecutive_not_found: int
    window_size: int
    min_not_found_rate: float

    def __post_init__(self) -> None:
        if self.window_size < 1:
            raise ValueError("window_size must be at least 1.")
        if not 1 <= self.min_consecutive_not_found <= self.window_size:
            raise ValueError(
                "min_consecutive_not_found must be between 1 and window_size "
                f"(got {self.min_consecutive_not_found}, window_size={self.window_size})."
            )
        if not 0.0 <= self.min_not_found_rate <= 1.0:
            raise ValueError(
                f"min_not_found_rate must be within [0, 1] (got {self.min_not_found_rate})."
            )


@dataclass(frozen=True)
class TerminationDecision:
    should_stop: bool
    trailing_not_found: int
    not_found_rate: float
    window_length: int


def evaluate_window(window: OutcomeWindow, criteria: TerminationCriteria) -> TerminationDecision:
    """
    Decide whether to stop from an id-ordered window.
    """

    trailing = window.consecutive_trailing()
    rate = window.rate()
    return TerminationDecision(
        should_stop=(
            trailing >= criteria.min_consecutive_not_found
            and rate >= criteria.min_not_found_rate
        ),
        trailing_not_found=trailing,
        not_found_rate=rate,
        window_length=len(window),
    )


def decide(outcomes: Iterable[Outcome], criteria: TerminationCriteria) -> TerminationDecision:
    """
    Same decision over outcomes in any order: they are sorted by id and the
    highest `window_size` ids are evaluated.
    """

    window = OutcomeWindow.from_outcomes(
        sorted(outcomes, key=lambda outcome: outcome.item_id),
        criteria.window_size,
    )
    return evaluate_window(window, criteria)
