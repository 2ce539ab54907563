"""
Adaptive search for the highest valid id of a sequential catalog.

Phase 1 probes exponentially upward from the start id to bracket the end of
the catalog, backing off by bisection on misses and probing densely above the
last valid id once bisection cannot move lower. Phase 2 binary-searches the
bracket. Both phases feed one OutcomeWindow and stop through the shared
termination criteria.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from app.crawler.errors import ConsecutiveErrorLimitExceeded
from app.crawler.logging_utils import log_event
from app.crawler.outcome_window import OutcomeWindow
from app.crawler.outcomes import classify
from app.crawler.termination import TerminationCriteria, evaluate_window
from app.domain.catalog import WhiskyRecord
from app.domain.crawl import Outcome

logger = logging.getLogger(__name__)

DEFAULT_SAFETY_LIMIT = 10_000_000


class BoundaryStopReason:
    CRITERIA_MET = "criteria_met"
    SAFETY_LIMIT = "safety_limit"


@dataclass(frozen=True)
class BoundarySearchResult:
    max_id: int
    found_any: bool
    probes: int
    upper_bound: int
    stop_reason: str


@dataclass
class _SearchState:
    start_id: int
    window: OutcomeWindow
    results: dict[int, Outcome] = field(default_factory=dict)
    probes: int = 0
    consecutive_errors: int = 0
    best_found: int | None = None

    def note_found(self, item_id: int) -> None:
        if self.best_found is None or item_id > self.best_found:
            self.best_found = item_id


class BoundaryFinder:
    """
    Estimate the maximum valid id by probing a scrape-like callable.

    `probe` follows the scraper contract: it returns normally for an existing
    id and raises ItemNotFoundError for a missing one. Any other exception is
    treated as an error outcome for that id.
    """

    def __init__(
        self,
        *,
        probe: Callable[[int], WhiskyRecord | None],
        criteria: TerminationCriteria,
        safety_limit: int = DEFAULT_SAFETY_LIMIT,
        max_consecutive_errors: int = 50,
    ) -> None:
        if safety_limit < 1:
            raise ValueError("safety_limit must be at least 1.")
        self._probe = probe
        self._criteria = criteria
        self._safety_limit = safety_limit
        self._max_consecutive_errors = max(1, max_consecutive_errors)

    def find_max_id(self, start_id: int = 1) -> int:
        return self.search(start_id).max_id

    def search(self, start_id: int = 1) -> BoundarySearchResult:
        if start_id < 1:
            raise ValueError("start_id must be at least 1.")

        state = _SearchState(
            start_id=start_id,
            window=OutcomeWindow(self._criteria.window_size),
        )
        log_event(logger, logging.INFO, "boundary_search_started", start_id=start_id)

        upper_bound, stop_reason = self._exponential_phase(state)
        log_event(
            logger,
            logging.INFO,
            "boundary_phase_completed",
            phase="exponential",
            upper_bound=upper_bound,
            stop_reason=stop_reason,
            probes=state.probes,
        )

        self._binary_phase(state, upper_bound)

        found_any = state.best_found is not None
        max_id = state.best_found if state.best_found is not None else start_id
        log_event(
            logger,
            logging.INFO,
            "boundary_search_completed",
            max_id=max_id,
            found_any=found_any,
            probes=state.probes,
        )
        return BoundarySearchResult(
            max_id=max_id,
            found_any=found_any,
            probes=state.probes,
            upper_bound=upper_bound,
            stop_reason=stop_reason,
        )

    def _exponential_phase(self, state: _SearchState) -> tuple[int, str]:
        last_valid = state.start_id - 1
        candidate = state.start_id
        # True while every id between last_valid and candidate has been probed.
        dense = True

        while True:
            outcome = self._fetch(state, candidate)

            if outcome.is_found:
                last_valid = candidate
                next_candidate = max(last_valid * 2, last_valid + 1)
                if next_candidate > self._safety_limit:
                    return candidate, BoundaryStopReason.SAFETY_LIMIT
            elif outcome.is_not_found:
                decision = evaluate_window(state.window, self._criteria)
                if dense and decision.should_stop:
                    log_event(
                        logger,
                        logging.INFO,
                        "termination_criteria_met",
                        phase="exponential",
                        item_id=candidate,
                        trailing_not_found=decision.trailing_not_found,
                        not_found_rate=round(decision.not_found_rate, 4),
                    )
                    return max(last_valid, state.start_id), BoundaryStopReason.CRITERIA_MET
                next_candidate = (candidate + last_valid) // 2
            else:
                next_candidate = candidate + 1

            lowest_unprobed = self._lowest_unprobed_above(state, last_valid)
            if next_candidate <= last_valid or next_candidate in state.results:
                next_candidate = lowest_unprobed
            dense = next_candidate == lowest_unprobed
            if next_candidate > self._safety_limit:
                return max(last_valid, state.start_id), BoundaryStopReason.SAFETY_LIMIT
            candidate = next_candidate

    def _binary_phase(self, state: _SearchState, upper_bound: int) -> None:
        left = state.start_id
        right = upper_bound

        while left <= right:
            mid = (left + right) // 2
            cached = mid in state.results
            outcome = state.results[mid] if cached else self._fetch(state, mid)

            if outcome.is_found:
                left = mid + 1
            elif outcome.is_not_found:
                if not cached:
                    decision = evaluate_window(state.window, self._criteria)
                    if decision.should_stop:
                        log_event(
                            logger,
                            logging.INFO,
                            "termination_criteria_met",
                            phase="binary",
                            item_id=mid,
                            trailing_not_found=decision.trailing_not_found,
                            not_found_rate=round(decision.not_found_rate, 4),
                        )
                        break
                right = mid - 1
            else:
                left = mid + 1

    def _fetch(self, state: _SearchState, item_id: int) -> Outcome:
        outcome = classify(item_id, self._probe)
        state.probes += 1
        state.results[item_id] = outcome
        state.window.record(outcome)

        if outcome.is_error:
            state.consecutive_errors += 1
            log_event(
                logger,
                logging.WARNING,
                "boundary_probe_failed",
                item_id=item_id,
                error_kind=outcome.error_kind,
                error=outcome.error,
                consecutive_errors=state.consecutive_errors,
            )
            if state.consecutive_errors > self._max_consecutive_errors:
                raise ConsecutiveErrorLimitExceeded(
                    state.consecutive_errors,
                    self._max_consecutive_errors,
                    item_id,
                )
        else:
            state.consecutive_errors = 0
        if outcome.is_found:
            state.note_found(item_id)
        return outcome

    @staticmethod
    def _lowest_unprobed_above(state: _SearchState, item_id: int) -> int:
        candidate = item_id + 1
        while candidate in state.results:
            candidate += 1
        return candidate
