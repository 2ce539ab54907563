"""
Concurrent fetch/parse/ingest loop over the id space.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from app.crawler.errors import ConsecutiveErrorLimitExceeded
from app.crawler.logging_utils import log_event
from app.crawler.outcome_window import OutcomeWindow
from app.crawler.outcomes import classify
from app.crawler.progress import ProgressTracker
from app.crawler.termination import TerminationCriteria, evaluate_window
from app.domain.catalog import WhiskyRecord
from app.domain.crawl import Outcome, ProgressStatus

logger = logging.getLogger(__name__)


class PoolStopReason:
    MAX_ID_REACHED = "max_id_reached"
    TERMINATION_CRITERIA_MET = "termination_criteria_met"
    STOP_REQUESTED = "stop_requested"
    CONSECUTIVE_ERRORS = "consecutive_errors"


class ClaimCounter:
    """
    Hands out strictly increasing ids, each to exactly one caller.
    """

    def __init__(self, start_id: int) -> None:
        self._next_id = start_id
        self._lock = threading.Lock()

    def claim(self) -> int:
        with self._lock:
            item_id = self._next_id
            self._next_id += 1
            return item_id

    @property
    def next_id(self) -> int:
        with self._lock:
            return self._next_id


@dataclass(frozen=True)
class WorkerPoolResult:
    start_id: int
    final_processed_id: int
    watermark: int
    processed: int
    found: int
    not_found: int
    errors: int
    records_buffered: int
    stop_reason: str
    outcomes: tuple[Outcome, ...]


class WorkerPool:
    """
    Run `concurrency` worker threads that claim ids and scrape them.

    Every completed id is logged as an Outcome and recorded into one shared
    window under a single lock, which also guards the consecutive error
    counter. Found records go to `sink`. The run ends when the id space above
    `max_id` is reached, the termination criteria hold, a stop is requested,
    or too many ids fail in a row.
    """

    def __init__(
        self,
        *,
        scrape: Callable[[int], WhiskyRecord | None],
        sink: Callable[[WhiskyRecord], None],
        criteria: TerminationCriteria,
        concurrency: int = 10,
        max_consecutive_errors: int = 50,
        progress: ProgressTracker | None = None,
        progress_interval: int = 100,
        estimated_max_id: int | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1.")
        self._scrape = scrape
        self._sink = sink
        self._criteria = criteria
        self._concurrency = concurrency
        self._max_consecutive_errors = max(1, max_consecutive_errors)
        self._progress = progress
        self._progress_interval = max(1, progress_interval)
        self._estimated_max_id = estimated_max_id

        self._stop = threading.Event()
        self._stop_requested = False
        self._lock = threading.Lock()
        self._reset(start_id=1)

    def request_stop(self) -> None:
        """
        Stop claiming new ids; ids already in flight still complete.
        """

        self._stop_requested = True
        self._stop.set()

    @property
    def watermark(self) -> int:
        with self._lock:
            return self._watermark

    def run(self, start_id: int, max_id: int | None = None) -> WorkerPoolResult:
        if start_id < 1:
            raise ValueError("start_id must be at least 1.")

        self._reset(start_id=start_id)
        if self._stop_requested:
            self._stop.set()
        counter = ClaimCounter(start_id)

        log_event(
            logger,
            logging.INFO,
            "worker_pool_started",
            start_id=start_id,
            max_id=max_id,
            concurrency=self._concurrency,
        )
        with ThreadPoolExecutor(
            max_workers=self._concurrency,
            thread_name_prefix="crawl-worker",
        ) as executor:
            futures = [
                executor.submit(self._work, counter, max_id) for _ in range(self._concurrency)
            ]
            for future in futures:
                future.result()

        if self._fatal is not None:
            raise self._fatal

        with self._lock:
            stop_reason = self._stop_reason
            if stop_reason is None:
                stop_reason = (
                    PoolStopReason.STOP_REQUESTED
                    if self._stop_requested
                    else PoolStopReason.MAX_ID_REACHED
                )
            final_id = self._max_found_id if self._max_found_id is not None else start_id - 1
            result = WorkerPoolResult(
                start_id=start_id,
                final_processed_id=final_id,
                watermark=self._watermark,
                processed=len(self._outcomes),
                found=self._found,
                not_found=self._not_found,
                errors=self._errors,
                records_buffered=self._records_buffered,
                stop_reason=stop_reason,
                outcomes=tuple(self._outcomes),
            )

        log_event(
            logger,
            logging.INFO,
            "worker_pool_finished",
            final_processed_id=result.final_processed_id,
            watermark=result.watermark,
            processed=result.processed,
            found=result.found,
            not_found=result.not_found,
            errors=result.errors,
            stop_reason=result.stop_reason,
        )
        return result

    def _reset(self, *, start_id: int) -> None:
        with self._lock:
            self._stop.clear()
            self._window = OutcomeWindow(self._criteria.window_size)
            self._outcomes: list[Outcome] = []
            self._completed_above: set[int] = set()
            self._watermark = start_id - 1
            self._max_found_id: int | None = None
            self._found = 0
            self._not_found = 0
            self._errors = 0
            self._records_buffered = 0
            self._consecutive_errors = 0
            self._stop_reason: str | None = None
            self._fatal: ConsecutiveErrorLimitExceeded | None = None

    def _work(self, counter: ClaimCounter, max_id: int | None) -> None:
        try:
            while not self._stop.is_set():
                item_id = counter.claim()
                if max_id is not None and item_id > max_id:
                    return
                outcome = classify(item_id, self._scrape)
                self._complete(outcome)
        except Exception:
            self._stop.set()
            raise

    def _complete(self, outcome: Outcome) -> None:
        checkpoint: int | None = None
        with self._lock:
            self._outcomes.append(outcome)
            self._window.record(outcome)
            self._advance_watermark(outcome.item_id)

            if outcome.is_error:
                self._errors += 1
                self._consecutive_errors += 1
            else:
                self._consecutive_errors = 0
                if outcome.is_found:
                    self._found += 1
                    if self._max_found_id is None or outcome.item_id > self._max_found_id:
                        self._max_found_id = outcome.item_id
                    if outcome.record is not None:
                        self._records_buffered += 1
                else:
                    self._not_found += 1

            if outcome.is_not_found and self._stop_reason is None:
                decision = evaluate_window(self._window, self._criteria)
                if decision.should_stop:
                    self._stop_reason = PoolStopReason.TERMINATION_CRITERIA_MET
                    self._stop.set()
                    log_event(
                        logger,
                        logging.INFO,
                        "termination_criteria_met",
                        phase="crawl",
                        item_id=outcome.item_id,
                        trailing_not_found=decision.trailing_not_found,
                        not_found_rate=round(decision.not_found_rate, 4),
                    )

            if self._consecutive_errors > self._max_consecutive_errors and self._fatal is None:
                self._fatal = ConsecutiveErrorLimitExceeded(
                    self._consecutive_errors,
                    self._max_consecutive_errors,
                    outcome.item_id,
                )
                self._stop_reason = PoolStopReason.CONSECUTIVE_ERRORS
                self._stop.set()

            processed = len(self._outcomes)
            if processed % self._progress_interval == 0:
                checkpoint = self._watermark
            found = self._found

        if outcome.is_error:
            log_event(
                logger,
                logging.WARNING,
                "item_failed",
                item_id=outcome.item_id,
                error_kind=outcome.error_kind,
                error=outcome.error,
            )
        if outcome.is_found and outcome.record is not None:
            self._sink(outcome.record)
        if checkpoint is not None:
            self._checkpoint(checkpoint, processed=processed, found=found)

    def _advance_watermark(self, item_id: int) -> None:
        self._completed_above.add(item_id)
        while self._watermark + 1 in self._completed_above:
            self._watermark += 1
            self._completed_above.discard(self._watermark)

    def _checkpoint(self, watermark: int, *, processed: int, found: int) -> None:
        percent = None
        if self._estimated_max_id:
            percent = round(min(100.0, watermark / self._estimated_max_id * 100), 2)
        log_event(
            logger,
            logging.INFO,
            "crawl_progress",
            watermark=watermark,
            processed=processed,
            found=found,
            estimated_percent=percent,
        )
        if self._progress is not None:
            self._progress.write(watermark, ProgressStatus.RUNNING)
