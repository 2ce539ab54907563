"""
Thread-safe record buffer that persists in bounded chunks off the producer path.

Producers call `add`; once the buffer holds `batch_size` records the current
contents are swapped out and handed to a single flush thread, so producers
never wait on storage. At most one flush runs at a time. Requests that arrive
while a flush is running collapse into one follow-up pass.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass

from app.crawler.dead_letter import DeadLetterSink
from app.crawler.errors import PersistenceError
from app.crawler.logging_utils import log_event
from app.domain.catalog import WhiskyRecord

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_CHUNK_SIZE = 10
DEFAULT_MAX_FLUSH_ITERATIONS = 100
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0
DEFAULT_MAX_RETRY_BACKOFF_SECONDS = 30.0


class BufferState:
    IDLE = "idle"
    FLUSHING = "flushing"
    FLUSHING_WITH_PENDING = "flushing_with_pending"


@dataclass(frozen=True)
class BufferStats:
    batches_saved: int
    records_saved: int
    failed_flushes: int


@dataclass(frozen=True)
class DrainResult:
    persisted: int
    dropped: int
    dead_lettered: int


class BatchBuffer:
    """
    Accumulate records and persist them through `persist` in chunks.

    `persist` receives at most `chunk_size` records per call and returns the
    number of rows written. A failed flush puts the unpersisted records back at
    the front of the buffer; only `flush_all` ever drops records, and it hands
    them to the dead-letter sink when one is configured.

    After a failed flush, size-triggered flushes from `add` are held back with
    exponential backoff (`retry_backoff_seconds` doubling up to
    `max_retry_backoff_seconds`). The timer and explicit `flush` calls still
    retry. Records keep accumulating in memory until a flush succeeds or
    `flush_all` drains them.
    """

    def __init__(
        self,
        *,
        persist: Callable[[Sequence[WhiskyRecord]], int],
        batch_size: int = DEFAULT_BATCH_SIZE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_flush_iterations: int = DEFAULT_MAX_FLUSH_ITERATIONS,
        dead_letter: DeadLetterSink | None = None,
        executor: Executor | None = None,
        retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS,
        max_retry_backoff_seconds: float = DEFAULT_MAX_RETRY_BACKOFF_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1.")
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1.")

        self._persist = persist
        self._batch_size = batch_size
        self._chunk_size = chunk_size
        self._max_flush_iterations = max(1, max_flush_iterations)
        self._dead_letter = dead_letter
        self._retry_backoff_seconds = max(0.0, retry_backoff_seconds)
        self._max_retry_backoff_seconds = max(self._retry_backoff_seconds, max_retry_backoff_seconds)
        self._clock = clock
        self._consecutive_failures = 0
        self._retry_at = 0.0

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="batch-flush",
        )

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._records: list[WhiskyRecord] = []
        self._state = BufferState.IDLE
        self._last_error: Exception | None = None

        self._batches_saved = 0
        self._records_saved = 0
        self._failed_flushes = 0

        self._stop_timer = threading.Event()
        self._timer_thread: threading.Thread | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    @property
    def stats(self) -> BufferStats:
        with self._lock:
            return BufferStats(
                batches_saved=self._batches_saved,
                records_saved=self._records_saved,
                failed_flushes=self._failed_flushes,
            )

    def add(self, record: WhiskyRecord) -> None:
        snapshot: list[WhiskyRecord] | None = None
        with self._lock:
            self._records.append(record)
            if len(self._records) >= self._batch_size and self._clock() >= self._retry_at:
                snapshot = self._claim_locked()
        if snapshot is not None:
            self._executor.submit(self._run_flush, snapshot)

    def flush(self) -> None:
        """
        Request a flush and wait until the buffer is idle again.

        Raises PersistenceError when the flush this call waited on failed.
        """

        snapshot: list[WhiskyRecord] | None = None
        with self._lock:
            if self._state == BufferState.IDLE:
                if not self._records:
                    return
                snapshot = self._claim_locked()
            else:
                self._state = BufferState.FLUSHING_WITH_PENDING

        if snapshot is not None:
            self._executor.submit(self._run_flush, snapshot)

        with self._idle:
            self._idle.wait_for(lambda: self._state == BufferState.IDLE)
            error = self._last_error
        if error is not None:
            raise PersistenceError(f"Batch flush failed: {error}") from error

    def start_auto_flush(self, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive.")
        if self._timer_thread is not None and self._timer_thread.is_alive():
            return

        self._stop_timer.clear()
        self._timer_thread = threading.Thread(
            target=self._auto_flush_loop,
            args=(interval_seconds,),
            name="batch-auto-flush",
            daemon=True,
        )
        self._timer_thread.start()

    def stop_auto_flush(self) -> None:
        self._stop_timer.set()
        thread = self._timer_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._timer_thread = None

    def flush_all(self) -> DrainResult:
        """
        Stop the timer and drain every buffered record in the calling thread.

        A failure during the drain is terminal for the remaining records: they
        are written to the dead-letter sink and the buffer is cleared so the
        drain always finishes.
        """

        self.stop_auto_flush()
        persisted = 0

        while True:
            with self._idle:
                self._idle.wait_for(lambda: self._state == BufferState.IDLE)
                if not self._records:
                    return DrainResult(persisted=persisted, dropped=0, dead_lettered=0)
                snapshot = self._claim_locked()

            saved, error = self._persist_snapshot(snapshot)
            persisted += saved

            with self._idle:
                self._state = BufferState.IDLE
                if error is None:
                    self._idle.notify_all()
                    continue
                remaining = self._records
                self._records = []
                self._idle.notify_all()
            return self._drop(remaining, error, persisted=persisted)

    def close(self) -> None:
        self.stop_auto_flush()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def _claim_locked(self) -> list[WhiskyRecord] | None:
        if self._state != BufferState.IDLE:
            self._state = BufferState.FLUSHING_WITH_PENDING
            return None
        self._state = BufferState.FLUSHING
        self._last_error = None
        snapshot = self._records
        self._records = []
        return snapshot

    def _run_flush(self, snapshot: list[WhiskyRecord]) -> None:
        iterations = 0
        while True:
            iterations += 1
            _, error = self._persist_snapshot(snapshot)

            with self._idle:
                if error is not None:
                    self._last_error = error
                    self._state = BufferState.IDLE
                    self._idle.notify_all()
                    return

                pending = self._state == BufferState.FLUSHING_WITH_PENDING and bool(self._records)
                if (pending or len(self._records) >= self._batch_size) and (
                    iterations < self._max_flush_iterations
                ):
                    self._state = BufferState.FLUSHING
                    snapshot = self._records
                    self._records = []
                    continue

                self._state = BufferState.IDLE
                self._idle.notify_all()
                return

    def _persist_snapshot(
        self,
        snapshot: list[WhiskyRecord],
    ) -> tuple[int, Exception | None]:
        started = time.perf_counter()
        saved = 0
        for start in range(0, len(snapshot), self._chunk_size):
            chunk = snapshot[start : start + self._chunk_size]
            try:
                self._persist(chunk)
            except Exception as exc:
                remaining = snapshot[start:]
                with self._lock:
                    self._records[:0] = remaining
                    self._failed_flushes += 1
                    self._consecutive_failures += 1
                    backoff = min(
                        self._max_retry_backoff_seconds,
                        self._retry_backoff_seconds * 2 ** (self._consecutive_failures - 1),
                    )
                    self._retry_at = self._clock() + backoff
                log_event(
                    logger,
                    logging.ERROR,
                    "batch_flush_failed",
                    persisted=saved,
                    restored=len(remaining),
                    error=str(exc),
                )
                return saved, exc

            saved += len(chunk)
            with self._lock:
                self._batches_saved += 1
                self._records_saved += len(chunk)

        with self._lock:
            self._consecutive_failures = 0
            self._retry_at = 0.0

        log_event(
            logger,
            logging.INFO,
            "batch_flushed",
            records=saved,
            chunks=-(-saved // self._chunk_size),
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return saved, None

    def _drop(
        self,
        remaining: list[WhiskyRecord],
        error: Exception,
        *,
        persisted: int,
    ) -> DrainResult:
        dead_lettered = 0
        if self._dead_letter is not None:
            dead_lettered = self._dead_letter.write(remaining, reason=str(error))
        log_event(
            logger,
            logging.ERROR,
            "drain_dropped_records",
            dropped=len(remaining),
            dead_lettered=dead_lettered,
            dead_letter_path=str(self._dead_letter.path) if self._dead_letter else None,
            error=str(error),
        )
        return DrainResult(persisted=persisted, dropped=len(remaining), dead_lettered=dead_lettered)

    def _auto_flush_loop(self, interval_seconds: float) -> None:
        while not self._stop_timer.wait(interval_seconds):
            if not len(self):
                continue
            try:
                self.flush()
            except PersistenceError as exc:
                logger.warning("Periodic flush failed, records kept for retry: %s", exc)
