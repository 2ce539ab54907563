"""
tests/test_worker_pool.py

WorkerPool claiming, termination, checkpointing and stop handling.
"""

from __future__ import annotations

import threading

import pytest

from app.crawler.errors import ConsecutiveErrorLimitExceeded
from app.crawler.outcomes import classify
from app.crawler.progress import ProgressTracker
from app.crawler.termination import TerminationCriteria, decide
from app.crawler.worker_pool import ClaimCounter, PoolStopReason, WorkerPool
from app.domain.crawl import Outcome, ProgressStatus
from tests.fakes import InMemoryCrawlStorage, SyntheticCatalog


def _criteria(consecutive: int = 5, window: int = 5, rate: float = 1.0) -> TerminationCriteria:
    return TerminationCriteria(
        min_consecutive_not_found=consecutive,
        window_size=window,
        min_not_found_rate=rate,
    )


def _pool(catalog: SyntheticCatalog, sink=None, **kwargs) -> WorkerPool:
    kwargs.setdefault("criteria", _criteria())
    return WorkerPool(
        scrape=catalog.scrape,
        sink=sink if sink is not None else (lambda _record: None),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Claim counter
# ---------------------------------------------------------------------------


class TestClaimCounter:
    def test_threads_never_share_an_id(self) -> None:
        counter = ClaimCounter(1)
        claimed: list[int] = []
        lock = threading.Lock()

        def claim_many() -> None:
            local = [counter.claim() for _ in range(500)]
            with lock:
                claimed.extend(local)

        threads = [threading.Thread(target=claim_many) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(claimed) == list(range(1, 4001))
        assert counter.next_id == 4001


# ---------------------------------------------------------------------------
# Sequential behaviour
# ---------------------------------------------------------------------------


class TestSequentialScan:
    def test_stops_when_criteria_met_after_last_item(self) -> None:
        catalog = SyntheticCatalog(50)
        result = _pool(catalog, concurrency=1).run(1)

        assert catalog.calls == list(range(1, 56))
        assert result.stop_reason == PoolStopReason.TERMINATION_CRITERIA_MET
        assert result.final_processed_id == 50
        assert result.watermark == 55
        assert result.found == 50
        assert result.not_found == 5
        assert result.processed == 55

    def test_short_gaps_do_not_stop_the_scan(self) -> None:
        catalog = SyntheticCatalog(40, gaps=range(10, 14))
        result = _pool(catalog, concurrency=1).run(1)

        assert result.final_processed_id == 40
        assert result.found == 36

    def test_max_id_bounds_the_scan(self) -> None:
        catalog = SyntheticCatalog(100)
        result = _pool(catalog, concurrency=1).run(1, max_id=20)

        assert catalog.calls == list(range(1, 21))
        assert result.stop_reason == PoolStopReason.MAX_ID_REACHED
        assert result.final_processed_id == 20

    def test_start_id_above_one(self) -> None:
        catalog = SyntheticCatalog(30)
        result = _pool(catalog, concurrency=1).run(11, max_id=30)

        assert catalog.calls == list(range(11, 31))
        assert result.found == 20

    def test_no_found_items_reports_start_minus_one(self) -> None:
        catalog = SyntheticCatalog(0)
        result = _pool(catalog, concurrency=1).run(7)

        assert result.final_processed_id == 6
        assert result.found == 0

    def test_rejects_invalid_arguments(self) -> None:
        catalog = SyntheticCatalog(1)
        with pytest.raises(ValueError):
            _pool(catalog, concurrency=0)
        with pytest.raises(ValueError):
            _pool(catalog).run(0)


# ---------------------------------------------------------------------------
# Errors and records
# ---------------------------------------------------------------------------


class TestErrorsAndRecords:
    def test_isolated_errors_are_counted_and_skipped(self) -> None:
        catalog = SyntheticCatalog(20, errors={4}, parse_errors={9})
        sunk: list[int] = []
        result = _pool(catalog, sink=lambda record: sunk.append(record.record_id), concurrency=1).run(
            1, max_id=20
        )

        assert result.errors == 2
        assert result.found == 18
        assert 4 not in sunk and 9 not in sunk
        assert {o.error_kind for o in result.outcomes if o.is_error} == {"transient", "parse"}

    def test_consecutive_errors_are_fatal(self) -> None:
        catalog = SyntheticCatalog(200, errors=range(10, 100))
        pool = _pool(catalog, concurrency=1, max_consecutive_errors=5)

        with pytest.raises(ConsecutiveErrorLimitExceeded) as excinfo:
            pool.run(1)

        assert excinfo.value.consecutive_errors == 6
        assert excinfo.value.last_item_id == 15
        assert pool.watermark == 15

    def test_successes_reset_the_error_counter(self) -> None:
        errors = [i for i in range(1, 60) if i % 5]
        catalog = SyntheticCatalog(60, errors=errors)
        result = _pool(catalog, concurrency=1, max_consecutive_errors=4).run(1, max_id=60)

        assert result.errors == len(errors)

    def test_empty_pages_count_as_found_without_records(self) -> None:
        catalog = SyntheticCatalog(10, empty={3, 7})
        sunk: list[int] = []
        result = _pool(catalog, sink=lambda record: sunk.append(record.record_id), concurrency=1).run(
            1, max_id=10
        )

        assert result.found == 10
        assert result.records_buffered == 8
        assert sunk == [1, 2, 4, 5, 6, 8, 9, 10]


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrentScan:
    @pytest.mark.parametrize("concurrency", [2, 4, 10])
    def test_each_id_processed_once(self, concurrency: int) -> None:
        catalog = SyntheticCatalog(300)
        result = _pool(catalog, concurrency=concurrency).run(1, max_id=300)

        assert sorted(catalog.calls) == list(range(1, 301))
        assert result.processed == 300
        assert result.watermark == 300
        assert result.final_processed_id == 300

    @pytest.mark.parametrize("concurrency", [1, 3, 8])
    def test_final_id_matches_sequential_scan(self, concurrency: int) -> None:
        catalog = SyntheticCatalog(120, gaps=range(60, 63))
        result = _pool(catalog, concurrency=concurrency, criteria=_criteria(10, 10)).run(1)

        assert result.final_processed_id == 120
        assert result.stop_reason == PoolStopReason.TERMINATION_CRITERIA_MET


# ---------------------------------------------------------------------------
# Stop and checkpoints
# ---------------------------------------------------------------------------


class TestStopAndCheckpoints:
    def test_request_stop_finishes_in_flight_ids(self) -> None:
        catalog = SyntheticCatalog(1000)
        pool: WorkerPool

        def sink(record) -> None:
            if record.record_id == 3:
                pool.request_stop()

        pool = _pool(catalog, sink=sink, concurrency=1)
        result = pool.run(1)

        assert catalog.calls == [1, 2, 3]
        assert result.stop_reason == PoolStopReason.STOP_REQUESTED
        assert result.watermark == 3

    def test_stop_requested_before_run(self) -> None:
        catalog = SyntheticCatalog(10)
        pool = _pool(catalog, concurrency=2)
        pool.request_stop()

        result = pool.run(1)

        assert catalog.calls == []
        assert result.stop_reason == PoolStopReason.STOP_REQUESTED
        assert result.watermark == 0

    def test_checkpoints_every_interval(self) -> None:
        storage = InMemoryCrawlStorage()
        catalog = SyntheticCatalog(100)
        pool = _pool(
            catalog,
            concurrency=1,
            progress=ProgressTracker(storage),
            progress_interval=10,
        )

        pool.run(1, max_id=35)

        assert [p.last_processed_id for p in storage.progress_writes] == [10, 20, 30]
        assert all(p.status == ProgressStatus.RUNNING for p in storage.progress_writes)

    def test_checkpoint_failures_do_not_stop_the_crawl(self) -> None:
        storage = InMemoryCrawlStorage(fail_progress_writes=True)
        catalog = SyntheticCatalog(30)
        result = _pool(
            catalog,
            concurrency=1,
            progress=ProgressTracker(storage),
            progress_interval=5,
        ).run(1, max_id=30)

        assert result.found == 30
        assert storage.progress_writes == []


# ---------------------------------------------------------------------------
# Sequential equivalence
# ---------------------------------------------------------------------------


def _sequential_scan(catalog: SyntheticCatalog, criteria: TerminationCriteria) -> list[Outcome]:
    outcomes: list[Outcome] = []
    item_id = 1
    while True:
        outcome = classify(item_id, catalog.scrape)
        outcomes.append(outcome)
        if outcome.is_not_found and decide(outcomes, criteria).should_stop:
            return outcomes
        item_id += 1


class TestSequentialEquivalence:
    @pytest.mark.parametrize(
        ("consecutive", "window", "rate"),
        [(5, 5, 1.0), (3, 8, 0.5), (10, 20, 0.95)],
    )
    def test_single_worker_outcomes_match_sequential_scan(
        self,
        consecutive: int,
        window: int,
        rate: float,
    ) -> None:
        def catalog() -> SyntheticCatalog:
            return SyntheticCatalog(80, gaps={20, 21, 50}, errors={33, 34}, empty={40})

        criteria = _criteria(consecutive, window, rate)
        expected = _sequential_scan(catalog(), criteria)

        result = _pool(catalog(), concurrency=1, criteria=criteria).run(1)

        assert [(o.item_id, o.kind) for o in result.outcomes] == [
            (o.item_id, o.kind) for o in expected
        ]
        assert [o.record for o in result.outcomes] == [o.record for o in expected]
