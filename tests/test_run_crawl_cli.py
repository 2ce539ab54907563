"""
tests/test_run_crawl_cli.py

Argument handling and exit codes for scripts/run_crawl.py.
"""

from __future__ import annotations

import json

import pytest

from app.crawler.engine import CrawlOptions
from app.crawler.errors import BatchDrainError
from app.domain.crawl import CrawlRunSummary, ProgressStatus
from scripts import run_crawl


class FakeService:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.options: CrawlOptions | None = None

    def run(self, options: CrawlOptions) -> CrawlRunSummary:
        self.options = options
        if self.error is not None:
            raise self.error
        return CrawlRunSummary(
            start_id=options.start_id,
            max_id=options.max_id,
            last_processed_id=options.max_id or 0,
            processed=5,
            found=5,
            not_found=0,
            errors=0,
            records_buffered=5,
            records_persisted=5,
            status=ProgressStatus.COMPLETED,
            stop_reason="max_id_reached",
        )

    def request_stop(self) -> bool:
        return False


@pytest.fixture(autouse=True)
def _no_signal_handlers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(run_crawl, "_install_stop_handlers", lambda _service: None)


class TestRunCrawlCli:
    def test_success_prints_summary(self, capsys: pytest.CaptureFixture[str]) -> None:
        service = FakeService()
        exit_code = run_crawl.main(
            ["--start-id", "3", "--max-id", "7", "--concurrency", "4", "--flush-interval-ms", "500"],
            service=service,
        )

        assert exit_code == 0
        assert service.options == CrawlOptions(
            start_id=3,
            max_id=7,
            concurrency=4,
            flush_interval_seconds=0.5,
        )
        summary = json.loads(capsys.readouterr().out)
        assert summary["last_processed_id"] == 7
        assert summary["status"] == "completed"

    def test_flags_map_to_options(self) -> None:
        service = FakeService()
        run_crawl.main(["--resume", "--find-max-id", "--dry-run", "--batch-size", "50"], service=service)

        assert service.options.resume
        assert service.options.find_max_id
        assert service.options.dry_run
        assert service.options.batch_size == 50

    @pytest.mark.parametrize(
        "argv",
        [
            ["--start-id", "0"],
            ["--start-id", "10", "--max-id", "5"],
            ["--concurrency", "-1"],
        ],
    )
    def test_invalid_options_exit_1(self, argv: list[str]) -> None:
        service = FakeService()
        assert run_crawl.main(argv, service=service) == 1
        assert service.options is None

    def test_crawl_error_exits_1(self) -> None:
        service = FakeService(error=BatchDrainError(3, "/tmp/dead.jsonl"))
        assert run_crawl.main([], service=service) == 1

    def test_unexpected_error_exits_1(self) -> None:
        service = FakeService(error=RuntimeError("boom"))
        assert run_crawl.main([], service=service) == 1
