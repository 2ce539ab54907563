"""
tests/test_fetcher.py

WhiskyPageFetcher status mapping, raw page caching and rate limiting.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

import pytest
import requests

from app.crawler.errors import ItemNotFoundError, TransientFetchError
from app.crawler.fetcher import WhiskyPageFetcher
from app.crawler.outcomes import classify
from app.crawler.rate_limiter import MinIntervalRateLimiter
from app.crawler.raw_store import RawPageStore
from app.crawler.scraper import WhiskyScraper

VALID_PAGE = '<html><body><div :whisky="{&quot;name&quot;: &quot;Ardbeg&quot;}"></div></body></html>'
MISSING_PAGE = "<html><body><h1>Page not found</h1></body></html>"


@dataclass
class FakeResponse:
    status_code: int
    text: str


@dataclass
class FakeSession:
    responses: dict[int, FakeResponse | Exception] = field(default_factory=dict)
    calls: list[dict] = field(default_factory=list)
    closed: bool = False

    def get(self, url: str, **kwargs) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        item_id = int(url.rsplit("/", 1)[-1])
        response = self.responses.get(item_id, FakeResponse(404, MISSING_PAGE))
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


def _fetcher(session: FakeSession, **kwargs) -> WhiskyPageFetcher:
    return WhiskyPageFetcher(
        base_url="https://catalog.example/",
        user_agent="test-agent",
        timeout_seconds=5.0,
        session_factory=lambda: session,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Status mapping
# ---------------------------------------------------------------------------


class TestStatusMapping:
    def test_success_returns_body_and_sends_headers(self) -> None:
        session = FakeSession(responses={7: FakeResponse(200, VALID_PAGE)})
        html = _fetcher(session).fetch(7)

        assert html == VALID_PAGE
        request = session.calls[0]
        assert request["url"] == "https://catalog.example/whisky/7"
        assert request["headers"]["User-Agent"] == "test-agent"
        assert request["timeout"] == 5.0
        assert request["allow_redirects"] is True

    def test_404_is_not_found(self) -> None:
        with pytest.raises(ItemNotFoundError):
            _fetcher(FakeSession()).fetch(8)

    @pytest.mark.parametrize("status_code", [403, 429, 500, 503])
    def test_other_statuses_are_transient(self, status_code: int) -> None:
        session = FakeSession(responses={9: FakeResponse(status_code, "busy")})
        with pytest.raises(TransientFetchError) as excinfo:
            _fetcher(session).fetch(9)
        assert excinfo.value.status_code == status_code

    @pytest.mark.parametrize(
        "exc",
        [requests.Timeout("timed out"), requests.ConnectionError("reset")],
    )
    def test_network_failures_are_transient(self, exc: Exception) -> None:
        session = FakeSession(responses={10: exc})
        with pytest.raises(TransientFetchError):
            _fetcher(session).fetch(10)

    def test_one_session_per_thread(self) -> None:
        created: list[FakeSession] = []

        def factory() -> FakeSession:
            session = FakeSession(responses={i: FakeResponse(200, VALID_PAGE) for i in range(1, 5)})
            created.append(session)
            return session

        fetcher = WhiskyPageFetcher(
            base_url="https://catalog.example",
            user_agent="ua",
            timeout_seconds=1.0,
            session_factory=factory,
        )
        fetcher.fetch(1)
        fetcher.fetch(2)
        worker = threading.Thread(target=fetcher.fetch, args=(3,))
        worker.start()
        worker.join()

        assert len(created) == 2
        fetcher.close()
        assert created[0].closed


# ---------------------------------------------------------------------------
# Raw page store
# ---------------------------------------------------------------------------


class TestRawPageCache:
    def test_fetched_pages_are_saved(self, tmp_path) -> None:
        store = RawPageStore(tmp_path / "pages")
        session = FakeSession(responses={11: FakeResponse(200, VALID_PAGE)})

        _fetcher(session, raw_store=store).fetch(11)

        assert store.path_for(11).read_text(encoding="utf-8") == VALID_PAGE

    def test_cached_page_skips_the_request(self, tmp_path) -> None:
        store = RawPageStore(tmp_path)
        store.save(12, VALID_PAGE)
        session = FakeSession()

        assert _fetcher(session, raw_store=store).fetch(12) == VALID_PAGE
        assert session.calls == []

    def test_cached_missing_page_is_not_refetched(self, tmp_path) -> None:
        store = RawPageStore(tmp_path)
        session = FakeSession()
        fetcher = _fetcher(session, raw_store=store)

        with pytest.raises(ItemNotFoundError):
            fetcher.fetch(13)
        with pytest.raises(ItemNotFoundError):
            fetcher.fetch(13)

        assert len(session.calls) == 1

    @pytest.mark.parametrize("status_code", [429, 500, 503])
    def test_error_responses_are_not_cached(self, tmp_path, status_code: int) -> None:
        store = RawPageStore(tmp_path)
        session = FakeSession(responses={14: FakeResponse(status_code, "<html>Service Unavailable</html>")})
        fetcher = _fetcher(session, raw_store=store)

        first = classify(14, fetcher.fetch)
        second = classify(14, fetcher.fetch)

        assert first.is_error and second.is_error
        assert len(session.calls) == 2
        assert store.load(14) is None

    def test_load_of_unknown_id_returns_none(self, tmp_path) -> None:
        assert RawPageStore(tmp_path).load(99) is None


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestMinIntervalRateLimiter:
    def test_first_request_does_not_wait(self) -> None:
        clock = FakeClock()
        limiter = MinIntervalRateLimiter(min_interval_seconds=2.0, clock=clock, sleep=clock.sleep)

        assert limiter.wait() == 0.0
        assert clock.sleeps == []

    def test_waits_out_the_remaining_interval(self) -> None:
        clock = FakeClock()
        limiter = MinIntervalRateLimiter(min_interval_seconds=2.0, clock=clock, sleep=clock.sleep)
        limiter.wait()
        clock.now += 0.5

        assert limiter.wait() == pytest.approx(1.5)
        clock.now += 3.0
        assert limiter.wait() == 0.0

    def test_zero_interval_disables_waiting(self) -> None:
        clock = FakeClock()
        limiter = MinIntervalRateLimiter(min_interval_seconds=0, clock=clock, sleep=clock.sleep)
        limiter.wait()
        assert limiter.wait() == 0.0

    def test_fetcher_waits_before_each_request(self) -> None:
        clock = FakeClock()
        limiter = MinIntervalRateLimiter(min_interval_seconds=1.0, clock=clock, sleep=clock.sleep)
        session = FakeSession(responses={1: FakeResponse(200, VALID_PAGE), 2: FakeResponse(200, VALID_PAGE)})
        fetcher = _fetcher(session, rate_limiter=limiter)

        fetcher.fetch(1)
        fetcher.fetch(2)

        assert clock.sleeps == [1.0]


# ---------------------------------------------------------------------------
# Scraper facade
# ---------------------------------------------------------------------------


class TestWhiskyScraper:
    def test_scrape_parses_fetched_page(self) -> None:
        session = FakeSession(responses={21: FakeResponse(200, VALID_PAGE)})
        record = WhiskyScraper(fetcher=_fetcher(session)).scrape(21)

        assert record is not None
        assert record.item.name == "Ardbeg"
        assert record.record_id == 21

    def test_probe_treats_soft_404_as_not_found(self) -> None:
        session = FakeSession(responses={22: FakeResponse(200, MISSING_PAGE)})
        with pytest.raises(ItemNotFoundError):
            WhiskyScraper(fetcher=_fetcher(session)).probe(22)

    def test_probe_accepts_existing_page(self) -> None:
        session = FakeSession(responses={23: FakeResponse(200, VALID_PAGE)})
        assert WhiskyScraper(fetcher=_fetcher(session)).probe(23) is None
