"""
tests/test_boundary.py

BoundaryFinder against synthetic catalogs.
"""

from __future__ import annotations

import pytest

from app.crawler.boundary import BoundaryFinder, BoundaryStopReason
from app.crawler.errors import ConsecutiveErrorLimitExceeded
from app.crawler.termination import TerminationCriteria
from tests.fakes import SyntheticCatalog


def _finder(
    catalog: SyntheticCatalog,
    *,
    min_consecutive: int = 3,
    window: int = 3,
    rate: float = 0.95,
    safety_limit: int = 10_000_000,
    max_consecutive_errors: int = 50,
) -> BoundaryFinder:
    return BoundaryFinder(
        probe=catalog.probe,
        criteria=TerminationCriteria(
            min_consecutive_not_found=min_consecutive,
            window_size=window,
            min_not_found_rate=rate,
        ),
        safety_limit=safety_limit,
        max_consecutive_errors=max_consecutive_errors,
    )


# ---------------------------------------------------------------------------
# Contiguous catalogs
# ---------------------------------------------------------------------------


class TestContiguousCatalog:
    @pytest.mark.parametrize(
        ("max_id", "min_consecutive", "window", "rate"),
        [
            (1, 1, 1, 0.95),
            (10, 3, 3, 0.95),
            (37, 2, 5, 0.6),
            (100, 10, 10, 0.95),
            (1000, 25, 50, 0.5),
            (291, 100, 200, 0.95),
        ],
    )
    def test_finds_exact_max_id(self, max_id: int, min_consecutive: int, window: int, rate: float) -> None:
        catalog = SyntheticCatalog(max_id)
        finder = _finder(catalog, min_consecutive=min_consecutive, window=window, rate=rate)

        result = finder.search(1)

        assert result.max_id == max_id
        assert result.found_any is True
        assert result.stop_reason == BoundaryStopReason.CRITERIA_MET

    def test_find_max_id_shortcut(self) -> None:
        assert _finder(SyntheticCatalog(64)).find_max_id() == 64

    def test_start_id_above_one(self) -> None:
        catalog = SyntheticCatalog(500)
        assert _finder(catalog, min_consecutive=5, window=5).find_max_id(start_id=100) == 500

    def test_no_id_is_fetched_twice(self) -> None:
        catalog = SyntheticCatalog(777)
        result = _finder(catalog, min_consecutive=20, window=40).search(1)

        assert len(catalog.calls) == len(set(catalog.calls))
        assert result.probes == len(catalog.calls)

    def test_rejects_start_id_below_one(self) -> None:
        with pytest.raises(ValueError):
            _finder(SyntheticCatalog(5)).search(0)


# ---------------------------------------------------------------------------
# Edge cases
# ---------------------------------------------------------------------------


class TestBoundaryEdgeCases:
    def test_empty_catalog_reports_no_data(self) -> None:
        result = _finder(SyntheticCatalog(0)).search(1)

        assert result.found_any is False
        assert result.max_id == 1

    def test_result_always_probed_successfully_with_gaps(self) -> None:
        catalog = SyntheticCatalog(300, gaps=set(range(40, 60)) | {128, 256, 299})
        result = _finder(catalog, min_consecutive=5, window=10).search(1)

        assert result.found_any is True
        assert catalog.exists(result.max_id)
        assert result.max_id in catalog.calls

    def test_isolated_error_does_not_hide_the_end(self) -> None:
        catalog = SyntheticCatalog(50, errors={32})
        assert _finder(catalog).find_max_id() == 50

    def test_safety_limit_caps_exponential_phase(self) -> None:
        catalog = SyntheticCatalog(10**9)
        result = _finder(catalog, safety_limit=1000).search(1)

        assert result.stop_reason == BoundaryStopReason.SAFETY_LIMIT
        assert result.upper_bound == 512
        assert result.max_id == 512
        assert max(catalog.calls) <= 1000

    def test_consecutive_errors_abort_the_search(self) -> None:
        catalog = SyntheticCatalog(100, errors=range(1, 200))

        with pytest.raises(ConsecutiveErrorLimitExceeded) as ctx:
            _finder(catalog, max_consecutive_errors=5).search(1)

        assert ctx.value.consecutive_errors == 6
        assert ctx.value.limit == 5
