"""
Turn a fetch/parse call for one id into a classified Outcome.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from app.crawler.errors import ItemNotFoundError, ParseError, TransientFetchError
from app.domain.catalog import WhiskyRecord
from app.domain.crawl import ErrorKind, Outcome

logger = logging.getLogger(__name__)


def classify(item_id: int, operation: Callable[[int], WhiskyRecord | None]) -> Outcome:
    """
    Run `operation(item_id)` and map its result or exception to an Outcome.

    Errors for a single id never propagate; they become `error` outcomes.
    """

    try:
        record = operation(item_id)
    except ItemNotFoundError:
        return Outcome.not_found(item_id)
    except TransientFetchError as exc:
        return Outcome.failed(item_id, ErrorKind.TRANSIENT, str(exc))
    except ParseError as exc:
        return Outcome.failed(item_id, ErrorKind.PARSE, str(exc))
    except Exception as exc:
        logger.debug("Unexpected failure for item %s", item_id, exc_info=True)
        return Outcome.failed(item_id, ErrorKind.UNEXPECTED, f"{type(exc).__name__}: {exc}")
    return Outcome.found(item_id, record)
