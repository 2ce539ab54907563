"""
On-disk cache of raw catalog pages.
"""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class RawPageStore:
    """
    Stores fetched HTML as `{directory}/{item_id}.html`.

    Writes are best-effort: a failure is logged and never interrupts a crawl.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, item_id: int) -> Path:
        return self.directory / f"{item_id}.html"

    def load(self, item_id: int) -> str | None:
        path = self.path_for(item_id)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Failed to read cached page %s: %s", path, exc)
            return None

    def save(self, item_id: int, html: str) -> bool:
        path = self.path_for(item_id)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(html, encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to save raw page for item %s: %s", item_id, exc)
            return False
        return True
