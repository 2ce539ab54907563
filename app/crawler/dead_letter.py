"""
Dead-letter sink for records the final drain could not persist.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Sequence
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from app.domain.catalog import WhiskyRecord

logger = logging.getLogger(__name__)


class DeadLetterSink:
    """
    Appends unpersisted records to a JSON lines file, one record per line.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def write(self, records: Sequence[WhiskyRecord], *, reason: str) -> int:
        """
        Append records and return how many were written.

        Filesystem errors are logged and reported as zero written so the
        caller can still finish its drain.
        """

        if not records:
            return 0

        failed_at = datetime.now(timezone.utc).isoformat()
        lines = [
            json.dumps(
                {
                    "record_id": record.record_id,
                    "reason": reason,
                    "failed_at": failed_at,
                    "record": asdict(record),
                },
                default=str,
                sort_keys=True,
            )
            for record in records
        ]
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as handle:
                    handle.write("\n".join(lines) + "\n")
            except OSError as exc:
                logger.error(
                    "Failed to write %s dead-letter record(s) to %s: %s",
                    len(records),
                    self.path,
                    exc,
                )
                return 0
        return len(records)
