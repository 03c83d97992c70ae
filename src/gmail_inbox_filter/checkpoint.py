"""SQLite store for the incremental-run checkpoint."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from gmail_inbox_filter import constants
from gmail_inbox_filter.models import Checkpoint

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS checkpoint (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    last_processed_date TEXT,
    last_page_token TEXT,
    total_processed INTEGER NOT NULL DEFAULT 0,
    last_run_timestamp TEXT
);
"""

_FIELDS = tuple(f.name for f in fields(Checkpoint))


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class CheckpointStore:
    """Persistent single-record checkpoint.

    Only one writer per account is supported; concurrent runs against the same
    database give undefined results.
    """

    def __init__(
        self,
        db_path: Path | None = None,
        now: Callable[[], str] = _utcnow,
    ) -> None:
        self.db_path = Path(db_path or constants.CHECKPOINT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._now = now
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_CREATE_TABLES_SQL)

    # --- public API ---

    def load(self) -> Checkpoint:
        """Return the stored checkpoint, or defaults when nothing has been saved."""
        row = self._conn.execute("SELECT * FROM checkpoint WHERE id = 1").fetchone()
        if row is None:
            return Checkpoint()
        return Checkpoint(
            last_processed_date=row["last_processed_date"],
            last_page_token=row["last_page_token"],
            total_processed=row["total_processed"],
            last_run_timestamp=row["last_run_timestamp"],
        )

    def update(self, **changes) -> Checkpoint:
        """Merge ``changes`` into the stored checkpoint and save it.

        Fields not passed keep their stored value. ``last_run_timestamp`` is
        always set to the current time.
        """
        unknown = set(changes) - set(_FIELDS)
        if unknown:
            raise TypeError(f"Unknown checkpoint fields: {', '.join(sorted(unknown))}")

        merged = asdict(self.load())
        merged.update(changes)
        merged["last_run_timestamp"] = self._now()
        checkpoint = Checkpoint(**merged)

        if checkpoint.total_processed < 0:
            raise ValueError("total_processed cannot be negative")

        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO checkpoint "
                "(id, last_processed_date, last_page_token, total_processed, last_run_timestamp) "
                "VALUES (1, ?, ?, ?, ?)",
                (
                    checkpoint.last_processed_date,
                    checkpoint.last_page_token,
                    checkpoint.total_processed,
                    checkpoint.last_run_timestamp,
                ),
            )
        logger.info(
            "Checkpoint saved: last_processed_date=%s, total_processed=%d",
            checkpoint.last_processed_date,
            checkpoint.total_processed,
        )
        return checkpoint

    def reset(self) -> None:
        """Forget the checkpoint; the next run starts from the beginning of history."""
        with self._conn:
            self._conn.execute("DELETE FROM checkpoint")

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- context manager ---

    def __enter__(self) -> CheckpointStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()
