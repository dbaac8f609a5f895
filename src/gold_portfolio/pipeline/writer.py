"""Snapshot and history persistence.

The snapshot is replaced wholesale via a temp file and an atomic rename, so
readers never observe a half-written document. The history is an
append-only JSON-lines log; nothing here rewrites or deletes a line.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import ValidationError

from gold_portfolio.core.config import PipelineConfig
from gold_portfolio.core.exceptions import PersistenceError
from gold_portfolio.core.models import HistoryRecord, PriceSnapshot

logger = logging.getLogger(__name__)


class SnapshotWriter:
    """Owns the snapshot file and the history log of one data directory."""

    def __init__(self, snapshot_path: Path, history_path: Path) -> None:
        self.snapshot_path = snapshot_path
        self.history_path = history_path

    @classmethod
    def from_config(cls, config: PipelineConfig) -> SnapshotWriter:
        return cls(config.snapshot_path, config.history_path)

    def persist(self, snapshot: PriceSnapshot) -> HistoryRecord:
        """Write the snapshot, then append its history line.

        If the process dies between the two steps the snapshot is complete
        and the history is one record behind.
        """
        self.write_snapshot(snapshot)
        record = snapshot.history_record()
        self.append_history(record)
        return record

    def write_snapshot(self, snapshot: PriceSnapshot) -> None:
        path = self.snapshot_path
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(snapshot.to_json(), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise PersistenceError(
                f"Failed to write snapshot: {e}", context={"path": str(path)}
            ) from e
        logger.info("Wrote snapshot %s", path)

    def append_history(self, record: HistoryRecord) -> None:
        path = self.history_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(record.to_json_line() + "\n")
        except OSError as e:
            raise PersistenceError(
                f"Failed to append history: {e}", context={"path": str(path)}
            ) from e
        logger.info("Appended history record to %s", path)

    def read_snapshot(self) -> PriceSnapshot | None:
        """The current snapshot, or None if nothing has been published yet.

        Raises:
            PersistenceError: The file is unreadable or not a valid snapshot.
        """
        path = self.snapshot_path
        if not path.exists():
            return None
        try:
            return PriceSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise PersistenceError(
                f"Failed to read snapshot: {e}", context={"path": str(path)}
            ) from e

    def read_history(self) -> list[HistoryRecord]:
        """All history records in run order. Blank lines are ignored.

        Raises:
            PersistenceError: The log is unreadable or holds a malformed line.
        """
        path = self.history_path
        if not path.exists():
            return []
        records: list[HistoryRecord] = []
        try:
            with open(path, encoding="utf-8") as f:
                for line_no, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        records.append(HistoryRecord.model_validate_json(line))
                    except ValidationError as e:
                        raise PersistenceError(
                            f"Malformed history line {line_no}: {e}",
                            context={"path": str(path), "line": line_no},
                        ) from e
        except OSError as e:
            raise PersistenceError(
                f"Failed to read history: {e}", context={"path": str(path)}
            ) from e
        return records
