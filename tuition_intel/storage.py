"""JSONL persistence for extraction records."""

import json
import logging
import threading
from pathlib import Path
from typing import Optional

from .config import ensure_data_dir
from .models.extraction import ExtractionRecord

logger = logging.getLogger(__name__)

DEFAULT_RECORDS_FILE = "tuition_records.jsonl"


class JsonlRecordStore:
    """
    Append-only record store, one JSON object per line.

    Thread-safe, so the batch runner's workers can share one instance.

    Usage:
        store = JsonlRecordStore()
        store.save(record)
        records = store.load()
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else ensure_data_dir() / DEFAULT_RECORDS_FILE
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def save(self, record: ExtractionRecord) -> None:
        line = json.dumps(record.to_storage_dict(), ensure_ascii=False)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        logger.debug(f"Saved record for {record.school} - {record.program} to {self.path}")

    def load(self) -> list[ExtractionRecord]:
        """Read every stored record. Corrupt lines are logged and skipped."""
        if not self.path.exists():
            return []

        records = []
        with open(self.path, encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(ExtractionRecord.model_validate_json(line))
                except ValueError as e:
                    logger.warning(f"Skipping corrupt record at {self.path}:{line_number}: {e}")
        return records
