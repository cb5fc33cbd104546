"""
JSON File Storage Implementation

Every slot lives in one JSON document in the data directory:

    data/ledger.json
    {
        "transactions": "[...]",
        "categories": "[...]",
        "budgets": "[...]",
        "processed_periods": "[...]"
    }

Slot payloads are kept as strings so a slot reads back exactly as it
was written. A write merges the new payloads into the current document,
writes the result to a temporary file in the same directory and renames
it over ledger.json. The rename is the only step that changes what a
reader sees, so a multi-slot write lands completely or not at all.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Mapping, Optional, Union

import structlog

from zen_ledger.services.storage.interface import (
    LedgerBackend,
    StorageError,
    check_slots,
)


logger = structlog.get_logger(__name__)

LEDGER_FILE = "ledger.json"


class JsonFileBackend(LedgerBackend):
    """Stores every slot in data_dir/ledger.json."""

    def __init__(self, data_dir: Union[str, Path]):
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def path(self) -> Path:
        return self._data_dir / LEDGER_FILE

    def _read_document(self) -> dict[str, str]:
        """
        The slot document; empty when the file does not exist yet.

        Raises:
            StorageError: If the file cannot be read or decoded
        """
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_bytes().decode("utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {self.path}: {e}")
        except UnicodeDecodeError as e:
            raise StorageError(f"{self.path} is not valid UTF-8: {e}")

        if not raw.strip():
            return {}
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"{self.path} is not valid JSON: {e}")
        if not isinstance(document, dict):
            raise StorageError(f"{self.path} does not hold a JSON object")
        return document

    def read_slot(self, slot: str) -> Optional[str]:
        """Read one slot; a slot missing from the document is unwritten."""
        payload = self._read_document().get(slot)
        if payload is None:
            return None
        if not isinstance(payload, str):
            raise StorageError(f"Slot {slot} in {self.path} is not a string payload")
        return payload

    def write_slots(self, payloads: Mapping[str, str]) -> None:
        """Merge payloads into the document and replace the file in one rename."""
        check_slots(payloads)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create data directory {self._data_dir}: {e}")

        try:
            document = self._read_document()
        except StorageError as e:
            # Unreadable slots already loaded as defaults; start a fresh document
            logger.warning("ledger_file_reset", path=str(self.path), error=str(e))
            document = {}
        document.update(payloads)

        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self._data_dir,
                prefix=".ledger.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            self._discard(tmp_name)
            raise StorageError(f"Failed to write ledger slots: {e}")

        logger.debug("slots_written", slots=sorted(payloads))

    def _discard(self, tmp_name: Optional[str]) -> None:
        if tmp_name is None:
            return
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning("temp_file_cleanup_failed", path=tmp_name, error=str(e))
