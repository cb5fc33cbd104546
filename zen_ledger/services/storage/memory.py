"""In-memory storage backend, used by tests and for throwaway ledgers."""

from typing import Mapping, Optional

from zen_ledger.services.storage.interface import LedgerBackend, check_slots


class InMemoryBackend(LedgerBackend):
    """Keeps slot payloads in a dict. Nothing survives the process."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._slots: dict[str, str] = dict(initial or {})
        self.write_count = 0

    def read_slot(self, slot: str) -> Optional[str]:
        return self._slots.get(slot)

    def write_slots(self, payloads: Mapping[str, str]) -> None:
        check_slots(payloads)
        self._slots.update(payloads)
        self.write_count += 1
