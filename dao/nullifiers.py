"""Nullifier ledger: every nullifier may be spent at most once."""

import logging
import threading
from typing import Iterator

from .errors import AlreadySpentError

logger = logging.getLogger(__name__)


class NullifierLedger:
    """Set of consumed nullifiers with atomic check-and-spend"""

    def __init__(self):
        self._spent = set()
        self._lock = threading.Lock()

    def is_spent(self, nullifier: int) -> bool:
        with self._lock:
            return nullifier in self._spent

    def spend(self, nullifier: int):
        with self._lock:
            if nullifier in self._spent:
                logger.warning(f"Nullifier replay detected: {nullifier}")
                raise AlreadySpentError(f"Nullifier already spent: {nullifier}")
            self._spent.add(nullifier)

    def release(self, nullifier: int):
        """Undo a spend whose enclosing transition did not commit"""
        with self._lock:
            self._spent.discard(nullifier)

    def __contains__(self, nullifier: object) -> bool:
        return self.is_spent(nullifier)

    def __len__(self) -> int:
        with self._lock:
            return len(self._spent)

    def __iter__(self) -> Iterator[int]:
        with self._lock:
            return iter(sorted(self._spent))
