"""
In-memory reconciliation log.
"""

from collections import deque
from typing import Deque, List

from caissier.domain.entities import ReconciliationEntry
from caissier.domain.services import IReconciliationLog


class InMemoryReconciliationLog(IReconciliationLog):
    """Bounded process-local log, newest entries first."""

    def __init__(self, max_entries: int = 10000):
        self._entries: Deque[ReconciliationEntry] = deque(maxlen=max_entries)

    async def record(self, entry: ReconciliationEntry) -> None:
        self._entries.appendleft(entry)

    async def pending(self, limit: int = 50) -> List[ReconciliationEntry]:
        return list(self._entries)[:limit]
