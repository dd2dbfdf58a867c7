"""
Reconciliation log interface.
"""

from abc import ABC, abstractmethod
from typing import List

from caissier.domain.entities.reconciliation_entry import ReconciliationEntry


class IReconciliationLog(ABC):
    """
    Append-only log of payments whose business verification is open.

    Drained by an out-of-band reconciliation job.
    """

    @abstractmethod
    async def record(self, entry: ReconciliationEntry) -> None:
        """
        Append an entry.

        Raises:
            RegistryError: If the backing store fails
        """

    @abstractmethod
    async def pending(self, limit: int = 50) -> List[ReconciliationEntry]:
        """
        Most recent entries first.

        Args:
            limit: Maximum entries to return
        """

    async def close(self) -> None:
        """Release backing resources."""
