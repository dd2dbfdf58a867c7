"""
In-memory processed-signature registry.
"""

import threading
from typing import Dict, Optional, Set

from caissier.domain.services import ISignatureRegistry
from caissier.domain.value_objects import TransactionStatus


class InMemorySignatureRegistry(ISignatureRegistry):
    """
    Process-local registry.

    Guards a single process only; use RedisSignatureRegistry when several
    workers confirm payments for the same storefront.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._signatures: Set[str] = set()
        self._terminal: Dict[str, TransactionStatus] = {}

    async def register(self, signature: str) -> bool:
        with self._lock:
            if signature in self._signatures:
                return False
            self._signatures.add(signature)
            return True

    async def contains(self, signature: str) -> bool:
        with self._lock:
            return signature in self._signatures

    async def record_terminal(
        self,
        signature: str,
        status: TransactionStatus,
    ) -> None:
        with self._lock:
            # First terminal status wins
            self._terminal.setdefault(signature, status)

    async def get_terminal(self, signature: str) -> Optional[TransactionStatus]:
        with self._lock:
            return self._terminal.get(signature)

    def __len__(self) -> int:
        with self._lock:
            return len(self._signatures)
