"""
Processed-signature registry interface.

Defines the shared record of signatures already accepted for
confirmation.
"""

from abc import ABC, abstractmethod
from typing import Optional

from caissier.domain.value_objects.transaction_status import TransactionStatus


class ISignatureRegistry(ABC):
    """
    Abstract append-only set of processed signatures.

    A signature present in the registry must never be handed to the
    verification delegate a second time. Entries are never removed.
    """

    @abstractmethod
    async def register(self, signature: str) -> bool:
        """
        Atomically insert signature if absent.

        Args:
            signature: Transaction signature

        Returns:
            True if this call inserted it, False if it was already present

        Raises:
            RegistryError: If the backing store fails
        """

    @abstractmethod
    async def contains(self, signature: str) -> bool:
        """
        Check whether signature was registered.

        Args:
            signature: Transaction signature

        Returns:
            True if registered
        """

    @abstractmethod
    async def record_terminal(
        self,
        signature: str,
        status: TransactionStatus,
    ) -> None:
        """
        Store the terminal status reached for a registered signature.

        Args:
            signature: Transaction signature
            status: Terminal TransactionStatus

        Raises:
            RegistryError: If the backing store fails
        """

    @abstractmethod
    async def get_terminal(self, signature: str) -> Optional[TransactionStatus]:
        """
        Fetch the recorded terminal status.

        Args:
            signature: Transaction signature

        Returns:
            Terminal status, or None if the flow has not finished (or ran
            somewhere that never recorded it)
        """

    async def close(self) -> None:
        """Release backing resources."""
