"""
Transaction builder.

Stamps a payment transaction with a fresh blockhash and fee payer and
checks it is complete enough to sign.
"""

from typing import Optional, Sequence, Union

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from caissier.domain.entities import PaymentTransaction
from caissier.domain.exceptions import InvalidTransactionError
from caissier.infrastructure.blockchain.blockhash_provider import BlockhashProvider
from caissier.reporter import SystemReporter

TransactionInput = Union[PaymentTransaction, Sequence[Instruction]]


class TransactionBuilder:
    """Prepares PaymentTransactions for signing and submission."""

    def __init__(
        self,
        blockhash_provider: BlockhashProvider,
        reporter: Optional[SystemReporter] = None,
    ):
        self.blockhash_provider = blockhash_provider
        self.reporter = reporter or SystemReporter(name="caissier.builder")

    async def prepare(
        self,
        tx_or_instructions: TransactionInput,
        fee_payer: Union[Pubkey, str],
    ) -> PaymentTransaction:
        """
        Refresh or create a transaction ready for signing.

        An existing PaymentTransaction is updated in place (blockhash,
        validity height, fee payer); its instructions are untouched. A
        sequence of instructions becomes a new transaction.

        Args:
            tx_or_instructions: Existing transaction or instructions
            fee_payer: Fee payer as Pubkey or base58 string

        Returns:
            The prepared PaymentTransaction

        Raises:
            BlockhashUnavailableError: If no blockhash could be fetched
            InvalidTransactionError: If the result is incomplete
            ValueError: If fee_payer is not a valid public key
        """
        payer = self._to_pubkey(fee_payer)
        latest = await self.blockhash_provider.get_latest_blockhash()

        if isinstance(tx_or_instructions, PaymentTransaction):
            transaction = tx_or_instructions
        else:
            transaction = PaymentTransaction(instructions=list(tx_or_instructions))

        transaction.recent_blockhash = latest.blockhash
        transaction.last_valid_block_height = latest.last_valid_block_height
        transaction.fee_payer = payer

        self.validate_transaction(transaction)

        self.reporter.debug(
            f"Prepared transaction with {len(transaction.instructions)} "
            f"instruction(s), valid until block {latest.last_valid_block_height}",
            context="Builder",
        )
        return transaction

    @staticmethod
    def validate_transaction(transaction: PaymentTransaction) -> None:
        """
        Check that a transaction has blockhash, fee payer and instructions.

        Raises:
            InvalidTransactionError: Naming every missing field
        """
        missing = transaction.missing_fields()
        if missing:
            raise InvalidTransactionError(missing)

    @staticmethod
    def _to_pubkey(value: Union[Pubkey, str]) -> Pubkey:
        if isinstance(value, Pubkey):
            return value
        try:
            return Pubkey.from_string(value)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid fee payer address: {value}") from e
