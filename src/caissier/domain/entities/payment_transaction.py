"""
PaymentTransaction entity - A checkout transaction being assembled.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction


@dataclass
class PaymentTransaction:
    """
    Mutable transaction draft.

    The builder owns only recent_blockhash, last_valid_block_height and
    fee_payer; instructions belong to the caller.
    """

    instructions: List[Instruction] = field(default_factory=list)
    fee_payer: Optional[Pubkey] = None
    recent_blockhash: Optional[str] = None
    last_valid_block_height: Optional[int] = None

    def add(self, *instructions: Instruction) -> "PaymentTransaction":
        """Append instructions in order."""
        self.instructions.extend(instructions)
        return self

    def missing_fields(self) -> List[str]:
        """Names of required fields that are not set."""
        missing = []
        if not self.recent_blockhash:
            missing.append("recent_blockhash")
        if self.fee_payer is None:
            missing.append("fee_payer")
        if not self.instructions:
            missing.append("instructions")
        return missing

    def compile(self) -> Transaction:
        """
        Compile into an unsigned solders Transaction ready for signing.

        Raises:
            ValueError: If the draft is incomplete
        """
        missing = self.missing_fields()
        if missing:
            raise ValueError(f"Cannot compile transaction, missing: {missing}")

        message = Message.new_with_blockhash(
            self.instructions,
            self.fee_payer,
            Hash.from_string(self.recent_blockhash),
        )
        return Transaction.new_unsigned(message)
