"""
Solana blockchain infrastructure.
"""

from caissier.infrastructure.blockchain.blockhash_provider import (
    BlockhashProvider,
    LatestBlockhash,
)
from caissier.infrastructure.blockchain.signature_poller import (
    SignatureStatusPoller,
)
from caissier.infrastructure.blockchain.solana_rpc_client import (
    SolanaRPCClient,
    mask_api_key,
    mask_url,
)
from caissier.infrastructure.blockchain.transaction_builder import (
    TransactionBuilder,
)

__all__ = [
    "BlockhashProvider",
    "LatestBlockhash",
    "SignatureStatusPoller",
    "SolanaRPCClient",
    "TransactionBuilder",
    "mask_api_key",
    "mask_url",
]
