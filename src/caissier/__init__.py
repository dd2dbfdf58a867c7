"""
Caissier - Solana payment confirmation and verification engine.

Watches submitted checkout transactions until they finalize on-chain,
hands authoritative verification to the trusted backend, and guarantees
at-most-once verification side effects per signature.
"""

__version__ = "0.1.0"
