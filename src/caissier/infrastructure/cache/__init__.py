"""
Registry and reconciliation storage.
"""

from caissier.infrastructure.cache.reconciliation_log import (
    InMemoryReconciliationLog,
)
from caissier.infrastructure.cache.redis_reconciliation_log import (
    RedisReconciliationLog,
)
from caissier.infrastructure.cache.redis_signature_registry import (
    RedisSignatureRegistry,
)
from caissier.infrastructure.cache.signature_registry import (
    InMemorySignatureRegistry,
)

__all__ = [
    "InMemoryReconciliationLog",
    "InMemorySignatureRegistry",
    "RedisReconciliationLog",
    "RedisSignatureRegistry",
]
