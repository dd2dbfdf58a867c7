"""
Caissier configuration.
"""

from caissier.config.settings import (
    BlockhashConfig,
    CaissierConfig,
    ExplorerConfig,
    PollerConfig,
    RedisConfig,
    RegistryConfig,
    RpcConfig,
    VerificationConfig,
    get_settings,
    load_config,
    reset_settings,
)

__all__ = [
    "BlockhashConfig",
    "CaissierConfig",
    "ExplorerConfig",
    "PollerConfig",
    "RedisConfig",
    "RegistryConfig",
    "RpcConfig",
    "VerificationConfig",
    "get_settings",
    "load_config",
    "reset_settings",
]
