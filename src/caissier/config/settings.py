"""
Caissier configuration with hybrid YAML + ENV support.

Priority: Environment variables > environment-specific YAML >
default YAML > Pydantic defaults
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PUBLIC_MAINNET_RPC = "https://api.mainnet-beta.solana.com"


class RpcConfig(BaseModel):
    """Solana RPC endpoints and HTTP timeouts."""

    primary_url: Optional[str] = Field(default=None)
    helius_api_key: Optional[str] = Field(default=None)
    alchemy_api_key: Optional[str] = Field(default=None)
    public_fallbacks: List[str] = Field(
        default_factory=lambda: [
            PUBLIC_MAINNET_RPC,
            "https://rpc.ankr.com/solana",
        ]
    )
    request_timeout: float = Field(default=10.0, ge=1.0, le=60.0)
    connect_timeout: float = Field(default=3.0, ge=0.5, le=30.0)

    def endpoints(self) -> List[str]:
        """
        Ordered endpoint list: primary first, then fallbacks.

        Primary is the explicit URL, else Helius (if keyed), else public
        mainnet. Fallbacks are Alchemy (if keyed) then the public list.
        Duplicates are dropped.
        """
        if self.primary_url:
            primary = self.primary_url
        elif self.helius_api_key:
            primary = f"https://mainnet.helius-rpc.com/?api-key={self.helius_api_key}"
        else:
            primary = PUBLIC_MAINNET_RPC

        candidates = [primary]
        if self.alchemy_api_key:
            candidates.append(
                f"https://solana-mainnet.g.alchemy.com/v2/{self.alchemy_api_key}"
            )
        candidates.extend(self.public_fallbacks)

        ordered = []
        for url in candidates:
            if url not in ordered:
                ordered.append(url)
        return ordered


class BlockhashConfig(BaseModel):
    """Blockhash fetch retry and cache settings."""

    max_retries: int = Field(default=3, ge=1, le=10)
    base_delay: float = Field(default=1.0, ge=0.0, le=30.0)
    max_jitter: float = Field(default=1.0, ge=0.0, le=5.0)
    cache_enabled: bool = Field(default=False)
    cache_ttl: float = Field(default=20.0, ge=1.0, le=60.0)


class PollerConfig(BaseModel):
    """Signature status polling settings."""

    max_retries: int = Field(default=30, ge=1, le=100)
    initial_delay_ms: int = Field(default=1000, ge=0, le=10000)
    backoff_factor: float = Field(default=1.5, ge=1.0, le=4.0)
    max_delay_ms: int = Field(default=10000, ge=100, le=60000)
    max_jitter_ms: int = Field(default=1000, ge=0, le=5000)
    settle_delay: float = Field(default=1.0, ge=0.0, le=10.0)
    corroborate: bool = Field(default=True)


class VerificationConfig(BaseModel):
    """Verification backend endpoint settings."""

    endpoint_url: str = Field(
        default="http://localhost:8888/.netlify/functions/verify-transaction"
    )
    auth_token: Optional[str] = Field(default=None)
    timeout: float = Field(default=20.0, ge=1.0, le=120.0)
    unavailable_status_codes: List[int] = Field(
        default_factory=lambda: [401, 403, 502]
    )


class RegistryConfig(BaseModel):
    """Processed-signature registry backend."""

    backend: str = Field(default="memory")
    key_prefix: str = Field(default="caissier")
    terminal_wait_attempts: int = Field(default=60, ge=1, le=1000)
    terminal_wait_base_delay: float = Field(default=0.25, gt=0.0, le=10.0)
    terminal_wait_max_delay: float = Field(default=5.0, gt=0.0, le=60.0)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate registry backend."""
        allowed = ["memory", "redis"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"Invalid registry backend. Must be one of: {allowed}")
        return v_lower


class RedisConfig(BaseModel):
    """Redis configuration for the durable registry."""

    host: str = Field(default="localhost")
    port: int = Field(default=6379, ge=1, le=65535)
    db: int = Field(default=0, ge=0, le=15)
    password: Optional[str] = Field(default=None)
    socket_timeout: float = Field(default=5.0, ge=1.0, le=60.0)
    socket_connect_timeout: float = Field(default=5.0, ge=1.0, le=60.0)


class ExplorerConfig(BaseModel):
    """Block explorer users are pointed to for indeterminate outcomes."""

    name: str = Field(default="Solscan")
    tx_url_template: str = Field(default="https://solscan.io/tx/{signature}")

    def tx_url(self, signature: str) -> str:
        return self.tx_url_template.format(signature=signature)


class CaissierConfig(BaseSettings):
    """
    Caissier configuration schema.

    Nested sections can be overridden from the environment with a double
    underscore, e.g. CAISSIER_POLLER__MAX_RETRIES=10.
    """

    model_config = SettingsConfigDict(
        env_prefix="CAISSIER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="allow",
    )

    # API server
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8770, ge=1024, le=65535)

    # Logging
    log_level: str = Field(default="info")
    log_dir: Optional[str] = Field(default=None)

    rpc: RpcConfig = Field(default_factory=RpcConfig)
    blockhash: BlockhashConfig = Field(default_factory=BlockhashConfig)
    poller: PollerConfig = Field(default_factory=PollerConfig)
    verification: VerificationConfig = Field(default_factory=VerificationConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    explorer: ExplorerConfig = Field(default_factory=ExplorerConfig)

    # Graceful shutdown
    shutdown_timeout: float = Field(default=30.0, ge=1.0, le=600.0)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML arrives as init kwargs; the environment wins over it.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @computed_field
    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        return f"redis://{self.redis.host}:{self.redis.port}/{self.redis.db}"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = ["debug", "info", "warning", "error", "critical"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"Invalid log_level. Must be one of: {allowed}")
        return v_lower


def load_config(config_file: Optional[str] = None) -> CaissierConfig:
    """
    Load configuration from YAML files.

    Priority: Environment variables > environment-specific YAML > default YAML

    Args:
        config_file: Optional YAML filename override

    Returns:
        CaissierConfig instance
    """
    env = os.getenv("ENV", "production")

    config_map = {
        "production": "production.yaml",
        "development": "development.yaml",
        "test": "test.yaml",
    }

    project_root = Path(__file__).resolve().parents[3]
    config_dir = Path(os.getenv("CAISSIER_CONFIG_DIR", project_root / "config"))

    env_path = project_root / f".env.{env}"
    if env_path.exists():
        load_dotenv(env_path)

    merged_config: dict = {}

    default_config_path = config_dir / "default.yaml"
    if default_config_path.exists():
        with open(default_config_path, "r") as f:
            loaded = yaml.safe_load(f)
            if loaded:
                merged_config = loaded

    if config_file is None:
        config_file = os.getenv("CAISSIER_CONFIG")
        if not config_file:
            config_file = config_map.get(env, "production.yaml")

    env_config_path = config_dir / config_file
    if env_config_path.exists():
        with open(env_config_path, "r") as f:
            loaded = yaml.safe_load(f)
            if loaded:
                merged_config = _deep_merge(merged_config, loaded)

    return CaissierConfig(**merged_config)


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# Global settings instance
_settings: Optional[CaissierConfig] = None


def get_settings() -> CaissierConfig:
    """
    Get singleton settings instance.

    Returns:
        CaissierConfig instance
    """
    global _settings
    if _settings is None:
        _settings = load_config()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (tests and CLI overrides)."""
    global _settings
    _settings = None
