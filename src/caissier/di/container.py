"""
Dependency Injection Container for Caissier.

Builds every component from settings and owns their lifetimes.
"""

from typing import Optional

import redis.asyncio as aioredis

from caissier.application.confirmation_orchestrator import (
    ConfirmationOrchestrator,
)
from caissier.config.settings import CaissierConfig, get_settings
from caissier.domain.services import (
    IReconciliationLog,
    ISignatureRegistry,
    IVerificationDelegate,
)
from caissier.infrastructure.blockchain import (
    BlockhashProvider,
    SignatureStatusPoller,
    SolanaRPCClient,
    TransactionBuilder,
    mask_api_key,
)
from caissier.infrastructure.cache import (
    InMemoryReconciliationLog,
    InMemorySignatureRegistry,
    RedisReconciliationLog,
    RedisSignatureRegistry,
)
from caissier.infrastructure.monitoring.health_checker import (
    CaissierHealthChecker,
)
from caissier.infrastructure.verification import HttpVerificationDelegate
from caissier.reporter import SystemReporter, level_from_name


class DIContainer:
    """
    Dependency Injection Container.

    Components are created lazily and shared for the container's lifetime.
    """

    def __init__(self, settings: Optional[CaissierConfig] = None):
        """
        Initialize container.

        Args:
            settings: Configuration. If None, uses get_settings().
        """
        self.settings = settings or get_settings()

        self._reporter: Optional[SystemReporter] = None
        self._redis: Optional[aioredis.Redis] = None
        self._rpc_client: Optional[SolanaRPCClient] = None
        self._blockhash_provider: Optional[BlockhashProvider] = None
        self._transaction_builder: Optional[TransactionBuilder] = None
        self._poller: Optional[SignatureStatusPoller] = None
        self._delegate: Optional[IVerificationDelegate] = None
        self._registry: Optional[ISignatureRegistry] = None
        self._reconciliation_log: Optional[IReconciliationLog] = None
        self._orchestrator: Optional[ConfirmationOrchestrator] = None
        self._health_checker: Optional[CaissierHealthChecker] = None

    async def initialize(self) -> None:
        """Build the orchestrator and log the effective setup."""
        rpc = self.settings.rpc
        self.reporter.info(
            f"RPC endpoints: {len(self.rpc_client.endpoints)} "
            f"(helius key: {mask_api_key(rpc.helius_api_key) or 'none'}, "
            f"alchemy key: {mask_api_key(rpc.alchemy_api_key) or 'none'})",
            context="Container",
        )
        self.reporter.info(
            f"Registry backend: {self.settings.registry.backend}",
            context="Container",
        )
        _ = self.orchestrator

    async def shutdown(self) -> None:
        """Drain in-flight confirmations and close connections."""
        if self._orchestrator is not None:
            await self._orchestrator.shutdown(self.settings.shutdown_timeout)
            return

        if self._delegate is not None:
            await self._delegate.close()
        if self._rpc_client is not None:
            await self._rpc_client.close()
        if self._registry is not None:
            await self._registry.close()
        if self._redis is not None:
            await self._redis.aclose()

    # Infrastructure Getters

    @property
    def reporter(self) -> SystemReporter:
        """Get service-wide reporter."""
        if self._reporter is None:
            self._reporter = SystemReporter(
                name="caissier",
                log_dir=self.settings.log_dir,
                level=level_from_name(self.settings.log_level),
            )
        return self._reporter

    @property
    def redis(self) -> aioredis.Redis:
        """Get shared Redis client."""
        if self._redis is None:
            redis_config = self.settings.redis
            self._redis = aioredis.from_url(
                self.settings.redis_url,
                password=redis_config.password,
                socket_timeout=redis_config.socket_timeout,
                socket_connect_timeout=redis_config.socket_connect_timeout,
                decode_responses=True,
            )
        return self._redis

    @property
    def rpc_client(self) -> SolanaRPCClient:
        """Get Solana RPC client."""
        if self._rpc_client is None:
            self._rpc_client = SolanaRPCClient.from_config(
                self.settings.rpc,
                reporter=self.reporter,
            )
        return self._rpc_client

    @property
    def blockhash_provider(self) -> BlockhashProvider:
        """Get blockhash provider."""
        if self._blockhash_provider is None:
            config = self.settings.blockhash
            self._blockhash_provider = BlockhashProvider(
                rpc_client=self.rpc_client,
                max_retries=config.max_retries,
                base_delay=config.base_delay,
                max_jitter=config.max_jitter,
                cache_enabled=config.cache_enabled,
                cache_ttl=config.cache_ttl,
                reporter=self.reporter,
            )
        return self._blockhash_provider

    @property
    def transaction_builder(self) -> TransactionBuilder:
        """Get transaction builder."""
        if self._transaction_builder is None:
            self._transaction_builder = TransactionBuilder(
                blockhash_provider=self.blockhash_provider,
                reporter=self.reporter,
            )
        return self._transaction_builder

    @property
    def poller(self) -> SignatureStatusPoller:
        """Get signature status poller."""
        if self._poller is None:
            config = self.settings.poller
            self._poller = SignatureStatusPoller(
                rpc_client=self.rpc_client,
                max_retries=config.max_retries,
                initial_delay_ms=config.initial_delay_ms,
                backoff_factor=config.backoff_factor,
                max_delay_ms=config.max_delay_ms,
                max_jitter_ms=config.max_jitter_ms,
                corroborate=config.corroborate,
                reporter=self.reporter,
            )
        return self._poller

    @property
    def delegate(self) -> IVerificationDelegate:
        """Get verification delegate."""
        if self._delegate is None:
            config = self.settings.verification
            self._delegate = HttpVerificationDelegate(
                endpoint_url=config.endpoint_url,
                auth_token=config.auth_token,
                timeout=config.timeout,
                unavailable_status_codes=config.unavailable_status_codes,
                reporter=self.reporter,
            )
        return self._delegate

    @property
    def registry(self) -> ISignatureRegistry:
        """Get processed-signature registry."""
        if self._registry is None:
            if self.settings.registry.backend == "redis":
                self._registry = RedisSignatureRegistry(
                    redis_client=self.redis,
                    key_prefix=self.settings.registry.key_prefix,
                )
            else:
                self._registry = InMemorySignatureRegistry()
        return self._registry

    @property
    def reconciliation_log(self) -> IReconciliationLog:
        """Get reconciliation log (same backend as the registry)."""
        if self._reconciliation_log is None:
            if self.settings.registry.backend == "redis":
                self._reconciliation_log = RedisReconciliationLog(
                    redis_client=self.redis,
                    key_prefix=self.settings.registry.key_prefix,
                )
            else:
                self._reconciliation_log = InMemoryReconciliationLog()
        return self._reconciliation_log

    # Application Getters

    @property
    def orchestrator(self) -> ConfirmationOrchestrator:
        """Get confirmation orchestrator."""
        if self._orchestrator is None:
            self._orchestrator = ConfirmationOrchestrator(
                poller=self.poller,
                delegate=self.delegate,
                registry=self.registry,
                reconciliation_log=self.reconciliation_log,
                transaction_builder=self.transaction_builder,
                settle_delay=self.settings.poller.settle_delay,
                explorer_name=self.settings.explorer.name,
                explorer_url_template=self.settings.explorer.tx_url_template,
                terminal_wait_attempts=self.settings.registry.terminal_wait_attempts,
                terminal_wait_base_delay=(
                    self.settings.registry.terminal_wait_base_delay
                ),
                terminal_wait_max_delay=self.settings.registry.terminal_wait_max_delay,
                reporter=self.reporter,
            )
        return self._orchestrator

    @property
    def health_checker(self) -> CaissierHealthChecker:
        """Get health checker."""
        if self._health_checker is None:
            self._health_checker = CaissierHealthChecker(
                rpc_client=self.rpc_client,
                registry=self.registry,
            )
        return self._health_checker


# Global container instance
_container: Optional[DIContainer] = None


def get_container() -> DIContainer:
    """Get global DI container instance."""
    global _container
    if _container is None:
        _container = DIContainer()
    return _container


def set_container(container: Optional[DIContainer]) -> None:
    """Replace the global container (tests and CLI overrides)."""
    global _container
    _container = container


async def initialize_container() -> DIContainer:
    """Initialize global container."""
    container = get_container()
    await container.initialize()
    return container


async def shutdown_container() -> None:
    """Shutdown global container."""
    global _container
    if _container is not None:
        await _container.shutdown()
        _container = None
