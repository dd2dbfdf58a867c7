"""
Test fixtures and configuration.
"""

import random

import pytest

from caissier.application import ConfirmationOrchestrator
from caissier.infrastructure.blockchain import SignatureStatusPoller
from caissier.infrastructure.cache import (
    InMemoryReconciliationLog,
    InMemorySignatureRegistry,
)
from caissier.reporter import SystemReporter
from tests.helpers.fakes import FakeDelegate, FakeRPCClient, RecordingSleep


@pytest.fixture
def reporter() -> SystemReporter:
    """Quiet reporter for components under test."""
    return SystemReporter(name="caissier.test", verbose=0)


@pytest.fixture
def rng() -> random.Random:
    """Deterministic jitter source."""
    return random.Random(1234)


@pytest.fixture
def sleep() -> RecordingSleep:
    """Instant sleep that records requested delays."""
    return RecordingSleep()


@pytest.fixture
def registry() -> InMemorySignatureRegistry:
    return InMemorySignatureRegistry()


@pytest.fixture
def reconciliation_log() -> InMemoryReconciliationLog:
    return InMemoryReconciliationLog()


@pytest.fixture
def make_orchestrator(sleep, rng, registry, reconciliation_log, reporter):
    """
    Factory building an orchestrator around a FakeRPCClient and delegate.

    Returns (orchestrator, rpc, delegate).
    """

    def _make(rpc=None, delegate=None, max_retries=30, **kwargs):
        rpc = rpc or FakeRPCClient()
        delegate = delegate or FakeDelegate()
        poller = SignatureStatusPoller(
            rpc_client=rpc,
            max_retries=max_retries,
            sleep=sleep,
            rng=rng,
            reporter=reporter,
        )
        orchestrator = ConfirmationOrchestrator(
            poller=poller,
            delegate=delegate,
            registry=kwargs.pop("registry", registry),
            reconciliation_log=kwargs.pop("reconciliation_log", reconciliation_log),
            sleep=sleep,
            reporter=reporter,
            **kwargs,
        )
        return orchestrator, rpc, delegate

    return _make
