"""
Pytest configuration and shared fixtures.

Unit tests run against in-memory tables and peers (tests/fakes.py).
Integration tests need live clusters and are skipped unless
VERIFYREP_INTEGRATION is set.
"""

import os

import pytest
from prometheus_client import CollectorRegistry

from src.monitoring.metrics import VerificationMetrics
from src.utils.correlation import clear_context
from src.verification.model import PeerDescriptor
from tests.fakes import make_row


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless live clusters are configured."""
    if os.getenv("VERIFYREP_INTEGRATION"):
        return

    skip_integration = pytest.mark.skip(reason="set VERIFYREP_INTEGRATION to run against live clusters")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def clean_log_context():
    """Make sure no job/partition context leaks between tests."""
    clear_context()
    yield
    clear_context()


@pytest.fixture
def peer():
    """A resolved replication peer."""
    return PeerDescriptor(
        peer_id="5",
        cluster_key="replica1,replica2:9042:app_data",
        contact_points=("replica1", "replica2"),
        port=9042,
        keyspace="app_data"
    )


@pytest.fixture
def metrics():
    """Metrics on an isolated registry."""
    return VerificationMetrics(registry=CollectorRegistry())


@pytest.fixture
def rows():
    """Five rows r1..r5 with one or two cells each."""
    return [
        make_row("r1", ("cf", "a", 1000, "one")),
        make_row("r2", ("cf", "a", 1000, "two"), ("cf", "b", 1000, "deux")),
        make_row("r3", ("cf", "a", 2000, "three")),
        make_row("r4", ("cf", "a", 1000, "four"), ("meta", "x", 3000, "vier")),
        make_row("r5", ("cf", "a", 1000, "five")),
    ]
