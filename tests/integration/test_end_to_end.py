"""
End-to-End Integration Tests for Replication Verification

Runs a verification job against a live Scylla node. The "local" and "peer"
tables live in two keyspaces of the same node, so the test needs nothing
but a Scylla reachable at SCYLLA_HOSTS (default localhost:9042).
"""

import os
import uuid

import pytest
from cassandra.cluster import Cluster
from prometheus_client import CollectorRegistry

from src.monitoring.metrics import VerificationMetrics
from src.verification.config import ClusterConfig, VerifyConfig
from src.verification.job import VerificationJob
from src.verification.model import PeerDescriptor
from src.verification.scylla_store import ScyllaSessionFactory, ScyllaTable
from tests.fakes import StaticResolver

pytestmark = pytest.mark.integration

HOSTS = tuple(os.getenv("SCYLLA_HOSTS", "localhost").split(","))
PORT = int(os.getenv("SCYLLA_PORT", "9042"))

CREATE_TABLE = """
    CREATE TABLE IF NOT EXISTS {keyspace}.{table} (
        row_key blob,
        family text,
        qualifier blob,
        value blob,
        PRIMARY KEY ((row_key), family, qualifier)
    )
"""

INSERT_CELL = (
    "INSERT INTO {keyspace}.{table} (row_key, family, qualifier, value) "
    "VALUES (%s, %s, %s, %s) USING TIMESTAMP %s"
)


@pytest.fixture(scope="module")
def scylla_session():
    """Create ScyllaDB session for testing."""
    cluster = Cluster(list(HOSTS), port=PORT)
    session = cluster.connect()
    for keyspace in ("verify_local", "verify_peer"):
        session.execute(
            f"CREATE KEYSPACE IF NOT EXISTS {keyspace} "
            "WITH replication = {'class': 'SimpleStrategy', 'replication_factor': 1}"
        )
    yield session
    cluster.shutdown()


@pytest.fixture
def table_name(scylla_session):
    """A fresh table in both keyspaces."""
    name = f"users_{uuid.uuid4().hex[:8]}"
    for keyspace in ("verify_local", "verify_peer"):
        scylla_session.execute(CREATE_TABLE.format(keyspace=keyspace, table=name))
    yield name
    for keyspace in ("verify_local", "verify_peer"):
        scylla_session.execute(f"DROP TABLE IF EXISTS {keyspace}.{name}")


def write_cells(session, keyspace, table, cells):
    statement = INSERT_CELL.format(keyspace=keyspace, table=table)
    for row_key, family, qualifier, value, ts_millis in cells:
        session.execute(statement, (row_key, family, qualifier, value, ts_millis * 1000))


def run_verification(table_name, **config):
    peer = PeerDescriptor(
        peer_id="5",
        cluster_key=f"{','.join(HOSTS)}:{PORT}:verify_peer",
        contact_points=HOSTS,
        port=PORT,
        keyspace="verify_peer"
    )
    job_config = VerifyConfig(
        peer_id="5",
        table_name=table_name,
        local=ClusterConfig(contact_points=HOSTS, port=PORT, keyspace="verify_local"),
        splits=4,
        **config
    )
    local_table = ScyllaTable(job_config.local, table_name, splits=job_config.splits)
    session_factory = ScyllaSessionFactory(table_name)
    job = VerificationJob(
        job_config,
        StaticResolver(peer),
        local_table,
        session_factory,
        metrics=VerificationMetrics(registry=CollectorRegistry())
    )

    plan = job.submit()
    with local_table, session_factory:
        return job.execute(plan)


class TestEndToEndVerification:
    """End-to-end verification against a live node."""

    def test_identical_tables(self, scylla_session, table_name):
        cells = [
            (f"row-{i}".encode(), "cf", b"name", f"user-{i}".encode(), 1_000_000 + i)
            for i in range(50)
        ]
        write_cells(scylla_session, "verify_local", table_name, cells)
        write_cells(scylla_session, "verify_peer", table_name, cells)

        result = run_verification(table_name)

        assert result.succeeded
        assert result.good_rows == 50
        assert result.bad_rows == 0

    def test_changed_value_is_bad(self, scylla_session, table_name):
        local = [(b"row-1", "cf", b"name", b"alice", 1000), (b"row-2", "cf", b"name", b"bob", 1000)]
        peer = [(b"row-1", "cf", b"name", b"alice", 1000), (b"row-2", "cf", b"name", b"robert", 1000)]
        write_cells(scylla_session, "verify_local", table_name, local)
        write_cells(scylla_session, "verify_peer", table_name, peer)

        result = run_verification(table_name)

        assert result.good_rows == 1
        assert result.bad_rows == 1

    def test_time_range_excludes_later_writes(self, scylla_session, table_name):
        """Test that a divergence outside the window is not counted."""
        write_cells(scylla_session, "verify_local", table_name, [
            (b"row-1", "cf", b"name", b"alice", 1000),
        ])
        write_cells(scylla_session, "verify_peer", table_name, [
            (b"row-1", "cf", b"name", b"alice", 1000),
            (b"row-1", "cf", b"email", b"a@example.com", 9000),
        ])

        result = run_verification(table_name, start_time=0, end_time=5000)

        assert result.good_rows == 1
        assert result.bad_rows == 0
