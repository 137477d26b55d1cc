"""
Replication Verification Module

Checks that a local table and its replica on a replication peer hold the
same data for a time window, partition by partition, counting matching
(GOODROWS) and divergent (BADROWS) rows.

Main components:
- peer_resolver: Peer id to PeerDescriptor through the Vault peer registry
- scan_spec: Scan specification shared by both sides
- verifier: Lockstep dual-cursor comparison for one partition
- comparer: Strict row/cell classification
- job: Submission, partition workers and counter aggregation
- scylla_store: Scylla tables and remote sessions (cassandra-driver)

Usage:
    from src.verification import VerificationJob, PeerResolver, VerifyConfig
    from src.verification.scylla_store import ScyllaTable, ScyllaSessionFactory

    resolver = PeerResolver(config.registry, default_keyspace="app_data")
    job = VerificationJob(config, resolver, ScyllaTable(config.local, "users"),
                          ScyllaSessionFactory("users"))
    result = job.run()
    print(result.counters)
"""

from src.verification.comparer import RowComparer, compare
from src.verification.config import VerifyConfig
from src.verification.job import JobResult, VerificationJob
from src.verification.peer_resolver import PeerResolver
from src.verification.scan_spec import ScanSpec, TimeRange, build_scan_spec
from src.verification.verifier import PartitionVerifier

__all__ = [
    "RowComparer",
    "compare",
    "VerifyConfig",
    "JobResult",
    "VerificationJob",
    "PeerResolver",
    "ScanSpec",
    "TimeRange",
    "build_scan_spec",
    "PartitionVerifier",
]

__version__ = "1.0.0"
