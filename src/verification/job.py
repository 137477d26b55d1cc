"""
Verification Job

Submission resolves the peer once and builds the scan spec once; both are
shared read-only with every partition worker. Partitions run on a thread
pool with no shared mutable state. A failed partition is rerun from scratch
up to partition_attempts times, then counted as failed. GOODROWS and
BADROWS are summed only after the last worker has finished.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.monitoring.metrics import VerificationMetrics
from src.utils.correlation import PartitionContext, generate_job_id
from src.verification.config import VerifyConfig
from src.verification.errors import CancellationError, ReplicationDisabled
from src.verification.interfaces import LocalTable, RemoteSessionFactory
from src.verification.model import Counters, Partition, PeerDescriptor
from src.verification.peer_resolver import PeerResolver
from src.verification.scan_spec import ScanSpec, TimeRange, build_scan_spec
from src.verification.verifier import PartitionVerifier

logger = logging.getLogger(__name__)


@dataclass
class PartitionResult:
    """Outcome of one partition after all its attempts."""

    partition: Partition
    good: int = 0
    bad: int = 0
    attempts: int = 0
    duration_seconds: float = 0.0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class JobResult:
    """Aggregated result of a verification job."""

    job_id: str
    peer_id: str
    table: str
    partitions: List[PartitionResult] = field(default_factory=list)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def good_rows(self) -> int:
        return sum(p.good for p in self.partitions if p.succeeded)

    @property
    def bad_rows(self) -> int:
        return sum(p.bad for p in self.partitions if p.succeeded)

    @property
    def failed_partitions(self) -> List[PartitionResult]:
        return [p for p in self.partitions if not p.succeeded]

    @property
    def succeeded(self) -> bool:
        return not self.failed_partitions

    @property
    def counters(self) -> Dict[str, int]:
        return {Counters.GOODROWS.value: self.good_rows, Counters.BADROWS.value: self.bad_rows}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "peer_id": self.peer_id,
            "table": self.table,
            "status": "completed" if self.succeeded else "failed",
            "counters": self.counters,
            "partitions_total": len(self.partitions),
            "partitions_failed": len(self.failed_partitions),
            "failures": [
                {"partition": p.partition.index, "attempts": p.attempts, "error": p.error}
                for p in self.failed_partitions
            ],
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass(frozen=True)
class JobPlan:
    """What submission hands to the workers."""

    job_id: str
    peer: PeerDescriptor
    spec: ScanSpec
    partitions: List[Partition]


class VerificationJob:
    """Submits and runs one verification job."""

    def __init__(
        self,
        config: VerifyConfig,
        resolver: PeerResolver,
        local_table: LocalTable,
        session_factory: RemoteSessionFactory,
        metrics: Optional[VerificationMetrics] = None,
        job_id: Optional[str] = None
    ):
        """
        Initialize the job.

        Args:
            config: Immutable job configuration
            resolver: Peer resolver
            local_table: Local side; also supplies the partitions
            session_factory: Opens remote sessions for partition verifiers
            metrics: Prometheus metrics (a fresh registry if not provided)
            job_id: Job identifier (generated if not provided)
        """
        self.config = config
        self.resolver = resolver
        self.local_table = local_table
        self.session_factory = session_factory
        self.metrics = metrics or VerificationMetrics()
        self.job_id = job_id or generate_job_id()
        self._cancel_events: Dict[int, threading.Event] = {}

    def submit(self) -> JobPlan:
        """
        Validate, resolve the peer and build the plan. Schedules nothing.

        Raises:
            ReplicationDisabled: If replication is turned off
            InvalidArguments: If the scan spec is invalid
            PeerNotFound, MetadataUnavailable: If the peer cannot be resolved
        """
        if not self.config.replication_enabled:
            raise ReplicationDisabled("Replication needs to be enabled to verify it")

        spec = build_scan_spec(
            TimeRange(self.config.start_time, self.config.end_time),
            self.config.versions,
            self.config.families,
            self.config.fetch_size
        )

        peer = self.resolver.resolve(self.config.peer_id)
        partitions = list(self.local_table.partitions(spec))

        logger.info(
            f"Submitted job {self.job_id}: table={self.config.table_name}, "
            f"peer={peer.peer_id}, partitions={len(partitions)}"
        )
        return JobPlan(self.job_id, peer, spec, partitions)

    def run(self) -> JobResult:
        """
        Submit the job and verify every partition.

        Returns:
            JobResult with aggregated counters and any failed partitions
        """
        plan = self.submit()
        return self.execute(plan)

    def execute(self, plan: JobPlan) -> JobResult:
        """Run every partition of a submitted plan on the worker pool."""
        result = JobResult(
            job_id=plan.job_id,
            peer_id=plan.peer.peer_id,
            table=self.config.table_name,
            started_at=datetime.now(timezone.utc).isoformat()
        )
        start = time.monotonic()

        self._cancel_events = {p.index: threading.Event() for p in plan.partitions}
        workers = max(1, min(self.config.workers, len(plan.partitions) or 1))

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="verifyrep")
        try:
            futures = {
                executor.submit(self._run_partition, plan, partition): partition
                for partition in plan.partitions
            }
            for future in as_completed(futures):
                partition_result = future.result()
                result.partitions.append(partition_result)
        except KeyboardInterrupt:
            logger.warning(f"Job {plan.job_id} interrupted, cancelling partitions")
            self.cancel()
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        finally:
            executor.shutdown(wait=True)

        result.partitions.sort(key=lambda p: p.partition.index)
        result.duration_seconds = time.monotonic() - start
        result.finished_at = datetime.now(timezone.utc).isoformat()

        logger.info(
            f"Job {plan.job_id} finished in {result.duration_seconds:.2f}s: "
            f"{Counters.GOODROWS.value}={result.good_rows}, "
            f"{Counters.BADROWS.value}={result.bad_rows}, "
            f"failed partitions={len(result.failed_partitions)}"
        )
        return result

    def cancel(self) -> None:
        """Signal every partition worker to stop at its next row."""
        for event in self._cancel_events.values():
            event.set()

    def _run_partition(self, plan: JobPlan, partition: Partition) -> PartitionResult:
        partition_result = PartitionResult(partition)
        cancel_event = self._cancel_events[partition.index]
        max_attempts = max(1, self.config.partition_attempts)

        with PartitionContext(plan.job_id, str(partition)):
            while partition_result.attempts < max_attempts:
                partition_result.attempts += 1
                start = time.monotonic()
                try:
                    verifier = self._verify_partition(plan, partition, cancel_event)
                except CancellationError as e:
                    partition_result.error = f"cancelled: {e}"
                    self._record_attempt(partition_result, "cancelled", start)
                    return partition_result
                except Exception as e:
                    partition_result.error = f"{type(e).__name__}: {e}"
                    self._record_attempt(partition_result, "failure", start)
                    logger.error(
                        f"Attempt {partition_result.attempts}/{max_attempts} of {partition} failed: {e}"
                    )
                    continue

                partition_result.good = verifier.counters.good
                partition_result.bad = verifier.counters.bad
                partition_result.error = None
                self._record_attempt(partition_result, "success", start)
                logger.info(
                    f"Verified {partition}: good={partition_result.good}, bad={partition_result.bad}"
                )
                return partition_result

        return partition_result

    def _verify_partition(
        self,
        plan: JobPlan,
        partition: Partition,
        cancel_event: threading.Event
    ) -> PartitionVerifier:
        verifier = PartitionVerifier(
            plan.spec,
            plan.peer,
            self.session_factory,
            cancel_event=cancel_event,
            metrics=self.metrics,
            table_name=self.config.table_name
        )
        with verifier, closing(iter(self.local_table.scan_partition(partition, plan.spec))) as rows:
            for row in rows:
                verifier.verify_row(row)
        return verifier

    def _record_attempt(self, partition_result: PartitionResult, status: str, start: float) -> None:
        duration = time.monotonic() - start
        partition_result.duration_seconds += duration
        self.metrics.record_partition(self.config.table_name, status, duration)
