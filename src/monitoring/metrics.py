"""
Prometheus Metrics for Replication Verification

Per-job metrics for rows verified, partitions processed and remote sessions.
Each job owns its CollectorRegistry so that several jobs (or tests) in one
process never collide on metric names. Metrics can be pushed to a
Pushgateway once the job completes, since verification runs as a batch job.
"""

import logging
from typing import Dict, Optional
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, push_to_gateway

logger = logging.getLogger(__name__)


class VerificationMetrics:
    """Prometheus metrics for verification jobs."""

    def __init__(self, namespace: str = "verifyrep", registry: Optional[CollectorRegistry] = None):
        """
        Initialize verification metrics.

        Args:
            namespace: Metric name prefix
            registry: Prometheus registry (a fresh one if not provided)
        """
        self.namespace = namespace
        self.registry = registry or CollectorRegistry()

        # Rows compared, by classification
        self.rows_verified_total = Counter(
            f'{namespace}_rows_verified_total',
            'Rows compared between local and remote clusters',
            ['table', 'result'],
            registry=self.registry
        )

        # Partition attempts, by final status of the attempt
        self.partitions_total = Counter(
            f'{namespace}_partitions_total',
            'Partition verification attempts',
            ['table', 'status'],
            registry=self.registry
        )

        self.partition_duration_seconds = Histogram(
            f'{namespace}_partition_duration_seconds',
            'Duration of partition verification in seconds',
            ['table'],
            buckets=[0.1, 0.5, 1, 5, 10, 30, 60, 300, 900, 3600],
            registry=self.registry
        )

        self.remote_sessions_open = Gauge(
            f'{namespace}_remote_sessions_open',
            'Remote scan sessions currently open',
            ['table'],
            registry=self.registry
        )

        logger.debug(f"VerificationMetrics initialized with namespace: {namespace}")

    def record_row(self, table: str, outcome) -> None:
        """Count one compared row."""
        self.rows_verified_total.labels(
            table=table,
            result=outcome.status.value
        ).inc()

    def record_partition(self, table: str, status: str, duration_seconds: float) -> None:
        """
        Record a finished partition attempt.

        Args:
            table: Table name
            status: Attempt status (success/failure/cancelled)
            duration_seconds: Wall time of the attempt
        """
        self.partitions_total.labels(table=table, status=status).inc()
        self.partition_duration_seconds.labels(table=table).observe(duration_seconds)

    def session_opened(self, table: str) -> None:
        self.remote_sessions_open.labels(table=table).inc()

    def session_closed(self, table: str) -> None:
        self.remote_sessions_open.labels(table=table).dec()

    def push(self, gateway_url: str, job_name: str, grouping_key: Optional[Dict] = None) -> None:
        """
        Push metrics to a Prometheus Pushgateway.

        Raises:
            Exception: If push fails
        """
        try:
            push_to_gateway(
                gateway_url,
                job=job_name,
                registry=self.registry,
                grouping_key=grouping_key or {}
            )
            logger.info(f"Pushed metrics to gateway: {gateway_url}")
        except Exception as e:
            logger.error(f"Failed to push metrics to gateway: {e}")
            raise
