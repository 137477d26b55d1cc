"""
Monitoring Module for Replication Verification

Prometheus metrics for verification jobs: rows verified by result,
partition attempts, partition duration and open remote sessions.

Usage:
    from src.monitoring import VerificationMetrics

    metrics = VerificationMetrics()
    metrics.record_row("users", outcome)
    metrics.push("localhost:9091", job_name="verifyrep_users")
"""

from src.monitoring.metrics import VerificationMetrics

__all__ = [
    "VerificationMetrics",
]

__version__ = "1.0.0"
