"""
Job and Partition Log Context for Replication Verification

Carries the job id and the partition currently being verified in context
variables so every log line emitted by a worker can be tied back to its
job and partition. Worker threads do not inherit context from the thread
that submitted them, so each worker enters its own PartitionContext.
"""

import uuid
import contextvars
from typing import Optional
import logging

logger = logging.getLogger(__name__)

_job_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'job_id',
    default=None
)

_partition: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'partition',
    default=None
)


def generate_job_id() -> str:
    """
    Generate a new job id.

    Returns:
        String representation of a UUID4
    """
    return str(uuid.uuid4())


def get_job_id() -> Optional[str]:
    """Return the job id of the current context, or None."""
    return _job_id.get()


def get_partition() -> Optional[str]:
    """Return the partition label of the current context, or None."""
    return _partition.get()


def set_job_id(job_id: str) -> None:
    """
    Set the job id in the current context.

    Raises:
        ValueError: If job_id is empty or not a string
    """
    if not job_id or not isinstance(job_id, str):
        raise ValueError("Job id must be a non-empty string")

    _job_id.set(job_id)


def clear_context() -> None:
    """Clear job id and partition from the current context."""
    _job_id.set(None)
    _partition.set(None)


class PartitionContext:
    """
    Context manager binding a job id and partition label to log records.

    Restores the previous values on exit, so nesting is safe.
    """

    def __init__(self, job_id: Optional[str], partition: Optional[str] = None):
        self.job_id = job_id
        self.partition = partition
        self._tokens = []

    def __enter__(self) -> "PartitionContext":
        self._tokens = [
            _job_id.set(self.job_id),
            _partition.set(self.partition),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        job_token, partition_token = self._tokens
        _partition.reset(partition_token)
        _job_id.reset(job_token)


def context_filter(record):
    """
    Logging filter adding job_id and partition attributes to log records.

    Returns:
        True (always allow record)
    """
    record.job_id = get_job_id() or "N/A"
    record.partition = get_partition() or "-"
    return True


def setup_context_logging(handler: logging.Handler) -> None:
    """Attach the context filter to a handler."""
    handler.addFilter(context_filter)
