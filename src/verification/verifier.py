"""
Partition Verifier

Lockstep dual-cursor comparison for one partition. For every row the local
scan yields, exactly one row is drawn from the remote cursor and the two are
compared. The remote cursor is opened lazily on the first local row,
positioned at that row's key, so both cursors start aligned at the
partition boundary.

Pairing is purely positional after that initial alignment. If one side has
an extra or missing row, every later comparison in the partition reports a
mismatch; there is no re-alignment by key.
"""

import logging
import threading
from typing import Optional

from src.verification.comparer import RowComparer
from src.verification.errors import CancellationError, RemoteSessionError
from src.verification.interfaces import RemoteSession, RemoteSessionFactory
from src.verification.model import (
    OutcomeStatus,
    PartitionCounters,
    PeerDescriptor,
    Row,
    VerificationOutcome,
    format_bytes,
)
from src.verification.scan_spec import ScanSpec

logger = logging.getLogger(__name__)


class PartitionVerifier:
    """
    Compares one partition of the local table against the remote replica.

    Use as a context manager so the remote session is released on every
    exit path:

        with PartitionVerifier(spec, peer, factory) as verifier:
            for row in local_rows:
                verifier.verify_row(row)
    """

    def __init__(
        self,
        spec: ScanSpec,
        peer: PeerDescriptor,
        session_factory: RemoteSessionFactory,
        comparer: Optional[RowComparer] = None,
        cancel_event: Optional[threading.Event] = None,
        metrics=None,
        table_name: str = ""
    ):
        """
        Initialize the verifier.

        Args:
            spec: Canonical scan spec of the job
            peer: Resolved peer
            session_factory: Opens the remote cursor on first use
            comparer: Row classifier
            cancel_event: Set by the job runner to abort the partition
            metrics: Optional VerificationMetrics
            table_name: Table label for metrics
        """
        self.spec = spec
        self.peer = peer
        self.session_factory = session_factory
        self.comparer = comparer or RowComparer()
        self.cancel_event = cancel_event
        self.metrics = metrics
        self.table_name = table_name

        self.counters = PartitionCounters()
        self.partition_start_key: Optional[bytes] = None
        self._session: Optional[RemoteSession] = None
        self._closed = False

    @property
    def session_open(self) -> bool:
        return self._session is not None

    def verify_row(self, local_row: Row) -> VerificationOutcome:
        """
        Compare one local row with the next remote row.

        Args:
            local_row: Next row of the local partition scan

        Returns:
            The row's VerificationOutcome

        Raises:
            RemoteSessionError: If the remote cursor cannot be opened or read
            CancellationError: If the partition has been cancelled
            RuntimeError: If called after close()
        """
        if self._closed:
            raise RuntimeError("PartitionVerifier is closed")

        if self.cancel_event is not None and self.cancel_event.is_set():
            raise CancellationError(
                f"Verification cancelled at row {format_bytes(local_row.key)}"
            )

        if self._session is None:
            self._open_session(local_row.key)

        remote_row = self._next_remote_row()
        outcome = self._classify(local_row, remote_row)

        self.counters.record(outcome)
        if self.metrics is not None:
            self.metrics.record_row(self.table_name, outcome)

        if not outcome.is_match:
            logger.warning(f"Bad row: {outcome.diagnostic}")

        return outcome

    def close(self) -> None:
        """Close the remote session. Safe to call repeatedly or before any row."""
        if self._closed:
            return
        self._closed = True

        session, self._session = self._session, None
        if session is None:
            return

        try:
            session.close()
        finally:
            if self.metrics is not None:
                self.metrics.session_closed(self.table_name)
            logger.debug(
                f"Closed remote session started at {format_bytes(self.partition_start_key)} "
                f"(good={self.counters.good}, bad={self.counters.bad})"
            )

    def __enter__(self) -> "PartitionVerifier":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _open_session(self, start_key: bytes) -> None:
        self.partition_start_key = start_key
        logger.debug(
            f"Opening remote session on peer '{self.peer.peer_id}' at row {format_bytes(start_key)}"
        )

        try:
            self._session = self.session_factory.open_session(self.peer, self.spec, start_key)
        except RemoteSessionError:
            raise
        except Exception as e:
            raise RemoteSessionError(
                f"Failed to open remote session on peer '{self.peer.peer_id}': {e}"
            ) from e

        if self.metrics is not None:
            self.metrics.session_opened(self.table_name)

    def _next_remote_row(self) -> Optional[Row]:
        try:
            return self._session.next_row()
        except RemoteSessionError:
            raise
        except Exception as e:
            raise RemoteSessionError(f"Failed to read from remote session: {e}") from e

    def _classify(self, local_row: Row, remote_row: Optional[Row]) -> VerificationOutcome:
        try:
            return self.comparer.compare(local_row, remote_row)
        except Exception as e:
            logger.warning(
                f"Comparison of row {format_bytes(local_row.key)} failed, counting it as bad",
                exc_info=True
            )
            return VerificationOutcome(
                OutcomeStatus.MISMATCH,
                local_row.key,
                f"Row {format_bytes(local_row.key)} could not be compared: {e}"
            )
