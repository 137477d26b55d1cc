"""
Storage boundaries used by the verification core.

LocalTable partitions the local table and scans one partition at a time.
RemoteSessionFactory opens a partition-scoped cursor on the peer cluster.
Concrete Scylla implementations live in src.verification.scylla_store.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Iterator, Optional

from src.verification.model import Partition, PeerDescriptor, Row
from src.verification.scan_spec import ScanSpec


class LocalTable(ABC):
    """Local side of a verification run."""

    name: str

    @abstractmethod
    def partitions(self, spec: ScanSpec) -> Iterable[Partition]:
        """Yield disjoint partitions that together cover the table."""

    @abstractmethod
    def scan_partition(self, partition: Partition, spec: ScanSpec) -> Iterator[Row]:
        """Yield the partition's rows in ascending key order."""


class RemoteSession(ABC):
    """
    Stateful cursor over the remote table.

    Owned by exactly one PartitionVerifier and never used concurrently.
    """

    @abstractmethod
    def next_row(self) -> Optional[Row]:
        """
        Return the next remote row, or None once the cursor is exhausted.

        Raises:
            RemoteSessionError: If the remote read fails or the lease expired
        """

    @abstractmethod
    def close(self) -> None:
        """Release the cursor. Must tolerate being called more than once."""


class RemoteSessionFactory(ABC):
    """Opens remote sessions positioned at a partition's first row."""

    @abstractmethod
    def open_session(self, peer: PeerDescriptor, spec: ScanSpec, start_key: bytes) -> RemoteSession:
        """
        Open a cursor on the peer's copy of the table.

        Implementations scan with spec.with_start_row(start_key) and nothing
        else changed, so both sides read under the same spec.

        Args:
            peer: Resolved peer
            spec: Canonical scan spec of the job
            start_key: Key of the partition's first local row

        Raises:
            RemoteSessionError: If the session cannot be opened
        """
