"""
Data model shared by the verification components.

Rows and cells are immutable values produced by scans. PeerDescriptor is
resolved once per job and shared read-only by every partition worker.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

VALUE_PREVIEW_BYTES = 64


def format_bytes(value: bytes) -> str:
    """
    Render bytes with printable ASCII kept as-is and everything else as \\xNN.

    Args:
        value: Raw bytes (row key, qualifier or cell value)

    Returns:
        Human-readable string safe for log lines
    """
    if value is None:
        return "None"

    parts = []
    for byte in value:
        if 0x20 <= byte < 0x7f and byte != 0x5c:
            parts.append(chr(byte))
        else:
            parts.append(f"\\x{byte:02X}")
    return "".join(parts)


class Counters(Enum):
    """Job-scoped verification counters."""
    GOODROWS = "GOODROWS"
    BADROWS = "BADROWS"


class OutcomeStatus(Enum):
    """Classification of one compared row."""
    MATCH = "match"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class Cell:
    """
    A single versioned value.

    Equality is exact over row key, family, qualifier, timestamp and value.
    """

    row: bytes
    family: str
    qualifier: bytes
    timestamp: int
    value: bytes

    def __str__(self) -> str:
        value = format_bytes(self.value[:VALUE_PREVIEW_BYTES])
        if len(self.value) > VALUE_PREVIEW_BYTES:
            value += "..."
        return (
            f"{format_bytes(self.row)}/{self.family}:{format_bytes(self.qualifier)}"
            f"/{self.timestamp}/vlen={len(self.value)}/{value}"
        )


@dataclass(frozen=True)
class Row:
    """A row key plus its cells in scan order."""

    key: bytes
    cells: Tuple[Cell, ...] = ()

    def __str__(self) -> str:
        cells = ", ".join(str(cell) for cell in self.cells)
        return f"keyvalues={{{cells}}}"


@dataclass(frozen=True)
class Partition:
    """
    A contiguous key range assigned to one worker.

    Bounds are opaque to the verifier; each LocalTable interprets its own
    (token ranges for Scylla, key bounds for in-memory tables).
    """

    index: int
    start: Any
    end: Any

    def __str__(self) -> str:
        return f"partition-{self.index}({self.start}, {self.end}]"


@dataclass(frozen=True)
class PeerDescriptor:
    """Resolved connection information for a replication peer."""

    peer_id: str
    cluster_key: str
    contact_points: Tuple[str, ...]
    port: int
    keyspace: str
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class VerificationOutcome:
    """Result of comparing one local row with its remote counterpart."""

    status: OutcomeStatus
    row_key: bytes
    diagnostic: Optional[str] = None

    @property
    def is_match(self) -> bool:
        return self.status is OutcomeStatus.MATCH


@dataclass
class PartitionCounters:
    """GOODROWS/BADROWS for a single partition attempt."""

    good: int = 0
    bad: int = 0

    def record(self, outcome: VerificationOutcome) -> None:
        if outcome.is_match:
            self.good += 1
        else:
            self.bad += 1

    def as_dict(self) -> dict:
        return {Counters.GOODROWS.value: self.good, Counters.BADROWS.value: self.bad}
