"""
Scan Spec Builder

Builds the scan specification shared by the local and remote sides of a
verification run. The two sides must only ever differ in start row, so the
remote spec is always derived from the canonical one with with_start_row().
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import FrozenSet, Iterable, List, Optional, Union

from src.verification.errors import InvalidArguments
from src.verification.model import Cell

logger = logging.getLogger(__name__)

MAX_TIMESTAMP = 2 ** 63 - 1
DEFAULT_FETCH_SIZE = 100


@dataclass(frozen=True)
class TimeRange:
    """Half-open range [start, end) of epoch milliseconds."""

    start: int = 0
    end: int = MAX_TIMESTAMP

    def contains(self, timestamp_millis: int) -> bool:
        return self.start <= timestamp_millis < self.end

    @property
    def is_all_time(self) -> bool:
        return self.start == 0 and self.end == MAX_TIMESTAMP


@dataclass(frozen=True)
class ScanSpec:
    """
    Scan parameters for one verification run.

    Attributes:
        time_range: Cell timestamps admitted by the scan
        max_versions: Versions kept per column, None for the store default
        families: Family allowlist, None for all families
        fetch_size: Rows fetched per round trip
        start_row: Row key the scan starts at (inclusive), None for the
            beginning of the range
    """

    time_range: TimeRange = TimeRange()
    max_versions: Optional[int] = None
    families: Optional[FrozenSet[str]] = None
    fetch_size: int = DEFAULT_FETCH_SIZE
    start_row: Optional[bytes] = None

    def with_start_row(self, start_row: bytes) -> "ScanSpec":
        """Return a copy of this spec that differs only in start row."""
        return replace(self, start_row=start_row)

    def admits(self, family: str, timestamp_millis: int) -> bool:
        """Check a cell's family and timestamp against the spec."""
        if self.families is not None and family not in self.families:
            return False
        return self.time_range.contains(timestamp_millis)

    def limit_versions(self, cells: Iterable[Cell]) -> List[Cell]:
        """
        Keep at most max_versions cells per (family, qualifier).

        Cells are expected newest first within a column, which is how both
        stores return them.
        """
        cells = list(cells)
        if self.max_versions is None:
            return cells

        seen = defaultdict(int)
        kept = []
        for cell in cells:
            column = (cell.family, cell.qualifier)
            if seen[column] < self.max_versions:
                kept.append(cell)
            seen[column] += 1
        return kept

    def select_cells(self, cells: Iterable[Cell]) -> List[Cell]:
        """Apply family, time range and version limits to cells stamped in milliseconds."""
        return self.limit_versions(
            cell for cell in cells if self.admits(cell.family, cell.timestamp)
        )


def parse_families(families: Union[str, Iterable[str], None]) -> Optional[FrozenSet[str]]:
    """
    Normalize a family allowlist.

    Args:
        families: Comma-separated string, iterable of names, or None

    Returns:
        Frozen set of family names, or None when no family was given
    """
    if families is None:
        return None

    if isinstance(families, str):
        families = families.split(",")

    names = frozenset(name.strip() for name in families if name and name.strip())
    return names or None


def build_scan_spec(
    time_range: Optional[TimeRange] = None,
    max_versions: Optional[int] = None,
    families: Union[str, Iterable[str], None] = None,
    fetch_size: int = DEFAULT_FETCH_SIZE
) -> ScanSpec:
    """
    Build the canonical scan spec for a job.

    Args:
        time_range: Time window, defaults to all time
        max_versions: Non-negative version count, or None
        families: Family allowlist (comma-separated string or iterable)
        fetch_size: Rows fetched per round trip

    Returns:
        ScanSpec with no start row

    Raises:
        InvalidArguments: If the time range is inverted or negative, or the
            version count or fetch size is out of range
    """
    time_range = time_range or TimeRange()

    if time_range.start < 0:
        raise InvalidArguments(f"Start time must be non-negative, got {time_range.start}")

    if time_range.start > time_range.end:
        raise InvalidArguments(
            f"Start time {time_range.start} is after end time {time_range.end}"
        )

    if max_versions is not None and max_versions < 0:
        raise InvalidArguments(f"Versions must be non-negative, got {max_versions}")

    if fetch_size < 1:
        raise InvalidArguments(f"Fetch size must be positive, got {fetch_size}")

    spec = ScanSpec(
        time_range=time_range,
        max_versions=max_versions,
        families=parse_families(families),
        fetch_size=fetch_size
    )

    logger.debug(f"Built scan spec: {spec}")
    return spec
