"""
Row Comparer for Replication Verification

Classifies a local row against the remote row drawn at the same position.
Comparison is strict: same key, same number of cells, and pairwise identical
cells in the same order. No tolerance for timestamp skew or cell reordering.
"""

import logging
from typing import Any, Dict, Optional

from src.verification.model import OutcomeStatus, Row, VerificationOutcome, format_bytes

logger = logging.getLogger(__name__)

REMOTE_EXHAUSTED = "remote scan exhausted"


class RowComparer:
    """
    Compares rows from the local and remote clusters.

    Produces a VerificationOutcome whose diagnostic names the first
    difference found and carries both row representations.
    """

    def compare(self, local: Row, remote: Optional[Row]) -> VerificationOutcome:
        """
        Classify a local row against its positional remote counterpart.

        Args:
            local: Row yielded by the local scan
            remote: Row drawn from the remote cursor, None when exhausted

        Returns:
            MATCH outcome, or MISMATCH outcome with a diagnostic
        """
        detail = self.compare_rows_detailed(local, remote)

        if detail["is_equal"]:
            return VerificationOutcome(OutcomeStatus.MATCH, local.key)

        diagnostic = (
            f"Row {format_bytes(local.key)} differs ({detail['reason']}): "
            f"local {local} compared to remote {remote if remote is not None else '<none>'}"
        )
        return VerificationOutcome(OutcomeStatus.MISMATCH, local.key, diagnostic)

    def compare_rows(self, local: Row, remote: Optional[Row]) -> bool:
        """Return True when the rows are structurally identical."""
        return self.compare_rows_detailed(local, remote)["is_equal"]

    def compare_rows_detailed(self, local: Row, remote: Optional[Row]) -> Dict[str, Any]:
        """
        Compare rows and describe the first difference.

        Returns:
            Dictionary with:
            - is_equal: bool
            - reason: str or None
            - cell_index: index of the first differing cell, or None
        """
        if remote is None:
            return {"is_equal": False, "reason": REMOTE_EXHAUSTED, "cell_index": None}

        if local.key != remote.key:
            return {
                "is_equal": False,
                "reason": f"row key mismatch, remote key {format_bytes(remote.key)}",
                "cell_index": None
            }

        if len(local.cells) != len(remote.cells):
            return {
                "is_equal": False,
                "reason": f"cell count {len(local.cells)} != {len(remote.cells)}",
                "cell_index": None
            }

        for index, (local_cell, remote_cell) in enumerate(zip(local.cells, remote.cells)):
            if local_cell != remote_cell:
                return {
                    "is_equal": False,
                    "reason": f"cell {index} differs: {local_cell} vs {remote_cell}",
                    "cell_index": index
                }

        return {"is_equal": True, "reason": None, "cell_index": None}


_default_comparer = RowComparer()


def compare(local: Row, remote: Optional[Row]) -> VerificationOutcome:
    """Module-level shortcut for RowComparer().compare()."""
    return _default_comparer.compare(local, remote)
