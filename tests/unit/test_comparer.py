"""
Unit tests for comparer module.

Tests strict row/cell classification between local and remote rows.
"""

import pytest

from src.verification.comparer import REMOTE_EXHAUSTED, RowComparer, compare
from src.verification.model import Cell, OutcomeStatus, Row, format_bytes
from tests.fakes import make_row


class TestRowComparer:
    """Test row comparison functionality."""

    @pytest.fixture
    def comparer(self):
        """Create a RowComparer instance."""
        return RowComparer()

    def test_identical_rows_match(self, comparer):
        """Test that identical rows are classified as MATCH with no diagnostic."""
        local = make_row("r1", ("cf", "a", 1000, "one"), ("cf", "b", 1000, "two"))
        remote = make_row("r1", ("cf", "a", 1000, "one"), ("cf", "b", 1000, "two"))

        outcome = comparer.compare(local, remote)

        assert outcome.status is OutcomeStatus.MATCH
        assert outcome.is_match
        assert outcome.diagnostic is None
        assert outcome.row_key == b"r1"

    def test_different_value_is_mismatch(self, comparer):
        """Test that a differing value at the same coordinates is a mismatch."""
        local = make_row("r1", ("cf", "a", 1000, "one"))
        remote = make_row("r1", ("cf", "a", 1000, "uno"))

        outcome = comparer.compare(local, remote)

        assert outcome.status is OutcomeStatus.MISMATCH
        assert str(local) in outcome.diagnostic
        assert str(remote) in outcome.diagnostic
        assert "cell 0 differs" in outcome.diagnostic

    def test_different_timestamp_is_mismatch(self, comparer):
        """Test that timestamps must match exactly (no skew tolerance)."""
        local = make_row("r1", ("cf", "a", 1000, "one"))
        remote = make_row("r1", ("cf", "a", 1001, "one"))

        assert comparer.compare_rows(local, remote) is False

    def test_extra_remote_cell_is_mismatch(self, comparer):
        """Test that an extra cell on one side is a mismatch."""
        local = make_row("r1", ("cf", "a", 1000, "one"))
        remote = make_row("r1", ("cf", "a", 1000, "one"), ("cf", "b", 1000, "two"))

        detail = comparer.compare_rows_detailed(local, remote)

        assert detail["is_equal"] is False
        assert "cell count 1 != 2" in detail["reason"]

    def test_missing_remote_cell_is_mismatch(self, comparer):
        local = make_row("r1", ("cf", "a", 1000, "one"), ("cf", "b", 1000, "two"))
        remote = make_row("r1", ("cf", "a", 1000, "one"))

        assert comparer.compare_rows(local, remote) is False

    def test_reordered_cells_are_mismatch(self, comparer):
        """Test that cell order within a row matters."""
        local = make_row("r1", ("cf", "a", 1000, "one"), ("cf", "b", 1000, "two"))
        remote = make_row("r1", ("cf", "b", 1000, "two"), ("cf", "a", 1000, "one"))

        detail = comparer.compare_rows_detailed(local, remote)

        assert detail["is_equal"] is False
        assert detail["cell_index"] == 0

    def test_different_row_key_is_mismatch(self, comparer):
        local = make_row("r1", ("cf", "a", 1000, "one"))
        remote = make_row("r2", ("cf", "a", 1000, "one"))

        outcome = comparer.compare(local, remote)

        assert not outcome.is_match
        assert "row key mismatch" in outcome.diagnostic

    def test_different_family_is_mismatch(self, comparer):
        local = make_row("r1", ("cf", "a", 1000, "one"))
        remote = make_row("r1", ("meta", "a", 1000, "one"))

        assert comparer.compare_rows(local, remote) is False

    def test_exhausted_remote_is_mismatch(self, comparer):
        """Test that None (remote exhausted) is always a mismatch."""
        local = make_row("r3", ("cf", "a", 1000, "three"))

        outcome = comparer.compare(local, None)

        assert outcome.status is OutcomeStatus.MISMATCH
        assert REMOTE_EXHAUSTED in outcome.diagnostic
        assert "<none>" in outcome.diagnostic

    def test_module_level_compare(self):
        row = make_row("r1")

        assert compare(row, row).is_match


class TestFormatting:
    """Test diagnostic rendering of binary keys and cells."""

    def test_format_bytes_escapes_non_printable(self):
        assert format_bytes(b"row\x00\xff") == "row\\x00\\xFF"

    def test_format_bytes_escapes_backslash(self):
        assert format_bytes(b"a\\b") == "a\\x5Cb"

    def test_cell_rendering(self):
        cell = Cell(b"r1", "cf", b"q", 1000, b"value")

        assert str(cell) == "r1/cf:q/1000/vlen=5/value"

    def test_long_values_are_truncated(self):
        cell = Cell(b"r1", "cf", b"q", 1000, b"x" * 100)

        assert str(cell).endswith("...")
        assert "vlen=100" in str(cell)

    def test_row_rendering(self):
        row = Row(b"r1", (Cell(b"r1", "cf", b"q", 1, b"v"),))

        assert str(row) == "keyvalues={r1/cf:q/1/vlen=1/v}"
