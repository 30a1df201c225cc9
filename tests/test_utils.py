"""Tests for utils module."""

from commlog.utils import Colors, format_count, format_percentage, truncate


class TestColors:
    """Tests for Colors class."""

    def test_colors_are_ansi_codes(self):
        """All color constants should be ANSI escape sequences."""
        for name in ("HEADER", "OKGREEN", "WARNING", "FAIL", "ENDC", "BOLD"):
            assert getattr(Colors, name).startswith("\033[")


class TestFormatCount:
    """Tests for format_count."""

    def test_small_number(self):
        assert format_count(42) == "42"

    def test_thousands_separator(self):
        assert format_count(1234567) == "1,234,567"

    def test_zero(self):
        assert format_count(0) == "0"


class TestFormatPercentage:
    """Tests for format_percentage."""

    def test_ratio(self):
        assert format_percentage(0.975) == "97.5%"

    def test_bounds(self):
        assert format_percentage(0.0) == "0.0%"
        assert format_percentage(1.0) == "100.0%"


class TestTruncate:
    """Tests for truncate."""

    def test_short_text_unchanged(self):
        assert truncate("Hello there") == "Hello there"

    def test_long_text_cut(self):
        assert truncate("a" * 60, width=10) == "a" * 10 + "..."

    def test_whitespace_collapsed(self):
        assert truncate("On my way,\nsee   you") == "On my way, see you"

    def test_none(self):
        assert truncate(None) == ""
