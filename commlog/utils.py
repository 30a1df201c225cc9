"""
Utility functions and classes for commlog.
"""

from typing import Optional


class Colors:
    """ANSI color codes for terminal output."""

    HEADER = "\033[95m"
    OKBLUE = "\033[94m"
    OKCYAN = "\033[96m"
    OKGREEN = "\033[92m"
    WARNING = "\033[93m"
    FAIL = "\033[91m"
    ENDC = "\033[0m"
    BOLD = "\033[1m"
    UNDERLINE = "\033[4m"


def format_count(count: int) -> str:
    """
    Format a counter with thousands separators.

    Args:
        count: Number to format.

    Returns:
        Formatted string (e.g., "1,234").
    """
    return f"{count:,}"


def format_percentage(ratio: float) -> str:
    """
    Format a 0..1 ratio as a percentage with one decimal.

    Args:
        ratio: Ratio between 0 and 1.

    Returns:
        Formatted string (e.g., "97.5%").
    """
    return f"{ratio * 100:.1f}%"


def truncate(text: Optional[str], width: int = 50) -> str:
    """
    Shorten text for single-line log output.

    Args:
        text: Text to shorten. None is rendered as an empty string.
        width: Maximum number of characters kept before the ellipsis.

    Returns:
        The text, cut to `width` characters with "..." appended if it was longer.
    """
    if not text:
        return ""
    flat = " ".join(text.split())
    if len(flat) <= width:
        return flat
    return flat[:width] + "..."
