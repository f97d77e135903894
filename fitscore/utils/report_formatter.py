"""
Utility functions for formatting text-based reports and tables.

Used by the command-line scripts to render composite scores, context health
and per-analyzer performance summaries.
"""

from typing import Any, List, Optional

MISSING_VALUE = "n/a"


class Column:
    """Column definition for table formatting."""

    def __init__(self, name: str, width: int, align: str = "<"):
        """
        Args:
            name: Column header name
            width: Column width in characters
            align: Alignment ('<' left, '>' right, '^' center)
        """
        self.name = name
        self.width = width
        self.align = align

    def format_header(self) -> str:
        return f"{self.name:{self.align}{self.width}}"

    def format_value(self, value: Any) -> str:
        if value is None:
            value = MISSING_VALUE
        return f"{str(value):{self.align}{self.width}}"


class TableFormatter:
    """Builder for formatted text tables with aligned columns."""

    def __init__(self, columns: List[Column], total_width: int = 80):
        """
        Args:
            columns: List of Column definitions
            total_width: Total report width for separators
        """
        self.columns = columns
        self.total_width = total_width
        self.lines: List[str] = []

    def add_section_header(self, title: str) -> "TableFormatter":
        """Add section header with top/bottom separator lines."""
        self.lines.append("=" * self.total_width)
        self.lines.append(title)
        self.lines.append("=" * self.total_width)
        return self

    def add_table_header(self) -> "TableFormatter":
        """Add table header row followed by a separator."""
        self.lines.append(" ".join(col.format_header() for col in self.columns))
        return self.add_separator()

    def add_separator(self, char: str = "-") -> "TableFormatter":
        self.lines.append(char * self.total_width)
        return self

    def add_row(self, values: List[Any]) -> "TableFormatter":
        """
        Add data row with column values.

        Raises:
            ValueError: If number of values doesn't match columns
        """
        if len(values) != len(self.columns):
            raise ValueError(f"Expected {len(self.columns)} values, got {len(values)}")

        self.lines.append(" ".join(col.format_value(val) for col, val in zip(self.columns, values)))
        return self

    def add_summary(self, text: str) -> "TableFormatter":
        """Add summary line (typically after table data)."""
        self.lines.append(f"\n{text}")
        return self

    def render(self) -> str:
        return "\n".join(self.lines)


def format_score(score: Optional[float], decimal_places: int = 2) -> str:
    """
    Format a 0-100 score, keeping "no score" distinct from zero.

    Examples:
        >>> format_score(81.5)
        '81.50'
        >>> format_score(0.0)
        '0.00'
        >>> format_score(None)
        'n/a'
    """
    if score is None:
        return MISSING_VALUE
    return f"{score:.{decimal_places}f}"


def format_duration_ms(duration_ms: Optional[float]) -> str:
    """Format milliseconds as "850ms" or "2.41s"."""
    if duration_ms is None:
        return MISSING_VALUE
    if duration_ms < 1000:
        return f"{duration_ms:.0f}ms"
    return f"{duration_ms / 1000:.2f}s"


def format_percentage(count: int, total: int, decimal_places: int = 1) -> str:
    """
    Format count as percentage of total.

    Returns:
        Formatted percentage string (e.g., "75.0%")
    """
    if total == 0:
        return "0.0%"
    percent = (count / total) * 100
    return f"{percent:.{decimal_places}f}%"
