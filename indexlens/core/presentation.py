"""Read-only helpers for rendering cached view data."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

from indexlens.core.models import PAGE_SIZE, Row

HIDDEN_COLUMNS = frozenset({"id", "_score"})


def total_pages(total_hits: int, page_size: int = PAGE_SIZE) -> int:
    """Number of pages needed to show ``total_hits`` rows."""
    if total_hits <= 0:
        return 0
    return math.ceil(total_hits / page_size)


def columns_for(rows: Sequence[Row], limit: int = 10) -> list[str]:
    """Table columns derived from the first row's fields."""
    if not rows:
        return []
    return [name for name in rows[0].fields if name not in HIDDEN_COLUMNS][:limit]


def page_window(current: int, total: int, width: int = 5) -> list[int]:
    """Contiguous page numbers centred on ``current`` for a paginator.

    Examples:
        >>> page_window(1, 3)
        [1, 2, 3]
        >>> page_window(10, 20)
        [8, 9, 10, 11, 12]
        >>> page_window(20, 20)
        [16, 17, 18, 19, 20]
    """
    if total <= 0:
        return []
    start = max(1, current - width // 2)
    end = min(total, start + width - 1)
    if end - start + 1 < width:
        start = max(1, end - width + 1)
    return list(range(start, end + 1))


def format_field_value(value: Any, max_length: int = 50) -> str:
    """Compact cell text for a document field value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict):
        return "{...}"
    if isinstance(value, list):
        return "[...]"
    text = str(value)
    if len(text) > max_length:
        return text[: max_length - 3] + "..."
    return text
