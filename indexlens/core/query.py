"""Query construction for paginated and sorted listing views.

All functions here are pure: they never mutate their inputs and never
contact the backend.
"""

from __future__ import annotations

import json
from typing import Any

from indexlens.core.errors import InvalidQuery, ValidationError
from indexlens.core.models import PageState

MATCH_ALL_BODY: dict[str, Any] = {"query": {"match_all": {}}}

DEFAULT_SEARCH_TEXT = json.dumps(MATCH_ALL_BODY, indent=2)
"""Query text a fresh ``search`` view starts with."""

_PAGINATION_KEYS = ("from", "size", "sort")


def parse_query_text(text: str) -> dict[str, Any]:
    """Parse a user-supplied search body.

    Args:
        text: Raw JSON typed by the user

    Returns:
        Parsed query body

    Raises:
        InvalidQuery: If the text is not JSON or not a JSON object
    """
    try:
        body = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise InvalidQuery(f"Invalid JSON. Please check your query format. ({exc})") from exc

    if not isinstance(body, dict):
        raise InvalidQuery("Invalid query. The search body must be a JSON object.")
    return body


def format_query_text(body: dict[str, Any]) -> str:
    """Render a query body the way it is stored as search text."""
    return json.dumps(body, indent=2)


def build_query(page_state: PageState, body: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build the backend query for one page of a listing view.

    ``from``/``size`` always come from ``page_state``. A sort field on the page
    state replaces any sort in ``body``; without one, a sort written in the
    body is kept and a bare listing gets ``[]``.

    Args:
        page_state: Page, page size and sort of the view
        body: Query body; defaults to match-all

    Returns:
        New query object

    Raises:
        ValidationError: If page < 1 or page size is not positive
    """
    if page_state.page < 1:
        raise ValidationError(f"Page must be >= 1 (got {page_state.page})")
    if page_state.page_size <= 0:
        raise ValidationError(f"Page size must be positive (got {page_state.page_size})")

    source = body if body is not None else MATCH_ALL_BODY

    if page_state.sort_field:
        sort: Any = [{page_state.sort_field: {"order": page_state.sort_order.value}}]
    else:
        sort = source.get("sort", [])

    query: dict[str, Any] = {
        "from": (page_state.page - 1) * page_state.page_size,
        "size": page_state.page_size,
        "sort": sort,
    }
    query.update({key: value for key, value in source.items() if key not in _PAGINATION_KEYS})
    return query


def build_search_query(page_state: PageState, query_text: str) -> dict[str, Any]:
    """Validate ``query_text`` then merge pagination fields into it."""
    return build_query(page_state, parse_query_text(query_text))
