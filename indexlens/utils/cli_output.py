"""CLI JSON output wrapper.

Every ``--json`` payload carries schema metadata (schema_id, schema_version,
producer, produced_at) so scripts can detect format changes.
"""

from __future__ import annotations

import json
from typing import Any

from indexlens.utils.schema import build_schema_stamp


def json_response(
    schema_id: str,
    schema_version: int,
    **data: Any,
) -> str:
    """Render ``data`` as indented JSON behind a schema stamp.

    Values JSON cannot encode natively, such as datetimes, fall back to ``str``.
    The ``docs list --json`` output, for instance, is built as
    ``json_response("document_page", 1, index=name, page=1, total_pages=3, ...)``
    and starts with the four stamp keys followed by ``index`` and ``page``.
    """
    stamp = build_schema_stamp(schema_id=schema_id, schema_version=schema_version)
    return json.dumps(stamp.apply(data), indent=2, default=str)
