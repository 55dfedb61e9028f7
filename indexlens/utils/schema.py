"""Schema metadata stamping for machine-readable output."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from indexlens import __version__

SCHEMA_METADATA_FIELDS = {
    "schema_id",
    "schema_version",
    "producer",
    "produced_at",
}


def strip_schema_metadata(record: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``record`` without schema metadata fields."""

    return {key: value for key, value in record.items() if key not in SCHEMA_METADATA_FIELDS}


@dataclass(frozen=True, slots=True)
class SchemaStamp:
    """Schema metadata prefixed to every JSON payload the CLI prints."""

    schema_id: str
    schema_version: int
    producer: str
    produced_at: str

    def apply(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Return ``payload`` preceded by the schema metadata keys."""

        return {
            "schema_id": self.schema_id,
            "schema_version": self.schema_version,
            "producer": self.producer,
            "produced_at": self.produced_at,
            **payload,
        }


def build_schema_stamp(
    *,
    schema_id: str,
    schema_version: int,
    producer: str | None = None,
    produced_at: str | None = None,
) -> SchemaStamp:
    """Construct a :class:`SchemaStamp` for reuse across writers."""

    return SchemaStamp(
        schema_id=schema_id,
        schema_version=schema_version,
        producer=producer or f"indexlens-{__version__}",
        produced_at=produced_at or datetime.now(UTC).isoformat(),
    )
