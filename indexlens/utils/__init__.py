"""Utility modules for CLI output and result stamping."""

from indexlens.utils.cli_output import json_response
from indexlens.utils.schema import SchemaStamp, build_schema_stamp, strip_schema_metadata

__all__ = [
    "SchemaStamp",
    "build_schema_stamp",
    "json_response",
    "strip_schema_metadata",
]
