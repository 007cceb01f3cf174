"""
Local file formats and content hashing.

Secret values are written to disk as JSON, YAML, or raw text. The lock
state records a hash of the canonical JSON form of the parsed value,
so the same data hashes identically whatever its key order or format.

Parsed values must be representable as JSON since they are pushed to
Vault as is. YAML is read with core-schema scalars: timestamps stay
strings and only ``true``/``false`` are booleans.
"""

from __future__ import annotations

import hashlib
import json
import math
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

import yaml

from .errors import ParseError

BOOL_TAG = "tag:yaml.org,2002:bool"
TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class SecretLoader(yaml.SafeLoader):
    """SafeLoader without YAML 1.1 timestamps and yes/no/on/off booleans."""


SecretLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp)
        for tag, regexp in resolvers
        if tag not in (BOOL_TAG, TIMESTAMP_TAG)
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
SecretLoader.add_implicit_resolver(
    BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


class DataFormat(str, Enum):
    """Serialization formats for local secret files."""

    TEXT = "text"
    JSON = "json"
    YAML = "yaml"


def parse_format(name: Optional[str]) -> Optional[DataFormat]:
    """Map a stored format name to a DataFormat, or None if unknown."""
    try:
        return DataFormat(name)
    except ValueError:
        return None


def _reject_constant(name: str) -> Any:
    raise ParseError(f"Invalid JSON: {name} is not a valid number")


def parse_data(raw: str, fmt: DataFormat) -> Any:
    """Parse file contents in the given format.

    Raises:
        ParseError: The contents are not valid for ``fmt``, or hold a
            value JSON cannot carry (NaN, infinity, binary data).
    """
    if fmt is DataFormat.TEXT:
        return raw
    if fmt is DataFormat.JSON:
        try:
            return json.loads(raw, parse_constant=_reject_constant)
        except json.JSONDecodeError as exc:
            raise ParseError(f"Invalid JSON: {exc}") from exc
    if fmt is DataFormat.YAML:
        try:
            value = yaml.load(raw, Loader=SecretLoader)
        except yaml.YAMLError as exc:
            raise ParseError(f"Invalid YAML: {exc}") from exc
        return to_json_value(value)
    raise ParseError(f"Unknown format: {fmt}")


def format_data(value: Any, fmt: DataFormat) -> str:
    """Serialize a value for writing to a local file."""
    if fmt is DataFormat.TEXT:
        if not isinstance(value, str):
            raise ParseError("Data cannot be formatted as text, it is not a string")
        return value
    if fmt is DataFormat.JSON:
        return json.dumps(value, indent=4, ensure_ascii=False) + "\n"
    if fmt is DataFormat.YAML:
        return yaml.safe_dump(
            value, default_flow_style=False, sort_keys=False, allow_unicode=True
        )
    raise ParseError(f"Unknown format: {fmt}")


def _json_key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if key is None:
        return "null"
    if isinstance(key, (int, float)):
        return str(key)
    raise ParseError(f"Unsupported mapping key of type {type(key).__name__}")


def to_json_value(value: Any) -> Any:
    """Convert a parsed value into plain JSON data.

    Map keys become strings the way ``json.dumps`` renders them and
    explicitly tagged dates become ISO strings.

    Raises:
        ParseError: NaN, infinity, or a type JSON has no form for.
    """
    if isinstance(value, dict):
        return {_json_key(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    if isinstance(value, float) and not math.isfinite(value):
        raise ParseError(f"Unsupported number {value!r}, JSON has no NaN or infinity")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    raise ParseError(f"Unsupported value of type {type(value).__name__}")


def canonical_json(value: Any) -> str:
    """Compact JSON with sorted keys."""
    return json.dumps(
        to_json_value(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def hash_value(value: Any) -> str:
    """SHA-256 hex digest of the canonical JSON form of ``value``."""
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()
