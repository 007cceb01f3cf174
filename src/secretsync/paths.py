"""
Path engine -- read and write values deep inside a secret document.

A path is a list of segments. String segments index maps, integer
segments index lists (or maps, as their decimal string). Writes never
mutate the input: every node on the way to the target is copied and
the new document is returned.

    read_path({"a": [1, 2]}, ["a", 1])        ->  2
    write_path({}, ["a", 2], "x")             ->  {"a": [None, None, "x"]}
    parse_path("db.hosts.0.name\\.full")     ->  ["db", "hosts", 0, "name.full"]
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Union

from .errors import MissingData, PathTypeError

Segment = Union[str, int]


def _is_index(segment: Any) -> bool:
    return isinstance(segment, int) and not isinstance(segment, bool)


def _map_key(segment: Any) -> str:
    if isinstance(segment, str):
        return segment
    if _is_index(segment):
        return str(segment)
    raise PathTypeError(
        f"Cannot index an object with {type(segment).__name__} segment {segment!r}"
    )


def _list_index(segment: Any) -> int:
    if not _is_index(segment):
        raise PathTypeError(
            f"Cannot index an array with {type(segment).__name__} segment {segment!r}"
        )
    return segment


def read_path(document: Any, path: list[Segment]) -> Any:
    """Return the value found at ``path`` inside ``document``.

    Args:
        document: JSON/YAML-shaped value (dicts, lists, scalars).
        path: Segments to follow from the root.

    Returns:
        The addressed sub-value (the document itself for an empty path).

    Raises:
        MissingData: A key is absent or an index is out of range.
        PathTypeError: A segment cannot index the node it reaches.
    """
    node = document
    for depth, segment in enumerate(path):
        if isinstance(node, Mapping):
            key = _map_key(segment)
            if key not in node:
                raise MissingData(
                    f"No property '{key}' at {format_path(path[:depth]) or '<root>'}"
                )
            node = node[key]
        elif isinstance(node, list):
            index = _list_index(segment)
            if index < 0 or index >= len(node):
                raise MissingData(
                    f"No index {index} at {format_path(path[:depth]) or '<root>'}"
                )
            node = node[index]
        else:
            raise PathTypeError(
                f"Cannot index into {type(node).__name__} at "
                f"{format_path(path[:depth]) or '<root>'}"
            )
    return node


def _empty_container(next_segment: Any) -> Any:
    if _is_index(next_segment):
        return []
    if isinstance(next_segment, str):
        return {}
    raise PathTypeError(
        f"Unexpected path segment {next_segment!r}, not an int or string"
    )


def write_path(document: Any, path: list[Segment], value: Any) -> Any:
    """Return a copy of ``document`` with ``value`` stored at ``path``.

    Missing intermediate nodes (and ``None`` placeholders) are created
    as a dict or a list depending on the segment that follows them.
    Lists are padded with ``None`` when the index is past their end.

    Args:
        document: Existing document, or ``None`` for an empty one.
        path: Segments leading to the value. Empty replaces the document.
        value: Value to store.

    Returns:
        The new document.

    Raises:
        PathTypeError: A segment cannot index the node it reaches.
    """
    if not path:
        return value

    segment, rest = path[0], path[1:]
    if document is None:
        document = _empty_container(segment)

    if isinstance(document, Mapping):
        key = _map_key(segment)
        updated = dict(document)
        child = document.get(key)
        if child is None and rest:
            child = _empty_container(rest[0])
        updated[key] = write_path(child, rest, value)
        return updated

    if isinstance(document, list):
        index = _list_index(segment)
        if index < 0:
            raise PathTypeError(f"Cannot write to negative array index {index}")
        updated = list(document)
        if index >= len(updated):
            updated.extend([None] * (index + 1 - len(updated)))
        child = updated[index]
        if child is None and rest:
            child = _empty_container(rest[0])
        updated[index] = write_path(child, rest, value)
        return updated

    raise PathTypeError(f"Cannot index into {type(document).__name__}")


def parse_path(raw: str) -> list[Segment]:
    """Parse a dotted path string.

    ``\\.`` is a literal dot, ``\\\\`` a literal backslash, and a
    backslash before anything else is kept as is. Unescaped segments
    made only of digits become integers.
    """
    if raw == "":
        return []

    segments: list[Segment] = []
    scratch = ""
    escaped = False
    had_escape = False

    def flush() -> None:
        if scratch.isascii() and scratch.isdigit() and not had_escape:
            segments.append(int(scratch))
        else:
            segments.append(scratch)

    for char in raw:
        if escaped:
            if char not in ".\\":
                scratch += "\\"
            scratch += char
            escaped = False
            had_escape = True
        elif char == "\\":
            escaped = True
        elif char == ".":
            flush()
            scratch = ""
            had_escape = False
        else:
            scratch += char

    if escaped:
        scratch += "\\"
    flush()
    return segments


def format_path(path: list[Segment]) -> str:
    """Render a path back into the dotted form accepted by parse_path."""
    parts = []
    for segment in path:
        if _is_index(segment):
            parts.append(str(segment))
            continue
        parts.append(str(segment).replace("\\", "\\\\").replace(".", "\\."))
    return ".".join(parts)
