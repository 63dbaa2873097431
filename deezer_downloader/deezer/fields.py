"""
Declarative field mapping for Deezer records.

Deezer returns the same information under different names and types
depending on where it comes from: the public API uses lowercase keys and
numbers ("id": 3135556), the web app state uses uppercase keys and strings
("SNG_ID": "3135556"). Instead of branching on every variant, each record
kind declares a table:

    canonical field -> Field(default, (FieldSource(path, converter), ...))

normalize_record() applies a table to a raw dict. For each field, the
first source whose key path is present in the record is used. If its
converter rejects the value, the field keeps its default (zero) value;
the record as a whole is never rejected.

Adding a new upstream shape is a table change, not new control flow.
"""

from dataclasses import dataclass
from typing import Any, Callable


_MISSING = object()


@dataclass(frozen=True)
class FieldSource:
    """A key path into a raw record and how to convert what is found there."""
    path: tuple[str, ...]
    convert: Callable[[Any], Any]


@dataclass(frozen=True)
class Field:
    """A canonical field: its zero value and its ordered sources."""
    default: Any
    sources: tuple[FieldSource, ...]


FieldTable = dict[str, Field]


def source(path: str, convert: Callable[[Any], Any] | None = None) -> FieldSource:
    """
    Build a FieldSource from a dotted key path.

    Example:
        source("album.title")           # record["album"]["title"], as str
        source("SNG_ID", as_int)        # record["SNG_ID"], "123" or 123 -> 123
    """
    return FieldSource(tuple(path.split(".")), convert or as_str)


def lookup(record: Any, path: tuple[str, ...]) -> Any:
    """Follow a key path through nested dicts. Returns _MISSING if any step is absent."""
    node = record
    for key in path:
        if not isinstance(node, dict) or key not in node:
            return _MISSING
        node = node[key]
    return node


def normalize_record(record: dict[str, Any], table: FieldTable) -> dict[str, Any]:
    """
    Apply a field table to a raw record.

    Args:
        record: Raw dict as decoded from JSON.
        table: Field table for this record kind.

    Returns:
        Dict with exactly the table's keys, ready to pass to a dataclass.
    """
    result: dict[str, Any] = {}
    for name, field in table.items():
        result[name] = field.default
        for field_source in field.sources:
            raw = lookup(record, field_source.path)
            if raw is _MISSING:
                continue
            try:
                result[name] = field_source.convert(raw)
            except (TypeError, ValueError):
                pass  # keep the zero value
            break
    return result


# =============================================================================
# Converters
# =============================================================================

def as_str(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected string, got {type(value).__name__}")
    return value


def as_int(value: Any) -> int:
    """Accept a JSON number or a numeric string."""
    if isinstance(value, bool):
        raise TypeError("expected number, got bool")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        return int(value)
    raise TypeError(f"expected number, got {type(value).__name__}")


def as_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected bool, got {type(value).__name__}")
    return value


def names_of(key: str) -> Callable[[Any], tuple[str, ...]]:
    """
    Build a converter collecting `key` from a list of dicts.

    Entries without a string under `key` are skipped.

    Example:
        names_of("ART_NAME")([{"ART_NAME": "Daft Punk"}])  # ("Daft Punk",)
    """
    def convert(value: Any) -> tuple[str, ...]:
        if not isinstance(value, list):
            raise TypeError(f"expected list, got {type(value).__name__}")
        return tuple(
            item[key] for item in value
            if isinstance(item, dict) and isinstance(item.get(key), str)
        )
    return convert


def contributor_role(role: str) -> Callable[[Any], tuple[str, ...]]:
    """
    Build a converter extracting one role from SNG_CONTRIBUTORS.

    The contributors value is either a single dict of role -> names, or a
    list of such dicts; both shapes are accepted.
    """
    def convert(value: Any) -> tuple[str, ...]:
        if isinstance(value, dict):
            groups = [value]
        elif isinstance(value, list):
            groups = [group for group in value if isinstance(group, dict)]
        else:
            raise TypeError(f"expected dict or list, got {type(value).__name__}")

        names: list[str] = []
        for group in groups:
            members = group.get(role) or []
            if isinstance(members, list):
                names.extend(name for name in members if isinstance(name, str))
        return tuple(names)
    return convert
