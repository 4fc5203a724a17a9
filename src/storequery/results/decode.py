"""Typed readers for fields of a decoded JSON object.

Every reader treats an absent key (or an explicit null) as the default and
raises DecodeError, naming the field, when the value has the wrong type.
"""

from collections.abc import Mapping
from typing import Any, TypeGuard, cast

import orjson

from storequery.errors import DecodeError
from storequery.types.general import JsonObject


def is_object(item: Any) -> TypeGuard[Mapping[str, Any]]:
    """A TypeGuard to check if an item is a JSON object."""
    return isinstance(item, Mapping)


def _wrong_type(key: str, expected: str, value: Any) -> DecodeError:
    return DecodeError(
        f"field '{key}' expected {expected}, got {type(value).__name__}", field=key
    )


def parse_object(raw: bytes | str | Mapping[str, Any], what: str) -> JsonObject:
    """Parse a response body that must be a JSON object."""
    if is_object(raw):
        return dict(raw)
    try:
        parsed = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"{what} is not valid JSON: {e}") from e
    if not is_object(parsed):
        raise DecodeError(
            f"{what} must be a JSON object, got {type(parsed).__name__}"
        )
    return cast(JsonObject, parsed)


def read_object(data: Mapping[str, Any], key: str) -> JsonObject | None:
    """Read a nested object, or None if absent."""
    value = data.get(key)
    if value is None:
        return None
    if not is_object(value):
        raise _wrong_type(key, "an object", value)
    return dict(value)


def read_list(data: Mapping[str, Any], key: str) -> list[Any]:
    """Read a list, or an empty list if absent."""
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise _wrong_type(key, "a list", value)
    return cast(list[Any], value)


def read_str(data: Mapping[str, Any], key: str, default: str = "") -> str:
    """Read a string."""
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise _wrong_type(key, "a string", value)
    return value


def read_int(data: Mapping[str, Any], key: str, default: int = 0) -> int:
    """Read an integer; booleans are rejected."""
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise _wrong_type(key, "an integer", value)
    return value


def read_float(data: Mapping[str, Any], key: str) -> float | None:
    """Read a number as a float, or None if absent."""
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise _wrong_type(key, "a number", value)
    return float(value)


def read_bool(data: Mapping[str, Any], key: str, default: bool = False) -> bool:
    """Read a boolean."""
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise _wrong_type(key, "a boolean", value)
    return value
