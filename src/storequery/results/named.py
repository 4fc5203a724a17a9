"""Lazy, by-name decoding of aggregation results.

Aggregation results are keyed by names the caller picked when building the
request, so they are kept as undecoded JSON sub-trees until asked for.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, cast

from loguru import logger as log
from pydantic import TypeAdapter

from storequery.errors import DecodeError, StoreQueryError
from storequery.results.decode import is_object
from storequery.types.general import RawPayload


class AggregationResultSet(Protocol):
    """Anything holding named, not-yet-decoded aggregation results."""

    def get_aggregation_result_source(self, name: str) -> tuple[RawPayload, bool]:
        """Return the raw payload for name, and whether it was present."""
        ...

    def keys(self) -> list[str]:
        """Names of every result held."""
        ...


class SubAggregationResults:
    """Mixin implementing AggregationResultSet over an `aggregations` mapping."""

    __slots__ = ()

    aggregations: dict[str, RawPayload]

    def get_aggregation_result_source(self, name: str) -> tuple[RawPayload, bool]:
        """Return the raw payload for name, and whether it was present."""
        if name in self.aggregations:
            return self.aggregations[name], True
        return None, False

    def keys(self) -> list[str]:
        """Names of every sub-aggregation result held."""
        return list(self.aggregations)


@dataclass(frozen=True, slots=True)
class Found[T]:
    """The named result existed and decoded."""

    value: T


@dataclass(frozen=True, slots=True)
class Missing:
    """No result with this name was present."""

    name: str


@dataclass(frozen=True, slots=True)
class DecodeFailed:
    """A result with this name was present but did not decode."""

    name: str
    error: Exception


type NamedResult[T] = Found[T] | Missing | DecodeFailed


def decode_payload[T](raw: RawPayload, target: type[T]) -> T:
    """Decode a raw JSON sub-tree into target.

    Types providing a `from_dict` classmethod (every result type in this
    package) are built with it; anything else goes through pydantic.
    """
    from_dict = getattr(target, "from_dict", None)
    if callable(from_dict):
        if not is_object(raw):
            raise DecodeError(
                f"{target.__name__} expects an object, got {type(raw).__name__}"
            )
        return cast(T, from_dict(cast(Mapping[str, Any], raw)))
    return TypeAdapter(target).validate_python(raw)


def read_named[T](
    result_set: AggregationResultSet, name: str, target: type[T]
) -> NamedResult[T]:
    """Decode the result called name into target.

    Never raises: absence and decode failure are reported as distinct results.
    """
    raw, present = result_set.get_aggregation_result_source(name)
    if not present:
        return Missing(name)
    try:
        return Found(decode_payload(raw, target))
    except (StoreQueryError, ValueError, TypeError) as e:
        log.debug(f"Could not decode aggregation result '{name}' as {target}: {e}")
        return DecodeFailed(name, e)
