"""Top-level response models for search requests."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Self

from storequery.errors import DecodeError
from storequery.results.decode import (
    is_object,
    parse_object,
    read_bool,
    read_float,
    read_int,
    read_list,
    read_object,
    read_str,
)
from storequery.results.named import SubAggregationResults, decode_payload
from storequery.types.general import RawPayload

SEARCH_RESPONSE_KEYS = frozenset(
    ("took", "timed_out", "_shards", "hits", "error", "aggregations")
)


@dataclass(frozen=True, slots=True, kw_only=True)
class ShardMeta:
    """Shard counters reported with most responses."""

    total: int = 0
    successful: int = 0
    skipped: int = 0
    failed: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a `_shards` object."""
        return cls(
            total=read_int(data, "total"),
            successful=read_int(data, "successful"),
            skipped=read_int(data, "skipped"),
            failed=read_int(data, "failed"),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class StoreError:
    """An error object returned by the store in place of (or alongside) a result."""

    type: str = ""
    reason: str = ""
    index: str = ""
    resource_id: str = ""
    resource_type: str = ""
    index_uuid: str = ""
    root_cause: list["StoreError"] = field(default_factory=list["StoreError"])

    @classmethod
    def from_value(cls, value: Any) -> Self:
        """Parse an `error` value, which older stores send as a bare string."""
        if isinstance(value, str):
            return cls(reason=value)
        if not is_object(value):
            raise DecodeError(
                f"field 'error' expected an object, got {type(value).__name__}",
                field="error",
            )
        return cls.from_dict(value)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse an `error` object, including its root causes."""
        return cls(
            type=read_str(data, "type"),
            reason=read_str(data, "reason"),
            index=read_str(data, "index"),
            resource_id=read_str(data, "resource.id"),
            resource_type=read_str(data, "resource.type"),
            index_uuid=read_str(data, "index_uuid"),
            root_cause=[cls.from_value(cause) for cause in read_list(data, "root_cause")],
        )


@dataclass(frozen=True, slots=True)
class Total:
    """Number of matching documents; relation is "eq" or "gte" (a lower bound)."""

    value: int = 0
    relation: str = "eq"

    @classmethod
    def from_value(cls, value: Any) -> Self:
        """Parse `hits.total`, accepting the legacy bare-integer form."""
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        if not is_object(value):
            raise DecodeError(
                f"field 'total' expected an object, got {type(value).__name__}",
                field="total",
            )
        return cls(read_int(value, "value"), read_str(value, "relation", "eq"))


@dataclass(frozen=True, slots=True, kw_only=True)
class Hit:
    """One matching document; source stays undecoded until read_document."""

    index: str = ""
    id: str = ""
    score: float | None = None
    source: RawPayload = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a single hit."""
        return cls(
            index=read_str(data, "_index"),
            id=read_str(data, "_id"),
            score=read_float(data, "_score"),
            source=data.get("_source"),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class Hits:
    """The hits section of a search response."""

    total: Total = field(default_factory=Total)
    max_score: float | None = None
    hits: list[Hit] = field(default_factory=list[Hit])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a `hits` object."""
        hits = list[Hit]()
        for item in read_list(data, "hits"):
            if not is_object(item):
                raise DecodeError(
                    f"hits must contain objects, got {type(item).__name__}",
                    field="hits",
                )
            hits.append(Hit.from_dict(item))
        total = data.get("total")
        return cls(
            total=Total() if total is None else Total.from_value(total),
            max_score=read_float(data, "max_score"),
            hits=hits,
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class SearchResponse(SubAggregationResults):
    """A decoded search response.

    Named aggregation results are held undecoded; read them with read_named.
    Unrecognised top-level keys are kept in extras.
    """

    took: int = 0
    timed_out: bool = False
    shards: ShardMeta = field(default_factory=ShardMeta)
    hits: Hits = field(default_factory=Hits)
    error: StoreError | None = None
    aggregations: dict[str, RawPayload] = field(default_factory=dict[str, RawPayload])
    extras: dict[str, Any] = field(default_factory=dict[str, Any])

    @classmethod
    def parse(cls, body: bytes | str | Mapping[str, Any]) -> Self:
        """Decode a raw response body."""
        return cls.from_dict(parse_object(body, "search response"))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Decode an already-parsed response body."""
        shards = read_object(data, "_shards")
        hits = read_object(data, "hits")
        error = data.get("error")
        return cls(
            took=read_int(data, "took"),
            timed_out=read_bool(data, "timed_out"),
            shards=ShardMeta() if shards is None else ShardMeta.from_dict(shards),
            hits=Hits() if hits is None else Hits.from_dict(hits),
            error=None if error is None else StoreError.from_value(error),
            aggregations=read_object(data, "aggregations") or {},
            extras={k: v for k, v in data.items() if k not in SEARCH_RESPONSE_KEYS},
        )


def read_document[T](hit: Hit, target: type[T]) -> T:
    """Decode a hit's source into target."""
    if hit.source is None:
        raise DecodeError(f"hit '{hit.id}' has no _source", field="_source")
    return decode_payload(hit.source, target)
