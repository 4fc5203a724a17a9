"""The search request envelope: a query plus named top-level aggregations."""

from dataclasses import dataclass, field
from typing import Any, Self
from urllib.parse import quote, urlencode

import orjson
from loguru import logger as log

from storequery.aggregation import UNSET, Aggregation
from storequery.compiler.serialize import build_aggregation, build_query
from storequery.compiler.validate import validate_aggregation, validate_query
from storequery.query import Query
from storequery.types.general import JsonObject
from storequery.validation import ValidationError, ValidationResults


@dataclass(frozen=True, slots=True)
class Sort:
    """Sort hits by a field."""

    field: str
    desc: bool = False

    def to_source(self) -> JsonObject:
        """Compile to `{field: {"order": ...}}`."""
        return {self.field: {"order": "desc" if self.desc else "asc"}}


@dataclass(slots=True)
class SearchRequest:
    """A search against one or more indices.

    `size` and `from_` use the same -1 sentinel as aggregation options.
    """

    indices: list[str] = field(default_factory=list[str])
    query: Query | None = None
    size: int = UNSET
    from_: int = UNSET
    sorts: list[Sort] = field(default_factory=list[Sort])
    track_total_hits: bool | None = None
    routing: list[str] = field(default_factory=list[str])
    aggregations: dict[str, Aggregation] = field(
        default_factory=dict[str, Aggregation]
    )

    def add_indices(self, *indices: str) -> Self:
        """Search these indices in addition to any already set."""
        self.indices.extend(indices)
        return self

    def with_query(self, query: Query) -> Self:
        """Set the query that selects hits."""
        self.query = query
        return self

    def with_size(self, size: int) -> Self:
        """Maximum number of hits to return."""
        self.size = size
        return self

    def with_from(self, from_: int) -> Self:
        """Number of hits to skip."""
        self.from_ = from_
        return self

    def add_sort(self, field: str, desc: bool = False) -> Self:
        """Append a hit sort; sorts apply in the order added."""
        self.sorts.append(Sort(field, desc))
        return self

    def with_track_total_hits(self, track: bool) -> Self:
        """Ask the store to count every matching hit, not a lower bound."""
        self.track_total_hits = track
        return self

    def add_routing(self, *routing: str) -> Self:
        """Restrict the search to shards with these routing values."""
        self.routing.extend(routing)
        return self

    def add_aggregation(self, name: str, aggregation: Aggregation) -> Self:
        """Add a named top-level aggregation; an existing entry with the same name is replaced."""
        if name in self.aggregations:
            log.debug(f"Replacing aggregation '{name}' on SearchRequest")
        self.aggregations[name] = aggregation
        return self

    def validate(self) -> ValidationResults:
        """Collect every problem in the query and every aggregation."""
        results = ValidationResults()
        if self.query is not None:
            results.extend(validate_query(self.query, "query"))
        for name, aggregation in self.aggregations.items():
            if not name:
                results.fatal("an aggregation name cannot be empty")
            results.extend(validate_aggregation(aggregation, f"aggs.{name}"))
        return results

    def to_source(self) -> JsonObject:
        """Build the JSON-compatible request body, validating first."""
        results = self.validate()
        if results.is_fatal():
            log.warning(
                f"Refusing to serialize SearchRequest: {len(results)} validation result(s)"
            )
            raise ValidationError(results)

        body = dict[str, Any]()
        if self.query is not None:
            body["query"] = build_query(self.query)
        if self.size >= 0:
            body["size"] = self.size
        if self.from_ >= 0:
            body["from"] = self.from_
        if self.sorts:
            body["sort"] = [sort.to_source() for sort in self.sorts]
        if self.track_total_hits is not None:
            body["track_total_hits"] = self.track_total_hits
        if self.aggregations:
            body["aggs"] = {
                name: build_aggregation(aggregation)
                for name, aggregation in self.aggregations.items()
            }
        return body

    def serialize(self) -> bytes:
        """Encode the request body as JSON bytes, validating first."""
        return orjson.dumps(self.to_source())

    def params(self) -> dict[str, str]:
        """Query-string parameters for this request."""
        params = dict[str, str]()
        if self.routing:
            params["routing"] = ",".join(self.routing)
        return params

    def path(self, default_index: str = "") -> str:
        """The request path, e.g. `/logs-a,logs-b/_search?routing=r1`.

        `default_index` is used when the request names no index; with neither,
        every index is searched.
        """
        indices = self.indices or ([default_index] if default_index else [])
        path = (
            f"/{quote(','.join(indices), safe=',*')}/_search" if indices else "/_search"
        )
        if params := self.params():
            path = f"{path}?{urlencode(params, safe=',')}"
        return path
