"""Query nodes for the store's search DSL.

Nodes are plain builders: every `with_*`/clause method mutates the receiver and
returns it so calls can be chained. Validation and serialization live in
`storequery.compiler`, which matches over the concrete node types.
"""

from dataclasses import dataclass, field
from typing import Any, Self

from storequery.types.general import JsonObject
from storequery.validation import ValidationResults


class Query:
    """Base class of every query node."""

    __slots__ = ()

    def validate(self) -> ValidationResults:
        """Collect every problem in this query and its children."""
        from storequery.compiler.validate import validate_query  # noqa: PLC0415

        return validate_query(self)

    def to_source(self) -> JsonObject:
        """Build the JSON-compatible source for this query, validating first."""
        from storequery.compiler.serialize import query_source  # noqa: PLC0415

        return query_source(self)

    def serialize(self) -> bytes:
        """Serialize this query to JSON bytes, validating first."""
        from storequery.compiler.serialize import serialize  # noqa: PLC0415

        return serialize(self)


@dataclass(slots=True)
class MatchAll(Query):
    """Matches every document."""


@dataclass(slots=True)
class Term(Query):
    """Documents whose field exactly matches the value."""

    field: str
    value: Any


@dataclass(slots=True, init=False)
class Terms(Query):
    """Documents whose field exactly matches one of the values."""

    field: str
    values: list[Any]

    def __init__(self, field: str, *values: Any) -> None:
        """Target a field, matching any of the given values."""
        self.field = field
        self.values = list(values)


@dataclass(slots=True)
class Match(Query):
    """Full-text match against the analyzed value of a field."""

    field: str
    value: Any
    operator: str = "or"

    def with_operator(self, operator: str) -> Self:
        """Set the boolean operator used between analyzed terms ("and" or "or")."""
        self.operator = operator
        return self


@dataclass(slots=True)
class MatchPhrase(Query):
    """Documents containing the exact phrase, in order."""

    field: str
    phrase: str


@dataclass(slots=True)
class Prefix(Query):
    """Documents whose field starts with the value."""

    field: str
    value: Any


@dataclass(slots=True)
class Wildcard(Query):
    """Documents whose field matches a wildcard pattern."""

    field: str
    value: str


@dataclass(slots=True)
class Regex(Query):
    """Documents whose field matches a regular expression."""

    field: str
    pattern: str


@dataclass(slots=True)
class Range(Query):
    """Documents whose field falls within the configured bounds.

    A Range with no bounds behaves like an Exists query on the field.
    """

    field: str
    bounds: dict[str, Any] = field(default_factory=dict[str, Any])

    def gt(self, value: Any) -> Self:
        """Set the exclusive lower bound."""
        self.bounds["gt"] = value
        return self

    def gte(self, value: Any) -> Self:
        """Set the inclusive lower bound."""
        self.bounds["gte"] = value
        return self

    def lt(self, value: Any) -> Self:
        """Set the exclusive upper bound."""
        self.bounds["lt"] = value
        return self

    def lte(self, value: Any) -> Self:
        """Set the inclusive upper bound."""
        self.bounds["lte"] = value
        return self


@dataclass(slots=True)
class Exists(Query):
    """Documents that contain any value for the field."""

    field: str


@dataclass(slots=True, init=False)
class IDs(Query):
    """Documents whose identifier is one of the values."""

    values: list[Any]

    def __init__(self, *values: Any) -> None:
        """Match any of the given document identifiers."""
        self.values = list(values)


@dataclass(slots=True)
class Nested(Query):
    """Runs a child query against nested objects found at path."""

    path: str
    query: Query | None


@dataclass(slots=True)
class Bool(Query):
    """Combines child queries with must/must_not/should/filter clauses.

    A Bool with no clauses matches every document.
    """

    must_queries: list[Query] = field(default_factory=list[Query])
    must_not_queries: list[Query] = field(default_factory=list[Query])
    should_queries: list[Query] = field(default_factory=list[Query])
    filter_queries: list[Query] = field(default_factory=list[Query])
    min_should_match: int | None = None

    def must(self, *queries: Query) -> Self:
        """Logical AND, contributing to score."""
        self.must_queries.extend(queries)
        return self

    def must_not(self, *queries: Query) -> Self:
        """Logical NOT; matching documents are excluded."""
        self.must_not_queries.extend(queries)
        return self

    def should(self, *queries: Query) -> Self:
        """Logical OR; see minimum_should_match."""
        self.should_queries.extend(queries)
        return self

    def filter(self, *queries: Query) -> Self:
        """Logical AND applied without scoring."""
        self.filter_queries.extend(queries)
        return self

    def minimum_should_match(self, count: int) -> Self:
        """Require at least `count` should clauses to match."""
        self.min_should_match = count
        return self

    def clauses(self) -> dict[str, list[Query]]:
        """Every clause list keyed by its wire name, in wire order."""
        return {
            "must": self.must_queries,
            "must_not": self.must_not_queries,
            "should": self.should_queries,
            "filter": self.filter_queries,
        }
