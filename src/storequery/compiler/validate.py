"""Validation pass run before any node tree is serialized.

Every rule appends to a shared ValidationResults; nothing short-circuits, so a
single call reports every problem in the tree. Problems below the root are
prefixed with their location in the compiled JSON, e.g.
`bool.must[1]: a Nested query requires a path`.
"""

from storequery.aggregation import (
    VALID_SINGLE_VALUE_TYPES,
    Aggregation,
    BucketAggregation,
    BucketSortAggregation,
    DateHistogramAggregation,
    DateRangeAggregation,
    FilterAggregation,
    Order,
    PercentilesAggregation,
    RangeAggregation,
    SingleValueMetricAggregation,
    TermsAggregation,
)
from storequery.query import (
    Bool,
    Exists,
    IDs,
    Match,
    MatchAll,
    MatchPhrase,
    Nested,
    Prefix,
    Query,
    Range,
    Regex,
    Term,
    Terms,
    Wildcard,
)
from storequery.validation import ValidationResults

QueryLeaf = (
    Term | Terms | Match | MatchPhrase | Prefix | Wildcard | Regex | Range | Exists
)


def validate_query(query: Query, location: str = "") -> ValidationResults:
    """Validate a query node and, recursively, all of its children."""
    results = ValidationResults()
    _check_query(query, results, location)
    return results


def validate_aggregation(
    aggregation: Aggregation, location: str = ""
) -> ValidationResults:
    """Validate an aggregation node and, recursively, all of its sub-aggregations."""
    results = ValidationResults()
    _check_aggregation(aggregation, results, location)
    return results


def _join(location: str, part: str) -> str:
    return f"{location}.{part}" if location else part


def _fatal(results: ValidationResults, location: str, message: str) -> None:
    results.fatal(f"{location}: {message}" if location else message)


def _require_field(
    node: QueryLeaf | Aggregation, field: str, results: ValidationResults, location: str
) -> None:
    if not field:
        _fatal(results, location, f"{type(node).__name__} requires a target field")


def _check_query(query: Query, results: ValidationResults, location: str) -> None:
    match query:
        case MatchAll() | IDs():
            pass
        case (
            Term()
            | Terms()
            | Match()
            | MatchPhrase()
            | Prefix()
            | Wildcard()
            | Regex()
            | Range()
            | Exists()
        ):
            _require_field(query, query.field, results, location)
        case Nested(path=path, query=child):
            if not path:
                _fatal(results, location, "a Nested query requires a path")
            if child is None:
                _fatal(results, location, "a Nested query requires a child query")
            else:
                _check_query(child, results, _join(location, "nested.query"))
        case Bool():
            for clause, children in query.clauses().items():
                for i, child in enumerate(children):
                    _check_query(child, results, _join(location, f"bool.{clause}[{i}]"))
        case _:
            raise TypeError(f"Unsupported query node {type(query).__name__}")


def _check_orders(
    name: str, orders: list[Order], results: ValidationResults, location: str
) -> None:
    for order in orders:
        if not order.target:
            _fatal(results, location, f"{name} order requires a target")


def _check_aggregation(
    aggregation: Aggregation, results: ValidationResults, location: str
) -> None:
    match aggregation:
        case SingleValueMetricAggregation(agg_type=agg_type):
            _require_field(aggregation, aggregation.field, results, location)
            if agg_type not in VALID_SINGLE_VALUE_TYPES:
                _fatal(
                    results,
                    location,
                    f"{agg_type} is not a valid type of SingleValueMetricAggregation",
                )
        case PercentilesAggregation():
            _require_field(aggregation, aggregation.field, results, location)
        case BucketSortAggregation(sort=sort):
            if any(not entry.field for entry in sort):
                _fatal(
                    results,
                    location,
                    "a BucketSortAggregation sort is missing its target field",
                )
        case BucketAggregation():
            _check_bucket(aggregation, results, location)
        case _:
            raise TypeError(f"Unsupported aggregation node {type(aggregation).__name__}")


def _check_bucket(
    aggregation: BucketAggregation, results: ValidationResults, location: str
) -> None:
    name = type(aggregation).__name__
    match aggregation:
        case TermsAggregation():
            _require_field(aggregation, aggregation.field, results, location)
            if aggregation.include and aggregation.include_values:
                _fatal(
                    results,
                    location,
                    f"a TermsAggregation cannot have both include [{aggregation.include}] "
                    f"and include values {aggregation.include_values} set",
                )
            if aggregation.exclude and aggregation.exclude_values:
                _fatal(
                    results,
                    location,
                    f"a TermsAggregation cannot have both exclude [{aggregation.exclude}] "
                    f"and exclude values {aggregation.exclude_values} set",
                )
            _check_orders(name, aggregation.order, results, location)
        case DateHistogramAggregation():
            _require_field(aggregation, aggregation.field, results, location)
            if not aggregation.interval:
                _fatal(results, location, "a DateHistogramAggregation requires an interval")
            _check_orders(name, aggregation.order, results, location)
        case DateRangeAggregation() | RangeAggregation():
            _require_field(aggregation, aggregation.field, results, location)
            if not aggregation.ranges:
                _fatal(results, location, f"{name} requires at least one range bucket")
        case FilterAggregation():
            if aggregation.filter is None:
                _fatal(results, location, "a FilterAggregation requires a filter query")
            else:
                _check_query(aggregation.filter, results, _join(location, "filter"))
        case _:
            raise TypeError(f"Unsupported bucket aggregation {name}")

    for sub_name, sub_aggregation in aggregation.aggregations.items():
        _check_aggregation(sub_aggregation, results, _join(location, f"aggs.{sub_name}"))
