"""Compile validated node trees into the store's JSON query language.

`query_source`/`aggregation_source` validate first and refuse to build anything
from a tree with fatal results. `build_query`/`build_aggregation` skip that step
and are meant for callers (such as SearchRequest) that already validated the
whole envelope; a missing child they cannot compile is still a ValidationError.
"""

from typing import Any, NoReturn

import orjson
from loguru import logger as log

from storequery.aggregation import (
    Aggregation,
    BucketAggregation,
    BucketSortAggregation,
    DateHistogramAggregation,
    DateRangeAggregation,
    FilterAggregation,
    Order,
    PercentilesAggregation,
    RangeAggregation,
    RangeBucket,
    SingleValueAggType,
    SingleValueMetricAggregation,
    TermsAggregation,
)
from storequery.compiler.validate import validate_aggregation, validate_query
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
from storequery.types.general import JsonObject
from storequery.validation import ValidationError, ValidationResults


def _refuse_if_fatal(results: ValidationResults, what: str) -> None:
    if results.is_fatal():
        log.warning(
            f"Refusing to serialize {what}: {len(results)} validation result(s)"
        )
        raise ValidationError(results)


def _missing(message: str) -> NoReturn:
    results = ValidationResults()
    results.fatal(message)
    raise ValidationError(results)


def query_source(query: Query) -> JsonObject:
    """Validate a query tree, then build its JSON-compatible source."""
    _refuse_if_fatal(validate_query(query), type(query).__name__)
    return build_query(query)


def aggregation_source(aggregation: Aggregation) -> JsonObject:
    """Validate an aggregation tree, then build its JSON-compatible source."""
    _refuse_if_fatal(validate_aggregation(aggregation), type(aggregation).__name__)
    return build_aggregation(aggregation)


def serialize(node: Query | Aggregation) -> bytes:
    """Validate a node tree and encode it as JSON bytes."""
    if isinstance(node, Query):
        return orjson.dumps(query_source(node))
    return orjson.dumps(aggregation_source(node))


def _set_if_present(target: JsonObject, key: str, value: int) -> None:
    """Copy a sentinel-encoded integer; negative means unset."""
    if value >= 0:
        target[key] = value


def build_query(query: Query) -> JsonObject:
    """Build the JSON-compatible source of a query tree without validating it."""
    match query:
        case MatchAll():
            return {"match_all": {}}
        case Term(field=field, value=value):
            return {"term": {field: value}}
        case Terms(field=field, values=values):
            return {"terms": {field: list(values)}}
        case Match(field=field, value=value, operator=operator):
            return {"match": {field: {"query": value, "operator": operator}}}
        case MatchPhrase(field=field, phrase=phrase):
            return {"match_phrase": {field: phrase}}
        case Prefix(field=field, value=value):
            return {"prefix": {field: value}}
        case Wildcard(field=field, value=value):
            return {"wildcard": {field: value}}
        case Regex(field=field, pattern=pattern):
            return {"regexp": {field: pattern}}
        case Range(field=field, bounds=bounds):
            return {"range": {field: dict(bounds)}}
        case Exists(field=field):
            return {"exists": {"field": field}}
        case IDs(values=values):
            return {"ids": {"values": list(values)}}
        case Nested(path=path, query=child):
            if child is None:
                _missing("a Nested query requires a child query")
            return {"nested": {"path": path, "query": build_query(child)}}
        case Bool():
            body: JsonObject = {
                name: [build_query(child) for child in clause]
                for name, clause in query.clauses().items()
                if clause
            }
            if query.min_should_match is not None:
                body["minimum_should_match"] = query.min_should_match
            return {"bool": body}
        case _:
            raise TypeError(f"Unsupported query node {type(query).__name__}")


def _build_order(orders: list[Order]) -> list[dict[str, str]]:
    return [{order.target: "desc" if order.desc else "asc"} for order in orders]


def _build_range_bucket(bucket: RangeBucket) -> JsonObject:
    out = dict[str, Any]()
    if bucket.key:
        out["key"] = bucket.key
    if bucket.from_ is not None:
        out["from"] = bucket.from_
    if bucket.to is not None:
        out["to"] = bucket.to
    return out


def build_aggregation(aggregation: Aggregation) -> JsonObject:
    """Build the JSON-compatible source of an aggregation tree without validating it."""
    match aggregation:
        case SingleValueMetricAggregation():
            metric: JsonObject = {"field": aggregation.field}
            _set_if_present(
                metric, "precision_threshold", aggregation.precision_threshold
            )
            if aggregation.missing is not None:
                metric["missing"] = aggregation.missing
            return {SingleValueAggType(aggregation.agg_type).value: metric}
        case PercentilesAggregation():
            percentiles: JsonObject = {"field": aggregation.field}
            if aggregation.percents:
                percentiles["percents"] = list(aggregation.percents)
            if aggregation.missing is not None:
                percentiles["missing"] = aggregation.missing
            return {"percentiles": percentiles}
        case BucketSortAggregation():
            bucket_sort = dict[str, Any]()
            _set_if_present(bucket_sort, "from", aggregation.from_)
            _set_if_present(bucket_sort, "size", aggregation.size)
            if aggregation.sort:
                bucket_sort["sort"] = [
                    {entry.field: {"order": "desc" if entry.desc else "asc"}}
                    for entry in aggregation.sort
                ]
            return {"bucket_sort": bucket_sort}
        case BucketAggregation():
            out = _build_bucket(aggregation)
            if aggregation.aggregations:
                out["aggs"] = {
                    name: build_aggregation(sub)
                    for name, sub in aggregation.aggregations.items()
                }
            return out
        case _:
            raise TypeError(
                f"Unsupported aggregation node {type(aggregation).__name__}"
            )


def _build_bucket(aggregation: BucketAggregation) -> JsonObject:
    match aggregation:
        case TermsAggregation():
            terms: JsonObject = {"field": aggregation.field}
            _set_if_present(terms, "size", aggregation.size)
            if aggregation.order:
                terms["order"] = _build_order(aggregation.order)
            if aggregation.include:
                terms["include"] = aggregation.include
            elif aggregation.include_values:
                terms["include"] = list(aggregation.include_values)
            if aggregation.exclude:
                terms["exclude"] = aggregation.exclude
            elif aggregation.exclude_values:
                terms["exclude"] = list(aggregation.exclude_values)
            _set_if_present(terms, "min_doc_count", aggregation.min_doc_count)
            if aggregation.missing:
                terms["missing"] = aggregation.missing
            return {"terms": terms}
        case DateHistogramAggregation():
            histogram: JsonObject = {
                "field": aggregation.field,
                "interval": aggregation.interval,
            }
            _set_if_present(histogram, "min_doc_count", aggregation.min_doc_count)
            if aggregation.time_zone:
                histogram["time_zone"] = aggregation.time_zone
            if aggregation.order:
                histogram["order"] = _build_order(aggregation.order)
            return {"date_histogram": histogram}
        case DateRangeAggregation():
            date_range: JsonObject = {
                "field": aggregation.field,
                "ranges": [_build_range_bucket(r) for r in aggregation.ranges],
            }
            if aggregation.format:
                date_range["format"] = aggregation.format
            return {"date_range": date_range}
        case RangeAggregation():
            return {
                "range": {
                    "field": aggregation.field,
                    "ranges": [_build_range_bucket(r) for r in aggregation.ranges],
                }
            }
        case FilterAggregation(filter=query):
            if query is None:
                _missing("a FilterAggregation requires a filter query")
            return {"filter": build_query(query)}
        case _:
            raise TypeError(
                f"Unsupported bucket aggregation {type(aggregation).__name__}"
            )
