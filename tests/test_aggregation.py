from typing import Any

import orjson
import pytest

from storequery.aggregation import (
    Aggregation,
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
from storequery.compiler.serialize import build_aggregation
from storequery.query import Term
from storequery.validation import ValidationError


@pytest.mark.parametrize(
    "aggregation, expected",
    [
        (SingleValueMetricAggregation.max("price"), {"max": {"field": "price"}}),
        (SingleValueMetricAggregation.min("price"), {"min": {"field": "price"}}),
        (SingleValueMetricAggregation.avg("price"), {"avg": {"field": "price"}}),
        (SingleValueMetricAggregation.sum("price"), {"sum": {"field": "price"}}),
        (
            SingleValueMetricAggregation.cardinality("user")
            .with_precision_threshold(100)
            .with_missing("anonymous"),
            {
                "cardinality": {
                    "field": "user",
                    "precision_threshold": 100,
                    "missing": "anonymous",
                }
            },
        ),
        (
            SingleValueMetricAggregation(SingleValueAggType.MAX, "price"),
            {"max": {"field": "price"}},
        ),
        (PercentilesAggregation("latency"), {"percentiles": {"field": "latency"}}),
        (
            PercentilesAggregation("latency").with_percents(50, 99.9).with_missing(0),
            {"percentiles": {"field": "latency", "percents": [50, 99.9], "missing": 0}},
        ),
        (TermsAggregation("f"), {"terms": {"field": "f"}}),
        (
            DateHistogramAggregation("ts", "1d")
            .with_min_doc_count(0)
            .with_time_zone("Europe/Paris"),
            {
                "date_histogram": {
                    "field": "ts",
                    "interval": "1d",
                    "min_doc_count": 0,
                    "time_zone": "Europe/Paris",
                }
            },
        ),
        (
            RangeAggregation("price").add_range(to=10).add_keyed_range("mid", 10, 20),
            {
                "range": {
                    "field": "price",
                    "ranges": [{"to": 10}, {"key": "mid", "from": 10, "to": 20}],
                }
            },
        ),
        (
            DateRangeAggregation("ts")
            .add_ranges(RangeBucket(from_="now-10d/d"), RangeBucket(to="now-10d/d"))
            .with_format("MM-yyyy"),
            {
                "date_range": {
                    "field": "ts",
                    "ranges": [{"from": "now-10d/d"}, {"to": "now-10d/d"}],
                    "format": "MM-yyyy",
                }
            },
        ),
        (FilterAggregation(Term("type", "t-shirt")), {"filter": {"term": {"type": "t-shirt"}}}),
        (BucketSortAggregation(), {"bucket_sort": {}}),
        (
            BucketSortAggregation().with_from(0).with_size(3).add_sort("total", desc=True),
            {
                "bucket_sort": {
                    "from": 0,
                    "size": 3,
                    "sort": [{"total": {"order": "desc"}}],
                }
            },
        ),
    ],
    ids=[
        "max",
        "min",
        "avg",
        "sum",
        "cardinality",
        "metric from enum",
        "percentiles",
        "percentiles with options",
        "terms",
        "date_histogram",
        "range",
        "date_range",
        "filter",
        "bucket_sort empty",
        "bucket_sort",
    ],
)
def test_aggregation_wire_shapes(aggregation: Aggregation, expected: dict[str, Any]):
    assert aggregation.to_source() == expected
    assert orjson.loads(aggregation.serialize()) == expected


def test_terms_size_sentinel_is_omitted():
    assert TermsAggregation("f").with_size(-5).serialize() == b'{"terms":{"field":"f"}}'
    assert orjson.loads(TermsAggregation("f").with_size(10).serialize()) == {
        "terms": {"field": "f", "size": 10}
    }


def test_terms_with_every_option():
    aggregation = (
        TermsAggregation("genre")
        .with_size(5)
        .with_min_doc_count(2)
        .with_missing("N/A")
        .with_includes(["rock", "jazz"])
        .with_exclude("pop.*")
        .add_order(Order("_count", desc=True), Order("_key"))
    )

    assert aggregation.to_source() == {
        "terms": {
            "field": "genre",
            "size": 5,
            "order": [{"_count": "desc"}, {"_key": "asc"}],
            "include": ["rock", "jazz"],
            "exclude": "pop.*",
            "min_doc_count": 2,
            "missing": "N/A",
        }
    }


def test_sub_aggregations_emit_aggs_sibling():
    aggregation = TermsAggregation("f").add_sub_aggregation(
        "x", SingleValueMetricAggregation.avg("price")
    )

    assert aggregation.to_source() == {
        "terms": {"field": "f"},
        "aggs": {"x": {"avg": {"field": "price"}}},
    }


def test_sub_aggregation_name_collision_overwrites():
    aggregation = (
        FilterAggregation(Term("a", 1))
        .add_sub_aggregation("x", SingleValueMetricAggregation.min("p"))
        .add_sub_aggregation("x", SingleValueMetricAggregation.max("p"))
    )

    assert aggregation.sub_aggregations() == {"x": SingleValueMetricAggregation.max("p")}
    assert aggregation.to_source()["aggs"] == {"x": {"max": {"field": "p"}}}


def test_deeply_nested_sub_aggregations():
    aggregation = DateHistogramAggregation("ts", "1M").add_sub_aggregation(
        "sales",
        RangeAggregation("price")
        .add_range(to=100)
        .add_sub_aggregation(
            "top",
            TermsAggregation("sku")
            .with_size(3)
            .add_sub_aggregation("sort", BucketSortAggregation().with_size(1)),
        ),
    )

    assert aggregation.to_source() == {
        "date_histogram": {"field": "ts", "interval": "1M"},
        "aggs": {
            "sales": {
                "range": {"field": "price", "ranges": [{"to": 100}]},
                "aggs": {
                    "top": {
                        "terms": {"field": "sku", "size": 3},
                        "aggs": {"sort": {"bucket_sort": {"size": 1}}},
                    }
                },
            }
        },
    }


def test_invalid_aggregation_refuses_to_serialize():
    with pytest.raises(ValidationError) as exc_info:
        TermsAggregation("f").with_include("x").with_includes(["a"]).serialize()

    assert len(exc_info.value.results) == 1


def test_build_aggregation_rejects_missing_filter():
    with pytest.raises(ValidationError) as exc_info:
        build_aggregation(FilterAggregation(None))

    assert exc_info.value.results.messages == [
        "a FilterAggregation requires a filter query"
    ]
