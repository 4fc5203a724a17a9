from typing import Any

import orjson
import pytest
from pydantic import BaseModel

from storequery.errors import DecodeError
from storequery.results.aggregations import (
    DateHistogramAggregationResults,
    DateRangeAggregationResults,
    FilterAggregationResults,
    PercentilesAggregationResult,
    RangeAggregationResults,
    SingleValueAggregationResult,
    TermsAggregationResults,
)
from storequery.results.named import DecodeFailed, Found, Missing, read_named
from storequery.results.response import SearchResponse, read_document

SEARCH_BODY: dict[str, Any] = {
    "took": 12,
    "timed_out": False,
    "_shards": {"total": 3, "successful": 3, "skipped": 0, "failed": 0},
    "hits": {
        "total": {"value": 2, "relation": "eq"},
        "max_score": 1.5,
        "hits": [
            {
                "_index": "products",
                "_id": "a",
                "_score": 1.5,
                "_source": {"name": "lamp", "price": 30},
            },
            {"_index": "products", "_id": "b", "_score": 0.5, "_source": None},
        ],
    },
    "aggregations": {
        "a": {"value": 42.0},
        "b": {
            "doc_count_error_upper_bound": 0,
            "sum_other_doc_count": 3,
            "buckets": [
                {
                    "key": "lamp",
                    "doc_count": 7,
                    "avg_price": {"value": 31.5},
                },
                {"key": "desk", "doc_count": 2},
            ],
        },
    },
    "pit_id": "xyz",
}


class Product(BaseModel):
    name: str
    price: int


def test_search_response_decodes_known_fields():
    response = SearchResponse.parse(orjson.dumps(SEARCH_BODY))

    assert response.took == 12
    assert not response.timed_out
    assert response.shards.total == 3
    assert response.hits.total.value == 2
    assert response.hits.total.relation == "eq"
    assert response.hits.max_score == 1.5
    assert [hit.id for hit in response.hits.hits] == ["a", "b"]
    assert response.error is None
    assert response.keys() == ["a", "b"]
    assert response.extras == {"pit_id": "xyz"}


def test_named_extraction_found_and_missing():
    response = SearchResponse.from_dict(SEARCH_BODY)

    found = read_named(response, "a", SingleValueAggregationResult)
    assert found == Found(SingleValueAggregationResult(value=42.0))

    missing = read_named(response, "c", SingleValueAggregationResult)
    assert missing == Missing("c")


def test_named_extraction_reports_decode_failures_distinctly():
    response = SearchResponse.from_dict(SEARCH_BODY)

    # "a" is not a terms result: unexpected key "value"
    result = read_named(response, "a", TermsAggregationResults)

    assert isinstance(result, DecodeFailed)
    assert result.name == "a"
    assert isinstance(result.error, DecodeError)


def test_bucket_results_expose_sub_aggregations():
    response = SearchResponse.from_dict(SEARCH_BODY)

    match read_named(response, "b", TermsAggregationResults):
        case Found(value=terms):
            pass
        case other:
            pytest.fail(f"expected terms results, got {other}")

    assert terms.sum_other_doc_count == 3
    assert [bucket.key for bucket in terms.buckets] == ["lamp", "desk"]
    assert terms.buckets[0].doc_count == 7
    assert terms.buckets[0].keys() == ["avg_price"]
    assert read_named(terms.buckets[0], "avg_price", SingleValueAggregationResult) == (
        Found(SingleValueAggregationResult(value=31.5))
    )
    assert read_named(terms.buckets[1], "avg_price", SingleValueAggregationResult) == (
        Missing("avg_price")
    )


def test_named_extraction_with_plain_types():
    response = SearchResponse.from_dict({"aggregations": {"raw": {"value": 3}}})

    assert read_named(response, "raw", dict[str, int]) == Found({"value": 3})
    assert isinstance(read_named(response, "raw", list[int]), DecodeFailed)


def test_read_document():
    response = SearchResponse.from_dict(SEARCH_BODY)

    assert read_document(response.hits.hits[0], Product) == Product(name="lamp", price=30)
    with pytest.raises(DecodeError):
        read_document(response.hits.hits[1], Product)


def test_search_response_error_and_legacy_total():
    response = SearchResponse.from_dict(
        {
            "hits": {"total": 5, "hits": []},
            "error": {
                "type": "index_not_found_exception",
                "reason": "no such index [nope]",
                "index": "nope",
                "resource.id": "nope",
                "resource.type": "index_or_alias",
                "index_uuid": "_na_",
                "root_cause": [
                    {"type": "index_not_found_exception", "reason": "no such index [nope]"}
                ],
            },
            "status": 404,
        }
    )

    assert response.hits.total.value == 5
    assert response.error is not None
    assert response.error.resource_id == "nope"
    assert response.error.resource_type == "index_or_alias"
    assert response.error.root_cause[0].type == "index_not_found_exception"
    assert response.extras == {"status": 404}


@pytest.mark.parametrize(
    "body",
    [b"not json", b"[]", b'{"took": "soon"}', b'{"hits": {"hits": [1]}}'],
    ids=["invalid json", "array", "bad took", "bad hit"],
)
def test_search_response_rejects_malformed_top_level(body: bytes):
    with pytest.raises(DecodeError):
        SearchResponse.parse(body)


def test_terms_results_are_strict_at_results_level():
    with pytest.raises(DecodeError) as exc_info:
        TermsAggregationResults.from_dict({"buckets": [], "surprise": 1})
    assert exc_info.value.field == "surprise"


def test_date_histogram_results():
    results = DateHistogramAggregationResults.from_dict(
        {
            "buckets": [
                {
                    "key_as_string": "2024-01-01",
                    "key": 1704067200000,
                    "doc_count": 3,
                    "max_price": {"value": 10.0},
                }
            ]
        }
    )

    bucket = results.buckets[0]
    assert bucket.key == 1704067200000
    assert bucket.key_as_string == "2024-01-01"
    assert bucket.doc_count == 3
    assert bucket.aggregations == {"max_price": {"value": 10.0}}


def test_range_results_list_and_keyed_forms():
    listed = RangeAggregationResults.from_dict(
        {
            "buckets": [
                {"key": "*-10.0", "to": 10.0, "doc_count": 1},
                {"key": "10.0-*", "from": 10.0, "doc_count": 4},
            ]
        }
    )
    keyed = DateRangeAggregationResults.from_dict(
        {
            "buckets": {
                "old": {
                    "to": 1.0e12,
                    "to_as_string": "2001-09-09",
                    "doc_count": 2,
                }
            }
        }
    )

    assert listed.buckets[0].to == 10.0
    assert listed.buckets[0].from_ is None
    assert listed.buckets[1].from_ == 10.0
    assert keyed.buckets[0].key == "old"
    assert keyed.buckets[0].to_as_string == "2001-09-09"
    assert keyed.buckets[0].doc_count == 2


def test_filter_and_metric_results():
    filtered = FilterAggregationResults.from_dict(
        {"doc_count": 9, "avg_price": {"value": None}}
    )
    assert filtered.doc_count == 9
    assert read_named(filtered, "avg_price", SingleValueAggregationResult) == Found(
        SingleValueAggregationResult(value=None)
    )

    percentiles = PercentilesAggregationResult.from_dict(
        {"values": {"50.0": 12.5, "50.0_as_string": "12.5ms", "99.0": None}}
    )
    assert percentiles.values == {"50.0": 12.5, "99.0": None}
    assert percentiles.values_as_string == {"50.0": "12.5ms"}


def test_sub_aggregations_may_reuse_bucket_field_names():
    filtered = FilterAggregationResults.from_dict({"doc_count": 1, "to": {"value": 1}})
    terms = TermsAggregationResults.from_dict(
        {"buckets": [{"key": "lamp", "doc_count": 2, "to": {"value": 5.0}}]}
    )

    assert filtered.keys() == ["to"]
    assert read_named(filtered, "to", SingleValueAggregationResult) == Found(
        SingleValueAggregationResult(value=1.0)
    )
    assert terms.buckets[0].keys() == ["to"]
    assert terms.buckets[0].aggregations == {"to": {"value": 5.0}}


@pytest.mark.parametrize(
    "buckets",
    [{"old": 5}, [5]],
    ids=["keyed", "listed"],
)
def test_non_object_buckets_are_decode_errors(buckets: Any):
    with pytest.raises(DecodeError) as exc_info:
        RangeAggregationResults.from_dict({"buckets": buckets})
    assert exc_info.value.field == "buckets"
