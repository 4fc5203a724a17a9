"""Result types for each aggregation, decoded from their raw JSON by from_dict.

Bucket results follow one rule: the keys a result type reads into its fields are
consumed, and every other key is taken to be a sub-aggregation result, kept
undecoded in the bucket's own `aggregations` map.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Self

from storequery.errors import DecodeError
from storequery.results.decode import (
    is_object,
    read_float,
    read_int,
    read_list,
    read_object,
    read_str,
)
from storequery.results.named import SubAggregationResults
from storequery.types.general import RawPayload

TERM_BUCKET_KEYS = frozenset(
    ("key", "key_as_string", "doc_count", "doc_count_error_upper_bound")
)
DATE_HISTOGRAM_BUCKET_KEYS = frozenset(("key", "key_as_string", "doc_count"))
RANGE_BUCKET_KEYS = frozenset(
    ("key", "from", "from_as_string", "to", "to_as_string", "doc_count")
)
FILTER_RESULT_KEYS = frozenset(("doc_count",))

TERMS_RESULT_KEYS = frozenset(
    ("doc_count_error_upper_bound", "sum_other_doc_count", "buckets")
)
BUCKETS_RESULT_KEYS = frozenset(("buckets",))


def _sub_aggregations(
    data: Mapping[str, Any], consumed: frozenset[str]
) -> dict[str, RawPayload]:
    return {k: v for k, v in data.items() if k not in consumed}


def _reject_unknown(data: Mapping[str, Any], allowed: frozenset[str], what: str) -> None:
    for key in data:
        if key not in allowed:
            raise DecodeError(f"unexpected key '{key}' in {what}", field=key)


def _bucket_object(item: Any) -> Mapping[str, Any]:
    if not is_object(item):
        raise DecodeError(
            f"buckets must contain objects, got {type(item).__name__}",
            field="buckets",
        )
    return item


def _read_buckets[B](
    data: Mapping[str, Any], parse: Callable[[Mapping[str, Any]], B]
) -> list[B]:
    """Parse `buckets`, accepting both the list and the keyed-object forms."""
    raw = data.get("buckets")
    if is_object(raw):
        return [
            parse({"key": key, **_bucket_object(bucket)}) for key, bucket in raw.items()
        ]
    return [parse(_bucket_object(item)) for item in read_list(data, "buckets")]


@dataclass(frozen=True, slots=True, kw_only=True)
class SingleValueAggregationResult:
    """Result of cardinality, max, min, avg and sum.

    value is None when no document had the field.
    """

    value: float | None = None
    value_as_string: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a single-value metric result."""
        return cls(
            value=read_float(data, "value"),
            value_as_string=read_str(data, "value_as_string"),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class PercentilesAggregationResult:
    """Result of a percentiles aggregation, keyed by percentile (e.g. "99.0")."""

    values: dict[str, float | None] = field(default_factory=dict[str, float | None])
    values_as_string: dict[str, str] = field(default_factory=dict[str, str])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a percentiles result."""
        raw = read_object(data, "values") or {}
        values = dict[str, float | None]()
        as_string = dict[str, str]()
        for key in raw:
            if key.endswith("_as_string"):
                as_string[key.removesuffix("_as_string")] = read_str(raw, key)
            else:
                values[key] = read_float(raw, key)
        return cls(values=values, values_as_string=as_string)


@dataclass(frozen=True, slots=True, kw_only=True)
class TermBucketResult(SubAggregationResults):
    """One bucket of a terms aggregation."""

    key: Any = None
    key_as_string: str = ""
    doc_count: int = 0
    doc_count_error_upper_bound: int = 0
    aggregations: dict[str, RawPayload] = field(default_factory=dict[str, RawPayload])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a terms bucket; unknown keys are sub-aggregation results."""
        return cls(
            key=data.get("key"),
            key_as_string=read_str(data, "key_as_string"),
            doc_count=read_int(data, "doc_count"),
            doc_count_error_upper_bound=read_int(data, "doc_count_error_upper_bound"),
            aggregations=_sub_aggregations(data, TERM_BUCKET_KEYS),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class TermsAggregationResults:
    """Result of a terms aggregation."""

    doc_count_error_upper_bound: int = 0
    sum_other_doc_count: int = 0
    buckets: list[TermBucketResult] = field(default_factory=list[TermBucketResult])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a terms result; unknown keys are a DecodeError."""
        _reject_unknown(data, TERMS_RESULT_KEYS, "terms aggregation results")
        return cls(
            doc_count_error_upper_bound=read_int(data, "doc_count_error_upper_bound"),
            sum_other_doc_count=read_int(data, "sum_other_doc_count"),
            buckets=_read_buckets(data, TermBucketResult.from_dict),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class DateHistogramBucketResult(SubAggregationResults):
    """One interval of a date histogram; key is epoch milliseconds."""

    key: int = 0
    key_as_string: str = ""
    doc_count: int = 0
    aggregations: dict[str, RawPayload] = field(default_factory=dict[str, RawPayload])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a date histogram bucket; unknown keys are sub-aggregation results."""
        return cls(
            key=read_int(data, "key"),
            key_as_string=read_str(data, "key_as_string"),
            doc_count=read_int(data, "doc_count"),
            aggregations=_sub_aggregations(data, DATE_HISTOGRAM_BUCKET_KEYS),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class DateHistogramAggregationResults:
    """Result of a date histogram aggregation."""

    buckets: list[DateHistogramBucketResult] = field(
        default_factory=list[DateHistogramBucketResult]
    )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a date histogram result; unknown keys are a DecodeError."""
        _reject_unknown(data, BUCKETS_RESULT_KEYS, "date histogram aggregation results")
        return cls(buckets=_read_buckets(data, DateHistogramBucketResult.from_dict))


@dataclass(frozen=True, slots=True, kw_only=True)
class RangeBucketResult(SubAggregationResults):
    """One range of a range or date range aggregation."""

    key: str = ""
    from_: float | None = None
    from_as_string: str = ""
    to: float | None = None
    to_as_string: str = ""
    doc_count: int = 0
    aggregations: dict[str, RawPayload] = field(default_factory=dict[str, RawPayload])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a range bucket; unknown keys are sub-aggregation results."""
        return cls(
            key=read_str(data, "key"),
            from_=read_float(data, "from"),
            from_as_string=read_str(data, "from_as_string"),
            to=read_float(data, "to"),
            to_as_string=read_str(data, "to_as_string"),
            doc_count=read_int(data, "doc_count"),
            aggregations=_sub_aggregations(data, RANGE_BUCKET_KEYS),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class RangeAggregationResults:
    """Result of a range aggregation."""

    buckets: list[RangeBucketResult] = field(default_factory=list[RangeBucketResult])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a range result; unknown keys are a DecodeError."""
        _reject_unknown(data, BUCKETS_RESULT_KEYS, cls.__name__)
        return cls(buckets=_read_buckets(data, RangeBucketResult.from_dict))


@dataclass(frozen=True, slots=True, kw_only=True)
class DateRangeAggregationResults(RangeAggregationResults):
    """Result of a date range aggregation; from/to are epoch milliseconds."""


@dataclass(frozen=True, slots=True, kw_only=True)
class FilterAggregationResults(SubAggregationResults):
    """Result of a filter aggregation: a count plus its sub-aggregation results."""

    doc_count: int = 0
    aggregations: dict[str, RawPayload] = field(default_factory=dict[str, RawPayload])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Parse a filter result; every key but doc_count is a sub-aggregation result."""
        return cls(
            doc_count=read_int(data, "doc_count"),
            aggregations=_sub_aggregations(data, FILTER_RESULT_KEYS),
        )
