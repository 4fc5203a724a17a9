"""Aggregation nodes for the store's search DSL.

Integer options documented as "sentinel" (size, min_doc_count, from,
precision_threshold) are initialized to -1; any negative value is omitted from
the compiled output so the store applies its own default.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Self

from loguru import logger as log

from storequery.query import Query
from storequery.types.general import JsonObject
from storequery.validation import ValidationResults

UNSET = -1


class Aggregation:
    """Base class of every aggregation node."""

    __slots__ = ()

    def validate(self) -> ValidationResults:
        """Collect every problem in this aggregation and its sub-aggregations."""
        from storequery.compiler.validate import validate_aggregation  # noqa: PLC0415

        return validate_aggregation(self)

    def to_source(self) -> JsonObject:
        """Build the JSON-compatible source for this aggregation, validating first."""
        from storequery.compiler.serialize import aggregation_source  # noqa: PLC0415

        return aggregation_source(self)

    def serialize(self) -> bytes:
        """Serialize this aggregation to JSON bytes, validating first."""
        from storequery.compiler.serialize import serialize  # noqa: PLC0415

        return serialize(self)


@dataclass(frozen=True, slots=True)
class Order:
    """Sort order for the buckets of a bucket aggregation."""

    target: str
    desc: bool = False


class SingleValueAggType(str, Enum):
    """The known single-value metric aggregations."""

    CARDINALITY = "cardinality"
    MAX = "max"
    MIN = "min"
    AVG = "avg"
    SUM = "sum"


VALID_SINGLE_VALUE_TYPES = frozenset(t.value for t in SingleValueAggType)


@dataclass(slots=True)
class SingleValueMetricAggregation(Aggregation):
    """One of the single-value metric aggregations, selected by agg_type.

    precision_threshold only has meaning for cardinality.
    """

    agg_type: str
    field: str
    precision_threshold: int = UNSET
    missing: Any = None

    @classmethod
    def cardinality(cls, field: str) -> Self:
        """Approximate count of distinct values."""
        return cls(SingleValueAggType.CARDINALITY.value, field)

    @classmethod
    def max(cls, field: str) -> Self:
        """Largest value."""
        return cls(SingleValueAggType.MAX.value, field)

    @classmethod
    def min(cls, field: str) -> Self:
        """Smallest value."""
        return cls(SingleValueAggType.MIN.value, field)

    @classmethod
    def avg(cls, field: str) -> Self:
        """Mean value."""
        return cls(SingleValueAggType.AVG.value, field)

    @classmethod
    def sum(cls, field: str) -> Self:
        """Sum of values."""
        return cls(SingleValueAggType.SUM.value, field)

    def with_precision_threshold(self, threshold: int) -> Self:
        """Set the count below which cardinality is expected to be near exact."""
        self.precision_threshold = threshold
        return self

    def with_missing(self, missing: Any) -> Self:
        """Substitute this value for documents lacking the field."""
        self.missing = missing
        return self


@dataclass(slots=True)
class PercentilesAggregation(Aggregation):
    """Values at or below which a percentage of the data falls."""

    field: str
    percents: list[float] = field(default_factory=list[float])
    missing: Any = None

    def with_percents(self, *percents: float) -> Self:
        """Request specific percentiles instead of the store defaults."""
        self.percents = list(percents)
        return self

    def with_missing(self, missing: Any) -> Self:
        """Substitute this value for documents lacking the field."""
        self.missing = missing
        return self


@dataclass(slots=True)
class BucketAggregation(Aggregation):
    """An aggregation whose buckets may carry named sub-aggregations."""

    aggregations: dict[str, Aggregation] = field(
        default_factory=dict[str, Aggregation], kw_only=True
    )

    def add_sub_aggregation(self, name: str, aggregation: Aggregation) -> Self:
        """Add a named sub-aggregation; an existing entry with the same name is replaced."""
        if name in self.aggregations:
            log.debug(f"Replacing sub-aggregation '{name}' on {type(self).__name__}")
        self.aggregations[name] = aggregation
        return self

    def sub_aggregations(self) -> dict[str, Aggregation]:
        """Every sub-aggregation keyed by name."""
        return self.aggregations


@dataclass(slots=True)
class TermsAggregation(BucketAggregation):
    """One bucket per unique value of a field.

    include/include_values (and exclude/exclude_values) are mutually exclusive:
    the first is a regular expression, the second a list of exact values.
    """

    field: str
    size: int = UNSET
    min_doc_count: int = UNSET
    missing: str = ""
    include: str = ""
    include_values: list[str] = field(default_factory=list[str])
    exclude: str = ""
    exclude_values: list[str] = field(default_factory=list[str])
    order: list[Order] = field(default_factory=list[Order])

    def with_size(self, size: int) -> Self:
        """Number of buckets to return."""
        self.size = size
        return self

    def with_min_doc_count(self, count: int) -> Self:
        """Lower document count threshold for a bucket to be returned."""
        self.min_doc_count = count
        return self

    def with_missing(self, missing: str) -> Self:
        """Bucket documents lacking the field under this label."""
        self.missing = missing
        return self

    def with_include(self, pattern: str) -> Self:
        """Only bucket values matching a regular expression."""
        self.include = pattern
        return self

    def with_includes(self, values: list[str]) -> Self:
        """Only bucket these exact values."""
        self.include_values = list(values)
        return self

    def with_exclude(self, pattern: str) -> Self:
        """Skip values matching a regular expression."""
        self.exclude = pattern
        return self

    def with_excludes(self, values: list[str]) -> Self:
        """Skip these exact values."""
        self.exclude_values = list(values)
        return self

    def add_order(self, *orders: Order) -> Self:
        """Append bucket orderings, applied in the given sequence."""
        self.order.extend(orders)
        return self


@dataclass(slots=True)
class DateHistogramAggregation(BucketAggregation):
    """Buckets documents by a date interval."""

    field: str
    interval: str
    min_doc_count: int = UNSET
    time_zone: str = ""
    order: list[Order] = field(default_factory=list[Order])

    def with_min_doc_count(self, count: int) -> Self:
        """Lower document count threshold for a bucket to be returned."""
        self.min_doc_count = count
        return self

    def with_time_zone(self, time_zone: str) -> Self:
        """Bucket in this time zone rather than UTC."""
        self.time_zone = time_zone
        return self

    def add_order(self, *orders: Order) -> Self:
        """Append bucket orderings, applied in the given sequence."""
        self.order.extend(orders)
        return self


@dataclass(frozen=True, slots=True, kw_only=True)
class RangeBucket:
    """One caller-defined bucket: from is inclusive, to is exclusive."""

    from_: Any = None
    to: Any = None
    key: str = ""


@dataclass(slots=True)
class RangeAggregation(BucketAggregation):
    """Buckets documents into caller-defined ranges of a field."""

    field: str
    ranges: list[RangeBucket] = field(default_factory=list[RangeBucket])

    def add_range(self, from_: Any = None, to: Any = None) -> Self:
        """Add an un-keyed range; the store labels it "{from}-{to}"."""
        self.ranges.append(RangeBucket(from_=from_, to=to))
        return self

    def add_keyed_range(self, key: str, from_: Any = None, to: Any = None) -> Self:
        """Add a range labelled with key."""
        self.ranges.append(RangeBucket(from_=from_, to=to, key=key))
        return self

    def add_ranges(self, *ranges: RangeBucket) -> Self:
        """Add any number of prepared ranges."""
        self.ranges.extend(ranges)
        return self


@dataclass(slots=True)
class DateRangeAggregation(RangeAggregation):
    """A RangeAggregation over dates, supporting date math and formatting."""

    format: str = ""

    def with_format(self, date_format: str) -> Self:
        """Date format for the from/to strings in the results."""
        self.format = date_format
        return self


@dataclass(slots=True)
class FilterAggregation(BucketAggregation):
    """Narrows the document set with a query before running sub-aggregations."""

    filter: Query | None


@dataclass(frozen=True, slots=True)
class BucketSortField:
    """A sort key for BucketSortAggregation."""

    field: str
    desc: bool = False


@dataclass(slots=True)
class BucketSortAggregation(Aggregation):
    """Pipeline aggregation sorting and truncating its parent's buckets."""

    from_: int = UNSET
    size: int = UNSET
    sort: list[BucketSortField] = field(default_factory=list[BucketSortField])

    def with_from(self, from_: int) -> Self:
        """Number of buckets to skip."""
        self.from_ = from_
        return self

    def with_size(self, size: int) -> Self:
        """Number of buckets to return."""
        self.size = size
        return self

    def add_sort(self, field: str, desc: bool = False) -> Self:
        """Sort the parent's buckets by field."""
        self.sort.append(BucketSortField(field, desc))
        return self
