"""Typed builders for store queries, aggregations and bulk requests, and decoders for their responses."""

from storequery.aggregation import (
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
from storequery.bulk import (
    ActionResponse,
    BulkAction,
    BulkActionType,
    BulkRequest,
    BulkResponse,
    DocumentRef,
)
from storequery.errors import DecodeError, FramingError, StoreQueryError
from storequery.executor import Executor, StoreResponse
from storequery.query import (
    Bool,
    Exists,
    IDs,
    Match,
    MatchAll,
    MatchPhrase,
    Nested,
    Prefix,
    Range,
    Regex,
    Term,
    Terms,
    Wildcard,
)
from storequery.results.named import DecodeFailed, Found, Missing, read_named
from storequery.results.response import SearchResponse, read_document
from storequery.search import SearchRequest, Sort
from storequery.transport import ElasticsearchTransport, Transport, TransportResponse
from storequery.types.general import Refresh
from storequery.validation import ValidationError, ValidationResult, ValidationResults

__all__ = [
    "ActionResponse",
    "Bool",
    "BucketSortAggregation",
    "BulkAction",
    "BulkActionType",
    "BulkRequest",
    "BulkResponse",
    "DateHistogramAggregation",
    "DateRangeAggregation",
    "DecodeError",
    "DecodeFailed",
    "DocumentRef",
    "ElasticsearchTransport",
    "Executor",
    "Exists",
    "FilterAggregation",
    "Found",
    "FramingError",
    "IDs",
    "Match",
    "MatchAll",
    "MatchPhrase",
    "Missing",
    "Nested",
    "Order",
    "PercentilesAggregation",
    "Prefix",
    "Range",
    "RangeAggregation",
    "RangeBucket",
    "Refresh",
    "Regex",
    "SearchRequest",
    "SearchResponse",
    "SingleValueAggType",
    "SingleValueMetricAggregation",
    "Sort",
    "StoreQueryError",
    "StoreResponse",
    "Term",
    "Terms",
    "TermsAggregation",
    "Transport",
    "TransportResponse",
    "ValidationError",
    "ValidationResult",
    "ValidationResults",
    "Wildcard",
    "read_document",
    "read_named",
]
