from collections.abc import Mapping
from dataclasses import dataclass, field

from loguru import logger as log
from opentelemetry import trace

from storequery.bulk import BulkRequest, BulkResponse
from storequery.config.general import CONFIG
from storequery.results.response import SearchResponse
from storequery.search import SearchRequest
from storequery.transport import Transport
from storequery.validation import ValidationError, ValidationResults

tracer = trace.get_tracer("storequery.executor.tracer")

JSON_HEADERS = {"content-type": "application/json", "accept": "application/json"}
NDJSON_HEADERS = {
    "content-type": "application/x-ndjson",
    "accept": "application/json",
}


@dataclass(frozen=True, slots=True, kw_only=True)
class StoreResponse[T]:
    """A decoded response together with the request's validation results."""

    validation_results: ValidationResults
    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict[str, str])
    response: T


def _refuse_if_fatal(results: ValidationResults, what: str) -> None:
    if results.is_fatal():
        log.warning(f"Not executing {what}: {len(results)} validation result(s)")
        raise ValidationError(results)


class Executor:
    """Validates, serializes and sends requests through a Transport, then decodes the reply.

    Transport errors are not caught here.
    """

    def __init__(self, transport: Transport) -> None:
        """Instantiate an Executor over a transport."""
        self.transport: Transport = transport

    async def search(self, request: SearchRequest) -> StoreResponse[SearchResponse]:
        """Run a search request."""
        results = request.validate()
        _refuse_if_fatal(results, "search request")

        path = request.path(CONFIG.search.default_index)
        body = request.serialize()
        with tracer.start_as_current_span("storequery_search") as span:
            span.set_attribute("storequery.path", path)
            log.debug(f"POST {path} ({len(body)} bytes)")
            raw = await self.transport.perform_request(
                "POST", path, body, JSON_HEADERS
            )
            log.debug(f"POST {path} returned {raw.status_code}")
            span.set_attribute("storequery.status_code", raw.status_code)

        return StoreResponse(
            validation_results=results,
            status_code=raw.status_code,
            headers=raw.headers,
            response=SearchResponse.parse(raw.body),
        )

    async def bulk(self, request: BulkRequest) -> StoreResponse[BulkResponse]:
        """Run a bulk request."""
        results = request.validate()
        _refuse_if_fatal(results, "bulk request")

        path = request.path()
        body = request.to_ndjson()
        with tracer.start_as_current_span("storequery_bulk") as span:
            span.set_attribute("storequery.path", path)
            span.set_attribute("storequery.actions", len(request.actions))
            log.debug(f"POST {path} ({len(request.actions)} actions)")
            raw = await self.transport.perform_request(
                "POST", path, body, NDJSON_HEADERS
            )
            log.debug(f"POST {path} returned {raw.status_code}")
            span.set_attribute("storequery.status_code", raw.status_code)

        response = BulkResponse.parse(raw.body)
        if response.errors:
            log.warning(
                f"Bulk request to {path} reported {len(response.failures())} failed item(s)"
            )
        return StoreResponse(
            validation_results=results,
            status_code=raw.status_code,
            headers=raw.headers,
            response=response,
        )
