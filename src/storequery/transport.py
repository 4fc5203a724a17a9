"""The boundary between request building and the network.

storequery never opens connections itself; an Executor hands each serialized
request to a Transport and decodes whatever comes back.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from elasticsearch import AsyncElasticsearch
from elasticsearch import exceptions as es_exceptions
from loguru import logger as log

from storequery.config.general import CONFIG, TransportSettings


@dataclass(frozen=True, slots=True)
class TransportResponse:
    """What a transport returns: status, headers and the raw (or client-decoded) body."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict[str, str])
    body: bytes | str | Mapping[str, Any] = b""


class Transport(Protocol):
    """Performs one HTTP round-trip against the store."""

    async def perform_request(
        self,
        method: str,
        path: str,
        body: bytes | None,
        headers: Mapping[str, str],
    ) -> TransportResponse:
        """Send body to path; failures are raised unchanged to the caller."""
        ...


class ElasticsearchTransport:
    """A Transport backed by the official async Elasticsearch client."""

    def __init__(
        self,
        client: AsyncElasticsearch | None = None,
        settings: TransportSettings | None = None,
    ) -> None:
        """Wrap an existing client, or build one from settings (CONFIG.transport by default)."""
        self.settings: TransportSettings = settings or CONFIG.transport
        self._client: AsyncElasticsearch | None = client

    def _build_client(self) -> AsyncElasticsearch:
        settings = self.settings
        kwargs = dict[str, Any](
            request_timeout=settings.request_timeout,
            verify_certs=settings.verify_certs,
        )
        if settings.api_key is not None:
            kwargs["api_key"] = settings.api_key.get_secret_value()
        elif settings.username:
            kwargs["basic_auth"] = (
                settings.username,
                settings.password.get_secret_value(),
            )
        log.debug(f"Creating Elasticsearch client for {settings.url}")
        return AsyncElasticsearch(settings.url, **kwargs)

    @property
    def client(self) -> AsyncElasticsearch:
        """The underlying client, created on first use."""
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def perform_request(
        self,
        method: str,
        path: str,
        body: bytes | None,
        headers: Mapping[str, str],
    ) -> TransportResponse:
        """Send a request through the Elasticsearch client."""
        try:
            response = await self.client.perform_request(
                method, path, headers=dict(headers), body=body
            )
        except es_exceptions.ApiError:
            log.exception(f"Store returned an error status for {method} {path}")
            raise
        except es_exceptions.TransportError:
            log.exception(f"Transport error during {method} {path}")
            raise
        return TransportResponse(
            status_code=response.meta.status,
            headers=dict(response.meta.headers),
            body=response.body,
        )

    async def close(self) -> None:
        """Close the underlying client, if one was created."""
        if self._client is not None:
            await self._client.close()
        self._client = None
