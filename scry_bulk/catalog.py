"""Client for the bulk-data catalog endpoint."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from .exceptions import CatalogFetchError, CatalogFormatError, SnapshotTypeNotFoundError
from .schemas.snapshot import SnapshotDescriptor
from .utils.config import GlobalSettings, get_settings
from .utils.http import build_client, next_redirect
from .utils.logging import setup_logger
from .utils.retry import RetryConfig, execute_with_retry


class SnapshotCatalogClient:
    """Fetch the list of available snapshots and pick one by type."""

    logger = setup_logger(__name__, context={"stage": "catalog"})

    def __init__(
        self,
        *,
        catalog_url: str,
        user_agent: str,
        timeout: float = 60.0,
        max_redirects: int = 5,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.catalog_url = catalog_url
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.retry_config = retry_config or RetryConfig()
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: GlobalSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SnapshotCatalogClient:
        settings = settings or get_settings()
        return cls(
            catalog_url=settings.catalog_url,
            user_agent=settings.user_agent,
            timeout=settings.http_timeout,
            max_redirects=settings.max_redirects,
            retry_config=settings.retry,
            transport=transport,
        )

    async def fetch_catalog(self) -> list[SnapshotDescriptor]:
        """
        Retrieve every snapshot descriptor advertised by the catalog.

        Returns:
            Descriptors in catalog order

        Raises:
            CatalogFetchError: On transport failure or a non-200 status
            CatalogFormatError: If the body is not JSON or lacks a ``data`` array
            TooManyRedirectsError: If the redirect chain exceeds the limit
        """
        self.logger.info("Fetching bulk data catalog from %s", self.catalog_url)
        response = await self._get(self.catalog_url)

        if response.status_code != 200:
            raise CatalogFetchError.from_status(response.status_code, response.reason_phrase)

        try:
            body = response.json()
        except ValueError as exc:
            raise CatalogFormatError(f"Failed to parse catalog response as JSON: {exc}") from exc

        return self._parse_descriptors(body)

    @staticmethod
    def select_by_type(
        catalog: Sequence[SnapshotDescriptor],
        snapshot_type: str,
    ) -> SnapshotDescriptor:
        """Return the descriptor whose ``type`` equals ``snapshot_type`` exactly."""

        for descriptor in catalog:
            if descriptor.type == snapshot_type:
                return descriptor
        raise SnapshotTypeNotFoundError(snapshot_type, [d.type for d in catalog])

    async def _get(self, url: str) -> httpx.Response:
        hops = 0
        try:
            async with build_client(
                user_agent=self.user_agent,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                while True:
                    target = url

                    async def _send() -> httpx.Response:
                        return await client.get(target)

                    response = await execute_with_retry(
                        _send,
                        retry_config=self.retry_config,
                        log=self.logger,
                    )
                    redirect_url = next_redirect(
                        response, hops=hops, max_redirects=self.max_redirects
                    )
                    if redirect_url is None:
                        return response
                    self.logger.debug("Catalog redirected %s -> %s", url, redirect_url)
                    hops += 1
                    url = redirect_url
        except httpx.TimeoutException as exc:
            raise CatalogFetchError(
                f"Catalog request timed out after {self.timeout} seconds"
            ) from exc
        except httpx.HTTPError as exc:
            raise CatalogFetchError(f"Catalog request failed: {exc}") from exc

    def _parse_descriptors(self, body: Any) -> list[SnapshotDescriptor]:
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise CatalogFormatError("Invalid catalog response - missing data array")

        descriptors: list[SnapshotDescriptor] = []
        for index, entry in enumerate(data):
            try:
                descriptors.append(SnapshotDescriptor.model_validate(entry))
            except PydanticValidationError as exc:
                raise CatalogFormatError(f"Invalid catalog entry at index {index}: {exc}") from exc

        self.logger.debug("Catalog lists %d snapshot types", len(descriptors))
        return descriptors
