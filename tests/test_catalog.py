"""Test suite for SnapshotCatalogClient using HTTPX MockTransport."""

import json
from typing import Any

import httpx
import pytest

from scry_bulk.catalog import SnapshotCatalogClient
from scry_bulk.exceptions import (
    CatalogFetchError,
    CatalogFormatError,
    SnapshotTypeNotFoundError,
    TooManyRedirectsError,
)
from scry_bulk.utils.retry import RetryConfig

CATALOG_URL = "https://api.example.com/bulk-data"

CATALOG_BODY: dict[str, Any] = {
    "object": "list",
    "has_more": False,
    "data": [
        {
            "object": "bulk_data",
            "type": "oracle_cards",
            "name": "Oracle Cards",
            "updated_at": "2024-01-01T10:00:00.000+00:00",
            "download_uri": "https://data.example.com/oracle-cards.json",
            "size": 1024,
            "content_type": "application/json",
        },
        {
            "object": "bulk_data",
            "type": "all_cards",
            "name": "All Cards",
            "updated_at": "2024-01-01T12:00:00.000+00:00",
            "download_uri": "https://data.example.com/all-cards.json",
            "size": 4096,
            "content_type": "application/json",
        },
    ],
}


def build_transport(
    status_code: int,
    data: Any,
    *,
    headers: dict[str, str] | None = None,
) -> httpx.MockTransport:
    """Create a mock transport that returns the given response payload."""

    response_headers = {"content-type": "application/json"}
    if headers:
        response_headers.update(headers)

    async def handler(request: httpx.Request) -> httpx.Response:
        content = json.dumps(data).encode("utf-8") if isinstance(data, (dict, list)) else data
        return httpx.Response(
            status_code,
            headers=response_headers,
            content=content,
            request=request,
        )

    return httpx.MockTransport(handler)


def build_client(
    transport: httpx.AsyncBaseTransport,
    **overrides: Any,
) -> SnapshotCatalogClient:
    options: dict[str, Any] = {
        "catalog_url": CATALOG_URL,
        "user_agent": "ScryBulkTests/1.0",
        "transport": transport,
    }
    options.update(overrides)
    return SnapshotCatalogClient(**options)


@pytest.mark.asyncio
async def test_fetch_catalog_parses_descriptors() -> None:
    """Every catalog entry should become a SnapshotDescriptor in order."""

    client = build_client(build_transport(200, CATALOG_BODY))

    catalog = await client.fetch_catalog()

    assert [descriptor.type for descriptor in catalog] == ["oracle_cards", "all_cards"]
    all_cards = catalog[1]
    assert all_cards.download_uri == "https://data.example.com/all-cards.json"
    assert all_cards.size_bytes == 4096
    assert all_cards.updated_at.hour == 12


@pytest.mark.asyncio
async def test_fetch_catalog_sends_user_agent() -> None:
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=CATALOG_BODY, request=request)

    client = build_client(httpx.MockTransport(handler))
    await client.fetch_catalog()

    assert seen[0].headers["User-Agent"] == "ScryBulkTests/1.0"
    assert seen[0].headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_fetch_catalog_non_200_reports_status() -> None:
    """A 500 response should fail with the status and reason in the message."""

    client = build_client(build_transport(500, {"error": "server"}))

    with pytest.raises(CatalogFetchError) as exc_info:
        await client.fetch_catalog()

    assert "HTTP 500" in str(exc_info.value)
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_fetch_catalog_retries_transient_status() -> None:
    responses = iter([503, 200])

    async def handler(request: httpx.Request) -> httpx.Response:
        status = next(responses)
        body = CATALOG_BODY if status == 200 else {"error": "busy"}
        return httpx.Response(status, json=body, request=request)

    client = build_client(
        httpx.MockTransport(handler),
        retry_config=RetryConfig(enabled=True, max_attempts=3, backoff_factor=0.01),
    )

    catalog = await client.fetch_catalog()

    assert len(catalog) == 2


@pytest.mark.asyncio
async def test_fetch_catalog_rejects_invalid_json() -> None:
    client = build_client(build_transport(200, b"<html>not json</html>"))

    with pytest.raises(CatalogFormatError, match="JSON"):
        await client.fetch_catalog()


@pytest.mark.asyncio
async def test_fetch_catalog_requires_data_array() -> None:
    client = build_client(build_transport(200, {"object": "list", "data": "nope"}))

    with pytest.raises(CatalogFormatError, match="missing data array"):
        await client.fetch_catalog()


@pytest.mark.asyncio
async def test_fetch_catalog_rejects_malformed_entry() -> None:
    body = {"data": [{"type": "all_cards", "download_uri": "https://x"}]}
    client = build_client(build_transport(200, body))

    with pytest.raises(CatalogFormatError, match="index 0"):
        await client.fetch_catalog()


@pytest.mark.asyncio
async def test_fetch_catalog_follows_redirects() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/bulk-data":
            return httpx.Response(
                302,
                headers={"location": "/v2/bulk-data"},
                request=request,
            )
        return httpx.Response(200, json=CATALOG_BODY, request=request)

    client = build_client(httpx.MockTransport(handler))

    catalog = await client.fetch_catalog()

    assert len(catalog) == 2


@pytest.mark.asyncio
async def test_fetch_catalog_caps_redirects() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(301, headers={"location": str(request.url)}, request=request)

    client = build_client(httpx.MockTransport(handler), max_redirects=2)

    with pytest.raises(TooManyRedirectsError):
        await client.fetch_catalog()


@pytest.mark.asyncio
async def test_fetch_catalog_wraps_transport_errors() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = build_client(httpx.MockTransport(handler))

    with pytest.raises(CatalogFetchError, match="connection refused"):
        await client.fetch_catalog()


@pytest.mark.asyncio
async def test_select_by_type_matches_exactly() -> None:
    client = build_client(build_transport(200, CATALOG_BODY))
    catalog = await client.fetch_catalog()

    selected = SnapshotCatalogClient.select_by_type(catalog, "all_cards")

    assert selected.name == "All Cards"


@pytest.mark.asyncio
async def test_select_by_type_lists_available_types() -> None:
    """Unknown types should report every advertised type in catalog order."""

    client = build_client(build_transport(200, CATALOG_BODY))
    catalog = await client.fetch_catalog()

    with pytest.raises(SnapshotTypeNotFoundError) as exc_info:
        SnapshotCatalogClient.select_by_type(catalog, "rulings")

    assert "Available: oracle_cards, all_cards" in str(exc_info.value)
    assert exc_info.value.requested == "rulings"
