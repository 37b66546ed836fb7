"""Shared httpx helpers for catalog and snapshot requests."""

from __future__ import annotations

from typing import Any

import httpx

from ..exceptions import TooManyRedirectsError

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


def build_client(
    *,
    user_agent: str,
    timeout: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the AsyncClient used for one catalog fetch or download.

    Redirects are never followed by httpx itself; callers walk them hop by hop
    through :func:`next_redirect` so the hop limit is enforced uniformly.
    """

    client_kwargs: dict[str, Any] = {
        "timeout": timeout,
        "follow_redirects": False,
        "headers": {"User-Agent": user_agent, "Accept": "application/json"},
    }
    if transport is not None:
        client_kwargs["transport"] = transport
    return httpx.AsyncClient(**client_kwargs)


def next_redirect(response: httpx.Response, *, hops: int, max_redirects: int) -> str | None:
    """Return the absolute URL to follow, or None when ``response`` is final.

    Raises:
        TooManyRedirectsError: If following would exceed ``max_redirects``.
    """

    if response.status_code not in REDIRECT_STATUSES:
        return None
    location = response.headers.get("location")
    if not location:
        return None
    if hops >= max_redirects:
        raise TooManyRedirectsError(str(response.url), max_redirects)
    return str(response.url.join(location))
