"""HTTP utilities for fetching generated data with retry logic and connection pooling."""

from __future__ import annotations

import asyncio
from typing import Final

import httpx

from navsync.config import (
    NAVSYNC_FETCH_BACKOFF_S,
    NAVSYNC_FETCH_MAX_RETRIES,
    NAVSYNC_FETCH_TIMEOUT_S,
    NAVSYNC_USER_AGENT,
)
from navsync.exceptions import FetchError

RETRY_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})

_MAX_REDIRECTS: Final[int] = 5


def build_client() -> httpx.AsyncClient:
    """Create a pooled client with the configured timeout and user agent."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(NAVSYNC_FETCH_TIMEOUT_S),
        headers={"User-Agent": NAVSYNC_USER_AGENT},
        follow_redirects=True,
        max_redirects=_MAX_REDIRECTS,
    )


async def fetch_with_retries(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    on_404_message: str | None = None,
) -> str:
    """Fetch text from a URL, retrying 429/5xx responses and request errors.

    A 404 is final and is never retried.

    Args:
        url: The URL to fetch.
        client: Optional httpx.AsyncClient for connection pooling. If not
            provided, a new client is created for this request.
        on_404_message: Error message used when the resource is missing.

    Raises:
        FetchError: If the fetch fails after all retries or returns 404.
    """
    last_exc: Exception | None = None

    async def do_fetch(http_client: httpx.AsyncClient) -> str:
        nonlocal last_exc

        for attempt in range(NAVSYNC_FETCH_MAX_RETRIES + 1):
            try:
                response = await http_client.get(url)

                if response.status_code == 404:
                    message = on_404_message or f"Resource not found at {url}"
                    raise FetchError(message)

                if response.status_code in RETRY_STATUS_CODES:
                    last_exc = FetchError(f"HTTP {response.status_code} from {url}")
                else:
                    response.raise_for_status()
                    return response.text
            except (httpx.RequestError, httpx.HTTPStatusError) as exc:
                last_exc = exc

            if attempt < NAVSYNC_FETCH_MAX_RETRIES:
                backoff = NAVSYNC_FETCH_BACKOFF_S * (2**attempt)
                await asyncio.sleep(backoff)

        raise FetchError(f"Failed to fetch {url}: {last_exc}")

    if client is not None:
        return await do_fetch(client)

    async with build_client() as new_client:
        return await do_fetch(new_client)
