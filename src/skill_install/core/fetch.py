"""Guarded HTTP fetch: refuses non-public destinations on every redirect hop."""

import asyncio
import ipaddress
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import httpx

logger = logging.getLogger("skill-install.fetch")

MAX_REDIRECTS = 5

Fetcher = Callable[[str, int], AbstractAsyncContextManager[httpx.Response]]


class FetchBlockedError(Exception):
    """The guard refused a destination."""


def _parse_url(raw: str, base: httpx.URL | None = None) -> httpx.URL:
    try:
        return base.join(raw) if base is not None else httpx.URL(raw)
    except (httpx.InvalidURL, ValueError) as e:
        raise FetchBlockedError(f"Invalid URL {raw!r}: {e}") from e


async def _assert_public_destination(url: httpx.URL) -> None:
    if url.scheme not in ("http", "https"):
        raise FetchBlockedError(f"Blocked URL scheme: {url.scheme or '(none)'}")
    host = url.host
    if not host:
        raise FetchBlockedError(f"Blocked URL without host: {url}")

    port = url.port or (443 if url.scheme == "https" else 80)
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, port)
    except (OSError, UnicodeError) as e:
        # UnicodeError: hostname the idna codec cannot encode
        raise FetchBlockedError(f"Could not resolve {host}: {e}") from e

    for info in infos:
        try:
            address = ipaddress.ip_address(info[4][0].split("%", 1)[0])
        except ValueError as e:
            raise FetchBlockedError(f"Unrecognized address for {host}: {info[4][0]}") from e
        if not address.is_global or address.is_multicast:
            logger.warning("Blocked fetch to %s (%s)", host, address)
            raise FetchBlockedError(f"Blocked non-public destination: {host} ({address})")


@asynccontextmanager
async def fetch_with_guard(
    url: str,
    timeout_ms: int,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[httpx.Response]:
    """GET url with redirects followed manually and each hop checked.

    Yields a streaming response; leaving the context closes the response
    and the client on every path. Malformed URLs, including a bad redirect
    Location, raise FetchBlockedError.
    """
    timeout = max(1_000, timeout_ms) / 1000
    current = _parse_url(url)
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=False, transport=transport) as client:
        for _ in range(MAX_REDIRECTS + 1):
            await _assert_public_destination(current)
            response = await client.send(client.build_request("GET", current), stream=True)
            if response.is_redirect:
                location = response.headers.get("location", "")
                await response.aclose()
                current = _parse_url(location, base=current)
                logger.debug("Redirect -> %s", current)
                continue
            try:
                yield response
            finally:
                await response.aclose()
            return
    raise FetchBlockedError(f"Too many redirects (max {MAX_REDIRECTS}): {url}")
