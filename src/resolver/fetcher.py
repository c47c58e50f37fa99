"""
Async HTTP client for the one thing the resolver pulls over the network
itself: hex ciphertext from a player API.

Embed APIs tend to answer only to requests that look like they came from
their own player page, so a `referer` sets both Referer and Origin and
marks the request as XHR.
"""
from __future__ import annotations
import logging
from typing import Optional
from urllib.parse import urljoin, urlsplit

import aiohttp

from . import config

log = logging.getLogger("siphon.resolver.fetcher")

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)
# hex ciphertext for a player config is a few KB; anything far larger is not it
MAX_BODY = 2 * 1024 * 1024


def page_headers(referer: Optional[str]) -> dict:
    if not referer:
        return {}
    parts = urlsplit(referer)
    return {
        "Referer": referer,
        "Origin": f"{parts.scheme}://{parts.netloc}",
        "X-Requested-With": "XMLHttpRequest",
    }


class Fetcher:
    def __init__(self, *, timeout: Optional[float] = None, proxy: Optional[str] = None, verify_ssl: bool = False):
        self.timeout = aiohttp.ClientTimeout(
            total=config.FETCH_TIMEOUT if timeout is None else timeout,
            connect=4,
        )
        self.proxy = config.PROXY if proxy is None else proxy
        self.verify_ssl = verify_ssl
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, *exc):
        await self.close()

    def _client(self) -> aiohttp.ClientSession:
        # created lazily: aiohttp sessions must be built inside a running loop
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": BROWSER_UA, "Accept": "*/*"},
                connector=aiohttp.TCPConnector(ssl=self.verify_ssl),
            )
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def fetch_text(
        self,
        url: str,
        *,
        base_url: Optional[str] = None,
        referer: Optional[str] = None,
        headers: Optional[dict] = None,
    ) -> str:
        """GET `url` and return the body. HTTP errors raise aiohttp.ClientResponseError."""
        target = urljoin(base_url, url) if base_url else url
        request_headers = {**page_headers(referer), **(headers or {})}
        async with self._client().get(target, headers=request_headers, proxy=self.proxy) as resp:
            resp.raise_for_status()
            if resp.content_length and resp.content_length > MAX_BODY:
                raise aiohttp.ClientPayloadError(f"response too large ({resp.content_length} bytes)")
            body = await resp.text(errors="replace")
        log.debug(f"GET {target} -> {resp.status}, {len(body)} chars")
        return body
