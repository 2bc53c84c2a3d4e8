import asyncio
from typing import Optional, Dict
import httpx

from fnl.fnl_host import Fetcher, FetchResponse


async def http_get(url: str, *, timeout: float = 5.0, retries: int = 0, backoff: float = 0.2,
                   headers: Optional[Dict[str, str]] = None) -> FetchResponse:
    """
    GET `url` and package the reply the way `fetch()` does.

    Non-2xx replies are not errors: the caller inspects `ok`/`status`.
    Transport failures are retried `retries` times with exponential backoff,
    then re-raised.
    """
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        last_exc = None
        for attempt in range(retries + 1):
            try:
                resp = await client.request("GET", url, headers=dict(headers or {}))
                # Lower-case header keys for consistent lookups
                headers_map = {str(k).lower(): v for k, v in resp.headers.items()}
                status = int(resp.status_code)
                return FetchResponse(
                    status=status,
                    ok=200 <= status < 300,
                    headers=headers_map,
                    body=resp.text or "",
                )
            except Exception as e:
                last_exc = e
                if attempt < retries:
                    await asyncio.sleep(backoff * (2 ** attempt))
                    continue
                raise last_exc


class HttpxFetcher(Fetcher):
    """Network fetch over `httpx.AsyncClient`."""

    def __init__(self, timeout: float = 5.0, retries: int = 0, backoff: float = 0.2,
                 headers: Optional[Dict[str, str]] = None):
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self.headers = dict(headers or {})

    async def request(self, url: str) -> FetchResponse:
        return await http_get(url, timeout=self.timeout, retries=self.retries,
                              backoff=self.backoff, headers=self.headers)

    def __repr__(self):
        return f"<HttpxFetcher timeout={self.timeout} retries={self.retries}>"
