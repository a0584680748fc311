from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

logger = logging.getLogger("proxyharvest.collectors.fetch")

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class FetchResult:
    url: str
    status: int
    reason: str
    body: bytes


async def _fetch_async(url: str, user_agent: Optional[str], timeout: float, verify_ssl: bool) -> FetchResult:
    headers = {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    }
    if user_agent:
        headers["User-Agent"] = user_agent
    connector = aiohttp.TCPConnector(ssl=verify_ssl)
    tmo = aiohttp.ClientTimeout(total=max(0.1, float(timeout)))
    async with aiohttp.ClientSession(headers=headers, timeout=tmo, connector=connector, trust_env=False) as session:
        async with session.get(url, allow_redirects=True) as resp:
            body = await resp.read()
            return FetchResult(url=str(resp.url), status=resp.status, reason=resp.reason or "", body=body)


def fetch_page(
    url: str,
    *,
    user_agent: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
    verify_ssl: bool = True,
) -> FetchResult:
    """GET a page on a private event loop. Transport errors propagate to the caller."""
    logger.debug("fetch: GET %s", url)
    return asyncio.run(_fetch_async(url, user_agent, timeout, verify_ssl))
