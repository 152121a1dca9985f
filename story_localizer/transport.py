# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Ambient network-fetch primitive.

Every component (including the story embed) calls ``transport.fetch(...)``
through this module, never a local alias, so that replacing the module
attribute (see ``interceptor.FetchInterceptor``) intercepts all traffic.

``FetchResponse`` follows the browser Response contract: the body can be
consumed once, and ``clone()`` must be taken before it is consumed.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Optional

import aiohttp

from .core.config import settings
from .errors import TransportError

logger = logging.getLogger(__name__)


class FetchResponse:
    """A fully-buffered HTTP response with single-consumption body semantics."""

    def __init__(
        self,
        body: bytes,
        status: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        url: str = "",
    ):
        self.status = status
        self.headers: Dict[str, str] = dict(headers or {})
        self.url = url
        self._body = body
        self._body_used = False

    @classmethod
    def synthetic_json(cls, payload: Any, url: str = "") -> "FetchResponse":
        """Build a 200 response carrying ``payload`` serialized as JSON."""
        return cls(
            json.dumps(payload).encode("utf-8"),
            status=200,
            headers={"Content-Type": "application/json"},
            url=url,
        )

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def body_used(self) -> bool:
        return self._body_used

    def clone(self) -> "FetchResponse":
        if self._body_used:
            raise RuntimeError("Response body already consumed; cannot clone")
        return FetchResponse(self._body, status=self.status, headers=self.headers, url=self.url)

    async def read(self) -> bytes:
        if self._body_used:
            raise RuntimeError("Response body already consumed")
        self._body_used = True
        return self._body

    async def text(self) -> str:
        return (await self.read()).decode("utf-8")

    async def json(self) -> Any:
        return json.loads(await self.text())

    def __repr__(self) -> str:
        return f"<FetchResponse {self.status} {self.url}>"


async def _aiohttp_fetch(
    url: Any,
    *,
    method: str = "GET",
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    json_body: Any = None,
    timeout: Optional[float] = None,
) -> FetchResponse:
    """Issue one request with aiohttp and buffer the body."""
    client_timeout = aiohttp.ClientTimeout(total=timeout or settings.request_timeout)
    try:
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.request(
                method, url, params=params, headers=headers, json=json_body
            ) as response:
                body = await response.read()
                logger.debug(f"{method} {response.url} -> {response.status} ({len(body)} bytes)")
                return FetchResponse(
                    body,
                    status=response.status,
                    headers={k: v for k, v in response.headers.items()},
                    url=str(response.url),
                )
    except asyncio.TimeoutError as e:
        raise TransportError(f"Request timed out: {url}", url=str(url)) from e
    except aiohttp.ClientError as e:
        raise TransportError(f"Network error for {url}: {e}", url=str(url)) from e


# The process-wide entry point. Replaced by FetchInterceptor.install().
fetch = _aiohttp_fetch


async def fetch_json(url: str, **kwargs) -> Any:
    """Fetch ``url`` through the ambient primitive and decode a JSON body.

    Raises:
        TransportError: non-2xx status or a body that is not JSON
    """
    response = await fetch(url, **kwargs)
    if not response.ok:
        raise TransportError(f"HTTP error! status: {response.status}", status=response.status, url=url)
    try:
        return await response.json()
    except (ValueError, UnicodeDecodeError) as e:
        raise TransportError(f"Malformed JSON from {url}: {e}", status=response.status, url=url) from e
