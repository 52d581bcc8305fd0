# signed_image_proxy/upstream.py
"""
Outbound fetch of an authorized resource.

The only module that performs network I/O. Every request goes out with a
fixed header set: nothing from the inbound caller (headers, cookies,
credentials) is ever forwarded. Redirects are not followed, so a token can
only ever reach the exact URL it was signed for.

Time bounds:
- connect/read timeouts on the httpx client bound each network step
- ``upstream_read_timeout`` also bounds time-to-first-byte (response headers)
- ``upstream_total_timeout`` bounds the whole exchange, body included
"""

from __future__ import annotations
import asyncio, logging
from typing import AsyncIterator, Optional

import httpx

logger = logging.getLogger(__name__)


class UpstreamError(RuntimeError):
    reason = "upstream-error"


class UpstreamUnreachable(UpstreamError):
    """DNS failure, refused connection, TLS failure or timeout."""
    reason = "upstream-unreachable"


class UpstreamErrorStatus(UpstreamError):
    """Upstream answered with a non-2xx status."""
    reason = "upstream-error-status"

    def __init__(self, status_code: int):
        super().__init__(f"upstream returned HTTP {status_code}")
        self.status_code = status_code


def build_client(config, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Create the shared outbound client. ``transport`` is for tests."""
    timeout = httpx.Timeout(
        connect=config.upstream_connect_timeout,
        read=config.upstream_read_timeout,
        write=config.upstream_read_timeout,
        pool=config.upstream_connect_timeout,
    )
    return httpx.AsyncClient(timeout=timeout, follow_redirects=False, transport=transport)


class UpstreamResponse:
    """An open upstream response whose body has not been read yet."""

    def __init__(self, response: httpx.Response, deadline: float):
        self._response = response
        self._deadline = deadline

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def content_type(self) -> Optional[str]:
        return self._response.headers.get("content-type")

    @property
    def cache_control(self) -> Optional[str]:
        return self._response.headers.get("cache-control")

    @property
    def content_encoding(self) -> Optional[str]:
        return self._response.headers.get("content-encoding")

    async def iter_body(self) -> AsyncIterator[bytes]:
        """
        Yield the raw body unmodified, aborting once the total deadline passes.
        The upstream response is always closed when iteration stops, whether
        it finished, timed out, or the consumer was cancelled.
        """
        loop = asyncio.get_running_loop()
        chunks = self._response.aiter_raw()
        try:
            while True:
                remaining = self._deadline - loop.time()
                if remaining <= 0:
                    raise UpstreamUnreachable("upstream transfer exceeded total timeout")
                try:
                    chunk = await asyncio.wait_for(chunks.__anext__(), timeout=remaining)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError:
                    logger.warning("Upstream transfer stalled past total timeout for %s", self._response.url.host)
                    raise UpstreamUnreachable("upstream transfer exceeded total timeout")
                except httpx.HTTPError as e:
                    logger.error("Upstream transfer failed for %s: %s", self._response.url.host, type(e).__name__)
                    raise UpstreamUnreachable(str(e)) from e
                yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if not self._response.is_closed:
            await self._response.aclose()


class UpstreamFetcher:
    def __init__(self, client: httpx.AsyncClient, config):
        self.client = client
        self.config = config

    def outbound_headers(self) -> dict:
        return {
            "User-Agent": self.config.user_agent,
            "Accept": "*/*",
            # raw bytes are streamed through, so ask for them unencoded
            "Accept-Encoding": "identity",
        }

    async def open(self, url: str) -> UpstreamResponse:
        """
        Send GET to ``url`` and wait for the response headers.

        Raises:
            ValueError: the URL cannot be turned into a request
            UpstreamUnreachable: network failure or no response in time
            UpstreamErrorStatus: the upstream answered with a non-2xx status
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.upstream_total_timeout
        first_byte = min(
            self.config.upstream_connect_timeout + self.config.upstream_read_timeout,
            self.config.upstream_total_timeout,
        )

        try:
            request = self.client.build_request("GET", url, headers=self.outbound_headers())
        except httpx.InvalidURL as e:
            raise ValueError(f"unparsable upstream url: {e}") from e
        host = request.url.host
        try:
            response = await asyncio.wait_for(self.client.send(request, stream=True), timeout=first_byte)
        except asyncio.TimeoutError:
            logger.error("Upstream %s did not answer in time", host)
            raise UpstreamUnreachable("upstream did not answer in time")
        except httpx.HTTPError as e:
            logger.error("Upstream request to %s failed: %s", host, type(e).__name__)
            raise UpstreamUnreachable(str(e)) from e

        if not 200 <= response.status_code < 300:
            # drop the body without reading it
            await response.aclose()
            logger.warning("Upstream %s returned HTTP %s", host, response.status_code)
            raise UpstreamErrorStatus(response.status_code)

        return UpstreamResponse(response, deadline)
