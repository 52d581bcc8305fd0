# tests/test_upstream.py
import asyncio

import httpx
import pytest

from signed_image_proxy.upstream import (
    UpstreamErrorStatus,
    UpstreamFetcher,
    UpstreamUnreachable,
    build_client,
)


class SlowBody(httpx.AsyncByteStream):
    def __init__(self):
        self.closed = False

    async def __aiter__(self):
        yield b"first-chunk"
        await asyncio.sleep(5)
        yield b"never-sent"

    async def aclose(self):
        self.closed = True


def _run(config, handler, url, consume=True):
    async def go():
        client = build_client(config, transport=httpx.MockTransport(handler))
        try:
            upstream = await UpstreamFetcher(client, config).open(url)
            if not consume:
                return upstream, []
            chunks = [chunk async for chunk in upstream.iter_body()]
            return upstream, chunks
        finally:
            await client.aclose()
    return asyncio.run(go())


def test_streams_body_unmodified(make_config, respond):
    body = bytes(range(256)) * 10
    handler = respond(body, headers={"Content-Type": "image/webp"})
    upstream, chunks = _run(make_config(), handler, "https://cdn.example.com/a.webp")
    assert b"".join(chunks) == body
    assert upstream.content_type == "image/webp"
    assert upstream.cache_control is None


def test_non_2xx_raises_with_status(make_config):
    handler = lambda request: httpx.Response(404, text="nope")
    with pytest.raises(UpstreamErrorStatus) as exc:
        _run(make_config(), handler, "https://cdn.example.com/missing.png")
    assert exc.value.status_code == 404
    assert exc.value.reason == "upstream-error-status"


def test_network_error_raises_unreachable(make_config):
    def handler(request):
        raise httpx.ConnectTimeout("timed out")
    with pytest.raises(UpstreamUnreachable) as exc:
        _run(make_config(), handler, "https://cdn.example.com/a.png")
    assert exc.value.reason == "upstream-unreachable"


def test_total_deadline_aborts_stalled_body(make_config):
    stream = SlowBody()
    handler = lambda request: httpx.Response(200, stream=stream)
    config = make_config(upstream_total_timeout=0.3)
    with pytest.raises(UpstreamUnreachable):
        _run(config, handler, "https://cdn.example.com/slow.png")
    assert stream.closed


def test_consumer_leaving_mid_stream_closes_upstream(make_config):
    stream = SlowBody()
    config = make_config()

    async def go():
        client = build_client(config, transport=httpx.MockTransport(lambda request: httpx.Response(200, stream=stream)))
        try:
            upstream = await UpstreamFetcher(client, config).open("https://cdn.example.com/slow.png")
            body = upstream.iter_body()
            first = await body.__anext__()
            # what the response does when its client goes away
            await body.aclose()
            return first
        finally:
            await client.aclose()

    assert asyncio.run(go()) == b"first-chunk"
    assert stream.closed


def test_fixed_outbound_headers(make_config, respond):
    seen = []

    def handler(request):
        seen.append(request)
        return respond(b"ok")(request)

    _run(make_config(user_agent="shop-images/2.0"), handler, "http://cdn.example.com/a.png")
    headers = seen[0].headers
    assert headers["user-agent"] == "shop-images/2.0"
    assert headers["accept-encoding"] == "identity"
    assert "authorization" not in headers
    assert "cookie" not in headers
