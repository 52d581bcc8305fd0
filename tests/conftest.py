# tests/conftest.py
import httpx
import jwt
import pytest

from signed_image_proxy.config import Config

JWT_SECRET = "jwt-test-secret-0123456789abcdef0123"
START = 1_700_000_000.0


class FakeClock:
    """Settable stand-in for time.time."""

    def __init__(self, start: float = START):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ChunkedBody(httpx.AsyncByteStream):
    """
    Upstream body left unread until the client streams it.

    ``httpx.Response(content=...)`` reads its body up front, which a
    ``stream=True`` consumer then sees as already consumed.
    """

    def __init__(self, data: bytes, chunk_size: int = 256):
        self.data = data
        self.chunk_size = chunk_size
        self.closed = False

    async def __aiter__(self):
        for i in range(0, len(self.data), self.chunk_size):
            yield self.data[i:i + self.chunk_size]

    async def aclose(self):
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_config():
    def _make(**overrides) -> Config:
        values = {"secret": "test-secret", "jwt_secret": JWT_SECRET}
        values.update(overrides)
        return Config(**values)
    return _make


@pytest.fixture
def respond():
    """Route handler answering every call with a fresh streamed 200 response."""
    def _respond(data: bytes, headers=None):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers=headers, stream=ChunkedBody(data))
        return handler
    return _respond


@pytest.fixture
def bearer():
    def _bearer(caller_id="user-1", secret=JWT_SECRET, **claims) -> dict:
        payload = {"id": caller_id, **claims}
        token = jwt.encode(payload, secret, algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}
    return _bearer
