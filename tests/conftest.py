"""Shared pytest fixtures for Imagify tests."""

from __future__ import annotations

import io
import struct
import zlib
from collections.abc import Callable, Generator
from contextlib import ExitStack

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from imagify.api.main import create_app, get_relay
from imagify.core.config import ImagifyConfig
from imagify.core.relay import InferenceRelay

UPSTREAM_URL = "https://upstream.test/models/stable-diffusion-xl-base-1.0"
ALLOWED_ORIGIN = "https://imagify.example.com"
RELAY_URL = "http://relay.test"


def reply(status_code: int, **kwargs) -> Callable[[], httpx.Response]:
    """Build a factory for a canned upstream response.

    A factory is used instead of a response object so that every attempt
    receives a fresh, unread response.

    Args:
        status_code: HTTP status of the canned response.
        **kwargs: Passed to :class:`httpx.Response` (``content``, ``json``,
            ``headers``, ``text``).

    Returns:
        Zero-argument callable producing the response.
    """
    return lambda: httpx.Response(status_code, **kwargs)


class ScriptedUpstream:
    """Fake upstream host for ``httpx.MockTransport``.

    Replies are consumed in order; the last one repeats once the script is
    exhausted.  A reply may also be an exception instance, which is raised.

    Attributes:
        requests: Every request received, in order.
    """

    def __init__(self, *replies) -> None:
        assert replies, "at least one reply is required"
        self._replies = list(replies)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(item, Exception):
            raise item
        return item()

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def client(self, **kwargs) -> httpx.AsyncClient:
        """Return an async client whose transport is this fake."""
        return httpx.AsyncClient(transport=httpx.MockTransport(self), **kwargs)


class RecordingSleep:
    """Awaitable stand-in for :func:`asyncio.sleep` that records delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def isolated_env(monkeypatch) -> None:
    """Remove Imagify-related variables from the environment."""
    monkeypatch.delenv("HF_TOKEN", raising=False)
    monkeypatch.delenv("IMAGIFY_HF_TOKEN", raising=False)
    monkeypatch.delenv("IMAGIFY_MAX_ATTEMPTS", raising=False)
    monkeypatch.delenv("IMAGIFY_SERVER_PORT", raising=False)
    monkeypatch.delenv("IMAGIFY_ALLOWED_ORIGIN", raising=False)


@pytest.fixture
def test_config(isolated_env) -> ImagifyConfig:
    """Create a configured test configuration that ignores ``.env`` files.

    Returns:
        ImagifyConfig with a dummy credential and test endpoints
    """
    return ImagifyConfig(
        _env_file=None,
        hf_token="hf_test_token",
        upstream_url=UPSTREAM_URL,
        allowed_origin=ALLOWED_ORIGIN,
        relay_url=RELAY_URL,
    )


@pytest.fixture
def unconfigured_config(isolated_env) -> ImagifyConfig:
    """Create a test configuration without an upstream credential."""
    return ImagifyConfig(
        _env_file=None,
        hf_token=None,
        upstream_url=UPSTREAM_URL,
        allowed_origin=ALLOWED_ORIGIN,
        relay_url=RELAY_URL,
    )


@pytest.fixture
def png_bytes() -> bytes:
    """A small valid 64x32 PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (64, 32), color=(200, 40, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def oversized_png() -> bytes:
    """A header-only 20000x20000 PNG, past Pillow's decompression-bomb limit.

    The pixel data is empty; only the header is ever read.
    """

    def chunk(kind: bytes, data: bytes) -> bytes:
        crc = zlib.crc32(kind + data) & 0xFFFFFFFF
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", crc)

    header = struct.pack(">IIBBBBB", 20000, 20000, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", header)
        + chunk(b"IDAT", zlib.compress(b""))
        + chunk(b"IEND", b"")
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_relay(test_config: ImagifyConfig, recording_sleep: RecordingSleep):
    """Factory fixture building a relay wired to a scripted upstream.

    Usage::

        upstream = ScriptedUpstream(reply(200, content=b"..."))
        relay = make_relay(upstream)
    """

    def _make(upstream: ScriptedUpstream, config: ImagifyConfig | None = None) -> InferenceRelay:
        return InferenceRelay(
            config or test_config,
            client=upstream.client(),
            sleep=recording_sleep,
        )

    return _make


@pytest.fixture
def make_test_client(test_config: ImagifyConfig, recording_sleep: RecordingSleep):
    """Factory fixture returning a TestClient whose relay talks to a scripted upstream.

    The lifespan handler still runs (and creates its own relay), but the
    ``get_relay`` dependency is overridden so no real network call occurs.
    """
    stack = ExitStack()

    def _make(upstream: ScriptedUpstream, config: ImagifyConfig | None = None) -> TestClient:
        cfg = config or test_config
        app = create_app(cfg)
        relay = InferenceRelay(cfg, client=upstream.client(), sleep=recording_sleep)
        app.dependency_overrides[get_relay] = lambda: relay
        return stack.enter_context(TestClient(app))

    with stack:
        yield _make


@pytest.fixture
def png_upstream(png_bytes: bytes) -> Generator[ScriptedUpstream, None, None]:
    """Upstream that always answers 200 with a PNG."""
    yield ScriptedUpstream(reply(200, content=png_bytes, headers={"Content-Type": "image/png"}))
