"""Inference relay: forwards prompts to the upstream text-to-image host.

This module provides :class:`InferenceRelay`, the only component with retry
and error-classification logic.  It hides upstream authentication, rate-limit
backoff and "model warming" responses behind a single operation::

    result = await relay.generate("a lighthouse at dusk")

which returns either :class:`RelaySuccess` (the full image body plus its
content type) or :class:`RelayFailure` (a classified :class:`ErrorKind`).
Exactly one of the two is returned per call, and a success always carries the
fully buffered body.

Per-call State Machine
----------------------
::

    Start -> validate -> ConfigurationError | InvalidRequest
                      -> Attempt(0)
    Attempt(n) -> Success | AuthError | UpstreamWarming | UpstreamError
               -> sleep(Retry-After) -> Attempt(n + 1)   if 429 and n + 1 < max
               -> RateLimited                            if 429 and n + 1 == max

Only HTTP 429 is retried.  A 503 ("model loading") is returned to the caller
immediately so the UI can say "try again shortly" instead of blocking for an
unbounded warm-up.  401 and every other failure cannot change on retry.

Concurrency
-----------
Each call owns its own :class:`RetryState`; nothing mutable is shared between
concurrent calls except the pooled ``httpx.AsyncClient``.  The sleep between
attempts is an ``await`` and never blocks the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, ClassVar

import httpx

from imagify.core.config import ImagifyConfig
from imagify.core.errors import ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/png"

Sleeper = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RelaySuccess:
    """Upstream returned an image.

    Attributes:
        content: The complete response body.
        content_type: Upstream ``Content-Type``, ``image/png`` when absent.
    """

    ok: ClassVar[bool] = True

    content: bytes
    content_type: str = DEFAULT_CONTENT_TYPE


@dataclass(frozen=True)
class RelayFailure:
    """A generation request ended in a classified error.

    Attributes:
        kind: Terminal error classification.
        status_code: HTTP status to report to the caller.  For
            ``UpstreamError`` this is upstream's own status code.
        detail: Optional diagnostic payload (upstream body text, parsed JSON
            for ``UpstreamWarming``, or transport error text).
    """

    ok: ClassVar[bool] = False

    kind: ErrorKind
    status_code: int
    detail: Any = None

    @classmethod
    def of(
        cls, kind: ErrorKind, status_code: int | None = None, detail: Any = None
    ) -> RelayFailure:
        """Build a failure, defaulting ``status_code`` to the kind's status."""
        return cls(
            kind=kind,
            status_code=kind.default_status if status_code is None else status_code,
            detail=detail,
        )

    @property
    def message(self) -> str:
        """User-facing message for this failure."""
        return self.kind.message


RelayResult = RelaySuccess | RelayFailure


@dataclass
class RetryState:
    """Attempt bookkeeping for one :meth:`InferenceRelay.generate` call."""

    max_attempts: int = 3
    attempt: int = 0
    last_error: RelayFailure | None = None

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts


def parse_retry_after(value: str | None, default: float, cap: float | None = None) -> float:
    """Parse a ``Retry-After`` header given in seconds.

    HTTP-date values, garbage, negative numbers and non-finite numbers all
    fall back to *default*.

    Args:
        value: Raw header value, or ``None`` when the header is absent.
        default: Seconds to use when the header is absent or unparsable.
        cap: Optional upper bound applied to a parsed value.

    Returns:
        Seconds to sleep before the next attempt.
    """
    if value is None:
        return default
    try:
        seconds = float(value.strip())
    except ValueError:
        return default
    if not math.isfinite(seconds) or seconds < 0:
        return default
    if cap is not None:
        seconds = min(seconds, cap)
    return seconds


class InferenceRelay:
    """Relays prompts to the upstream inference endpoint.

    Attributes:
        _config (ImagifyConfig):
            Application configuration - credential, endpoint, inference
            parameters and retry policy.
        _client (httpx.AsyncClient | None):
            HTTP client used for upstream calls.  Created lazily unless one
            is injected.
        _sleep:
            Awaitable sleep used between rate-limited attempts.
    """

    def __init__(
        self,
        config: ImagifyConfig,
        client: httpx.AsyncClient | None = None,
        sleep: Sleeper | None = None,
    ) -> None:
        """Initialise the relay.

        Args:
            config: Application configuration.  ``hf_token`` is read on each
                call but never modified.
            client: Optional pre-built HTTP client.  When omitted the relay
                creates one on first use and closes it in :meth:`close`.
            sleep: Optional replacement for :func:`asyncio.sleep`.
        """
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep or asyncio.sleep

    # -- Lifecycle ----------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.request_timeout),
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this relay created it.  Safe to repeat."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # -- Request construction -----------------------------------------------

    def build_payload(self, prompt_text: str) -> dict:
        """Return the JSON body sent upstream for *prompt_text*."""
        return {
            "inputs": prompt_text,
            "parameters": {
                "num_inference_steps": self._config.num_inference_steps,
                "guidance_scale": self._config.guidance_scale,
            },
        }

    @staticmethod
    def _build_headers(token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "image/png",
        }

    # -- Public interface ---------------------------------------------------

    async def generate(self, prompt_text: str | None) -> RelayResult:
        """Generate an image for *prompt_text*.

        A missing credential is reported before the prompt is examined, so
        a misconfigured deployment always answers ``ConfigurationError``.

        Args:
            prompt_text: The prompt to send.  Must be a string that is
                non-empty after trimming.  It is forwarded untrimmed.

        Returns:
            :class:`RelaySuccess` with the full image body, or
            :class:`RelayFailure` describing the terminal state.
        """
        token = (self._config.hf_token or "").strip()
        if not token:
            logger.error("Upstream credential is not configured; rejecting request.")
            return RelayFailure.of(ErrorKind.CONFIGURATION_ERROR)

        if not isinstance(prompt_text, str) or not prompt_text.strip():
            return RelayFailure.of(ErrorKind.INVALID_REQUEST)

        state = RetryState(max_attempts=self._config.max_attempts)
        payload = self.build_payload(prompt_text)
        headers = self._build_headers(token)

        while True:
            try:
                response = await self._get_client().post(
                    self._config.upstream_url,
                    json=payload,
                    headers=headers,
                )
            except httpx.HTTPError as e:
                logger.error(f"Upstream request failed on attempt {state.attempt + 1}: {e}")
                return RelayFailure.of(ErrorKind.UPSTREAM_ERROR, 502, detail=str(e) or repr(e))

            outcome = self._classify(response)
            state.attempt += 1

            if isinstance(outcome, RelayFailure) and outcome.kind is ErrorKind.RATE_LIMITED:
                state.last_error = outcome
                if state.exhausted:
                    logger.warning(f"Rate limited after {state.attempt} attempts; giving up.")
                    return state.last_error

                delay = parse_retry_after(
                    response.headers.get("retry-after"),
                    default=self._config.default_retry_after,
                    cap=self._config.retry_after_cap,
                )
                logger.warning(
                    f"Rate limited (attempt {state.attempt}/{state.max_attempts}), "
                    f"retrying in {delay}s"
                )
                await self._sleep(delay)
                continue

            if isinstance(outcome, RelayFailure):
                logger.error(
                    f"Upstream returned {response.status_code} ({outcome.kind.value}) "
                    f"on attempt {state.attempt}"
                )
            else:
                logger.info(
                    f"Generated image: {len(outcome.content)} bytes, {outcome.content_type}"
                )
            return outcome

    # -- Response classification --------------------------------------------

    def _classify(self, response: httpx.Response) -> RelayResult:
        """Map one upstream response to a result.

        Checked in priority order: 401, 503, 429, other non-2xx, 2xx.
        """
        status = response.status_code

        if status == 401:
            return RelayFailure.of(ErrorKind.AUTH_ERROR, detail=response.text)

        if status == 503:
            try:
                body = response.json()
            except ValueError:
                body = {}
            return RelayFailure.of(ErrorKind.UPSTREAM_WARMING, detail=body)

        if status == 429:
            return RelayFailure.of(ErrorKind.RATE_LIMITED)

        if not response.is_success:
            return RelayFailure.of(ErrorKind.UPSTREAM_ERROR, status, detail=response.text)

        content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        return RelaySuccess(content=response.content, content_type=content_type)
