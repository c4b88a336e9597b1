"""Error taxonomy shared by the relay, the HTTP layer and the client adapter.

Every non-success path of a generation request ends in exactly one
:class:`ErrorKind`.  Each kind owns a canonical HTTP status code and a
user-facing message; the HTTP layer sends that message as the ``error``
field and the client adapter shows it to the user unchanged.

=====================  ===========  ==========================================
Kind                   Status       Caller can fix it?
=====================  ===========  ==========================================
``InvalidRequest``     400          Yes - send a non-empty prompt.
``ConfigurationError`` 500          No - deployment is missing ``HF_TOKEN``.
``AuthError``          401          No - credential invalid or expired.
``UpstreamWarming``    503          Retry later - model is loading.
``RateLimited``        429          Retry later - retried internally first.
``UpstreamError``      upstream's   No - opaque upstream failure.
=====================  ===========  ==========================================

The client-side exception hierarchy lives here as well so that callers can
catch :class:`ImagifyError` for anything raised by this package.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Terminal classification of a failed generation request."""

    INVALID_REQUEST = "InvalidRequest"
    CONFIGURATION_ERROR = "ConfigurationError"
    AUTH_ERROR = "AuthError"
    UPSTREAM_WARMING = "UpstreamWarming"
    RATE_LIMITED = "RateLimited"
    UPSTREAM_ERROR = "UpstreamError"

    @property
    def default_status(self) -> int:
        """HTTP status code for this kind.

        ``UpstreamError`` has no fixed status (the upstream code is mirrored);
        500 is returned as its fallback.
        """
        return _DEFAULT_STATUS[self]

    @property
    def message(self) -> str:
        """User-facing message for this kind."""
        return _MESSAGES[self]

    @property
    def retryable(self) -> bool:
        """True when re-submitting the same request later may succeed."""
        return self in (ErrorKind.UPSTREAM_WARMING, ErrorKind.RATE_LIMITED)


_DEFAULT_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.CONFIGURATION_ERROR: 500,
    ErrorKind.AUTH_ERROR: 401,
    ErrorKind.UPSTREAM_WARMING: 503,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.UPSTREAM_ERROR: 500,
}

_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_REQUEST: 'Request body must include a non-empty "prompt" string.',
    ErrorKind.CONFIGURATION_ERROR: (
        "HF_TOKEN is not configured on the server. Set HF_TOKEN in your environment."
    ),
    ErrorKind.AUTH_ERROR: (
        "Hugging Face returned 401 Unauthorized. "
        "Check that HF_TOKEN is valid and has access to the model."
    ),
    ErrorKind.UPSTREAM_WARMING: (
        "Model is currently loading on Hugging Face. Please retry shortly."
    ),
    ErrorKind.RATE_LIMITED: (
        "Rate limit reached on Hugging Face. Please wait a moment and try again."
    ),
    ErrorKind.UPSTREAM_ERROR: "Unexpected error while generating image.",
}


# ---------------------------------------------------------------------------
# Client-side exceptions.
# ---------------------------------------------------------------------------


class ImagifyError(Exception):
    """Base class for every exception raised by this package."""

    pass


class InputError(ImagifyError):
    """User-friendly input error.

    Raised by the client adapter before any network call when the caller's
    creative intent is incomplete.  The message is intended to be displayed
    directly to the user.
    """

    pass


class ImageGenerationError(ImagifyError):
    """The relay reported a failure, or could not be reached.

    Attributes:
        message: Human-readable message, exactly as the relay sent it.
        status_code: HTTP status returned by the relay, or ``None`` when the
            relay could not be reached at all.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ResourceRevokedError(ImagifyError, KeyError):
    """An image handle was read after being revoked, or never existed."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead.
        return str(self.args[0]) if self.args else ""


class ActivityLogError(ImagifyError):
    """The activity collaborator failed to record a generation."""

    pass
