"""Pydantic request and response models for the Imagify relay API.

Models
------
GenerateRequest
    Payload for ``POST /api/image/generate``.
ErrorResponse
    JSON body returned for every failed generation.
HealthResponse
    Payload of ``GET /api/health``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from imagify.core.relay import RelayFailure


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/image/generate`` endpoint.

    ``prompt`` is optional at the schema level so that a missing or blank
    prompt reaches the relay and is reported as ``InvalidRequest`` (400)
    rather than a framework validation error.  Non-string prompts are
    rejected by strict validation.

    Attributes:
        prompt: Text prompt forwarded to the upstream model.
    """

    prompt: str | None = Field(
        default=None,
        strict=True,
        description="Text prompt; must be non-empty after trimming.",
    )


class ErrorResponse(BaseModel):
    """JSON error body.

    Attributes:
        error: Human-readable message for the error kind.
        details: Optional diagnostic payload from upstream.
    """

    error: str
    details: Any = None

    @classmethod
    def from_failure(cls, failure: RelayFailure) -> ErrorResponse:
        return cls(error=failure.message, details=failure.detail)

    def to_content(self) -> dict:
        """Serialise, omitting ``details`` when there are none."""
        content: dict[str, Any] = {"error": self.error}
        if self.details is not None:
            content["details"] = self.details
        return content


class HealthResponse(BaseModel):
    """Response body for ``GET /api/health``."""

    status: str = "ok"
    version: str
    configured: bool = Field(
        ...,
        description="Whether an upstream credential is present.",
    )
