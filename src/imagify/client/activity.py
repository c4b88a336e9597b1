"""Narrow interfaces to the identity and activity-log collaborator.

User accounts and the activity history live in an external identity /
document-store service.  The adapter only needs two things from it:

- :class:`IdentityProvider` - who is signed in (``current_user_id()``);
- :class:`ActivityRecorder` - somewhere to append a :class:`GenerationLog`.

Only metadata is recorded (feature, prompt, sizes and types of uploaded
images, generated resolution); image bytes are never stored.
:class:`InMemoryActivityRecorder` is a process-local implementation for
development and tests.
"""

from __future__ import annotations

import base64
import binascii
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class FeatureType(str, Enum):
    """Dashboard feature that produced a generation."""

    TEXT_TO_IMAGE = "text-to-image"
    STYLE_TRANSFORM = "style-transform"
    IMAGE_FUSION = "image-fusion"
    FIT_CHECK = "fit-check"


@dataclass
class GenerationLog:
    """Activity record for one successful generation.

    Attributes:
        user_id: Identifier of the signed-in user.
        feature_type: Feature that produced the image.
        prompt: User-facing prompt (description or style), or
            ``"No prompt provided"``.
        uploaded_image_meta: One ``{"type", "size"}`` dict per reference image.
        generated_image_info: At least ``{"resolution": "<w>x<h>"}``.
        id: Record identifier, assigned on creation.
        created_at: Unix timestamp.
    """

    user_id: str
    feature_type: FeatureType
    prompt: str
    uploaded_image_meta: list[dict[str, Any]] = field(default_factory=list)
    generated_image_info: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: float = field(default_factory=time.time)


@runtime_checkable
class IdentityProvider(Protocol):
    """Source of the signed-in user's identity."""

    def current_user_id(self) -> str | None: ...


@runtime_checkable
class ActivityRecorder(Protocol):
    """Sink for generation activity records."""

    def record(self, log: GenerationLog) -> str:
        """Persist *log* and return its identifier.

        Raises:
            ActivityLogError: If the record could not be stored.
        """
        ...


@dataclass
class StaticIdentity:
    """Identity provider returning a fixed user id (``None`` = signed out)."""

    user_id: str | None = None

    def current_user_id(self) -> str | None:
        return self.user_id


class InMemoryActivityRecorder:
    """Process-local activity log."""

    def __init__(self) -> None:
        self._logs: list[GenerationLog] = []
        self._lock = threading.Lock()

    def record(self, log: GenerationLog) -> str:
        with self._lock:
            self._logs.append(log)
        return log.id

    def logs_for_user(self, user_id: str, limit: int = 50) -> list[GenerationLog]:
        """Return up to *limit* records for *user_id*, newest first."""
        with self._lock:
            matching = [log for log in self._logs if log.user_id == user_id]
        matching.sort(key=lambda log: log.created_at, reverse=True)
        return matching[:limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._logs)


def describe_data_url(data_url: str) -> dict[str, Any]:
    """Extract upload metadata from a ``data:`` URL.

    Args:
        data_url: ``data:<mime>[;base64],<payload>``.

    Returns:
        ``{"type": mime or None, "size": decoded byte count or None}``.
    """
    if not data_url.startswith("data:") or "," not in data_url:
        return {"type": None, "size": None}

    header, _, payload = data_url[5:].partition(",")
    parts = header.split(";")
    mime = parts[0] or None

    if "base64" in parts[1:]:
        try:
            size = len(base64.b64decode(payload, validate=True))
        except (binascii.Error, ValueError):
            size = None
    else:
        size = len(payload.encode("utf-8"))

    return {"type": mime, "size": size}
