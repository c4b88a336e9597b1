"""In-memory image resources addressed by revocable handles.

The client adapter never hands raw bytes to its caller.  Instead each
generated image is registered here and the caller receives an
:class:`ImageHandle` whose ``url`` (``blob:imagify/<uuid>``) names the bytes
for as long as the handle is not revoked.  Revoking frees the bytes; any
later read raises :class:`~imagify.core.errors.ResourceRevokedError`.

A store is local to one adapter (one user session); handles are
meaningless outside the process that created them.
"""

from __future__ import annotations

import io
import logging
import threading
import uuid
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from imagify.core.errors import ResourceRevokedError

logger = logging.getLogger(__name__)

HANDLE_PREFIX = "blob:imagify/"


@dataclass(frozen=True)
class ImageHandle:
    """Reference to image bytes held by an :class:`ImageResourceStore`.

    Attributes:
        url: Opaque, unique handle URL.
        content_type: Mime type reported by the relay.
        size: Length of the image body in bytes.
        width: Pixel width, or ``None`` when the bytes could not be decoded.
        height: Pixel height, or ``None`` when the bytes could not be decoded.
    """

    url: str
    content_type: str
    size: int
    width: int | None = None
    height: int | None = None

    @property
    def resolution(self) -> str | None:
        """``"<width>x<height>"`` or ``None`` when unknown."""
        if self.width is None or self.height is None:
            return None
        return f"{self.width}x{self.height}"

    def __str__(self) -> str:
        return self.url


def _probe_dimensions(content: bytes) -> tuple[int | None, int | None]:
    """Read pixel dimensions from the image header without a full decode.

    Images past Pillow's decompression-bomb limit are still stored; only
    their dimensions are left unknown.
    """
    try:
        with Image.open(io.BytesIO(content)) as image:
            return image.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        return None, None


class ImageResourceStore:
    """Registry of image bytes keyed by handle URL.

    Thread-safe; the adapter may be driven from several UI callbacks.
    """

    def __init__(self) -> None:
        self._items: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def create(self, content: bytes, content_type: str = "image/png") -> ImageHandle:
        """Register *content* and return a new handle for it.

        Args:
            content: Complete image body.
            content_type: Mime type to report on the handle.

        Returns:
            A fresh :class:`ImageHandle`.
        """
        width, height = _probe_dimensions(content)
        handle = ImageHandle(
            url=f"{HANDLE_PREFIX}{uuid.uuid4()}",
            content_type=content_type,
            size=len(content),
            width=width,
            height=height,
        )
        with self._lock:
            self._items[handle.url] = bytes(content)
        logger.debug(f"Created image resource {handle.url} ({handle.size} bytes)")
        return handle

    def read(self, handle: ImageHandle | str) -> bytes:
        """Return the bytes behind *handle*.

        Raises:
            ResourceRevokedError: If the handle was revoked or never existed.
        """
        url = str(handle)
        with self._lock:
            try:
                return self._items[url]
            except KeyError:
                raise ResourceRevokedError(f"Image resource is not available: {url}") from None

    def open_image(self, handle: ImageHandle | str) -> Image.Image:
        """Decode the bytes behind *handle* into a Pillow image.

        Raises:
            ResourceRevokedError: If the handle was revoked or never existed.
            PIL.UnidentifiedImageError: If the bytes are not a known format.
            PIL.Image.DecompressionBombError: If the image exceeds Pillow's
                pixel limit.
        """
        image = Image.open(io.BytesIO(self.read(handle)))
        image.load()
        return image

    def revoke(self, handle: ImageHandle | str) -> bool:
        """Release the bytes behind *handle*.

        Returns:
            ``True`` if the handle was live, ``False`` if it was already
            revoked or unknown.
        """
        with self._lock:
            removed = self._items.pop(str(handle), None) is not None
        if removed:
            logger.debug(f"Revoked image resource {handle}")
        return removed

    def revoke_all(self) -> int:
        """Release every resource.  Returns the number revoked."""
        with self._lock:
            count = len(self._items)
            self._items.clear()
        return count

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return str(handle) in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
