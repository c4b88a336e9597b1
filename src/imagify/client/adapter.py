"""Client adapter for the Imagify relay.

:class:`InferenceClientAdapter` turns structured creative intent into one
prompt, sends it to the relay's ``POST /api/image/generate`` endpoint, and
wraps the returned bytes into an :class:`~imagify.client.resources.ImageHandle`.

Error Handling
--------------
The adapter is a pass-through for relay errors.  It does not retry and does
not reclassify: the ``error`` message from the relay's JSON body is raised
unchanged as :class:`~imagify.core.errors.ImageGenerationError`, so the UI can
show it verbatim and let the user re-attempt the action.  Incomplete input is
rejected with :class:`~imagify.core.errors.InputError` before any network
call.

Usage
-----
::

    async with InferenceClientAdapter(config) as adapter:
        handle = await adapter.generate_image_from_text(
            "a lighthouse at dusk", "Digital Art", "16:9 (Wide)"
        )
        png = adapter.resources.read(handle)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from imagify.client import prompt_builder
from imagify.client.activity import (
    ActivityRecorder,
    FeatureType,
    GenerationLog,
    IdentityProvider,
    describe_data_url,
)
from imagify.client.resources import ImageHandle, ImageResourceStore
from imagify.core.config import ImagifyConfig
from imagify.core.errors import ActivityLogError, ImageGenerationError, InputError

logger = logging.getLogger(__name__)

GENERATE_ENDPOINT = "/api/image/generate"
FALLBACK_MESSAGE = "Image generation failed."


@dataclass(frozen=True)
class FitCheckAnalysis:
    """Textual feedback shown next to a fit-check visualisation.

    The upstream model only returns an image, so these values are fixed
    placeholders that keep the result layout populated.
    """

    score: int = 8
    suggestions: str = (
        "Overall fit looks good. Consider adjusting lighting and background "
        "for a more polished final photo."
    )
    color_feedback: str = "Colors of the outfit complement the skin tone and background nicely."
    occasion: str = "Suitable for casual outings, social events, and smart-casual settings."


@dataclass(frozen=True)
class FitCheckResult:
    """Image handle plus analysis returned by :meth:`InferenceClientAdapter.run_fit_check`."""

    image: ImageHandle
    analysis: FitCheckAnalysis


def _require(value: str | None, message: str) -> str:
    if not value or not value.strip():
        raise InputError(message)
    return value


class InferenceClientAdapter:
    """Builds prompts, calls the relay and hands back image handles.

    Attributes:
        resources (ImageResourceStore):
            Store holding the bytes of every image this adapter produced.
    """

    def __init__(
        self,
        config: ImagifyConfig,
        resources: ImageResourceStore | None = None,
        identity: IdentityProvider | None = None,
        recorder: ActivityRecorder | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the adapter.

        Args:
            config: Configuration; ``relay_url``, ``client_timeout`` and
                ``reference_hint_length`` are used.
            resources: Store for generated images.  A new one by default.
            identity: Optional identity collaborator.  Activity is recorded
                only while it reports a signed-in user.
            recorder: Optional activity-log collaborator.
            client: Optional pre-built HTTP client whose base URL points at
                the relay.  When omitted one is created from ``relay_url``.
        """
        self._config = config
        self.resources = resources if resources is not None else ImageResourceStore()
        self._identity = identity
        self._recorder = recorder
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.relay_url.rstrip("/"),
            timeout=httpx.Timeout(config.client_timeout),
        )

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> InferenceClientAdapter:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # -- Low-level relay call -----------------------------------------------

    async def request_image(self, prompt: str) -> ImageHandle:
        """Send *prompt* to the relay and register the returned image.

        Args:
            prompt: Fully composed prompt.

        Returns:
            Handle to the generated image.

        Raises:
            ImageGenerationError: The relay answered with an error (message
                passed through verbatim) or could not be reached.
        """
        try:
            response = await self._client.post(GENERATE_ENDPOINT, json={"prompt": prompt})
        except httpx.HTTPError as e:
            logger.error(f"Could not reach the image relay: {e}")
            raise ImageGenerationError(f"Could not reach the image relay: {e}") from e

        if not response.is_success:
            message = self._error_message(response)
            logger.warning(f"Relay returned {response.status_code}: {message}")
            raise ImageGenerationError(message, status_code=response.status_code)

        content_type = response.headers.get("content-type") or "image/png"
        return self.resources.create(response.content, content_type)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Extract the human-readable message from a failed relay response."""
        if "application/json" in response.headers.get("content-type", ""):
            try:
                body = response.json()
            except ValueError:
                body = {}
            if isinstance(body, dict) and body.get("error"):
                return str(body["error"])
            if isinstance(body, str) and body:
                return body
            return FALLBACK_MESSAGE

        return response.text or f"Image generation failed with status {response.status_code}."

    # -- Feature operations -------------------------------------------------

    async def generate_image_from_text(
        self,
        description: str,
        style: str = prompt_builder.IMAGE_STYLES[0],
        aspect_ratio: str = prompt_builder.ASPECT_RATIOS[0],
    ) -> ImageHandle:
        """Generate an image from a free-text description."""
        _require(description, "Please describe what you want to create.")
        prompt = prompt_builder.build_text_prompt(description, style, aspect_ratio)
        handle = await self.request_image(prompt)
        self._record_activity(FeatureType.TEXT_TO_IMAGE, description.strip(), [], handle)
        return handle

    async def style_transform(
        self,
        image_data_url: str | None,
        style: str = prompt_builder.ART_PRESETS[0],
        refine_prompt: str | None = None,
    ) -> ImageHandle:
        """Restyle a reference photo (approximated through the prompt text)."""
        image_data_url = _require(image_data_url, "Please upload a photo to style.")
        prompt = prompt_builder.build_style_transform_prompt(
            image_data_url,
            style,
            refine_prompt,
            hint_length=self._config.reference_hint_length,
        )
        handle = await self.request_image(prompt)
        summary = style
        if refine_prompt and refine_prompt.strip():
            summary = f"{style}: {refine_prompt.strip()}"
        self._record_activity(FeatureType.STYLE_TRANSFORM, summary, [image_data_url], handle)
        return handle

    async def fuse_images(
        self,
        subject_data_url: str | None,
        style_data_url: str | None,
    ) -> ImageHandle:
        """Fuse a subject image with a style/background image."""
        if not (subject_data_url and subject_data_url.strip()) or not (
            style_data_url and style_data_url.strip()
        ):
            raise InputError("Both images are required to combine them.")
        prompt = prompt_builder.build_fusion_prompt(
            subject_data_url,
            style_data_url,
            hint_length=self._config.reference_hint_length,
        )
        handle = await self.request_image(prompt)
        self._record_activity(
            FeatureType.IMAGE_FUSION, "", [subject_data_url, style_data_url], handle
        )
        return handle

    async def run_fit_check(
        self,
        person_data_url: str | None,
        outfit_data_url: str | None,
    ) -> FitCheckResult:
        """Visualise a person wearing an outfit."""
        if not (person_data_url and person_data_url.strip()) or not (
            outfit_data_url and outfit_data_url.strip()
        ):
            raise InputError("Both your photo and an outfit photo are required.")
        prompt = prompt_builder.build_fit_check_prompt(
            person_data_url,
            outfit_data_url,
            hint_length=self._config.reference_hint_length,
        )
        handle = await self.request_image(prompt)
        self._record_activity(
            FeatureType.FIT_CHECK, "", [person_data_url, outfit_data_url], handle
        )
        return FitCheckResult(image=handle, analysis=FitCheckAnalysis())

    # -- Activity logging ---------------------------------------------------

    def _record_activity(
        self,
        feature: FeatureType,
        prompt: str,
        uploads: list[str],
        handle: ImageHandle,
    ) -> None:
        """Record a :class:`GenerationLog` when a user is signed in.

        A recorder failure is logged; the image has already been generated
        and is still returned to the caller.
        """
        if self._recorder is None or self._identity is None:
            return
        user_id = self._identity.current_user_id()
        if not user_id:
            return

        log = GenerationLog(
            user_id=user_id,
            feature_type=feature,
            prompt=prompt or "No prompt provided",
            uploaded_image_meta=[describe_data_url(url) for url in uploads],
            generated_image_info={
                "resolution": handle.resolution or "unknown",
                "content_type": handle.content_type,
                "size": handle.size,
            },
        )
        try:
            self._recorder.record(log)
        except ActivityLogError as e:
            logger.warning(f"Failed to log {feature.value} activity: {e}")
