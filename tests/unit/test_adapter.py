"""Unit tests for imagify.client.adapter against a fake relay."""

from __future__ import annotations

import base64
import json

import httpx
import pytest
from conftest import RELAY_URL, ScriptedUpstream, reply

from imagify.client.activity import FeatureType, InMemoryActivityRecorder, StaticIdentity
from imagify.client.adapter import (
    FALLBACK_MESSAGE,
    GENERATE_ENDPOINT,
    FitCheckAnalysis,
    InferenceClientAdapter,
)
from imagify.client.prompt_builder import ART_PRESETS, ASPECT_RATIOS, IMAGE_STYLES
from imagify.core.errors import ActivityLogError, ImageGenerationError, InputError

PHOTO = "data:image/png;base64," + base64.b64encode(b"p" * 300).decode()
OUTFIT = "data:image/jpeg;base64," + base64.b64encode(b"o" * 120).decode()


class FailingRecorder:
    """Activity recorder that always fails."""

    def __init__(self) -> None:
        self.calls = 0

    def record(self, log):
        self.calls += 1
        raise ActivityLogError("document store unavailable")


@pytest.fixture
def relay_ok(png_bytes):
    return ScriptedUpstream(reply(200, content=png_bytes, headers={"Content-Type": "image/png"}))


@pytest.fixture
def make_adapter(test_config):
    """Factory fixture building an adapter whose relay is a scripted fake."""

    def _make(relay: ScriptedUpstream, **kwargs) -> InferenceClientAdapter:
        return InferenceClientAdapter(
            test_config,
            client=relay.client(base_url=RELAY_URL),
            **kwargs,
        )

    return _make


def sent_prompt(relay: ScriptedUpstream, index: int = -1) -> str:
    return json.loads(relay.requests[index].content)["prompt"]


# ---------------------------------------------------------------------------
# request_image
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestRequestImage:
    """Tests for the low-level relay call."""

    async def test_success_returns_live_handle(self, make_adapter, relay_ok, png_bytes):
        adapter = make_adapter(relay_ok)
        handle = await adapter.request_image("a lighthouse")

        assert handle.resolution == "64x32"
        assert handle.content_type == "image/png"
        assert adapter.resources.read(handle) == png_bytes

    async def test_posts_prompt_to_generate_endpoint(self, make_adapter, relay_ok):
        await make_adapter(relay_ok).request_image("a lighthouse")

        request = relay_ok.requests[0]
        assert request.method == "POST"
        assert request.url == f"{RELAY_URL}{GENERATE_ENDPOINT}"
        assert json.loads(request.content) == {"prompt": "a lighthouse"}

    async def test_oversized_image_still_returns_handle(self, make_adapter, oversized_png):
        relay = ScriptedUpstream(
            reply(200, content=oversized_png, headers={"Content-Type": "image/png"})
        )
        adapter = make_adapter(relay)

        handle = await adapter.request_image("a cat")

        assert handle.resolution is None
        assert adapter.resources.read(handle) == oversized_png

    async def test_relay_error_message_passed_through(self, make_adapter):
        message = "Model is currently loading on Hugging Face. Please retry shortly."
        relay = ScriptedUpstream(reply(503, json={"error": message, "details": {}}))

        with pytest.raises(ImageGenerationError) as exc_info:
            await make_adapter(relay).request_image("x")

        assert exc_info.value.message == message
        assert exc_info.value.status_code == 503
        assert relay.call_count == 1

    async def test_json_without_error_field(self, make_adapter):
        relay = ScriptedUpstream(reply(500, json={"unexpected": True}))
        with pytest.raises(ImageGenerationError, match=FALLBACK_MESSAGE):
            await make_adapter(relay).request_image("x")

    async def test_text_error_body(self, make_adapter):
        relay = ScriptedUpstream(reply(502, text="Bad gateway"))
        with pytest.raises(ImageGenerationError, match="Bad gateway"):
            await make_adapter(relay).request_image("x")

    async def test_empty_error_body(self, make_adapter):
        relay = ScriptedUpstream(reply(500))
        with pytest.raises(ImageGenerationError, match="status 500"):
            await make_adapter(relay).request_image("x")

    async def test_relay_unreachable(self, make_adapter):
        relay = ScriptedUpstream(httpx.ConnectError("connection refused"))
        with pytest.raises(ImageGenerationError, match="Could not reach") as exc_info:
            await make_adapter(relay).request_image("x")
        assert exc_info.value.status_code is None

    async def test_context_manager_closes_owned_client(self, test_config):
        adapter = InferenceClientAdapter(test_config)
        async with adapter:
            pass
        assert adapter._client.is_closed


# ---------------------------------------------------------------------------
# Feature operations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestFeatureOperations:
    """Tests for prompt composition and input validation per feature."""

    async def test_generate_image_from_text(self, make_adapter, relay_ok):
        handle = await make_adapter(relay_ok).generate_image_from_text(
            "a lighthouse at dusk", "Digital Art", "16:9 (Wide)"
        )
        assert handle is not None
        assert sent_prompt(relay_ok).startswith(
            "Generate an image with the following description: a lighthouse at dusk. "
            "Style: Digital Art. Aspect ratio: 16:9 (Wide)."
        )

    async def test_default_labels(self, make_adapter, relay_ok):
        adapter = make_adapter(relay_ok)

        await adapter.generate_image_from_text("a cat")
        expected = f"Style: {IMAGE_STYLES[0]}. Aspect ratio: {ASPECT_RATIOS[0]}."
        assert expected in sent_prompt(relay_ok)

        await adapter.style_transform(PHOTO)
        assert f'in the style of "{ART_PRESETS[0]}"' in sent_prompt(relay_ok)

    async def test_style_transform_embeds_truncated_reference(self, make_adapter, relay_ok):
        await make_adapter(relay_ok).style_transform(PHOTO, "Cyberpunk", "neon rain")

        prompt = sent_prompt(relay_ok)
        assert 'in the style of "Cyberpunk"' in prompt
        assert "neon rain" in prompt
        assert f"{PHOTO[:200]}..." in prompt
        assert PHOTO not in prompt

    async def test_reference_hint_length_from_config(self, test_config, relay_ok):
        cfg = test_config.model_copy(update={"reference_hint_length": 12})
        adapter = InferenceClientAdapter(cfg, client=relay_ok.client(base_url=RELAY_URL))
        await adapter.style_transform(PHOTO, "Anime")
        assert sent_prompt(relay_ok).endswith(f"{PHOTO[:12]}...")

    async def test_fuse_images(self, make_adapter, relay_ok):
        await make_adapter(relay_ok).fuse_images(PHOTO, OUTFIT)
        prompt = sent_prompt(relay_ok)
        assert prompt.index(PHOTO[:200]) < prompt.index(OUTFIT[:100])

    async def test_run_fit_check_returns_placeholder_analysis(self, make_adapter, relay_ok):
        result = await make_adapter(relay_ok).run_fit_check(PHOTO, OUTFIT)

        assert result.image.resolution == "64x32"
        assert result.analysis == FitCheckAnalysis()
        assert result.analysis.score == 8
        assert "Person image" in sent_prompt(relay_ok)

    @pytest.mark.parametrize(
        ("operation", "args", "message"),
        [
            ("generate_image_from_text", ("   ",), "Please describe what you want to create."),
            ("style_transform", (None,), "Please upload a photo to style."),
            ("fuse_images", (PHOTO, ""), "Both images are required to combine them."),
            ("fuse_images", (None, PHOTO), "Both images are required to combine them."),
            ("run_fit_check", (PHOTO, None), "Both your photo and an outfit photo are required."),
        ],
    )
    async def test_incomplete_input_rejected_before_network(
        self, make_adapter, relay_ok, operation, args, message
    ):
        adapter = make_adapter(relay_ok)
        with pytest.raises(InputError) as exc_info:
            await getattr(adapter, operation)(*args)

        assert str(exc_info.value) == message
        assert relay_ok.call_count == 0


# ---------------------------------------------------------------------------
# Activity logging
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestActivityLogging:
    """Tests for GenerationLog recording."""

    async def test_records_text_generation(self, make_adapter, relay_ok):
        recorder = InMemoryActivityRecorder()
        adapter = make_adapter(relay_ok, identity=StaticIdentity("user-1"), recorder=recorder)

        await adapter.generate_image_from_text("  a red fox ", "Anime", "1:1 (Square)")

        [log] = recorder.logs_for_user("user-1")
        assert log.feature_type is FeatureType.TEXT_TO_IMAGE
        assert log.prompt == "a red fox"
        assert log.uploaded_image_meta == []
        assert log.generated_image_info["resolution"] == "64x32"

    async def test_records_upload_metadata(self, make_adapter, relay_ok):
        recorder = InMemoryActivityRecorder()
        adapter = make_adapter(relay_ok, identity=StaticIdentity("user-1"), recorder=recorder)

        await adapter.run_fit_check(PHOTO, OUTFIT)

        [log] = recorder.logs_for_user("user-1")
        assert log.feature_type is FeatureType.FIT_CHECK
        assert log.prompt == "No prompt provided"
        assert log.uploaded_image_meta == [
            {"type": "image/png", "size": 300},
            {"type": "image/jpeg", "size": 120},
        ]

    async def test_style_transform_prompt_summary(self, make_adapter, relay_ok):
        recorder = InMemoryActivityRecorder()
        adapter = make_adapter(relay_ok, identity=StaticIdentity("user-1"), recorder=recorder)

        await adapter.style_transform(PHOTO, "Sketch", "charcoal")

        assert recorder.logs_for_user("user-1")[0].prompt == "Sketch: charcoal"

    async def test_signed_out_user_not_recorded(self, make_adapter, relay_ok):
        recorder = InMemoryActivityRecorder()
        adapter = make_adapter(relay_ok, identity=StaticIdentity(None), recorder=recorder)

        await adapter.generate_image_from_text("a cat")
        assert len(recorder) == 0

    async def test_failed_generation_not_recorded(self, make_adapter):
        recorder = InMemoryActivityRecorder()
        relay = ScriptedUpstream(reply(429, json={"error": "Rate limit reached."}))
        adapter = make_adapter(relay, identity=StaticIdentity("user-1"), recorder=recorder)

        with pytest.raises(ImageGenerationError):
            await adapter.generate_image_from_text("a cat")
        assert len(recorder) == 0

    async def test_recorder_failure_does_not_lose_image(self, make_adapter, relay_ok, png_bytes):
        recorder = FailingRecorder()
        adapter = make_adapter(relay_ok, identity=StaticIdentity("user-1"), recorder=recorder)

        handle = await adapter.generate_image_from_text("a cat")

        assert recorder.calls == 1
        assert adapter.resources.read(handle) == png_bytes
