"""Prompt composition for the Imagify client adapter.

Every feature of the client is served by the same text-only upstream model,
so each one is reduced to a single flattened prompt string.

Reference Images
----------------
The upstream model does not accept image inputs.  Image-conditioned features
(style transform, fusion, fit check) are approximated by embedding the first
``hint_length`` characters of each reference image's data URL, followed by
``...``, into the prompt.  For a base64 data URL this is mostly the mime
header and the first bytes of the encoding, so the model gets little real
guidance from it.  Image bytes are never sent upstream.

Template Structure (text-to-image)::

    Generate an image with the following description: [description].
    Style: [style]. Aspect ratio: [aspect ratio]. Use high quality, detailed
    Stable Diffusion XL output.

Usage
-----
::

    prompt = build_text_prompt("a lighthouse at dusk", "Digital Art", "16:9 (Wide)")
"""

from __future__ import annotations

DEFAULT_HINT_LENGTH = 200

# Labels offered by the dashboard; the first of each is the adapter default.
# Free text is accepted as well.
IMAGE_STYLES = ("Realistic Photo", "3D Render", "Digital Art", "Watercolor Painting")
ART_PRESETS = ("Anime", "Cyberpunk", "Sketch", "Oil Painting", "Cartoon", "Watercolor", "3D")
ASPECT_RATIOS = ("1:1 (Square)", "16:9 (Wide)", "9:16 (Tall)")


def reference_hint(data_url: str, hint_length: int = DEFAULT_HINT_LENGTH) -> str:
    """Truncate a reference image's data URL to a short textual hint.

    Args:
        data_url: ``data:<mime>;base64,<payload>`` string (any string works).
        hint_length: Number of leading characters to keep.

    Returns:
        The first *hint_length* characters followed by ``...``.
    """
    return f"{data_url[:hint_length]}..."


def build_text_prompt(description: str, style: str, aspect_ratio: str) -> str:
    """Compose the text-to-image prompt.

    Args:
        description: Free-text description of the scene.
        style: Style label (e.g. "Realistic Photo").
        aspect_ratio: Aspect ratio label (e.g. "1:1 (Square)").

    Returns:
        The compiled prompt.
    """
    return (
        f"Generate an image with the following description: {description.strip()}. "
        f"Style: {style.strip()}. Aspect ratio: {aspect_ratio.strip()}. "
        "Use high quality, detailed Stable Diffusion XL output."
    )


def build_style_transform_prompt(
    image_data_url: str,
    style: str,
    refine_prompt: str | None = None,
    *,
    hint_length: int = DEFAULT_HINT_LENGTH,
) -> str:
    """Compose the prompt for restyling a reference photo.

    Args:
        image_data_url: Data URL of the photo to restyle.
        style: Target art preset (e.g. "Anime").
        refine_prompt: Optional extra instructions from the user.  Blank
            values are omitted.
        hint_length: Characters of the data URL to embed.

    Returns:
        The compiled prompt.
    """
    extra = f" {refine_prompt.strip()}" if refine_prompt and refine_prompt.strip() else ""
    return (
        f'Create a new image in the style of "{style.strip()}" based on the following '
        "reference image. The reference is provided as a base64 data URL; keep key subject "
        f"details consistent while applying the new style.{extra} "
        f"Reference (for human guidance only): {reference_hint(image_data_url, hint_length)}"
    )


def build_fusion_prompt(
    subject_data_url: str,
    style_data_url: str,
    *,
    hint_length: int = DEFAULT_HINT_LENGTH,
) -> str:
    """Compose the prompt for fusing a subject image with a style/background image."""
    return (
        "Create a single cohesive image that fuses two source images. Use the first image "
        "as the main subject and the second as the background or stylistic reference. The "
        "images are provided as data URLs and are meant only as guidance for what to depict. "
        f"Image A (subject, truncated): {reference_hint(subject_data_url, hint_length)} "
        f"Image B (style/background, truncated): {reference_hint(style_data_url, hint_length)}"
    )


def build_fit_check_prompt(
    person_data_url: str,
    outfit_data_url: str,
    *,
    hint_length: int = DEFAULT_HINT_LENGTH,
) -> str:
    """Compose the prompt for visualising a person wearing an outfit."""
    return (
        "Visualize how a person would look wearing a given outfit. The first reference image "
        "is the person, and the second is the outfit. Generate a flattering but realistic "
        "visualization of the person wearing the outfit, with clear lighting and neutral "
        "background. "
        f"Person image (truncated data URL): {reference_hint(person_data_url, hint_length)} "
        f"Outfit image (truncated data URL): {reference_hint(outfit_data_url, hint_length)}"
    )
