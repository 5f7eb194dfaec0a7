"""Composite candidates, panel remastering and panel prompt extraction."""

import asyncio
import logging
import re
from typing import Optional

from nanodirector_gemini_client import GeminiClient
from nanodirector_core_schemas import (
    AspectRatio,
    ImageResolution,
    ProviderError,
    ProviderErrorKind,
    StylePreferences,
)
from nanodirector_generators.errors import PROVIDER_FAILURES, as_provider_error
from nanodirector_generators.imaging import resize_image
from nanodirector_generators.style import resolve_aspect_ratio, resolve_negative, resolve_style
from nanodirector_generators.templates import render
from nanodirector_generators.templates.director import EXTRACT_PROMPT, GRID_PROMPT, REMASTER_PROMPT

logger = logging.getLogger(__name__)

_BRACKETED_TAG = re.compile(r"[(\[]\s*@img\d+\s*[)\]]", re.IGNORECASE)
_BARE_TAG = re.compile(r"@img\d+", re.IGNORECASE)
_MULTI_SPACE = re.compile(r"\s{2,}")


def clean_extracted_prompt(text: str) -> str:
    """Remove @imgN references and collapse runs of whitespace."""
    text = _BRACKETED_TAG.sub("", text)
    text = _BARE_TAG.sub("", text)
    return _MULTI_SPACE.sub(" ", text).strip()


class ImageGenerator:
    """Generates composite sheets and remastered panels."""

    def __init__(self, client: GeminiClient, candidate_delay: float = 1.0):
        """Initialize the image generator.

        Args:
            client: Gemini client
            candidate_delay: Seconds to wait between candidate requests
        """
        self.client = client
        self.candidate_delay = candidate_delay

    async def candidate_grids(
        self,
        prompt: str,
        aspect_ratio: AspectRatio = AspectRatio.SQUARE,
        count: int = 2,
        resolution: ImageResolution = ImageResolution.RES_2K,
        style_prefs: Optional[StylePreferences] = None,
        grid_size: int = 2,
    ) -> list[bytes]:
        """Request ``count`` independent composite sheets, one after another.

        A failed candidate is skipped. A permission error aborts at once since
        every further request would fail the same way.

        Raises:
            ProviderError: On permission errors, or when no candidate succeeded
        """
        style_prefs = style_prefs or StylePreferences()
        ratio, aspect_note = resolve_aspect_ratio(aspect_ratio)
        full_prompt = render(
            GRID_PROMPT,
            prompt=prompt,
            style=resolve_style(style_prefs),
            negative=resolve_negative(style_prefs),
            grid_size=grid_size,
            aspect_note=aspect_note,
        )

        images: list[bytes] = []
        for i in range(count):
            try:
                image_data = await self.client.generate_image(
                    full_prompt,
                    aspect_ratio=ratio,
                    resolution=resolution.value,
                )
                images.append(image_data)
            except PROVIDER_FAILURES as e:
                error = as_provider_error(e, "Grid")
                if error.kind == ProviderErrorKind.PERMISSION_DENIED:
                    raise ProviderError(
                        f"Permission Denied for model '{self.client.image_model}'. "
                        "Ensure your API Key supports image generation.",
                        kind=ProviderErrorKind.PERMISSION_DENIED,
                    ) from e
                logger.warning("Candidate %d of %d failed: %s", i + 1, count, error.message)

            if i < count - 1:
                await asyncio.sleep(self.candidate_delay)

        if not images:
            raise ProviderError(
                f"Failed to generate options using {self.client.image_model}. "
                "Check API permissions and quota.",
                kind=ProviderErrorKind.SERVER_ERROR,
            )
        return images

    async def remaster_cell(
        self,
        cell: bytes,
        shot_description: str,
        resolution: ImageResolution = ImageResolution.RES_2K,
        aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE,
        style_prefs: Optional[StylePreferences] = None,
    ) -> bytes:
        """Enhance one panel while keeping its composition.

        Raises:
            ProviderError: If the model call fails
        """
        style_prefs = style_prefs or StylePreferences()
        ratio, aspect_note = resolve_aspect_ratio(aspect_ratio)
        prompt = render(
            REMASTER_PROMPT,
            context=shot_description,
            style=resolve_style(style_prefs),
            negative=resolve_negative(style_prefs),
            aspect_note=aspect_note,
        )

        try:
            image_data = await self.client.generate_image(
                prompt,
                images=[cell],
                aspect_ratio=ratio,
                resolution=resolution.value,
            )
        except PROVIDER_FAILURES as e:
            raise as_provider_error(e, "Remaster") from e
        return image_data

    async def extract_prompt(self, cell: bytes, global_context: str, shot_description: str) -> str:
        """Describe one panel as a standalone generation prompt.

        The panel is downscaled to 512px before analysis.

        Raises:
            ProviderError: If the model call fails
        """
        prompt = render(
            EXTRACT_PROMPT,
            context=global_context,
            shot_description=shot_description,
        )

        try:
            text = await self.client.generate_text(prompt, images=[resize_image(cell, 512)])
        except PROVIDER_FAILURES as e:
            raise as_provider_error(e, "Extract") from e

        return clean_extracted_prompt(text or shot_description)
