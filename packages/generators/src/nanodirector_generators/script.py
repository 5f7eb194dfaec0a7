"""Storyboard script synthesis and composite prompt compilation."""

import logging
from typing import Optional

from pydantic import BaseModel, Field

from nanodirector_gemini_client import GeminiClient
from nanodirector_core_schemas import Script, Shot
from nanodirector_generators.errors import PROVIDER_FAILURES, as_provider_error
from nanodirector_generators.templates import render
from nanodirector_generators.templates.director import RECOMPILE_PROMPT, SCRIPT_PROMPT

logger = logging.getLogger(__name__)


class ShotResponse(BaseModel):
    """A shot as returned by the model."""

    shot_number: int = 0
    description: str = ""
    camera_angle: str = ""
    lighting: str = ""


class ScriptResponse(BaseModel):
    """Script plus composite prompt as returned by the model."""

    title: str = "Untitled"
    logline: str = ""
    grid_prompt: str = ""
    shots: list[ShotResponse] = Field(default_factory=list)


def normalize_shots(shots: list[Shot], grid_size: int) -> list[Shot]:
    """Force a shot list to exactly grid_size ** 2 entries numbered from 1.

    Extra shots are dropped; missing ones get a generic description.
    """
    total = grid_size * grid_size
    result = []
    for i in range(total):
        if i < len(shots):
            result.append(shots[i].model_copy(update={"number": i + 1}))
        else:
            result.append(Shot(number=i + 1, description=f"Cinematic shot {i + 1}"))
    return result


class ScriptGenerator:
    """Turns a story idea into a shot list and a composite sheet prompt."""

    def __init__(self, client: GeminiClient):
        self.client = client

    async def script_and_prompt(
        self,
        idea: str,
        ref_images: Optional[list[bytes]] = None,
        grid_size: int = 2,
    ) -> Script:
        """Generate a script with exactly grid_size ** 2 shots.

        Args:
            idea: The user's story idea
            ref_images: Reference images, referred to as @img1..@imgN
            grid_size: Rows (and columns) of the composite sheet

        Raises:
            ProviderError: If the model call fails or returns unusable output
        """
        ref_images = [img for img in ref_images or [] if img]
        prompt = render(
            SCRIPT_PROMPT,
            idea=idea,
            ref_count=len(ref_images),
            grid_size=grid_size,
            total_shots=grid_size * grid_size,
        )

        try:
            # Every Generate should be a fresh take on the idea
            response = await self.client.generate_structured(
                prompt,
                ScriptResponse,
                images=ref_images,
                overwrite_cache=True,
            )
        except PROVIDER_FAILURES as e:
            raise as_provider_error(e, "Script") from e

        shots = [
            Shot(
                number=s.shot_number,
                description=s.description,
                camera_angle=s.camera_angle,
                lighting=s.lighting,
            )
            for s in response.shots
        ]
        if len(shots) != grid_size * grid_size:
            logger.info(
                "Script returned %d shots for a %dx%d grid, normalizing",
                len(shots),
                grid_size,
                grid_size,
            )

        return Script(
            title=response.title,
            logline=response.logline,
            shots=normalize_shots(shots, grid_size),
            composite_prompt=response.grid_prompt,
        )

    async def recompile_prompt(self, script: Script, grid_size: int) -> str:
        """Rebuild the composite prompt from an edited script.

        Returns the script's current composite prompt if the model returns nothing.
        """
        prompt = render(
            RECOMPILE_PROMPT,
            script=script,
            grid_size=grid_size,
            total_shots=grid_size * grid_size,
        )

        try:
            text = await self.client.generate_text(prompt)
        except PROVIDER_FAILURES as e:
            raise as_provider_error(e, "Compile") from e

        return text.strip() or script.composite_prompt
