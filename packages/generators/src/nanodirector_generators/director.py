"""Single entry point for every generation call the Director pipeline makes."""

from typing import Optional

from nanodirector_gemini_client import GeminiClient
from nanodirector_core_schemas import AspectRatio, ImageResolution, Script, StylePreferences
from nanodirector_generators.image import ImageGenerator
from nanodirector_generators.script import ScriptGenerator


class DirectorGenerator:
    """Generation collaborator for the Director pipeline.

    Groups script synthesis, prompt compilation, candidate sheets,
    panel remastering and prompt extraction behind one object so the
    services layer (and tests) only deal with one dependency.
    """

    def __init__(self, client: GeminiClient, candidate_delay: float = 1.0):
        self.client = client
        self.scripts = ScriptGenerator(client)
        self.images = ImageGenerator(client, candidate_delay=candidate_delay)

    async def script_and_prompt(
        self, idea: str, ref_images: Optional[list[bytes]], grid_size: int
    ) -> Script:
        return await self.scripts.script_and_prompt(idea, ref_images, grid_size)

    async def recompile_prompt(self, script: Script, grid_size: int) -> str:
        return await self.scripts.recompile_prompt(script, grid_size)

    async def candidate_grids(
        self,
        prompt: str,
        aspect_ratio: AspectRatio,
        count: int,
        resolution: ImageResolution,
        style_prefs: StylePreferences,
        grid_size: int,
    ) -> list[bytes]:
        return await self.images.candidate_grids(
            prompt, aspect_ratio, count, resolution, style_prefs, grid_size
        )

    async def remaster_cell(
        self,
        cell: bytes,
        shot_description: str,
        resolution: ImageResolution,
        aspect_ratio: AspectRatio,
        style_prefs: StylePreferences,
    ) -> bytes:
        return await self.images.remaster_cell(
            cell, shot_description, resolution, aspect_ratio, style_prefs
        )

    async def extract_prompt(self, cell: bytes, global_context: str, shot_description: str) -> str:
        return await self.images.extract_prompt(cell, global_context, shot_description)
