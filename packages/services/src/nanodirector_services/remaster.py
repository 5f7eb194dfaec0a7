"""Sequential remastering of split panels."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from nanodirector_core_schemas import AspectRatio, ImageResolution, StylePreferences
from nanodirector_storage import AssetBatch, LocalStore

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)


@dataclass
class RemasterResult:
    """Outcome of one remaster batch."""

    images: list[bytes]
    failed: list[int] = field(default_factory=list)  # 0-based indices that kept the raw crop
    batch: Optional[AssetBatch] = None  # Set when the batch was written to the project folder

    @property
    def remastered_count(self) -> int:
        return len(self.images) - len(self.failed)


class RemasterSequencer:
    """Remasters cells one at a time, keeping the raw crop when a call fails."""

    def __init__(
        self,
        generator,
        delay: float = 0.8,
        store: Optional[LocalStore] = None,
    ):
        """Initialize the sequencer.

        Args:
            generator: Generation collaborator providing ``remaster_cell``
            delay: Seconds to wait after a successful call before the next one
            store: Project folder the finished batch is written to, when active
        """
        self.generator = generator
        self.delay = delay
        self.store = store

    async def run(
        self,
        source: bytes,
        cells: list[bytes],
        shot_descriptions: list[str],
        resolution: ImageResolution,
        aspect_ratio: AspectRatio,
        style_prefs: StylePreferences,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> RemasterResult:
        """Remaster every cell in order.

        Always returns exactly ``len(cells)`` images.

        Args:
            source: The composite the cells were cut from
            cells: Raw cropped cells in row-major order
            shot_descriptions: One description per cell
            resolution: Panel resolution
            aspect_ratio: Panel aspect ratio
            style_prefs: Style applied to every panel
            on_progress: Called with (done, total) after each cell
        """
        total = len(cells)
        images: list[bytes] = []
        failed: list[int] = []

        for i, cell in enumerate(cells):
            logger.info("Remastering shot %d of %d (%s)", i + 1, total, style_prefs.mode.value)
            try:
                image = await self.generator.remaster_cell(
                    cell, shot_descriptions[i], resolution, aspect_ratio, style_prefs
                )
            except Exception as e:
                logger.warning(
                    "Failed to remaster shot %d, falling back to original crop: %s",
                    i + 1,
                    e,
                )
                images.append(cell)
                failed.append(i)
            else:
                images.append(image)
                if i < total - 1 and self.delay:
                    await asyncio.sleep(self.delay)

            if on_progress:
                on_progress(i + 1, total)

        result = RemasterResult(images=images, failed=failed)

        if self.store is not None and self.store.is_active:
            try:
                result.batch = self.store.save_batch(source, images)
            except PersistenceError as e:
                logger.warning("Could not save asset batch, keeping panels in memory: %s", e.message)

        return result
