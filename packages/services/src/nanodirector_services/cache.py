"""Single-flight cache of prompts extracted from remastered panels."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .exceptions import ServiceError

logger = logging.getLogger(__name__)

Extractor = Callable[[bytes, str, str], Awaitable[str]]


class PromptExtractionCache:
    """Maps a panel index to the prompt extracted from that panel.

    At most one extraction per index is in flight at a time; concurrent
    callers for the same index share it. Failures fall back to the shot
    description and are not cached, so a later call retries.
    """

    def __init__(self, extractor: Extractor):
        """Initialize the cache.

        Args:
            extractor: Async callable ``(image, global_context, shot_description) -> text``
        """
        self._extract = extractor
        self._values: dict[int, str] = {}
        self._pending: dict[int, asyncio.Task] = {}
        # Bumped by clear() so extractions started before it are not stored
        self._epoch = 0

    def __contains__(self, index: int) -> bool:
        return index in self._values

    def __len__(self) -> int:
        return len(self._values)

    def peek(self, index: int) -> Optional[str]:
        """Cached value for ``index`` without triggering an extraction."""
        return self._values.get(index)

    def is_pending(self, index: int) -> bool:
        return index in self._pending

    def clear(self) -> None:
        """Forget all values and detach in-flight extractions."""
        self._values.clear()
        self._pending.clear()
        self._epoch += 1

    async def get(self, index: int, image: bytes, context: str, shot_description: str) -> str:
        """Return the prompt for panel ``index``, extracting it if needed."""
        if index in self._values:
            return self._values[index]

        task = self._pending.get(index)
        if task is None:
            task = asyncio.ensure_future(
                self._run(index, image, context, shot_description, self._epoch)
            )
            self._pending[index] = task

        # A cancelled caller must not cancel the extraction other callers share
        return await asyncio.shield(task)

    async def _run(
        self, index: int, image: bytes, context: str, shot_description: str, epoch: int
    ) -> str:
        try:
            text = await self._extract(image, context, shot_description)
        except ServiceError as e:
            logger.warning("Prompt extraction failed for panel %d: %s", index + 1, e.message)
            return shot_description
        finally:
            if self._pending.get(index) is asyncio.current_task():
                del self._pending[index]

        if epoch == self._epoch:
            self._values[index] = text
        return text
