"""Director pipeline orchestrator."""

import asyncio
import logging
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from nanodirector_core_schemas import (
    GRID_SIZES,
    MAX_CANDIDATES,
    AspectRatio,
    DisplayState,
    HistoryItem,
    ImageResolution,
    PanelTransfer,
    PipelinePhase,
    ProjectState,
    Script,
    StylePreferences,
)
from nanodirector_generators import b64_to_bytes, bytes_to_b64, split_grid, strip_data_url
from nanodirector_storage import LocalStore, is_asset_ref

from .cache import PromptExtractionCache
from .display import derive_display_state
from .exceptions import ValidationError
from .history import HistoryLedger
from .remaster import RemasterSequencer

logger = logging.getLogger(__name__)

MAX_TRANSFER_REFS = 14

Listener = Callable[[ProjectState], None]


class DirectorService:
    """Owns the project state and runs the Director pipeline.

    Generate (script + candidate sheets) -> Select -> Direct (split +
    remaster), with history, prompt extraction and change notification.
    Nothing else mutates the state; callers read it through ``state`` or
    take a copy with ``snapshot()``.
    """

    def __init__(
        self,
        generator,
        local_store: Optional[LocalStore] = None,
        state: Optional[ProjectState] = None,
        remaster_delay: float = 0.8,
    ):
        """Initialize the orchestrator.

        Args:
            generator: Generation collaborator (script, candidates, remaster, extract)
            local_store: Project folder remaster batches are written to when active
            state: Initial project state
            remaster_delay: Seconds between successful remaster calls
        """
        self.generator = generator
        self.local_store = local_store or LocalStore()
        self.sequencer = RemasterSequencer(generator, delay=remaster_delay, store=self.local_store)
        self.prompt_cache = PromptExtractionCache(generator.extract_prompt)

        self._state = state or ProjectState()
        self.history = HistoryLedger(self._state.history)
        self.phase = self._phase_for(self._state)

        self._batch = 0
        self._listeners: list[Listener] = []
        self._prefetch_tasks: set[asyncio.Task] = set()

    # === State access ===

    @property
    def state(self) -> ProjectState:
        return self._state

    def snapshot(self) -> ProjectState:
        """Deep copy of the current state, safe to persist in the background."""
        return self._state.model_copy(deep=True)

    @property
    def display_state(self) -> DisplayState:
        return derive_display_state(
            self._state.selected_grid_index,
            self._state.directed_grid_index,
            len(self._state.final_images),
        )

    @property
    def is_busy(self) -> bool:
        return self.phase in (PipelinePhase.SCRIPTING, PipelinePhase.REMASTERING)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every state change. Returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener(self._state)

    def _next_batch(self) -> int:
        self._batch += 1
        return self._batch

    def _is_stale(self, token: int, what: str) -> bool:
        if token != self._batch:
            logger.info("Discarding stale %s result from an earlier run", what)
            return True
        return False

    @staticmethod
    def _phase_for(state: ProjectState) -> PipelinePhase:
        if state.final_images:
            return PipelinePhase.PANELS_READY
        if state.grid_candidates:
            return PipelinePhase.CANDIDATES_READY
        return PipelinePhase.IDLE

    # === Settings ===

    def set_project_name(self, name: str) -> None:
        self._state.project_name = name.strip()
        self._changed()

    def set_story_idea(self, idea: str) -> None:
        self._state.story_idea = idea
        self._changed()

    def set_grid_size(self, grid_size: int) -> None:
        """Change the grid size.

        A different size discards the script, candidates, selection and panels.
        """
        if grid_size not in GRID_SIZES:
            raise ValidationError(
                f"Grid size must be one of {', '.join(map(str, GRID_SIZES))}", field="grid_size"
            )
        if grid_size == self._state.grid_size:
            return

        self._next_batch()
        self._state.grid_size = grid_size
        self._state.script = None
        self._state.is_script_dirty = False
        self._clear_results()
        self.phase = PipelinePhase.IDLE
        self._changed()

    def set_candidate_count(self, count: int) -> None:
        if not 1 <= count <= MAX_CANDIDATES:
            raise ValidationError(
                f"Candidate count must be between 1 and {MAX_CANDIDATES}", field="candidate_count"
            )
        self._state.candidate_count = count
        self._changed()

    def set_aspect_ratio(self, aspect_ratio: AspectRatio) -> None:
        self._state.aspect_ratio = AspectRatio(aspect_ratio)
        self._changed()

    def set_resolution(
        self,
        panels: Optional[ImageResolution] = None,
        grid: Optional[ImageResolution] = None,
    ) -> None:
        """Set the panel and/or composite resolution."""
        if panels is not None:
            self._state.resolution = ImageResolution(panels)
        if grid is not None:
            self._state.grid_resolution = ImageResolution(grid)
        self._changed()

    def set_ref_images(self, images: list[str]) -> None:
        """Replace the reference images (base64, data URLs accepted)."""
        cleaned = [strip_data_url(img) for img in images if img]
        for img in cleaned:
            b64_to_bytes(img)  # raises ValidationError on bad data
        self._state.ref_images = cleaned
        self._changed()

    def update_style(self, **changes) -> StylePreferences:
        """Change style preferences.

        Setting append text while override text is set (or the reverse) is
        rejected and leaves the current preferences unchanged.

        Raises:
            ValidationError: If the resulting preferences are invalid
        """
        current = self._state.style_prefs.model_dump()
        unknown = set(changes) - set(current)
        if unknown:
            raise ValidationError(f"Unknown style field(s): {', '.join(sorted(unknown))}")

        try:
            prefs = StylePreferences.model_validate({**current, **changes})
        except PydanticValidationError as e:
            raise ValidationError(e.errors()[0]["msg"], field="style_prefs") from e

        self._state.style_prefs = prefs
        self._changed()
        return prefs

    # === Script editing ===

    def edit_shot(
        self,
        index: int,
        description: Optional[str] = None,
        camera_angle: Optional[str] = None,
        lighting: Optional[str] = None,
    ) -> Script:
        """Edit one shot of the script and mark the script dirty."""
        script = self._state.script
        if script is None:
            raise ValidationError("There is no script to edit yet", field="script")
        if not 0 <= index < len(script.shots):
            raise ValidationError(f"Shot {index + 1} does not exist", field="index")

        updates = {
            key: value
            for key, value in (
                ("description", description),
                ("camera_angle", camera_angle),
                ("lighting", lighting),
            )
            if value is not None
        }
        shots = list(script.shots)
        shots[index] = shots[index].model_copy(update=updates)
        self._state.script = script.model_copy(update={"shots": shots})
        self._state.is_script_dirty = True
        self._changed()
        return self._state.script

    def edit_script(self, title: Optional[str] = None, logline: Optional[str] = None) -> Script:
        script = self._state.script
        if script is None:
            raise ValidationError("There is no script to edit yet", field="script")
        updates = {k: v for k, v in (("title", title), ("logline", logline)) if v is not None}
        self._state.script = script.model_copy(update=updates)
        self._state.is_script_dirty = True
        self._changed()
        return self._state.script

    def clear_script(self) -> None:
        """Drop the script so the next generate writes a new one."""
        self._state.script = None
        self._state.is_script_dirty = False
        self._changed()

    # === Pipeline ===

    def _clear_results(self) -> None:
        self._state.grid_candidates = []
        self._state.selected_grid_index = None
        self._state.directed_grid_index = None
        self._state.final_images = []
        self.prompt_cache.clear()

    async def generate(self) -> list[str]:
        """Produce candidate composite sheets for the story idea.

        Writes a script first if there is none, or recompiles the composite
        prompt if the script was edited. Previous candidates, selection and
        panels are cleared before any call is made.

        Returns:
            The new candidates (base64), or [] if a newer run superseded this one

        Raises:
            ValidationError: If the story idea is empty
            ProviderError: If script or candidate generation fails
        """
        state = self._state
        if not state.story_idea.strip():
            raise ValidationError("Story idea is required", field="story_idea")

        token = self._next_batch()
        self._clear_results()
        self.phase = PipelinePhase.SCRIPTING
        self._changed()

        try:
            if state.script is None:
                refs = [b64_to_bytes(img) for img in state.ref_images]
                script = await self.generator.script_and_prompt(
                    state.story_idea, refs, state.grid_size
                )
                if self._is_stale(token, "script"):
                    return []
                state.script = script
                state.is_script_dirty = False
                self._changed()
            elif state.is_script_dirty:
                prompt = await self.generator.recompile_prompt(state.script, state.grid_size)
                if self._is_stale(token, "prompt"):
                    return []
                state.script = state.script.model_copy(update={"composite_prompt": prompt})
                state.is_script_dirty = False
                self._changed()

            images = await self.generator.candidate_grids(
                state.script.composite_prompt or state.story_idea,
                state.aspect_ratio,
                state.candidate_count,
                state.grid_resolution,
                state.style_prefs,
                state.grid_size,
            )
        except Exception:
            if token == self._batch:
                self.phase = PipelinePhase.IDLE
                self._changed()
            raise

        if self._is_stale(token, "candidate"):
            return []

        state.grid_candidates = [bytes_to_b64(img) for img in images]
        self.phase = PipelinePhase.CANDIDATES_READY
        self._changed()
        logger.info("Generated %d candidate sheet(s)", len(images))
        return list(state.grid_candidates)

    def select(self, index: int) -> None:
        """Mark candidate ``index`` as the one to direct."""
        if not 0 <= index < len(self._state.grid_candidates):
            raise ValidationError(f"Candidate {index + 1} does not exist", field="index")
        self._state.selected_grid_index = index
        if not self.is_busy:
            if self.display_state == DisplayState.SHOW_PANELS:
                self.phase = PipelinePhase.PANELS_READY
            else:
                self.phase = PipelinePhase.SELECTING
        self._changed()

    async def direct(
        self,
        on_progress: Optional[Callable[[int, int], None]] = None,
        prefetch: bool = True,
    ) -> list[str]:
        """Split the selected candidate and remaster each panel.

        On success a history entry is recorded and, unless ``prefetch`` is
        False, prompt extraction for every panel starts in the background.
        On failure the directed marker is reset so Direct can be offered again.

        Returns:
            The final panels (base64, or asset paths when written to the project folder)

        Raises:
            ValidationError: If no candidate is selected or it cannot be split
        """
        state = self._state
        index = state.selected_grid_index
        if state.script is None or index is None or not 0 <= index < len(state.grid_candidates):
            raise ValidationError("Select a candidate before directing", field="selected_grid_index")

        token = self._next_batch()
        state.directed_grid_index = index
        state.final_images = []
        self.prompt_cache.clear()
        self.phase = PipelinePhase.REMASTERING
        self._changed()

        source_b64 = state.grid_candidates[index]
        script = state.script.model_copy(deep=True)
        grid_size = state.grid_size
        style_prefs = state.style_prefs.model_copy(deep=True)

        try:
            source = b64_to_bytes(source_b64)
            cells = split_grid(source, grid_size)
            result = await self.sequencer.run(
                source,
                cells,
                [script.shot_description(i) for i in range(len(cells))],
                state.resolution,
                state.aspect_ratio,
                style_prefs,
                on_progress=on_progress,
            )
        except Exception:
            if token == self._batch:
                state.directed_grid_index = None
                self.phase = PipelinePhase.SELECTING
                self._changed()
            raise

        if self._is_stale(token, "remaster"):
            return []

        if result.batch is not None:
            final_images = list(result.batch.panel_refs)
        else:
            final_images = [bytes_to_b64(img) for img in result.images]

        state.final_images = final_images
        self.history.append(
            HistoryItem(
                final_images=tuple(final_images),
                script=script,
                grid_size=grid_size,
                source_grid=source_b64,
                style_prefs=style_prefs,
            )
        )
        self.phase = PipelinePhase.PANELS_READY
        self._changed()
        logger.info(
            "Directed %d panel(s), %d kept the original crop",
            len(final_images),
            len(result.failed),
        )

        if prefetch:
            self._prefetch(result.images, script)
        return list(final_images)

    def _global_context(self, script: Script) -> str:
        return script.composite_prompt or self._state.story_idea

    def _prefetch(self, images: list[bytes], script: Script) -> None:
        context = self._global_context(script)
        for i, image in enumerate(images):
            task = asyncio.ensure_future(
                self.prompt_cache.get(i, image, context, script.shot_description(i))
            )
            self._prefetch_tasks.add(task)
            task.add_done_callback(self._prefetch_tasks.discard)

    async def wait_for_prefetch(self) -> None:
        """Wait until background prompt extraction has finished."""
        if self._prefetch_tasks:
            await asyncio.wait(list(self._prefetch_tasks))

    def panel_bytes(self, index: int) -> bytes:
        """Image data of final panel ``index``."""
        if not 0 <= index < len(self._state.final_images):
            raise ValidationError(f"Panel {index + 1} does not exist", field="index")
        value = self._state.final_images[index]
        if is_asset_ref(value):
            return self.local_store.read_image(value)
        return b64_to_bytes(value)

    async def extract_prompt(self, index: int) -> str:
        """Prompt describing final panel ``index`` (cached per panel)."""
        script = self._state.script
        if script is None:
            raise ValidationError("There is no script", field="script")
        image = self.panel_bytes(index)
        return await self.prompt_cache.get(
            index, image, self._global_context(script), script.shot_description(index)
        )

    async def send_to_editor(self, index: int) -> PanelTransfer:
        """Package panel ``index`` for a downstream editor.

        The panel comes first in the reference images, followed by the
        project's own references, up to 14 in total.
        """
        image = self.panel_bytes(index)
        prompt = await self.extract_prompt(index)
        refs = [bytes_to_b64(image), *self._state.ref_images][:MAX_TRANSFER_REFS]
        return PanelTransfer(panel_index=index, prompt=prompt, ref_images=refs)

    # === History and loading ===

    def restore_history(self, entry_id: str) -> HistoryItem:
        """Bring back the script, panels, grid size and style of a history entry.

        The ledger itself is left unchanged.

        Raises:
            NotFoundError: If no entry has that id
        """
        entry = self.history.find(entry_id)
        state = self._state

        self._next_batch()
        if entry.grid_size != state.grid_size:
            # Candidates were cut for another grid
            state.grid_candidates = []
        state.final_images = list(entry.final_images)
        state.script = entry.script.thaw() if entry.script else None
        state.grid_size = entry.grid_size
        state.style_prefs = entry.style_prefs.thaw()
        state.selected_grid_index = None
        state.directed_grid_index = None
        state.is_script_dirty = False
        self.prompt_cache.clear()

        self.phase = self._phase_for(state)
        self._changed()
        return entry

    def load_state(self, state: ProjectState) -> None:
        """Replace the whole project (after a load or import)."""
        self._next_batch()
        self._state = state
        self.history = HistoryLedger(state.history)
        self.prompt_cache.clear()
        self.phase = self._phase_for(state)
        self._changed()

    def reset(self) -> None:
        """Start a new, empty project."""
        self.load_state(ProjectState())
