"""
Tests for the history ledger and restoring entries
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from nanodirector_core_schemas import (
    DisplayState,
    HistoryItem,
    PipelinePhase,
    Script,
    Shot,
    StylePreferences,
    VisualStyle,
)
from nanodirector_services import DirectorService, HistoryLedger, NotFoundError


class TestHistoryLedger:
    """Tests for HistoryLedger."""

    def test_newest_first(self):
        ledger = HistoryLedger([])
        first = HistoryItem(final_images=("a",) * 4)
        second = HistoryItem(final_images=("b",) * 4)

        ledger.append(first)
        ledger.append(second)

        assert [item.id for item in ledger] == [second.id, first.id]
        assert len(ledger) == 2

    def test_wraps_state_list(self):
        items: list[HistoryItem] = []
        ledger = HistoryLedger(items)

        ledger.append(HistoryItem())

        assert len(items) == 1

    def test_entries_are_immutable(self):
        item = HistoryItem(final_images=("a",) * 4)

        with pytest.raises(PydanticValidationError):
            item.grid_size = 3

    @pytest.mark.asyncio
    async def test_nested_script_and_style_are_immutable(self, generator):
        director = DirectorService(generator, remaster_delay=0)
        director.update_style(mode=VisualStyle.NOIR)
        director.set_story_idea("A detective in the rain")
        await director.generate()
        director.select(0)
        await director.direct()
        entry = director.history.entries[0]

        with pytest.raises(PydanticValidationError):
            entry.script.title = "Tampered"
        with pytest.raises(PydanticValidationError):
            entry.script.shots[0].description = "Tampered"
        with pytest.raises(PydanticValidationError):
            entry.style_prefs.custom_append = "x"

        stored = director.history.entries[0]
        assert stored.script.title == "Script for A detective in the rain"
        assert stored.style_prefs.custom_append == ""

    def test_snapshot_is_detached_from_live_script(self):
        script = Script(title="Heist", shots=[Shot(number=1, description="Vault")])
        item = HistoryItem(script=script, style_prefs=StylePreferences(mode=VisualStyle.NOIR))

        script.title = "Changed"
        script.shots[0].description = "Changed"

        assert item.script.title == "Heist"
        assert item.script.shots[0].description == "Vault"
        assert item.script.thaw() == Script(title="Heist", shots=[Shot(number=1, description="Vault")])
        assert item.style_prefs.thaw() == StylePreferences(mode=VisualStyle.NOIR)

    def test_find_unknown(self):
        with pytest.raises(NotFoundError):
            HistoryLedger([]).find("missing")


class TestRestore:
    """Tests for DirectorService.restore_history."""

    @pytest.mark.asyncio
    async def test_restore_brings_back_panels_script_and_style(self, generator):
        director = DirectorService(generator, remaster_delay=0)
        director.update_style(mode=VisualStyle.NOIR)
        director.set_story_idea("A detective in the rain")
        await director.generate()
        director.select(0)
        first_panels = await director.direct()
        first_entry = director.history.entries[0]

        # Second run with another style and an edited script
        director.update_style(mode=VisualStyle.ANIME)
        director.edit_shot(0, description="Changed")
        await director.generate()
        director.select(1)
        await director.direct()
        assert len(director.history) == 2

        restored = director.restore_history(first_entry.id)

        state = director.state
        assert restored.id == first_entry.id
        assert state.final_images == first_panels
        assert state.style_prefs.mode == VisualStyle.NOIR
        assert state.script.shots[0].description == "Shot 1 of A detective in the rain"
        assert state.selected_grid_index is None
        assert state.directed_grid_index is None
        assert not state.is_script_dirty
        assert len(director.prompt_cache) == 0
        assert director.phase == PipelinePhase.PANELS_READY
        assert director.display_state == DisplayState.PROMPT_SELECT
        # Restoring does not add or remove entries
        assert len(director.history) == 2

        # The restored script is an editable copy
        director.edit_shot(0, description="Edited after restore")
        assert first_entry.script.shots[0].description == "Shot 1 of A detective in the rain"

    def test_restore_other_grid_size_drops_candidates(self, generator):
        director = DirectorService(generator, remaster_delay=0)
        director.state.grid_candidates = ["AAAA"]
        entry = HistoryItem(
            final_images=tuple(f"panel-{i}" for i in range(9)),
            grid_size=3,
            style_prefs=StylePreferences(mode=VisualStyle.WATERCOLOR),
        )
        director.history.append(entry)

        director.restore_history(entry.id)

        assert director.state.grid_size == 3
        assert director.state.grid_candidates == []
        assert len(director.state.final_images) == 9

    def test_restore_unknown_entry(self, generator):
        director = DirectorService(generator)

        with pytest.raises(NotFoundError):
            director.restore_history("nope")
