"""
Tests for style resolution, prompt cleanup and shot normalization
"""

import pytest
from jinja2 import UndefinedError
from pydantic import ValidationError as PydanticValidationError

from nanodirector_core_schemas import (
    DEFAULT_NEGATIVE_PROMPT,
    AspectRatio,
    DisplayState,
    Shot,
    StylePreferences,
    VisualStyle,
)
from nanodirector_generators import (
    STYLE_MODIFIERS,
    clean_extracted_prompt,
    normalize_shots,
    resolve_aspect_ratio,
    resolve_negative,
    resolve_style,
)
from nanodirector_generators.templates import render
from nanodirector_generators.templates.director import GRID_PROMPT, SCRIPT_PROMPT
from nanodirector_services import derive_display_state


class TestStyleResolution:
    """Tests for resolve_style and resolve_negative."""

    def test_every_mode_except_custom_has_text(self):
        for mode in VisualStyle:
            if mode != VisualStyle.CUSTOM:
                assert STYLE_MODIFIERS[mode].strip()

    def test_mode_text(self):
        prefs = StylePreferences(mode=VisualStyle.NOIR)

        assert resolve_style(prefs) == STYLE_MODIFIERS[VisualStyle.NOIR]

    def test_custom_mode_uses_positive_text(self):
        prefs = StylePreferences(mode=VisualStyle.CUSTOM, custom_positive="pastel crayon")

        assert resolve_style(prefs) == "pastel crayon"

    def test_append_is_added(self):
        prefs = StylePreferences(mode=VisualStyle.ANIME, custom_append="rainy night")

        text = resolve_style(prefs)

        assert text.startswith(STYLE_MODIFIERS[VisualStyle.ANIME])
        assert text.endswith("ADDITIONAL STYLE DETAILS: rainy night")

    def test_override_wins(self):
        prefs = StylePreferences(mode=VisualStyle.ANIME, custom_override="pencil sketch")

        assert resolve_style(prefs) == "VISUAL STYLE OVERRIDE: pencil sketch"

    def test_append_and_override_are_exclusive(self):
        with pytest.raises(PydanticValidationError):
            StylePreferences(custom_append="a", custom_override="b")

    def test_blank_negative_falls_back_to_default(self):
        assert resolve_negative(StylePreferences(custom_negative="  ")) == DEFAULT_NEGATIVE_PROMPT
        assert resolve_negative(StylePreferences(custom_negative="no cats")) == "no cats"


class TestAspectRatio:
    """Tests for resolve_aspect_ratio."""

    def test_ultrawide_is_requested_as_landscape(self):
        ratio, note = resolve_aspect_ratio(AspectRatio.CINEMATIC)

        assert ratio == "16:9"
        assert "21:9" in note

    def test_supported_ratio_passes_through(self):
        assert resolve_aspect_ratio(AspectRatio.PORTRAIT) == ("9:16", "")


class TestTemplates:
    """Tests for the prompt templates."""

    def test_script_prompt_maps_reference_images(self):
        text = render(SCRIPT_PROMPT, idea="heist", ref_count=2, grid_size=3, total_shots=9)

        assert "Image 1 = @img1, Image 2 = @img2" in text
        assert "9-shot storyboard" in text

    def test_grid_prompt_carries_layout_style_and_negative(self):
        text = render(
            GRID_PROMPT,
            prompt="A detective in the rain",
            style="NOIR TEXT",
            negative="no text",
            grid_size=2,
            aspect_note="",
        )

        assert "A detective in the rain" in text
        assert "NOIR TEXT" in text
        assert "no text" in text
        assert "2x2" in text

    def test_missing_variable_is_an_error(self):
        with pytest.raises(UndefinedError):
            render(GRID_PROMPT, prompt="heist")


class TestCleanExtractedPrompt:
    """Tests for clean_extracted_prompt."""

    def test_strips_tags_and_collapses_whitespace(self):
        text = "A man (@img1) walks   past @img2 and [ @IMG3 ] a car."

        assert clean_extracted_prompt(text) == "A man walks past and a car."


class TestNormalizeShots:
    """Tests for normalize_shots."""

    def test_extra_shots_dropped(self):
        shots = [Shot(number=9, description=f"s{i}") for i in range(6)]

        result = normalize_shots(shots, 2)

        assert [s.number for s in result] == [1, 2, 3, 4]
        assert result[0].description == "s0"

    def test_missing_shots_filled(self):
        result = normalize_shots([Shot(number=1, description="only")], 2)

        assert len(result) == 4
        assert result[3].description == "Cinematic shot 4"


class TestDisplayState:
    """Tests for derive_display_state."""

    @pytest.mark.parametrize(
        "selected, directed, count, expected",
        [
            (None, None, 0, DisplayState.PROMPT_SELECT),
            (None, 0, 4, DisplayState.PROMPT_SELECT),
            (0, None, 0, DisplayState.PROMPT_DIRECT),
            (1, 0, 4, DisplayState.PROMPT_DIRECT),
            (0, 0, 0, DisplayState.PROMPT_DIRECT),
            (0, 0, 4, DisplayState.SHOW_PANELS),
        ],
    )
    def test_mapping(self, selected, directed, count, expected):
        assert derive_display_state(selected, directed, count) == expected
