"""What the results area shows, derived from selection state."""

from typing import Optional

from nanodirector_core_schemas import DisplayState


def derive_display_state(
    selected_index: Optional[int],
    directed_index: Optional[int],
    result_count: int,
) -> DisplayState:
    """Map (selected, directed, number of panels) to one of three display states."""
    if selected_index is None:
        return DisplayState.PROMPT_SELECT
    if selected_index != directed_index or result_count == 0:
        return DisplayState.PROMPT_DIRECT
    return DisplayState.SHOW_PANELS
