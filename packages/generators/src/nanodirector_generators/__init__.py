"""Generation pipelines for Nano Director."""

from .director import DirectorGenerator
from .errors import as_provider_error
from .image import ImageGenerator, clean_extracted_prompt
from .imaging import b64_to_bytes, bytes_to_b64, resize_image, split_grid, strip_data_url
from .script import ScriptGenerator, normalize_shots
from .style import STYLE_MODIFIERS, resolve_aspect_ratio, resolve_negative, resolve_style

__all__ = [
    "DirectorGenerator",
    "ScriptGenerator",
    "ImageGenerator",
    "as_provider_error",
    "clean_extracted_prompt",
    "normalize_shots",
    # Imaging
    "split_grid",
    "resize_image",
    "b64_to_bytes",
    "bytes_to_b64",
    "strip_data_url",
    # Style
    "STYLE_MODIFIERS",
    "resolve_style",
    "resolve_negative",
    "resolve_aspect_ratio",
]
