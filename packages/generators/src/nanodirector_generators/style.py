"""Visual style catalog and prompt-side style resolution."""

from nanodirector_core_schemas import (
    DEFAULT_NEGATIVE_PROMPT,
    AspectRatio,
    StylePreferences,
    VisualStyle,
)

STYLE_MODIFIERS: dict[VisualStyle, str] = {
    VisualStyle.DEFAULT: (
        "Apply blockbuster-style cinematography:\n"
        "- grounded realism\n"
        "- soft, motivated lighting\n"
        "- natural contrast\n"
        "- restrained highlights\n"
        "- deep but clean shadows\n"
        "- subtle atmospheric depth\n"
        "Enhance realism.\n"
        "Textures should feel physically real: skin pores, fabric weave, dust, stone, metal, "
        "wood, all enhanced without plastic smoothing."
    ),
    VisualStyle.CINEMATIC: (
        "Apply blockbuster-style cinematography: grounded realism, anamorphic lens flares, "
        "soft motivated lighting, deep shadows. Texture pass: skin pores, fabric weave, "
        "realistic imperfections."
    ),
    VisualStyle.ANIME: (
        "Masterpiece anime art style, Studio Ghibli and Makoto Shinkai influence. High quality "
        "cel-shading, vibrant colors, clean lines, highly detailed backgrounds, dramatic "
        "lighting effects, 4k resolution."
    ),
    VisualStyle.THREE_D_ANIMATION: (
        "High-end 3D animation style, Pixar and Disney render quality. Subsurface scattering on "
        "skin, soft global illumination, expressive character features, perfect physically "
        "based rendering (PBR) materials, cute but detailed."
    ),
    VisualStyle.OIL_PAINTING: (
        "Oil painting style, thick impasto brushstrokes, visible texture, expressive color "
        "mixing, classical art aesthetic, dramatic lighting, painterly finish."
    ),
    VisualStyle.WATERCOLOR: (
        "Watercolor painting style, soft edges, bleeding colors, paper texture visibility, "
        "fluid artistic motion, dreamy atmosphere, wet-on-wet technique."
    ),
    VisualStyle.INK_WASH: (
        "Ink wash illustration, sumi-e style, stark black and white contrast, expressive brush "
        "lines, graphic novel aesthetic, negative space usage."
    ),
    VisualStyle.CYBERPUNK: (
        "Cyberpunk aesthetic, neon lighting (pink and blue), rain-slicked streets, high-tech "
        "low-life, futuristic cityscapes, chromatic aberration, holographic overlays, gritty "
        "realism."
    ),
    VisualStyle.STEAMPUNK: (
        "Steampunk aesthetic, victorian era technology, brass and copper textures, steam and "
        "fog, gears and clockwork mechanisms, warm sepia tones, retro-futurism."
    ),
    VisualStyle.NOIR: (
        "Film Noir aesthetic, high contrast black and white, chiaroscuro lighting, dramatic "
        "shadows, silhouetted figures, moody atmosphere, detective film grain."
    ),
    VisualStyle.VINTAGE_FILM: (
        "Vintage 1970s film stock, heavy film grain, warm color cast, light leaks, soft focus, "
        "nostalgic aesthetic, kodachrome simulation."
    ),
    VisualStyle.CLAYMATION: (
        "Stop-motion claymation style, Aardman and Laika aesthetic, tactile plasticine "
        "textures, fingerprints visible on clay, miniature scale depth of field, handcrafted "
        "look."
    ),
    VisualStyle.COMIC_BOOK: (
        "Modern comic book style, bold black outlines, halftone patterns, vibrant superhero "
        "colors, dynamic shading, graphic novel composition."
    ),
    VisualStyle.FANTASY_ART: (
        "High fantasy digital painting, Dungeons & Dragons rulebook art style, epic scale, "
        "magical lighting, detailed armor and cloth, painterly realism."
    ),
    VisualStyle.CUSTOM: "",  # Comes from StylePreferences.custom_positive
}

_missing = set(VisualStyle) - set(STYLE_MODIFIERS)
if _missing:
    raise RuntimeError(
        f"STYLE_MODIFIERS has no entry for: {', '.join(sorted(s.value for s in _missing))}"
    )

ULTRAWIDE_NOTE = "cinematic ultrawide 21:9"


def resolve_style(prefs: StylePreferences) -> str:
    """Build the style instruction block for a prompt.

    Override text replaces everything else. Otherwise the mode's text is used
    (``custom_positive`` for CUSTOM) and append text is added after it.
    """
    if prefs.custom_override.strip():
        return f"VISUAL STYLE OVERRIDE: {prefs.custom_override}"

    if prefs.mode == VisualStyle.CUSTOM:
        base = prefs.custom_positive
    else:
        base = STYLE_MODIFIERS[prefs.mode]

    if prefs.custom_append.strip():
        base = f"{base}\n\nADDITIONAL STYLE DETAILS: {prefs.custom_append}"

    return base


def resolve_negative(prefs: StylePreferences) -> str:
    """The negative prompt, falling back to the default when blank."""
    if prefs.custom_negative.strip():
        return prefs.custom_negative
    return DEFAULT_NEGATIVE_PROMPT


def resolve_aspect_ratio(aspect_ratio: AspectRatio) -> tuple[str, str]:
    """Map an aspect ratio to what the image model accepts.

    Returns:
        Tuple of (ratio sent to the model, textual note for the prompt or "")
    """
    if aspect_ratio == AspectRatio.CINEMATIC:
        return AspectRatio.LANDSCAPE.value, ULTRAWIDE_NOTE
    return aspect_ratio.value, ""
