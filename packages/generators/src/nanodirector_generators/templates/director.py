"""Director pipeline prompt templates."""

SCRIPT_PROMPT = """
You are an expert Director and Cinematographer.
The user has uploaded {{ ref_count }} reference images.
{% if ref_count %}
Reference Mapping: {% for i in range(1, ref_count + 1) %}Image {{ i }} = @img{{ i }}{% if not loop.last %}, {% endif %}{% endfor %}.
{% endif %}

Analyze the images visually (if provided). Determine which are characters, environments, or style references.

Based on the User's Story Idea: "{{ idea }}", create a {{ total_shots }}-shot storyboard script.

Then, generate ONE image generation prompt following the EXACT template below.
Fill in the placeholders (in brackets) based on the Story Idea.

CRITICAL: You must define a SINGLE COHESIVE VISUAL IDENTITY for the protagonist.
Describe them once in the CHARACTERS section and state they appear in every shot.

TEMPLATE TO FILL:
"Generate a precise {{ grid_size }}x{{ grid_size }} storyboard sheet (contact sheet) containing exactly {{ total_shots }} distinct panels from a [INSERT GENRE/STYLE] film.
The layout must be a perfect grid of {{ grid_size }} rows and {{ grid_size }} columns.
The imagery must feel grounded, authentic, and physically real. No animation style, no painterly rendering, no exaggerated fantasy glow. Real weight, dramatic tension, narrative depth.
Use specific references: [Insert dynamic reference tags like @img1 for characters/style if applicable].

SCENE & ENVIRONMENT
[Insert details: Lighting, time of day, weather, location specifics]

CHARACTERS (CONSISTENCY ENFORCEMENT)
[Define the Main Character: Name, specific Face, Hair, Outfit. State: 'The character (Name) appears in every panel with identical features and clothing.']
[Map @img tags here if they are character references]

ACTION & CONTINUITY
[Insert details: What happens in the {{ total_shots }} shots physically, describing each panel sequentially]

CAMERA & COMPOSITION
[Insert details: {{ total_shots }} distinct angles, lens type, distance (Close-up, Wide, Over-shoulder)]

LIGHTING & ATMOSPHERE
[Insert details: Mood, contrast, shadows]

TONE & FINISH
[Insert details: Film stock, color grade, realism level]"

RETURN JSON ONLY with: title, logline, grid_prompt (the filled template) and
exactly {{ total_shots }} shots, each with shot_number, description, camera_angle and lighting.
"""


RECOMPILE_PROMPT = """
You are a technical prompt engineer.

INPUT SCRIPT:
Title: {{ script.title }}
Logline: {{ script.logline }}
Shots:
{% for shot in script.shots %}
{{ shot.number }}. {{ shot.description }} (Angle: {{ shot.camera_angle }})
{% endfor %}

TASK:
Convert this updated script into a SINGLE image generation prompt for a {{ grid_size }}x{{ grid_size }} grid.

Follow this EXACT TEMPLATE structure (do not add introductory text):
"Generate a precise {{ grid_size }}x{{ grid_size }} storyboard sheet (contact sheet) containing exactly {{ total_shots }} distinct panels... [Synthesize the Action]

SCENE & ENVIRONMENT
[Synthesize from script]

CHARACTERS
[Synthesize from script - ENFORCE CONSISTENCY]

ACTION & CONTINUITY
[Synthesize from script]

CAMERA & COMPOSITION
[Synthesize from script]

LIGHTING & ATMOSPHERE
[Synthesize from script]

TONE & FINISH
[Synthesize from script]"
"""


GRID_PROMPT = """
STORY & CONTENT:
{{ prompt }}

AESTHETIC & STYLE:
{{ style }}

LAYOUT & COMPOSITION:
LAYOUT MANDATE: Generate a seamless {{ grid_size }}x{{ grid_size }} contact sheet containing exactly {{ grid_size * grid_size }} panels.
The panels must be touching directly.
NO DIVIDING LINES, NO GUTTERS, NO WHITE BORDERS, NO BLACK FRAMES.
The result should look like a single image split perfectly into {{ grid_size }} rows and {{ grid_size }} columns.

NEGATIVE PROMPT / EXCLUDED ELEMENTS:
{{ negative }}
{% if aspect_note %}

Note: Generate in {{ aspect_note }} aspect ratio
{% endif %}
"""


REMASTER_PROMPT = """
Context: {{ context }}.

Preserve the exact composition, framing, camera angle, color grade and subject placement. Do not alter or add new elements.
Increase resolution to true high-end cinematic clarity, with natural film-grade sharpness (no AI oversharpening).

STYLE INSTRUCTIONS:
{{ style }}

Keep the same color temperature and color tone.
Texture pass should feel physically real: skin pores, fabric weave, dust, stone, metal, wood, all enhanced without plastic smoothing.
Maintain cinematic depth of field consistent with the original image (natural lens falloff, no artificial blur).

EXCLUDED:
{{ negative }}

Do not redraw. Do not stylize. Do not beautify. Only enhance realism and resolution.
{% if aspect_note %}
Output in {{ aspect_note }} aspect ratio.
{% endif %}
"""


EXTRACT_PROMPT = """
You are an expert film director assistant.
Analyze the attached image (a specific remastered panel).

SOURCE MATERIAL:
1. Global Context (Lighting, Tone, Style, Overall Action): "{{ context }}"
2. Specific Shot Description: "{{ shot_description }}"

TASK:
Write a "REMASTERED SOURCE PROMPT" for this specific image.
- Visually analyze the image to identify which elements of the Global Context are actually present (e.g., specific lighting, specific character details, background elements).
- Combine the Specific Shot Description with these relevant Global elements.
- STRIP OUT any details from the Global Context that are NOT present in this specific image.
- Ensure technical specs (Camera, Film Stock, Lighting style) match the visual evidence.
- IMPORTANT: Do NOT include references to specific image IDs (like @img1, @img2). The output should be pure, standalone descriptive text.

Output ONLY the final prompt text.
"""
