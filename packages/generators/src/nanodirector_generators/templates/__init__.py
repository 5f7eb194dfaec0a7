"""Jinja2 prompt templates for Nano Director."""

from functools import lru_cache

from jinja2 import BaseLoader, Environment, StrictUndefined, Template

# Prompts are plain text; a missing variable is a programming error
env = Environment(
    loader=BaseLoader(),
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=False,
)


@lru_cache(maxsize=None)
def _compile(template_str: str) -> Template:
    return env.from_string(template_str)


def render(template_str: str, **kwargs) -> str:
    """Render a prompt template, trimming surrounding whitespace."""
    return _compile(template_str).render(**kwargs).strip()
