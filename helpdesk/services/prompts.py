from __future__ import annotations

from functools import lru_cache

from helpdesk.core.config import PROMPTS_DIR


@lru_cache
def load_prompt(name: str) -> str:
    path = PROMPTS_DIR / f"{name}.txt"
    try:
        return path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return ""


def render_prompt(name: str, **values: str) -> str:
    """Fill a template's ``{placeholders}``; templates without any are returned as-is."""
    template = load_prompt(name)
    if not values:
        return template
    return template.format(**values)
