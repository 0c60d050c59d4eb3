"""Agent prompt blocks, stored as .txt files next to this module."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

TEMPLATES_DIR = Path(__file__).parent / "templates"


class PromptNotFoundError(LookupError):
    pass


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """Raw prompt text by name (no extension).

    Templates meant for ``render_prompt`` use ``{variable}`` placeholders and
    double their literal braces; plain blocks are used as-is.
    """
    path = TEMPLATES_DIR / f"{name}.txt"
    if not path.is_file():
        raise PromptNotFoundError(f"No prompt template named '{name}' in {TEMPLATES_DIR}")
    return path.read_text(encoding="utf-8").strip()


def render_prompt(name: str, **kwargs: str) -> str:
    return load_prompt(name).format(**kwargs)


def available_prompts() -> list[str]:
    return sorted(p.stem for p in TEMPLATES_DIR.glob("*.txt"))
