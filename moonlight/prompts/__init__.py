"""Prompt templates.

Templates are ``string.Template`` text files so the JSON examples inside them need no escaping.
A file with the same name under ``./prompts`` in the working directory overrides the packaged one.
"""

from functools import lru_cache
from pathlib import Path
from string import Template

_PROMPTS_DIR = Path(__file__).parent


@lru_cache(maxsize=16)
def load_prompt(name: str) -> str:
    """Load a prompt from file.

    Raises:
        FileNotFoundError: If the prompt exists in neither location.
    """
    filename = f"{name}.txt"

    local_path = Path.cwd() / "prompts" / filename
    if local_path.exists():
        return local_path.read_text(encoding="utf-8")

    package_path = _PROMPTS_DIR / filename
    if package_path.exists():
        return package_path.read_text(encoding="utf-8")

    raise FileNotFoundError(f"Prompt '{name}' not found. Searched:\n  - {local_path}\n  - {package_path}")


def render_prompt(name: str, **values: str) -> str:
    return Template(load_prompt(name)).substitute(**values)


def get_chat_system_instructions() -> str:
    return load_prompt("chat_system")


def clear_cache() -> None:
    load_prompt.cache_clear()


__all__ = [
    "clear_cache",
    "get_chat_system_instructions",
    "load_prompt",
    "render_prompt",
]
