"""Renders AI prompts from Jinja templates."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined


class PromptBuilder:
    """Loads prompt templates from ``templates/`` (or an override directory)."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        directories = []
        if templates_dir is not None:
            directories.append(str(templates_dir))
        directories.append(str(Path(__file__).with_name("templates")))
        self._env = Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, name: str, **context: Any) -> str:
        template = self._env.get_template(f"{name}.j2")
        return template.render(**context).strip()


__all__ = ["PromptBuilder"]
