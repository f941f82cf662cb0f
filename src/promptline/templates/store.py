"""Template store: built-in prompt templates plus user YAML files.

User templates live in ``<home>/templates/*.yaml``. Each file maps template
names to definitions::

    fix-grammar:
      description: Fix grammar only
      system: You are a careful copy editor.
      prompt: "Fix the grammar:\\n\\n{{selection}}"
      requires_selection: true

A user template with the same name as a built-in replaces it.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from promptline.core.models import Template

log = logging.getLogger(__name__)

_EDITOR_SYSTEM = """\
You are an assistant embedded in a text editor.
When asked to change text, reply with the replacement text only:
no preamble, no explanation, no Markdown code fences."""

BUILTIN_TEMPLATES: tuple[Template, ...] = (
    Template(
        name="summarize",
        description="Summarize the selection or buffer",
        prompt="Summarize the following text in a few sentences:\n\n{{selection}}",
    ),
    Template(
        name="explain",
        description="Explain the selected code or text",
        system="You explain code and prose clearly and concisely.",
        prompt="Explain what this does (file: {{filename}}):\n\n{{selection}}",
    ),
    Template(
        name="proofread",
        description="Fix spelling and grammar in the selection",
        system=_EDITOR_SYSTEM,
        prompt=(
            "Proofread the following text. Fix spelling, grammar and punctuation "
            "while keeping the original wording and formatting:\n\n{{selection}}"
        ),
        requires_selection=True,
    ),
    Template(
        name="rewrite",
        description="Rewrite the selection following an instruction",
        system=_EDITOR_SYSTEM,
        prompt="{{prompt}}\n\nText to rewrite:\n\n{{selection}}",
        requires_selection=True,
    ),
    Template(
        name="translate",
        description="Translate the selection into the language given as prompt",
        system=_EDITOR_SYSTEM,
        prompt="Translate the following text into {{prompt}}:\n\n{{selection}}",
        requires_selection=True,
    ),
    Template(
        name="docstring",
        description="Write a docstring for the selected function",
        system=_EDITOR_SYSTEM,
        prompt=(
            "Add a docstring to this function from {{filename}}. "
            "Return the full function with the docstring added:\n\n{{selection}}"
        ),
        requires_selection=True,
    ),
    Template(
        name="complete",
        description="Continue the text at the cursor",
        system=_EDITOR_SYSTEM,
        prompt="Continue this text naturally. Output only the continuation:\n\n{{text}}",
    ),
    Template(
        name="ask",
        description="Ask a free-form question about the buffer",
        prompt="{{prompt}}\n\nContext ({{filename}}):\n\n{{text}}",
    ),
)


class TemplateStore:
    """Immutable collection of templates keyed by name."""

    def __init__(self, templates: list[Template] | tuple[Template, ...] = BUILTIN_TEMPLATES) -> None:
        self._templates: dict[str, Template] = {}
        for template in templates:
            self._templates[template.name] = template

    @classmethod
    def load(cls, templates_dir: Path | None = None) -> TemplateStore:
        """Built-ins overlaid with templates from templates_dir."""
        templates = {t.name: t for t in BUILTIN_TEMPLATES}
        if templates_dir is not None and templates_dir.is_dir():
            files = sorted(templates_dir.glob("*.yaml")) + sorted(templates_dir.glob("*.yml"))
            for path in files:
                for template in _read_template_file(path):
                    if template.name in templates:
                        log.info("Template '%s' from %s overrides existing", template.name, path.name)
                    templates[template.name] = template
        return cls(list(templates.values()))

    def get(self, name: str) -> Template:
        """Look up a template by name.

        Raises:
            KeyError: No such template.
        """
        try:
            return self._templates[name]
        except KeyError:
            available = ", ".join(self.names())
            raise KeyError(f"Unknown template '{name}'. Available: {available}") from None

    def names(self) -> list[str]:
        return sorted(self._templates)

    def list(self) -> list[Template]:
        return [self._templates[n] for n in self.names()]

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)


def _read_template_file(path: Path) -> list[Template]:
    """Parse one YAML template file, skipping invalid entries."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError):
        log.warning("Failed to read templates from %s, skipping", path, exc_info=True)
        return []

    if not isinstance(data, dict):
        log.warning("Template file %s must contain a mapping, skipping", path)
        return []

    templates: list[Template] = []
    for name, entry in data.items():
        if not isinstance(entry, dict) or not isinstance(entry.get("prompt"), str):
            log.warning("Template '%s' in %s has no prompt, skipping", name, path.name)
            continue
        templates.append(
            Template(
                name=str(name),
                prompt=entry["prompt"],
                system=str(entry.get("system") or ""),
                requires_selection=bool(entry.get("requires_selection", False)),
                description=str(entry.get("description") or ""),
            )
        )
    return templates
