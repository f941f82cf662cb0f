"""Template renderer: fills {{placeholders}} and builds a conversation."""

from __future__ import annotations

import re

from promptline.core.models import Context, Message, Role, Template

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_-]*)\s*\}\}")


class TemplateError(Exception):
    """Base error for template rendering."""


class UnresolvedPlaceholder(TemplateError):
    """The template references names the context cannot supply."""

    def __init__(self, template: str, names: list[str]) -> None:
        self.template = template
        self.names = names
        joined = ", ".join(f"{{{{{n}}}}}" for n in names)
        super().__init__(f"Template '{template}' has unresolved placeholders: {joined}")


class MissingSelection(TemplateError):
    """The template needs selected text and none was given."""

    def __init__(self, template: str) -> None:
        self.template = template
        super().__init__(f"Template '{template}' requires a selection")


def placeholders(text: str) -> list[str]:
    """Return placeholder names referenced in text, in order of first use."""
    return list(dict.fromkeys(m.group(1) for m in _PLACEHOLDER.finditer(text)))


def template_placeholders(template: Template) -> list[str]:
    """Placeholder names used by a template's system text and prompt.

    Each part is scanned on its own so braces cannot pair up across them.
    """
    names = placeholders(template.system) + placeholders(template.prompt)
    return list(dict.fromkeys(names))


def _values(context: Context) -> dict[str, str]:
    return {
        "prompt": context.user_prompt,
        "selection": context.text,
        "text": context.text,
        "filename": context.filename,
    }


def _fill(text: str, values: dict[str, str]) -> str:
    return _PLACEHOLDER.sub(lambda m: values[m.group(1)], text)


def render(template: Template, context: Context) -> list[Message]:
    """Render a template against an editing context.

    Resolution is strict: any unknown placeholder aborts the whole render
    rather than substituting an empty string.

    Returns:
        The conversation: an optional system message, then one user message.

    Raises:
        MissingSelection: requires_selection is set and nothing is selected.
        UnresolvedPlaceholder: system or prompt references an unknown name.
    """
    if template.requires_selection and not (context.has_selection and context.text):
        raise MissingSelection(template.name)

    values = _values(context)
    unknown = [
        name
        for name in template_placeholders(template)
        if name not in values
    ]
    if unknown:
        raise UnresolvedPlaceholder(template.name, unknown)

    messages: list[Message] = []
    if template.system:
        messages.append(Message(Role.SYSTEM, _fill(template.system, values)))
    messages.append(Message(Role.USER, _fill(template.prompt, values)))
    return messages
