"""Prompt templates: storage and rendering."""

from promptline.templates.renderer import (
    MissingSelection,
    TemplateError,
    UnresolvedPlaceholder,
    placeholders,
    render,
    template_placeholders,
)
from promptline.templates.store import BUILTIN_TEMPLATES, TemplateStore

__all__ = [
    "BUILTIN_TEMPLATES",
    "MissingSelection",
    "TemplateError",
    "TemplateStore",
    "UnresolvedPlaceholder",
    "placeholders",
    "render",
    "template_placeholders",
]
