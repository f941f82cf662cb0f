"""Response actions and the host editor contract."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Protocol, runtime_checkable

from promptline.core.models import Context


class Action(str, Enum):
    """What to do with a completed response."""

    DISPLAY = "display"
    REPLACE_SELECTION = "replace"
    INSERT_AT_CURSOR = "insert"
    RETURN_RAW = "raw"


@runtime_checkable
class Editor(Protocol):
    """Host editor collaborator.

    The dispatcher only touches the document through these calls.
    """

    @property
    def filename(self) -> str:
        ...

    @property
    def has_selection(self) -> bool:
        ...

    def get_selection_or_buffer_text(self) -> str:
        ...

    def replace_selection_or_buffer(self, text: str) -> None:
        ...

    def insert_at_cursor(self, text: str) -> None:
        ...

    def prompt_user_choice(self, label: str, options: list[str]) -> str:
        ...

    def show_text_surface(
        self, text: str, streaming: bool = False, append: bool = False
    ) -> None:
        """Show text to the user.

        streaming=True marks a fragment with more to follow. append=True adds
        to the current surface; otherwise the surface is replaced.
        """
        ...

    def notify(self, message: str) -> None:
        """Report a status or error line."""
        ...


def build_context(editor: Editor, user_prompt: str = "") -> Context:
    """Capture the editor state a template is rendered against."""
    return Context(
        text=editor.get_selection_or_buffer_text(),
        user_prompt=user_prompt,
        filename=editor.filename,
        has_selection=editor.has_selection,
    )


class TextBuffer:
    """In-memory Editor implementation.

    The selection and cursor are character offsets into ``text``. Output
    surfaces and notifications are recorded for inspection.
    """

    def __init__(
        self,
        text: str = "",
        selection: tuple[int, int] | None = None,
        cursor: int | None = None,
        filename: str = "",
        chooser: Callable[[str, list[str]], str] | None = None,
    ) -> None:
        if selection is not None:
            start, end = selection
            if not 0 <= start <= end <= len(text):
                raise ValueError(f"Selection {selection} outside buffer of length {len(text)}")
        self.text = text
        self.selection = selection
        self.cursor = len(text) if cursor is None else max(0, min(cursor, len(text)))
        self._filename = filename
        self._chooser = chooser
        self.surface: list[str] = []
        self.messages: list[str] = []

    @property
    def filename(self) -> str:
        return self._filename

    @property
    def has_selection(self) -> bool:
        return self.selection is not None and self.selection[0] != self.selection[1]

    @property
    def surface_text(self) -> str:
        return "".join(self.surface)

    def target_range(self) -> tuple[int, int]:
        """The span read and replaced: the selection, or the whole buffer."""
        if self.has_selection:
            return self.selection
        return 0, len(self.text)

    def get_selection_or_buffer_text(self) -> str:
        start, end = self.target_range()
        return self.text[start:end]

    def replace_selection_or_buffer(self, text: str) -> None:
        start, end = self.target_range()
        self.text = self.text[:start] + text + self.text[end:]
        if self.selection is not None:
            self.selection = (start, start + len(text))
        self.cursor = start + len(text)
        self.changed()

    def insert_at_cursor(self, text: str) -> None:
        pos = self.cursor
        self.text = self.text[:pos] + text + self.text[pos:]
        if self.selection is not None and self.selection[0] >= pos:
            self.selection = (self.selection[0] + len(text), self.selection[1] + len(text))
        self.cursor = pos + len(text)
        self.changed()

    def prompt_user_choice(self, label: str, options: list[str]) -> str:
        if self._chooser is None:
            raise RuntimeError(f"No way to ask the user: {label}")
        return self._chooser(label, options)

    def show_text_surface(
        self, text: str, streaming: bool = False, append: bool = False
    ) -> None:
        if not append:
            self.surface.clear()
        self.surface.append(text)

    def notify(self, message: str) -> None:
        self.messages.append(message)

    def changed(self) -> None:
        """Hook called after every mutation."""
