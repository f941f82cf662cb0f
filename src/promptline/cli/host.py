"""Terminal host: edits a file on disk, talks to the user through click."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from promptline.core.fileutil import atomic_write
from promptline.dispatch.actions import TextBuffer

log = logging.getLogger(__name__)


def parse_line_range(value: str | None) -> tuple[int, int] | None:
    """Parse 'START:END' (1-based, inclusive) or a single line number."""
    if not value:
        return None
    start_s, sep, end_s = value.partition(":")
    try:
        start = int(start_s)
        end = int(end_s) if sep else start
    except ValueError:
        raise click.BadParameter(f"Expected START:END, got '{value}'") from None
    if start < 1 or end < start:
        raise click.BadParameter(f"Invalid line range '{value}'")
    return start, end


def line_offset(text: str, line: int) -> int:
    """Character offset of the start of a 1-based line (clamped to the end)."""
    lines = text.splitlines(keepends=True)
    return sum(len(chunk) for chunk in lines[: max(line - 1, 0)])


class FileEditor(TextBuffer):
    """A text file as an editing buffer.

    An optional line range acts as the selection and an optional line as
    the cursor. Every mutation is written back atomically, keeping the
    file's permissions.
    """

    def __init__(
        self,
        text: str,
        path: Path | None = None,
        selection: tuple[int, int] | None = None,
        cursor: int | None = None,
    ) -> None:
        super().__init__(
            text,
            selection=selection,
            cursor=cursor,
            filename=path.name if path else "<stdin>",
        )
        self.path = path
        self._stream_open = False

    @classmethod
    def open(
        cls,
        path: Path,
        lines: tuple[int, int] | None = None,
        at_line: int | None = None,
    ) -> FileEditor:
        with open(path, encoding="utf-8", newline="") as f:
            text = f.read()
        selection = None
        if lines is not None:
            line_count = len(text.splitlines())
            if lines[0] > line_count:
                raise click.BadParameter(
                    f"Line {lines[0]} is past the end of {path.name} ({line_count} lines)",
                    param_hint="'--lines'",
                )
            start = line_offset(text, lines[0])
            end = line_offset(text, lines[1] + 1)
            # the selection stops before the last line's terminator
            if end > start and text[end - 1] == "\n":
                end -= 1
                if end > start and text[end - 1] == "\r":
                    end -= 1
            selection = (start, end)
        cursor = None
        if at_line is not None:
            cursor = line_offset(text, at_line)
        elif selection is not None:
            cursor = selection[1]
        return cls(text, path=path, selection=selection, cursor=cursor)

    @classmethod
    def from_text(cls, text: str) -> FileEditor:
        """Read-only buffer, e.g. text piped on stdin."""
        return cls(text)

    @property
    def writable(self) -> bool:
        return self.path is not None

    def target_range(self) -> tuple[int, int]:
        # an explicit line range stays the target even when empty (a blank line)
        if self.selection is not None:
            return self.selection
        return super().target_range()

    def changed(self) -> None:
        if self.path is None:
            raise click.UsageError("Cannot modify text read from stdin; pass a FILE")
        atomic_write(self.path, self.text, mode=None)
        log.info("Wrote %s", self.path)

    def prompt_user_choice(self, label: str, options: list[str]) -> str:
        return click.prompt(label, type=click.Choice(options), default=options[-1])

    def show_text_surface(
        self, text: str, streaming: bool = False, append: bool = False
    ) -> None:
        if not append:
            self.end_surface()
        super().show_text_surface(text, streaming, append)
        self._stream_open = streaming
        click.echo(text, nl=not streaming)

    def end_surface(self) -> None:
        """Terminate a streamed surface with a newline if it lacks one."""
        if self._stream_open and not self.surface_text.endswith("\n"):
            click.echo()
        self._stream_open = False

    def notify(self, message: str) -> None:
        super().notify(message)
        click.echo(message, err=True)
