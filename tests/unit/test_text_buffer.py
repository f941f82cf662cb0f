"""Tests for TextBuffer and the terminal FileEditor host."""

from __future__ import annotations

import os
import stat

import click
import pytest

from promptline.cli.host import FileEditor, line_offset, parse_line_range
from promptline.dispatch import Editor, TextBuffer, build_context


class TestTextBuffer:
    def test_is_editor(self):
        assert isinstance(TextBuffer(), Editor)

    def test_whole_buffer_without_selection(self):
        buf = TextBuffer("hello")
        assert not buf.has_selection
        assert buf.get_selection_or_buffer_text() == "hello"
        buf.replace_selection_or_buffer("bye")
        assert buf.text == "bye"

    def test_selection(self):
        buf = TextBuffer("one two three", selection=(4, 7))
        assert buf.has_selection
        assert buf.get_selection_or_buffer_text() == "two"
        buf.replace_selection_or_buffer("2")
        assert buf.text == "one 2 three"
        assert buf.selection == (4, 5)
        assert buf.cursor == 5

    def test_empty_selection_is_no_selection(self):
        buf = TextBuffer("abc", selection=(1, 1))
        assert not buf.has_selection
        assert buf.get_selection_or_buffer_text() == "abc"

    def test_selection_out_of_range(self):
        with pytest.raises(ValueError):
            TextBuffer("abc", selection=(2, 9))

    def test_insert_at_cursor(self):
        buf = TextBuffer("ac", cursor=1)
        buf.insert_at_cursor("b")
        assert buf.text == "abc"
        assert buf.cursor == 2

    def test_insert_shifts_later_selection(self):
        buf = TextBuffer("xx yy", selection=(3, 5), cursor=0)
        buf.insert_at_cursor(">>")
        assert buf.get_selection_or_buffer_text() == "yy"

    def test_cursor_defaults_to_end_and_clamps(self):
        assert TextBuffer("abc").cursor == 3
        assert TextBuffer("abc", cursor=99).cursor == 3

    def test_surface(self):
        buf = TextBuffer()
        buf.show_text_surface("a", streaming=True)
        buf.show_text_surface("b", streaming=True, append=True)
        assert buf.surface_text == "ab"
        buf.show_text_surface("fresh")
        assert buf.surface == ["fresh"]

    def test_new_stream_replaces_surface(self):
        buf = TextBuffer()
        buf.show_text_surface("old answer", streaming=True)
        buf.show_text_surface("new", streaming=True)
        assert buf.surface == ["new"]

    def test_choice_needs_chooser(self):
        with pytest.raises(RuntimeError):
            TextBuffer().prompt_user_choice("Apply?", ["yes", "no"])
        buf = TextBuffer(chooser=lambda label, options: options[0])
        assert buf.prompt_user_choice("Apply?", ["yes", "no"]) == "yes"

    def test_build_context(self):
        buf = TextBuffer("one two", selection=(0, 3), filename="a.txt")
        ctx = build_context(buf, "do it")
        assert ctx.text == "one"
        assert ctx.has_selection is True
        assert ctx.filename == "a.txt"
        assert ctx.user_prompt == "do it"


class TestParseLineRange:
    @pytest.mark.parametrize(
        "value, expected",
        [(None, None), ("", None), ("3", (3, 3)), ("2:5", (2, 5))],
    )
    def test_valid(self, value, expected):
        assert parse_line_range(value) == expected

    @pytest.mark.parametrize("value", ["a:b", "0:2", "5:2", "1:"])
    def test_invalid(self, value):
        with pytest.raises(click.BadParameter):
            parse_line_range(value)


class TestLineOffset:
    def test_offsets(self):
        text = "ab\ncd\nef"
        assert line_offset(text, 1) == 0
        assert line_offset(text, 2) == 3
        assert line_offset(text, 3) == 6
        assert line_offset(text, 10) == len(text)


class TestFileEditor:
    def test_open_with_lines(self, tmp_path):
        path = tmp_path / "draft.txt"
        path.write_text("one\ntwo\nthree\n")
        editor = FileEditor.open(path, lines=(2, 2))
        assert editor.filename == "draft.txt"
        assert editor.get_selection_or_buffer_text() == "two"
        assert editor.cursor == editor.selection[1]

    def test_blank_line_range_replaces_in_place(self, tmp_path):
        path = tmp_path / "d.md"
        path.write_text("keep1\n\nkeep2\n")
        editor = FileEditor.open(path, lines=(2, 2))
        assert editor.get_selection_or_buffer_text() == ""
        editor.replace_selection_or_buffer("NEW")
        assert path.read_text() == "keep1\nNEW\nkeep2\n"

    def test_range_end_past_file_is_clamped(self, tmp_path):
        path = tmp_path / "d.md"
        path.write_text("a\nb\n")
        editor = FileEditor.open(path, lines=(2, 60))
        editor.replace_selection_or_buffer("X")
        assert path.read_text() == "a\nX\n"

    @pytest.mark.parametrize("text", ["a\nb\n", ""])
    def test_range_start_past_file_rejected(self, tmp_path, text):
        path = tmp_path / "d.md"
        path.write_text(text)
        with pytest.raises(click.BadParameter, match="past the end"):
            FileEditor.open(path, lines=(50, 60))
        assert path.read_text() == text

    def test_open_keeps_crlf(self, tmp_path):
        path = tmp_path / "win.txt"
        path.write_bytes(b"one\r\ntwo\r\n")
        editor = FileEditor.open(path, lines=(1, 2))
        assert editor.get_selection_or_buffer_text() == "one\r\ntwo"

    def test_replace_writes_file(self, tmp_path):
        path = tmp_path / "draft.txt"
        path.write_text("one\ntwo\nthree\n")
        editor = FileEditor.open(path, lines=(2, 2))
        editor.replace_selection_or_buffer("TWO")
        assert path.read_text() == "one\nTWO\nthree\n"

    def test_insert_at_line(self, tmp_path):
        path = tmp_path / "draft.txt"
        path.write_text("one\nthree\n")
        editor = FileEditor.open(path, at_line=2)
        editor.insert_at_cursor("two\n")
        assert path.read_text() == "one\ntwo\nthree\n"

    def test_write_keeps_mode(self, tmp_path):
        path = tmp_path / "shared.txt"
        path.write_text("x")
        os.chmod(path, 0o644)
        FileEditor.open(path).replace_selection_or_buffer("y")
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_stdin_buffer_is_read_only(self):
        editor = FileEditor.from_text("piped")
        assert editor.filename == "<stdin>"
        assert not editor.writable
        with pytest.raises(click.UsageError):
            editor.replace_selection_or_buffer("x")

    def test_surface_echoes(self, capsys):
        editor = FileEditor.from_text("")
        editor.show_text_surface("Hel", streaming=True)
        editor.show_text_surface("lo", streaming=True, append=True)
        editor.end_surface()
        assert capsys.readouterr().out == "Hello\n"

    def test_next_stream_starts_on_new_line(self, capsys):
        editor = FileEditor.from_text("")
        editor.show_text_surface("first", streaming=True)
        editor.show_text_surface("second", streaming=True)
        editor.end_surface()
        assert capsys.readouterr().out == "first\nsecond\n"
        assert editor.surface_text == "second"

    def test_notify_goes_to_stderr(self, capsys):
        editor = FileEditor.from_text("")
        editor.notify("careful")
        captured = capsys.readouterr()
        assert captured.err == "careful\n"
        assert editor.messages == ["careful"]
