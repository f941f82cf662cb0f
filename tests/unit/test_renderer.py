"""Tests for promptline.templates.renderer."""

import pytest

from promptline.core.models import Context, Message, Role, Template
from promptline.templates import (
    MissingSelection,
    TemplateError,
    UnresolvedPlaceholder,
    placeholders,
    render,
    template_placeholders,
)


class TestRender:
    def test_summarize_selection(self):
        template = Template(name="sum", prompt="Summarize: {{selection}}")
        context = Context(text="The quick brown fox", has_selection=True)

        assert render(template, context) == [
            Message(Role.USER, "Summarize: The quick brown fox"),
        ]

    def test_system_message_first(self):
        template = Template(name="t", system="You edit {{filename}}.", prompt="{{text}}")
        context = Context(text="body", filename="notes.md")

        messages = render(template, context)
        assert [m.role for m in messages] == [Role.SYSTEM, Role.USER]
        assert messages[0].content == "You edit notes.md."
        assert messages[-1].content == "body"

    def test_all_known_placeholders(self):
        template = Template(
            name="t",
            prompt="{{prompt}}|{{ selection }}|{{text}}|{{filename}}",
        )
        context = Context(text="T", user_prompt="P", filename="f.py")
        assert render(template, context)[-1].content == "P|T|T|f.py"

    def test_last_message_is_user(self):
        for template in (
            Template(name="a", prompt="x"),
            Template(name="b", prompt="x", system="y"),
        ):
            assert render(template, Context())[-1].role == Role.USER

    def test_unknown_placeholder(self):
        template = Template(name="bad", prompt="Hello {{nme}} and {{other}}")
        with pytest.raises(UnresolvedPlaceholder) as exc:
            render(template, Context(text="x"))
        assert exc.value.names == ["nme", "other"]
        assert "{{nme}}" in str(exc.value)

    def test_unknown_placeholder_in_system(self):
        template = Template(name="bad", system="{{persona}}", prompt="{{text}}")
        with pytest.raises(TemplateError):
            render(template, Context(text="x"))

    def test_requires_selection_without_one(self):
        template = Template(name="fix", prompt="{{selection}}", requires_selection=True)
        with pytest.raises(MissingSelection, match="requires a selection"):
            render(template, Context(text="whole buffer", has_selection=False))

    def test_requires_selection_empty_text(self):
        template = Template(name="fix", prompt="{{selection}}", requires_selection=True)
        with pytest.raises(MissingSelection):
            render(template, Context(text="", has_selection=True))

    def test_requires_selection_satisfied(self):
        template = Template(name="fix", prompt="{{selection}}", requires_selection=True)
        messages = render(template, Context(text="abc", has_selection=True))
        assert messages[-1].content == "abc"

    def test_substituted_text_is_not_reexpanded(self):
        template = Template(name="t", prompt="{{text}}")
        messages = render(template, Context(text="literal {{prompt}} braces"))
        assert messages[-1].content == "literal {{prompt}} braces"

    def test_single_braces_untouched(self):
        template = Template(name="t", prompt="dict = {'a': 1} {{text}}")
        assert render(template, Context(text="x"))[-1].content == "dict = {'a': 1} x"

    def test_braces_do_not_pair_across_system_and_prompt(self):
        template = Template(
            name="t",
            system="Use braces like {{",
            prompt="name}} literally: {{selection}}",
        )
        messages = render(template, Context(text="x", has_selection=True))
        assert messages[0].content == "Use braces like {{"
        assert messages[1].content == "name}} literally: x"


class TestPlaceholders:
    def test_order_and_dedup(self):
        assert placeholders("{{b}} {{a}} {{ b }}") == ["b", "a"]

    def test_none(self):
        assert placeholders("plain text") == []

    def test_template_scans_parts_separately(self):
        template = Template(name="t", system="{{filename}} {{", prompt="prompt}} {{selection}}")
        assert template_placeholders(template) == ["filename", "selection"]

    def test_template_merges_names(self):
        template = Template(name="t", system="{{prompt}}", prompt="{{text}} {{prompt}}")
        assert template_placeholders(template) == ["prompt", "text"]
