"""Response dispatch: actions, host editor contract and the dispatcher."""

from promptline.dispatch.actions import Action, Editor, TextBuffer, build_context
from promptline.dispatch.dispatcher import Dispatcher, RequestHandle, unified_diff

__all__ = [
    "Action",
    "Dispatcher",
    "Editor",
    "RequestHandle",
    "TextBuffer",
    "build_context",
    "unified_diff",
]
