"""Dispatcher — renders a template, calls the active provider, applies the result.

Flow for one request:
  1. Render the template (no network call if this fails)
  2. Snapshot the provider config and pick the adapter
  3. Send, routing chunks to the live surface (DISPLAY) or buffering them
  4. Log the exchange, then apply the final text through the chosen action

Starting a new request abandons the previous one. Deliveries to the editor
happen under a lock and re-check the cancel flag, so an abandoned request
can never touch the buffer.
"""

from __future__ import annotations

import difflib
import itertools
import logging
import threading
from collections.abc import Callable
from pathlib import Path

from promptline.core.config import Settings
from promptline.core.models import (
    Context,
    DispatchResult,
    LogEntry,
    Message,
    Outcome,
    ResponseChunk,
    Service,
    Template,
)
from promptline.core.session_log import SessionLogger
from promptline.dispatch.actions import Action, Editor
from promptline.providers import (
    Adapter,
    ChunkGuard,
    ProviderError,
    RequestCancelled,
    get_adapter,
)
from promptline.templates import TemplateError, TemplateStore, render

log = logging.getLogger(__name__)

CONFIRM_LABEL = "Apply this rewrite?"
CONFIRM_OPTIONS = ["yes", "no"]


class RequestHandle:
    """A dispatched request that can be waited on or abandoned."""

    def __init__(self, request_id: int) -> None:
        self.id = request_id
        self.cancel_event = threading.Event()
        self._done = threading.Event()
        self._result: DispatchResult | None = None
        self.service: Service | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def result(self) -> DispatchResult | None:
        return self._result

    def cancel(self) -> None:
        self.cancel_event.set()

    def wait(self, timeout: float | None = None) -> DispatchResult | None:
        """Block until the request finishes; None on timeout."""
        self._done.wait(timeout)
        return self._result

    def finish(self, result: DispatchResult) -> None:
        self._result = result
        self._done.set()


def unified_diff(before: str, after: str, filename: str = "") -> str:
    """Textual diff shown before a rewrite is applied."""
    name = filename or "selection"
    lines = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"{name} (current)",
        tofile=f"{name} (proposed)",
    )
    return "".join(line if line.endswith("\n") else line + "\n" for line in lines)


class _LiveDisplay:
    """Streams deltas to the editor once the response passes a threshold.

    Short responses are shown once, complete, instead of flickering in.
    """

    def __init__(self, deliver: Callable[[str, bool, bool], None], threshold: int) -> None:
        self._deliver = deliver
        self._threshold = threshold
        self._pending: list[str] = []
        self._pending_len = 0
        self.streaming = False

    def feed(self, delta: str) -> None:
        if self.streaming:
            self._deliver(delta, True, True)
            return
        self._pending.append(delta)
        self._pending_len += len(delta)
        if self._pending_len > self._threshold:
            self.streaming = True
            # first fragment replaces whatever the last request left
            self._deliver("".join(self._pending), True, False)
            self._pending.clear()

    def finish(self, text: str) -> None:
        if not self.streaming:
            self._deliver(text, False, False)


class Dispatcher:
    """Coordinates rendering, provider calls and response application."""

    def __init__(
        self,
        settings: Settings,
        editor: Editor,
        templates: TemplateStore | None = None,
        session_log: SessionLogger | None = None,
        adapter_factory: Callable[[Service], Adapter] = get_adapter,
    ) -> None:
        self._settings = settings
        self._editor = editor
        self._templates = templates or TemplateStore()
        self._session_log = session_log
        self._adapter_factory = adapter_factory
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._current: RequestHandle | None = None

    @property
    def templates(self) -> TemplateStore:
        return self._templates

    @property
    def current(self) -> RequestHandle | None:
        return self._current

    # --- public API ---

    def execute(
        self,
        template: Template | str,
        context: Context,
        action: Action = Action.DISPLAY,
        service: Service | str | None = None,
    ) -> DispatchResult:
        """Run a request on the calling thread and return its outcome."""
        handle = self._begin()
        return self._run(handle, template, context, action, service)

    def submit(
        self,
        template: Template | str,
        context: Context,
        action: Action = Action.DISPLAY,
        service: Service | str | None = None,
    ) -> RequestHandle:
        """Run a request on a background thread."""
        handle = self._begin()
        thread = threading.Thread(
            target=self._run,
            args=(handle, template, context, action, service),
            name=f"promptline-request-{handle.id}",
            daemon=True,
        )
        thread.start()
        return handle

    def cancel(self) -> None:
        """Abandon the in-flight request, if any."""
        with self._lock:
            if self._current is not None and not self._current.done:
                log.info("Cancelling request %d", self._current.id)
                self._current.cancel()

    def list_models(self, service: Service | str | None = None) -> list[str]:
        """Models for the model-selection menu; failures degrade to []."""
        config = self._settings.provider_config(service)
        adapter = self._adapter_factory(config.service)
        try:
            return adapter.list_models(config)
        except ProviderError as e:
            log.warning("Model listing failed: %s", e)
            self._notify(f"Could not list models: {e}")
            return []

    # --- internals ---

    def _begin(self) -> RequestHandle:
        with self._lock:
            previous = self._current
            if previous is not None and not previous.done:
                log.info("Abandoning request %d for a new request", previous.id)
                previous.cancel()
            handle = RequestHandle(next(self._ids))
            self._current = handle
            return handle

    def _run(
        self,
        handle: RequestHandle,
        template: Template | str,
        context: Context,
        action: Action,
        service: Service | str | None,
    ) -> DispatchResult:
        try:
            result = self._dispatch(handle, template, context, action, service)
        except Exception as e:
            # Nothing escapes into host code
            log.exception("Request %d failed unexpectedly", handle.id)
            prefix = f"[{handle.service.value}] " if handle.service else ""
            self._report(handle, f"{prefix}Unexpected error: {e}")
            result = DispatchResult(Outcome.FAILED, error=e)
        if handle.cancelled and result.outcome == Outcome.FAILED:
            # Errors from an abandoned request are discarded
            result = DispatchResult(Outcome.CANCELLED)
        handle.finish(result)
        return result

    def _dispatch(
        self,
        handle: RequestHandle,
        template: Template | str,
        context: Context,
        action: Action,
        service: Service | str | None,
    ) -> DispatchResult:
        try:
            if isinstance(template, str):
                template = self._templates.get(template)
            conversation = render(template, context)
        except (TemplateError, KeyError) as e:
            message = e.args[0] if isinstance(e, KeyError) else str(e)
            self._report(handle, f"Template error: {message}")
            return DispatchResult(Outcome.FAILED, error=e)

        # Read everything configurable once; later setter calls do not
        # affect this request.
        config = self._settings.provider_config(service)
        handle.service = config.service
        threshold = self._settings.stream_threshold
        confirm = self._settings.confirm_rewrite
        session_log = self._session_log or SessionLogger(self._settings.log_dir)
        adapter = self._adapter_factory(config.service)

        display = None
        if action == Action.DISPLAY:
            display = _LiveDisplay(
                lambda text, streaming, append: self._deliver(
                    handle, self._editor.show_text_surface, text, streaming, append
                ),
                threshold,
            )

        final: list[str] = []

        def on_chunk(chunk: ResponseChunk) -> None:
            if handle.cancelled:
                return
            if chunk.is_final:
                final.append(chunk.text)
            elif display is not None:
                display.feed(chunk.text)

        guard = ChunkGuard(on_chunk)
        log.info(
            "Request %d: template=%s service=%s model=%s action=%s",
            handle.id, template.name, config.service.value, config.model, action.value,
        )
        try:
            adapter.send(conversation, config, guard, cancel=handle.cancel_event)
        except RequestCancelled:
            log.info("Request %d cancelled", handle.id)
            return DispatchResult(Outcome.CANCELLED)
        except ProviderError as e:
            guard.fail()
            if handle.cancelled:
                return DispatchResult(Outcome.CANCELLED)
            log.warning("Request %d failed: %s", handle.id, e)
            self._report(handle, str(e))
            return DispatchResult(Outcome.FAILED, error=e)

        if handle.cancelled:
            return DispatchResult(Outcome.CANCELLED)
        if not final:
            raise RuntimeError(f"{config.service.value} adapter returned without a final chunk")
        text = final[0]

        log_path = self._log_exchange(session_log, config.service, config.model, conversation, text)
        result = self._apply(handle, action, context, text, display, confirm)
        result.log_path = str(log_path) if log_path else None
        return result

    def _apply(
        self,
        handle: RequestHandle,
        action: Action,
        context: Context,
        text: str,
        display: _LiveDisplay | None,
        confirm: bool,
    ) -> DispatchResult:
        if action == Action.DISPLAY:
            assert display is not None
            display.finish(text)
            return DispatchResult(Outcome.COMPLETED, text=text)

        if action == Action.RETURN_RAW:
            return DispatchResult(Outcome.COMPLETED, text=text)

        if action == Action.INSERT_AT_CURSOR:
            if not self._deliver(handle, self._editor.insert_at_cursor, text):
                return DispatchResult(Outcome.CANCELLED, text=text)
            return DispatchResult(Outcome.COMPLETED, text=text)

        # REPLACE_SELECTION
        before = self._editor.get_selection_or_buffer_text()
        diff = unified_diff(before, text, context.filename)
        if not diff:
            self._notify("No changes proposed")
            return DispatchResult(Outcome.COMPLETED, text=text)

        if confirm:
            self._deliver(handle, self._editor.show_text_surface, diff, False)
            if handle.cancelled:
                return DispatchResult(Outcome.CANCELLED, text=text, diff=diff)
            choice = self._editor.prompt_user_choice(CONFIRM_LABEL, list(CONFIRM_OPTIONS))
            if str(choice).strip().lower() not in ("yes", "y"):
                log.info("Request %d: rewrite declined", handle.id)
                self._notify("Rewrite declined; buffer unchanged")
                return DispatchResult(Outcome.DECLINED, text=text, diff=diff)

        if not self._deliver(handle, self._editor.replace_selection_or_buffer, text):
            return DispatchResult(Outcome.CANCELLED, text=text, diff=diff)
        return DispatchResult(Outcome.COMPLETED, text=text, diff=diff)

    def _deliver(self, handle: RequestHandle, fn: Callable, *args) -> bool:
        """Call into the editor unless the request has been abandoned."""
        with self._lock:
            if handle.cancelled:
                return False
            fn(*args)
            return True

    def _log_exchange(
        self,
        session_log: SessionLogger,
        service: Service,
        model: str,
        conversation: list[Message],
        text: str,
    ) -> Path | None:
        if not session_log.enabled:
            return None
        entry = LogEntry(
            service=service.value,
            model=model,
            messages=conversation,
            response=text,
        )
        try:
            return session_log.log(entry)
        except Exception as e:
            log.warning("Session log failed: %s", e)
            self._notify(f"Could not write session log: {e}")
            return None

    def _report(self, handle: RequestHandle, message: str) -> None:
        if handle.cancelled:
            return
        self._notify(message)

    def _notify(self, message: str) -> None:
        try:
            with self._lock:
                self._editor.notify(message)
        except Exception:
            log.warning("Editor notify failed for: %s", message, exc_info=True)
