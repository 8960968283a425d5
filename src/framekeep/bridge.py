"""Capture bridge: runs inside the embedded calculator's window.

The bridge turns whatever the calculator page exposes (canvases, form controls,
local and session storage) into a :class:`Snapshot` and posts it to the parent
window as ``{"type": "TI89_STATE", "state": ...}`` with target origin ``"*"``;
the calculator has no way of knowing who embeds it.

Lifecycle
---------
- Once the document is ready, wait ``SETTLE_DELAY_MS``, then capture every
  ``capture_interval_ms`` and once more after ``INITIAL_CAPTURE_DELAY_MS``.
- ``beforeunload``, ``pagehide`` and a hidden ``visibilitychange`` each force a
  synchronous capture: the window may be discarded as soon as they return.
- Host commands arrive as messages (see :mod:`framekeep.core.contracts.messages`).

Every capture and restore step is best-effort. A step that raises becomes an
:class:`~framekeep.core.result.Absent` entry in the returned report and the
remaining steps still run.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from functools import partial
from typing import Any

from framekeep.core.contracts.messages import (
    RequestStateMessage,
    RestoreStateMessage,
    StartAutoCaptureMessage,
    StopAutoCaptureMessage,
    parse_bridge_command,
    state_message,
)
from framekeep.core.contracts.snapshot import CanvasEntry, InputEntry, Snapshot
from framekeep.core.digest import comparable_form
from framekeep.core.result import Absent, FieldResult, attempt
from framekeep.core.scheduler import Scheduler, Subscription
from framekeep.core.settings import Settings, get_logger, load_settings
from framekeep.page.canvas import Canvas
from framekeep.page.events import Event, MessageEvent
from framekeep.page.storage import KeyValueArea
from framekeep.page.window import Window

logger = get_logger(__name__)


@dataclass(frozen=True)
class CaptureReport:
    """What one capture produced, field by field."""

    snapshot: Snapshot
    canvases: tuple[FieldResult[CanvasEntry], ...]
    inputs: FieldResult[tuple[InputEntry, ...]]
    local_storage: FieldResult[dict[str, str]]
    session_storage: FieldResult[dict[str, str]]
    emitted: bool = False


@dataclass(frozen=True)
class RestoreReport:
    """How many items each restore step wrote back (or why it failed)."""

    canvases: FieldResult[int]
    inputs: FieldResult[int]
    local_storage: FieldResult[int]
    session_storage: FieldResult[int]


def _dump_area(area: KeyValueArea) -> dict[str, str]:
    data: dict[str, str] = {}
    for i in range(area.length):
        key = area.key(i)
        if key is not None:
            data[key] = area.get_item(key) or ""
    return data


class CaptureBridge:
    """Extracts and emits snapshots from inside the embedded window.

    Parameters
    ----------
    window:
        The calculator's own window (its ``parent`` is the host).
    scheduler:
        Owner of every timer and listener the bridge registers.
    capture_interval_ms:
        Auto-capture period once the page is ready; defaults to settings.
    """

    SETTLE_DELAY_MS = 1000
    INITIAL_CAPTURE_DELAY_MS = 2000
    REQUEST_DEBOUNCE_MS = 100
    COMMAND_DEFAULT_INTERVAL_MS = 5000

    def __init__(
        self,
        window: Window,
        scheduler: Scheduler,
        *,
        capture_interval_ms: int | None = None,
        settings: Settings | None = None,
    ) -> None:
        cfg = settings or load_settings()
        self.window = window
        self.document = window.document
        self.scheduler = scheduler
        self.capture_interval_ms = capture_interval_ms or cfg.capture_interval_ms
        self.last_report: CaptureReport | None = None
        self._last_emitted: str | None = None
        self._request_pending = False
        self._capture_timer: Subscription | None = None
        self._subscriptions: list[Subscription] = []

    # ----- Installation ------------------------------------------------------
    def install(self) -> None:
        """Register listeners and schedule the first captures (idempotent)."""
        if self._subscriptions:
            return
        listen = self.scheduler.listen
        self._subscriptions += [
            listen(self.window, "message", self._handle_parent_message, label="bridge:message"),
            listen(self.window, "beforeunload", self._force_capture, label="bridge:beforeunload"),
            listen(self.window, "pagehide", self._force_capture, label="bridge:pagehide"),
            listen(
                self.document,
                "visibilitychange",
                self._on_visibility_change,
                label="bridge:visibility",
            ),
        ]
        if self.document.ready_state == "loading":
            self._subscriptions.append(
                listen(self.document, "DOMContentLoaded", self._on_ready, label="bridge:ready")
            )
        else:
            self._on_ready()
        logger.info("Calculator bridge installed at %s", self.window.location)

    def uninstall(self) -> None:
        """Cancel every listener and timer the bridge owns."""
        self.stop_auto_capture()
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()
        self._request_pending = False

    def _on_ready(self, _event: Event | None = None) -> None:
        def _boot() -> None:
            self.start_auto_capture(self.capture_interval_ms)
            self._track(
                self.scheduler.call_later(
                    self.INITIAL_CAPTURE_DELAY_MS, self.capture_state, label="bridge:initial"
                )
            )

        self._track(self.scheduler.call_later(self.SETTLE_DELAY_MS, _boot, label="bridge:settle"))

    def _track(self, sub: Subscription) -> None:
        self._subscriptions = [s for s in self._subscriptions if s.active]
        self._subscriptions.append(sub)

    # ----- Auto-capture ------------------------------------------------------
    def start_auto_capture(self, interval_ms: int) -> None:
        """(Re)start periodic capture every ``interval_ms``."""
        self.stop_auto_capture()
        self._capture_timer = self.scheduler.call_every(
            interval_ms, self.capture_state, label="bridge:auto-capture"
        )
        logger.info("Calculator state capture started with %sms interval", interval_ms)

    def stop_auto_capture(self) -> None:
        if self._capture_timer is not None:
            self._capture_timer.cancel()
            self._capture_timer = None

    @property
    def auto_capturing(self) -> bool:
        return self._capture_timer is not None and self._capture_timer.active

    # ----- Capture -----------------------------------------------------------
    def collect(self) -> CaptureReport:
        """Gather every field without emitting anything."""
        canvases = tuple(
            attempt(partial(self._capture_canvas, i, canvas), what=f"canvas {i}")
            for i, canvas in enumerate(self.document.query_canvases())
        )
        inputs = attempt(self._capture_inputs, what="inputs")
        local = attempt(partial(_dump_area, self.window.local_storage), what="localStorage")
        session = attempt(partial(_dump_area, self.window.session_storage), what="sessionStorage")

        for field in (*canvases, inputs, local, session):
            if isinstance(field, Absent):
                logger.debug("Capture skipped %s", field.why)

        snapshot = Snapshot(
            timestamp=self.scheduler.now(),
            url=self.window.location,
            canvas_data=tuple(c.unwrap() for c in canvases if c.is_present()),
            inputs=inputs.get_or(()),
            local_storage=local.get_or({}),
            session_storage=session.get_or({}),
        )
        return CaptureReport(
            snapshot=snapshot,
            canvases=canvases,
            inputs=inputs,
            local_storage=local,
            session_storage=session,
        )

    def capture_state(self) -> CaptureReport | None:
        """Capture, and post to the parent unless nothing changed since last time."""
        try:
            report = self.collect()
            payload = report.snapshot.to_wire()
            serialized = comparable_form(payload)
            emitted = False
            if serialized != self._last_emitted:
                self._last_emitted = serialized
                if not self.window.is_top:
                    self.window.parent.post_message(
                        state_message(payload), "*", source=self.window
                    )
                    emitted = True
        except Exception as exc:  # noqa: BLE001 - never break the calculator page
            logger.warning("State capture failed: %s", exc)
            return None
        report = replace(report, emitted=emitted)
        self.last_report = report
        return report

    @staticmethod
    def _capture_canvas(index: int, canvas: Canvas) -> CanvasEntry:
        return CanvasEntry(
            index=index,
            width=canvas.width,
            height=canvas.height,
            encoded_image=canvas.to_data_url(),
            id=canvas.id,
            class_name=canvas.class_name,
        )

    def _capture_inputs(self) -> tuple[InputEntry, ...]:
        return tuple(
            InputEntry(
                index=i,
                type=control.type,
                value=control.value,
                id=control.id,
                name=control.name,
                class_name=control.class_name,
            )
            for i, control in enumerate(self.document.query_controls())
        )

    # ----- Restore -----------------------------------------------------------
    def restore_state(self, state: Mapping[str, Any]) -> RestoreReport:
        """Write ``state`` back into the page; partial success is acceptable."""
        logger.info("Restoring calculator state captured at %s", state.get("timestamp"))
        report = RestoreReport(
            canvases=self._restore_field(state, "canvasData", self._restore_canvases),
            inputs=self._restore_field(state, "inputs", self._restore_inputs),
            local_storage=self._restore_field(
                state, "localStorage", partial(self._restore_area, self.window.local_storage)
            ),
            session_storage=self._restore_field(
                state, "sessionStorage", partial(self._restore_area, self.window.session_storage)
            ),
        )
        return report

    @staticmethod
    def _restore_field(state: Mapping[str, Any], key: str, step: Any) -> FieldResult[int]:
        value = state.get(key)
        if not value:
            return Absent(f"{key}: not in state")
        result: FieldResult[int] = attempt(partial(step, value), what=key)
        if isinstance(result, Absent):
            logger.error("Failed to restore %s", result.why)
        return result

    def _restore_canvases(self, entries: Sequence[Mapping[str, Any]]) -> int:
        restored = 0
        for raw in entries:
            outcome = attempt(partial(self._paint, raw), what="canvas")
            if outcome.is_present() and outcome.unwrap():
                restored += 1
            elif isinstance(outcome, Absent):
                logger.debug("Canvas restore skipped %s", outcome.why)
        return restored

    def _paint(self, raw: Mapping[str, Any]) -> bool:
        entry = CanvasEntry.model_validate(raw)
        canvases = self.document.query_canvases()
        if entry.index >= len(canvases) or not entry.encoded_image:
            return False
        canvas = canvases[entry.index]
        canvas.clear()
        canvas.draw_data_url(entry.encoded_image)
        return True

    def _restore_inputs(self, entries: Sequence[Mapping[str, Any]]) -> int:
        restored = 0
        for raw in entries:
            outcome = attempt(partial(self._fill, raw), what="input")
            if outcome.is_present() and outcome.unwrap():
                restored += 1
            elif isinstance(outcome, Absent):
                logger.debug("Input restore skipped %s", outcome.why)
        return restored

    def _fill(self, raw: Mapping[str, Any]) -> bool:
        entry = InputEntry.model_validate(raw)
        controls = self.document.query_controls()
        if entry.index >= len(controls):
            return False
        control = controls[entry.index]
        if control.type != entry.type:
            return False
        control.value = entry.value
        control.dispatch_event(Event("change", bubbles=True))
        control.dispatch_event(Event("input", bubbles=True))
        return True

    @staticmethod
    def _restore_area(area: KeyValueArea, data: Mapping[str, Any]) -> int:
        for key, value in data.items():
            area.set_item(str(key), str(value))
        return len(data)

    # ----- Host commands and lifecycle ---------------------------------------
    def request_capture(self) -> bool:
        """Capture once after a short delay; ignored while one is pending."""
        if self._request_pending:
            return False
        self._request_pending = True

        def _run() -> None:
            try:
                self.capture_state()
            finally:
                self._request_pending = False

        self._track(
            self.scheduler.call_later(self.REQUEST_DEBOUNCE_MS, _run, label="bridge:request")
        )
        return True

    def _handle_parent_message(self, event: MessageEvent) -> None:
        command = parse_bridge_command(event.data)
        if command is None:
            return
        if isinstance(command, RequestStateMessage):
            self.request_capture()
        elif isinstance(command, RestoreStateMessage):
            self.restore_state(command.state)
        elif isinstance(command, StartAutoCaptureMessage):
            self.start_auto_capture(command.interval or self.COMMAND_DEFAULT_INTERVAL_MS)
        elif isinstance(command, StopAutoCaptureMessage):
            self.stop_auto_capture()

    def _force_capture(self, _event: Event) -> None:
        self.capture_state()

    def _on_visibility_change(self, _event: Event) -> None:
        if self.document.hidden:
            self.capture_state()


def install_bridge(
    window: Window, scheduler: Scheduler, *, settings: Settings | None = None
) -> CaptureBridge:
    """Create and install a bridge in ``window``."""
    bridge = CaptureBridge(window, scheduler, settings=settings)
    bridge.install()
    return bridge


__all__ = ["CaptureBridge", "CaptureReport", "RestoreReport", "install_bridge"]
