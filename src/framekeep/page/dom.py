"""Document and form controls of the embedded page."""

from __future__ import annotations

from typing import Literal

from .canvas import Canvas
from .events import Event, EventTarget

ReadyState = Literal["loading", "interactive", "complete"]
ControlTag = Literal["input", "textarea", "select"]

_DEFAULT_TYPES: dict[str, str] = {
    "input": "text",
    "textarea": "textarea",
    "select": "select-one",
}


class FormControl(EventTarget):
    """An ``input``, ``textarea`` or ``select`` element."""

    def __init__(
        self,
        tag: ControlTag = "input",
        *,
        type: str | None = None,
        value: str = "",
        id: str = "",
        name: str = "",
        class_name: str = "",
    ) -> None:
        super().__init__()
        self.tag = tag
        self.type = type or _DEFAULT_TYPES[tag]
        self.value = value
        self.id = id
        self.name = name
        self.class_name = class_name
        self.parent: EventTarget | None = None

    def _parent_target(self) -> EventTarget | None:
        return self.parent


class Document(EventTarget):
    """Canvases and controls in traversal order, plus readiness and visibility."""

    def __init__(self, *, ready_state: ReadyState = "complete", hidden: bool = False) -> None:
        super().__init__()
        self.ready_state: ReadyState = ready_state
        self.hidden = hidden
        self._canvases: list[Canvas] = []
        self._controls: list[FormControl] = []

    @property
    def visibility_state(self) -> str:
        return "hidden" if self.hidden else "visible"

    def add_canvas(self, canvas: Canvas) -> Canvas:
        self._canvases.append(canvas)
        return canvas

    def add_control(self, control: FormControl) -> FormControl:
        control.parent = self
        self._controls.append(control)
        return control

    def remove_canvas(self, canvas: Canvas) -> None:
        self._canvases.remove(canvas)

    def query_canvases(self) -> list[Canvas]:
        return list(self._canvases)

    def query_controls(self) -> list[FormControl]:
        return list(self._controls)

    # ----- Lifecycle transitions --------------------------------------------
    def finish_loading(self) -> None:
        """Move out of ``loading`` and fire ``DOMContentLoaded``."""
        if self.ready_state == "loading":
            self.ready_state = "interactive"
            self.dispatch_event(Event("DOMContentLoaded"))

    def set_hidden(self, hidden: bool) -> None:
        """Change visibility and fire ``visibilitychange``."""
        self.hidden = hidden
        self.dispatch_event(Event("visibilitychange"))


__all__ = ["ControlTag", "Document", "FormControl", "ReadyState"]
