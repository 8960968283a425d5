"""Browsing contexts: windows and the frame element that embeds one.

Messages
--------
``Window.post_message(data, target_origin, source=...)`` queues delivery on the
scheduler, so the receiver sees the message on a later turn, never inside the
sender's call. The payload is deep-copied (a structured clone). When
``target_origin`` is neither ``"*"`` nor the receiver's origin the message is
dropped, which is how a browser protects a frame that navigated elsewhere.

Frames
------
The host sees the embedded page only through :class:`FrameElement`. Reading the
embedded location raises :class:`SecurityError` when the two origins differ;
the configured ``src`` is always readable but may be stale.
"""

from __future__ import annotations

import copy
from typing import Any
from urllib.parse import urlsplit

from framekeep.core.errors import SecurityError
from framekeep.core.scheduler import Scheduler
from framekeep.core.settings import get_logger

from .dom import Document
from .events import EventTarget, MessageEvent
from .storage import KeyValueArea

logger = get_logger(__name__)

BLANK = "about:blank"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0 Safari/537.36"
)


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for ``url`` (``"null"`` when opaque)."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return "null"
    return f"{parts.scheme}://{parts.netloc}"


class Window(EventTarget):
    """One browsing context: location, document, storage, and messaging."""

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        location: str,
        document: Document | None = None,
        parent: Window | None = None,
        local_storage: KeyValueArea | None = None,
        session_storage: KeyValueArea | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        inner_width: int = 1024,
        inner_height: int = 768,
        standalone: bool = False,
    ) -> None:
        super().__init__()
        self.scheduler = scheduler
        self.location = location
        self.document = document if document is not None else Document()
        self.parent: Window = parent if parent is not None else self
        self.local_storage = local_storage if local_storage is not None else KeyValueArea()
        self.session_storage = session_storage if session_storage is not None else KeyValueArea()
        self.user_agent = user_agent
        self.inner_width = inner_width
        self.inner_height = inner_height
        self.standalone = standalone

    @property
    def origin(self) -> str:
        return origin_of(self.location)

    @property
    def is_top(self) -> bool:
        return self.parent is self

    def post_message(self, data: Any, target_origin: str, *, source: Window | None = None) -> None:
        """Queue ``data`` for delivery to this window's ``message`` listeners."""
        if target_origin != "*" and target_origin != self.origin:
            logger.debug(
                "Dropped message for %s: target origin %s does not match",
                self.origin,
                target_origin,
            )
            return
        payload = copy.deepcopy(data)
        sender_origin = source.origin if source is not None else "null"

        def _deliver() -> None:
            self.dispatch_event(
                MessageEvent("message", data=payload, origin=sender_origin, source=source)
            )

        self.scheduler.call_later(0, _deliver, label="postMessage")


class FrameElement:
    """The host-side handle of an embedded frame."""

    def __init__(
        self, host: Window, *, src: str = BLANK, content_window: Window | None = None
    ) -> None:
        self.host = host
        self.src = src
        self.content_window = content_window
        if content_window is not None:
            content_window.parent = host

    @property
    def cross_origin(self) -> bool:
        cw = self.content_window
        return cw is not None and cw.origin != self.host.origin

    def content_url(self) -> str:
        """Return the embedded document's current address.

        Raises
        ------
        SecurityError
            When the embedded document is cross-origin to the host.
        """
        if self.content_window is None:
            return BLANK
        if self.cross_origin:
            raise SecurityError(
                f"blocked a frame with origin {self.host.origin} "
                "from accessing a cross-origin frame"
            )
        return self.content_window.location

    def navigate(self, url: str) -> None:
        """Point the frame at ``url`` (sets ``src`` and the embedded location)."""
        self.src = url
        if self.content_window is not None:
            self.content_window.location = url


__all__ = ["BLANK", "DEFAULT_USER_AGENT", "FrameElement", "Window", "origin_of"]
