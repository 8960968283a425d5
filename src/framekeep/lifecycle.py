"""Lifecycle-driven fallback manager for the constrained (mobile) path.

Where the embedded calculator cannot be messaged or introspected, the only
observable signals are the frame's address and coarse page-lifecycle events.
This manager therefore:

- polls the frame address and saves ``{url, timestamp, userAgent, viewport}``
  whenever it changes to something meaningful,
- writes a minimal ``{sessionId, lastActive, url, userAgent}`` record on a
  coarser timer regardless of changes,
- restores by navigating the frame back to the remembered address. Nothing is
  pushed into the calculator itself.

Persistence goes through its own :class:`BoundedFallbackStore` key
(``ti89_ios_state``) plus the bare last address under ``ti89_last_url``.
"""

from __future__ import annotations

import random
import string
from collections.abc import Mapping
from functools import partial
from typing import Any

from framekeep.core.contracts.records import BasicState, UrlState, Viewport
from framekeep.core.errors import QuotaExceededError, SecurityError, StorageUnavailableError
from framekeep.core.scheduler import Scheduler, Subscription
from framekeep.core.settings import Settings, get_logger, load_settings
from framekeep.indicator import RESTORED, SAVED, Indicator
from framekeep.page.events import Event
from framekeep.page.window import BLANK, FrameElement, Window
from framekeep.storage.fallback import BoundedFallbackStore

logger = get_logger(__name__)

STORAGE_KEY = "ti89_ios_state"
URL_STORAGE_KEY = "ti89_last_url"
SESSION_ID_KEY = "ti89_session_id"
STATE_VERSION = "1.1"
USER_AGENT_LIMIT = 100

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _require_positive_interval(interval_ms: Any) -> int:
    if isinstance(interval_ms, bool) or not isinstance(interval_ms, int) or interval_ms <= 0:
        raise ValueError(f"interval must be a positive integer, got {interval_ms!r}")
    return interval_ms


class LifecycleFallbackManager:
    """Address-only persistence driven by polling and lifecycle events."""

    name = "lifecycle"

    RESTORE_DELAY_MS = 1000
    PAGESHOW_RESTORE_DELAY_MS = 500
    ORIENTATION_CAPTURE_DELAY_MS = 500

    def __init__(
        self,
        host: Window,
        scheduler: Scheduler,
        *,
        settings: Settings | None = None,
        store: BoundedFallbackStore | None = None,
        indicator: Indicator | None = None,
    ) -> None:
        cfg = settings or load_settings()
        self.host = host
        self.scheduler = scheduler
        self.poll_interval_ms = cfg.url_poll_interval_ms
        self.default_interval_ms = cfg.lifecycle_auto_save_interval_ms
        self.store = store or BoundedFallbackStore(
            host.local_storage,
            storage_key=STORAGE_KEY,
            max_states=cfg.fallback_max_states,
            version=STATE_VERSION,
            clock=scheduler.now,
        )
        self.indicator = indicator or Indicator(scheduler)
        self.iframe: FrameElement | None = None
        self.last_url = ""
        self.last_save_time = 0
        self._url_monitor: Subscription | None = None
        self._auto_save: Subscription | None = None
        self._pending_restore: Subscription | None = None
        self._lifecycle_subs: list[Subscription] = []
        self._delayed: list[Subscription] = []

        self.storage_available = self.store.is_available()
        if self.storage_available:
            logger.info("Lifecycle manager initialized with local storage")
        else:
            logger.warning("Local storage not available; lifecycle saves are disabled")

    # ----- Frame address -----------------------------------------------------
    def set_iframe(self, frame: FrameElement) -> None:
        """Register the frame and start polling its address."""
        self.iframe = frame
        self.start_url_monitoring()

    def start_url_monitoring(self, interval_ms: int | None = None) -> None:
        interval = _require_positive_interval(
            self.poll_interval_ms if interval_ms is None else interval_ms
        )
        self.stop_url_monitoring()
        self._url_monitor = self.scheduler.call_every(
            interval, self.capture_iframe_state, label="lifecycle:url-poll"
        )

    def stop_url_monitoring(self) -> None:
        if self._url_monitor is not None:
            self._url_monitor.cancel()
            self._url_monitor = None

    def current_frame_url(self) -> str:
        """The embedded address if readable, else the configured ``src``."""
        if self.iframe is None:
            return ""
        try:
            return self.iframe.content_url()
        except SecurityError:
            logger.debug("Frame address is cross-origin, falling back to src")
            return self.iframe.src

    def capture_iframe_state(self) -> bool:
        """Save a URL record if the frame address changed; return whether it did."""
        if self.iframe is None:
            return False
        url = self.current_frame_url()
        if not url or url == BLANK or url == self.last_url:
            return False
        self.last_url = url
        state = UrlState(
            url=url,
            timestamp=self.scheduler.now(),
            user_agent=self.host.user_agent,
            viewport=Viewport(width=self.host.inner_width, height=self.host.inner_height),
        )
        return self.save_state(state.to_wire())

    # ----- Save / load / clear ----------------------------------------------
    def save_state(self, state: Mapping[str, Any] | None) -> bool:
        if not state:
            return False
        if not self.store.save_state(state):
            logger.error("Failed to save lifecycle state")
            return False
        try:
            self.host.local_storage.set_item(URL_STORAGE_KEY, str(state.get("url") or ""))
        except (StorageUnavailableError, QuotaExceededError) as exc:
            logger.warning("Saved state but not the last address: %s", exc)
        self.last_save_time = self.scheduler.now()
        self.indicator.show(SAVED)
        logger.debug("Lifecycle state saved")
        return True

    def load_state(self) -> dict[str, Any] | None:
        """The last saved record, or a minimal one rebuilt from the last address."""
        state = self.store.load_state()
        if state is not None:
            return state
        try:
            stored_url = self.host.local_storage.get_item(URL_STORAGE_KEY)
        except StorageUnavailableError as exc:
            logger.error("Failed to load lifecycle state: %s", exc)
            return None
        if stored_url:
            return {"url": stored_url, "timestamp": self.scheduler.now()}
        return None

    def clear_state(self) -> None:
        self.store.clear_state()
        try:
            self.host.local_storage.remove_item(URL_STORAGE_KEY)
        except StorageUnavailableError as exc:
            logger.error("Failed to clear last address: %s", exc)
        self.last_url = ""

    # ----- Restore -----------------------------------------------------------
    def restore_state(self) -> bool:
        """Schedule navigation to the saved address when it differs from the current one."""
        saved = self.load_state()
        saved_url = str((saved or {}).get("url") or "")
        if self.iframe is None or not saved_url or saved_url == BLANK:
            return False
        if saved_url == self.current_frame_url():
            return False
        logger.info("Restoring frame address %s", saved_url)
        if self._pending_restore is not None:
            self._pending_restore.cancel()
        self._pending_restore = self.scheduler.call_later(
            self.RESTORE_DELAY_MS, partial(self._navigate, saved_url), label="lifecycle:restore"
        )
        return True

    def _navigate(self, url: str) -> None:
        self._pending_restore = None
        if self.iframe is not None:
            self.iframe.navigate(url)
            self.indicator.show(RESTORED)

    # ----- Auto-save ---------------------------------------------------------
    def start_auto_save(self, interval_ms: int | None = None) -> None:
        interval = _require_positive_interval(
            self.default_interval_ms if interval_ms is None else interval_ms
        )
        self.stop_auto_save()
        self._auto_save = self.scheduler.call_every(
            interval, self._auto_save_tick, label="lifecycle:auto-save"
        )
        logger.info("Lifecycle auto-save started with %sms interval", interval)

    def stop_auto_save(self) -> None:
        if self._auto_save is not None:
            self._auto_save.cancel()
            self._auto_save = None

    def _auto_save_tick(self) -> None:
        self.capture_iframe_state()
        self.save_basic_state()

    def save_basic_state(self) -> bool:
        """Write the minimal liveness record."""
        url = self.last_url or (self.iframe.src if self.iframe is not None else "")
        basic = BasicState(
            session_id=self.get_session_id(),
            last_active=self.scheduler.now(),
            url=url,
            user_agent=self.host.user_agent[:USER_AGENT_LIMIT],
        )
        return self.save_state(basic.to_wire())

    def get_session_id(self) -> str:
        """Return this browser session's id, creating it on first use."""
        area = self.host.session_storage
        try:
            session_id = area.get_item(SESSION_ID_KEY)
        except StorageUnavailableError:
            session_id = None
        if session_id:
            return session_id
        suffix = "".join(random.choices(_ID_ALPHABET, k=9))
        session_id = f"ios_{self.scheduler.now()}_{suffix}"
        try:
            area.set_item(SESSION_ID_KEY, session_id)
        except (StorageUnavailableError, QuotaExceededError) as exc:
            logger.debug("Session id not persisted: %s", exc)
        return session_id

    # ----- Lifecycle events --------------------------------------------------
    def setup_lifecycle_handlers(self) -> None:
        """Subscribe to visibility, page show/hide, focus and orientation events."""
        if self._lifecycle_subs:
            return
        listen = self.scheduler.listen
        self._lifecycle_subs = [
            listen(self.host.document, "visibilitychange", self._on_visibility_change),
            listen(self.host, "pagehide", self._on_page_hide),
            listen(self.host, "pageshow", self._on_page_show),
            listen(self.host, "focus", self._on_focus),
            listen(self.host, "blur", self._on_blur),
            listen(self.host, "orientationchange", self._on_orientation_change),
        ]
        logger.info("Lifecycle handlers registered")

    def _later(self, delay_ms: int, callback: Any, label: str) -> None:
        self._delayed = [s for s in self._delayed if s.active]
        self._delayed.append(self.scheduler.call_later(delay_ms, callback, label=label))

    def _on_visibility_change(self, _event: Event) -> None:
        if self.host.document.hidden:
            logger.info("Page going to background, saving state")
            self.capture_iframe_state()
            self.save_basic_state()
        else:
            logger.info("Page returning from background")
            self._later(self.RESTORE_DELAY_MS, self.restore_state, "lifecycle:visible-restore")

    def _on_page_hide(self, _event: Event) -> None:
        logger.info("Page hide, saving state")
        self.capture_iframe_state()
        self.save_basic_state()

    def _on_page_show(self, event: Event) -> None:
        if event.persisted:
            self._later(
                self.PAGESHOW_RESTORE_DELAY_MS, self.restore_state, "lifecycle:pageshow-restore"
            )

    def _on_focus(self, _event: Event) -> None:
        logger.debug("Window focused")

    def _on_blur(self, _event: Event) -> None:
        self.capture_iframe_state()

    def _on_orientation_change(self, _event: Event) -> None:
        self._later(
            self.ORIENTATION_CAPTURE_DELAY_MS, self.capture_iframe_state, "lifecycle:orientation"
        )

    # ----- Diagnostics -------------------------------------------------------
    def get_diagnostics(self) -> dict[str, Any]:
        return {
            "storage_available": self.store.is_available(),
            "user_agent": self.host.user_agent,
            "is_standalone": self.host.standalone,
            "has_iframe": self.iframe is not None,
            "last_url": self.last_url,
            "last_save_time": self.last_save_time,
            "session_id": self.get_session_id(),
            "saved_state": self.load_state(),
            "timestamp": self.scheduler.now(),
        }

    def force_save(self) -> dict[str, Any]:
        logger.info("Force save triggered")
        self.capture_iframe_state()
        self.save_basic_state()
        return self.get_diagnostics()

    def force_restore(self) -> bool:
        logger.info("Force restore triggered")
        return self.restore_state()

    def close(self) -> None:
        """Cancel every timer and listener this manager owns."""
        self.stop_url_monitoring()
        self.stop_auto_save()
        for sub in (*self._lifecycle_subs, *self._delayed):
            sub.cancel()
        self._lifecycle_subs = []
        self._delayed = []
        if self._pending_restore is not None:
            self._pending_restore.cancel()
            self._pending_restore = None


__all__ = [
    "SESSION_ID_KEY",
    "STATE_VERSION",
    "STORAGE_KEY",
    "URL_STORAGE_KEY",
    "LifecycleFallbackManager",
]
