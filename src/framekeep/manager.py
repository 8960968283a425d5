"""State manager for the full-introspection path.

The manager owns a two-tier store and talks to the capture bridge over the
message channel.

Tiers
-----
- **Primary**: the structured-database tier. Opening it happens once, at
  construction. If that fails for any reason the manager latches onto the
  fallback tier for the rest of the session and never retries.
- **Fallback**: the bounded fallback store in the host's key/value area.

Each save picks its tier from ``use_primary``. A primary write that fails turns
``use_primary`` off for every later call, and the same call retries on the
fallback tier.

Dedup
-----
Every state is reduced to a SHA-256 digest of its comparable form. A save
whose digest equals the last *successfully saved* digest does nothing. The
same check makes duplicate or reordered message deliveries harmless.

Messages
--------
Inbound messages are acted on only when ``event.origin`` equals the configured
expected origin and the payload is a well-formed ``TI89_STATE`` message.
Outbound messages are always sent with that origin as the target.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from functools import partial
from typing import Any

from framekeep.core.contracts.messages import (
    parse_state_message,
    request_state_message,
    restore_state_message,
)
from framekeep.core.contracts.records import StoredRecord
from framekeep.core.digest import SaveDecision, decide_save, state_digest
from framekeep.core.errors import TierError
from framekeep.core.scheduler import Scheduler, Subscription
from framekeep.core.settings import Settings, get_logger, load_settings
from framekeep.indicator import SAVED, Indicator
from framekeep.page.events import MessageEvent
from framekeep.page.window import FrameElement, Window
from framekeep.storage.base import StorageTier
from framekeep.storage.database import DatabaseTier
from framekeep.storage.fallback import BoundedFallbackStore, FallbackTier

logger = get_logger(__name__)

TierFactory = Callable[[], StorageTier]


def _require_positive_interval(interval_ms: Any) -> int:
    if isinstance(interval_ms, bool) or not isinstance(interval_ms, int) or interval_ms <= 0:
        raise ValueError(f"auto-save interval must be a positive integer, got {interval_ms!r}")
    return interval_ms


class StateManager:
    """Persists snapshots from the bridge and pushes them back on restore.

    Parameters
    ----------
    host:
        The host page's window; its ``local_storage`` backs the fallback tier.
    scheduler:
        Owner of the auto-save timer and the message subscription.
    settings:
        Configuration; defaults to the cached process settings.
    primary_factory:
        Opens the primary tier. Defaults to a :class:`DatabaseTier` at
        ``settings.database_url``.
    fallback:
        Secondary tier. Defaults to a :class:`FallbackTier` over the host's
        ``local_storage``.
    indicator:
        Receives the transient "Saved" confirmation.
    """

    name = "full"

    def __init__(
        self,
        host: Window,
        scheduler: Scheduler,
        *,
        settings: Settings | None = None,
        primary_factory: TierFactory | None = None,
        fallback: StorageTier | None = None,
        indicator: Indicator | None = None,
    ) -> None:
        cfg = settings or load_settings()
        self.host = host
        self.scheduler = scheduler
        self.expected_origin = cfg.expected_origin
        self.state_key = cfg.session_key
        self.default_interval_ms = cfg.auto_save_interval_ms
        self.indicator = indicator or Indicator(scheduler)
        self.fallback: StorageTier = fallback or FallbackTier(
            BoundedFallbackStore(
                host.local_storage,
                storage_key=cfg.fallback_storage_key,
                max_states=cfg.fallback_max_states,
                clock=scheduler.now,
            )
        )
        self.primary: StorageTier | None = None
        self.use_primary = False
        self.iframe: FrameElement | None = None
        self.last_state_hash: str | None = None
        self._message_sub: Subscription | None = None
        self._auto_save: Subscription | None = None
        self._init_storage(primary_factory or partial(DatabaseTier.open, cfg.database_url))

    def _init_storage(self, factory: TierFactory) -> None:
        try:
            self.primary = factory()
        except Exception as exc:  # noqa: BLE001 - unsupported, blocked or full: all mean "no"
            logger.info("Database tier not available, using fallback storage: %s", exc)
            self.primary = None
            self.use_primary = False
            return
        self.use_primary = True

    @property
    def active_tier(self) -> StorageTier:
        if self.use_primary and self.primary is not None:
            return self.primary
        return self.fallback

    # ----- Frame wiring ------------------------------------------------------
    def set_iframe(self, frame: FrameElement) -> None:
        """Register the calculator frame and start listening for its messages."""
        self.iframe = frame
        if self._message_sub is None or not self._message_sub.active:
            self._message_sub = self.scheduler.listen(
                self.host, "message", self._on_message, label="manager:message"
            )

    def _on_message(self, event: MessageEvent) -> None:
        if event.origin != self.expected_origin:
            logger.debug("Ignoring message from unexpected origin %r", event.origin)
            return
        message = parse_state_message(event.data)
        if message is None:
            logger.debug("Ignoring malformed message from %s", event.origin)
            return
        self.save_state(message.state)

    # ----- Save / load / clear ----------------------------------------------
    def save_state(self, state: Mapping[str, Any] | None) -> bool:
        """Persist ``state`` unless it matches the last saved digest.

        Returns
        -------
        bool
            ``True`` when a tier accepted the write; ``False`` when the state was
            a duplicate, empty, unserializable, or no tier accepted it.
        """
        if not state:
            return False
        try:
            state_hash = state_digest(state)
        except (TypeError, ValueError) as exc:
            logger.error("Failed to serialize calculator state: %s", exc)
            return False

        if decide_save(self.last_state_hash, state_hash) is SaveDecision.SKIP:
            logger.debug("State unchanged, skipping save")
            return False

        record = StoredRecord(
            key=self.state_key,
            state=dict(state),
            timestamp=self.scheduler.now(),
            hash=state_hash,
        )
        tier = self._write(record)
        if tier is None:
            return False
        self.last_state_hash = state_hash
        self.indicator.show(SAVED)
        logger.info("Calculator state saved to %s tier", tier)
        return True

    def _write(self, record: StoredRecord) -> str | None:
        if self.use_primary and self.primary is not None:
            try:
                self.primary.write(record)
                return self.primary.name
            except TierError as exc:
                logger.warning("Primary save failed, switching to fallback: %s", exc)
                self.use_primary = False
        try:
            self.fallback.write(record)
            return self.fallback.name
        except TierError as exc:
            logger.error("Failed to save calculator state: %s", exc)
            return None

    def load_state(self) -> dict[str, Any] | None:
        """Return the current state from the active tier, or ``None``."""
        if self.use_primary and self.primary is not None:
            try:
                return self._accept(self.primary.read(self.state_key))
            except TierError as exc:
                logger.warning("Primary load failed, trying fallback: %s", exc)
        try:
            return self._accept(self.fallback.read(self.state_key))
        except TierError as exc:
            logger.error("Failed to load calculator state: %s", exc)
            return None

    def _accept(self, record: StoredRecord | None) -> dict[str, Any] | None:
        if record is None:
            return None
        self.last_state_hash = record.hash
        logger.info("Calculator state loaded (saved at %s)", record.timestamp)
        return dict(record.state)

    def clear_state(self) -> None:
        """Delete the record from every tier that may hold it."""
        cleared = False
        for tier in (self.primary, self.fallback):
            if tier is None:
                continue
            try:
                tier.delete(self.state_key)
                cleared = True
            except TierError as exc:
                logger.warning("Failed to clear %s tier: %s", tier.name, exc)
        if cleared:
            self.last_state_hash = None
            logger.info("Calculator state cleared")

    # ----- Talking to the bridge ---------------------------------------------
    def request_state_from_calculator(self) -> bool:
        """Ask the bridge for a capture; the reply arrives as a message."""
        window = self.iframe.content_window if self.iframe is not None else None
        if window is None:
            return False
        window.post_message(request_state_message(), self.expected_origin, source=self.host)
        return True

    def send_state_to_calculator(self, state: Mapping[str, Any] | None) -> bool:
        """Ask the bridge to write ``state`` back into the calculator page."""
        window = self.iframe.content_window if self.iframe is not None else None
        if window is None or not state:
            return False
        window.post_message(
            restore_state_message(dict(state)), self.expected_origin, source=self.host
        )
        return True

    def restore_state(self) -> bool:
        """Load the last state and push it to the calculator."""
        return self.send_state_to_calculator(self.load_state())

    # ----- Auto-save ---------------------------------------------------------
    def start_auto_save(self, interval_ms: int | None = None) -> None:
        """Request a capture every ``interval_ms`` (default from settings)."""
        interval = _require_positive_interval(
            self.default_interval_ms if interval_ms is None else interval_ms
        )
        self.stop_auto_save()
        self._auto_save = self.scheduler.call_every(
            interval, self.request_state_from_calculator, label="manager:auto-save"
        )
        logger.info("Auto-save started with %sms interval", interval)

    def stop_auto_save(self) -> None:
        if self._auto_save is not None:
            self._auto_save.cancel()
            self._auto_save = None

    # ----- Diagnostics -------------------------------------------------------
    def force_save(self) -> bool:
        return self.request_state_from_calculator()

    def force_restore(self) -> bool:
        return self.restore_state()

    def get_storage_info(self) -> dict[str, Any]:
        tier = self.active_tier
        return {"tier": tier.name, "used_bytes": tier.usage_bytes()}

    def close(self) -> None:
        """Stop the timer and drop the message subscription."""
        self.stop_auto_save()
        if self._message_sub is not None:
            self._message_sub.cancel()
            self._message_sub = None


__all__ = ["StateManager", "TierFactory"]
