"""Tests for the address-only lifecycle manager used on constrained hosts."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

import pytest

from framekeep.core.scheduler import VirtualScheduler
from framekeep.core.settings import Settings
from framekeep.indicator import RESTORED
from framekeep.lifecycle import SESSION_ID_KEY, URL_STORAGE_KEY, LifecycleFallbackManager
from framekeep.page import BLANK, Event, KeyValueArea

IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) " + "A" * 120
GRAPH_URL = "https://ti89-simulator.com/calc?page=graph"


@pytest.fixture
def page(make_page: Callable[..., Any]) -> Any:
    return make_page(user_agent=IPHONE_UA)


def _manager(page: Any, scheduler: VirtualScheduler, cfg: Settings) -> LifecycleFallbackManager:
    manager = LifecycleFallbackManager(page.host, scheduler, settings=cfg)
    manager.set_iframe(page.frame)
    return manager


# ----- Address polling -------------------------------------------------------


def test_poll_saves_once_when_address_leaves_blank(
    make_page: Callable[..., Any], scheduler: VirtualScheduler, cfg: Settings
) -> None:
    page = make_page(calc_url=BLANK, src=BLANK)
    manager = _manager(page, scheduler, cfg)

    scheduler.advance(cfg.url_poll_interval_ms * 3)
    assert manager.store.get_all_states() == []

    page.frame.navigate("https://x/y")
    scheduler.advance(cfg.url_poll_interval_ms * 5)

    history = manager.store.get_all_states()
    assert len(history) == 1
    assert history[0].state["url"] == "https://x/y"
    assert history[0].version == "1.1"
    assert page.host.local_storage.get_item(URL_STORAGE_KEY) == "https://x/y"


def test_url_record_shape(page: Any, scheduler: VirtualScheduler, cfg: Settings) -> None:
    manager = _manager(page, scheduler, cfg)
    assert manager.capture_iframe_state() is True

    state = manager.load_state()
    assert state is not None
    assert state == {
        "url": page.frame.src,
        "timestamp": scheduler.now(),
        "userAgent": IPHONE_UA,
        "viewport": {"width": 1024, "height": 768},
    }
    assert manager.capture_iframe_state() is False


def test_same_origin_frame_reads_live_address(
    make_page: Callable[..., Any], scheduler: VirtualScheduler, cfg: Settings
) -> None:
    page = make_page(calc_url="https://host.example/calc")
    manager = _manager(page, scheduler, cfg)
    page.calc.location = "https://host.example/calc#matrix"

    manager.capture_iframe_state()
    assert manager.last_url == "https://host.example/calc#matrix"


def test_url_monitoring_can_be_stopped(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    manager = _manager(page, scheduler, cfg)
    manager.stop_url_monitoring()
    manager.stop_url_monitoring()
    scheduler.advance(cfg.url_poll_interval_ms * 2)
    assert manager.last_url == ""


# ----- Load and restore ------------------------------------------------------


def test_load_falls_back_to_last_url_key(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    page.host.local_storage.set_item(URL_STORAGE_KEY, GRAPH_URL)
    manager = _manager(page, scheduler, cfg)
    assert manager.load_state() == {"url": GRAPH_URL, "timestamp": scheduler.now()}


def test_restore_navigates_after_delay(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    manager = _manager(page, scheduler, cfg)
    manager.save_state({"url": GRAPH_URL, "timestamp": 1})

    assert manager.restore_state() is True
    scheduler.advance(999)
    assert page.frame.src != GRAPH_URL
    scheduler.advance(1)
    assert page.frame.src == GRAPH_URL
    assert manager.indicator.text == RESTORED


def test_restore_skips_when_already_there(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    manager = _manager(page, scheduler, cfg)
    assert manager.restore_state() is False
    manager.save_state({"url": page.frame.src})
    assert manager.restore_state() is False
    manager.save_state({"url": BLANK})
    assert manager.restore_state() is False


def test_clear_state_forgets_everything(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    manager = _manager(page, scheduler, cfg)
    manager.capture_iframe_state()
    manager.clear_state()
    assert manager.load_state() is None
    assert manager.last_url == ""


# ----- Basic state and session id --------------------------------------------


def test_basic_state_fields(page: Any, scheduler: VirtualScheduler, cfg: Settings) -> None:
    manager = _manager(page, scheduler, cfg)
    assert manager.save_basic_state() is True

    state = manager.load_state()
    assert state is not None
    assert re.fullmatch(r"ios_\d+_[0-9a-z]{9}", state["sessionId"])
    assert state["lastActive"] == scheduler.now()
    assert state["url"] == page.frame.src
    assert state["userAgent"] == IPHONE_UA[:100]


def test_session_id_is_stable(page: Any, scheduler: VirtualScheduler, cfg: Settings) -> None:
    manager = _manager(page, scheduler, cfg)
    first = manager.get_session_id()
    scheduler.advance(10)
    assert manager.get_session_id() == first
    assert page.host.session_storage.get_item(SESSION_ID_KEY) == first


def test_auto_save_tick_writes_basic_state(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    manager = _manager(page, scheduler, cfg)
    manager.stop_url_monitoring()
    manager.start_auto_save()

    scheduler.advance(cfg.lifecycle_auto_save_interval_ms)
    history = manager.store.get_all_states()
    assert [("sessionId" in e.state) for e in history] == [True, False]

    manager.stop_auto_save()
    scheduler.advance(cfg.lifecycle_auto_save_interval_ms * 2)
    assert len(manager.store.get_all_states()) == 2


def test_auto_save_rejects_bad_interval(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    with pytest.raises(ValueError):
        _manager(page, scheduler, cfg).start_auto_save(0)


def test_unavailable_storage_disables_saves(
    make_page: Callable[..., Any], scheduler: VirtualScheduler, cfg: Settings
) -> None:
    page = make_page(host_storage=KeyValueArea(available=False))
    manager = _manager(page, scheduler, cfg)
    assert manager.storage_available is False
    assert manager.capture_iframe_state() is False
    assert manager.load_state() is None


# ----- Lifecycle events ------------------------------------------------------


def test_hidden_page_saves_and_visible_page_restores(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    manager = _manager(page, scheduler, cfg)
    manager.setup_lifecycle_handlers()

    page.frame.src = GRAPH_URL
    page.host.document.set_hidden(True)
    assert manager.last_url == GRAPH_URL
    assert "sessionId" in (manager.load_state() or {})

    page.frame.src = "https://ti89-simulator.com/calc"
    page.host.document.set_hidden(False)
    scheduler.advance(1000)
    assert page.frame.src != GRAPH_URL
    scheduler.advance(1000)
    assert page.frame.src == GRAPH_URL


def test_pageshow_from_cache_restores_sooner(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    manager = _manager(page, scheduler, cfg)
    manager.stop_url_monitoring()
    manager.setup_lifecycle_handlers()
    manager.save_state({"url": GRAPH_URL})

    page.host.dispatch_event(Event("pageshow"))
    scheduler.advance(1500)
    assert page.frame.src != GRAPH_URL

    page.host.dispatch_event(Event("pageshow", persisted=True))
    scheduler.advance(1500)
    assert page.frame.src == GRAPH_URL


def test_blur_pagehide_and_orientation_capture(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    manager = _manager(page, scheduler, cfg)
    manager.stop_url_monitoring()
    manager.setup_lifecycle_handlers()

    page.host.dispatch_event(Event("blur"))
    assert manager.last_url == page.frame.src

    page.frame.src = GRAPH_URL
    page.host.dispatch_event(Event("orientationchange"))
    assert manager.last_url != GRAPH_URL
    scheduler.advance(500)
    assert manager.last_url == GRAPH_URL

    page.frame.src = "https://ti89-simulator.com/calc?page=table"
    page.host.dispatch_event(Event("pagehide"))
    assert manager.last_url.endswith("page=table")
    page.host.dispatch_event(Event("focus"))


def test_handlers_register_once_and_close_cleans_up(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    manager = _manager(page, scheduler, cfg)
    manager.setup_lifecycle_handlers()
    manager.setup_lifecycle_handlers()
    manager.start_auto_save()
    page.host.dispatch_event(Event("orientationchange"))
    assert page.host.listener_count("pagehide") == 1

    manager.close()
    assert scheduler.pending() == 0
    assert page.host.listener_count("pagehide") == 0
    assert page.host.document.listener_count("visibilitychange") == 0


def test_force_save_returns_diagnostics(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    manager = _manager(page, scheduler, cfg)
    diagnostics = manager.force_save()

    assert set(diagnostics) == {
        "storage_available",
        "user_agent",
        "is_standalone",
        "has_iframe",
        "last_url",
        "last_save_time",
        "session_id",
        "saved_state",
        "timestamp",
    }
    assert diagnostics["has_iframe"] is True
    assert diagnostics["last_url"] == page.frame.src
    assert diagnostics["saved_state"]["sessionId"] == diagnostics["session_id"]
    assert manager.force_restore() is False


def test_long_auto_save_session_holds_no_growing_state(
    page: Any, scheduler: VirtualScheduler, cfg: Settings
) -> None:
    """Hours of ticks leave only the live timers and the current notice behind."""
    manager = _manager(page, scheduler, cfg)
    manager.start_auto_save()

    scheduler.advance(cfg.lifecycle_auto_save_interval_ms * 500)

    assert manager.indicator.visible
    assert scheduler.pending() <= 3
    assert len(manager.store.get_all_states()) <= cfg.fallback_max_states
    assert all(
        len(value) <= 1
        for value in vars(manager.indicator).values()
        if isinstance(value, list)
    )
    manager.close()
