# scripts/smoke.py
"""
Smoke script: one simulated session through the whole persistence flow.

A host page embeds the calculator; the capture bridge runs inside it and the
chosen strategy persists whatever the bridge reports. Then the "tab" is
reloaded and the saved state is pushed back into a fresh calculator page.

Usage
-----
1. Full-introspection path (database tier in memory):
    $ python scripts/smoke.py

2. Constrained (iPhone) path, which only remembers the frame address:
    $ python scripts/smoke.py --mobile
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from framekeep.bridge import install_bridge
from framekeep.core.scheduler import VirtualScheduler
from framekeep.core.settings import Settings, load_settings
from framekeep.manager import StateManager
from framekeep.page import Canvas, FormControl, FrameElement, KeyValueArea, Window
from framekeep.storage import DatabaseTier
from framekeep.strategy import PersistenceStrategy, attach

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

CALC_URL = "https://ti89-simulator.com/calc"
GRAPH_URL = "https://ti89-simulator.com/calc?page=graph"
DESKTOP_UA = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36"
IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15"


def _page(
    scheduler: VirtualScheduler, host_storage: KeyValueArea, user_agent: str
) -> tuple[Window, Window, FrameElement]:
    """Build a host window embedding a fresh calculator page."""
    host = Window(
        scheduler,
        location="https://host.example/",
        local_storage=host_storage,
        user_agent=user_agent,
    )
    calc = Window(scheduler, location=CALC_URL)
    calc.document.add_canvas(Canvas(160, 100, id="lcd"))
    calc.document.add_control(FormControl("input", id="entry"))
    frame = FrameElement(host, src=CALC_URL, content_window=calc)
    return host, calc, frame


def _session(
    mobile: bool,
    host: Window,
    frame: FrameElement,
    scheduler: VirtualScheduler,
    settings: Settings,
    db: DatabaseTier,
) -> PersistenceStrategy:
    if mobile:
        return attach(host, frame, scheduler, settings=settings)
    # Share one in-memory database across both visits.
    manager = StateManager(host, scheduler, settings=settings, primary_factory=lambda: db)
    return attach(host, frame, scheduler, settings=settings, strategy=manager)


def main() -> None:
    """Run one save/reload/restore cycle and print what came back."""
    parser = argparse.ArgumentParser(description="Run a FrameKeep smoke session")
    parser.add_argument("--mobile", action="store_true", help="Simulate an iPhone host")
    args = parser.parse_args()

    settings = load_settings()
    scheduler = VirtualScheduler()
    host_storage = KeyValueArea()
    db = DatabaseTier.open("sqlite://")
    user_agent = IPHONE_UA if args.mobile else DESKTOP_UA

    # 1. First visit: use the calculator for a while.
    host, calc, frame = _page(scheduler, host_storage, user_agent)
    bridge = install_bridge(calc, scheduler, settings=settings)
    strategy = _session(args.mobile, host, frame, scheduler, settings, db)
    print(f"Strategy: {strategy.name}")

    calc.document.query_canvases()[0].fill((20, 40, 20, 255))
    calc.document.query_controls()[0].value = "2+2"
    calc.local_storage.set_item("mode", "RAD")
    frame.navigate(GRAPH_URL)
    scheduler.advance(60_000)
    print(f"Saved state: {strategy.load_state() is not None}")
    strategy.close()
    bridge.uninstall()

    # 2. Reload: a fresh calculator page, same host storage.
    host, calc, frame = _page(scheduler, host_storage, user_agent)
    bridge = install_bridge(calc, scheduler, settings=settings)
    strategy = _session(args.mobile, host, frame, scheduler, settings, db)
    scheduler.advance(5_000)

    print(f"Frame address: {frame.src}")
    print(f"Entry value:   {calc.document.query_controls()[0].value!r}")
    print(f"LCD pixel:     {calc.document.query_canvases()[0].pixel(0, 0)}")
    print(f"Mode:          {calc.local_storage.get_item('mode')!r}")

    strategy.close()
    bridge.uninstall()
    db.close()


if __name__ == "__main__":
    main()
