"""Shared fixtures: a deterministic clock, test settings and a two-window page."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from framekeep.core.scheduler import VirtualScheduler
from framekeep.core.settings import Settings, load_settings
from framekeep.page import Canvas, Document, FormControl, FrameElement, KeyValueArea, Window
from framekeep.page.window import DEFAULT_USER_AGENT

START_MS = 1_700_000_000_000
HOST_URL = "https://host.example/app"
CALC_URL = "https://ti89-simulator.com/calc"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: Any, tmp_path: Path) -> Iterator[None]:
    """Point every default-constructed Settings at throwaway storage."""
    monkeypatch.setenv("FRAMEKEEP_ENV", "test")
    monkeypatch.setenv("FRAMEKEEP_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("FRAMEKEEP_LOCAL_STORAGE", str(tmp_path / "local_storage.json"))
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


@pytest.fixture
def scheduler() -> VirtualScheduler:
    return VirtualScheduler(start_ms=START_MS)


@pytest.fixture
def cfg() -> Settings:
    return Settings(database_url="sqlite://")


@dataclass
class Page:
    """A host window embedding the calculator window through a frame."""

    host: Window
    calc: Window
    frame: FrameElement


@pytest.fixture
def make_page(scheduler: VirtualScheduler) -> Callable[..., Page]:
    """Factory for a host + calculator pair with one canvas and two controls."""

    def _make(
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        standalone: bool = False,
        host_storage: KeyValueArea | None = None,
        calc_url: str = CALC_URL,
        src: str | None = None,
        loading: bool = False,
    ) -> Page:
        host = Window(
            scheduler,
            location=HOST_URL,
            local_storage=host_storage,
            user_agent=user_agent,
            standalone=standalone,
        )
        document = Document(ready_state="loading" if loading else "complete")
        calc = Window(scheduler, location=calc_url, document=document)
        document.add_canvas(Canvas(16, 8, id="lcd", class_name="screen"))
        document.add_control(FormControl("input", id="entry", name="entry"))
        document.add_control(FormControl("input", type="checkbox", id="shift", value="off"))
        frame = FrameElement(host, src=src if src is not None else calc_url, content_window=calc)
        return Page(host=host, calc=calc, frame=frame)

    return _make
