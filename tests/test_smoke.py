"""
Smoke tests for package structure and availability.

Scope
-----
These tests only verify that the package is installed correctly in the
environment and that the top-level modules and the CLI entry point import.
"""

from __future__ import annotations

import importlib

import pytest

from framekeep import __version__


@pytest.mark.parametrize(
    "name",
    [
        "framekeep",
        "framekeep.bridge",
        "framekeep.manager",
        "framekeep.lifecycle",
        "framekeep.strategy",
        "framekeep.storage",
        "framekeep.page",
    ],
)
def test_modules_importable(name: str) -> None:
    """Ensure each top-level module can be imported."""
    assert importlib.import_module(name) is not None


def test_version_is_set() -> None:
    """Ensure the package exposes a valid version string."""
    assert isinstance(__version__, str)
    assert len(__version__) > 0


def test_cli_module_exposes_app() -> None:
    """
    Ensure the CLI module exposes the Typer 'app' object.

    The entry point in pyproject.toml (`framekeep.cli:app`) depends on it.
    """
    cli = importlib.import_module("framekeep.cli")
    assert hasattr(cli, "app"), "framekeep.cli must expose an 'app' Typer object."
