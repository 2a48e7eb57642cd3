"""Shared fixtures for igputop tests."""

import stat
import sys
from pathlib import Path

import pytest

from helpers import FAKE_XPUM, fake_helpers, wait_until


@pytest.fixture
def fake_ndsudo(tmp_path: Path) -> str:
    """An executable that behaves like ndsudo backed by the fake helper."""
    script = tmp_path / "ndsudo"
    script.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_XPUM}" "$@"\n')
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


@pytest.fixture
def fake_mode(monkeypatch):
    """Select the fake helper mode for processes started through fake_ndsudo."""

    def _set(mode: str) -> None:
        monkeypatch.setenv("FAKE_XPUM_MODE", mode)

    return _set


@pytest.fixture(autouse=True)
def no_leaked_helpers():
    """Fail a test that leaves a fake helper running."""
    yield
    assert wait_until(lambda: not fake_helpers(), timeout=3.0), (
        f"leaked helper processes: {[p.pid for p in fake_helpers()]}"
    )
