"""Helpers for tests that drive the fake helper process."""

import time
from pathlib import Path

import psutil

FAKE_XPUM = str(Path(__file__).parent / "fake_xpum.py")


def fake_args(mode: str = "stream", *extra: str) -> list[str]:
    """Arguments that make sys.executable run the fake helper."""
    return [FAKE_XPUM, "xpum-dump", "--mode", mode, *extra]


def fake_helpers() -> list[psutil.Process]:
    """Live (non-zombie) fake helper processes started by this test run."""
    found = []
    for proc in psutil.Process().children(recursive=True):
        try:
            if proc.status() == psutil.STATUS_ZOMBIE:
                continue
            if FAKE_XPUM in " ".join(proc.cmdline()):
                found.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return found


def is_alive(pid: int) -> bool:
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False


def wait_until(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll predicate until it is true or timeout elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def kill_pid(pid: int) -> None:
    try:
        psutil.Process(pid).kill()
    except psutil.NoSuchProcess:
        pass
