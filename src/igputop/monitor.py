"""Periodic collection engine for igputop."""

import threading
import time
from collections import deque
from queue import Queue

import structlog

from igputop.collector import IntelGPUCollector
from igputop.errors import IGPUTopError
from igputop.models import MetricsSnapshot

logger = structlog.get_logger(__name__)


class GPUMonitor:
    """
    Polls an IntelGPUCollector on a daemon thread.

    Every cycle pushes one MetricsSnapshot to a thread-safe Queue. Collection
    errors are reported in the snapshot and never stop the loop.
    """

    def __init__(
        self,
        collector: IntelGPUCollector,
        update_queue: Queue[MetricsSnapshot],
        poll_rate: float = 1.0,
    ) -> None:
        """
        Initialize the GPUMonitor.

        Args:
            collector: A started collector.
            update_queue: Thread-safe queue to push snapshots to.
            poll_rate: How often to collect (in seconds). Default 1.0s.
        """
        self._collector = collector
        self._queue = update_queue
        self._poll_rate = max(0.1, poll_rate)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._history: deque[dict[str, int]] = deque(maxlen=60)

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the polling thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="GPUMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the polling thread. The collector is left to the caller.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            self._queue.put(self.collect_once())
            self._stop_event.wait(timeout=self._poll_rate)

    def collect_once(self) -> MetricsSnapshot:
        """Run one collection cycle and record successful metrics in the history."""
        now = time.time()
        try:
            metrics = self._collector.collect()
        except IGPUTopError as e:
            logger.debug("collection failed", error=str(e), error_type=type(e).__name__)
            return MetricsSnapshot(timestamp=now, error=str(e))
        except Exception as e:
            logger.exception("unexpected collection error")
            return MetricsSnapshot(timestamp=now, error=f"unexpected error: {e}")

        self._history.append(metrics)
        return MetricsSnapshot(timestamp=now, metrics=metrics)

    def get_history(self) -> list[dict[str, int]]:
        """Get recent successful metric maps, oldest first."""
        return list(self._history)
