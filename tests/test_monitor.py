"""Tests for the GPUMonitor class."""

from queue import Queue

from igputop.errors import FieldParseError, ProcessNotRunningError
from igputop.models import MetricsSnapshot
from igputop.monitor import GPUMonitor

METRICS = {
    "frequency_actual": 95000,
    "power_gpu": 4520,
    "memory_actual": 1024,
    "memory_utilization": 1250,
}


class StubCollector:
    """Collector returning queued results in order, then repeating the last one."""

    def __init__(self, *results):
        self._results = list(results) or [METRICS]
        self.calls = 0

    def collect(self) -> dict[str, int]:
        self.calls += 1
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, Exception):
            raise result
        return dict(result)


class TestGPUMonitor:
    """Tests for GPUMonitor class."""

    def test_monitor_creation(self):
        """Test GPUMonitor can be instantiated."""
        queue: Queue[MetricsSnapshot] = Queue()
        monitor = GPUMonitor(StubCollector(), queue)

        assert monitor.poll_rate == 1.0
        assert not monitor.is_running

    def test_poll_rate_minimum(self):
        """Test poll rate has a minimum value."""
        queue: Queue[MetricsSnapshot] = Queue()
        monitor = GPUMonitor(StubCollector(), queue, poll_rate=0.0)
        assert monitor.poll_rate >= 0.1

        monitor.poll_rate = 0.01
        assert monitor.poll_rate >= 0.1

    def test_monitor_start_stop(self):
        """Test GPUMonitor can be started and stopped."""
        queue: Queue[MetricsSnapshot] = Queue()
        monitor = GPUMonitor(StubCollector(), queue, poll_rate=0.1)

        monitor.start()
        assert monitor.is_running

        monitor.stop()
        assert not monitor.is_running

    def test_monitor_start_idempotent(self):
        """Test starting an already running monitor is safe."""
        queue: Queue[MetricsSnapshot] = Queue()
        monitor = GPUMonitor(StubCollector(), queue, poll_rate=0.1)

        monitor.start()
        thread1 = monitor._thread
        monitor.start()
        thread2 = monitor._thread

        assert thread1 is thread2
        monitor.stop()

    def test_monitor_collects_data(self):
        """Test GPUMonitor collects and queues snapshots."""
        queue: Queue[MetricsSnapshot] = Queue()
        monitor = GPUMonitor(StubCollector(), queue, poll_rate=0.1)

        monitor.start()
        try:
            snapshot = queue.get(timeout=2.0)
            assert snapshot.ok
            assert snapshot.metrics == METRICS
            assert snapshot.timestamp > 0
        finally:
            monitor.stop()

    def test_errors_keep_loop_running(self):
        """Test a failed cycle is reported and the next cycle still runs."""
        collector = StubCollector(FieldParseError("power", "N/A"), METRICS)
        queue: Queue[MetricsSnapshot] = Queue()
        monitor = GPUMonitor(collector, queue, poll_rate=0.1)

        monitor.start()
        try:
            first = queue.get(timeout=2.0)
            second = queue.get(timeout=2.0)
        finally:
            monitor.stop()

        assert not first.ok
        assert "power" in first.error
        assert first.metrics == {}
        assert second.ok

    def test_unexpected_error_reported(self):
        """Test non-igputop errors do not kill the loop."""
        monitor = GPUMonitor(StubCollector(RuntimeError("boom"), METRICS), Queue())

        snapshot = monitor.collect_once()

        assert snapshot.error == "unexpected error: boom"
        assert monitor.collect_once().ok

    def test_process_gone_reported(self):
        """Test a dead helper is reported every cycle."""
        monitor = GPUMonitor(StubCollector(ProcessNotRunningError()), Queue())

        for _ in range(3):
            assert monitor.collect_once().error == "process has already exited"

    def test_history(self):
        """Test only successful cycles enter the history."""
        monitor = GPUMonitor(StubCollector(METRICS, ProcessNotRunningError(), METRICS), Queue())

        for _ in range(3):
            monitor.collect_once()

        assert monitor.get_history() == [METRICS, METRICS]

    def test_history_bounded(self):
        """Test history keeps the last 60 entries."""
        monitor = GPUMonitor(StubCollector(), Queue())

        for _ in range(100):
            monitor.collect_once()

        assert len(monitor.get_history()) == 60

    def test_daemon_thread(self):
        """Test monitor thread is a daemon thread."""
        queue: Queue[MetricsSnapshot] = Queue()
        monitor = GPUMonitor(StubCollector(), queue, poll_rate=0.1)

        monitor.start()
        try:
            assert monitor._thread is not None
            assert monitor._thread.daemon is True
            assert monitor._thread.name == "GPUMonitor"
        finally:
            monitor.stop()
