"""Tests for igputop data models."""

from igputop.models import ExitReason, MetricsSnapshot, ParsedStats, SupervisorState


def test_parsed_stats_creation():
    """Test ParsedStats dataclass creation."""
    stats = ParsedStats(frequency=950.0, power=45.2, memory_used=1024.0, memory_utilization=12.5)

    assert stats.frequency == 950.0
    assert stats.power == 45.2
    assert stats.memory_used == 1024.0
    assert stats.memory_utilization == 12.5


def test_parsed_stats_is_frozen():
    """Test that ParsedStats is immutable (frozen)."""
    stats = ParsedStats(frequency=1.0, power=1.0, memory_used=1.0, memory_utilization=1.0)

    try:
        stats.power = 999.0
        raise AssertionError("Should have raised FrozenInstanceError")
    except AttributeError:
        pass  # Expected behavior for frozen dataclass


def test_parsed_stats_uses_slots():
    """Test that ParsedStats uses __slots__."""
    stats = ParsedStats(frequency=1.0, power=1.0, memory_used=1.0, memory_utilization=1.0)

    assert not hasattr(stats, "__dict__")


def test_metrics_snapshot_ok():
    """Test MetricsSnapshot reports success when no error is set."""
    snapshot = MetricsSnapshot(timestamp=1.0, metrics={"power_gpu": 4520})

    assert snapshot.ok
    assert snapshot.metrics["power_gpu"] == 4520


def test_metrics_snapshot_error():
    """Test an error snapshot carries no metrics."""
    snapshot = MetricsSnapshot(timestamp=1.0, error="process has already exited")

    assert not snapshot.ok
    assert snapshot.metrics == {}


def test_state_values():
    """Test lifecycle state values."""
    assert [s.value for s in SupervisorState] == ["starting", "running", "stopped", "failed"]


def test_exit_reason_values():
    """Test exit reasons distinguish the line cap from a clean EOF."""
    assert ExitReason.EOF.value == "eof"
    assert ExitReason.LINE_CAP.value == "line_cap"
    assert ExitReason.LINE_CAP is not ExitReason.EOF
