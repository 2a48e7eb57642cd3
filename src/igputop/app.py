"""igputop - Main Textual application."""

import argparse
import sys
from queue import Empty, Queue

import structlog
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import Footer, Static

from igputop.charts import CHARTS
from igputop.collector import IntelGPUCollector
from igputop.config import CollectorConfig, load_config
from igputop.errors import IGPUTopError
from igputop.logging_setup import configure_logging
from igputop.models import MetricsSnapshot
from igputop.monitor import GPUMonitor

logger = structlog.get_logger(__name__)

BAR_WIDTH = 20


def render_bar(value: float, maximum: float, color: str = "green") -> str:
    """Render a fixed-width bar filled in proportion to value/maximum."""
    if maximum <= 0:
        filled = 0
    else:
        filled = int(BAR_WIDTH * value / maximum)
    filled = max(0, min(filled, BAR_WIDTH))
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (BAR_WIDTH - filled)


class GPUStats(Static):
    """Widget showing the latest GPU metrics."""

    DEFAULT_CSS = """
    GPUStats {
        height: auto;
        min-height: 6;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize GPUStats."""
        super().__init__(*args, **kwargs)
        self._values: dict[str, float] = {}
        self._peaks: dict[str, float] = {}

    def update_metrics(self, metrics: dict[str, int]) -> None:
        """Update the display from a fixed-point metrics map."""
        for chart in CHARTS:
            for dim in chart.dims:
                if dim.id in metrics:
                    value = metrics[dim.id] / dim.div
                    self._values[dim.id] = value
                    self._peaks[dim.id] = max(value, self._peaks.get(dim.id, 0.0))
        self.update(self.render_stats())

    def render_stats(self) -> str:
        """Build the markup for the current values."""
        if not self._values:
            return "Waiting for GPU data..."

        # Frequency and power have no fixed ceiling, scale against the observed peak
        freq = self._values.get("frequency_actual", 0.0)
        power = self._values.get("power_gpu", 0.0)
        mem = self._values.get("memory_actual", 0.0)
        util = self._values.get("memory_utilization", 0.0)
        return (
            f"Freq \\[{render_bar(freq, self._peaks.get('frequency_actual', 0.0))}] {freq:8.0f} MHz\n"
            f"Power\\[{render_bar(power, self._peaks.get('power_gpu', 0.0), 'yellow')}] {power:8.2f} W\n"
            f"Mem  \\[{render_bar(util, 100.0, 'cyan')}] {util:8.2f} %\n"
            f"Mem used: {mem:.0f} MiB"
        )


class StatusLine(Static):
    """Single line showing collector health."""

    DEFAULT_CSS = """
    StatusLine {
        height: 1;
        padding: 0 1;
    }
    """

    def show_snapshot(self, snapshot: MetricsSnapshot) -> None:
        if snapshot.ok:
            self.update("[green]collecting[/green]")
        else:
            self.update(f"[red]error:[/red] {snapshot.error}")


class IGPUTopApp(App):
    """Main igputop application."""

    TITLE = "igputop"
    SUB_TITLE = "Intel GPU Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #gpu-stats {
        height: auto;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(self, collector: IntelGPUCollector, poll_rate: float = 1.0) -> None:
        """Initialize the app around an already started collector."""
        super().__init__()
        self._collector = collector
        self._update_queue: Queue[MetricsSnapshot] = Queue()
        self._monitor = GPUMonitor(collector, self._update_queue, poll_rate=poll_rate)

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Container(GPUStats(id="gpu-stats"))
        yield StatusLine("starting...", id="status")
        yield Footer()

    def on_mount(self) -> None:
        """Start the monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and render the newest snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self._update_ui(snapshot)

    def _update_ui(self, snapshot: MetricsSnapshot) -> None:
        """Update the UI with a new snapshot."""
        if snapshot.ok:
            self.query_one("#gpu-stats", GPUStats).update_metrics(snapshot.metrics)
        self.query_one("#status", StatusLine).show_snapshot(snapshot)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self._collector.cleanup()
        self.exit()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="igputop", description="Intel GPU monitor")
    parser.add_argument("--config", help="Path to the YAML config file")
    parser.add_argument("--ndsudo-path", help="Path to the ndsudo helper")
    parser.add_argument("--device", help="Device id to monitor (default: all)")
    parser.add_argument("--update-every", type=int, help="Collection interval in seconds")
    parser.add_argument("--log-file", help="Write logs to this file")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    return parser


def resolve_config(args: argparse.Namespace) -> CollectorConfig:
    """Merge the config file with command line overrides."""
    return load_config(args.config).with_overrides(
        ndsudo_path=args.ndsudo_path,
        device=args.device,
        update_every=args.update_every,
        log_file=args.log_file,
        log_level=args.log_level,
    )


def main(argv: list[str] | None = None) -> None:
    """Entry point for the igputop application."""
    args = build_parser().parse_args(argv)

    # Bootstrap logging so config loading can report, then apply the final settings
    configure_logging(args.log_level or "WARNING", args.log_file)
    try:
        config = resolve_config(args)
    except IGPUTopError as e:
        print(f"igputop: {e}", file=sys.stderr)
        sys.exit(1)
    configure_logging(config.log_level, config.log_file)

    collector = IntelGPUCollector(config)
    try:
        collector.init()
        collector.check()
    except IGPUTopError as e:
        collector.cleanup()
        logger.error("collector check failed", error=str(e))
        print(f"igputop: {e}", file=sys.stderr)
        sys.exit(1)

    app = IGPUTopApp(collector, poll_rate=config.update_every)
    try:
        app.run()
    finally:
        collector.cleanup()


if __name__ == "__main__":
    main()
