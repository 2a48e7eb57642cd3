"""Intel GPU metrics collector built on SampleSupervisor."""

import os
import shutil
from collections.abc import Callable

import structlog

from igputop.charts import CHARTS, PRECISION, Chart
from igputop.config import CollectorConfig
from igputop.errors import CollectorError, ConfigError, ProcessNotRunningError, StopTimeoutError
from igputop.parser import parse_stats_line
from igputop.supervisor import SampleSupervisor, build_command, calc_interval_arg

logger = structlog.get_logger(__name__)

NDSUDO_NAME = "ndsudo"
NDSUDO_SEARCH_PATHS = (
    "/usr/libexec/netdata/plugins.d/ndsudo",
    "/opt/netdata/usr/libexec/netdata/plugins.d/ndsudo",
    "/usr/local/libexec/netdata/plugins.d/ndsudo",
)

SupervisorFactory = Callable[..., SampleSupervisor]


def find_ndsudo(configured: str = "") -> str:
    """
    Locate the helper binary.

    Raises:
        ConfigError: Nothing executable was found.
    """
    if configured:
        if os.path.isfile(configured) and os.access(configured, os.X_OK):
            return configured
        raise ConfigError(f"ndsudo_path '{configured}' is not an executable file")

    for candidate in NDSUDO_SEARCH_PATHS:
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate

    found = shutil.which(NDSUDO_NAME)
    if found:
        return found
    raise ConfigError("ndsudo executable not found, set ndsudo_path in the config")


class IntelGPUCollector:
    """
    Turns the latest helper line into a fixed-point metrics map.

    Floats are stored as integers multiplied by PRECISION where the matching
    chart dimension divides by it.
    """

    def __init__(
        self,
        config: CollectorConfig,
        supervisor_factory: SupervisorFactory = SampleSupervisor,
    ) -> None:
        self.config = config
        self._supervisor_factory = supervisor_factory
        self._ndsudo_path = ""
        self._supervisor: SampleSupervisor | None = None
        self._restart_pending = False

    @property
    def charts(self) -> tuple[Chart, ...]:
        return CHARTS

    @property
    def ndsudo_path(self) -> str:
        return self._ndsudo_path

    @property
    def is_initialized(self) -> bool:
        return self._supervisor is not None

    def init(self) -> None:
        """Resolve the helper path. Raises ConfigError."""
        self._ndsudo_path = find_ndsudo(self.config.ndsudo_path)
        logger.debug(
            "helper resolved",
            path=self._ndsudo_path,
            device=self.config.device or None,
            interval_ms=calc_interval_arg(self.config.update_every, self.config.first_sample_timeout),
        )

    def check(self) -> dict[str, int]:
        """Start the helper and collect once. Errors propagate to the caller."""
        self.start()
        return self.collect()

    def start(self) -> None:
        """Start the supervisor unless it is already running."""
        if self._supervisor is not None:
            return
        if not self._ndsudo_path:
            self.init()

        command = build_command(self._ndsudo_path, self.config.device or None)
        self._supervisor = self._supervisor_factory(
            command[0],
            command[1:],
            first_sample_timeout=self.config.first_sample_timeout,
            stop_timeout=self.config.stop_timeout,
            max_lines=self.config.max_lines,
        )

    def collect(self) -> dict[str, int]:
        """
        Collect one set of metrics.

        A dead helper is dropped when detected and a new one is started on the
        next call.

        Raises:
            CollectorError: The collector was not started or the sample is empty.
            ProcessNotRunningError: The helper has exited.
            StartError: Restarting the helper failed.
            ParseError: The latest line is malformed.
        """
        if self._supervisor is None and self._restart_pending:
            logger.info("restarting helper")
            self.start()
            self._restart_pending = False
        if self._supervisor is None:
            raise CollectorError("collector not initialized")

        try:
            line = self._supervisor.read_latest()
        except ProcessNotRunningError:
            logger.warning("helper is gone, restarting on next collection")
            self._stop_supervisor()
            self._restart_pending = True
            raise
        if not line:
            raise CollectorError("query returned empty response")

        stats = parse_stats_line(line)

        return {
            "frequency_actual": int(stats.frequency * PRECISION),
            "power_gpu": int(stats.power * PRECISION),
            "memory_actual": int(stats.memory_used),
            "memory_utilization": int(stats.memory_utilization * PRECISION),
        }

    def cleanup(self) -> None:
        """Stop the helper. A slow shutdown is logged, not raised."""
        self._restart_pending = False
        self._stop_supervisor()

    def _stop_supervisor(self) -> None:
        if self._supervisor is None:
            return
        supervisor, self._supervisor = self._supervisor, None
        try:
            supervisor.stop()
        except StopTimeoutError as e:
            logger.warning("helper cleanup incomplete", error=str(e))
