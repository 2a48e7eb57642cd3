"""Chart metadata for the exported Intel GPU metrics."""

from dataclasses import dataclass, field

PRECISION = 100

PRIORITY_BASE = 70000


@dataclass(slots=True, frozen=True)
class Dimension:
    """One series inside a chart. Stored values are divided by div for display."""

    id: str
    name: str
    div: int = 1


@dataclass(slots=True, frozen=True)
class Chart:
    """Presentation metadata for a group of dimensions."""

    id: str
    title: str
    units: str
    family: str
    context: str
    priority: int
    dims: tuple[Dimension, ...] = field(default_factory=tuple)

    def scale(self, metrics: dict[str, int]) -> dict[str, float]:
        """Convert stored fixed-point values back to display values by dimension name."""
        return {d.name: metrics[d.id] / d.div for d in self.dims if d.id in metrics}


FREQUENCY_CHART = Chart(
    id="igpu_frequency",
    title="Intel GPU frequency",
    units="MHz",
    family="frequency",
    context="intelgpu.frequency",
    priority=PRIORITY_BASE,
    dims=(Dimension("frequency_actual", "frequency", PRECISION),),
)

POWER_CHART = Chart(
    id="igpu_power_gpu",
    title="Intel GPU power",
    units="Watts",
    family="power",
    context="intelgpu.power",
    priority=PRIORITY_BASE + 1,
    dims=(Dimension("power_gpu", "gpu", PRECISION),),
)

MEMORY_CHART = Chart(
    id="igpu_memory",
    title="Intel GPU memory usage",
    units="MiB",
    family="memory",
    context="intelgpu.memory",
    priority=PRIORITY_BASE + 2,
    dims=(Dimension("memory_actual", "memory", 1),),
)

MEMORY_UTILIZATION_CHART = Chart(
    id="igpu_memory_utilization",
    title="Intel GPU memory utilization",
    units="percentage",
    family="memory",
    context="intelgpu.memory_utilization",
    priority=PRIORITY_BASE + 3,
    dims=(Dimension("memory_utilization", "utilization", PRECISION),),
)

CHARTS: tuple[Chart, ...] = (
    FREQUENCY_CHART,
    POWER_CHART,
    MEMORY_CHART,
    MEMORY_UTILIZATION_CHART,
)
