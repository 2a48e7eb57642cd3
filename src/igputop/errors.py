"""
Exceptions raised by igputop.

Construction-time failures of the sampling supervisor derive from
StartError and are terminal for that supervisor instance. ParseError
subclasses only invalidate a single sample.
"""


class IGPUTopError(Exception):
    """Base class for all igputop errors."""


class StartError(IGPUTopError):
    """The supervisor could not reach the running state."""


class SpawnError(StartError):
    """The helper process could not be started."""

    def __init__(self, executable: str, reason: str) -> None:
        self.executable = executable
        self.reason = reason
        super().__init__(f"failed to start '{executable}': {reason}")


class PrematureExitError(StartError):
    """The helper exited before the first sample was collected."""

    def __init__(self, returncode: int | None = None) -> None:
        self.returncode = returncode
        message = "process exited before the first sample was collected"
        if returncode is not None:
            message += f" (exit code {returncode})"
        super().__init__(message)


class HandshakeTimeoutError(StartError):
    """No usable line arrived within the first-sample timeout."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"timed out waiting for first sample after {timeout:g}s")


class ProcessNotRunningError(IGPUTopError):
    """The helper process has exited; the latest sample is stale."""

    def __init__(self, message: str = "process has already exited") -> None:
        super().__init__(message)


class StopTimeoutError(IGPUTopError):
    """The helper did not acknowledge exit in time. Cleanup may be incomplete."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"timed out waiting for process to exit after {timeout:g}s")


class ParseError(IGPUTopError):
    """A telemetry line could not be turned into stats."""


class MalformedRecordError(ParseError):
    """The line does not have the expected number of fields."""

    def __init__(self, line: str, expected: int, actual: int) -> None:
        self.line = line
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"invalid number of fields in line (expected {expected}, got {actual}): {line}"
        )


class FieldParseError(ParseError):
    """A single field is not a number."""

    def __init__(self, field: str, raw: str) -> None:
        self.field = field
        self.raw = raw
        super().__init__(f"failed to parse {field}: {raw!r} is not a number")


class ConfigError(IGPUTopError):
    """Invalid or incomplete configuration."""


class CollectorError(IGPUTopError):
    """The collector cannot produce metrics this cycle."""
