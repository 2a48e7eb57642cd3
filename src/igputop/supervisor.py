"""Supervisor for the long-running telemetry helper process."""

import subprocess
import threading
import time
from collections.abc import Sequence
from typing import IO

import psutil
import structlog

from igputop.errors import (
    HandshakeTimeoutError,
    PrematureExitError,
    ProcessNotRunningError,
    SpawnError,
    StopTimeoutError,
)
from igputop.models import ExitReason, SupervisorState
from igputop.parser import DELIMITER

logger = structlog.get_logger(__name__)

DEFAULT_FIRST_SAMPLE_TIMEOUT = 3.0
DEFAULT_STOP_TIMEOUT = 2.0
DEFAULT_MAX_LINES = 1000

# xpumcli metric ids: power, frequency, memory utilization, memory used
MODULES = "1,2,5,18"

# Data rows start with an HH:MM:SS.mmm timestamp, the header does not.
_TIMESTAMP_MARK = ":"


def build_command(ndsudo_path: str, device: str | None = None) -> list[str]:
    """Build the helper invocation, optionally pinned to one device."""
    if device:
        return [ndsudo_path, "xpum-device-dump", "--device", device, "--modules", MODULES]
    return [ndsudo_path, "xpum-dump", "--modules", MODULES]


def calc_interval_arg(update_every: int, first_sample_timeout: float) -> str:
    """
    Sampling interval for the helper, in milliseconds.

    The result stays below first_sample_timeout so the handshake can resolve.
    """
    interval = 900
    m = min(update_every, int(first_sample_timeout))
    if m > 1:
        interval = m * 1000 - 500
    return str(interval)


class SampleSupervisor:
    """
    Owns one helper process and keeps its most recent data line.

    The constructor starts the process and blocks until the first usable line
    arrives, the process exits, or first_sample_timeout elapses. A daemon
    thread reads stdout and overwrites the latest sample under a lock;
    read_latest() never waits for new data.

    There is no restart: once the process is gone the instance stays dead and
    a new one has to be created.
    """

    def __init__(
        self,
        executable: str,
        args: Sequence[str] = (),
        first_sample_timeout: float = DEFAULT_FIRST_SAMPLE_TIMEOUT,
        stop_timeout: float = DEFAULT_STOP_TIMEOUT,
        max_lines: int | None = DEFAULT_MAX_LINES,
    ) -> None:
        """
        Start the helper and wait for its first sample.

        Args:
            executable: Path to the helper binary.
            args: Arguments passed to the helper.
            first_sample_timeout: Seconds to wait for the first data line.
            stop_timeout: Upper bound for stop() in seconds.
            max_lines: Lines read before the reader gives up. None disables the cap.

        Raises:
            SpawnError: The helper could not be executed.
            PrematureExitError: The helper exited before emitting data.
            HandshakeTimeoutError: No data line within first_sample_timeout.
        """
        if not executable:
            raise SpawnError("", "executable path is empty")

        self._command = [executable, *args]
        self._first_sample_timeout = first_sample_timeout
        self._stop_timeout = stop_timeout
        self._max_lines = max_lines

        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)
        self._latest = ""
        self._state = SupervisorState.STARTING
        self._stopping = False
        self._exit_reason: ExitReason | None = None
        self._first_sample = threading.Event()
        self._done = threading.Event()
        self._process: subprocess.Popen[str] | None = None
        self._reader: threading.Thread | None = None

        logger.debug("executing helper", command=" ".join(self._command))
        try:
            self._process = subprocess.Popen(
                self._command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            self._state = SupervisorState.FAILED
            raise SpawnError(executable, e.strerror or str(e)) from e

        self._reader = threading.Thread(
            target=self._read_loop,
            args=(self._process.stdout,),
            daemon=True,
            name="SampleSupervisor-reader",
        )
        self._reader.start()
        self._handshake()

    @property
    def state(self) -> SupervisorState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is SupervisorState.RUNNING and not self._done.is_set()

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def returncode(self) -> int | None:
        return self._process.poll() if self._process is not None else None

    @property
    def exit_reason(self) -> ExitReason | None:
        """Why the reader stopped, or None while it is still reading."""
        with self._lock:
            return self._exit_reason

    @property
    def command(self) -> list[str]:
        return list(self._command)

    def read_latest(self) -> str:
        """
        Return the most recent data line without waiting.

        Raises:
            ProcessNotRunningError: The helper has exited or the supervisor was stopped.
        """
        if self._done.is_set():
            raise ProcessNotRunningError()
        with self._lock:
            if self._state is not SupervisorState.RUNNING:
                raise ProcessNotRunningError(f"supervisor is {self._state.value}")
            return self._latest

    def stop(self) -> None:
        """
        Terminate the helper and wait for the reader to finish.

        Calling stop() again is a no-op.

        Raises:
            StopTimeoutError: The reader did not finish within stop_timeout.
                The supervisor is considered stopped anyway.
        """
        with self._lock:
            if self._stopping:
                return
            self._stopping = True
            if self._state is not SupervisorState.FAILED:
                self._state = SupervisorState.STOPPED

        if not self._release(self._stop_timeout):
            logger.warning("helper did not exit in time", timeout=self._stop_timeout, pid=self.pid)
            raise StopTimeoutError(self._stop_timeout)

        logger.info("helper stopped", pid=self.pid, returncode=self.returncode)

    def _handshake(self) -> None:
        with self._cond:
            self._cond.wait_for(
                lambda: self._first_sample.is_set() or self._done.is_set(),
                timeout=self._first_sample_timeout,
            )
            if self._first_sample.is_set():
                if self._done.is_set():
                    self._state = SupervisorState.FAILED
                else:
                    self._state = SupervisorState.RUNNING
                got_sample = True
            else:
                self._state = SupervisorState.FAILED
                self._stopping = True
                got_sample = False
            exited = self._done.is_set()

        if got_sample:
            logger.info("first sample collected", pid=self.pid)
            return

        if exited:
            try:
                self._process.wait(timeout=self._stop_timeout)
            except subprocess.TimeoutExpired:
                pass  # stdout closed but the process lingers; _release kills it
            self._release(self._stop_timeout)
            logger.warning(
                "helper exited before the first sample",
                pid=self.pid,
                returncode=self.returncode,
                reason=self.exit_reason,
            )
            raise PrematureExitError(self.returncode)

        logger.warning("timed out waiting for first sample", timeout=self._first_sample_timeout)
        self._release(self._stop_timeout)
        raise HandshakeTimeoutError(self._first_sample_timeout)

    def _read_loop(self, stream: IO[str]) -> None:
        """Consume helper stdout until EOF, the line cap, or a read error."""
        reason = ExitReason.EOF
        count = 0
        header_checked = False
        try:
            for raw in stream:
                count += 1
                if self._max_lines is not None and count > self._max_lines:
                    reason = ExitReason.LINE_CAP
                    logger.warning("line cap reached, giving up on helper", max_lines=self._max_lines)
                    self._terminate_tree(time.monotonic() + self._stop_timeout)
                    break

                line = raw.rstrip("\r\n")
                if not header_checked:
                    header_checked = True
                    if _TIMESTAMP_MARK not in line:
                        logger.debug("skipping header", line=line)
                        continue

                if not line.strip() or DELIMITER not in line:
                    continue

                with self._cond:
                    self._latest = line
                    if not self._first_sample.is_set():
                        self._first_sample.set()
                        self._cond.notify_all()
        except (OSError, ValueError) as e:
            reason = ExitReason.ERROR
            logger.warning("error reading helper output", error=str(e))
        finally:
            with self._cond:
                self._exit_reason = reason
                if self._state is SupervisorState.RUNNING and not self._stopping:
                    self._state = SupervisorState.FAILED
                    logger.warning("helper exited unexpectedly", reason=reason.value, lines=count)
                self._done.set()
                self._cond.notify_all()

    def _release(self, timeout: float) -> bool:
        """Terminate the process tree and join the reader. False if the reader outlived timeout."""
        deadline = time.monotonic() + timeout
        self._terminate_tree(deadline)

        if self._reader is not None:
            self._reader.join(timeout=max(0.0, deadline - time.monotonic()))
            if self._reader.is_alive():
                return False

        if self._process is not None and self._process.stdout is not None:
            self._process.stdout.close()
        return True

    def _terminate_tree(self, deadline: float) -> None:
        """
        Send SIGTERM to the helper and its descendants, then SIGKILL stragglers.

        Every wait ends by deadline (a time.monotonic() value). SIGTERM gets the
        first half of the remaining time.
        """
        process = self._process
        if process is None or process.poll() is not None:
            return

        try:
            parent = psutil.Process(process.pid)
            procs = parent.children(recursive=True)
            procs.append(parent)
        except psutil.NoSuchProcess:
            return

        for proc in procs:
            try:
                proc.terminate()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                logger.warning("cannot signal helper process", pid=proc.pid)

        grace = max(0.0, deadline - time.monotonic()) / 2
        _, alive = psutil.wait_procs(procs, timeout=grace)
        for proc in alive:
            try:
                proc.kill()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        if alive:
            psutil.wait_procs(alive, timeout=max(0.0, deadline - time.monotonic()))

        try:
            process.wait(timeout=max(0.0, deadline - time.monotonic()))
        except subprocess.TimeoutExpired:
            logger.warning("helper still running after kill", pid=process.pid)
