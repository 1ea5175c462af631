"""Lifecycle of the single benchmark subprocess: start, stream, stop, finish."""

import enum
import logging
import queue
import subprocess
import threading
import time
from dataclasses import dataclass

from .config import DRAIN_INTERVAL_MS, LOG_DIR, PROGRESS_INTERVAL_MS, STOP_GRACE_SECONDS
from .display import Display
from .errors import BusyError
from .runlog import RunLog

logger = logging.getLogger(__name__)

# Exit code reported when the executable could not be spawned at all
SPAWN_FAILED = -1

_STDOUT = "stdout"
_STDERR = "stderr"
_EXIT = "exit"


class RunState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"


def format_eta(seconds: int | None) -> str:
    if seconds is None:
        return "--:--"
    mm, ss = divmod(max(0, int(seconds)), 60)
    return f"{mm:02d}:{ss:02d}"


@dataclass(frozen=True)
class ProgressReport:
    """Elapsed time of a run measured against its expected duration, if any."""

    elapsed: float
    expected: int | None = None

    @property
    def indeterminate(self) -> bool:
        return not self.expected

    @property
    def value(self) -> float | None:
        if self.indeterminate:
            return None
        return min(self.expected, max(0.0, self.elapsed))

    @property
    def percent(self) -> float | None:
        if self.indeterminate:
            return None
        return self.value / self.expected * 100.0

    @property
    def eta_seconds(self) -> int | None:
        if self.indeterminate:
            return None
        return max(0, int(self.expected - self.value))

    @property
    def eta(self) -> str:
        return format_eta(self.eta_seconds)


def _pump(stream, tag, events):
    try:
        with stream:
            for line in stream:
                events.put((tag, line))
    except (OSError, ValueError) as e:
        logger.warning("%s stream closed early: %s", tag, e)


def _read_process(process, events):
    """Forward both output streams, then the exit code, onto ``events``."""
    err = threading.Thread(target=_pump, args=(process.stderr, _STDERR, events),
                           name="hstp-stderr", daemon=True)
    err.start()
    try:
        _pump(process.stdout, _STDOUT, events)
        err.join()
    finally:
        events.put((_EXIT, process.wait()))


class RunController:
    """Owns at most one benchmark process at a time.

    ``scheduler`` provides Tk-style ``after(ms, callback)`` and
    ``after_cancel(id)``; every state change happens inside its callbacks or in
    the public methods, which must be called from the same thread. Reader
    threads only hand output lines and the exit code over through a queue.
    """

    def __init__(self, scheduler, display: Display | None = None, log_dir: str = LOG_DIR, *,
                 clock=time.monotonic, grace_period: float = STOP_GRACE_SECONDS,
                 popen=subprocess.Popen):
        self.scheduler = scheduler
        self.display = display or Display()
        self.log_dir = log_dir
        self.clock = clock
        self.grace_period = grace_period
        self._popen = popen

        self.state = RunState.IDLE
        self.invocation = None
        self.process = None
        self.log: RunLog | None = None
        self.last_exit_code: int | None = None
        self.last_log_path: str | None = None

        self._started_at: float | None = None
        self._events: queue.Queue = queue.Queue()
        self._reader: threading.Thread | None = None
        self._drain_timer = None
        self._tick_timer = None
        self._kill_timer = None

    @property
    def busy(self) -> bool:
        return self.state is not RunState.IDLE

    def progress(self) -> ProgressReport | None:
        if self.state is RunState.IDLE:
            return None
        return ProgressReport(self.clock() - self._started_at, self.invocation.expected_duration)

    # ---------- Commands ----------

    def start(self, invocation):
        if self.state is not RunState.IDLE:
            raise BusyError("A test is already running.")

        # raises LogOpenError before anything is spawned
        self.log = RunLog.open(invocation, self.log_dir)
        self.invocation = invocation
        self._started_at = self.clock()
        self._events = queue.Queue()
        self.state = RunState.RUNNING
        self.display.on_output_chunk(f"Starting: {invocation.command_line}\n")
        logger.info("starting %s", invocation.command_line)

        try:
            self.process = self._popen(
                invocation.argv, stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                text=True, errors="replace", bufsize=1,
            )
        except (OSError, ValueError) as e:
            # ValueError: Popen rejects the argv itself (e.g. an embedded NUL)
            logger.error("cannot start %s: %s", invocation.executable, e)
            self._events.put((_STDERR, f"\nException starting command: {e}\n"))
            self._events.put((_EXIT, SPAWN_FAILED))
        else:
            self._reader = threading.Thread(target=_read_process, args=(self.process, self._events),
                                            name="hstp-reader", daemon=True)
            self._reader.start()

        self._drain_timer = self.scheduler.after(DRAIN_INTERVAL_MS, self._drain)
        self._tick_timer = self.scheduler.after(PROGRESS_INTERVAL_MS, self._tick)

    def stop(self):
        """Ask the tool to exit; kill it if it is still alive after the grace period."""
        if self.state is not RunState.RUNNING:
            return
        self.state = RunState.STOPPING
        self.display.on_output_chunk("\nStopping… attempting graceful termination.\n")
        proc = self.process
        if proc is not None and proc.poll() is None:
            logger.info("terminating pid %s", proc.pid)
            proc.terminate()
            self._kill_timer = self.scheduler.after(int(self.grace_period * 1000), self._escalate)

    def shutdown(self):
        """Stop any active run and finalize it before returning.

        Blocks for at most about twice the grace period; used when the owning
        application is about to exit.
        """
        if self.state is RunState.IDLE:
            return
        proc = self.process
        if proc is not None:
            if self.state is RunState.RUNNING:
                self.state = RunState.STOPPING
                proc.terminate()
            try:
                proc.wait(timeout=self.grace_period)
            except subprocess.TimeoutExpired:
                logger.warning("pid %s still running after %.1fs, killing", proc.pid, self.grace_period)
                proc.kill()
        if self._reader is not None:
            self._reader.join(timeout=self.grace_period)

        while self.state is not RunState.IDLE:
            try:
                tag, payload = self._events.get(timeout=self.grace_period)
            except queue.Empty:
                # the reader is wedged (e.g. a grandchild holds the pipes open)
                rc = proc.poll() if proc is not None else None
                self._finish(SPAWN_FAILED if rc is None else rc)
                break
            if tag == _EXIT:
                self._finish(payload)
            else:
                self._deliver(payload)

    # ---------- Scheduled callbacks ----------

    def _drain(self):
        self._drain_timer = None
        while True:
            try:
                tag, payload = self._events.get_nowait()
            except queue.Empty:
                break
            if tag == _EXIT:
                self._finish(payload)
                return
            self._deliver(payload)
        self._drain_timer = self.scheduler.after(DRAIN_INTERVAL_MS, self._drain)

    def _tick(self):
        self._tick_timer = None
        report = self.progress()
        if report is None:
            return
        self.display.on_progress(report.percent, report.eta_seconds)
        self._tick_timer = self.scheduler.after(PROGRESS_INTERVAL_MS, self._tick)

    def _escalate(self):
        self._kill_timer = None
        proc = self.process
        if self.state is RunState.STOPPING and proc is not None and proc.poll() is None:
            logger.warning("pid %s ignored termination for %.1fs, killing", proc.pid, self.grace_period)
            proc.kill()

    # ---------- Output & exit ----------

    def _deliver(self, text: str):
        if self.log is not None:
            try:
                self.log.write(text)
            except OSError as e:
                logger.warning("cannot write to %s: %s", self.log.path, e)
        self.display.on_output_chunk(text)

    def _cancel(self, timer):
        if timer is not None:
            self.scheduler.after_cancel(timer)

    def _finish(self, returncode: int):
        self._cancel(self._drain_timer)
        self._cancel(self._tick_timer)
        self._cancel(self._kill_timer)
        self._drain_timer = self._tick_timer = self._kill_timer = None
        if self._reader is not None:
            self._reader.join(timeout=1.0)
            self._reader = None

        self.last_exit_code = returncode
        if self.log is not None:
            self.last_log_path = self.log.path
            try:
                self.log.close(returncode)
            except OSError as e:
                logger.warning("cannot finalize %s: %s", self.log.path, e)
            self.log = None

        logger.info("%s finished with return code %s",
                    self.invocation.executable if self.invocation else "process", returncode)
        self.process = None
        self.invocation = None
        self._started_at = None
        self.state = RunState.IDLE

        self.display.on_output_chunk(f"\nProcess finished with return code: {returncode}\n")
        self.display.on_run_finished(returncode)
