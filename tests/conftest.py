"""Shared fakes for driving the engine without real timers or processes."""

import io
import itertools
import subprocess
import threading

import pytest

from hstp.display import Display


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeScheduler:
    """Manual ``after``/``after_cancel`` timers on a FakeClock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.timers: dict[int, tuple] = {}
        self._ids = itertools.count(1)

    def after(self, delay_ms, callback, *args):
        timer_id = next(self._ids)
        self.timers[timer_id] = (self.clock.now + delay_ms / 1000.0, callback, args)
        return timer_id

    def after_cancel(self, timer_id):
        self.timers.pop(timer_id, None)

    def advance(self, seconds: float):
        end = self.clock.now + seconds
        while True:
            due = [(t[0], i) for i, t in self.timers.items() if t[0] <= end]
            if not due:
                break
            when, timer_id = min(due)
            self.clock.now = max(self.clock.now, when)
            _, callback, args = self.timers.pop(timer_id)
            callback(*args)
        self.clock.now = end


class FakeProcess:
    def __init__(self, argv, stdout="", stderr="", exit_on_terminate=True):
        self.args = argv
        self.pid = 4242
        self.stdout = io.StringIO(stdout)
        self.stderr = io.StringIO(stderr)
        self.returncode = None
        self.exit_on_terminate = exit_on_terminate
        self.terminate_calls = 0
        self.kill_calls = 0
        self._exited = threading.Event()

    def finish(self, returncode=0):
        if self.returncode is None:
            self.returncode = returncode
        self._exited.set()

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        if not self._exited.wait(timeout):
            raise subprocess.TimeoutExpired(self.args, timeout)
        return self.returncode

    def terminate(self):
        self.terminate_calls += 1
        if self.exit_on_terminate:
            self.finish(-15)

    def kill(self):
        self.kill_calls += 1
        self.finish(-9)


class FakePopen:
    def __init__(self, **process_kwargs):
        self.process_kwargs = process_kwargs
        self.calls = []
        self.processes = []
        self.error = None

    def __call__(self, argv, **kwargs):
        self.calls.append((argv, kwargs))
        if self.error is not None:
            raise self.error
        proc = FakeProcess(argv, **self.process_kwargs)
        self.processes.append(proc)
        return proc

    @property
    def process(self) -> FakeProcess:
        return self.processes[-1]


class RecordingDisplay(Display):
    def __init__(self):
        self.chunks = []
        self.progress = []
        self.finished = []
        self.samples = []

    @property
    def text(self) -> str:
        return "".join(self.chunks)

    def on_output_chunk(self, text):
        self.chunks.append(text)

    def on_progress(self, percent, eta_seconds):
        self.progress.append((percent, eta_seconds))

    def on_run_finished(self, exit_code):
        self.finished.append(exit_code)

    def on_resource_sample(self, cpu_percent, memory, disk):
        self.samples.append((cpu_percent, memory, disk))


def settle(controller, scheduler, seconds=0.1):
    """Let the reader thread post everything, then fire the drain timer."""
    if controller._reader is not None:
        controller._reader.join(timeout=2.0)
    scheduler.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return FakeScheduler(clock)


@pytest.fixture
def display():
    return RecordingDisplay()


@pytest.fixture
def resolver_all():
    return lambda cmd: f"/usr/bin/{cmd}"


@pytest.fixture
def resolver_none():
    return lambda cmd: None
