"""Test kinds, their options and the command lines built from them."""

import enum
import logging
import os
import platform
import re
import shlex
from dataclasses import dataclass

from .config import (
    DEFAULT_DISK_SIZE, DEFAULT_RAM_BYTES, DISK_TESTFILE, REQUIRED_CMDS,
)
from .deps import install_hint, which
from .errors import MissingDependency, ValidationError

logger = logging.getLogger(__name__)

# "512M", "1G", "4KiB", "2gb", "1024", or a percentage such as "80%"
SIZE_RE = re.compile(r"^\d+(?:[kmgtp]i?b?)?$|^\d+%$", re.IGNORECASE)


class TestKind(enum.Enum):
    __test__ = False  # not a pytest class

    CPU = "cpu"
    RAM = "ram"
    GPU = "gpu"
    DISK = "disk"
    NET = "net"

    @property
    def required_tools(self) -> list[str]:
        return REQUIRED_CMDS[self.value]


@dataclass(frozen=True)
class CpuOptions:
    workers: int = max(1, os.cpu_count() or 1)
    duration: int = 300


@dataclass(frozen=True)
class RamOptions:
    vm_workers: int = 2
    vm_bytes: str = "1G"
    duration: int = 300


@dataclass(frozen=True)
class GpuOptions:
    """glmark2 runs a fixed suite and exits; there is nothing to configure."""


@dataclass(frozen=True)
class DiskOptions:
    size: str = DEFAULT_DISK_SIZE
    runtime: int = 60
    filename: str = ""


@dataclass(frozen=True)
class NetworkOptions:
    server: str = ""
    extra_args: str = ""


@dataclass(frozen=True)
class Invocation:
    """A fully substituted command line plus its expected run length."""

    kind: TestKind
    executable: str
    args: tuple[str, ...] = ()
    expected_duration: int | None = None

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.args]

    @property
    def command_line(self) -> str:
        return " ".join(self.argv)


def _size(value: str, default: str, field: str) -> str:
    value = (value or "").strip() or default
    if not SIZE_RE.match(value):
        raise ValidationError(f"Invalid {field}: {value!r} (expected e.g. 512M, 1G or 50%).")
    return value


def _build_cpu(opts: CpuOptions, system: str) -> Invocation:
    workers = max(1, int(opts.workers))
    duration = max(5, int(opts.duration))
    return Invocation(TestKind.CPU, "stress-ng",
                      ("--cpu", str(workers), "--timeout", f"{duration}s"), duration)


def _build_ram(opts: RamOptions, system: str) -> Invocation:
    vm = max(1, int(opts.vm_workers))
    vm_bytes = _size(opts.vm_bytes, DEFAULT_RAM_BYTES, "bytes per VM")
    duration = max(5, int(opts.duration))
    return Invocation(TestKind.RAM, "stress-ng",
                      ("--vm", str(vm), "--vm-bytes", vm_bytes, "--timeout", f"{duration}s"),
                      duration)


def _build_gpu(opts: GpuOptions, system: str) -> Invocation:
    return Invocation(TestKind.GPU, "glmark2")


def _build_disk(opts: DiskOptions, system: str) -> Invocation:
    size = _size(opts.size, DEFAULT_DISK_SIZE, "size")
    runtime = min(3600, max(5, int(opts.runtime)))
    filename = opts.filename.strip() or os.path.join(os.getcwd(), DISK_TESTFILE)
    ioengine = "libaio" if system == "Linux" else "psync"
    return Invocation(TestKind.DISK, "fio", (
        "--name=randrw", "--rw=randrw", f"--size={size}",
        f"--runtime={runtime}", "--time_based=1", f"--filename={filename}",
        f"--ioengine={ioengine}", "--direct=1",
    ), runtime)


def _build_net(opts: NetworkOptions, system: str) -> Invocation:
    server = opts.server.strip()
    if not server:
        raise ValidationError("Please enter the iperf3 server IP.")
    args = ["-c", server]
    extra = opts.extra_args.strip()
    if extra:
        try:
            args.extend(shlex.split(extra))
        except ValueError as e:
            raise ValidationError(f"Cannot parse extra args {extra!r}: {e}") from e
    return Invocation(TestKind.NET, "iperf3", tuple(args))


_OPTIONS = {
    TestKind.CPU: CpuOptions,
    TestKind.RAM: RamOptions,
    TestKind.GPU: GpuOptions,
    TestKind.DISK: DiskOptions,
    TestKind.NET: NetworkOptions,
}

_BUILDERS = {
    TestKind.CPU: _build_cpu,
    TestKind.RAM: _build_ram,
    TestKind.GPU: _build_gpu,
    TestKind.DISK: _build_disk,
    TestKind.NET: _build_net,
}

if set(_BUILDERS) != set(TestKind) or set(_OPTIONS) != set(TestKind):
    raise RuntimeError("every TestKind needs an options type and a builder")


def default_options(kind: TestKind):
    return _OPTIONS[kind]()


def build_command(kind: TestKind, options=None, resolver=which,
                  system: str | None = None) -> Invocation:
    """Validate ``options`` for ``kind`` and return the command to spawn.

    Required tools are checked first through ``resolver``; a missing one raises
    MissingDependency. Bad or missing fields raise ValidationError. ``system``
    overrides ``platform.system()`` when picking the fio I/O engine.
    """
    for cmd in kind.required_tools:
        if resolver(cmd) is None:
            raise MissingDependency(cmd, install_hint(cmd))

    if options is None:
        options = default_options(kind)
    elif not isinstance(options, _OPTIONS[kind]):
        raise ValidationError(
            f"{kind.name} test expects {_OPTIONS[kind].__name__}, got {type(options).__name__}")

    invocation = _BUILDERS[kind](options, system or platform.system())
    if any("\0" in arg for arg in invocation.argv):
        raise ValidationError(f"{kind.name} options must not contain NUL characters.")
    logger.debug("built %s command: %s (expected %s s)",
                 kind.value, invocation.command_line, invocation.expected_duration)
    return invocation
