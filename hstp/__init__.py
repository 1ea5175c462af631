"""
Hardware Stress Testing Tool (Pro Edition)

Drives stress-ng, glmark2, fio and iperf3 as managed subprocesses, logs
their output, estimates progress for timed tests and samples host CPU,
memory and disk usage for a live dashboard.
"""

from .commands import (
    CpuOptions, DiskOptions, GpuOptions, Invocation, NetworkOptions,
    RamOptions, TestKind, build_command,
)
from .config import APP_NAME, VERSION
from .errors import (
    BusyError, LogOpenError, MissingDependency, StressToolError, ValidationError,
)
from .runner import RunController, RunState
from .sampler import ResourceMonitor, ResourceSampler

__version__ = VERSION

__all__ = [
    "APP_NAME", "VERSION",
    "TestKind", "CpuOptions", "RamOptions", "GpuOptions", "DiskOptions",
    "NetworkOptions", "Invocation", "build_command",
    "StressToolError", "ValidationError", "MissingDependency", "BusyError",
    "LogOpenError",
    "RunController", "RunState", "ResourceSampler", "ResourceMonitor",
]
