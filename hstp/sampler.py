"""Host CPU, memory and disk sampling for the dashboard gauges."""

import logging
from dataclasses import dataclass

import psutil

from .config import DEFAULT_MOUNT, MONITOR_INTERVAL_MS

logger = logging.getLogger(__name__)

GIB = 1024 ** 3

# Errors a counter source may raise; anything else is a bug and propagates.
SAMPLE_ERRORS = (OSError, psutil.Error)


@dataclass(frozen=True)
class CpuSnapshot:
    """Cumulative CPU time per category since boot."""

    user: float = 0
    nice: float = 0
    system: float = 0
    idle: float = 0
    iowait: float = 0
    irq: float = 0
    softirq: float = 0
    steal: float = 0
    guest: float = 0
    guest_nice: float = 0

    @classmethod
    def from_cpu_times(cls, times) -> "CpuSnapshot":
        # psutil only reports the fields the platform has
        return cls(**{name: getattr(times, name, 0) for name in cls.__dataclass_fields__})

    @property
    def idle_total(self) -> float:
        return self.idle + self.iowait

    @property
    def busy_total(self) -> float:
        # guest time is already included in user/nice
        return self.user + self.nice + self.system + self.irq + self.softirq + self.steal


@dataclass(frozen=True)
class UsageStat:
    used_gib: float = 0.0
    total_gib: float = 0.0
    percent: float = 0.0

    @classmethod
    def from_bytes(cls, used: float, total: float) -> "UsageStat":
        if total <= 0:
            return cls()
        return cls(used / GIB, total / GIB, used / total * 100.0)

    @property
    def caption(self) -> str:
        return f"{self.used_gib:.1f} GiB / {self.total_gib:.1f} GiB"


class MemoryStat(UsageStat):
    pass


class DiskStat(UsageStat):
    pass


def cpu_percent_between(prev: CpuSnapshot, now: CpuSnapshot) -> float:
    """Busy share of the CPU time elapsed between two snapshots, in [0, 100]."""
    idle_delta = now.idle_total - prev.idle_total
    busy_delta = now.busy_total - prev.busy_total
    if idle_delta < 0 or busy_delta < 0:
        logger.debug("cpu counters went backwards (busy %+f, idle %+f)", busy_delta, idle_delta)
        return 0.0
    total = busy_delta + idle_delta
    if total <= 0:
        return 0.0
    return max(0.0, min(100.0, busy_delta / total * 100.0))


class ResourceSampler:
    """Reads utilization percentages from the host.

    CPU usage is a rate: each ``sample_cpu`` call compares the counters with the
    ones taken on the previous call, so it must be driven at a steady cadence.
    The first call only primes the sampler and returns 0. Readers default to
    psutil and can be swapped for synthetic sources.
    """

    def __init__(self, cpu_times=psutil.cpu_times, virtual_memory=psutil.virtual_memory,
                 disk_usage=psutil.disk_usage):
        self._cpu_times = cpu_times
        self._virtual_memory = virtual_memory
        self._disk_usage = disk_usage
        self._prev_cpu: CpuSnapshot | None = None

    def sample_cpu(self) -> float:
        try:
            now = CpuSnapshot.from_cpu_times(self._cpu_times())
        except SAMPLE_ERRORS as e:
            logger.debug("cpu counters unavailable: %s", e)
            return 0.0
        prev, self._prev_cpu = self._prev_cpu, now
        if prev is None:
            return 0.0
        return cpu_percent_between(prev, now)

    def sample_memory(self) -> MemoryStat:
        try:
            vm = self._virtual_memory()
        except SAMPLE_ERRORS as e:
            logger.debug("memory stats unavailable: %s", e)
            return MemoryStat()
        # "available" is the kernel's estimate that accounts for reclaimable cache
        return MemoryStat.from_bytes(vm.total - vm.available, vm.total)

    def sample_disk(self, mount_point: str = DEFAULT_MOUNT) -> DiskStat:
        try:
            du = self._disk_usage(mount_point)
        except SAMPLE_ERRORS as e:
            logger.debug("disk stats for %s unavailable: %s", mount_point, e)
            return DiskStat()
        # du.free counts only blocks available to unprivileged users
        return DiskStat.from_bytes(du.total - du.free, du.total)


class ResourceMonitor:
    """Pushes a CPU/memory/disk reading to the display once per interval."""

    def __init__(self, scheduler, display, sampler: ResourceSampler | None = None,
                 mount_point: str = DEFAULT_MOUNT, interval_ms: int = MONITOR_INTERVAL_MS):
        self.scheduler = scheduler
        self.display = display
        self.sampler = sampler or ResourceSampler()
        self.mount_point = mount_point
        self.interval_ms = interval_ms
        self._timer = None
        self.samples = 0

    @property
    def running(self) -> bool:
        return self._timer is not None

    def start(self, delay_ms: int | None = None):
        if self._timer is None:
            # prime the CPU counters so the first reading covers a full interval
            self.sampler.sample_cpu()
            delay = self.interval_ms if delay_ms is None else delay_ms
            self._timer = self.scheduler.after(delay, self._tick)

    def stop(self):
        if self._timer is not None:
            self.scheduler.after_cancel(self._timer)
            self._timer = None

    def sample(self):
        cpu = self.sampler.sample_cpu()
        mem = self.sampler.sample_memory()
        disk = self.sampler.sample_disk(self.mount_point)
        self.samples += 1
        self.display.on_resource_sample(cpu, mem, disk)
        return cpu, mem, disk

    def _tick(self):
        self._timer = None
        self.sample()
        self._timer = self.scheduler.after(self.interval_ms, self._tick)
