"""
Command-line front end.

Runs one stress test in the terminal, streaming tool output to stdout and
progress, resource readings and status to stderr.
"""

import argparse
import logging
import sys

from . import config
from .commands import (
    CpuOptions, DiskOptions, GpuOptions, NetworkOptions, RamOptions, TestKind, build_command,
)
from .deps import dependency_report, missing_tools, which
from .display import Display
from .errors import StressToolError
from .runner import RunController, RunState, format_eta
from .sampler import ResourceMonitor, ResourceSampler
from .scheduler import TickLoop


class ConsoleDisplay(Display):
    def __init__(self, out=None, err=None):
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self._last_eta = None

    def on_output_chunk(self, text):
        self.out.write(text)
        self.out.flush()

    def on_progress(self, percent, eta_seconds):
        # one line per second of ETA is plenty for a terminal
        if percent is None or eta_seconds == self._last_eta:
            return
        self._last_eta = eta_seconds
        self.err.write(f"Progress: {percent:5.1f}%  ETA: {format_eta(eta_seconds)}\n")

    def on_run_finished(self, exit_code):
        self._last_eta = None

    def on_resource_sample(self, cpu_percent, memory, disk):
        self.err.write(
            f"CPU {cpu_percent:5.1f}% | MEMORY {memory.percent:5.1f}% ({memory.caption})"
            f" | DISK {disk.percent:5.1f}% ({disk.caption})\n"
        )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hstp",
        description=f"{config.APP_NAME} {config.VERSION} by {config.AUTHOR}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  hstp deps
  hstp run cpu --workers 4 --duration 60
  hstp run ram --vm-workers 2 --vm-bytes 1G --duration 120 --monitor
  hstp run disk --size 2G --runtime 30 --filename /tmp/fio_testfile.bin
  hstp run net --server 192.168.1.10 --extra-args "-t 30 -P 4"
  hstp monitor --count 5

CPU/RAM via stress-ng, GPU via glmark2, Disk via fio, Network via iperf3.
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {config.VERSION} (revised {config.REVISION_DATE})")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("deps", help="Check that the benchmark tools are installed")

    mon = sub.add_parser("monitor", help="Print CPU, memory and disk usage")
    mon.add_argument("--count", type=int, default=0, help="Number of samples (default: until Ctrl-C)")
    mon.add_argument("--interval", type=float, default=config.MONITOR_INTERVAL_MS / 1000.0,
                     help="Seconds between samples (default: 1)")
    mon.add_argument("--mount", default=config.DEFAULT_MOUNT, help="Filesystem to report (default: /)")

    # accepted after the test name, e.g. "hstp run cpu --duration 60 --monitor"
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--log-dir", default=config.LOG_DIR, help=f"Log directory (default: {config.LOG_DIR})")
    common.add_argument("--monitor", action="store_true", help="Print resource usage every second")
    common.add_argument("--mount", default=config.DEFAULT_MOUNT, help="Filesystem for --monitor (default: /)")

    run = sub.add_parser("run", help="Run one stress test")
    tests = run.add_subparsers(dest="test", required=True)

    cpu_defaults = CpuOptions()
    cpu = tests.add_parser("cpu", parents=[common], help="CPU stress via stress-ng")
    cpu.add_argument("--workers", type=int, default=cpu_defaults.workers, help="Worker count (default: CPU count)")
    cpu.add_argument("--duration", type=int, default=cpu_defaults.duration, help="Seconds (default: 300)")

    ram_defaults = RamOptions()
    ram = tests.add_parser("ram", parents=[common], help="Memory stress via stress-ng")
    ram.add_argument("--vm-workers", type=int, default=ram_defaults.vm_workers, help="VM workers (default: 2)")
    ram.add_argument("--vm-bytes", default=ram_defaults.vm_bytes, help="Bytes per VM worker (default: 1G)")
    ram.add_argument("--duration", type=int, default=ram_defaults.duration, help="Seconds (default: 300)")

    tests.add_parser("gpu", parents=[common], help="GPU benchmark via glmark2 (fixed suite, no duration)")

    disk_defaults = DiskOptions()
    disk = tests.add_parser("disk", parents=[common], help="Random read/write via fio")
    disk.add_argument("--size", default=disk_defaults.size, help="Test file size (default: 1G)")
    disk.add_argument("--runtime", type=int, default=disk_defaults.runtime, help="Seconds, 5-3600 (default: 60)")
    disk.add_argument("--filename", default="", help="Test file (default: ./fio_testfile.bin)")

    net = tests.add_parser("net", parents=[common], help="Network throughput via iperf3")
    net.add_argument("--server", default="", help="iperf3 server IP (required)")
    net.add_argument("--extra-args", default="", help="Extra iperf3 arguments, shell quoted")

    return parser


def options_from_args(args):
    kind = TestKind(args.test)
    if kind is TestKind.CPU:
        return kind, CpuOptions(args.workers, args.duration)
    if kind is TestKind.RAM:
        return kind, RamOptions(args.vm_workers, args.vm_bytes, args.duration)
    if kind is TestKind.GPU:
        return kind, GpuOptions()
    if kind is TestKind.DISK:
        return kind, DiskOptions(args.size, args.runtime, args.filename)
    return kind, NetworkOptions(args.server, args.extra_args)


def cmd_deps(args, display) -> int:
    display.out.write(dependency_report() + "\n")
    return 1 if missing_tools() else 0


def cmd_monitor(args, display, loop=None) -> int:
    loop = loop or TickLoop()
    monitor = ResourceMonitor(loop, display, ResourceSampler(), mount_point=args.mount,
                              interval_ms=int(args.interval * 1000))
    monitor.start()
    try:
        loop.run(until=lambda: args.count and monitor.samples >= args.count)
    except KeyboardInterrupt:
        pass
    finally:
        monitor.stop()
    return 0


def cmd_run(args, display, loop=None, resolver=None) -> int:
    kind, options = options_from_args(args)
    try:
        invocation = build_command(kind, options, resolver=resolver or which)
    except StressToolError as e:
        display.err.write(f"error: {e}\n")
        return 2

    loop = loop or TickLoop()
    controller = RunController(loop, display, log_dir=args.log_dir)
    monitor = ResourceMonitor(loop, display, mount_point=args.mount) if args.monitor else None
    try:
        controller.start(invocation)
    except StressToolError as e:
        display.err.write(f"error: {e}\n")
        return 2

    if monitor is not None:
        monitor.start()
    try:
        loop.run(until=lambda: controller.state is RunState.IDLE)
    except KeyboardInterrupt:
        display.err.write("\nInterrupted, stopping test…\n")
        controller.shutdown()
        return 130
    finally:
        if monitor is not None:
            monitor.stop()

    display.err.write(f"Log saved to: {controller.last_log_path}\n")
    rc = controller.last_exit_code
    return rc if rc is not None and 0 <= rc <= 255 else 1


def main(argv=None) -> int:
    args = create_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    display = ConsoleDisplay()
    if args.command == "deps":
        return cmd_deps(args, display)
    if args.command == "monitor":
        return cmd_monitor(args, display)
    return cmd_run(args, display)


if __name__ == "__main__":
    sys.exit(main())
