"""Application metadata and fixed settings."""

import os

APP_NAME = "Hardware Stress Testing Tool"
VERSION = "2.0"
REVISION_DATE = "2025-09-06"
AUTHOR = "Dr. Eric O. Flores"

LOG_DIR = os.path.join(os.path.expanduser("~"), "HardwareStressTest", "logs")

REQUIRED_CMDS = {
    "cpu": ["stress-ng"],
    "ram": ["stress-ng"],
    "gpu": ["glmark2"],
    "disk": ["fio"],
    "net": ["iperf3"],
}

INSTALL_HINTS = {
    "stress-ng": "sudo apt install stress-ng",
    "glmark2": "sudo apt install glmark2",
    "fio": "sudo apt install fio",
    "iperf3": "sudo apt install iperf3",
}

# Cadences in milliseconds (scheduler units)
PROGRESS_INTERVAL_MS = 200
DRAIN_INTERVAL_MS = 50
MONITOR_INTERVAL_MS = 1000

# Seconds
STOP_GRACE_SECONDS = 3.0

DEFAULT_MOUNT = "/"
DEFAULT_RAM_BYTES = "512M"
DEFAULT_DISK_SIZE = "1G"
DISK_TESTFILE = "fio_testfile.bin"
