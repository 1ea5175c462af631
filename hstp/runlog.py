"""Per-run log files."""

import datetime
import logging
import os

from .config import APP_NAME, LOG_DIR
from .errors import LogOpenError

logger = logging.getLogger(__name__)


def timestamp() -> str:
    return datetime.datetime.now().strftime("%Y-%m-%d_%H-%M-%S")


class RunLog:
    """Append-only record of one run: header, raw output, exit line."""

    def __init__(self, path: str, fp):
        self.path = path
        self._fp = fp

    @classmethod
    def open(cls, invocation, log_dir: str = LOG_DIR) -> "RunLog":
        path = os.path.join(log_dir, f"{invocation.kind.value}_{timestamp()}.log")
        try:
            os.makedirs(log_dir, exist_ok=True)
            fp = open(path, "w", encoding="utf-8", errors="replace")
        except OSError as e:
            raise LogOpenError(path, e) from e
        log = cls(path, fp)
        try:
            log.write(f"{APP_NAME} Log - {datetime.datetime.now().isoformat(timespec='seconds')}\n")
            log.write(f"Command: {invocation.command_line}\n\n")
        except OSError as e:
            fp.close()
            raise LogOpenError(path, e) from e
        logger.info("logging run to %s", path)
        return log

    @property
    def closed(self) -> bool:
        return self._fp is None

    def write(self, text: str):
        if self._fp is not None:
            self._fp.write(text)
            self._fp.flush()

    def close(self, exit_code: int | None = None):
        if self._fp is None:
            return
        try:
            if exit_code is not None:
                self._fp.write(f"\n[exit] {exit_code}\n")
            self._fp.flush()
        finally:
            self._fp.close()
            self._fp = None
