"""External tool lookup and the dependency report."""

import logging
import platform
import shutil

from .config import INSTALL_HINTS, REQUIRED_CMDS

logger = logging.getLogger(__name__)


def which(cmd: str) -> str | None:
    """Return the resolved path of ``cmd`` on PATH, or None when it is absent.

    ``shutil.which`` only stats PATH entries and never spawns a shell, so the
    lookup cannot hang on a misbehaving login profile.
    """
    path = shutil.which(cmd)
    logger.debug("which %s -> %s", cmd, path)
    return path


def install_hint(cmd: str) -> str:
    return INSTALL_HINTS.get(cmd, f"Please install '{cmd}'.")


def which_or_hint(cmd: str, resolver=which) -> str:
    path = resolver(cmd)
    if path:
        return path
    return f"NOT FOUND ({install_hint(cmd)})"


def all_tools() -> list[str]:
    return sorted({c for v in REQUIRED_CMDS.values() for c in v})


def missing_tools(resolver=which) -> list[str]:
    return [c for c in all_tools() if resolver(c) is None]


def dependency_report(resolver=which, system: str | None = None) -> str:
    lines = [f"Dependency check ({system or platform.system()})"]
    for cmd in all_tools():
        lines.append(f" - {cmd}: {which_or_hint(cmd, resolver)}")
    return "\n".join(lines)
