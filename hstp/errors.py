"""Exceptions raised by the stress-test engine."""


class StressToolError(Exception):
    """Base class for every error the engine raises."""


class ValidationError(StressToolError):
    """A user supplied option is missing or malformed."""


class MissingDependency(ValidationError):
    """A required external tool is not on the search path."""

    def __init__(self, tool: str, hint: str):
        self.tool = tool
        self.hint = hint
        super().__init__(f"'{tool}' not found.\nInstall with:\n{hint}")


class BusyError(StressToolError, RuntimeError):
    """A run was requested while another one is still active."""


class LogOpenError(StressToolError):
    """The per-run log file could not be created."""

    def __init__(self, path: str, reason: Exception):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot write log file {path}: {reason}")
