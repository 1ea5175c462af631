"""The interface a front end implements to render what the engine reports."""


class Display:
    """No-op display; front ends override the callbacks they care about.

    All callbacks run on the scheduler thread.
    """

    def on_output_chunk(self, text: str):
        """A piece of tool output (or an engine notice) to append to the viewer."""

    def on_progress(self, percent: float | None, eta_seconds: int | None):
        """Progress of the active run; ``None`` means the length is unknown.

        No progress is reported between runs; the display resets its bar and
        ETA in ``on_run_finished``.
        """

    def on_run_finished(self, exit_code: int):
        """The run ended; progress and ETA go back to their idle state."""

    def on_resource_sample(self, cpu_percent, memory, disk):
        """A fresh CPU percentage plus MemoryStat and DiskStat readings."""
