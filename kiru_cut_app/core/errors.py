"""
Exception types raised by the trimming core.

Everything derives from KiruCutError so callers can catch the whole family
in one place; ``str(exc)`` is always a message fit for the status line.
"""
from kiru_cut_app.config import Severity


class KiruCutError(Exception):
    """Base class for all trimming errors."""
    pass


class ToolNotFound(KiruCutError):
    """Raised when no executable candidate exists for ffmpeg/ffprobe."""

    def __init__(self, tool):
        self.tool = str(tool)
        super().__init__(
            f"{self.tool} was not found. Enable \"Use installed ffmpeg\" and install it "
            f"(for example: brew install ffmpeg), or provide a bundled {self.tool}."
        )


class CommandFailed(KiruCutError):
    """Raised when an external tool exits with a non-zero status."""

    def __init__(self, exit_code: int, output: str = ""):
        self.exit_code = exit_code
        self.output = output
        if output:
            message = f"ffmpeg failed with exit code {exit_code}: {output}"
        else:
            message = f"ffmpeg failed with exit code {exit_code}."
        super().__init__(message)


class DurationUnavailable(KiruCutError):
    """Raised when ffprobe succeeds but reports no usable duration."""

    def __init__(self):
        super().__init__("Could not read input duration.")


class SpawnFailed(KiruCutError):
    """Raised when an executable cannot be launched at all."""

    def __init__(self, executable: str, reason: str):
        self.executable = executable
        self.reason = reason
        super().__init__(f"Could not launch {executable}: {reason}")


class InvalidRequest(KiruCutError):
    """Raised when a cut request fails local validation.

    ``severity`` tells the UI whether this is a real error or just a notice
    (for example the end time being clamped to the file length).
    """

    def __init__(self, reason: str, severity: str = Severity.ERROR):
        self.reason = reason
        self.severity = severity
        super().__init__(reason)


class Cancelled(KiruCutError):
    """Raised when an operation was cancelled before it completed."""

    def __init__(self, message: str = "Operation cancelled."):
        super().__init__(message)
