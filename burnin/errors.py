"""
Error types raised by the burn-in engine.

Validation problems are recoverable by the caller (fix the input, retry).
Probe, encode and resource errors carry enough detail to retry or report.
Cancellation is not a failure; ExportCancelled shares no base with the
error types below other than BurnInError.
"""


class BurnInError(Exception):
    """Base class for every error raised by burnin."""
    pass


class ValidationError(BurnInError):
    """One or more overlay/subtitle/trim/request rules were violated."""

    def __init__(self, errors: list[str], message: str = "Invalid export request"):
        self.errors = list(errors)
        super().__init__(f"{message}: " + "; ".join(self.errors))


class MediaProbeError(BurnInError):
    """Source media could not be read or has no video stream."""
    pass


class EncodeError(BurnInError):
    """FFmpeg failed, timed out or could not be started."""

    def __init__(self, message: str, stderr: str = ""):
        self.stderr = stderr
        super().__init__(message)


class ResourceError(BurnInError):
    """Temporary file or directory could not be created."""
    pass


class ExportCancelled(BurnInError):
    """The caller aborted the export."""
    pass
