"""Error types raised by the virtual device testing step.

Lower layers raise; only ``vdt.cli`` turns an error into an exit code.
"""

from __future__ import annotations

from typing import Any, Optional


class VdtError(RuntimeError):
    """Base class for every failure the step reports."""


class ConfigError(VdtError):
    """Missing or invalid input. Raised before any network call."""


class ParseError(ConfigError):
    """Malformed device, directive or numeric parameter text."""


class TransportError(VdtError):
    """Request construction or network failure."""


class DecodeError(VdtError):
    """Response body is not the JSON document we expected."""


class UploadSlotError(VdtError):
    """The service refused to hand out upload URLs."""


class UploadError(VdtError):
    """An artifact PUT failed (I/O error or non-200 response)."""


class SubmitError(VdtError):
    """The service refused the test matrix."""


class PollTimeoutError(VdtError):
    """The run did not reach a terminal state before the client gave up."""


class PollCancelled(PollTimeoutError):
    """The run was cancelled by a signal before the results arrived."""


class RunFailure(VdtError):
    """The run finished but at least one device did not report success."""

    def __init__(self, message: str, rows: Optional[list[Any]] = None) -> None:
        super().__init__(message)
        self.rows = rows or []
