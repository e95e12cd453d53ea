"""
Virtual Device Testing - CI step

Uploads an app and test package to a remote device-testing service, starts a
test matrix and reports per-device outcomes.
"""

__version__ = "1.0.0"

from .errors import (
    VdtError,
    ConfigError,
    ParseError,
    TransportError,
    DecodeError,
    UploadSlotError,
    UploadError,
    SubmitError,
    PollTimeoutError,
    PollCancelled,
    RunFailure,
)
from .config import StepConfig
from .matrix import build_matrix, encode_matrix, parse_devices, parse_directives
from .api import ApiClient
from .status import RunStatus, StepListStatus, MatrixStatus, decode_status
from .poller import Poller
from .pipeline import run_step, StepRunResult

__all__ = [
    "__version__",
    "VdtError",
    "ConfigError",
    "ParseError",
    "TransportError",
    "DecodeError",
    "UploadSlotError",
    "UploadError",
    "SubmitError",
    "PollTimeoutError",
    "PollCancelled",
    "RunFailure",
    "StepConfig",
    "build_matrix",
    "encode_matrix",
    "parse_devices",
    "parse_directives",
    "ApiClient",
    "RunStatus",
    "StepListStatus",
    "MatrixStatus",
    "decode_status",
    "Poller",
    "run_step",
    "StepRunResult",
]
