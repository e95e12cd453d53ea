"""Step orchestration: validate, build, upload, submit, poll, report."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from vdt.api import ApiClient
from vdt.config import DEFAULT_POLL_GRACE_SECONDS, StepConfig
from vdt.errors import ConfigError, PollCancelled, RunFailure, UploadSlotError
from vdt.matrix import build_matrix, parse_devices, timeout_seconds
from vdt.models import TestMatrix
from vdt.poller import DEFAULT_POLL_INTERVAL, Poller, wait_ceiling
from vdt.report import ReportRow, all_passed, build_rows

logger = logging.getLogger(__name__)


@dataclass
class StepRunResult:
    """Outcome of a complete step run."""
    rows: list[ReportRow] = field(default_factory=list)
    token: Optional[str] = None
    polls: int = 0

    @property
    def passed(self) -> bool:
        # No rows means no device reported success.
        return bool(self.rows) and all_passed(self.rows)

    def check(self) -> None:
        """Raise ``RunFailure`` unless every device reported success."""
        if not self.rows:
            raise RunFailure("Test finished without reporting any device steps", rows=[])
        if not self.passed:
            failed = sum(1 for r in self.rows if not r.passed)
            raise RunFailure(
                f"{failed} of {len(self.rows)} test steps did not succeed", rows=self.rows
            )


def prepare(config: StepConfig) -> TestMatrix:
    """Validate inputs and build the matrix. No network access."""
    config.validate()
    return build_matrix(config, parse_devices(config.test_devices))


def _grace(config: StepConfig) -> float:
    if not config.poll_grace_seconds:
        return float(DEFAULT_POLL_GRACE_SECONDS)
    try:
        return float(config.poll_grace_seconds)
    except ValueError as e:
        raise ConfigError(f"Issue with PollGraceSeconds: {e}") from e


def _check_cancel(cancel: Optional[threading.Event], before: str) -> None:
    if cancel is not None and cancel.is_set():
        raise PollCancelled(f"Cancelled before {before}")


def run_step(
    config: StepConfig,
    *,
    client_factory: Callable[[str, str], ApiClient] = ApiClient,
    interval: float = DEFAULT_POLL_INTERVAL,
    max_wait: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> StepRunResult:
    """Run the whole step and return the per-device rows.

    ``max_wait`` of ``None`` derives the ceiling from the submitted timeout
    plus the configured grace; ``0`` or less waits without a ceiling.
    """
    matrix = prepare(config)
    if max_wait is None:
        max_wait = wait_ceiling(timeout_seconds(config), _grace(config))
    elif max_wait <= 0:
        max_wait = None

    with client_factory(config.api_base_url, config.resolved_api_version) as client:
        _check_cancel(cancel, "uploading APKs")
        logger.info("Upload APKs")
        slots = client.request_upload_slots(config.app_slug, config.build_slug)
        client.upload_file(slots.app_url, config.apk_path)
        if config.test_apk_path:
            if not slots.test_app_url:
                raise UploadSlotError("Upload URL response missing testAppUrl for the test package")
            _check_cancel(cancel, "uploading the test APK")
            client.upload_file(slots.test_app_url, config.test_apk_path)
        logger.info("=> APKs uploaded")

        _check_cancel(cancel, "starting the test")
        logger.info("Start test")
        token = client.submit(config.app_slug, config.build_slug, matrix)
        if token:
            logger.info("=> Test started (matrix %s)", token)
        else:
            logger.info("=> Test started")

        logger.info("Waiting for test results")
        poller = Poller(
            client, config.app_slug, config.build_slug, token,
            interval=interval, max_wait=max_wait, cancel=cancel,
        )
        status = poller.wait()
        logger.info("=> Test finished")

    return StepRunResult(rows=build_rows(status.steps()), token=token, polls=poller.polls)
