"""Poll the run status until the service reports a terminal state."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from vdt.api import ApiClient
from vdt.errors import PollCancelled, PollTimeoutError
from vdt.status import RunStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
# Seconds; what the service runs a test for when no testTimeout is sent.
SERVICE_DEFAULT_TEST_TIMEOUT = 900


def _log_message(index: int, message: str) -> None:
    logger.info("[execution %d] %s", index, message)


class Poller:
    """Fixed-interval status poller with a client-side wait ceiling.

    Parameters
    ----------
    client:
        API client bound to the service.
    token:
        ``testMatrixId`` returned by submit (``v2``); ``None`` polls the
        submission URL.
    interval:
        Seconds slept before every status request.
    max_wait:
        Give up with ``PollTimeoutError`` after this many seconds.
        ``None`` waits forever.
    cancel:
        Setting this event aborts the wait with ``PollCancelled``.
    on_message:
        Called once per new ``(execution_index, message)`` progress line.
    """

    def __init__(
        self,
        client: ApiClient,
        app_slug: str,
        build_slug: str,
        token: Optional[str] = None,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_wait: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
        on_message: Callable[[int, str], None] = _log_message,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.app_slug = app_slug
        self.build_slug = build_slug
        self.token = token
        self.interval = interval
        self.max_wait = max_wait
        self.cancel = cancel or threading.Event()
        self.on_message = on_message
        self._clock = clock
        self._printed: set[tuple[int, str]] = set()
        self.polls = 0

    def new_messages(self, status: RunStatus) -> list[tuple[int, str]]:
        """Progress lines not reported before, in first-seen order. Updates the memo."""
        fresh = []
        for entry in status.progress():
            if entry in self._printed:
                continue
            self._printed.add(entry)
            fresh.append(entry)
        return fresh

    def wait(self) -> RunStatus:
        """Block until the run finishes and return its final status.

        Raises:
            PollTimeoutError: ``max_wait`` elapsed first.
            PollCancelled: the cancel event was set.
        """
        deadline = None
        if self.max_wait is not None:
            deadline = self._clock() + self.max_wait

        while True:
            delay = self.interval
            if deadline is not None:
                delay = max(0.0, min(delay, deadline - self._clock()))
            if self.cancel.wait(delay):
                raise PollCancelled(f"Waiting for test results cancelled after {self.polls} polls")

            status = self.client.fetch_status(self.app_slug, self.build_slug, self.token)
            self.polls += 1
            for index, message in self.new_messages(status):
                self.on_message(index, message)

            if status.finished:
                return status
            logger.debug("Test still running: %s", status.state)

            if deadline is not None and self._clock() >= deadline:
                raise PollTimeoutError(
                    f"Timed out client-side after {self.max_wait:.0f}s waiting for test results "
                    f"(last state: {status.state})"
                )


def wait_ceiling(test_timeout: Optional[int], grace: float) -> float:
    """Overall wait: submitted test timeout plus a grace margin.

    Without a submitted timeout the service applies its own default.
    """
    if test_timeout is None:
        test_timeout = SERVICE_DEFAULT_TEST_TIMEOUT
    return float(test_timeout) + grace
