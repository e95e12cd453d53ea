"""vdtctl step commands: run, validate, matrix."""

from __future__ import annotations

import dataclasses
import logging
import signal
import threading
from dataclasses import asdict
from typing import Any, Callable, Optional

from vdt.api import ApiClient
from vdt.cli.helpers import _print
from vdt.config import StepConfig
from vdt.matrix import encode_matrix
from vdt.pipeline import prepare, run_step
from vdt.report import render_table

logger = logging.getLogger(__name__)


def _load_config(
    config_path: Optional[str],
    api_version: Optional[str],
    grace: Optional[float] = None,
) -> StepConfig:
    if config_path:
        config = StepConfig.from_yaml(config_path)
    else:
        config = StepConfig.from_env()
    overrides: dict[str, str] = {}
    if api_version:
        overrides["api_version"] = api_version
    if grace is not None:
        overrides["poll_grace_seconds"] = str(grace)
    if overrides:
        config = dataclasses.replace(config, **overrides)
    return config


def _install_cancel_handlers(cancel: threading.Event) -> dict[int, Any]:
    """SIGINT/SIGTERM set ``cancel`` instead of killing the process."""
    def handler(sig, frame):
        logger.warning("Received signal %d, cancelling", sig)
        cancel.set()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, handler)
    return previous


def _restore_handlers(previous: dict[int, Any]) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def cmd_run(
    *,
    config_path: Optional[str],
    api_version: Optional[str],
    poll_interval: float,
    max_wait: Optional[float],
    grace: Optional[float],
    color: bool,
    json_mode: bool,
    client_factory: Callable[[str, str], ApiClient] = ApiClient,
) -> int:
    """Entry point for ``vdtctl run``. Errors propagate to the dispatcher."""
    config = _load_config(config_path, api_version, grace)
    config.log_summary()

    cancel = threading.Event()
    previous = _install_cancel_handlers(cancel)
    try:
        result = run_step(
            config,
            client_factory=client_factory,
            interval=poll_interval,
            max_wait=max_wait,
            cancel=cancel,
        )
    finally:
        _restore_handlers(previous)

    if json_mode:
        _print({
            "passed": result.passed,
            "token": result.token,
            "polls": result.polls,
            "rows": [asdict(r) for r in result.rows],
        }, json_mode=True)
    else:
        print()
        logger.info("Test results:")
        print(render_table(result.rows, color=color))

    result.check()
    return 0


def cmd_validate(*, config_path: Optional[str], api_version: Optional[str], json_mode: bool) -> int:
    """Entry point for ``vdtctl validate``."""
    config = _load_config(config_path, api_version)
    matrix = prepare(config)
    variants = matrix.specification.populated_variants
    _print({
        "valid": True,
        "test_type": config.test_type,
        "devices": len(matrix.devices),
        "variant": variants[0],
        "api_version": config.resolved_api_version,
    }, json_mode=json_mode)
    return 0


def cmd_matrix(*, config_path: Optional[str], api_version: Optional[str], json_mode: bool) -> int:
    """Entry point for ``vdtctl matrix``. Prints the document as submitted."""
    config = _load_config(config_path, api_version)
    matrix = prepare(config)
    if json_mode:
        _print(matrix.to_dict(), json_mode=True)
    else:
        print(encode_matrix(matrix).decode("utf-8"))
    return 0
