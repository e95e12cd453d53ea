"""Command dispatch for vdtctl CLI."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from vdt.cli.helpers import _configure_logging, _print, _use_color
from vdt.cli.parser import _build_parser, _preprocess_argv
from vdt.errors import RunFailure, VdtError

logger = logging.getLogger(__name__)


def _report_error(err: VdtError, *, json_mode: bool) -> None:
    # A failed run has already printed its result document with "passed": false.
    if isinstance(err, RunFailure):
        logger.error("Test failed: %s", err)
    elif json_mode:
        _print({"error": str(err), "type": type(err).__name__}, json_mode=True)
    else:
        logger.error("%s", err)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the ``vdtctl`` CLI.

    This is the only place that turns an error into an exit code.

    Args:
        argv: Argument list to parse.  Defaults to ``sys.argv[1:]``.

    Returns:
        Exit code: 0 when every device passed, 1 on any error or failed
        device.
    """
    if argv is None:
        argv = sys.argv[1:]

    argv = _preprocess_argv(argv)

    # Late import to allow tests to monkeypatch vdt.cli.cmd_xxx
    import vdt.cli as cli

    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, json_mode=args.json)

    try:
        if args.cmd == "run":
            return cli.cmd_run(
                config_path=args.config,
                api_version=args.api_version,
                poll_interval=args.poll_interval,
                max_wait=args.max_wait,
                grace=args.grace,
                color=_use_color(args.no_color, json_mode=args.json),
                json_mode=args.json,
            )
        if args.cmd == "validate":
            return cli.cmd_validate(
                config_path=args.config,
                api_version=args.api_version,
                json_mode=args.json,
            )
        if args.cmd == "matrix":
            return cli.cmd_matrix(
                config_path=args.config,
                api_version=args.api_version,
                json_mode=args.json,
            )
    except VdtError as e:
        _report_error(e, json_mode=args.json)
        return 1

    parser.error(f"Unknown command: {args.cmd}")
    return 2
