"""Argument parser for vdtctl CLI."""

from __future__ import annotations

import argparse

from vdt import __version__
from vdt.config import API_VERSIONS
from vdt.poller import DEFAULT_POLL_INTERVAL

SUBCOMMANDS = ("run", "validate", "matrix")


def _preprocess_argv(argv: list[str]) -> list[str]:
    """Move global flags before the subcommand and default to ``run``.

    CI invokes the step without arguments, so a missing subcommand means
    ``run``. Global flags (``--json``, ``--no-color``, ``-v``) are accepted
    anywhere on the command line.

    Args:
        argv: Raw argument list (without ``sys.argv[0]``).

    Returns:
        Reordered argument list with global flags moved to the front.
    """
    global_args: list[str] = []
    rest: list[str] = []
    for token in argv:
        if token in ("--json", "--no-color", "-v", "--verbose"):
            global_args.append(token)
            continue
        rest.append(token)

    if not any(token in SUBCOMMANDS for token in rest) and "-h" not in rest \
            and "--help" not in rest and "--version" not in rest:
        rest.insert(0, "run")
    return global_args + rest


def _add_source_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--config",
        default=None,
        help="YAML file keyed by the step's environment variable names (env wins)",
    )
    p.add_argument(
        "--api-version",
        choices=API_VERSIONS,
        default=None,
        help="Service API revision (default: $api_version or v1)",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the full argparse parser with all subcommands."""
    parser = argparse.ArgumentParser(prog="vdtctl", description="Virtual device testing CI step")
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__} (virtual-device-testing)",
    )
    parser.add_argument("--json", action="store_true", help="Output machine-parseable JSON")
    parser.add_argument("--no-color", action="store_true", help="Disable coloured outcomes")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging (HTTP traffic)")

    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Upload, start the test matrix and wait for results")
    _add_source_args(p_run)
    p_run.add_argument(
        "--poll-interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL,
        help="Seconds between status requests (default: %(default)s)",
    )
    p_run.add_argument(
        "--max-wait",
        type=float,
        default=None,
        help="Give up waiting after N seconds; 0 disables the ceiling "
             "(default: test timeout + grace)",
    )
    p_run.add_argument(
        "--grace",
        type=float,
        default=None,
        help="Seconds added to the test timeout for the default ceiling "
             "(default: $poll_grace_seconds or 600)",
    )

    p_validate = sub.add_parser("validate", help="Validate inputs and build the matrix; no network")
    _add_source_args(p_validate)

    p_matrix = sub.add_parser("matrix", help="Print the test matrix document that would be submitted")
    _add_source_args(p_matrix)

    return parser
