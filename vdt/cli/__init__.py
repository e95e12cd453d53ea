"""
vdtctl: CLI for the virtual device testing CI step.

Reads the step inputs from the CI environment (or a YAML file), uploads the
app and test packages, starts a test matrix on the remote device-testing
service and waits for the per-device results.

Main commands:
- run: full step (default when no command is given)
- validate: check inputs and build the matrix without touching the network
- matrix: print the test matrix document that would be submitted

Entry points:
- vdtctl: Main CLI entry point (installed via pip)
- Can also be imported and called programmatically via main(argv)
"""

from __future__ import annotations

from vdt.cli.helpers import _print
from vdt.cli.step_cmds import cmd_matrix, cmd_run, cmd_validate
from vdt.cli.dispatch import main

__all__ = [
    "_print",
    "cmd_run",
    "cmd_validate",
    "cmd_matrix",
    "main",
]
