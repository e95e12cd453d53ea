"""Shared utilities for vdtctl CLI commands."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Optional

LOG_FORMAT = "%(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _print(obj: Any, *, json_mode: bool) -> None:
    if json_mode:
        print(json.dumps(obj, indent=2, sort_keys=True))
    else:
        if isinstance(obj, str):
            print(obj)
        else:
            print(json.dumps(obj, indent=2, sort_keys=True))


def _configure_logging(verbose: bool, *, json_mode: bool, stream: Optional[Any] = None) -> None:
    """Route ``vdt`` loggers to one stream handler.

    In JSON mode logs go to stderr so stdout stays parseable.
    """
    if stream is None:
        stream = sys.stderr if json_mode else sys.stdout
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(DEBUG_LOG_FORMAT if verbose else LOG_FORMAT))
    root = logging.getLogger("vdt")
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.propagate = False


def _use_color(no_color: bool, *, json_mode: bool) -> bool:
    if no_color or json_mode:
        return False
    return sys.stdout.isatty()
