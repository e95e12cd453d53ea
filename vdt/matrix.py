"""Test-matrix builder: flat step inputs to the nested document the service expects.

Everything here is pure: no I/O, no network, no hidden state.
"""

from __future__ import annotations

import json
import re
from typing import Optional

from vdt.config import (
    TEST_TYPE_GAMELOOP,
    TEST_TYPE_INSTRUMENTATION,
    TEST_TYPE_ROBO,
    StepConfig,
)
from vdt.errors import ConfigError, ParseError
from vdt.models import (
    AndroidDevice,
    InstrumentationTest,
    RoboDirective,
    RoboTest,
    TestLoop,
    TestMatrix,
    TestSpecification,
)


def _non_blank_lines(text: str) -> list[str]:
    lines = []
    for line in text.splitlines():
        line = line.strip()
        if line:
            lines.append(line)
    return lines


def parse_devices(text: str) -> list[AndroidDevice]:
    """Parse ``model,osVersion,locale,orientation`` lines, one device per line."""
    devices = []
    for line in _non_blank_lines(text):
        params = line.split(",")
        if len(params) != 4:
            raise ParseError(f"Invalid test device configuration: {line}")
        devices.append(AndroidDevice(
            model_id=params[0],
            version_id=params[1],
            locale=params[2],
            orientation=params[3],
        ))
    return devices


def parse_directives(text: str) -> list[RoboDirective]:
    """Parse ``resourceName,inputText,actionType`` lines."""
    directives = []
    for line in _non_blank_lines(text):
        params = line.split(",")
        if len(params) != 3:
            raise ParseError(f"Invalid directive configuration: {line}")
        directives.append(RoboDirective(
            resource_name=params[0],
            input_text=params[1],
            action_type=params[2],
        ))
    return directives


# Optional sign and ASCII digits only: no blanks, no underscores.
_INT_RE = re.compile(r"[+-]?[0-9]+")


def _parse_int(value: str) -> int:
    if not _INT_RE.fullmatch(value):
        raise ParseError(f"Failed to parse string({value}) to integer, error: invalid syntax")
    return int(value)


def parse_scenarios(text: str) -> list[int]:
    """Parse comma-separated game-loop scenario numbers."""
    return [_parse_int(s) for s in text.strip().split(",")]


def _split_list(text: str) -> tuple[str, ...]:
    # Only the whole string is trimmed, individual entries are kept verbatim.
    return tuple(text.strip().split(","))


def render_timeout(seconds: str) -> str:
    """``"120"`` -> ``"120s"``; empty input means no timeout is sent."""
    if not seconds:
        return ""
    return f"{_parse_int(seconds)}s"


def timeout_seconds(config: StepConfig) -> Optional[int]:
    """Submitted test timeout in seconds, or ``None`` when not configured."""
    if not config.test_timeout:
        return None
    return _parse_int(config.test_timeout)


def _instrumentation(config: StepConfig) -> InstrumentationTest:
    targets: tuple[str, ...] = ()
    if config.inst_test_targets:
        targets = _split_list(config.inst_test_targets)
    return InstrumentationTest(
        app_package_id=config.app_package_id,
        test_package_id=config.inst_test_package_id,
        test_runner_class=config.inst_test_runner_class,
        test_targets=targets,
    )


def _robo(config: StepConfig) -> RoboTest:
    max_depth = _parse_int(config.robo_max_depth) if config.robo_max_depth else 0
    max_steps = _parse_int(config.robo_max_steps) if config.robo_max_steps else 0
    return RoboTest(
        app_package_id=config.app_package_id,
        app_initial_activity=config.robo_initial_activity,
        max_depth=max_depth,
        max_steps=max_steps,
        robo_directives=tuple(parse_directives(config.robo_directives)),
    )


def _game_loop(config: StepConfig) -> TestLoop:
    scenarios: tuple[int, ...] = ()
    if config.loop_scenarios:
        scenarios = tuple(parse_scenarios(config.loop_scenarios))
    labels: tuple[str, ...] = ()
    if config.loop_scenario_labels:
        labels = _split_list(config.loop_scenario_labels)
    return TestLoop(
        app_package_id=config.app_package_id,
        scenarios=scenarios,
        scenario_labels=labels,
    )


def build_matrix(config: StepConfig, devices: Optional[list[AndroidDevice]] = None) -> TestMatrix:
    """Render the config into a ``TestMatrix`` with exactly one test variant.

    ``devices`` defaults to ``parse_devices(config.test_devices)``.

    Raises:
        ParseError: malformed device, directive or numeric parameter.
        ConfigError: unknown test type.
    """
    if devices is None:
        devices = parse_devices(config.test_devices)

    timeout = render_timeout(config.test_timeout)
    if config.test_type == TEST_TYPE_INSTRUMENTATION:
        spec = TestSpecification(test_timeout=timeout, instrumentation=_instrumentation(config))
    elif config.test_type == TEST_TYPE_ROBO:
        spec = TestSpecification(test_timeout=timeout, robo=_robo(config))
    elif config.test_type == TEST_TYPE_GAMELOOP:
        spec = TestSpecification(test_timeout=timeout, game_loop=_game_loop(config))
    else:
        raise ConfigError(f"Issue with TestType: invalid parameter: {config.test_type}")

    return TestMatrix(devices=tuple(devices), specification=spec)


def encode_matrix(matrix: TestMatrix) -> bytes:
    """Serialize to compact JSON; identical matrices give identical bytes."""
    return json.dumps(matrix.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")
