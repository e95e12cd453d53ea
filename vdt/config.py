"""Step configuration: read from the CI environment, optionally a YAML file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

import yaml

from vdt.errors import ConfigError

logger = logging.getLogger(__name__)

TEST_TYPE_INSTRUMENTATION = "instrumentation"
TEST_TYPE_ROBO = "robo"
TEST_TYPE_GAMELOOP = "gameloop"
TEST_TYPES = (TEST_TYPE_INSTRUMENTATION, TEST_TYPE_ROBO, TEST_TYPE_GAMELOOP)

API_VERSIONS = ("v1", "v2")
DEFAULT_API_VERSION = "v1"
DEFAULT_POLL_GRACE_SECONDS = 600

# Multi-line inputs; a YAML list for these is joined with newlines, others with commas.
_LINE_FIELDS = frozenset({"test_devices", "robo_directives"})

# Field name -> environment variable. Names are fixed by existing CI configs.
ENV_NAMES: dict[str, str] = {
    # api
    "api_base_url": "api_base_url",
    "build_slug": "BITRISE_BUILD_SLUG",
    "app_slug": "BITRISE_APP_SLUG",
    # shared
    "apk_path": "apk_path",
    "test_apk_path": "test_apk_path",
    "test_type": "test_type",
    "test_devices": "test_devices",
    "app_package_id": "app_package_id",
    "test_timeout": "test_timeout",
    # instrumentation
    "inst_test_package_id": "inst_test_package_id",
    "inst_test_runner_class": "inst_test_runner_class",
    "inst_test_targets": "inst_test_targets",
    # robo
    "robo_initial_activity": "robo_initial_activity",
    "robo_max_depth": "robo_max_depth",
    "robo_max_steps": "robo_max_steps",
    "robo_directives": "robo_directives",
    # loop
    "loop_scenarios": "loop_scenarios",
    "loop_scenario_labels": "loop_scenario_labels",
    # client tuning, not part of the step inputs
    "api_version": "api_version",
    "poll_grace_seconds": "poll_grace_seconds",
}


@dataclass(frozen=True)
class StepConfig:
    """Flat, read-only record of every step input (all strings)."""
    api_base_url: str = ""
    build_slug: str = ""
    app_slug: str = ""

    apk_path: str = ""
    test_apk_path: str = ""
    test_type: str = ""
    test_devices: str = ""
    app_package_id: str = ""
    test_timeout: str = ""

    inst_test_package_id: str = ""
    inst_test_runner_class: str = ""
    inst_test_targets: str = ""

    robo_initial_activity: str = ""
    robo_max_depth: str = ""
    robo_max_steps: str = ""
    robo_directives: str = ""

    loop_scenarios: str = ""
    loop_scenario_labels: str = ""

    api_version: str = ""
    poll_grace_seconds: str = ""

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StepConfig":
        """Build a config from environment variables (``os.environ`` by default)."""
        if environ is None:
            environ = os.environ
        return cls(**{name: environ.get(env, "") for name, env in ENV_NAMES.items()})

    @classmethod
    def from_yaml(cls, path: str, environ: Optional[Mapping[str, str]] = None) -> "StepConfig":
        """Load a YAML mapping keyed by the environment variable names.

        Non-empty environment values win over the file so a CI job can
        override a checked-in config.
        """
        if environ is None:
            environ = os.environ
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Failed to read config file ({path}): {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file ({path}): {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid config file (expected mapping): {path}")

        values: dict[str, str] = {}
        for name, env in ENV_NAMES.items():
            env_value = environ.get(env, "")
            if env_value:
                values[name] = env_value
            else:
                sep = "\n" if name in _LINE_FIELDS else ","
                values[name] = _yaml_value(data.get(env), sep)
        return cls(**values)

    def validate(self) -> None:
        """Raise ``ConfigError`` for missing or invalid required inputs.

        Numeric and list parameters are checked later, when the matrix is
        built.
        """
        _require(self.api_base_url, "APIBaseURL")
        _require(self.build_slug, "BuildSlug")
        _require(self.app_slug, "AppSlug")
        _require(self.test_type, "TestType")
        if self.test_type not in TEST_TYPES:
            raise ConfigError(
                f"Issue with TestType: invalid parameter: {self.test_type}, "
                f"available: {list(TEST_TYPES)}"
            )
        _require(self.apk_path, "ApkPath")
        _require_path(self.apk_path, "ApkPath")
        if self.test_type == TEST_TYPE_INSTRUMENTATION:
            _require(self.test_apk_path, "TestApkPath")
            _require_path(self.test_apk_path, "TestApkPath")
        if self.api_version and self.api_version not in API_VERSIONS:
            raise ConfigError(
                f"Issue with APIVersion: invalid parameter: {self.api_version}, "
                f"available: {list(API_VERSIONS)}"
            )

    @property
    def resolved_api_version(self) -> str:
        return self.api_version or DEFAULT_API_VERSION

    def summary(self) -> list[tuple[str, str]]:
        """Ordered (label, value) pairs logged at start-up."""
        return [
            ("APIBaseURL", self.api_base_url),
            ("BuildSlug", self.build_slug),
            ("AppSlug", self.app_slug),
            ("ApkPath", self.apk_path),
            ("TestApkPath", self.test_apk_path),
            ("TestType", self.test_type),
            ("AppPackageID", self.app_package_id),
            ("TestTimeout", self.test_timeout),
            ("APIVersion", self.resolved_api_version),
            ("TestDevices", "\n" + self.test_devices if self.test_devices else ""),
        ]

    def log_summary(self) -> None:
        logger.info("Configs:")
        for label, value in self.summary():
            logger.info("- %s: %s", label, value)

    def as_dict(self) -> dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _yaml_value(value: Any, sep: str) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return sep.join(str(v) for v in value)
    return str(value)


def _require(value: str, label: str) -> None:
    if not value:
        raise ConfigError(f"Issue with {label}: parameter not specified")


def _require_path(path: str, label: str) -> None:
    if not os.path.exists(path):
        raise ConfigError(f"Issue with {label}: path not exist at: {path}")
