"""Data models for the submitted test matrix and the polled run status."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


def _compact(doc: dict[str, Any]) -> dict[str, Any]:
    """Drop empty values the same way the service's wire format omits them."""
    return {k: v for k, v in doc.items() if v not in (None, "", 0, False, [], {})}


# ---------------------------------------------------------------------------
# Submitted document
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AndroidDevice:
    """One device configuration of the environment matrix."""
    model_id: str
    version_id: str
    locale: str
    orientation: str

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "androidModelId": self.model_id,
            "androidVersionId": self.version_id,
            "locale": self.locale,
            "orientation": self.orientation,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AndroidDevice":
        return cls(
            model_id=data.get("androidModelId", ""),
            version_id=data.get("androidVersionId", ""),
            locale=data.get("locale", ""),
            orientation=data.get("orientation", ""),
        )


@dataclass(frozen=True)
class RoboDirective:
    """A scripted UI action fed to a robo crawl."""
    resource_name: str
    input_text: str
    action_type: str

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "actionType": self.action_type,
            "inputText": self.input_text,
            "resourceName": self.resource_name,
        })


@dataclass(frozen=True)
class InstrumentationTest:
    app_package_id: str = ""
    test_package_id: str = ""
    test_runner_class: str = ""
    test_targets: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "appPackageId": self.app_package_id,
            "testPackageId": self.test_package_id,
            "testRunnerClass": self.test_runner_class,
            "testTargets": list(self.test_targets),
        })


@dataclass(frozen=True)
class RoboTest:
    app_package_id: str = ""
    app_initial_activity: str = ""
    max_depth: int = 0
    max_steps: int = 0
    robo_directives: tuple[RoboDirective, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "appInitialActivity": self.app_initial_activity,
            "appPackageId": self.app_package_id,
            "maxDepth": self.max_depth,
            "maxSteps": self.max_steps,
            "roboDirectives": [d.to_dict() for d in self.robo_directives],
        })


@dataclass(frozen=True)
class TestLoop:
    app_package_id: str = ""
    scenarios: tuple[int, ...] = ()
    scenario_labels: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "appPackageId": self.app_package_id,
            "scenarioLabels": list(self.scenario_labels),
            "scenarios": list(self.scenarios),
        })


@dataclass(frozen=True)
class TestSpecification:
    """Exactly one of the three variants is set by ``build_matrix``."""
    test_timeout: str = ""
    instrumentation: Optional[InstrumentationTest] = None
    robo: Optional[RoboTest] = None
    game_loop: Optional[TestLoop] = None

    @property
    def populated_variants(self) -> list[str]:
        names = []
        if self.instrumentation is not None:
            names.append("androidInstrumentationTest")
        if self.robo is not None:
            names.append("androidRoboTest")
        if self.game_loop is not None:
            names.append("androidTestLoop")
        return names

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {}
        # An empty variant object is still emitted; the service selects the
        # test kind by key presence.
        if self.instrumentation is not None:
            doc["androidInstrumentationTest"] = self.instrumentation.to_dict()
        if self.robo is not None:
            doc["androidRoboTest"] = self.robo.to_dict()
        if self.game_loop is not None:
            doc["androidTestLoop"] = self.game_loop.to_dict()
        if self.test_timeout:
            doc["testTimeout"] = self.test_timeout
        return doc


@dataclass(frozen=True)
class TestMatrix:
    """Device list x test specification, as POSTed to start a run."""
    devices: tuple[AndroidDevice, ...]
    specification: TestSpecification

    def to_dict(self) -> dict[str, Any]:
        return {
            "environmentMatrix": {
                "androidDeviceList": {
                    "androidDevices": [d.to_dict() for d in self.devices],
                },
            },
            "testSpecification": self.specification.to_dict(),
        }


@dataclass(frozen=True)
class UploadSlots:
    """Signed upload URLs handed out by the assets endpoint."""
    app_url: str
    test_app_url: str = ""


# ---------------------------------------------------------------------------
# Polled status
# ---------------------------------------------------------------------------

@dataclass
class Outcome:
    """Outcome summary of one step plus its per-category detail flags."""
    summary: str = ""
    failure_detail: dict[str, bool] = field(default_factory=dict)
    inconclusive_detail: dict[str, bool] = field(default_factory=dict)
    skipped_detail: dict[str, bool] = field(default_factory=dict)
    success_detail: dict[str, bool] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "Outcome":
        data = data or {}
        return cls(
            summary=data.get("summary", ""),
            failure_detail=dict(data.get("failureDetail") or {}),
            inconclusive_detail=dict(data.get("inconclusiveDetail") or {}),
            skipped_detail=dict(data.get("skippedDetail") or {}),
            success_detail=dict(data.get("successDetail") or {}),
        )


@dataclass
class Step:
    """One per-device result step."""
    state: str = ""
    outcome: Outcome = field(default_factory=Outcome)
    dimensions: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Step":
        dimensions = {}
        for entry in data.get("dimensionValue") or []:
            dimensions[entry.get("key", "")] = entry.get("value", "")
        return cls(
            state=data.get("state", ""),
            outcome=Outcome.from_dict(data.get("outcome")),
            dimensions=dimensions,
        )


@dataclass
class Execution:
    """One test execution of a matrix (one device)."""
    index: int
    state: str = ""
    device: Optional[AndroidDevice] = None
    progress_messages: list[str] = field(default_factory=list)
    outcome: Optional[Outcome] = None

    @classmethod
    def from_dict(cls, index: int, data: dict[str, Any]) -> "Execution":
        env = data.get("environment") or {}
        device = env.get("androidDevice")
        details = data.get("testDetails") or {}
        outcome = data.get("outcome")
        return cls(
            index=index,
            state=data.get("state", ""),
            device=AndroidDevice.from_dict(device) if device else None,
            progress_messages=list(details.get("progressMessages") or []),
            outcome=Outcome.from_dict(outcome) if outcome else None,
        )
