"""Run status documents returned by the poll endpoint.

The service has shipped two shapes for the same conceptual answer:

* ``v1``: a flat list of tool-results steps (``{"steps": [...]}``); the run
  is finished once every step reports ``complete``.
* ``v2``: the test matrix itself (``{"state": ..., "testExecutions": [...]}``)
  with per-execution progress messages; finished once ``state`` is
  ``FINISHED``. Result rows come from ``steps`` when present, otherwise from
  each execution's device and outcome.

Both are exposed through ``RunStatus`` and picked by API version.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from vdt.errors import DecodeError
from vdt.models import Execution, Outcome, Step

STEP_STATE_COMPLETE = "complete"
MATRIX_STATE_FINISHED = "FINISHED"


class RunStatus(ABC):
    """One decoded poll response."""

    @property
    @abstractmethod
    def finished(self) -> bool:
        """True once the run reached its terminal state."""

    @property
    @abstractmethod
    def state(self) -> str:
        """Short human-readable state for progress logging."""

    @abstractmethod
    def steps(self) -> list[Step]:
        """Per-device result steps, in the order the service returned them."""

    def progress(self) -> list[tuple[int, str]]:
        """``(execution_index, message)`` pairs, in document order."""
        return []


class StepListStatus(RunStatus):
    def __init__(self, steps: list[Step]) -> None:
        self._steps = steps

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "StepListStatus":
        return cls([Step.from_dict(s) for s in payload.get("steps") or []])

    @property
    def finished(self) -> bool:
        # No steps yet means the service has not scheduled the devices.
        if not self._steps:
            return False
        return all(s.state == STEP_STATE_COMPLETE for s in self._steps)

    @property
    def state(self) -> str:
        done = sum(1 for s in self._steps if s.state == STEP_STATE_COMPLETE)
        return f"{done}/{len(self._steps)} steps complete"

    def steps(self) -> list[Step]:
        return list(self._steps)


class MatrixStatus(RunStatus):
    def __init__(self, matrix_state: str, executions: list[Execution],
                 steps: list[Step]) -> None:
        self._state = matrix_state
        self._executions = executions
        self._steps = steps

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "MatrixStatus":
        executions = [
            Execution.from_dict(i, e)
            for i, e in enumerate(payload.get("testExecutions") or [])
        ]
        steps = [Step.from_dict(s) for s in payload.get("steps") or []]
        return cls(payload.get("state", ""), executions, steps)

    @property
    def finished(self) -> bool:
        return self._state == MATRIX_STATE_FINISHED

    @property
    def state(self) -> str:
        return self._state or "UNKNOWN"

    @property
    def executions(self) -> list[Execution]:
        return list(self._executions)

    def progress(self) -> list[tuple[int, str]]:
        return [
            (e.index, message)
            for e in self._executions
            for message in e.progress_messages
        ]

    def steps(self) -> list[Step]:
        if self._steps:
            return list(self._steps)
        return [_execution_step(e) for e in self._executions]


def _execution_step(execution: Execution) -> Step:
    dimensions: dict[str, str] = {}
    if execution.device is not None:
        dimensions = {
            "Model": execution.device.model_id,
            "Version": execution.device.version_id,
            "Locale": execution.device.locale,
            "Orientation": execution.device.orientation,
        }
    return Step(
        state=execution.state,
        outcome=execution.outcome or Outcome(),
        dimensions=dimensions,
    )


DECODERS: dict[str, Callable[[dict[str, Any]], RunStatus]] = {
    "v1": StepListStatus.from_payload,
    "v2": MatrixStatus.from_payload,
}


def decode_status(api_version: str, payload: Any) -> RunStatus:
    """Decode a poll response body with the decoder for ``api_version``."""
    decoder = DECODERS.get(api_version)
    if decoder is None:
        raise ValueError(f"Unknown API version: {api_version}")
    if not isinstance(payload, dict):
        raise DecodeError(f"Unexpected status document (expected object): {payload!r}")
    try:
        return decoder(payload)
    except (AttributeError, TypeError, ValueError) as e:
        raise DecodeError(f"Malformed status document: {e}, body: {payload!r}") from e
