"""Result table for a finished test run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from vdt.models import Outcome, Step

SUMMARY_SUCCESS = "success"
SUMMARY_FAILURE = "failure"
SUMMARY_INCONCLUSIVE = "inconclusive"
SUMMARY_SKIPPED = "skipped"

# (json key, label) in the order the service declares the flags.
FAILURE_FLAGS = (
    ("crashed", "Crashed"),
    ("notInstalled", "NotInstalled"),
    ("otherNativeCrash", "OtherNativeCrash"),
    ("timedOut", "TimedOut"),
    ("unableToCrawl", "UnableToCrawl"),
)
INCONCLUSIVE_FLAGS = (
    ("abortedByUser", "AbortedByUser"),
    ("infrastructureFailure", "InfrastructureFailure"),
)
SKIPPED_FLAGS = (
    ("incompatibleAppVersion", "IncompatibleAppVersion"),
    ("incompatibleArchitecture", "IncompatibleArchitecture"),
    ("incompatibleDevice", "IncompatibleDevice"),
)

HEADERS = ("Model", "API Level", "Locale", "Orientation", "Outcome")
COLUMN_PADDING = 3

_COLORS = {
    SUMMARY_SUCCESS: "\x1b[32;1m",
    SUMMARY_FAILURE: "\x1b[31;1m",
    SUMMARY_INCONCLUSIVE: "\x1b[33;1m",
    SUMMARY_SKIPPED: "\x1b[34;1m",
}
_RESET = "\x1b[0m"


@dataclass
class ReportRow:
    """One device line of the result table."""
    model: str
    api_level: str
    locale: str
    orientation: str
    outcome: str
    summary: str

    @property
    def passed(self) -> bool:
        return self.summary == SUMMARY_SUCCESS

    def cells(self) -> tuple[str, str, str, str, str]:
        return (self.model, self.api_level, self.locale, self.orientation, self.outcome)


def _flags(detail: dict[str, bool], declared: tuple[tuple[str, str], ...]) -> str:
    return "".join(f"({label})" for key, label in declared if detail.get(key))


def outcome_text(outcome: Outcome) -> str:
    """Summary with its set detail flags appended, e.g. ``failure(Crashed)``."""
    text = outcome.summary
    if outcome.summary == SUMMARY_FAILURE:
        text += _flags(outcome.failure_detail, FAILURE_FLAGS)
    elif outcome.summary == SUMMARY_INCONCLUSIVE:
        text += _flags(outcome.inconclusive_detail, INCONCLUSIVE_FLAGS)
    elif outcome.summary == SUMMARY_SKIPPED:
        text += _flags(outcome.skipped_detail, SKIPPED_FLAGS)
    return text


def build_rows(steps: list[Step]) -> list[ReportRow]:
    """One row per step, in the order given."""
    rows = []
    for step in steps:
        dims = step.dimensions
        rows.append(ReportRow(
            model=dims.get("Model", ""),
            api_level=dims.get("Version", ""),
            locale=dims.get("Locale", ""),
            orientation=dims.get("Orientation", ""),
            outcome=outcome_text(step.outcome),
            summary=step.outcome.summary,
        ))
    return rows


def all_passed(rows: list[ReportRow]) -> bool:
    return all(r.passed for r in rows)


def render_table(rows: list[ReportRow], *, color: bool = False) -> str:
    """Render rows as an aligned text table (columns padded by 3 spaces)."""
    table = [HEADERS] + [r.cells() for r in rows]
    widths = [max(len(line[i]) for line in table) for i in range(len(HEADERS))]

    lines = []
    for n, cells in enumerate(table):
        out = []
        for i, cell in enumerate(cells):
            padded = cell.ljust(widths[i] + COLUMN_PADDING)
            summary: Optional[str] = rows[n - 1].summary if n > 0 else None
            if color and i == len(HEADERS) - 1 and summary in _COLORS:
                padded = f"{_COLORS[summary]}{cell}{_RESET}" + " " * (len(padded) - len(cell))
            out.append(padded)
        lines.append("".join(out).rstrip())
    return "\n".join(lines)
