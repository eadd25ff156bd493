"""Shared type definitions for the pipeline."""

from dataclasses import dataclass, field
from enum import StrEnum

import pandas as pd


type EmployeeID = str
type BucketLabel = str | int
type KpiTables = dict[str, pd.DataFrame]
type MetricValue = int | float | None


class IssueKind(StrEnum):
    PARSE = "parse"
    INTEGRITY = "integrity"


class DataIntegrityError(ValueError):
    """A natural key that must be unique matched more than one row."""


@dataclass(frozen=True)
class RowIssue:
    kind: IssueKind
    message: str
    employee_id: EmployeeID | None = None
    survey_year: int | None = None
    field: str | None = None
    value: str | None = None

    def as_dict(self) -> dict[str, str | int | None]:
        return {
            "kind": str(self.kind),
            "employee_id": self.employee_id,
            "survey_year": self.survey_year,
            "field": self.field,
            "value": self.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class NormalizationResult:
    frame: pd.DataFrame
    issues: list[RowIssue] = field(default_factory=list)


@dataclass(frozen=True)
class JoinResult:
    frame: pd.DataFrame
    issues: list[RowIssue] = field(default_factory=list)


@dataclass(frozen=True)
class SnapshotResult:
    frame: pd.DataFrame
    issues: list[RowIssue] = field(default_factory=list)


@dataclass(frozen=True)
class KpiResult:
    frame: pd.DataFrame
    issues: list[RowIssue] = field(default_factory=list)


@dataclass(frozen=True)
class PipelineResult:
    history: pd.DataFrame
    snapshot: pd.DataFrame
    kpis: KpiTables
    issues: list[RowIssue] = field(default_factory=list)


def issues_frame(issues: list[RowIssue]) -> pd.DataFrame:
    """Flatten collected issues into a DataFrame for export and display."""
    columns = ["kind", "employee_id", "survey_year", "field", "value", "message"]
    return pd.DataFrame([issue.as_dict() for issue in issues], columns=columns)
