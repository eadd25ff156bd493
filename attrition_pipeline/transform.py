"""Normalize raw staged observation fields into typed, nullable values."""

import logging
import re
from collections import Counter
from collections.abc import Callable

import pandas as pd

from attrition_pipeline.utils.types import IssueKind, NormalizationResult, RowIssue

logger = logging.getLogger(__name__)

type Parser = Callable[[str], int | float]

TEXT_FIELDS = [
    "employee_id",
    "department",
    "gender",
    "marital_status",
    "business_travel",
    "over_time",
    "office_code",
    "attrition",
]

# raw column -> typed column
INTEGER_FIELDS = {
    "survey_year": "survey_year",
    "age": "age",
    "monthly_income": "monthly_income",
    "total_working_years": "total_working_years",
    "years_at_company": "years_at_company",
    "years_with_curr_manager": "years_with_curr_manager",
    "job_satisfaction": "satisfaction_score",
    "work_life_balance": "work_life_balance",
}
DECIMAL_FIELDS = {"survey_external_rating": "survey_external_rating"}
LEVEL_FIELDS = {"job_level_updated": "job_level_num"}

OBSERVATION_COLUMNS = [
    "employee_id",
    "survey_year",
    "survey_external_rating",
    "department",
    "job_level_num",
    "office_code",
    "gender",
    "marital_status",
    "business_travel",
    "over_time",
    "age",
    "monthly_income",
    "total_working_years",
    "years_at_company",
    "years_with_curr_manager",
    "satisfaction_score",
    "work_life_balance",
    "attrition",
]

_INTEGER_RE = re.compile(r"[+-]?\d+")
_DECIMAL_RE = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)")
_LEVEL_RE = re.compile(r"\D*?(\d+)")


def parse_integer(value: str) -> int:
    if not _INTEGER_RE.fullmatch(value):
        raise ValueError(f"not an integer: {value!r}")
    return int(value)


def parse_decimal(value: str) -> float:
    if not _DECIMAL_RE.fullmatch(value):
        raise ValueError(f"not a decimal: {value!r}")
    return float(value)


def parse_level(value: str) -> int:
    """Strip the category prefix from a leveled code: ``"L3"`` -> ``3``."""
    match = _LEVEL_RE.fullmatch(value)
    if match is None:
        raise ValueError(f"not a leveled code: {value!r}")
    return int(match.group(1))


def clean_text(value: object) -> str | None:
    """Pass a raw text value through as-is; empty strings and missing values become None."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value)
    return text or None


def _text_column(raw: pd.DataFrame, name: str) -> pd.Series:
    if name not in raw.columns:
        return pd.Series([None] * len(raw), index=raw.index, dtype=object)
    return pd.Series([clean_text(v) for v in raw[name]], index=raw.index, dtype=object)


def _parse_column(
    raw: pd.DataFrame,
    name: str,
    parser: Parser,
    dtype: str,
    failures: list[tuple[object, str, str]],
) -> pd.Series:
    """Parse one raw column, recording (row index, field, value) for garbage."""
    parsed = []
    for idx, value in _text_column(raw, name).items():
        text = value.strip() if value is not None else ""
        if not text:
            parsed.append(None)
            continue
        try:
            parsed.append(parser(text))
        except ValueError:
            failures.append((idx, name, value))
            parsed.append(None)
    return pd.Series(parsed, index=raw.index, dtype=dtype)


def empty_observations() -> pd.DataFrame:
    frame = pd.DataFrame({col: pd.Series(dtype=object) for col in OBSERVATION_COLUMNS})
    for col in [*INTEGER_FIELDS.values(), *LEVEL_FIELDS.values()]:
        frame[col] = frame[col].astype("Int64")
    frame["survey_external_rating"] = frame["survey_external_rating"].astype("Float64")
    return frame


def normalize_observations(raw: pd.DataFrame) -> NormalizationResult:
    """Convert raw text observations into typed observations.

    Each raw row yields one typed row. A numeric field holding non-numeric
    text is nulled and reported as a parse issue keyed by employee and year;
    the rest of the batch is unaffected. Rows without an employee id cannot
    be attributed to anyone, so they are reported and left out.
    """
    if raw.empty:
        return NormalizationResult(empty_observations())
    if "employee_id" not in raw.columns:
        raise ValueError("Raw observations are missing required column 'employee_id'")

    raw = raw.reset_index(drop=True)
    failures: list[tuple[object, str, str]] = []
    typed = pd.DataFrame(index=raw.index)

    for name in TEXT_FIELDS:
        typed[name] = _text_column(raw, name)
    for name, target in INTEGER_FIELDS.items():
        typed[target] = _parse_column(raw, name, parse_integer, "Int64", failures)
    for name, target in DECIMAL_FIELDS.items():
        typed[target] = _parse_column(raw, name, parse_decimal, "Float64", failures)
    for name, target in LEVEL_FIELDS.items():
        typed[target] = _parse_column(raw, name, parse_level, "Int64", failures)

    issues = [
        RowIssue(
            kind=IssueKind.PARSE,
            message=f"Could not parse {field} value {value!r}",
            employee_id=typed.at[idx, "employee_id"],
            survey_year=_optional_int(typed.at[idx, "survey_year"]),
            field=field,
            value=value,
        )
        for idx, field, value in failures
    ]

    missing_id = typed["employee_id"].isna()
    for idx in typed.index[missing_id]:
        issues.append(
            RowIssue(
                kind=IssueKind.PARSE,
                message="Observation has no employee_id and was excluded",
                survey_year=_optional_int(typed.at[idx, "survey_year"]),
                field="employee_id",
            )
        )
    typed = typed.loc[~missing_id, OBSERVATION_COLUMNS].reset_index(drop=True)

    if issues:
        by_field = Counter(issue.field for issue in issues)
        logger.warning("Parse issues by field: %s", dict(by_field))
    logger.info("Normalized %d observations (%d issues)", len(typed), len(issues))
    return NormalizationResult(typed, issues)


def _optional_int(value: object) -> int | None:
    return None if pd.isna(value) else int(value)
