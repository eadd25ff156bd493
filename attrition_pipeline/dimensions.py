"""Reference dimensions (offices, job positions) and the dimensional join."""

import logging
from dataclasses import dataclass
from types import MappingProxyType

import pandas as pd

from attrition_pipeline.transform import clean_text, parse_level
from attrition_pipeline.utils.transforms import merge_datasets, normalize_columns
from attrition_pipeline.utils.types import DataIntegrityError, IssueKind, JoinResult, RowIssue
from attrition_pipeline.utils.validators import find_duplicate_keys, validate_referential_integrity

logger = logging.getLogger(__name__)

type PositionKey = tuple[str, int]


@dataclass(frozen=True)
class Office:
    code: str
    city: str | None
    region: str | None
    country: str | None


def _resolve_duplicates(
    df: pd.DataFrame,
    key: list[str],
    dimension: str,
    strict: bool,
) -> tuple[pd.DataFrame, list[RowIssue]]:
    """Enforce natural-key uniqueness: raise when strict, else keep the first row."""
    dup_keys = find_duplicate_keys(df, key)
    if dup_keys.empty:
        return df, []

    labels = [tuple(row) for row in dup_keys.itertuples(index=False)]
    if strict:
        raise DataIntegrityError(f"Ambiguous {dimension} keys {key}: {labels}")

    logger.warning("Ambiguous %s keys %s, keeping first row for: %s", dimension, key, labels)
    issues = [
        RowIssue(
            kind=IssueKind.INTEGRITY,
            message=f"Ambiguous {dimension} key {label}; first row kept",
            field="/".join(key),
            value="/".join(str(part) for part in label),
        )
        for label in labels
    ]
    return df.drop_duplicates(subset=key, keep="first"), issues


def _clean_frame(df: pd.DataFrame, columns: list[str]) -> pd.DataFrame:
    df = df.reset_index(drop=True)
    cleaned = pd.DataFrame(index=df.index)
    for col in columns:
        values = df[col] if col in df.columns else [None] * len(df)
        cleaned[col] = pd.Series([clean_text(v) for v in values], index=df.index, dtype=object)
    return cleaned


class OfficeDirectory:
    """Read-only office lookup keyed by office code."""

    def __init__(self, offices: dict[str, Office], issues: list[RowIssue] | None = None):
        self._offices = MappingProxyType(dict(offices))
        self.issues = list(issues or [])

    @classmethod
    def from_frame(cls, df: pd.DataFrame, strict: bool = True) -> "OfficeDirectory":
        """Build from staged office rows (``office_code, city, region|province, country``)."""
        if df.empty:
            return cls({})

        df = normalize_columns(df, {"province": "region"})
        df = _clean_frame(df, ["office_code", "city", "region", "country"])
        df = df[df["office_code"].notna()]
        df, issues = _resolve_duplicates(df, ["office_code"], "office", strict)

        offices = {
            row.office_code: Office(row.office_code, row.city, row.region, row.country)
            for row in df.itertuples(index=False)
        }
        logger.info("Loaded %d offices", len(offices))
        return cls(offices, issues)

    def __len__(self) -> int:
        return len(self._offices)

    def __contains__(self, code: object) -> bool:
        return code in self._offices

    def lookup(self, code: str | None) -> Office | None:
        return self._offices.get(code) if code is not None else None

    def as_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "office_code": pd.Series(list(self._offices), dtype=object),
            "office_country": pd.Series([o.country for o in self._offices.values()], dtype=object),
        })


class JobPositionCatalog:
    """Read-only job-role lookup keyed by (department, job level)."""

    def __init__(self, roles: dict[PositionKey, str | None], issues: list[RowIssue] | None = None):
        self._roles = MappingProxyType(dict(roles))
        self.issues = list(issues or [])

    @classmethod
    def from_frame(cls, df: pd.DataFrame, strict: bool = True) -> "JobPositionCatalog":
        """Build from staged position rows; levels like ``"L3"`` are stored as ``3``."""
        if df.empty:
            return cls({})

        df = _clean_frame(normalize_columns(df), ["department", "job_level", "job_role"])
        issues: list[RowIssue] = []
        levels = []
        for value in df["job_level"]:
            try:
                levels.append(parse_level(value.strip()) if value is not None else None)
            except ValueError:
                issues.append(RowIssue(
                    kind=IssueKind.PARSE,
                    message=f"Job position level {value!r} is not a leveled code; row skipped",
                    field="job_level",
                    value=value,
                ))
                levels.append(None)
        df["job_level_num"] = pd.Series(levels, index=df.index, dtype="Int64")
        df = df[df["department"].notna() & df["job_level_num"].notna()]

        df, dup_issues = _resolve_duplicates(df, ["department", "job_level_num"], "job position", strict)
        roles = {
            (row.department, int(row.job_level_num)): row.job_role
            for row in df.itertuples(index=False)
        }
        logger.info("Loaded %d job positions", len(roles))
        return cls(roles, issues + dup_issues)

    def __len__(self) -> int:
        return len(self._roles)

    def __contains__(self, key: object) -> bool:
        return key in self._roles

    def lookup(self, department: str | None, job_level: int | None) -> str | None:
        if department is None or job_level is None:
            return None
        return self._roles.get((department, int(job_level)))

    def as_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "department": pd.Series([dept for dept, _ in self._roles], dtype=object),
            "job_level_num": pd.Series([level for _, level in self._roles], dtype="Int64"),
            "job_role": pd.Series(list(self._roles.values()), dtype=object),
        })


def join_dimensions(
    observations: pd.DataFrame,
    offices: OfficeDirectory,
    positions: JobPositionCatalog,
) -> JoinResult:
    """Attach ``office_country`` and ``job_role`` with left-join semantics.

    Lookup misses leave nulls; the output has exactly one row per input row,
    in input order.
    """
    office_frame = offices.as_frame()
    position_frame = positions.as_frame()

    enriched = merge_datasets(observations, office_frame, on="office_code", how="left", validate="m:1")
    enriched = merge_datasets(
        enriched,
        position_frame,
        on=["department", "job_level_num"],
        how="left",
        validate="m:1",
    )
    if len(enriched) != len(observations):
        raise DataIntegrityError(
            f"Dimension join changed row count from {len(observations)} to {len(enriched)}"
        )

    office_check = validate_referential_integrity(observations, office_frame, "office_code", "office_code")
    if not office_check["valid"]:
        logger.warning("Office lookup misses: %s", "; ".join(office_check["errors"]))

    position_misses = (
        enriched["department"].notna()
        & enriched["job_level_num"].notna()
        & enriched["job_role"].isna()
    )
    if position_misses.any():
        sample = (
            enriched.loc[position_misses, ["department", "job_level_num"]]
            .drop_duplicates()
            .head(5)
            .itertuples(index=False)
        )
        logger.warning(
            "Job position lookup misses on %d rows. Sample: %s",
            int(position_misses.sum()),
            [tuple(key) for key in sample],
        )

    logger.info("Joined dimensions onto %d observations", len(enriched))
    return JoinResult(enriched, offices.issues + positions.issues)
