"""Collapse multi-year observation histories into one current-state row per employee."""

import logging
from enum import StrEnum

import numpy as np
import pandas as pd

from attrition_pipeline.utils.types import IssueKind, RowIssue, SnapshotResult

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = ["employee_id", "survey_year"]


class TieBreak(StrEnum):
    """Which observation wins when an employee has two rows for their latest year.

    FIRST_ARRIVAL keeps the row that appears first in the input, LAST_ARRIVAL
    the one that appears last. Either way the tie is reported as an integrity
    issue, since (employee, year) is supposed to be unique.
    """

    FIRST_ARRIVAL = "first_arrival"
    LAST_ARRIVAL = "last_arrival"


def order_latest_first(observations: pd.DataFrame, tie_break: TieBreak) -> pd.DataFrame:
    """Sort by employee, year descending (null years last), then arrival position."""
    ranked = observations.assign(_arrival=np.arange(len(observations)))
    return ranked.sort_values(
        ["employee_id", "survey_year", "_arrival"],
        ascending=[True, False, tie_break is TieBreak.FIRST_ARRIVAL],
        na_position="last",
    )


def _tied_latest(ordered: pd.DataFrame, snapshot: pd.DataFrame) -> pd.Series:
    """Count rows sharing each employee's selected (employee, year) key; keep counts > 1."""
    contenders = ordered[SNAPSHOT_KEY].merge(snapshot[SNAPSHOT_KEY], on=SNAPSHOT_KEY, how="inner")
    counts = contenders.groupby("employee_id").size()
    return counts[counts > 1]


def reduce_to_snapshot(
    observations: pd.DataFrame,
    include_unsurveyed: bool = True,
    tie_break: TieBreak = TieBreak.FIRST_ARRIVAL,
) -> SnapshotResult:
    """Select each employee's observation with the maximum survey year.

    Employees whose only observation has no survey year (no survey history)
    are kept with null survey fields unless ``include_unsurveyed`` is False,
    in which case null-year rows are dropped before reducing.
    """
    if observations.empty:
        return SnapshotResult(observations.iloc[0:0].copy())

    df = observations
    if not include_unsurveyed:
        unsurveyed = df["survey_year"].isna()
        if unsurveyed.any():
            logger.info("Excluding %d observations without a survey year", int(unsurveyed.sum()))
        df = df[~unsurveyed]

    ordered = order_latest_first(df, tie_break)
    snapshot = ordered.drop_duplicates(subset="employee_id", keep="first")

    issues = []
    tied = _tied_latest(ordered, snapshot)
    if not tied.empty:
        years = snapshot.set_index("employee_id")["survey_year"]
        for employee_id, n_rows in tied.items():
            year = years.at[employee_id]
            year = None if pd.isna(year) else int(year)
            logger.warning(
                "Employee %s has %d observations for latest year %s; kept %s",
                employee_id,
                n_rows,
                year,
                tie_break.value.replace("_", " "),
            )
            issues.append(RowIssue(
                kind=IssueKind.INTEGRITY,
                message=f"{n_rows} observations tie for latest year; {tie_break.value} kept",
                employee_id=employee_id,
                survey_year=year,
                field="survey_year",
            ))

    snapshot = snapshot.drop(columns="_arrival").reset_index(drop=True)
    logger.info("Reduced %d observations to %d employee snapshots", len(df), len(snapshot))
    return SnapshotResult(snapshot, issues)
