"""Segment-level attrition KPIs over the snapshot and the observation history."""

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import StrEnum

import pandas as pd

from attrition_pipeline import segments
from attrition_pipeline.segments import UNKNOWN_BUCKET, Segment
from attrition_pipeline.snapshot import reduce_to_snapshot
from attrition_pipeline.utils.types import BucketLabel, KpiResult, MetricValue, SnapshotResult

logger = logging.getLogger(__name__)

type RowFilter = Callable[[pd.DataFrame], pd.Series]
type KpiRow = dict[str, BucketLabel | MetricValue]

ATTRITION_YES = "Yes"


class Metric(StrEnum):
    ATTRITION_RATE = "attrition_rate_pct"
    AVG_EXTERNAL_RATING = "avg_external_rating"
    AVG_WORK_LIFE_BALANCE = "avg_work_life_balance"


# metric -> observation column it averages
AVERAGED_FIELDS = {
    Metric.AVG_EXTERNAL_RATING: "survey_external_rating",
    Metric.AVG_WORK_LIFE_BALANCE: "work_life_balance",
}


class Order(StrEnum):
    BUCKET_ASC = "bucket_asc"
    BUCKET_DESC = "bucket_desc"
    COUNT_DESC = "count_desc"
    ATTRITION_RATE_DESC = "attrition_rate_desc"


class Source(StrEnum):
    SNAPSHOT = "snapshot"
    HISTORY = "history"


def departed(frame: pd.DataFrame) -> pd.Series:
    return frame["attrition"] == ATTRITION_YES


def attrition_rate_pct(flags: pd.Series) -> float:
    """Percentage of flags equal to "Yes", to 2 places. ``flags`` must be non-empty."""
    yes = int((flags == ATTRITION_YES).sum())
    return round(100 * yes / len(flags), 2)


def mean_or_none(values: pd.Series) -> float | None:
    """Mean of the non-null values to 2 places, or None when there are none."""
    present = values.dropna()
    if present.empty:
        return None
    return round(float(present.astype("float64").mean()), 2)


def _bucket_key(label: BucketLabel) -> tuple[bool, BucketLabel]:
    unknown = label == UNKNOWN_BUCKET
    return (unknown, 0 if unknown else label)


def _order_rows(rows: list[KpiRow], order: Order) -> list[KpiRow]:
    """Sort KPI rows; metric orderings break ties by bucket, Unknown always sorts last among buckets."""
    rows = sorted(rows, key=lambda r: _bucket_key(r["bucket"]))

    match order:
        case Order.BUCKET_ASC:
            return rows
        case Order.BUCKET_DESC:
            known = [r for r in rows if r["bucket"] != UNKNOWN_BUCKET]
            unknown = [r for r in rows if r["bucket"] == UNKNOWN_BUCKET]
            return known[::-1] + unknown
        case Order.COUNT_DESC:
            return sorted(rows, key=lambda r: r["count"], reverse=True)
        case Order.ATTRITION_RATE_DESC:
            return sorted(rows, key=lambda r: r[str(Metric.ATTRITION_RATE)], reverse=True)
        case other:
            raise ValueError(f"Unsupported KPI order: {other}")


def _kpi_frame(rows: list[KpiRow], metrics: tuple[Metric, ...]) -> pd.DataFrame:
    columns = ["bucket", "count", *(str(m) for m in metrics)]
    result = pd.DataFrame(rows, columns=columns)
    result["bucket"] = result["bucket"].astype(object)
    result["count"] = result["count"].astype("int64")
    for metric in metrics:
        result[str(metric)] = result[str(metric)].astype("float64")
    return result


def aggregate_segments(
    frame: pd.DataFrame,
    segment: Segment,
    metrics: Iterable[Metric] = (Metric.ATTRITION_RATE,),
    where: RowFilter | None = None,
    order: Order = Order.BUCKET_ASC,
) -> pd.DataFrame:
    """Group records into the segment's buckets and compute per-bucket metrics.

    Always reports ``count``; ``metrics`` selects attrition rate and/or the
    null-skipping averages. Buckets only exist when they hold records, so a
    rate is never computed over an empty group.
    """
    metrics = tuple(Metric(m) for m in metrics)
    order = Order(order)
    if order is Order.ATTRITION_RATE_DESC and Metric.ATTRITION_RATE not in metrics:
        raise ValueError("Ordering by attrition rate requires the attrition rate metric")

    if where is not None and not frame.empty:
        frame = frame[where(frame)]
    if frame.empty:
        return _kpi_frame([], metrics)

    rows: list[KpiRow] = []
    for bucket, group in frame.groupby(segment.assign(frame), sort=False):
        row: KpiRow = {"bucket": bucket, "count": len(group)}
        for metric in metrics:
            match metric:
                case Metric.ATTRITION_RATE:
                    row[str(metric)] = attrition_rate_pct(group["attrition"])
                case averaged:
                    row[str(averaged)] = mean_or_none(group[AVERAGED_FIELDS[averaged]])
        rows.append(row)

    return _kpi_frame(_order_rows(rows, order), metrics)


@dataclass(frozen=True)
class KpiDefinition:
    """One reporting query: source set, segmentation, metrics, filter and ordering.

    History-sourced KPIs with ``latest_only`` reduce the filtered history to
    each employee's latest matching observation before grouping.
    """

    name: str
    title: str
    source: Source
    segment: Segment
    metrics: tuple[Metric, ...]
    order: Order = Order.BUCKET_ASC
    where: RowFilter | None = None
    latest_only: bool = False

    def select_records(self, snapshot: pd.DataFrame, history: pd.DataFrame) -> SnapshotResult:
        """The records this KPI groups, plus any ties met while reducing them."""
        frame = snapshot if self.source is Source.SNAPSHOT else history
        if self.where is not None and not frame.empty:
            frame = frame[self.where(frame)]
        if self.latest_only:
            return reduce_to_snapshot(frame)
        return SnapshotResult(frame)

    def compute(self, snapshot: pd.DataFrame, history: pd.DataFrame) -> KpiResult:
        records = self.select_records(snapshot, history)
        table = aggregate_segments(records.frame, self.segment, self.metrics, order=self.order)
        logger.info("KPI %s: %d buckets from %d records", self.name, len(table), len(records.frame))
        return KpiResult(table, records.issues)


_RATE = (Metric.ATTRITION_RATE,)

KPI_DEFINITIONS: list[KpiDefinition] = [
    KpiDefinition(
        "overtime_impact", "Overtime Impact",
        Source.SNAPSHOT, segments.OVERTIME, _RATE,
    ),
    KpiDefinition(
        "income_bracket", "Income Bracket",
        Source.SNAPSHOT, segments.INCOME_BRACKET, _RATE, Order.ATTRITION_RATE_DESC,
    ),
    KpiDefinition(
        "manager_stability", "Manager Stability",
        Source.SNAPSHOT, segments.MANAGER_TENURE, _RATE, Order.ATTRITION_RATE_DESC,
    ),
    KpiDefinition(
        "final_year_mood", "Final Year Mood",
        Source.SNAPSHOT, segments.ATTRITION,
        (Metric.AVG_EXTERNAL_RATING, Metric.AVG_WORK_LIFE_BALANCE),
    ),
    KpiDefinition(
        "departure_trend", "Departures by Year",
        Source.HISTORY, segments.SURVEY_YEAR, (Metric.AVG_EXTERNAL_RATING,), Order.BUCKET_ASC,
        where=departed, latest_only=True,
    ),
    KpiDefinition(
        "business_travel", "Business Travel",
        Source.SNAPSHOT, segments.BUSINESS_TRAVEL, _RATE, Order.COUNT_DESC,
    ),
    KpiDefinition(
        "marital_status", "Marital Status",
        Source.SNAPSHOT, segments.MARITAL_STATUS, _RATE, Order.COUNT_DESC,
    ),
    KpiDefinition(
        "job_satisfaction", "Job Satisfaction",
        Source.SNAPSHOT, segments.JOB_SATISFACTION, _RATE, Order.BUCKET_DESC,
    ),
]

KPI_BY_NAME = {kpi.name: kpi for kpi in KPI_DEFINITIONS}


def select_kpis(names: Iterable[str] | None = None) -> list[KpiDefinition]:
    if not names:
        return list(KPI_DEFINITIONS)
    selected = []
    for name in names:
        if name not in KPI_BY_NAME:
            raise ValueError(f"Unknown KPI: {name}")
        selected.append(KPI_BY_NAME[name])
    return selected


def compute_kpis(
    snapshot: pd.DataFrame,
    history: pd.DataFrame,
    names: Iterable[str] | None = None,
    workers: int = 1,
) -> dict[str, KpiResult]:
    """Compute the selected KPIs (all by default), keyed by KPI name.

    Each result carries its table and the integrity issues found while
    reducing its source records.

    KPIs only read their inputs, so with ``workers > 1`` they run on a
    thread pool without any locking.
    """
    selected = select_kpis(names)

    if workers <= 1 or len(selected) <= 1:
        return {kpi.name: kpi.compute(snapshot, history) for kpi in selected}

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="kpi") as pool:
        futures = {kpi.name: pool.submit(kpi.compute, snapshot, history) for kpi in selected}
        return {name: future.result() for name, future in futures.items()}
