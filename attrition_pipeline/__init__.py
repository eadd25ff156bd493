"""HR attrition analytics pipeline.

Normalizes staged employee/survey extracts, joins the office and job
position dimensions, reduces each employee's history to a latest-year
snapshot, and computes segment-level attrition KPIs.
"""

import logging

import pandas as pd

from attrition_pipeline.aggregate import compute_kpis
from attrition_pipeline.config import PipelineConfig, load_pipeline_config
from attrition_pipeline.dimensions import JobPositionCatalog, OfficeDirectory, join_dimensions
from attrition_pipeline.export import write_attrition_output
from attrition_pipeline.ingest import assemble_raw_observations, load_staged_inputs
from attrition_pipeline.models import (
    enriched_observation_schema,
    job_position_schema,
    kpi_schema,
    office_schema,
    raw_employee_schema,
    raw_observation_schema,
    snapshot_schema,
    survey_schema,
)
from attrition_pipeline.report import build_report, print_issues, print_report
from attrition_pipeline.snapshot import SNAPSHOT_KEY, reduce_to_snapshot
from attrition_pipeline.transform import normalize_observations
from attrition_pipeline.utils.types import PipelineResult
from attrition_pipeline.utils.validators import validate_dataframe, validate_unique

logger = logging.getLogger(__name__)


def _check_schema(name: str, df: pd.DataFrame, schema) -> bool:
    """Log schema failures without stopping the run; row issues are reported separately."""
    result = validate_dataframe(df, schema)
    if not result["valid"]:
        logger.warning(
            "%s failed %d schema checks: %s",
            name,
            len(result["errors"]),
            "; ".join(result["errors"][:3]),
        )
    return result["valid"]


def run_pipeline(
    raw_observations: pd.DataFrame,
    offices: OfficeDirectory | pd.DataFrame,
    job_positions: JobPositionCatalog | pd.DataFrame,
    include_unsurveyed: bool = True,
    strict_dimensions: bool = False,
    kpis: list[str] | None = None,
    workers: int = 1,
) -> PipelineResult:
    """Run normalize -> join -> snapshot -> KPIs over in-memory inputs.

    Dimensions may be passed as staged frames or as prebuilt lookups.
    Row-level problems are collected on the result instead of aborting.
    """
    match offices:
        case OfficeDirectory():
            office_directory = offices
        case pd.DataFrame():
            office_directory = OfficeDirectory.from_frame(offices, strict=strict_dimensions)
        case other:
            raise TypeError(f"Unsupported office dimension: {type(other).__name__}")

    match job_positions:
        case JobPositionCatalog():
            position_catalog = job_positions
        case pd.DataFrame():
            position_catalog = JobPositionCatalog.from_frame(job_positions, strict=strict_dimensions)
        case other:
            raise TypeError(f"Unsupported job position dimension: {type(other).__name__}")

    if not raw_observations.empty:
        _check_schema("raw observations", raw_observations, raw_observation_schema)
    normalized = normalize_observations(raw_observations)
    joined = join_dimensions(normalized.frame, office_directory, position_catalog)
    _check_schema("observations", joined.frame, enriched_observation_schema)

    uniqueness = validate_unique(joined.frame, SNAPSHOT_KEY)
    if not uniqueness["valid"]:
        logger.warning("Observation key check: %s", "; ".join(uniqueness["errors"]))

    snapshot = reduce_to_snapshot(joined.frame, include_unsurveyed=include_unsurveyed)
    _check_schema("snapshot", snapshot.frame, snapshot_schema)
    results = compute_kpis(snapshot.frame, joined.frame, names=kpis, workers=workers)

    tables = {}
    kpi_issues = []
    # a tie is keyed by (employee, year); report each one once
    seen = {(i.employee_id, i.survey_year) for i in snapshot.issues}
    for name, kpi in results.items():
        _check_schema(f"KPI {name}", kpi.frame, kpi_schema)
        tables[name] = kpi.frame
        for issue in kpi.issues:
            key = (issue.employee_id, issue.survey_year)
            if key not in seen:
                seen.add(key)
                kpi_issues.append(issue)

    issues = normalized.issues + joined.issues + snapshot.issues + kpi_issues
    return PipelineResult(
        history=joined.frame,
        snapshot=snapshot.frame,
        kpis=tables,
        issues=issues,
    )


def validate(config: PipelineConfig | None = None) -> dict[str, str | int]:
    """Validate that the staged extracts exist and match their schemas."""
    config = config or load_pipeline_config()
    try:
        staged = load_staged_inputs(config.paths.data_dir)
    except (FileNotFoundError, ValueError) as exc:
        return {"status": "error", "message": str(exc)}

    checks = [
        ("employees", staged.employees, raw_employee_schema),
        ("survey", staged.survey, survey_schema),
        ("offices", staged.offices, office_schema),
        ("job_positions", staged.job_positions, job_position_schema),
    ]
    errors = []
    for name, df, schema in checks:
        if df.empty:
            continue
        result = validate_dataframe(df, schema)
        errors.extend(f"{name}: {err}" for err in result["errors"])

    match errors:
        case []:
            return {"status": "ok", "rows_available": len(staged.employees)}
        case errs:
            return {"status": "error", "message": "; ".join(errs[:3])}


def run(config: PipelineConfig | None = None, write: bool = True) -> PipelineResult:
    """Execute the full file-based pipeline and print the KPI report."""
    config = config or load_pipeline_config()
    staged = load_staged_inputs(config.paths.data_dir)
    raw = assemble_raw_observations(staged.employees, staged.survey)

    result = run_pipeline(
        raw,
        staged.offices,
        staged.job_positions,
        include_unsurveyed=config.include_unsurveyed,
        strict_dimensions=config.strict_dimensions,
        kpis=config.kpis or None,
        workers=config.workers,
    )

    print_report(build_report(result.kpis))
    print_issues(result.issues)
    if write:
        write_attrition_output(result, config.paths.output_dir, config.output_format)
    return result
