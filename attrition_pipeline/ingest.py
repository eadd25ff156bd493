"""Load staged HR extracts and assemble raw per-year observations."""

import logging
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from attrition_pipeline.models import RAW_OBSERVATION_FIELDS
from attrition_pipeline.utils.io import read_csv_files, read_text_csv
from attrition_pipeline.utils.transforms import merge_datasets, normalize_columns

logger = logging.getLogger(__name__)

EMPLOYEES_FILE = "employees_raw.csv"
SURVEY_PATTERN = "survey*.csv"
OFFICES_FILE = "offices.csv"
JOB_POSITIONS_FILE = "job_positions.csv"

SURVEY_COLUMNS = {
    "emp_id": "employee_id",
    "rated_year": "survey_year",
    "rating": "survey_external_rating",
}


@dataclass(frozen=True)
class StagedInputs:
    employees: pd.DataFrame
    survey: pd.DataFrame
    offices: pd.DataFrame
    job_positions: pd.DataFrame


def _read_optional(path: Path) -> pd.DataFrame:
    if not path.exists():
        logger.warning("Staged file not found, continuing without it: %s", path)
        return pd.DataFrame()
    return normalize_columns(read_text_csv(path))


def load_staged_inputs(data_dir: Path) -> StagedInputs:
    """Read the staged CSV extracts from ``data_dir`` as raw text.

    Survey ratings may be split across several ``survey*.csv`` files (one
    per rating cycle); they are concatenated in file-name order.
    """
    data_dir = Path(data_dir)
    employees_path = data_dir / EMPLOYEES_FILE
    if not employees_path.exists():
        raise FileNotFoundError(f"Employee extract missing: {employees_path}")

    employees = normalize_columns(read_text_csv(employees_path))
    survey = read_csv_files(data_dir, SURVEY_PATTERN)
    if survey.empty:
        logger.warning("No survey extracts matching %s in %s", SURVEY_PATTERN, data_dir)
    else:
        survey = normalize_columns(survey)

    staged = StagedInputs(
        employees=employees,
        survey=survey,
        offices=_read_optional(data_dir / OFFICES_FILE),
        job_positions=_read_optional(data_dir / JOB_POSITIONS_FILE),
    )
    logger.info(
        "Loaded %d employees, %d survey ratings, %d offices, %d job positions",
        len(staged.employees),
        len(staged.survey),
        len(staged.offices),
        len(staged.job_positions),
    )
    return staged


def assemble_raw_observations(employees: pd.DataFrame, survey: pd.DataFrame) -> pd.DataFrame:
    """Left-join staged employee rows with their survey ratings, one row per rated year.

    An employee without survey ratings keeps a single row whose survey
    fields are null. Values stay raw text for the normalizer.
    """
    if employees.empty:
        return pd.DataFrame(columns=RAW_OBSERVATION_FIELDS)

    employees = employees.drop(columns=list(SURVEY_COLUMNS.values())[1:], errors="ignore").copy()
    employees["employee_id"] = employees["employee_id"].astype(object).map(_strip_key)

    if survey.empty:
        ratings = pd.DataFrame({col: pd.Series(dtype=object) for col in SURVEY_COLUMNS.values()})
    else:
        ratings = survey.rename(columns=SURVEY_COLUMNS)[list(SURVEY_COLUMNS.values())].copy()
        ratings["employee_id"] = ratings["employee_id"].astype(object).map(_strip_key)

    observations = merge_datasets(employees, ratings, on="employee_id", how="left")
    unrated = observations["survey_year"].isna().sum()
    if unrated:
        logger.info("%d employees have no survey ratings", unrated)

    logger.info("Assembled %d raw observations from %d employees", len(observations), len(employees))
    return observations


def _strip_key(value: object) -> object:
    return value.strip() if isinstance(value, str) else value
