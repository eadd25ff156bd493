"""Shared utilities for the attrition pipeline."""

from attrition_pipeline.utils.io import read_csv_files, read_text_csv, write_output
from attrition_pipeline.utils.transforms import normalize_columns, merge_datasets
from attrition_pipeline.utils.validators import validate_dataframe
from attrition_pipeline.utils.types import (
    DataIntegrityError,
    IssueKind,
    PipelineResult,
    RowIssue,
)
