"""Bucketing rules that turn one snapshot field into a reporting segment."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass

import numpy as np
import pandas as pd

from attrition_pipeline.utils.types import BucketLabel

type BucketRule = Callable[[object], BucketLabel]

UNKNOWN_BUCKET = "Unknown"


def income_bracket(monthly_income: int) -> BucketLabel:
    """Half-open income brackets: 7000 is High, 12000 is Executive."""
    if monthly_income < 3000:
        return "Low (<3k)"
    elif monthly_income < 7000:
        return "Medium (3k-7k)"
    elif monthly_income < 12000:
        return "High (7k-12k)"
    else:
        return "Executive (12k+)"


def manager_tenure(years_with_manager: int) -> BucketLabel:
    if years_with_manager <= 2:
        return "New Manager (0-2y)"
    elif years_with_manager <= 5:
        return "Stable Manager (3-5y)"
    else:
        return "Long-term Manager (5y+)"


def raw_value(value: object) -> BucketLabel:
    """Use the field value itself as the bucket (numpy scalars unwrapped)."""
    if isinstance(value, np.generic):
        return value.item()
    return value


@dataclass(frozen=True)
class Segment:
    """A segmentation: which field to read and how to bucket a non-null value.

    Every segmentation shares one null policy: a record whose field is
    missing lands in the ``"Unknown"`` bucket.
    """

    field: str
    rule: BucketRule = raw_value

    def bucket_for(self, value: object) -> BucketLabel:
        if value is None or pd.isna(value):
            return UNKNOWN_BUCKET
        return self.rule(raw_value(value))

    def __call__(self, record: Mapping[str, object] | pd.Series) -> BucketLabel:
        return self.bucket_for(record.get(self.field))

    def assign(self, frame: pd.DataFrame) -> pd.Series:
        """Bucket every row of ``frame``; the result is an object Series aligned to it."""
        if self.field in frame.columns:
            labels = [self.bucket_for(value) for value in frame[self.field]]
        else:
            labels = [UNKNOWN_BUCKET] * len(frame)
        return pd.Series(labels, index=frame.index, dtype=object)


OVERTIME = Segment("over_time")
INCOME_BRACKET = Segment("monthly_income", income_bracket)
MANAGER_TENURE = Segment("years_with_curr_manager", manager_tenure)
ATTRITION = Segment("attrition")
SURVEY_YEAR = Segment("survey_year")
BUSINESS_TRAVEL = Segment("business_travel")
MARITAL_STATUS = Segment("marital_status")
JOB_SATISFACTION = Segment("satisfaction_score")
