"""Pandera schemas for staged inputs, typed observations, and KPI outputs."""

import pandera as pa
from pandera import Check, Column

type ColumnName = str


def _text(nullable: bool = True, required: bool = True) -> Column:
    """Free-form text column as staged from CSV (any string dtype)."""
    return Column(
        checks=Check(lambda v: isinstance(v, str), element_wise=True, name="is_text"),
        nullable=nullable,
        required=required,
    )


RAW_OBSERVATION_FIELDS: list[ColumnName] = [
    "employee_id",
    "survey_year",
    "survey_external_rating",
    "age",
    "gender",
    "marital_status",
    "department",
    "job_level_updated",
    "office_code",
    "business_travel",
    "over_time",
    "monthly_income",
    "total_working_years",
    "years_at_company",
    "years_with_curr_manager",
    "job_satisfaction",
    "work_life_balance",
    "attrition",
]

raw_observation_schema = pa.DataFrameSchema(
    {
        name: _text(nullable=name != "employee_id", required=name == "employee_id")
        for name in RAW_OBSERVATION_FIELDS
    },
    strict=False,
)

raw_employee_schema = pa.DataFrameSchema(
    {
        "employee_id": _text(nullable=False),
        "department": _text(nullable=False),
        "job_level_updated": _text(nullable=False),
        "attrition": _text(),
    },
    strict=False,
)

survey_schema = pa.DataFrameSchema(
    {
        "emp_id": _text(nullable=False),
        "rated_year": _text(nullable=False),
        "rating": _text(nullable=False),
        "off_cde": _text(required=False),
    },
    strict=False,
)

office_schema = pa.DataFrameSchema(
    {
        "office_code": _text(nullable=False),
        "city": _text(nullable=False),
        "region": _text(required=False),
        "country": _text(nullable=False),
    },
    strict=False,
)

job_position_schema = pa.DataFrameSchema(
    {
        "department": _text(nullable=False),
        "job_level": _text(nullable=False),
        "job_role": _text(nullable=False),
    },
    strict=False,
)


observation_schema = pa.DataFrameSchema(
    {
        "employee_id": _text(nullable=False),
        "survey_year": Column("Int64", nullable=True),
        "survey_external_rating": Column("Float64", nullable=True),
        "age": Column("Int64", Check.greater_than_or_equal_to(0), nullable=True),
        "monthly_income": Column("Int64", Check.greater_than_or_equal_to(0), nullable=True),
        "total_working_years": Column("Int64", nullable=True),
        "years_at_company": Column("Int64", nullable=True),
        "years_with_curr_manager": Column("Int64", nullable=True),
        "job_level_num": Column("Int64", nullable=True),
        "satisfaction_score": Column("Int64", Check.in_range(1, 4), nullable=True),
        "work_life_balance": Column("Int64", Check.in_range(1, 4), nullable=True),
        "over_time": _text(),
        "attrition": _text(),
    },
    strict=False,
)

enriched_observation_schema = observation_schema.add_columns(
    {
        "office_country": _text(),
        "job_role": _text(),
    }
)

snapshot_schema = enriched_observation_schema.update_column(
    "employee_id",
    unique=True,
)


kpi_schema = pa.DataFrameSchema(
    {
        "bucket": Column(nullable=False),
        "count": Column("int64", Check.greater_than(0)),
        "attrition_rate_pct": Column(float, Check.in_range(0, 100), required=False),
        "avg_external_rating": Column(float, nullable=True, required=False),
        "avg_work_life_balance": Column(float, nullable=True, required=False),
    },
    strict=True,
)
