"""Shared fixtures: staged raw rows and dimension tables."""

import pandas as pd
import pytest

from attrition_pipeline.transform import normalize_observations

BASE_RAW = {
    "employee_id": "1",
    "survey_year": "2020",
    "survey_external_rating": "3.5",
    "age": "30",
    "gender": "Male",
    "marital_status": "Single",
    "department": "Sales",
    "job_level_updated": "L2",
    "office_code": "NYC",
    "business_travel": "Travel_Rarely",
    "over_time": "No",
    "monthly_income": "5000",
    "total_working_years": "8",
    "years_at_company": "3",
    "years_with_curr_manager": "2",
    "job_satisfaction": "3",
    "work_life_balance": "3",
    "attrition": "No",
}


def make_raw(employee_id, survey_year, **fields):
    """Build one raw text observation row, overriding the base values."""
    row = dict(BASE_RAW)
    row["employee_id"] = str(employee_id)
    row["survey_year"] = "" if survey_year is None else str(survey_year)
    row.update(fields)
    return row


def make_observations(rows):
    """Normalize raw rows into typed observations."""
    return normalize_observations(pd.DataFrame(rows)).frame


@pytest.fixture
def offices_frame():
    return pd.DataFrame({
        "office_code": ["NYC", "LON", "BLR"],
        "city": ["New York", "London", "Bengaluru"],
        "province": ["NY", "Greater London", "Karnataka"],
        "country": ["USA", "UK", "India"],
    })


@pytest.fixture
def positions_frame():
    return pd.DataFrame({
        "department": ["Sales", "Sales", "Research & Development"],
        "job_level": ["L2", "L3", "L2"],
        "job_role": ["Sales Executive", "Sales Manager", "Research Scientist"],
    })


@pytest.fixture
def raw_history():
    """Four employees: a leaver, a stayer, a row with a bad age, and an unsurveyed leaver."""
    return pd.DataFrame([
        make_raw("E1", 2019, over_time="Yes"),
        make_raw("E1", 2020, over_time="Yes"),
        make_raw("E1", 2021, over_time="Yes", attrition="Yes", survey_external_rating="2.0"),
        make_raw("E2", 2020, over_time="Yes"),
        make_raw("E2", 2021, over_time="Yes", survey_external_rating="4.0"),
        make_raw("E3", 2021, over_time="No", age="abc", office_code="ZZZ"),
        make_raw("E4", None, over_time="Yes", attrition="Yes", survey_external_rating=""),
    ])
