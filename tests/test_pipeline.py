"""End-to-end tests: staged extracts through to KPI tables and exported files."""

import json

import pandas as pd
import pytest

import attrition_pipeline
from attrition_pipeline import run_pipeline
from attrition_pipeline.aggregate import KPI_DEFINITIONS
from attrition_pipeline.config import load_pipeline_config
from attrition_pipeline.dimensions import OfficeDirectory
from attrition_pipeline.export import write_attrition_output
from attrition_pipeline.ingest import assemble_raw_observations, load_staged_inputs
from attrition_pipeline.report import build_report
from attrition_pipeline.utils.types import DataIntegrityError, IssueKind

from conftest import make_raw

KPI_NAMES = {
    "overtime_impact",
    "income_bracket",
    "manager_stability",
    "final_year_mood",
    "departure_trend",
    "business_travel",
    "marital_status",
    "job_satisfaction",
}


class TestRunPipeline:
    def test_produces_all_kpis(self, raw_history, offices_frame, positions_frame):
        result = run_pipeline(raw_history, offices_frame, positions_frame)

        assert set(result.kpis) == KPI_NAMES
        assert len(result.history) == len(raw_history)
        assert sorted(result.snapshot["employee_id"]) == ["E1", "E2", "E3", "E4"]

        overtime = result.kpis["overtime_impact"].set_index("bucket")
        assert overtime.at["Yes", "count"] == 3
        assert overtime.at["Yes", "attrition_rate_pct"] == 66.67
        assert overtime.at["No", "attrition_rate_pct"] == 0.0

    def test_parse_issue_is_isolated(self, raw_history, offices_frame, positions_frame):
        result = run_pipeline(raw_history, offices_frame, positions_frame)
        [issue] = result.issues
        assert issue.kind is IssueKind.PARSE
        assert (issue.employee_id, issue.survey_year, issue.field) == ("E3", 2021, "age")

        e3 = result.snapshot.set_index("employee_id").loc["E3"]
        assert pd.isna(e3["age"])
        assert pd.isna(e3["office_country"])
        assert e3["job_role"] == "Sales Executive"

    def test_departure_trend_uses_history(self, raw_history, offices_frame, positions_frame):
        result = run_pipeline(raw_history, offices_frame, positions_frame)
        trend = result.kpis["departure_trend"]
        assert trend["bucket"].tolist() == [2021, "Unknown"]
        assert trend["count"].tolist() == [1, 1]

    def test_excluding_unsurveyed_employees(self, raw_history, offices_frame, positions_frame):
        result = run_pipeline(raw_history, offices_frame, positions_frame, include_unsurveyed=False)
        assert sorted(result.snapshot["employee_id"]) == ["E1", "E2", "E3"]
        assert result.kpis["overtime_impact"].set_index("bucket").at["Yes", "count"] == 2

    def test_rerun_is_identical(self, raw_history, offices_frame, positions_frame):
        first = run_pipeline(raw_history, offices_frame, positions_frame)
        second = run_pipeline(raw_history, offices_frame, positions_frame, workers=3)
        for name, table in first.kpis.items():
            pd.testing.assert_frame_equal(table, second.kpis[name])
        pd.testing.assert_frame_equal(first.snapshot, second.snapshot)

    def test_empty_input_yields_empty_tables(self):
        result = run_pipeline(pd.DataFrame(), pd.DataFrame(), pd.DataFrame())
        assert set(result.kpis) == KPI_NAMES
        assert all(table.empty for table in result.kpis.values())
        assert result.snapshot.empty
        assert result.issues == []

    def test_prebuilt_dimensions_are_accepted(self, raw_history, offices_frame, positions_frame):
        offices = OfficeDirectory.from_frame(offices_frame)
        result = run_pipeline(raw_history, offices, positions_frame)
        assert result.snapshot.set_index("employee_id").at["E1", "office_country"] == "USA"

    def test_strict_dimensions_raise_on_ambiguous_keys(self, raw_history, offices_frame, positions_frame):
        dup = pd.concat([offices_frame, offices_frame], ignore_index=True)
        with pytest.raises(DataIntegrityError):
            run_pipeline(raw_history, dup, positions_frame, strict_dimensions=True)

    def test_lenient_dimensions_report_ambiguous_keys(self, raw_history, offices_frame, positions_frame):
        dup = pd.concat([offices_frame, offices_frame.iloc[[0]]], ignore_index=True)
        result = run_pipeline(raw_history, dup, positions_frame)
        assert [i.kind for i in result.issues].count(IssueKind.INTEGRITY) == 1
        assert len(result.history) == len(raw_history)

    def test_snapshot_ties_reach_result_issues(self, raw_history, offices_frame, positions_frame):
        raw = pd.concat([raw_history, pd.DataFrame([make_raw("E2", 2021, over_time="No")])], ignore_index=True)
        result = run_pipeline(raw, offices_frame, positions_frame)

        ties = [i for i in result.issues if i.kind is IssueKind.INTEGRITY]
        assert [(i.employee_id, i.survey_year) for i in ties] == [("E2", 2021)]
        assert result.snapshot.set_index("employee_id").at["E2", "over_time"] == "Yes"

    def test_departed_history_ties_reach_result_issues(self, offices_frame, positions_frame):
        raw = pd.DataFrame([
            make_raw("E1", 2021, attrition="No"),
            make_raw("E1", 2020, attrition="Yes"),
            make_raw("E1", 2020, attrition="Yes"),
        ])
        result = run_pipeline(raw, offices_frame, positions_frame)

        [issue] = result.issues
        assert (issue.kind, issue.employee_id, issue.survey_year) == (IssueKind.INTEGRITY, "E1", 2020)
        assert result.kpis["departure_trend"]["count"].tolist() == [1]

    def test_tie_seen_by_both_reductions_is_reported_once(self, offices_frame, positions_frame):
        raw = pd.DataFrame([
            make_raw("E1", 2021, attrition="Yes"),
            make_raw("E1", 2021, attrition="Yes"),
            make_raw("E1", 2021, attrition="No"),
        ])
        result = run_pipeline(raw, offices_frame, positions_frame)
        assert [(i.employee_id, i.survey_year) for i in result.issues] == [("E1", 2021)]

    def test_padded_attrition_flag_is_not_a_departure(self, offices_frame, positions_frame):
        raw = pd.DataFrame([make_raw("E1", 2021, attrition="Yes "), make_raw("E2", 2021, attrition="Yes")])
        result = run_pipeline(raw, offices_frame, positions_frame)
        assert result.kpis["overtime_impact"].set_index("bucket").at["No", "attrition_rate_pct"] == 50.0
        assert result.kpis["departure_trend"]["count"].tolist() == [1]

    def test_report_sections(self, raw_history, offices_frame, positions_frame):
        result = run_pipeline(raw_history, offices_frame, positions_frame)
        report = build_report(result.kpis)
        assert report[0]["title"] == "Attrition KPI Report"
        assert [s["title"] for s in report[1:]][0] == "Overtime Impact"
        overtime_notes = report[1]["notes"]
        assert overtime_notes == ["Highest attrition: Yes at 66.67% (3 employees)"]
        assert [s["title"] for s in report[1:]] == [kpi.title for kpi in KPI_DEFINITIONS]


class TestIngest:
    def test_assemble_left_joins_survey(self):
        employees = pd.DataFrame({
            "employee_id": ["1", "2"],
            "department": ["Sales", "Sales"],
            "job_level_updated": ["L2", "L2"],
            "attrition": ["No", "Yes"],
        })
        survey = pd.DataFrame({
            "emp_id": ["1", "1", "3"],
            "off_cde": ["NYC", "NYC", "LON"],
            "rated_year": ["2020", "2021", "2021"],
            "rating": ["3.1", "3.4", "4.0"],
        })
        raw = assemble_raw_observations(employees, survey)
        assert raw["employee_id"].tolist() == ["1", "1", "2"]
        assert raw["survey_year"].tolist()[:2] == ["2020", "2021"]
        assert pd.isna(raw["survey_year"].iloc[2])

    def test_assemble_without_survey(self):
        employees = pd.DataFrame({"employee_id": ["1"], "department": ["Sales"], "job_level_updated": ["L1"]})
        raw = assemble_raw_observations(employees, pd.DataFrame())
        assert len(raw) == 1
        assert pd.isna(raw["survey_year"].iloc[0])

    def test_load_staged_inputs_reads_text(self, staged_dir):
        staged = load_staged_inputs(staged_dir)
        assert len(staged.employees) == 3
        assert len(staged.survey) == 4
        assert staged.employees.loc[2, "age"] == ""
        assert list(staged.offices.columns) == ["office_code", "city", "province", "country"]

    def test_missing_extract_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_staged_inputs(tmp_path)


@pytest.fixture
def staged_dir(tmp_path):
    (tmp_path / "employees_raw.csv").write_text(
        "Employee ID,Age,Department,Job Level Updated,Office Code,Over Time,"
        "Monthly Income,Years With Curr Manager,Job Satisfaction,Work Life Balance,"
        "Marital Status,Business Travel,Attrition\n"
        "101,34,Sales,L2,NYC,Yes,2500,1,2,3,Single,Travel_Frequently,Yes\n"
        "102,41,Sales,L3,LON,No,12000,6,4,2,Married,Travel_Rarely,No\n"
        "103,,Sales,L2,BLR,No,7000,3,3,,Divorced,Non-Travel,No\n"
    )
    (tmp_path / "survey_2020.csv").write_text(
        "emp_id,off_cde,rated_year,rating\n"
        "101,NYC,2020,3.2\n"
        "102,LON,2020,4.1\n"
    )
    (tmp_path / "survey_2021.csv").write_text(
        "emp_id,off_cde,rated_year,rating\n"
        "101,NYC,2021,2.8\n"
        "102,LON,2021,4.3\n"
    )
    (tmp_path / "offices.csv").write_text(
        "office_code,city,province,country\n"
        "NYC,New York,NY,USA\n"
        "LON,London,Greater London,UK\n"
    )
    (tmp_path / "job_positions.csv").write_text(
        "department,job_level,job_role\n"
        "Sales,L2,Sales Executive\n"
        "Sales,L3,Sales Manager\n"
    )
    return tmp_path


class TestFileRun:
    def test_run_writes_outputs(self, staged_dir, tmp_path):
        output_dir = tmp_path / "out"
        config = load_pipeline_config(
            "development",
            {"data_dir": str(staged_dir), "output_dir": str(output_dir)},
        )
        result = attrition_pipeline.run(config)

        assert len(result.snapshot) == 3
        income = result.kpis["income_bracket"].set_index("bucket")["count"].to_dict()
        assert income == {"Low (<3k)": 1, "High (7k-12k)": 1, "Executive (12k+)": 1}

        [run_dir] = list(output_dir.iterdir())
        manifest = json.loads((run_dir / "manifest.json").read_text())
        assert {entry["artifact"] for entry in manifest} == KPI_NAMES | {"issues"}
        assert (run_dir / "kpis" / "overtime_impact.csv").exists()

    def test_validate_reports_ok(self, staged_dir):
        config = load_pipeline_config("development", {"data_dir": str(staged_dir)})
        assert attrition_pipeline.validate(config) == {"status": "ok", "rows_available": 3}

    def test_validate_reports_missing_inputs(self, tmp_path):
        config = load_pipeline_config("development", {"data_dir": str(tmp_path / "missing")})
        outcome = attrition_pipeline.validate(config)
        assert outcome["status"] == "error"
        assert "missing" in outcome["message"]

    def test_validate_reads_extract_contents(self, staged_dir):
        (staged_dir / "offices.csv").write_text("office_code,city\nNYC,New York\n")
        config = load_pipeline_config("development", {"data_dir": str(staged_dir)})
        outcome = attrition_pipeline.validate(config)
        assert outcome["status"] == "error"
        assert outcome["message"].startswith("offices:")
        assert "country" in outcome["message"]


def test_export_writes_issue_log(raw_history, offices_frame, positions_frame, tmp_path):
    result = run_pipeline(raw_history, offices_frame, positions_frame)
    run_dir = write_attrition_output(result, tmp_path, fmt="json", run_id="run1")

    issues = json.loads((run_dir / "issues.json").read_text())
    assert issues[0]["field"] == "age"
    assert issues[0]["employee_id"] == "E3"
    trend = json.loads((run_dir / "kpis" / "departure_trend.json").read_text())
    assert [row["bucket"] for row in trend] == ["2021", "Unknown"]


def test_parquet_export_round_trips(raw_history, offices_frame, positions_frame, tmp_path):
    result = run_pipeline(raw_history, offices_frame, positions_frame)
    run_dir = write_attrition_output(result, tmp_path, fmt="parquet", run_id="run1")

    trend = pd.read_parquet(run_dir / "kpis" / "departure_trend.parquet")
    assert trend["bucket"].tolist() == ["2021", "Unknown"]
    assert trend["count"].tolist() == [1, 1]
    issues = pd.read_parquet(run_dir / "issues.parquet")
    assert issues[["employee_id", "field"]].values.tolist() == [["E3", "age"]]
