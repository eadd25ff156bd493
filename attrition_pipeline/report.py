"""Format KPI tables into a console report."""

from datetime import datetime

import pandas as pd
from rich.console import Console
from rich.table import Table

from attrition_pipeline.aggregate import KPI_BY_NAME, Metric
from attrition_pipeline.utils.types import KpiTables, RowIssue

type ReportSection = dict[str, str | pd.DataFrame | list[str]]
type AttritionReport = list[ReportSection]

console = Console()


def _notes_for(name: str, table: pd.DataFrame) -> list[str]:
    """One-line takeaways for a KPI table."""
    if table.empty:
        return ["No data available"]

    notes = []
    if Metric.ATTRITION_RATE in table.columns:
        top = table.loc[table[Metric.ATTRITION_RATE].idxmax()]
        notes.append(
            f"Highest attrition: {top['bucket']} at {top[Metric.ATTRITION_RATE]:.2f}% "
            f"({top['count']} employees)"
        )

    match name:
        case "final_year_mood":
            by_flag = table.set_index("bucket")
            if {"Yes", "No"}.issubset(by_flag.index):
                leavers = by_flag.at["Yes", Metric.AVG_EXTERNAL_RATING]
                stayers = by_flag.at["No", Metric.AVG_EXTERNAL_RATING]
                if pd.notna(leavers) and pd.notna(stayers):
                    notes.append(f"Final-year rating: leavers {leavers:.2f} vs stayers {stayers:.2f}")
        case "departure_trend":
            peak = table.loc[table["count"].idxmax()]
            notes.append(f"Most departures in {peak['bucket']} ({peak['count']} leavers)")
        case _:
            pass

    return notes


def build_report(kpis: KpiTables) -> AttritionReport:
    """Assemble report sections, one per KPI table, behind a header section."""
    report: AttritionReport = [{
        "title": "Attrition KPI Report",
        "body": f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}",
        "notes": [f"Includes {len(kpis)} KPI tables"],
    }]

    for name, table in kpis.items():
        kpi = KPI_BY_NAME.get(name)
        report.append({
            "title": kpi.title if kpi else name,
            "body": table,
            "notes": _notes_for(name, table),
        })
    return report


def _format_cell(value: object) -> str:
    if value is None or pd.isna(value):
        return "-"
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def _to_table(title: str, df: pd.DataFrame) -> Table:
    table = Table(title=title)
    for i, col in enumerate(df.columns):
        table.add_column(str(col), style="cyan" if i == 0 else None, justify="left" if i == 0 else "right")
    for row in df.itertuples(index=False):
        table.add_row(*(_format_cell(v) for v in row))
    return table


def print_report(report: AttritionReport, out: Console | None = None) -> None:
    out = out or console
    for section in report:
        match section:
            case {"title": title, "body": pd.DataFrame() as body, "notes": notes}:
                out.print(_to_table(title, body))
                for note in notes:
                    out.print(f"  [dim]{note}[/dim]")
            case {"title": title, "body": body, "notes": notes}:
                out.print(f"[bold]{title}[/bold] {body}")
                for note in notes:
                    out.print(f"  {note}")


def print_issues(issues: list[RowIssue], out: Console | None = None, limit: int = 20) -> None:
    """Show the first ``limit`` data issues so bad rows are visible to the operator."""
    out = out or console
    if not issues:
        out.print("[green]No data issues found.[/green]")
        return

    table = Table(title=f"Data issues ({len(issues)})")
    for col in ("Kind", "Employee", "Year", "Field", "Message"):
        table.add_column(col)
    for issue in issues[:limit]:
        table.add_row(
            str(issue.kind),
            _format_cell(issue.employee_id),
            _format_cell(issue.survey_year),
            _format_cell(issue.field),
            issue.message,
        )
    out.print(table)
    if len(issues) > limit:
        out.print(f"[yellow]... {len(issues) - limit} more issues not shown[/yellow]")
