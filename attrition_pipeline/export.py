"""Write KPI tables and the data-issue log to the output directory."""

from pathlib import Path

import pandas as pd
from rich.console import Console

from attrition_pipeline.utils.io import write_output
from attrition_pipeline.utils.types import PipelineResult, issues_frame

console = Console()


def write_attrition_output(
    result: PipelineResult,
    output_dir: Path,
    fmt: str = "csv",
    run_id: str | None = None,
) -> Path:
    """Write one file per KPI plus ``issues`` and a JSON manifest into a run directory.

    The snapshot and history are recomputed on every run and are not written.
    """
    run_id = run_id or pd.Timestamp.now().strftime("%Y%m%d_%H%M%S")
    run_dir = Path(output_dir) / run_id
    console.print(f"  Writing outputs to {run_dir}")

    manifest = []
    for name, table in result.kpis.items():
        # bucket mixes ints and "Unknown"; columnar formats need one type
        table = table.assign(bucket=table["bucket"].astype(str))
        path = write_output(table, run_dir / "kpis" / name, fmt)
        manifest.append({"artifact": name, "path": str(path), "rows": len(table)})

    issues_path = write_output(issues_frame(result.issues), run_dir / "issues", fmt)
    manifest.append({"artifact": "issues", "path": str(issues_path), "rows": len(result.issues)})

    pd.DataFrame(manifest).to_json(run_dir / "manifest.json", orient="records", indent=2)
    console.print(f"  Export complete ({fmt} format, {len(result.kpis)} KPI tables)")
    return run_dir
