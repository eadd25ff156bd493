"""Command-line runner for the attrition pipeline."""

import argparse
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

import attrition_pipeline
from attrition_pipeline.aggregate import KPI_BY_NAME
from attrition_pipeline.config import OUTPUT_FORMATS, load_pipeline_config

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute attrition KPIs from staged HR extracts")
    parser.add_argument("--env", default="production", help="Config environment to load")
    parser.add_argument("--data-dir", help="Directory holding the staged CSV extracts")
    parser.add_argument("--output-dir", help="Directory to write KPI outputs to")
    parser.add_argument("--format", choices=OUTPUT_FORMATS, help="Output file format")
    parser.add_argument(
        "--kpi",
        action="append",
        choices=sorted(KPI_BY_NAME),
        help="Compute only this KPI (repeatable)",
    )
    parser.add_argument("--workers", type=int, help="Threads used to compute KPIs")
    parser.add_argument("--no-write", action="store_true", help="Print the report without writing files")
    parser.add_argument("--validate", action="store_true", help="Only validate staged inputs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    overrides = {
        key: value
        for key, value in {
            "data_dir": args.data_dir,
            "output_dir": args.output_dir,
            "output_format": args.format,
            "kpis": args.kpi,
            "workers": args.workers,
        }.items()
        if value is not None
    }
    try:
        config = load_pipeline_config(args.env, overrides)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(2)

    if args.validate:
        result = attrition_pipeline.validate(config)
        table = Table(title="Validation Results")
        table.add_column("Inputs")
        table.add_column("Valid")
        table.add_column("Details")

        valid = result["status"] == "ok"
        status = "[green]✓[/green]" if valid else "[red]✗[/red]"
        detail = result.get("message", f"{result.get('rows_available', 0)} employees")
        table.add_row(str(config.paths.data_dir), status, detail)
        console.print(table)

        if not valid:
            sys.exit(1)
        return

    try:
        attrition_pipeline.run(config, write=not args.no_write)
    except FileNotFoundError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
