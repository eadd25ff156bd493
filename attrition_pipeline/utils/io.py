"""File I/O utilities for reading and writing pipeline data."""

import tomllib
from pathlib import Path

import pandas as pd
from rich.console import Console

type FilePath = str | Path

console = Console()


def read_text_csv(path: FilePath) -> pd.DataFrame:
    """Read a staged CSV keeping every field as raw text.

    Empty cells stay as empty strings so the normalizer decides what is null.
    """
    path = Path(path)
    for encoding in ("utf-8", "latin-1", "cp1252"):
        try:
            return pd.read_csv(path, dtype=str, keep_default_na=False, encoding=encoding)
        except UnicodeDecodeError:
            continue
    raise ValueError(f"Could not decode {path}")


def read_csv_files(directory: FilePath, pattern: str = "*.csv") -> pd.DataFrame:
    """Read all matching text CSVs from a directory and concatenate them."""
    directory = Path(directory)
    chunks = []

    for csv_file in sorted(directory.glob(pattern)):
        console.print(f"  Reading {csv_file.name}...")
        chunks.append(read_text_csv(csv_file))

    if not chunks:
        return pd.DataFrame()
    return pd.concat(chunks, ignore_index=True)


def write_output(df: pd.DataFrame, path: FilePath, fmt: str = "csv") -> Path:
    """Write a DataFrame to the specified format, returning the written path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    match fmt:
        case "csv":
            path = path.with_suffix(".csv")
            df.to_csv(path, index=False)
        case "parquet":
            path = path.with_suffix(".parquet")
            df.to_parquet(path, index=False)
        case "json":
            path = path.with_suffix(".json")
            df.to_json(path, orient="records", indent=2)
        case other:
            raise ValueError(f"Unsupported output format: {other}")

    console.print(f"  Wrote {len(df)} rows to {path}")
    return path


def load_toml_config(path: FilePath) -> dict:
    """Load a TOML configuration file using Python 3.11+ stdlib."""
    with open(path, "rb") as f:
        return tomllib.load(f)
