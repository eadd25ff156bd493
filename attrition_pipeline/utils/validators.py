"""Data validation utilities using pandera."""

import pandera as pa
import pandas as pd
from pandera import DataFrameSchema

type ValidationResult = dict[str, str | bool | list[str]]


def validate_dataframe(df: pd.DataFrame, schema: DataFrameSchema) -> ValidationResult:
    """Validate a DataFrame against a pandera schema, collecting every failure."""
    try:
        schema.validate(df, lazy=True)
        return {"valid": True, "status": "ok", "errors": []}
    except pa.errors.SchemaErrors as e:
        errors = []
        for _, row in e.failure_cases.iterrows():
            match row.to_dict():
                case {"column": col, "check": check, "failure_case": val}:
                    errors.append(f"Column '{col}' failed check '{check}': {val}")
                case failure:
                    errors.append(f"Validation failure: {failure}")
        return {"valid": False, "status": "error", "errors": errors}


def find_duplicate_keys(df: pd.DataFrame, columns: list[str]) -> pd.DataFrame:
    """Return the distinct key combinations that occur more than once."""
    duplicated = df.duplicated(subset=columns, keep=False)
    return df.loc[duplicated, columns].drop_duplicates()


def validate_unique(df: pd.DataFrame, columns: list[str]) -> ValidationResult:
    """Check that specified columns form a unique key."""
    dup_keys = find_duplicate_keys(df, columns)

    match len(dup_keys):
        case 0:
            return {"valid": True, "status": "ok", "errors": []}
        case n:
            sample = [tuple(k) for k in dup_keys.head(5).itertuples(index=False)]
            return {
                "valid": False,
                "status": "error",
                "errors": [f"Found {n} duplicate keys on columns {columns}. Sample: {sample}"],
            }


def validate_referential_integrity(
    child: pd.DataFrame,
    parent: pd.DataFrame,
    child_key: str,
    parent_key: str,
) -> ValidationResult:
    """Validate that all non-null child keys exist in parent."""
    orphans = set(child[child_key].dropna().unique()) - set(parent[parent_key].dropna().unique())

    match len(orphans):
        case 0:
            return {"valid": True, "status": "ok", "errors": []}
        case n:
            sample = sorted(orphans, key=str)[:5]
            return {
                "valid": False,
                "status": "error",
                "errors": [f"Found {n} orphan keys in '{child_key}'. Sample: {sample}"],
            }
