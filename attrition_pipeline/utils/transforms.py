"""Common data transformation utilities."""

import pandas as pd

type ColumnMapping = dict[str, str]


def normalize_columns(df: pd.DataFrame, mapping: ColumnMapping | None = None) -> pd.DataFrame:
    """Normalize column names to snake_case and apply optional mapping."""
    df = df.copy()
    df.columns = [str(col).strip().lower().replace(" ", "_").replace("-", "_") for col in df.columns]

    if mapping:
        df = df.rename(columns=mapping)

    return df


def merge_datasets(
    left: pd.DataFrame,
    right: pd.DataFrame,
    on: str | list[str] | None = None,
    how: str = "left",
    left_on: str | list[str] | None = None,
    right_on: str | list[str] | None = None,
    validate: str | None = None,
) -> pd.DataFrame:
    """Merge two datasets, optionally asserting the key cardinality (e.g. ``"m:1"``)."""
    match how:
        case "left" | "right" | "inner" | "outer":
            result = pd.merge(
                left,
                right,
                on=on,
                left_on=left_on,
                right_on=right_on,
                how=how,
                validate=validate,
            )
        case other:
            raise ValueError(f"Unsupported merge type: {other}")

    return result
