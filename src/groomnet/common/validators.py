"""
Input validation for the monkey attribute table and the grooming edge list.

Both tables are polars DataFrames. Validation checks structure only (columns,
nulls, hashable identifiers, unique monkey names); cross-table checks such as
edges referencing unknown monkeys live in the graph builder.
"""

from typing import List, Optional
import warnings

import polars as pl

from .exceptions import ValidationError


def validate_edgelist_dataframe(
    df: pl.DataFrame,
    source_col: str = "source",
    target_col: str = "target",
    allow_empty: bool = True
) -> None:
    """
    Validate a grooming edge list.

    Parameters
    ----------
    df : pl.DataFrame
        Edge list with one row per grooming observation
    source_col : str, default "source"
        Column holding the groomer
    target_col : str, default "target"
        Column holding the groomed monkey
    allow_empty : bool, default True
        Whether an edge list without rows is acceptable

    Raises
    ------
    ValidationError
        If columns are missing, identifiers are null or unhashable

    Examples
    --------
    >>> edges = pl.DataFrame({"source": ["Ada", "Bo"], "target": ["Bo", "Ada"]})
    >>> validate_edgelist_dataframe(edges)
    """
    missing_cols = [col for col in (source_col, target_col) if col not in df.columns]
    if missing_cols:
        raise ValidationError(
            f"Missing required columns: {missing_cols}",
            field="columns",
            details={"available_columns": df.columns, "missing": missing_cols}
        )

    if df.is_empty():
        if allow_empty:
            warnings.warn("Edge list is empty; the graph will have no edges.")
            return
        raise ValidationError("Edge list is empty", field="edgelist")

    for col in (source_col, target_col):
        null_count = df[col].null_count()
        if null_count > 0:
            raise ValidationError(
                f"Column contains {null_count} null values",
                field=col,
                details={"null_count": null_count, "total_rows": len(df)}
            )

        try:
            set(df[col].unique().to_list())
        except TypeError as e:
            raise ValidationError(
                "Column contains unhashable values that cannot be used as node IDs",
                field=col,
                details={"error": str(e)}
            )


def validate_attribute_dataframe(
    df: pl.DataFrame,
    id_col: str = "name",
    required_cols: Optional[List[str]] = None
) -> None:
    """
    Validate the per-monkey attribute table.

    Parameters
    ----------
    df : pl.DataFrame
        One row per monkey
    id_col : str, default "name"
        Column holding the monkey identifier
    required_cols : List[str], optional
        Covariate columns that must be present and non-null

    Raises
    ------
    ValidationError
        If the table is empty, the id column is missing, null or duplicated,
        or a required covariate column is missing or has nulls

    Notes
    -----
    Duplicated names are an error rather than a warning: each monkey has
    exactly one record, and a second record would make its covariates
    ambiguous.
    """
    if df.is_empty():
        raise ValidationError("Attribute table is empty", field="attributes")

    if id_col not in df.columns:
        raise ValidationError(
            f"ID column '{id_col}' not found",
            field="attributes",
            details={"available_columns": df.columns}
        )

    id_null_count = df[id_col].null_count()
    if id_null_count > 0:
        raise ValidationError(
            f"ID column contains {id_null_count} null values",
            field=id_col,
            details={"null_count": id_null_count}
        )

    try:
        set(df[id_col].unique().to_list())
    except TypeError as e:
        raise ValidationError(
            "ID column contains unhashable values",
            field=id_col,
            details={"error": str(e)}
        )

    duplicated = df.filter(pl.col(id_col).is_duplicated())[id_col].unique().to_list()
    if duplicated:
        raise ValidationError(
            f"Duplicated node identifiers: {sorted(duplicated, key=str)[:10]}",
            field=id_col,
            details={"duplicate_count": len(duplicated)}
        )

    if required_cols:
        missing_required = [col for col in required_cols if col not in df.columns]
        if missing_required:
            raise ValidationError(
                f"Missing required attribute columns: {missing_required}",
                field="attributes",
                details={"missing_columns": missing_required, "available": df.columns}
            )

        for col in required_cols:
            null_count = df[col].null_count()
            if null_count > 0:
                raise ValidationError(
                    f"Attribute column contains {null_count} null values",
                    field=col,
                    details={"null_count": null_count}
                )
