"""
Data Loader Module
==================

Handles dataset ingestion, validation, and basic data quality checks.

Functions:
    - load_config: Load YAML configuration file
    - load_data: Load the bundled Boston housing table (or a CSV override)
    - validate_data: Check data quality constraints
    - print_data_summary: Console summary of the raw table
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

import pandas as pd
import numpy as np
import yaml

logger = logging.getLogger(__name__)

BUNDLED_DATA_PATH = Path(__file__).parent / "data" / "boston.csv"
EXPECTED_SHAPE = (506, 14)


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    logger.info(f"Loaded configuration from {config_path}")
    return config


def load_data(
    file_path: Optional[str] = None,
    expected_columns: Optional[int] = None
) -> pd.DataFrame:
    """
    Load the housing dataset.

    Args:
        file_path: Path to a CSV file (default: the bundled Boston dataset)
        expected_columns: Expected number of columns (optional validation)

    Returns:
        DataFrame containing the loaded data

    Raises:
        FileNotFoundError: If data file doesn't exist
        ValueError: If the column count doesn't match
    """
    file_path = Path(file_path) if file_path is not None else BUNDLED_DATA_PATH

    if not file_path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")

    df = pd.read_csv(file_path)
    logger.info(f"Loaded data from {file_path}: {df.shape[0]} rows × {df.shape[1]} columns")

    if expected_columns is not None and df.shape[1] != expected_columns:
        raise ValueError(
            f"Expected {expected_columns} columns, but found {df.shape[1]}. "
            f"Columns: {list(df.columns)}"
        )

    return df


def validate_data(
    df: pd.DataFrame,
    expected_shape: Optional[Tuple[int, int]] = EXPECTED_SHAPE,
    strict: bool = True
) -> Tuple[bool, Dict[str, Any]]:
    """
    Validate data quality constraints for the modeling pipeline.

    Checks:
        - No missing values
        - Table shape matches the reference dataset
        - All columns are numerical
        - Duplicate rows and extreme outliers (reported, not fatal)

    Args:
        df: DataFrame to validate
        expected_shape: Required (rows, columns), or None to skip the check
        strict: If True, raise errors on validation failure

    Returns:
        Tuple of (is_valid, validation_report)
    """
    report = {
        "total_rows": len(df),
        "total_columns": len(df.columns),
        "column_names": list(df.columns),
        "missing_values": int(df.isnull().sum().sum()),
        "issues": [],
        "warnings": []
    }

    # Missing values invalidate the run
    if report["missing_values"] > 0:
        missing_counts = df.isnull().sum()
        issue = f"Missing values: {report['missing_values']}"
        report["issues"].append(issue)
        report["missing_by_column"] = missing_counts[missing_counts > 0].to_dict()
        logger.warning(issue)

    if expected_shape is not None and df.shape != tuple(expected_shape):
        issue = f"Expected shape {tuple(expected_shape)}, found {df.shape}"
        report["issues"].append(issue)
        logger.warning(issue)

    non_numeric_cols = df.select_dtypes(exclude=[np.number]).columns.tolist()
    if non_numeric_cols:
        issue = f"Non-numeric columns found: {non_numeric_cols}"
        report["issues"].append(issue)
        logger.warning(issue)

    duplicates = int(df.duplicated().sum())
    if duplicates > 0:
        report["warnings"].append(f"Duplicate rows found: {duplicates}")

    for col in df.select_dtypes(include=[np.number]).columns:
        col_std = df[col].std()
        col_mean = df[col].mean()
        outliers = int(((df[col] - col_mean).abs() > 4 * col_std).sum())
        if outliers > 0:
            report["warnings"].append(f"Column '{col}' has {outliers} potential outliers (>4 std)")

    for warning in report["warnings"]:
        logger.info(warning)

    is_valid = len(report["issues"]) == 0
    report["is_valid"] = is_valid

    if strict and not is_valid:
        raise ValueError(f"Data validation failed: {report['issues']}")

    return is_valid, report


def print_data_summary(df: pd.DataFrame, n_head: int = 6) -> None:
    """
    Print a formatted summary of the dataset to console.

    Args:
        df: DataFrame to summarize
        n_head: Number of leading rows to show
    """
    print("\n" + "=" * 60)
    print("DATASET SUMMARY")
    print("=" * 60)
    print(f"Shape: {df.shape[0]} rows × {df.shape[1]} columns")
    print(f"\nFirst {n_head} rows:")
    print("-" * 40)
    print(df.head(n_head).to_string())
    print("\nBasic Statistics:")
    print("-" * 40)
    print(df.describe().round(4).to_string())
    print(f"\nMissing values: {int(df.isnull().sum().sum())}")
    print("=" * 60 + "\n")
