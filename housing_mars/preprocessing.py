"""
Data Preprocessing Module - Phase 2
====================================

Handles column cleanup, factor conversion, scaling, and train/test splitting.

Functions:
    - sanitize_column_names: Canonical identifier column names
    - HousingPreprocessor: Factor conversion plus center/scale of numeric columns
    - stratified_split: Seeded train/test split stratified on target quantiles
    - preprocess_pipeline: All of the above in one call
"""

import logging
import re
from pathlib import Path
from typing import Dict, Any, Tuple, Optional, List, Iterable

import pandas as pd
import numpy as np
from sklearn.model_selection import train_test_split
import joblib

logger = logging.getLogger(__name__)


def sanitize_column_names(columns: Iterable[Any]) -> List[str]:
    """
    Map column labels to valid, unique Python identifiers.

    Invalid characters become underscores, names starting with a digit get an
    ``x_`` prefix and repeated names get a numeric suffix.

    Args:
        columns: Original column labels

    Returns:
        List of sanitized names in the same order
    """
    names = []
    seen: Dict[str, int] = {}
    for col in columns:
        name = re.sub(r'\W', '_', str(col).strip())
        if not name or name[0].isdigit():
            name = f"x_{name}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 0
        names.append(name)
    return names


class HousingPreprocessor:
    """
    Preprocessing for the housing table.

    Converts categorical predictors to pandas categoricals and centers and
    scales every numeric column (target included) with the mean and sample
    standard deviation learned in ``fit``.
    """

    def __init__(self, categorical_columns: Optional[List[str]] = None):
        """
        Initialize the preprocessor.

        Args:
            categorical_columns: Columns to treat as discrete factors
        """
        self.categorical_columns = list(categorical_columns or [])

        self.categories_: Dict[str, List[Any]] = {}
        self.numeric_columns: Optional[List[str]] = None
        self.means_: Optional[pd.Series] = None
        self.scales_: Optional[pd.Series] = None
        self._is_fitted = False

    def fit(self, df: pd.DataFrame) -> 'HousingPreprocessor':
        """
        Learn factor levels and per-column mean / standard deviation.

        Args:
            df: DataFrame with sanitized column names

        Returns:
            Self for method chaining
        """
        missing = [col for col in self.categorical_columns if col not in df.columns]
        if missing:
            raise ValueError(f"Categorical columns not found in data: {missing}")

        self.categories_ = {
            col: sorted(df[col].dropna().unique().tolist()) for col in self.categorical_columns
        }
        self.numeric_columns = [
            col for col in df.select_dtypes(include=[np.number]).columns
            if col not in self.categorical_columns
        ]

        self.means_ = df[self.numeric_columns].mean()
        scales = df[self.numeric_columns].std(ddof=1)
        # Constant columns are only centered
        self.scales_ = scales.where(scales > 0, 1.0).fillna(1.0)

        self._is_fitted = True
        logger.info(
            f"Fitted preprocessor: {len(self.numeric_columns)} scaled columns, "
            f"{len(self.categorical_columns)} categorical"
        )
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Apply factor conversion and scaling.

        Args:
            df: DataFrame to transform

        Returns:
            New DataFrame with the same columns and row order
        """
        if not self._is_fitted:
            raise ValueError("Preprocessor must be fitted before transform. Call fit() first.")

        result = df.copy()
        for col, levels in self.categories_.items():
            result[col] = pd.Categorical(result[col], categories=levels)

        result[self.numeric_columns] = (
            (result[self.numeric_columns] - self.means_) / self.scales_
        )
        return result

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Fit and transform in one step.

        Args:
            df: DataFrame to fit and transform

        Returns:
            Transformed DataFrame
        """
        self.fit(df)
        return self.transform(df)

    def inverse_transform_target(self, values: np.ndarray, target: str = 'medv') -> np.ndarray:
        """
        Convert scaled values of one numeric column back to original units.

        Args:
            values: Scaled values
            target: Column the values belong to

        Returns:
            Values in original units
        """
        if not self._is_fitted:
            raise ValueError("Preprocessor must be fitted before inverse_transform_target.")
        if target not in self.numeric_columns:
            raise ValueError(f"Column '{target}' was not scaled by this preprocessor")

        return np.asarray(values) * self.scales_[target] + self.means_[target]

    def save(self, filepath: str) -> None:
        """
        Save the preprocessor state to disk.

        Args:
            filepath: Path to save the preprocessor
        """
        state = {
            'categorical_columns': self.categorical_columns,
            'categories_': self.categories_,
            'numeric_columns': self.numeric_columns,
            'means_': self.means_,
            'scales_': self.scales_,
            '_is_fitted': self._is_fitted
        }
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(state, filepath)
        logger.info(f"Preprocessor saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> 'HousingPreprocessor':
        """
        Load a preprocessor from disk.

        Args:
            filepath: Path to the saved preprocessor

        Returns:
            Loaded HousingPreprocessor instance
        """
        state = joblib.load(filepath)

        preprocessor = cls(categorical_columns=state['categorical_columns'])
        preprocessor.categories_ = state['categories_']
        preprocessor.numeric_columns = state['numeric_columns']
        preprocessor.means_ = state['means_']
        preprocessor.scales_ = state['scales_']
        preprocessor._is_fitted = state['_is_fitted']

        logger.info(f"Preprocessor loaded from {filepath}")
        return preprocessor


def stratified_split(
    df: pd.DataFrame,
    target: str = 'medv',
    train_fraction: float = 0.7,
    random_state: int = 123,
    groups: int = 5
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split rows into train and test positions, stratified on the target.

    The target is cut into at most ``groups`` quantile bins and each bin is
    sampled in proportion, so both subsets keep the target's distribution.

    Args:
        df: DataFrame to split
        target: Column used for stratification
        train_fraction: Fraction of rows for training
        random_state: Seed for the sampling
        groups: Number of quantile bins

    Returns:
        Tuple of (train_positions, test_positions), each sorted ascending
    """
    if not 0.0 < train_fraction < 1.0:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")
    if target not in df.columns:
        raise ValueError(f"Target column '{target}' not found in data")

    n_groups = max(1, min(groups, len(df)))
    bins = pd.qcut(df[target], q=n_groups, labels=False, duplicates='drop')

    positions = np.arange(len(df))
    train_idx, test_idx = train_test_split(
        positions,
        train_size=train_fraction,
        random_state=random_state,
        stratify=np.asarray(bins)
    )

    train_idx = np.sort(train_idx)
    test_idx = np.sort(test_idx)

    logger.info(
        f"Train/Test split: {len(train_idx)} train samples, {len(test_idx)} test samples"
    )
    return train_idx, test_idx


def preprocess_pipeline(
    df: pd.DataFrame,
    target: str = 'medv',
    categorical_columns: Optional[List[str]] = None,
    train_fraction: float = 0.7,
    random_state: int = 123,
    groups: int = 5,
    save_preprocessor: Optional[str] = None
) -> Dict[str, Any]:
    """
    Complete preprocessing pipeline for the housing table.

    Scaling statistics come from the full dataset, before the split.

    Args:
        df: Raw DataFrame
        target: Target column
        categorical_columns: Columns converted to factors
        train_fraction: Train/test split ratio
        random_state: Seed for the split
        groups: Quantile bins used for stratification
        save_preprocessor: Path to save the fitted preprocessor

    Returns:
        Dictionary containing:
            - data_scaled: Full transformed table
            - train, test: Row subsets of data_scaled
            - train_index, test_index: Their row positions
            - preprocessor: Fitted HousingPreprocessor
    """
    logger.info("=" * 60)
    logger.info("STARTING DATA PREPROCESSING (Phase 2)")
    logger.info("=" * 60)

    df = df.copy()
    df.columns = sanitize_column_names(df.columns)

    preprocessor = HousingPreprocessor(categorical_columns=categorical_columns)
    data_scaled = preprocessor.fit_transform(df)

    train_idx, test_idx = stratified_split(
        data_scaled,
        target=target,
        train_fraction=train_fraction,
        random_state=random_state,
        groups=groups
    )

    if save_preprocessor:
        preprocessor.save(save_preprocessor)

    result = {
        'data_scaled': data_scaled,
        'train': data_scaled.iloc[train_idx],
        'test': data_scaled.iloc[test_idx],
        'train_index': train_idx,
        'test_index': test_idx,
        'preprocessor': preprocessor,
        'target': target
    }

    logger.info("=" * 60)
    logger.info("PREPROCESSING COMPLETE")
    logger.info(f"  Training samples: {len(train_idx)}")
    logger.info(f"  Test samples: {len(test_idx)}")
    logger.info("=" * 60)

    return result


def print_preprocessing_summary(result: Dict[str, Any]) -> None:
    """
    Print a summary of the preprocessing results.

    Args:
        result: Dictionary from preprocess_pipeline
    """
    preprocessor = result['preprocessor']
    print("\n" + "=" * 50)
    print("PREPROCESSING SUMMARY")
    print("=" * 50)
    print(f"Training samples: {len(result['train'])}")
    print(f"Test samples: {len(result['test'])}")
    print(f"Scaled columns: {', '.join(preprocessor.numeric_columns)}")
    for col, levels in preprocessor.categories_.items():
        print(f"Factor '{col}': levels {levels}")
    target = result['target']
    print(f"\nTarget mean (train / test): "
          f"{result['train'][target].mean():.3f} / {result['test'][target].mean():.3f}")
    print("=" * 50 + "\n")
