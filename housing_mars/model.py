"""
Model Training Module - Phase 3
================================

Fits a MARS model predicting the target from every other column.

Features:
    - Treatment coding of categorical predictors (chas -> chas1)
    - Hyperparameter configuration via config file
    - Model persistence (save/load)
    - Training progress logging
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional, List
from datetime import datetime

import numpy as np
import pandas as pd
import joblib

from .mars import MARSRegressor

logger = logging.getLogger(__name__)


class HousingPriceModel:
    """
    MARS regression on a DataFrame: ``target ~ .``

    Categorical predictors are expanded to one indicator per non-reference
    level before fitting; numeric predictors pass through unchanged.
    """

    def __init__(
        self,
        degree: int = 2,
        nprune: Optional[int] = None,
        max_terms: Optional[int] = None,
        penalty: Optional[float] = None,
        thresh: float = 0.001,
        trace: bool = False
    ):
        """
        Initialize the model with hyperparameters.

        Args:
            degree: Maximum interaction degree of a basis function
            nprune: Maximum number of terms kept after pruning (None: GCV decides)
            max_terms: Forward pass term limit (None: earth default)
            penalty: GCV penalty per knot (None: 3 if degree > 1 else 2)
            thresh: Forward pass stopping threshold on RSq improvement
            trace: Log forward and backward pass progress
        """
        self.degree = degree
        self.nprune = nprune
        self.max_terms = max_terms
        self.penalty = penalty
        self.thresh = thresh
        self.trace = trace

        self.estimator: Optional[MARSRegressor] = None
        self.target: Optional[str] = None
        self.predictors: Optional[List[str]] = None
        self.categories_: Dict[str, List[Any]] = {}
        self.design_columns: Optional[List[str]] = None
        self.source_of: Dict[str, str] = {}
        self.training_info: Dict[str, Any] = {}
        self._is_fitted = False

    def _design_matrix(self, df: pd.DataFrame) -> pd.DataFrame:
        """Expand categorical predictors into indicator columns."""
        missing = [col for col in self.predictors if col not in df.columns]
        if missing:
            raise ValueError(f"Columns not found in data: {missing}")

        parts = []
        for col in self.predictors:
            if col in self.categories_:
                values = pd.Categorical(df[col], categories=self.categories_[col])
                for level in self.categories_[col][1:]:
                    parts.append(pd.Series(
                        (values == level).astype(float), index=df.index, name=f"{col}{level}"
                    ))
            else:
                parts.append(df[col].astype(float))
        return pd.concat(parts, axis=1)

    def fit(self, df: pd.DataFrame, target: str = 'medv') -> 'HousingPriceModel':
        """
        Train the model on the provided data.

        Args:
            df: Training table containing predictors and target
            target: Column to predict

        Returns:
            Self for method chaining
        """
        if target not in df.columns:
            raise ValueError(f"Target column '{target}' not found in data")

        start_time = datetime.now()

        logger.info("=" * 60)
        logger.info("STARTING MODEL TRAINING (Phase 3)")
        logger.info("=" * 60)
        logger.info(f"Training data shape: {df.shape}")
        logger.info(f"Hyperparameters:")
        logger.info(f"  - degree: {self.degree}")
        logger.info(f"  - nprune: {self.nprune if self.nprune is not None else 'auto'}")
        logger.info(f"  - thresh: {self.thresh}")

        self.target = target
        self.predictors = [col for col in df.columns if col != target]
        self.categories_ = {
            col: list(df[col].cat.categories)
            for col in self.predictors
            if isinstance(df[col].dtype, pd.CategoricalDtype)
        }

        X = self._design_matrix(df)
        self.design_columns = list(X.columns)
        self.source_of = {}
        for col in self.predictors:
            if col in self.categories_:
                for level in self.categories_[col][1:]:
                    self.source_of[f"{col}{level}"] = col
            else:
                self.source_of[col] = col

        self.estimator = MARSRegressor(
            max_degree=self.degree,
            max_terms=self.max_terms,
            nprune=self.nprune,
            penalty=self.penalty,
            thresh=self.thresh,
            trace=self.trace
        )
        self.estimator.fit(X, df[target].to_numpy(dtype=float))

        end_time = datetime.now()
        training_duration = (end_time - start_time).total_seconds()

        self.training_info = {
            'training_duration_seconds': training_duration,
            'n_samples': int(len(df)),
            'n_predictors': len(self.design_columns),
            'n_terms_forward': len(self.estimator.terms_),
            'n_terms_selected': int(self.estimator.selected_size_),
            'gcv': self.estimator.gcv_,
            'rsq': self.estimator.rsq_,
            'grsq': self.estimator.grsq_,
            'termination': self.estimator.termination_reason_,
            'trained_at': end_time.isoformat(),
            'hyperparameters': {
                'degree': self.degree,
                'nprune': self.nprune,
                'max_terms': self.max_terms,
                'penalty': self.estimator.penalty_,
                'thresh': self.thresh
            }
        }

        self._is_fitted = True

        logger.info("=" * 60)
        logger.info(f"MODEL TRAINING COMPLETE in {training_duration:.2f} seconds")
        logger.info(
            f"  Selected {self.estimator.selected_size_} of {len(self.estimator.terms_)} terms"
        )
        logger.info("=" * 60)

        return self

    def predict(self, df: pd.DataFrame, nprune: Optional[int] = None) -> np.ndarray:
        """
        Make predictions using the trained model.

        Args:
            df: Table with the training predictors (extra columns are ignored)
            nprune: Use the best sub-model with at most this many terms

        Returns:
            Predictions array of shape (n_samples,)
        """
        if not self._is_fitted:
            raise ValueError("Model must be trained before prediction. Call fit() first.")

        X = self._design_matrix(df)
        return self.estimator.predict(X.to_numpy(), nprune=nprune)

    def variable_importance(self) -> pd.DataFrame:
        """
        Variable importance table (nsubsets, gcv, rss, used) by design column.

        Returns:
            DataFrame ranked from most to least important
        """
        if not self._is_fitted:
            raise ValueError("Model must be trained first.")
        return self.estimator.feature_importances()

    def summary(self) -> str:
        """Earth-style text summary of the fitted model."""
        if not self._is_fitted:
            raise ValueError("Model must be trained first.")
        return self.estimator.summary()

    def save(self, filepath: str) -> None:
        """
        Save the trained model to disk.

        Args:
            filepath: Path to save the model
        """
        if not self._is_fitted:
            raise ValueError("Cannot save untrained model.")

        state = {
            'estimator': self.estimator,
            'hyperparameters': {
                'degree': self.degree,
                'nprune': self.nprune,
                'max_terms': self.max_terms,
                'penalty': self.penalty,
                'thresh': self.thresh,
                'trace': self.trace
            },
            'target': self.target,
            'predictors': self.predictors,
            'categories_': self.categories_,
            'design_columns': self.design_columns,
            'source_of': self.source_of,
            'training_info': self.training_info,
            '_is_fitted': self._is_fitted
        }

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(state, filepath)
        logger.info(f"Model saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> 'HousingPriceModel':
        """
        Load a trained model from disk.

        Args:
            filepath: Path to the saved model

        Returns:
            Loaded HousingPriceModel instance
        """
        state = joblib.load(filepath)

        model = cls(**state['hyperparameters'])
        model.estimator = state['estimator']
        model.target = state['target']
        model.predictors = state['predictors']
        model.categories_ = state['categories_']
        model.design_columns = state['design_columns']
        model.source_of = state['source_of']
        model.training_info = state['training_info']
        model._is_fitted = state['_is_fitted']

        logger.info(f"Model loaded from {filepath}")
        return model


def train_model(
    train_df: pd.DataFrame,
    config: Dict[str, Any],
    save_path: Optional[str] = None
) -> HousingPriceModel:
    """
    Train a model using configuration parameters.

    Args:
        train_df: Training table
        config: Full configuration dictionary
        save_path: Path to save the trained model (optional)

    Returns:
        Trained HousingPriceModel
    """
    model_config = config.get('model', {})
    target = config.get('data', {}).get('target', 'medv')

    model = HousingPriceModel(
        degree=model_config.get('degree', 2),
        nprune=model_config.get('nprune'),
        max_terms=model_config.get('max_terms'),
        penalty=model_config.get('penalty'),
        thresh=model_config.get('thresh', 0.001),
        trace=model_config.get('trace', False)
    )

    model.fit(train_df, target=target)

    if save_path:
        model.save(save_path)

    return model


def print_model_summary(model: HousingPriceModel) -> None:
    """
    Print a summary of the trained model.

    Args:
        model: Trained model instance
    """
    print("\n" + "=" * 60)
    print("MODEL SUMMARY")
    print("=" * 60)
    print(f"Model Type: MARS (degree={model.degree}, "
          f"nprune={model.nprune if model.nprune is not None else 'auto'})")
    print(f"Formula: {model.target} ~ {' + '.join(model.predictors)}")
    print()
    print(model.summary())

    if model.training_info:
        print(f"\nTraining Info:")
        print(f"  - Duration: {model.training_info.get('training_duration_seconds', 0.0):.2f}s")
        print(f"  - Samples: {model.training_info.get('n_samples', 'N/A')}")

    print("=" * 60 + "\n")
