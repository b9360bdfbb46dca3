"""
Cross-Validation Module
=======================

K-fold tuning of the number of MARS terms kept after pruning (``nprune``).

The forward pass does not depend on ``nprune``, so each fold is fitted once
and every grid value is scored from the same pruning path.
"""

import logging
from typing import Dict, Any, Iterable, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from sklearn.model_selection import KFold
from sklearn.metrics import mean_absolute_error, mean_squared_error

from .model import HousingPriceModel

logger = logging.getLogger(__name__)


def _squared_correlation(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    if np.std(y_true) == 0 or np.std(y_pred) == 0:
        return float('nan')
    return float(np.corrcoef(y_true, y_pred)[0, 1] ** 2)


def cross_validate_mars(
    train_df: pd.DataFrame,
    target: str = 'medv',
    nprune_grid: Iterable[int] = range(19, 51),
    degree: int = 2,
    n_folds: int = 5,
    random_state: int = 123,
    thresh: float = 0.001
) -> Dict[str, Any]:
    """
    Score every ``nprune`` value with k-fold cross-validation.

    Args:
        train_df: Training table
        target: Target column
        nprune_grid: Candidate term counts
        degree: Interaction degree, fixed across the grid
        n_folds: Number of folds
        random_state: Seed for the fold assignment
        thresh: Forward pass threshold for each fold model

    Returns:
        Dictionary containing:
            - results: DataFrame indexed by nprune with mean / sd of RMSE,
              Rsquared and MAE across folds
            - best_nprune: Grid value with the lowest mean RMSE
            - best_rmse: Its mean RMSE
            - fold_scores: Long table of per-fold scores
    """
    grid = sorted({int(k) for k in nprune_grid})
    if not grid:
        raise ValueError("nprune_grid must contain at least one value")
    if grid[0] < 1:
        raise ValueError(f"nprune values must be >= 1, got {grid[0]}")
    if n_folds < 2:
        raise ValueError(f"n_folds must be >= 2, got {n_folds}")

    logger.info("=" * 60)
    logger.info(f"STARTING {n_folds}-FOLD CROSS-VALIDATION")
    logger.info("=" * 60)
    logger.info(f"nprune grid: {grid[0]}..{grid[-1]} ({len(grid)} values), degree={degree}")

    folds = KFold(n_splits=n_folds, shuffle=True, random_state=random_state)
    records = []

    for fold, (fit_idx, holdout_idx) in enumerate(folds.split(train_df), start=1):
        fit_df = train_df.iloc[fit_idx]
        holdout_df = train_df.iloc[holdout_idx]
        y_true = holdout_df[target].to_numpy(dtype=float)

        model = HousingPriceModel(degree=degree, thresh=thresh).fit(fit_df, target=target)

        for nprune in grid:
            y_pred = model.predict(holdout_df, nprune=nprune)
            records.append({
                'fold': fold,
                'nprune': nprune,
                'RMSE': float(np.sqrt(mean_squared_error(y_true, y_pred))),
                'Rsquared': _squared_correlation(y_true, y_pred),
                'MAE': float(mean_absolute_error(y_true, y_pred))
            })

        logger.info(f"Fold {fold}/{n_folds}: {len(model.estimator.terms_)} forward terms")

    fold_scores = pd.DataFrame(records)
    grouped = fold_scores.groupby('nprune')[['RMSE', 'Rsquared', 'MAE']]
    results = grouped.mean().join(grouped.std().add_suffix('SD'))
    results['degree'] = degree
    results = results[['degree', 'RMSE', 'Rsquared', 'MAE', 'RMSESD', 'RsquaredSD', 'MAESD']]

    # idxmin keeps the first (smallest) nprune on ties
    best_nprune = int(results['RMSE'].idxmin())
    best_rmse = float(results.loc[best_nprune, 'RMSE'])

    logger.info("=" * 60)
    logger.info(f"CROSS-VALIDATION COMPLETE: best nprune={best_nprune} (RMSE {best_rmse:.4f})")
    logger.info("=" * 60)

    return {
        'results': results,
        'best_nprune': best_nprune,
        'best_rmse': best_rmse,
        'degree': degree,
        'n_folds': n_folds,
        'fold_scores': fold_scores
    }


def print_cv_results(cv_result: Dict[str, Any]) -> None:
    """
    Print the resampling table and the selected configuration.

    Args:
        cv_result: Dictionary from cross_validate_mars
    """
    results = cv_result['results']
    print("\n" + "=" * 70)
    print("MULTIVARIATE ADAPTIVE REGRESSION SPLINE - CROSS-VALIDATION")
    print("=" * 70)
    print(f"Resampling: Cross-Validated ({cv_result['n_folds']} fold)")
    print(f"Tuning parameter 'degree' was held constant at a value of {cv_result['degree']}")
    print()
    print(results[['RMSE', 'Rsquared', 'MAE']].round(6).to_string())
    print()
    print("RMSE was used to select the optimal model using the smallest value.")
    print(f"The final value used for the model was nprune = {cv_result['best_nprune']} "
          f"and degree = {cv_result['degree']}.")
    print("=" * 70 + "\n")


def plot_tuning_curve(
    cv_result: Dict[str, Any],
    figsize: Tuple[int, int] = (9, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Cross-validated RMSE against the number of terms.

    Args:
        cv_result: Dictionary from cross_validate_mars
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    results = cv_result['results']

    fig, ax = plt.subplots(figsize=figsize)
    ax.plot(results.index, results['RMSE'], 'o-', color='steelblue',
            label=f"degree = {cv_result['degree']}")
    ax.axvline(cv_result['best_nprune'], color='red', linestyle='--', alpha=0.6,
               label=f"best nprune = {cv_result['best_nprune']}")

    ax.set_xlabel('#Terms (nprune)')
    ax.set_ylabel('RMSE (Cross-Validation)')
    ax.set_title('MARS Tuning Curve', fontsize=14, fontweight='bold')
    ax.legend()
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Tuning curve saved to {save_path}")

    return fig
