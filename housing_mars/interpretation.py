"""
Model Interpretation Module - Phase 5
======================================

Variable importance and partial dependence for a fitted MARS model.

Functions:
    - variable_importance: Ranked importance table
    - top_features: Most important source predictors
    - partial_dependence: Prediction curve for one predictor
    - plot_variable_importance / plot_partial_dependence
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from .model import HousingPriceModel

logger = logging.getLogger(__name__)


def variable_importance(model: HousingPriceModel) -> pd.DataFrame:
    """
    Importance of each predictor used anywhere on the pruning path.

    Args:
        model: Trained model

    Returns:
        DataFrame indexed by design column with nsubsets, gcv, rss and used,
        ranked by nsubsets then gcv then rss
    """
    return model.variable_importance()


def print_variable_importance(importance: pd.DataFrame) -> None:
    """Print the importance table; predictors dropped from the final model are marked."""
    table = importance.copy()
    table.index = [
        name if used else f"{name}-unused" for name, used in zip(table.index, table['used'])
    ]
    print("\n" + "=" * 50)
    print("VARIABLE IMPORTANCE")
    print("=" * 50)
    print(table[['nsubsets', 'gcv', 'rss']].round(1).to_string())
    print("=" * 50 + "\n")


def top_features(importance: pd.DataFrame, source_of: Dict[str, str], n: int = 3) -> List[str]:
    """
    Most important source predictors.

    Indicator columns such as ``chas1`` map back to their factor ``chas``.

    Args:
        importance: Table from variable_importance
        source_of: Design column -> source predictor mapping
        n: Number of predictors to return

    Returns:
        Up to ``n`` predictor names, most important first
    """
    features: List[str] = []
    for name in importance.index:
        source = source_of.get(name, name)
        if source not in features:
            features.append(source)
        if len(features) == n:
            break
    return features


def representative_row(model: HousingPriceModel, df: pd.DataFrame) -> Dict[str, Any]:
    """Median of every numeric predictor and the most frequent level of every factor."""
    row = {}
    for col in model.predictors:
        if col in model.categories_:
            row[col] = df[col].mode().iloc[0]
        else:
            row[col] = float(df[col].median())
    return row


def partial_dependence(
    model: HousingPriceModel,
    df: pd.DataFrame,
    feature: str,
    grid_resolution: int = 50
) -> pd.DataFrame:
    """
    Model prediction as one predictor varies and the others stay fixed.

    The other predictors are held at their representative values; the varied
    predictor spans its observed range (or every level of a factor).

    Args:
        model: Trained model
        df: Table supplying the value ranges, usually the training data
        feature: Source predictor to vary
        grid_resolution: Number of grid points for numeric predictors

    Returns:
        DataFrame with columns [feature, 'prediction']
    """
    if feature not in model.predictors:
        raise ValueError(f"'{feature}' is not a predictor of this model")
    if grid_resolution < 2:
        raise ValueError(f"grid_resolution must be >= 2, got {grid_resolution}")

    if feature in model.categories_:
        grid = list(model.categories_[feature])
    else:
        grid = np.linspace(df[feature].min(), df[feature].max(), grid_resolution)

    base = representative_row(model, df)
    frame = pd.DataFrame([base] * len(grid))
    frame[feature] = grid

    return pd.DataFrame({feature: grid, 'prediction': model.predict(frame)})


def plot_variable_importance(
    importance: pd.DataFrame,
    figsize: Tuple[int, int] = (10, 6),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Bar chart of the three importance criteria.

    ``nsubsets`` is rescaled to 0-100 so all criteria share one axis.

    Args:
        importance: Table from variable_importance
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    names = list(importance.index)
    x = np.arange(len(names))
    width = 0.27

    nsubsets = importance['nsubsets'].to_numpy(dtype=float)
    if nsubsets.size and nsubsets.max() > 0:
        nsubsets = 100.0 * nsubsets / nsubsets.max()

    fig, ax = plt.subplots(figsize=figsize)
    ax.bar(x - width, nsubsets, width, color='black', alpha=0.8, label='nsubsets')
    ax.bar(x, importance['gcv'], width, color='red', alpha=0.8, label='gcv')
    ax.bar(x + width, importance['rss'], width, color='gray', alpha=0.8, label='rss')

    ax.set_xticks(x)
    ax.set_xticklabels(
        [name if used else f"{name}-unused" for name, used in zip(names, importance['used'])],
        rotation=45, ha='right'
    )
    ax.set_ylabel('Normalized importance')
    ax.set_title('Variable Importance from MARS Model', fontsize=14, fontweight='bold')
    ax.legend()
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Variable importance plot saved to {save_path}")

    return fig


def plot_partial_dependence(
    model: HousingPriceModel,
    df: pd.DataFrame,
    features: List[str],
    grid_resolution: int = 50,
    figsize: Tuple[int, int] = (15, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    One partial dependence panel per predictor.

    Args:
        model: Trained model
        df: Table supplying the value ranges
        features: Source predictors to plot
        grid_resolution: Grid points for numeric predictors
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    if not features:
        raise ValueError("At least one feature is required")

    fig, axes = plt.subplots(1, len(features), figsize=figsize, squeeze=False)

    for ax, feature in zip(axes[0], features):
        curve = partial_dependence(model, df, feature, grid_resolution=grid_resolution)
        if feature in model.categories_:
            labels = [str(level) for level in curve[feature]]
            ax.plot(labels, curve['prediction'], 'o', color='steelblue', markersize=8)
        else:
            ax.plot(curve[feature], curve['prediction'], color='steelblue', linewidth=2)
            ax.plot(df[feature], np.full(len(df), curve['prediction'].min()), '|',
                    color='gray', alpha=0.4)
        ax.set_xlabel(feature)
        ax.set_ylabel(f'Predicted {model.target}')
        ax.set_title(f'Partial Dependence of {feature}', fontsize=11, fontweight='bold')

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Partial dependence plots saved to {save_path}")

    return fig


def interpret_model(
    model: HousingPriceModel,
    train_df: pd.DataFrame,
    top_n: int = 3,
    grid_resolution: int = 50,
    output_dir: str = "reports/figures/",
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Importance table, importance plot and partial dependence of the top predictors.

    Args:
        model: Trained model
        train_df: Training table
        top_n: Number of predictors to plot
        grid_resolution: Grid points for numeric predictors
        output_dir: Directory for figures
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary with the importance table, the top predictors and figure names
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    logger.info("=" * 60)
    logger.info("STARTING MODEL INTERPRETATION (Phase 5)")
    logger.info("=" * 60)

    importance = variable_importance(model)
    features = top_features(importance, model.source_of, n=top_n)
    logger.info(f"Top predictors: {features}")

    plot_variable_importance(
        importance, save_path=str(output_dir / "04_variable_importance.png")
    )
    figures = ["04_variable_importance.png"]

    if features:
        plot_partial_dependence(
            model, train_df, features, grid_resolution=grid_resolution,
            save_path=str(output_dir / "05_partial_dependence.png")
        )
        figures.append("05_partial_dependence.png")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    return {
        'importance': importance,
        'top_features': features,
        'figures': figures
    }
