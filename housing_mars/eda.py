"""
Exploratory Data Analysis (EDA) Module - Phase 1
=================================================

Correlation structure of the housing table and target relationships.

Functions:
    - compute_correlation_matrix: Pairwise Pearson correlations
    - print_correlation_matrix: Rounded console rendering
    - plot_correlation_matrix: Upper-triangle correlation heatmap
    - plot_target_scatter: Target vs selected predictors with LOWESS trend
    - generate_eda_report: Full EDA report with all visualizations
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns

logger = logging.getLogger(__name__)

DEFAULT_SCATTER_FEATURES = ['rm', 'lstat', 'ptratio', 'indus', 'nox']

# Set style for all plots
plt.style.use('seaborn-v0_8-whitegrid')
sns.set_palette("husl")


def compute_correlation_matrix(df: pd.DataFrame, method: str = 'pearson') -> pd.DataFrame:
    """
    Pairwise correlation matrix over all numeric columns.

    Args:
        df: DataFrame with numerical data
        method: Correlation method ('pearson', 'spearman', 'kendall')

    Returns:
        Square correlation DataFrame with values in [-1, 1]
    """
    return df.select_dtypes(include=[np.number]).corr(method=method)


def print_correlation_matrix(corr_matrix: pd.DataFrame, decimals: int = 2) -> None:
    """Print the correlation matrix rounded for display."""
    print("\n" + "=" * 70)
    print("CORRELATION MATRIX")
    print("=" * 70)
    print(corr_matrix.round(decimals).to_string())
    print("=" * 70 + "\n")


def plot_correlation_matrix(
    df: pd.DataFrame,
    method: str = 'pearson',
    figsize: Tuple[int, int] = (11, 9),
    save_path: Optional[str] = None
) -> Tuple[plt.Figure, pd.DataFrame]:
    """
    Create a correlation heatmap for all numerical columns.

    Only the upper triangle is drawn, with coefficients printed in each cell.

    Args:
        df: DataFrame with numerical data
        method: Correlation method ('pearson', 'spearman', 'kendall')
        figsize: Figure size (width, height)
        save_path: Path to save the figure (optional)

    Returns:
        Tuple of (Figure, correlation matrix DataFrame)
    """
    corr_matrix = compute_correlation_matrix(df, method=method)

    fig, ax = plt.subplots(figsize=figsize)

    mask = np.tril(np.ones_like(corr_matrix, dtype=bool), k=-1)
    sns.heatmap(
        corr_matrix,
        mask=mask,
        annot=True,
        fmt='.2f',
        annot_kws={"size": 7, "color": "black"},
        cmap='RdBu_r',
        center=0,
        square=True,
        linewidths=0.5,
        cbar_kws={"shrink": 0.8, "label": "Correlation"},
        ax=ax,
        vmin=-1,
        vmax=1
    )

    ax.set_title(f'Correlation Matrix ({method.capitalize()})',
                 fontsize=14, fontweight='bold')
    ax.tick_params(labelsize=8)
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Correlation matrix saved to {save_path}")

    return fig, corr_matrix


def plot_target_scatter(
    df: pd.DataFrame,
    features: Optional[List[str]] = None,
    target: str = 'medv',
    figsize: Tuple[int, int] = (12, 12),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Scatter plots of the target against selected predictors.

    Each panel overlays a LOWESS smoothing curve on the raw points.

    Args:
        df: DataFrame containing the predictors and target
        features: Predictors to plot (default: rm, lstat, ptratio, indus, nox)
        target: Target column
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    if features is None:
        features = DEFAULT_SCATTER_FEATURES

    missing = [col for col in features + [target] if col not in df.columns]
    if missing:
        raise ValueError(f"Columns not found in data: {missing}")

    n_rows = (len(features) + 1) // 2
    fig, axes = plt.subplots(n_rows, 2, figsize=figsize, squeeze=False)
    axes = axes.flatten()

    for idx, feature in enumerate(features):
        ax = axes[idx]
        sns.regplot(
            x=df[feature],
            y=df[target],
            lowess=True,
            ax=ax,
            scatter_kws={"alpha": 0.6, "color": "blue", "s": 15},
            line_kws={"color": "red"}
        )
        ax.set_title(f'{target.upper()} vs {feature.upper()}', fontsize=11, fontweight='bold')
        ax.set_xlabel(feature.upper())
        ax.set_ylabel(f'Median Value ({target.upper()})')

    # Hide unused subplots
    for idx in range(len(features), len(axes)):
        axes[idx].set_visible(False)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Target scatter plots saved to {save_path}")

    return fig


def generate_eda_report(
    df: pd.DataFrame,
    target: str = 'medv',
    scatter_features: Optional[List[str]] = None,
    output_dir: str = "reports/figures/",
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Generate a complete EDA report with all visualizations.

    Args:
        df: DataFrame to analyze
        target: Target column
        scatter_features: Predictors plotted against the target
        output_dir: Directory to save figures
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing EDA results and file paths
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report = {
        "data_shape": df.shape,
        "columns": list(df.columns),
        "figures": [],
        "correlation_matrix": None
    }

    logger.info("=" * 60)
    logger.info("STARTING EXPLORATORY DATA ANALYSIS (Phase 1)")
    logger.info("=" * 60)

    logger.info("Computing correlation matrix...")
    _, corr_matrix = plot_correlation_matrix(
        df,
        save_path=str(output_dir / "01_correlation_matrix.png")
    )
    report["figures"].append("01_correlation_matrix.png")
    report["correlation_matrix"] = corr_matrix

    logger.info("Plotting target relationships...")
    plot_target_scatter(
        df,
        features=scatter_features,
        target=target,
        save_path=str(output_dir / "02_target_scatter.png")
    )
    report["figures"].append("02_target_scatter.png")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    logger.info("=" * 60)
    logger.info("EDA COMPLETE - All figures saved to: %s", output_dir)
    logger.info("=" * 60)

    return report


def print_correlation_insights(
    corr_matrix: pd.DataFrame,
    threshold: float = 0.7,
    target: Optional[str] = None
) -> None:
    """
    Print insights about strongly correlated variables.

    Args:
        corr_matrix: Correlation matrix DataFrame
        threshold: Correlation threshold for "strong" correlation
        target: If given, also rank predictors by correlation with it
    """
    print("\n" + "=" * 50)
    print("CORRELATION INSIGHTS")
    print("=" * 50)

    strong_corr = []
    for i in range(len(corr_matrix.columns)):
        for j in range(i + 1, len(corr_matrix.columns)):
            corr_val = corr_matrix.iloc[i, j]
            if abs(corr_val) >= threshold:
                strong_corr.append({
                    "col1": corr_matrix.columns[i],
                    "col2": corr_matrix.columns[j],
                    "correlation": corr_val
                })

    if strong_corr:
        print(f"\nStrong correlations (|r| >= {threshold}):")
        for item in sorted(strong_corr, key=lambda x: abs(x["correlation"]), reverse=True):
            direction = "positive" if item["correlation"] > 0 else "negative"
            print(f"  • {item['col1']} ↔ {item['col2']}: {item['correlation']:.2f} ({direction})")
    else:
        print(f"\nNo strong correlations found (|r| >= {threshold})")

    if target is not None and target in corr_matrix.columns:
        with_target = corr_matrix[target].drop(target)
        ranked = with_target.reindex(with_target.abs().sort_values(ascending=False).index)
        print(f"\nCorrelation with {target}:")
        for col, value in ranked.items():
            print(f"  • {col}: {value:+.2f}")

    print("=" * 50 + "\n")
