#!/usr/bin/env python3
"""
Boston Housing MARS Analysis - Main Pipeline
=============================================

Orchestrates exploratory analysis and MARS regression on the Boston housing data.

Phases:
    1. EDA - Correlation matrix and target relationships
    2. Preprocessing - Factor conversion, scaling and stratified split
    3. Training - MARS model (degree 2, GCV pruning)
    4. Evaluation - Test-set MAE / RMSE / R²
    5. Cross-validation - 5-fold tuning of nprune
    6. Interpretation - Variable importance and partial dependence
    7. Residuals - Residual diagnostics

Usage:
    # Run complete pipeline on the bundled dataset
    python main.py

    # Run specific phase
    python main.py --phase eda

    # Run with custom data and config
    python main.py --data data/boston.csv --config config/config.yaml
"""

import argparse
import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional

import pandas as pd
import matplotlib.pyplot as plt

# Make the package importable when run from a source checkout
sys.path.insert(0, str(Path(__file__).parent))

from housing_mars.data_loader import (
    EXPECTED_SHAPE, load_config, load_data, validate_data, print_data_summary
)
from housing_mars.eda import generate_eda_report, print_correlation_matrix, print_correlation_insights
from housing_mars.preprocessing import preprocess_pipeline, print_preprocessing_summary
from housing_mars.model import train_model, print_model_summary, HousingPriceModel
from housing_mars.evaluation import evaluate_model, print_evaluation_report, analyze_residuals
from housing_mars.tuning import cross_validate_mars, print_cv_results, plot_tuning_curve
from housing_mars.interpretation import interpret_model, print_variable_importance


def setup_logging(level: str = "INFO", log_file: bool = True) -> None:
    """Configure logging for the pipeline."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(
            logging.FileHandler(f'pipeline_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log')
        )
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def _figures_dir(config: Dict[str, Any]) -> str:
    return config.get('output', {}).get('figures_path', 'reports/figures/')


def _show_plots(config: Dict[str, Any]) -> bool:
    return bool(config.get('output', {}).get('show_plots', False))


def _target(config: Dict[str, Any]) -> str:
    return config.get('data', {}).get('target', 'medv')


def load_dataset(config: Dict[str, Any], data_path: Optional[str] = None) -> pd.DataFrame:
    """
    Load and validate the dataset.

    Args:
        config: Configuration dictionary
        data_path: CSV override (default: config value, then the bundled data)

    Returns:
        Raw DataFrame
    """
    data_config = config.get('data', {})
    file_path = data_path or data_config.get('path')
    df = load_data(file_path, expected_columns=data_config.get('expected_columns'))
    # The bundled table must match the reference layout exactly
    validate_data(df, expected_shape=EXPECTED_SHAPE if file_path is None else None, strict=True)
    return df


def run_eda(df: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 1: Exploratory Data Analysis.

    Args:
        df: Raw data
        config: Configuration dictionary

    Returns:
        EDA report dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 1: EXPLORATORY DATA ANALYSIS")
    print("=" * 70)

    eda_config = config.get('eda', {})
    output_dir = _figures_dir(config)

    report = generate_eda_report(
        df,
        target=_target(config),
        scatter_features=eda_config.get('scatter_features'),
        output_dir=output_dir,
        show_plots=_show_plots(config)
    )

    print_correlation_matrix(
        report["correlation_matrix"],
        decimals=eda_config.get('correlation_decimals', 2)
    )
    print_correlation_insights(
        report["correlation_matrix"],
        threshold=eda_config.get('correlation_threshold', 0.7),
        target=_target(config)
    )

    print(f"\n✓ EDA complete. {len(report['figures'])} figures saved to {output_dir}")

    return report


def run_preprocessing(df: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 2: Data Preprocessing.

    Args:
        df: Raw data
        config: Configuration dictionary

    Returns:
        Preprocessing result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 2: DATA PREPROCESSING")
    print("=" * 70)

    prep_config = config.get('preprocessing', {})
    split_config = config.get('split', {})

    result = preprocess_pipeline(
        df,
        target=_target(config),
        categorical_columns=prep_config.get('categorical_columns', ['chas']),
        train_fraction=split_config.get('train_fraction', 0.7),
        random_state=config.get('random_state', 123),
        groups=split_config.get('groups', 5),
        save_preprocessor=config.get('output', {}).get('preprocessor_path')
    )

    print_preprocessing_summary(result)

    return result


def run_training(prep_result: Dict[str, Any], config: Dict[str, Any]) -> HousingPriceModel:
    """
    Execute Phase 3: Model Training.

    Args:
        prep_result: Preprocessing result dictionary
        config: Configuration dictionary

    Returns:
        Trained model
    """
    print("\n" + "=" * 70)
    print("PHASE 3: MODEL TRAINING")
    print("=" * 70)

    model_path = config.get('output', {}).get('model_path')

    model = train_model(prep_result['train'], config, save_path=model_path)

    print_model_summary(model)

    return model


def run_evaluation(
    model: HousingPriceModel,
    prep_result: Dict[str, Any],
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 4: Model Evaluation on the held-out split.

    Args:
        model: Trained model
        prep_result: Preprocessing result dictionary
        config: Configuration dictionary

    Returns:
        Evaluation result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 4: MODEL EVALUATION")
    print("=" * 70)

    result = evaluate_model(
        model,
        prep_result['test'],
        target=_target(config),
        preprocessor=prep_result['preprocessor']
    )

    print_evaluation_report(result['metrics'], result['metrics_original'])

    return result


def run_cross_validation(prep_result: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 5: Cross-validated tuning of nprune.

    Args:
        prep_result: Preprocessing result dictionary
        config: Configuration dictionary

    Returns:
        Cross-validation result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 5: CROSS-VALIDATION")
    print("=" * 70)

    cv_config = config.get('cross_validation', {})
    model_config = config.get('model', {})

    result = cross_validate_mars(
        prep_result['train'],
        target=_target(config),
        nprune_grid=range(cv_config.get('nprune_min', 19), cv_config.get('nprune_max', 50) + 1),
        degree=model_config.get('degree', 2),
        n_folds=cv_config.get('n_folds', 5),
        random_state=config.get('random_state', 123),
        thresh=model_config.get('thresh', 0.001)
    )

    print_cv_results(result)

    output_dir = Path(_figures_dir(config))
    output_dir.mkdir(parents=True, exist_ok=True)
    plot_tuning_curve(result, save_path=str(output_dir / "03_tuning_curve.png"))
    if _show_plots(config):
        plt.show()
    else:
        plt.close('all')

    return result


def run_interpretation(
    model: HousingPriceModel,
    prep_result: Dict[str, Any],
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 6: Variable importance and partial dependence.

    Args:
        model: Trained model
        prep_result: Preprocessing result dictionary
        config: Configuration dictionary

    Returns:
        Interpretation result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 6: MODEL INTERPRETATION")
    print("=" * 70)

    interp_config = config.get('interpretation', {})

    result = interpret_model(
        model,
        prep_result['train'],
        top_n=interp_config.get('top_n', 3),
        grid_resolution=interp_config.get('grid_resolution', 50),
        output_dir=_figures_dir(config),
        show_plots=_show_plots(config)
    )

    print_variable_importance(result['importance'])
    print(f"Top features: {', '.join(result['top_features'])}")

    return result


def run_residual_analysis(eval_result: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 7: Residual diagnostics on the test predictions.

    Args:
        eval_result: Evaluation result dictionary
        config: Configuration dictionary

    Returns:
        Residual analysis dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 7: RESIDUAL ANALYSIS")
    print("=" * 70)

    result = analyze_residuals(
        eval_result['y_true'],
        eval_result['y_pred'],
        binwidth=config.get('residuals', {}).get('binwidth', 1.0),
        target_label=_target(config).upper(),
        output_dir=_figures_dir(config),
        show_plots=_show_plots(config)
    )

    print(f"Residual mean: {result['mean']:.4f}")
    print(f"Residual std: {result['std']:.4f}")

    return result


def run_full_pipeline(
    config_path: str = "config/config.yaml",
    data_path: Optional[str] = None
) -> Dict[str, Any]:
    """
    Execute the complete 7-phase pipeline.

    Args:
        config_path: Path to configuration file
        data_path: Optional CSV override for the dataset

    Returns:
        Dictionary containing all phase results
    """
    print("\n" + "=" * 70)
    print("BOSTON HOUSING MARS ANALYSIS")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    config = load_config(config_path)
    setup_logging(config.get('logging', {}).get('level', 'INFO'))

    print("\n📊 Loading data...")
    df = load_dataset(config, data_path)
    print_data_summary(df)

    results = {
        'config': config,
        'data_shape': df.shape
    }

    results['eda'] = run_eda(df, config)
    results['preprocessing'] = run_preprocessing(df, config)
    results['model'] = run_training(results['preprocessing'], config)
    results['evaluation'] = run_evaluation(results['model'], results['preprocessing'], config)
    results['cross_validation'] = run_cross_validation(results['preprocessing'], config)
    results['interpretation'] = run_interpretation(
        results['model'], results['preprocessing'], config
    )
    results['residuals'] = run_residual_analysis(results['evaluation'], config)

    metrics = results['evaluation']['metrics']
    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    print(f"  • Input data: {df.shape[0]} rows × {df.shape[1]} columns")
    print(f"  • Test MAE / RMSE / R²: {metrics['mae']:.3f} / {metrics['rmse']:.3f} / {metrics['r2']:.3f}")
    print(f"  • Best CV nprune: {results['cross_validation']['best_nprune']}")
    print(f"  • Top features: {', '.join(results['interpretation']['top_features'])}")
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70 + "\n")

    return results


def run_single_phase(
    phase: str,
    config_path: str = "config/config.yaml",
    data_path: Optional[str] = None
) -> Dict[str, Any]:
    """
    Execute a single phase of the pipeline (with the phases it depends on).

    Args:
        phase: Phase to run ('eda', 'train', 'evaluate', 'tune', 'interpret', 'residuals')
        config_path: Path to configuration file
        data_path: Optional CSV override for the dataset

    Returns:
        Phase result dictionary
    """
    config = load_config(config_path)
    setup_logging(config.get('logging', {}).get('level', 'INFO'))

    df = load_dataset(config, data_path)

    if phase == 'eda':
        return run_eda(df, config)

    prep_result = run_preprocessing(df, config)

    if phase == 'tune':
        return run_cross_validation(prep_result, config)

    model = run_training(prep_result, config)

    if phase == 'train':
        return {'model': model, 'preprocessing': prep_result}

    elif phase == 'evaluate':
        return run_evaluation(model, prep_result, config)

    elif phase == 'interpret':
        return run_interpretation(model, prep_result, config)

    elif phase == 'residuals':
        eval_result = run_evaluation(model, prep_result, config)
        return run_residual_analysis(eval_result, config)

    else:
        raise ValueError(
            f"Unknown phase: {phase}. Choose from: eda, train, evaluate, tune, interpret, residuals"
        )


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Exploratory analysis and MARS regression on the Boston housing data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py
  python main.py --phase eda
  python main.py --data data/boston.csv --config config/custom.yaml
        """
    )

    parser.add_argument(
        '--data', '-d',
        type=str,
        default=None,
        help='Path to a CSV file (default: bundled Boston dataset)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=['eda', 'train', 'evaluate', 'tune', 'interpret', 'residuals', 'all'],
        default='all',
        help='Phase to run (default: all)'
    )

    args = parser.parse_args()

    if args.data is not None and not Path(args.data).exists():
        print(f"Error: Data file not found: {args.data}")
        sys.exit(1)

    if not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}")
        sys.exit(1)

    try:
        if args.phase == 'all':
            run_full_pipeline(args.config, args.data)
        else:
            run_single_phase(args.phase, args.config, args.data)

        return 0

    except Exception as e:
        logging.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
