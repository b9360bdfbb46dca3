"""
Test Suite for Interpretation Module
=====================================

Tests for variable importance and partial dependence.
"""

import pytest
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from housing_mars.interpretation import (
    variable_importance,
    print_variable_importance,
    top_features,
    representative_row,
    partial_dependence,
    plot_variable_importance,
    plot_partial_dependence,
    interpret_model
)


class TestVariableImportance:
    """Tests for the importance table helpers."""

    def test_ranked(self, fitted_model):
        importance = variable_importance(fitted_model)
        ranked = importance.sort_values(['nsubsets', 'gcv', 'rss'], ascending=False)

        assert list(importance.index) == list(ranked.index)
        assert importance['rss'].max() == pytest.approx(100.0)
        assert (importance['nsubsets'] > 0).all()

    def test_top_features_map_indicators(self):
        importance = pd.DataFrame(
            {'nsubsets': [5, 4, 3, 2], 'gcv': [100, 50, 20, 10],
             'rss': [100, 60, 30, 10], 'used': [True] * 4},
            index=['chas1', 'rm', 'lstat', 'nox']
        )
        source_of = {'chas1': 'chas', 'rm': 'rm', 'lstat': 'lstat', 'nox': 'nox'}

        assert top_features(importance, source_of, n=3) == ['chas', 'rm', 'lstat']
        assert top_features(importance, source_of, n=10) == ['chas', 'rm', 'lstat', 'nox']

    def test_top_features_of_boston_model(self, fitted_model):
        features = top_features(variable_importance(fitted_model), fitted_model.source_of, n=3)

        assert len(features) == 3
        assert set(features) <= set(fitted_model.predictors)

    def test_print_marks_unused(self, capsys):
        importance = pd.DataFrame(
            {'nsubsets': [3, 1], 'gcv': [100.0, 5.0], 'rss': [100.0, 8.0], 'used': [True, False]},
            index=['rm', 'age']
        )
        print_variable_importance(importance)
        out = capsys.readouterr().out

        assert "age-unused" in out
        assert "rm-unused" not in out

    def test_plot(self, fitted_model):
        fig = plot_variable_importance(variable_importance(fitted_model))

        assert fig.axes[0].get_title() == 'Variable Importance from MARS Model'
        plt.close(fig)


class TestPartialDependence:
    """Tests for partial dependence curves."""

    def test_representative_row(self, fitted_model, prep_result):
        row = representative_row(fitted_model, prep_result['train'])

        assert set(row) == set(fitted_model.predictors)
        assert row['rm'] == pytest.approx(prep_result['train']['rm'].median())
        assert row['chas'] == 0

    def test_numeric_feature(self, fitted_model, prep_result):
        train = prep_result['train']
        curve = partial_dependence(fitted_model, train, 'rm', grid_resolution=50)

        assert curve.shape == (50, 2)
        assert list(curve.columns) == ['rm', 'prediction']
        assert curve['rm'].iloc[0] == pytest.approx(train['rm'].min())
        assert curve['rm'].iloc[-1] == pytest.approx(train['rm'].max())
        assert np.isfinite(curve['prediction']).all()

    def test_rooms_raise_prediction(self, fitted_model, prep_result):
        curve = partial_dependence(fitted_model, prep_result['train'], 'rm')
        assert curve['prediction'].iloc[-1] > curve['prediction'].iloc[0]

    def test_categorical_feature(self, fitted_model, prep_result):
        curve = partial_dependence(fitted_model, prep_result['train'], 'chas')

        assert len(curve) == 2
        assert list(curve['chas']) == [0, 1]

    def test_unknown_feature(self, fitted_model, prep_result):
        with pytest.raises(ValueError, match="not a predictor"):
            partial_dependence(fitted_model, prep_result['train'], 'medv')

    def test_grid_too_small(self, fitted_model, prep_result):
        with pytest.raises(ValueError, match="grid_resolution"):
            partial_dependence(fitted_model, prep_result['train'], 'rm', grid_resolution=1)

    def test_plot_panels(self, fitted_model, prep_result):
        fig = plot_partial_dependence(fitted_model, prep_result['train'], ['rm', 'lstat', 'chas'])

        assert len(fig.axes) == 3
        plt.close(fig)

    def test_plot_requires_features(self, fitted_model, prep_result):
        with pytest.raises(ValueError, match="At least one"):
            plot_partial_dependence(fitted_model, prep_result['train'], [])


class TestInterpretModel:
    """Tests for interpret_model."""

    def test_outputs(self, fitted_model, prep_result, tmp_path):
        result = interpret_model(
            fitted_model, prep_result['train'], top_n=3, output_dir=str(tmp_path)
        )

        assert len(result['top_features']) == 3
        assert result['figures'] == ["04_variable_importance.png", "05_partial_dependence.png"]
        for name in result['figures']:
            assert (tmp_path / name).exists()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
