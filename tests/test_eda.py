"""
Test Suite for EDA Module
==========================

Tests for correlation analysis and the target scatter grid.
"""

import pytest
import numpy as np
import matplotlib.pyplot as plt

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from housing_mars.eda import (
    compute_correlation_matrix,
    print_correlation_matrix,
    plot_correlation_matrix,
    plot_target_scatter,
    generate_eda_report,
    print_correlation_insights
)


class TestCorrelationMatrix:
    """Tests for the correlation helpers."""

    def test_square_and_symmetric(self, boston_df):
        corr = compute_correlation_matrix(boston_df)

        assert corr.shape == (14, 14)
        np.testing.assert_allclose(corr.values, corr.values.T)
        np.testing.assert_allclose(np.diag(corr.values), 1.0)

    def test_values_bounded(self, boston_df):
        corr = compute_correlation_matrix(boston_df)

        assert (corr.values >= -1.0 - 1e-12).all()
        assert (corr.values <= 1.0 + 1e-12).all()

    def test_known_target_relationships(self, boston_df):
        """Rooms raise prices, lower-status share lowers them."""
        corr = compute_correlation_matrix(boston_df)

        assert corr.loc['rm', 'medv'] > 0.6
        assert corr.loc['lstat', 'medv'] < -0.7

    def test_print_rounded(self, boston_df, capsys):
        print_correlation_matrix(compute_correlation_matrix(boston_df), decimals=2)
        out = capsys.readouterr().out

        assert "CORRELATION MATRIX" in out
        assert "-0.74" in out

    def test_plot_returns_matrix(self, boston_df):
        fig, corr = plot_correlation_matrix(boston_df)

        assert isinstance(fig, plt.Figure)
        assert corr.shape == (14, 14)
        plt.close(fig)

    def test_insights(self, boston_df, capsys):
        corr = compute_correlation_matrix(boston_df)
        print_correlation_insights(corr, threshold=0.7, target='medv')
        out = capsys.readouterr().out

        assert "rad ↔ tax" in out
        assert "Correlation with medv" in out


class TestTargetScatter:
    """Tests for plot_target_scatter."""

    def test_default_grid(self, boston_df):
        """Five panels in a two-column grid, the sixth hidden."""
        fig = plot_target_scatter(boston_df)

        assert len(fig.axes) == 6
        assert sum(ax.get_visible() for ax in fig.axes) == 5
        assert fig.axes[0].get_title() == 'MEDV vs RM'
        plt.close(fig)

    def test_lowess_line_drawn(self, boston_df):
        fig = plot_target_scatter(boston_df, features=['rm'])

        assert len(fig.axes[0].get_lines()) >= 1
        plt.close(fig)

    def test_missing_feature(self, boston_df):
        with pytest.raises(ValueError, match="not found"):
            plot_target_scatter(boston_df, features=['rooms'])


class TestGenerateEdaReport:
    """Tests for generate_eda_report."""

    def test_report_files(self, boston_df, tmp_path):
        report = generate_eda_report(boston_df, target='medv', output_dir=str(tmp_path))

        assert report['data_shape'] == (506, 14)
        assert report['figures'] == ["01_correlation_matrix.png", "02_target_scatter.png"]
        for name in report['figures']:
            assert (tmp_path / name).exists()

    def test_data_not_mutated(self, boston_df, tmp_path):
        before = boston_df.copy()
        generate_eda_report(boston_df, output_dir=str(tmp_path))

        assert boston_df.equals(before)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
