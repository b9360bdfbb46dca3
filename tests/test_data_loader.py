"""
Test Suite for Data Loader Module
==================================

Tests for configuration loading, dataset ingestion and validation.
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from housing_mars.data_loader import (
    BUNDLED_DATA_PATH,
    load_config,
    load_data,
    validate_data,
    print_data_summary
)


class TestLoadConfig:
    """Tests for load_config."""

    def test_project_config(self):
        config = load_config(str(Path(__file__).parent.parent / "config" / "config.yaml"))

        assert config['data']['target'] == 'medv'
        assert config['random_state'] == 123
        assert config['model']['degree'] == 2
        assert config['cross_validation']['nprune_min'] == 19
        assert config['cross_validation']['nprune_max'] == 50

    def test_missing_config(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_empty_config(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_config(str(path)) == {}


class TestLoadData:
    """Tests for load_data."""

    def test_bundled_dataset(self, boston_df):
        """Test the bundled table has the reference layout."""
        assert BUNDLED_DATA_PATH.exists()
        assert boston_df.shape == (506, 14)
        assert list(boston_df.columns) == [
            'crim', 'zn', 'indus', 'chas', 'nox', 'rm', 'age',
            'dis', 'rad', 'tax', 'ptratio', 'black', 'lstat', 'medv'
        ]
        assert set(boston_df['chas'].unique()) == {0, 1}

    def test_no_missing_values(self, boston_df):
        assert int(boston_df.isnull().sum().sum()) == 0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_data(str(tmp_path / "missing.csv"))

    def test_column_count_mismatch(self, tmp_path):
        path = tmp_path / "small.csv"
        pd.DataFrame({'a': [1, 2], 'b': [3, 4]}).to_csv(path, index=False)

        with pytest.raises(ValueError, match="Expected 14 columns"):
            load_data(str(path), expected_columns=14)

    def test_csv_override(self, tmp_path, boston_df):
        path = tmp_path / "copy.csv"
        boston_df.head(20).to_csv(path, index=False)

        df = load_data(str(path), expected_columns=14)
        assert df.shape == (20, 14)


class TestValidateData:
    """Tests for validate_data."""

    def test_valid_dataset(self, boston_df):
        is_valid, report = validate_data(boston_df)

        assert is_valid
        assert report['missing_values'] == 0
        assert report['issues'] == []

    def test_missing_values_strict(self, boston_df):
        df = boston_df.copy()
        df.loc[0, 'rm'] = np.nan

        with pytest.raises(ValueError, match="Missing values"):
            validate_data(df)

    def test_missing_values_non_strict(self, boston_df):
        df = boston_df.copy()
        df.loc[[0, 1], 'rm'] = np.nan

        is_valid, report = validate_data(df, strict=False)

        assert not is_valid
        assert report['missing_values'] == 2
        assert report['missing_by_column'] == {'rm': 2}

    def test_wrong_shape(self, boston_df):
        is_valid, report = validate_data(boston_df.head(100), strict=False)

        assert not is_valid
        assert any("Expected shape" in issue for issue in report['issues'])

    def test_shape_check_disabled(self, boston_df):
        is_valid, _ = validate_data(boston_df.head(100), expected_shape=None)
        assert is_valid

    def test_non_numeric_column(self):
        df = pd.DataFrame({'x': [1.0, 2.0], 'label': ['a', 'b']})

        is_valid, report = validate_data(df, expected_shape=None, strict=False)

        assert not is_valid
        assert any("Non-numeric" in issue for issue in report['issues'])

    def test_duplicates_are_warnings(self):
        df = pd.DataFrame({'x': [1.0, 1.0, 2.0], 'y': [3.0, 3.0, 4.0]})

        is_valid, report = validate_data(df, expected_shape=None)

        assert is_valid
        assert any("Duplicate" in warning for warning in report['warnings'])


class TestPrintDataSummary:
    """Tests for print_data_summary."""

    def test_summary_output(self, boston_df, capsys):
        print_data_summary(boston_df)
        out = capsys.readouterr().out

        assert "506 rows × 14 columns" in out
        assert "Missing values: 0" in out
        assert "medv" in out


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
