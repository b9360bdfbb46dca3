"""
Shared fixtures for the test suite.
"""

import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from housing_mars.data_loader import load_data
from housing_mars.preprocessing import preprocess_pipeline
from housing_mars.model import HousingPriceModel


@pytest.fixture(scope="session")
def boston_df():
    """The bundled Boston housing table."""
    return load_data()


@pytest.fixture(scope="session")
def prep_result(boston_df):
    """Scaled data split 70/30 with seed 123."""
    return preprocess_pipeline(
        boston_df,
        target='medv',
        categorical_columns=['chas'],
        train_fraction=0.7,
        random_state=123
    )


@pytest.fixture(scope="session")
def fitted_model(prep_result):
    """Degree-2 MARS model trained on the training split."""
    return HousingPriceModel(degree=2).fit(prep_result['train'], target='medv')
