"""
Test Suite for the MARS Estimator
==================================

Tests for MARSRegressor forward pass, pruning and reporting.
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sklearn.base import clone
from sklearn.exceptions import NotFittedError

from housing_mars.mars import (
    MARSRegressor,
    default_max_terms,
    evaluate_term,
    format_term,
    gcv,
    knot_spacing
)


@pytest.fixture
def hinge_data():
    """One informative hinge plus a noise predictor."""
    rng = np.random.default_rng(0)
    X = pd.DataFrame({
        'x0': rng.uniform(0, 1, 200),
        'noise': rng.uniform(0, 1, 200)
    })
    y = 3.0 * np.maximum(0.0, X['x0'].values - 0.5)
    return X, y


@pytest.fixture
def interaction_data():
    """Target driven by a product of two hinges."""
    rng = np.random.default_rng(1)
    X = rng.uniform(0, 1, size=(300, 3))
    y = 10.0 * np.maximum(0.0, X[:, 0] - 0.4) * np.maximum(0.0, X[:, 1] - 0.3)
    return X, y


class TestHelpers:
    """Tests for module-level helpers."""

    def test_default_max_terms(self):
        assert default_max_terms(13) == 27
        assert default_max_terms(2) == 21
        assert default_max_terms(150) == 201

    def test_knot_spacing_positive(self):
        minspan, endspan = knot_spacing(354, 13)
        assert minspan >= 1
        assert endspan >= 1

    def test_gcv_penalizes_terms(self):
        assert gcv(10.0, 100, 5, 3.0) > gcv(10.0, 100, 1, 3.0)
        assert gcv(10.0, 10, 10, 3.0) == np.inf

    def test_evaluate_term(self):
        X = np.array([[0.0, 1.0], [1.0, 2.0], [2.0, 0.0]])
        np.testing.assert_array_equal(evaluate_term((), X), [1.0, 1.0, 1.0])
        np.testing.assert_array_equal(evaluate_term(((0, 1.0, 1),), X), [0.0, 0.0, 1.0])
        np.testing.assert_array_equal(evaluate_term(((0, 1.0, -1),), X), [1.0, 0.0, 0.0])
        np.testing.assert_array_equal(
            evaluate_term(((0, 0.0, 1), (1, 0.0, 1)), X), [0.0, 2.0, 0.0]
        )

    def test_format_term(self):
        names = ['rm', 'lstat']
        assert format_term((), names) == "(Intercept)"
        assert format_term(((0, 0.5, 1),), names) == "h(rm-0.5)"
        assert format_term(((0, 0.5, 1), (1, -1.25, -1)), names) == "h(rm-0.5)*h(-1.25-lstat)"


class TestMARSRegressor:
    """Tests for MARSRegressor."""

    def test_recovers_hinge(self, hinge_data):
        """Test a single hinge target is fitted almost exactly."""
        X, y = hinge_data
        model = MARSRegressor(max_degree=1).fit(X, y)

        assert model.score(X, y) > 0.99
        assert model.rsq_ > 0.99

    def test_importance_ranks_informative_feature_first(self, hinge_data):
        X, y = hinge_data
        importance = MARSRegressor(max_degree=1).fit(X, y).feature_importances()

        assert importance.index[0] == 'x0'
        assert list(importance.columns) == ['nsubsets', 'gcv', 'rss', 'used']
        assert importance['gcv'].max() == pytest.approx(100.0)

    def test_degree_limits_interactions(self, interaction_data):
        X, y = interaction_data
        additive = MARSRegressor(max_degree=1).fit(X, y)
        interacting = MARSRegressor(max_degree=2).fit(X, y)

        assert additive.term_degrees().max() <= 1
        assert interacting.term_degrees().max() <= 2
        assert interacting.score(X, y) > additive.score(X, y)

    def test_terms_use_distinct_predictors(self, interaction_data):
        X, y = interaction_data
        model = MARSRegressor(max_degree=2).fit(X, y)

        for term in model.terms_:
            features = [factor[0] for factor in term]
            assert len(features) == len(set(features))

    def test_interaction_knots_keep_double_end_distance(self, interaction_data):
        """Knots of interaction terms stay 2 * endspan points from the support edges."""
        X, y = interaction_data
        endspan = 5
        model = MARSRegressor(max_degree=2, endspan=endspan).fit(X, y)

        interactions = [term for term in model.terms_ if len(term) == 2]
        assert interactions
        for term in interactions:
            feature, knot, _ = term[-1]
            support = evaluate_term(term[:-1], X) > 0
            values = X[support, feature]
            assert (values <= knot).sum() > 2 * endspan
            assert (values >= knot).sum() > 2 * endspan

    def test_forward_pass_respects_max_terms(self, interaction_data):
        X, y = interaction_data
        model = MARSRegressor(max_degree=2, max_terms=7).fit(X, y)

        assert len(model.terms_) <= 7

    def test_nprune_limits_selected_terms(self, interaction_data):
        X, y = interaction_data
        model = MARSRegressor(max_degree=2, nprune=3).fit(X, y)

        assert model.selected_size_ <= 3
        assert len(model.coef_) == model.selected_size_

    def test_predict_with_nprune(self, interaction_data):
        X, y = interaction_data
        model = MARSRegressor(max_degree=2).fit(X, y)
        full = len(model.pruning_path_)

        np.testing.assert_allclose(model.predict(X, nprune=full), model.predict(X))
        small = model.predict(X, nprune=1)
        np.testing.assert_allclose(small, np.full(len(y), y.mean()))

    def test_pruning_path_is_nested(self, interaction_data):
        """Test each subset contains the next smaller one and keeps the intercept."""
        X, y = interaction_data
        model = MARSRegressor(max_degree=2).fit(X, y)

        for size in range(1, len(model.pruning_path_)):
            smaller = set(model.pruning_path_[size - 1])
            larger = set(model.pruning_path_[size])
            assert smaller < larger
            assert 0 in smaller

        assert np.all(np.diff(model.rss_path_) <= 1e-8 * max(model.rss_path_[0], 1.0))

    def test_selected_size_minimizes_gcv(self, interaction_data):
        X, y = interaction_data
        model = MARSRegressor(max_degree=2).fit(X, y)

        assert model.gcv_ == pytest.approx(model.gcv_path_.min())

    def test_transform_matches_predict(self, hinge_data):
        X, y = hinge_data
        model = MARSRegressor().fit(X, y)

        np.testing.assert_allclose(model.transform(X) @ model.coef_, model.predict(X))

    def test_constant_target(self):
        X = np.random.default_rng(2).uniform(size=(50, 2))
        y = np.full(50, 4.0)
        model = MARSRegressor().fit(X, y)

        assert model.selected_size_ == 1
        np.testing.assert_allclose(model.predict(X), 4.0)

    def test_predict_before_fit(self):
        with pytest.raises(NotFittedError):
            MARSRegressor().predict(np.zeros((3, 2)))

    def test_predict_wrong_width(self, hinge_data):
        X, y = hinge_data
        model = MARSRegressor().fit(X, y)

        with pytest.raises(ValueError, match="Expected 2 features"):
            model.predict(np.zeros((3, 5)))

    @pytest.mark.parametrize("params", [{'max_degree': 0}, {'nprune': 0}])
    def test_invalid_params(self, hinge_data, params):
        X, y = hinge_data
        with pytest.raises(ValueError):
            MARSRegressor(**params).fit(X, y)

    def test_clone(self):
        model = clone(MARSRegressor(max_degree=2, nprune=10))

        assert model.get_params()['max_degree'] == 2
        assert model.get_params()['nprune'] == 10

    def test_summary(self, hinge_data):
        X, y = hinge_data
        text = MARSRegressor().fit(X, y).summary()

        assert "(Intercept)" in text
        assert "h(" in text
        assert "Selected" in text
        assert "GRSq" in text


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
