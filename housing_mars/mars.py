"""
MARS Estimator
==============

Multivariate Adaptive Regression Splines as a scikit-learn regressor.

The model is a linear combination of basis functions, each one a product of
hinge functions ``max(0, x - t)`` / ``max(0, t - x)`` over distinct predictors.

Fitting runs in two passes:
    - Forward pass: greedily add the reflected hinge pair (parent term x hinge)
      that most reduces the residual sum of squares
    - Backward pass: drop terms one at a time, keeping the best subset of each
      size, and select the size with the lowest GCV

The whole pruning path is kept, so sub-models limited to ``nprune`` terms can
be evaluated without refitting.
"""

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import linalg
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.utils.validation import check_array, check_is_fitted, check_X_y

logger = logging.getLogger(__name__)

# (feature index, knot, direction); direction +1 is max(0, x - t), -1 is max(0, t - x)
Factor = Tuple[int, float, int]
Term = Tuple[Factor, ...]

_TOL = 1e-10


def default_max_terms(n_features: int) -> int:
    """Forward pass term limit used when ``max_terms`` is not given."""
    return min(200, max(20, 2 * n_features)) + 1


def default_penalty(max_degree: int) -> float:
    """GCV knot penalty: 3 for interaction models, 2 for additive ones."""
    return 3.0 if max_degree > 1 else 2.0


def knot_spacing(n_samples: int, n_features: int, alpha: float = 0.05) -> Tuple[int, int]:
    """
    Friedman's minimum knot spacing and end exclusion.

    Args:
        n_samples: Number of training rows
        n_features: Number of predictors
        alpha: Tolerated probability of a run of same-signed residuals

    Returns:
        Tuple of (minspan, endspan)
    """
    minspan = int(-np.log2(-(1.0 / (n_samples * n_features)) * np.log(1.0 - alpha)) / 2.5)
    endspan = int(3 - np.log2(alpha / n_features))
    return max(minspan, 1), max(endspan, 1)


def gcv(rss: float, n_samples: int, n_terms: int, penalty: float) -> float:
    """Generalized cross-validation error of a model with ``n_terms`` terms."""
    effective = n_terms + penalty * (n_terms - 1) / 2.0
    if effective >= n_samples:
        return np.inf
    return (rss / n_samples) / (1.0 - effective / n_samples) ** 2


def evaluate_term(term: Term, X: np.ndarray) -> np.ndarray:
    """Evaluate a single basis function on every row of ``X``."""
    column = np.ones(X.shape[0])
    for feature, knot, direction in term:
        column = column * np.maximum(0.0, direction * (X[:, feature] - knot))
    return column


def format_term(term: Term, feature_names: List[str]) -> str:
    """Render a term the way earth prints it, e.g. ``h(rm-0.52)*h(0.1-lstat)``."""
    if not term:
        return "(Intercept)"
    parts = []
    for feature, knot, direction in term:
        name = feature_names[feature]
        if direction > 0:
            parts.append(f"h({name}-{knot:.4g})")
        else:
            parts.append(f"h({knot:.4g}-{name})")
    return "*".join(parts)


class MARSRegressor(RegressorMixin, BaseEstimator):
    """
    MARS regression model.

    Attributes set by ``fit``:
        terms_: Every basis function produced by the forward pass
        pruning_path_: Best subset of term indices for each model size
        rss_path_ / gcv_path_: RSS and GCV of each subset
        selected_size_: Number of terms in the GCV-selected model
        coef_: Coefficients of the selected terms
    """

    def __init__(
        self,
        max_degree: int = 1,
        max_terms: Optional[int] = None,
        nprune: Optional[int] = None,
        penalty: Optional[float] = None,
        thresh: float = 0.001,
        minspan: Optional[int] = None,
        endspan: Optional[int] = None,
        trace: bool = False
    ):
        self.max_degree = max_degree
        self.max_terms = max_terms
        self.nprune = nprune
        self.penalty = penalty
        self.thresh = thresh
        self.minspan = minspan
        self.endspan = endspan
        self.trace = trace

    def fit(self, X, y) -> 'MARSRegressor':
        """
        Run the forward and backward passes.

        Args:
            X: Predictor matrix of shape (n_samples, n_features)
            y: Target vector of shape (n_samples,)

        Returns:
            Self for method chaining
        """
        if hasattr(X, "columns"):
            self.feature_names_in_ = np.asarray(X.columns, dtype=object)
        X, y = check_X_y(X, y, dtype=np.float64, y_numeric=True)

        if self.max_degree < 1:
            raise ValueError(f"max_degree must be >= 1, got {self.max_degree}")
        if self.nprune is not None and self.nprune < 1:
            raise ValueError(f"nprune must be >= 1, got {self.nprune}")

        n_samples, n_features = X.shape
        self.n_features_in_ = n_features
        self.penalty_ = self.penalty if self.penalty is not None else default_penalty(self.max_degree)

        auto_minspan, auto_endspan = knot_spacing(n_samples, n_features)
        minspan = self.minspan if self.minspan is not None else auto_minspan
        endspan = self.endspan if self.endspan is not None else auto_endspan
        max_terms = self.max_terms if self.max_terms is not None else default_max_terms(n_features)

        self.terms_, basis = self._forward_pass(X, y, max_terms, minspan, endspan)
        self._backward_pass(basis, y)

        self.selected_size_ = self._best_size(self.nprune)
        self._coef_cache: Dict[int, np.ndarray] = {}
        self.coef_ = self._coef_for_size(self.selected_size_)
        self.selected_terms_ = list(self.pruning_path_[self.selected_size_ - 1])

        tss = float(np.sum((y - y.mean()) ** 2))
        self.rss_ = float(self.rss_path_[self.selected_size_ - 1])
        self.gcv_ = float(self.gcv_path_[self.selected_size_ - 1])
        null_gcv = gcv(tss, n_samples, 1, self.penalty_)
        self.rsq_ = 1.0 - self.rss_ / tss if tss > 0 else 1.0
        self.grsq_ = 1.0 - self.gcv_ / null_gcv if null_gcv > 0 else 1.0

        if self.trace:
            logger.info(
                f"Selected {self.selected_size_} of {len(self.terms_)} terms "
                f"(GCV {self.gcv_:.4g}, RSq {self.rsq_:.4f})"
            )
        return self

    def _forward_pass(
        self,
        X: np.ndarray,
        y: np.ndarray,
        max_terms: int,
        minspan: int,
        endspan: int
    ) -> Tuple[List[Term], np.ndarray]:
        n_samples, n_features = X.shape
        terms: List[Term] = [()]
        columns = [np.ones(n_samples)]

        tss = float(np.sum((y - y.mean()) ** 2))
        rss = tss
        self.termination_reason_ = "Reached maximum number of terms"

        if tss <= 0:
            self.termination_reason_ = "Constant response"
            return terms, np.column_stack(columns)

        while len(terms) + 2 <= max_terms:
            basis = np.column_stack(columns)
            Q, _ = np.linalg.qr(basis)
            residual = y - Q @ (Q.T @ y)

            best = None
            best_gain = 0.0
            for parent_idx, parent in enumerate(terms):
                if len(parent) >= self.max_degree:
                    continue
                used = {factor[0] for factor in parent}
                parent_col = columns[parent_idx]
                support = parent_col > 0
                # Interaction knots keep twice the end distance
                span = endspan * 2 if parent else endspan
                for feature in range(n_features):
                    if feature in used:
                        continue
                    knots = self._candidate_knots(X[support, feature], minspan, span)
                    if knots.size == 0:
                        continue
                    candidate = self._score_knots(X[:, feature], parent_col, knots, Q, residual)
                    if candidate is not None and candidate[0] > best_gain:
                        best_gain = candidate[0]
                        best = (parent_idx, feature) + candidate[1:]

            if best is None:
                self.termination_reason_ = "No new term increases RSq"
                break
            if best_gain / tss < self.thresh:
                self.termination_reason_ = f"RSq changed by less than {self.thresh} at {len(terms)} terms"
                break

            parent_idx, feature, knot, directions = best
            for direction in directions:
                term = terms[parent_idx] + ((feature, float(knot), direction),)
                terms.append(term)
                columns.append(evaluate_term(term, X))

            rss -= best_gain
            rsq = 1.0 - rss / tss
            if self.trace:
                logger.info(
                    f"Forward pass: {len(terms)} terms, RSq {rsq:.4f}, "
                    f"added {format_term(terms[-1], self._names())}"
                )
            if rsq >= 1.0 - self.thresh:
                self.termination_reason_ = f"Reached RSq {1.0 - self.thresh}"
                break

        return terms, np.column_stack(columns)

    @staticmethod
    def _candidate_knots(values: np.ndarray, minspan: int, endspan: int) -> np.ndarray:
        ordered = np.sort(values)
        if ordered.size <= 2 * endspan:
            return np.array([])
        return np.unique(ordered[endspan:ordered.size - endspan:minspan])

    @staticmethod
    def _score_knots(
        x: np.ndarray,
        parent_col: np.ndarray,
        knots: np.ndarray,
        Q: np.ndarray,
        residual: np.ndarray
    ) -> Optional[Tuple[float, float, Tuple[int, ...]]]:
        """
        Best RSS reduction over all knots for one (parent, feature) pair.

        Candidate columns are orthogonalised against the current basis so the
        reduction of each reflected pair comes from a 2x2 normal system.
        """
        diff = x[:, None] - knots[None, :]
        hinges = (
            parent_col[:, None] * np.maximum(0.0, diff),
            parent_col[:, None] * np.maximum(0.0, -diff)
        )
        projected = [h - Q @ (Q.T @ h) for h in hinges]

        norms = [np.sum(h ** 2, axis=0) for h in hinges]
        a = np.sum(projected[0] ** 2, axis=0)
        d = np.sum(projected[1] ** 2, axis=0)
        b = np.sum(projected[0] * projected[1], axis=0)
        u = projected[0].T @ residual
        v = projected[1].T @ residual

        valid_up = (norms[0] > 0) & (a > _TOL * np.maximum(norms[0], 1.0))
        valid_down = (norms[1] > 0) & (d > _TOL * np.maximum(norms[1], 1.0))

        with np.errstate(divide="ignore", invalid="ignore"):
            gain_up = np.where(valid_up, u ** 2 / a, 0.0)
            gain_down = np.where(valid_down, v ** 2 / d, 0.0)
            det = a * d - b ** 2
            paired = valid_up & valid_down & (det > _TOL * a * d)
            gain_pair = np.where(paired, (d * u ** 2 - 2 * b * u * v + a * v ** 2) / det, 0.0)

        gains = np.vstack([gain_pair, gain_up, gain_down])
        gains = np.nan_to_num(gains, nan=0.0, posinf=0.0, neginf=0.0)
        kind, k = np.unravel_index(np.argmax(gains), gains.shape)
        gain = float(gains[kind, k])
        if gain <= 0:
            return None

        directions = ((1, -1), (1,), (-1,))[kind]
        return gain, float(knots[k]), directions

    def _backward_pass(self, basis: np.ndarray, y: np.ndarray) -> None:
        n_samples, n_terms = basis.shape
        subset = list(range(n_terms))
        path: List[List[int]] = [[] for _ in range(n_terms)]
        rss_path = np.zeros(n_terms)

        path[n_terms - 1] = list(subset)
        rss_path[n_terms - 1] = _lstsq_rss(basis[:, subset], y)

        for size in range(n_terms - 1, 0, -1):
            best_rss = np.inf
            best_drop = None
            for position in range(1, len(subset)):
                trial = subset[:position] + subset[position + 1:]
                trial_rss = _lstsq_rss(basis[:, trial], y)
                if trial_rss < best_rss:
                    best_rss = trial_rss
                    best_drop = position
            subset = subset[:best_drop] + subset[best_drop + 1:]
            path[size - 1] = list(subset)
            rss_path[size - 1] = best_rss
            if self.trace:
                logger.debug(f"Backward pass: {size} terms, RSS {best_rss:.4g}")

        self._basis = basis
        self._y = y
        self.pruning_path_ = path
        self.rss_path_ = rss_path
        self.gcv_path_ = np.array([
            gcv(rss_path[i], n_samples, i + 1, self.penalty_) for i in range(n_terms)
        ])

    def _best_size(self, nprune: Optional[int]) -> int:
        limit = len(self.gcv_path_) if nprune is None else min(nprune, len(self.gcv_path_))
        return int(np.argmin(self.gcv_path_[:limit])) + 1

    def _coef_for_size(self, size: int) -> np.ndarray:
        if size not in self._coef_cache:
            subset = self.pruning_path_[size - 1]
            coef, *_ = linalg.lstsq(self._basis[:, subset], self._y)
            self._coef_cache[size] = coef
        return self._coef_cache[size]

    def _names(self) -> List[str]:
        if hasattr(self, "feature_names_in_"):
            return [str(name) for name in self.feature_names_in_]
        return [f"x{i}" for i in range(getattr(self, "n_features_in_", 0))]

    def predict(self, X, nprune: Optional[int] = None) -> np.ndarray:
        """
        Predict with the selected model.

        Args:
            X: Predictor matrix of shape (n_samples, n_features)
            nprune: Evaluate the best sub-model of at most this many terms
                instead of the fitted selection

        Returns:
            Predictions of shape (n_samples,)
        """
        check_is_fitted(self, "coef_")
        X = check_array(X, dtype=np.float64)
        if X.shape[1] != self.n_features_in_:
            raise ValueError(f"Expected {self.n_features_in_} features, but got {X.shape[1]}")

        if nprune is None:
            size, coef = self.selected_size_, self.coef_
        else:
            if nprune < 1:
                raise ValueError(f"nprune must be >= 1, got {nprune}")
            size = self._best_size(nprune)
            coef = self._coef_for_size(size)

        subset = self.pruning_path_[size - 1]
        basis = np.column_stack([evaluate_term(self.terms_[i], X) for i in subset])
        return basis @ coef

    def transform(self, X) -> np.ndarray:
        """Basis function matrix of the selected terms."""
        check_is_fitted(self, "coef_")
        X = check_array(X, dtype=np.float64)
        return np.column_stack([evaluate_term(self.terms_[i], X) for i in self.selected_terms_])

    def term_degrees(self) -> np.ndarray:
        """Interaction degree of each selected term (0 for the intercept)."""
        check_is_fitted(self, "coef_")
        return np.array([len(self.terms_[i]) for i in self.selected_terms_])

    def feature_importances(self) -> pd.DataFrame:
        """
        Earth-style variable importance from the pruning path.

        For every subset up to the selected size, the RSS and GCV decrease
        relative to the next smaller subset is credited to each predictor used
        by that subset. ``gcv`` and ``rss`` are scaled so the top predictor
        scores 100.

        Returns:
            DataFrame indexed by predictor with columns nsubsets, gcv, rss, used
        """
        check_is_fitted(self, "coef_")
        names = self._names()
        n_features = len(names)
        nsubsets = np.zeros(n_features, dtype=int)
        gcv_score = np.zeros(n_features)
        rss_score = np.zeros(n_features)

        for size in range(2, self.selected_size_ + 1):
            subset = self.pruning_path_[size - 1]
            features = {f for i in subset for f, _, _ in self.terms_[i]}
            rss_drop = self.rss_path_[size - 2] - self.rss_path_[size - 1]
            gcv_drop = self.gcv_path_[size - 2] - self.gcv_path_[size - 1]
            if not np.isfinite(gcv_drop):
                gcv_drop = 0.0
            for feature in features:
                nsubsets[feature] += 1
                rss_score[feature] += rss_drop
                gcv_score[feature] += gcv_drop

        final = {f for i in self.selected_terms_ for f, _, _ in self.terms_[i]}
        table = pd.DataFrame({
            'nsubsets': nsubsets,
            'gcv': _scale_to_100(gcv_score),
            'rss': _scale_to_100(rss_score),
            'used': [i in final for i in range(n_features)]
        }, index=pd.Index(names, name='feature'))

        table = table[table['nsubsets'] > 0]
        return table.sort_values(['nsubsets', 'gcv', 'rss'], ascending=False)

    def summary(self) -> str:
        """Text report of the selected terms, coefficients and fit statistics."""
        check_is_fitted(self, "coef_")
        names = self._names()
        lines = [f"{'':<32}{'coefficients':>14}"]
        for index, coef in zip(self.selected_terms_, self.coef_):
            lines.append(f"{format_term(self.terms_[index], names):<32}{coef:>14.6f}")

        used = sorted({f for i in self.selected_terms_ for f, _, _ in self.terms_[i]})
        degrees = np.bincount(self.term_degrees(), minlength=self.max_degree + 1)
        importance = ", ".join(self.feature_importances().index)

        lines.append("")
        lines.append(
            f"Selected {self.selected_size_} of {len(self.terms_)} terms, "
            f"and {len(used)} of {self.n_features_in_} predictors"
        )
        lines.append(f"Termination condition: {self.termination_reason_}")
        lines.append(f"Importance: {importance}")
        lines.append(
            "Number of terms at each degree of interaction: "
            + " ".join(str(count) for count in degrees)
        )
        lines.append(
            f"GCV {self.gcv_:.6g}    RSS {self.rss_:.6g}    "
            f"GRSq {self.grsq_:.6g}    RSq {self.rsq_:.6g}"
        )
        return "\n".join(lines)


def _lstsq_rss(basis: np.ndarray, y: np.ndarray) -> float:
    coef, *_ = linalg.lstsq(basis, y)
    residual = y - basis @ coef
    return float(residual @ residual)


def _scale_to_100(values: np.ndarray) -> np.ndarray:
    top = np.max(values) if values.size else 0.0
    if top <= 0:
        return np.zeros_like(values)
    return 100.0 * values / top
