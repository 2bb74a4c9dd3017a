"""LightGBM model wrappers implementing BasePredictor interface."""

import logging

import pandas as pd
import numpy as np
import lightgbm as lgb
from sklearn.neighbors import NearestNeighbors
from typing import Dict, Any

from ..base import BasePredictor


class LightGBMRegressor(BasePredictor):
    """LightGBM wrapper for ``boost_tree`` with the ``lightgbm`` engine."""

    def __init__(
        self,
        trees: int = 500,
        tree_depth: int = 6,
        learn_rate: float = 0.05,
        min_n: int = 20,
        random_state: int = 42,
        **kwargs
    ):
        """
        Initialize the LightGBM regressor.

        Args:
            trees: Number of boosting rounds
            tree_depth: Maximum tree depth (leaves are capped at 2**depth)
            learn_rate: Shrinkage applied to each tree
            min_n: Minimum number of rows in a leaf
            random_state: Random state for reproducibility
            **kwargs: Additional LightGBM parameters
        """
        self.random_state = random_state

        lgb_params = {
            'objective': 'regression',
            'n_estimators': int(trees),
            'max_depth': int(tree_depth),
            'num_leaves': int(min(2 ** int(tree_depth), 131072)),
            'learning_rate': learn_rate,
            'min_child_samples': int(min_n),
            'random_state': random_state,
            'verbose': -1,
            'n_jobs': 1
        }
        lgb_params.update(kwargs)

        self.model = lgb.LGBMRegressor(**lgb_params)
        self.columns = None

    def fit(self, X: pd.DataFrame, y: pd.Series, **fit_params) -> None:
        """Fit the LightGBM model."""
        Xd = self._encode(X, fit=True)
        self.model.fit(Xd, y, **fit_params)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Make predictions."""
        Xd = self._encode(X, fit=False)
        return self.model.predict(Xd)

    def get_params(self) -> Dict[str, Any]:
        """Get model parameters."""
        return self.model.get_params()


class CubistRulesRegressor(BasePredictor):
    """
    Rule-based ensemble for ``cubist_rules`` with the ``lightgbm`` engine.

    Each committee member is a tree whose terminal nodes hold linear models
    (LightGBM's ``linear_tree``), so every leaf is a rule with a regression
    equation attached. Committees are boosted: each member corrects the
    residuals of the ones before it.

    With ``neighbors > 0`` the model prediction for a new row is adjusted
    using its nearest training rows: the prediction becomes the
    distance-weighted average of ``y_k - f(x_k) + f(x)`` over the
    neighbours, with weights ``1 / (d_k + 0.5)``. Distances are computed on
    predictors scaled to the training standard deviation.
    """

    def __init__(
        self,
        committees: int = 20,
        neighbors: int = 0,
        max_rules: int = 16,
        learn_rate: float = 0.1,
        random_state: int = 42,
        **kwargs
    ):
        """
        Initialize the rule-based ensemble.

        Args:
            committees: Number of committee members (boosting rounds)
            neighbors: Number of training rows used to adjust predictions (0-9)
            max_rules: Maximum number of rules (leaves) per committee member
            learn_rate: Shrinkage applied to each committee member
            random_state: Random state for reproducibility
            **kwargs: Additional LightGBM parameters
        """
        if not 0 <= int(neighbors) <= 9:
            raise ValueError(f"neighbors must be between 0 and 9, got {neighbors}")
        if int(committees) < 1:
            raise ValueError(f"committees must be at least 1, got {committees}")
        self.committees = int(committees)
        self.neighbors = int(neighbors)
        self.max_rules = int(max_rules)
        self.random_state = random_state

        lgb_params = {
            'objective': 'regression',
            'linear_tree': True,
            'n_estimators': self.committees,
            'num_leaves': max(self.max_rules, 2),
            'learning_rate': learn_rate,
            'random_state': random_state,
            'verbose': -1,
            'n_jobs': 1
        }
        lgb_params.update(kwargs)

        self.model = lgb.LGBMRegressor(**lgb_params)
        self.columns = None
        self._nn = None
        self._residuals = None
        self._scale = None

    def fit(self, X: pd.DataFrame, y: pd.Series, **fit_params) -> None:
        """Fit the committees and, when requested, index the training rows."""
        Xd = self._encode(X, fit=True)
        y_arr = np.asarray(y, dtype=float)
        self.model.fit(Xd, y_arr, **fit_params)

        if self.neighbors > 0:
            scale = Xd.std(ddof=0).to_numpy()
            self._scale = np.where(scale > 0, scale, 1.0)
            scaled = Xd.to_numpy() / self._scale
            self._residuals = y_arr - self.model.predict(Xd)
            k = min(self.neighbors, len(Xd))
            self._nn = NearestNeighbors(n_neighbors=k).fit(scaled)
            logging.debug("Instance correction enabled with %s neighbours", k)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Make predictions, applying the neighbour adjustment when enabled."""
        Xd = self._encode(X, fit=False)
        pred = self.model.predict(Xd)
        if self._nn is None:
            return pred

        distances, indices = self._nn.kneighbors(Xd.to_numpy() / self._scale)
        weights = 1.0 / (distances + 0.5)
        adjustment = (weights * self._residuals[indices]).sum(axis=1) / weights.sum(axis=1)
        return pred + adjustment

    def get_params(self) -> Dict[str, Any]:
        """Get model parameters."""
        params = self.model.get_params()
        params.update({
            'committees': self.committees,
            'neighbors': self.neighbors,
            'max_rules': self.max_rules,
        })
        return params
