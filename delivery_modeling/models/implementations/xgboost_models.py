"""XGBoost model wrappers implementing BasePredictor interface."""

import pandas as pd
import numpy as np
import xgboost as xgb
from typing import Dict, Any

from ..base import BasePredictor


class XGBoostRegressor(BasePredictor):
    """XGBoost wrapper for ``boost_tree`` with the ``xgboost`` engine."""

    def __init__(
        self,
        trees: int = 500,
        tree_depth: int = 6,
        learn_rate: float = 0.05,
        min_n: int = 1,
        random_state: int = 42,
        **kwargs
    ):
        """
        Initialize the XGBoost regressor.

        Args:
            trees: Number of boosting rounds
            tree_depth: Maximum tree depth
            learn_rate: Shrinkage applied to each tree
            min_n: Minimum child weight (rows per leaf for squared error)
            random_state: Random state for reproducibility
            **kwargs: Additional XGBoost parameters
        """
        self.random_state = random_state

        xgb_params = {
            'objective': 'reg:squarederror',
            'n_estimators': int(trees),
            'max_depth': int(tree_depth),
            'learning_rate': learn_rate,
            'min_child_weight': min_n,
            'random_state': random_state,
            'n_jobs': 1
        }
        xgb_params.update(kwargs)

        self.model = xgb.XGBRegressor(**xgb_params)
        self.columns = None

    def fit(self, X: pd.DataFrame, y: pd.Series, **fit_params) -> None:
        """Fit the XGBoost model."""
        Xd = self._encode(X, fit=True)
        fit_params.setdefault('verbose', False)
        self.model.fit(Xd, y, **fit_params)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Make predictions."""
        Xd = self._encode(X, fit=False)
        return self.model.predict(Xd)

    def get_params(self) -> Dict[str, Any]:
        """Get model parameters."""
        return self.model.get_params()
