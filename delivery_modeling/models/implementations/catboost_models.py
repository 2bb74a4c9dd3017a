"""CatBoost model wrapper implementing BasePredictor interface."""

import pandas as pd
import numpy as np
from catboost import CatBoostRegressor as CBRegressor
from typing import Dict, Any, Optional

from ..base import BasePredictor


class CatBoostRegressor(BasePredictor):
    """CatBoost wrapper for ``boost_tree`` with the ``catboost`` engine."""

    def __init__(
        self,
        trees: int = 500,
        tree_depth: int = 6,
        learn_rate: float = 0.05,
        min_n: Optional[int] = None,
        random_state: int = 42,
        **kwargs
    ):
        """
        Initialize the CatBoost regressor.

        Args:
            trees: Number of boosting iterations
            tree_depth: Depth of the symmetric trees
            learn_rate: Shrinkage applied to each tree
            min_n: Minimum rows per leaf; switches to depth-wise growth,
                as symmetric trees ignore it
            random_state: Random state for reproducibility
            **kwargs: Additional CatBoost parameters
        """
        self.random_state = random_state

        cat_params = {
            'loss_function': 'RMSE',
            'iterations': int(trees),
            'depth': int(tree_depth),
            'learning_rate': learn_rate,
            'random_seed': random_state,
            'verbose': False,
            'allow_writing_files': False,
            'thread_count': 1
        }
        if min_n is not None:
            cat_params['grow_policy'] = 'Depthwise'
            cat_params['min_data_in_leaf'] = int(min_n)
        cat_params.update(kwargs)

        self.model = CBRegressor(**cat_params)
        self.columns = None

    def fit(self, X: pd.DataFrame, y: pd.Series, **fit_params) -> None:
        """Fit the CatBoost model."""
        Xd = self._encode(X, fit=True)
        self.model.fit(Xd, y, **fit_params)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Make predictions."""
        Xd = self._encode(X, fit=False)
        return self.model.predict(Xd)

    def get_params(self) -> Dict[str, Any]:
        """Get model parameters."""
        return self.model.get_params()
