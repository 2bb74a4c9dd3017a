"""Sklearn model wrappers implementing BasePredictor interface."""

import pandas as pd
import numpy as np
from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import ElasticNet, LinearRegression
from sklearn.neighbors import KNeighborsRegressor
from typing import Dict, Any, Optional

from ..base import BasePredictor


class LinearRegressionModel(BasePredictor):
    """Ordinary least squares wrapper for ``linear_reg`` with the ``sklearn`` engine."""

    def __init__(self, penalty: Optional[float] = None, mixture: Optional[float] = None,
                 random_state: int = 42, **kwargs):
        """
        Initialize the least squares model.

        Args:
            penalty: Must be None; ordinary least squares is unpenalized
            mixture: Must be None for the same reason
            random_state: Accepted for interface consistency
            **kwargs: Additional LinearRegression parameters

        Raises:
            ValueError: If a penalty or mixture is supplied
        """
        if penalty is not None or mixture is not None:
            raise ValueError(
                "The 'sklearn' engine for linear_reg fits ordinary least squares and does not "
                "accept penalty/mixture; use set_engine('glmnet') for a penalized fit"
            )
        self.random_state = random_state
        self.model = LinearRegression(**kwargs)
        self.columns = None

    def fit(self, X: pd.DataFrame, y: pd.Series, **fit_params) -> None:
        """Fit the least squares model."""
        Xd = self._encode(X, fit=True)
        self.model.fit(Xd, y, **fit_params)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Make predictions."""
        return self.model.predict(self._encode(X, fit=False))

    def get_params(self) -> Dict[str, Any]:
        """Get model parameters."""
        return self.model.get_params()


class ElasticNetModel(BasePredictor):
    """Penalized linear regression wrapper for ``linear_reg`` with the ``glmnet`` engine."""

    def __init__(self, penalty: Optional[float] = None, mixture: float = 1.0,
                 random_state: int = 42, **kwargs):
        """
        Initialize the elastic net.

        Args:
            penalty: Total amount of regularization (required)
            mixture: Proportion of lasso penalty (1 = lasso, 0 = ridge)
            random_state: Random state for reproducibility
            **kwargs: Additional ElasticNet parameters
        """
        if penalty is None:
            raise ValueError("The 'glmnet' engine for linear_reg requires a penalty value")
        if not 0.0 <= mixture <= 1.0:
            raise ValueError(f"mixture must be between 0 and 1, got {mixture}")
        self.penalty = penalty
        self.mixture = mixture
        self.random_state = random_state

        enet_params = {
            'alpha': penalty,
            'l1_ratio': mixture,
            'max_iter': 5000,
            'random_state': random_state,
        }
        enet_params.update(kwargs)

        self.model = ElasticNet(**enet_params)
        self.columns = None

    def fit(self, X: pd.DataFrame, y: pd.Series, **fit_params) -> None:
        """Fit the elastic net."""
        Xd = self._encode(X, fit=True)
        self.model.fit(Xd, y, **fit_params)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Make predictions."""
        return self.model.predict(self._encode(X, fit=False))

    def get_params(self) -> Dict[str, Any]:
        """Get model parameters."""
        return self.model.get_params()


class RandomForestModel(BasePredictor):
    """Random forest wrapper for ``rand_forest`` with the ``sklearn`` engine."""

    def __init__(
        self,
        trees: int = 500,
        min_n: int = 5,
        mtry: Optional[int] = None,
        random_state: int = 42,
        **kwargs
    ):
        """
        Initialize the random forest.

        Args:
            trees: Number of trees in the forest
            min_n: Minimum number of rows in a node to split it further
            mtry: Number of predictors sampled at each split (capped at the
                number of available predictors when fitting)
            random_state: Random state for reproducibility
            **kwargs: Additional RandomForestRegressor parameters
        """
        self.mtry = mtry
        self.random_state = random_state

        self.rf_params = {
            'n_estimators': int(trees),
            'min_samples_split': max(int(min_n), 2),
            'random_state': random_state,
            'n_jobs': 1
        }
        self.rf_params.update(kwargs)

        self.model = None
        self.columns = None

    def fit(self, X: pd.DataFrame, y: pd.Series, **fit_params) -> None:
        """Fit the random forest, resolving ``mtry`` against the encoded predictors."""
        Xd = self._encode(X, fit=True)
        params = dict(self.rf_params)
        if self.mtry is not None:
            params['max_features'] = int(min(max(self.mtry, 1), Xd.shape[1]))
        self.model = RandomForestRegressor(**params)
        self.model.fit(Xd, y, **fit_params)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Make predictions."""
        if self.model is None:
            raise ValueError("Model must be fitted before making predictions")
        return self.model.predict(self._encode(X, fit=False))

    def get_params(self) -> Dict[str, Any]:
        """Get model parameters."""
        params = dict(self.rf_params)
        params['mtry'] = self.mtry
        return params


class NearestNeighborModel(BasePredictor):
    """K-nearest neighbours wrapper for ``nearest_neighbor`` with the ``sklearn`` engine."""

    def __init__(self, neighbors: int = 5, weight_func: str = 'uniform',
                 random_state: int = 42, **kwargs):
        """
        Initialize the nearest neighbour regressor.

        Args:
            neighbors: Number of neighbours (capped at the training size)
            weight_func: 'uniform' or 'distance'
            random_state: Accepted for interface consistency
            **kwargs: Additional KNeighborsRegressor parameters
        """
        self.neighbors = int(neighbors)
        self.random_state = random_state
        self.knn_params = {'weights': weight_func, 'n_jobs': 1}
        self.knn_params.update(kwargs)
        self.model = None
        self.columns = None

    def fit(self, X: pd.DataFrame, y: pd.Series, **fit_params) -> None:
        """Fit the neighbour index."""
        Xd = self._encode(X, fit=True)
        k = int(min(max(self.neighbors, 1), len(Xd)))
        self.model = KNeighborsRegressor(n_neighbors=k, **self.knn_params)
        self.model.fit(Xd, y)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Make predictions."""
        if self.model is None:
            raise ValueError("Model must be fitted before making predictions")
        return self.model.predict(self._encode(X, fit=False))

    def get_params(self) -> Dict[str, Any]:
        """Get model parameters."""
        return {'neighbors': self.neighbors, **self.knn_params}
