"""Cubist model wrapper implementing BasePredictor interface."""

import pandas as pd
import numpy as np
from cubist import Cubist
from typing import Dict, Any, Optional

from ..base import BasePredictor


class CubistModel(BasePredictor):
    """
    Cubist wrapper for ``cubist_rules`` with the ``cubist`` engine.

    Cubist grows a set of rules, each holding a linear model, and boosts
    ``committees`` such rule sets. With ``neighbors`` set, predictions are
    adjusted using that many nearest training instances.
    """

    def __init__(
        self,
        committees: int = 1,
        neighbors: Optional[int] = 0,
        max_rules: int = 500,
        random_state: int = 42,
        **kwargs
    ):
        """
        Initialize the Cubist regressor.

        Args:
            committees: Number of boosted rule-based models (1-100)
            neighbors: Training instances used to adjust predictions (0-9, 0 disables)
            max_rules: Maximum number of rules per committee member
            random_state: Random state for reproducibility
            **kwargs: Additional ``cubist.Cubist`` parameters
        """
        neighbors = 0 if neighbors is None else int(neighbors)
        if not 0 <= neighbors <= 9:
            raise ValueError(f"neighbors must be between 0 and 9, got {neighbors}")
        if not 1 <= int(committees) <= 100:
            raise ValueError(f"committees must be between 1 and 100, got {committees}")
        self.committees = int(committees)
        self.neighbors = neighbors
        self.max_rules = int(max_rules)
        self.random_state = random_state

        cubist_params = {
            'n_rules': self.max_rules,
            'n_committees': self.committees,
            # Cubist expects None rather than 0 for "no instance correction"
            'neighbors': neighbors or None,
            'random_state': random_state,
        }
        cubist_params.update(kwargs)

        self.model = Cubist(**cubist_params)
        self.columns = None

    def fit(self, X: pd.DataFrame, y: pd.Series, **fit_params) -> None:
        """Fit the Cubist model."""
        Xd = self._encode(X, fit=True)
        self.model.fit(Xd, np.asarray(y, dtype=float), **fit_params)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Make predictions."""
        Xd = self._encode(X, fit=False)
        return np.asarray(self.model.predict(Xd), dtype=float)

    def get_params(self) -> Dict[str, Any]:
        """Get model parameters."""
        params = self.model.get_params()
        params.update({
            'committees': self.committees,
            'neighbors': self.neighbors,
            'max_rules': self.max_rules,
        })
        return params
