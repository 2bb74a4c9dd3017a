"""Base model interface for all prediction models."""

from abc import ABC, abstractmethod
from typing import Any, Dict

import numpy as np
import pandas as pd


class BasePredictor(ABC):
    """
    Base interface for all regression engines in the delivery modeling project.

    Every engine behind a model specification implements this interface, so
    workflows, resampling and tuning can fit and predict without knowing
    which library does the work.
    """

    @abstractmethod
    def fit(self, X: pd.DataFrame, y: pd.Series, **fit_params) -> None:
        """
        Fit the model to training data.

        Args:
            X: Feature matrix
            y: Target values
            **fit_params: Additional fitting parameters
        """

    @abstractmethod
    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """
        Make predictions on new data.

        Args:
            X: Feature matrix

        Returns:
            Predicted values
        """
        pass

    def get_params(self) -> Dict[str, Any]:
        """
        Get model parameters.

        Returns:
            Dictionary of model parameters
        """
        return {}

    # Shared encoding utility for all predictors
    def _encode(self, X: pd.DataFrame, fit: bool = False) -> pd.DataFrame:
        """
        One-hot encode categorical/object features consistently and align columns.

        Data coming out of a recipe is already numeric and passes through
        unchanged apart from the float cast.

        Args:
            X: Input feature DataFrame
            fit: If True, learns and stores the encoded column set. If False, aligns to stored columns

        Returns:
            Encoded and aligned DataFrame of floats
        """
        Xd = pd.get_dummies(X, drop_first=True, dummy_na=False)

        if Xd.columns.duplicated().any():
            Xd = Xd.loc[:, ~Xd.columns.duplicated()]

        Xd = Xd.astype(float)

        if fit:
            self.columns = Xd.columns.tolist()
        else:
            if not hasattr(self, "columns") or self.columns is None:
                raise ValueError("Model must be fitted before making predictions")

            missing_cols = set(self.columns) - set(Xd.columns)
            for col in missing_cols:
                Xd[col] = 0.0

            # Reorder columns to match training
            Xd = Xd[self.columns]

        return Xd
