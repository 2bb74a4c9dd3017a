"""Regression performance metrics."""

from typing import Callable, Dict

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error


def rmse(truth, estimate) -> float:
    """Root mean squared error."""
    return float(np.sqrt(mean_squared_error(truth, estimate)))


def rsq(truth, estimate) -> float:
    """
    Squared Pearson correlation between observed and predicted values.

    This is the correlation-based R-squared, which is always within [0, 1]
    and is undefined (NaN) when either vector is constant.
    """
    truth = np.asarray(truth, dtype=float)
    estimate = np.asarray(estimate, dtype=float)
    if truth.std() == 0 or estimate.std() == 0:
        return float("nan")
    return float(np.corrcoef(truth, estimate)[0, 1] ** 2)


def mae(truth, estimate) -> float:
    """Mean absolute error."""
    return float(mean_absolute_error(truth, estimate))


def mape(truth, estimate) -> float:
    """Mean absolute percentage error, in percent. Rows with a zero truth are ignored."""
    truth = np.asarray(truth, dtype=float)
    estimate = np.asarray(estimate, dtype=float)
    nonzero = truth != 0
    if not nonzero.any():
        return float("nan")
    return float(100 * np.mean(np.abs((truth[nonzero] - estimate[nonzero]) / truth[nonzero])))


METRICS: Dict[str, Callable] = {"rmse": rmse, "rsq": rsq, "mae": mae, "mape": mape}

DIRECTIONS = {"rmse": "minimize", "rsq": "maximize", "mae": "minimize", "mape": "minimize"}


def metric_direction(name: str) -> str:
    if name not in DIRECTIONS:
        raise ValueError(f"Unknown metric '{name}'; available: {sorted(METRICS)}")
    return DIRECTIONS[name]


class MetricSet:
    """A bundle of metrics evaluated together on the same predictions."""

    def __init__(self, names):
        unknown = [n for n in names if n not in METRICS]
        if unknown:
            raise ValueError(f"Unknown metric(s) {unknown}; available: {sorted(METRICS)}")
        if not names:
            raise ValueError("A metric set needs at least one metric")
        self.names = list(names)

    @property
    def primary(self) -> str:
        return self.names[0]

    def __call__(self, truth, estimate) -> pd.DataFrame:
        """Returns one row per metric with ``.metric``, ``.estimator`` and ``.estimate``."""
        return pd.DataFrame({
            ".metric": self.names,
            ".estimator": "standard",
            ".estimate": [METRICS[n](truth, estimate) for n in self.names],
        })

    def __repr__(self):
        return f"metric_set({', '.join(self.names)})"


def metric_set(*names) -> MetricSet:
    """
    Combines metrics into a single callable.

    Example:
        >>> metric_set("rmse", "rsq")(y, pred)
          .metric .estimator  .estimate
        0    rmse   standard   5.21...
        1     rsq   standard   0.87...
    """
    return MetricSet(names)


def as_metric_set(metrics) -> MetricSet:
    """Accepts a MetricSet, a list of names or None (rmse, rsq, mae)."""
    if metrics is None:
        return metric_set("rmse", "rsq", "mae")
    if isinstance(metrics, MetricSet):
        return metrics
    if isinstance(metrics, str):
        return metric_set(metrics)
    return metric_set(*metrics)
