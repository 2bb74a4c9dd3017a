"""Feature-engineering recipes for the delivery modeling project.

A :class:`Recipe` declares preprocessing steps against column selectors;
it is estimated on training data and applied unchanged to any new data.
"""

from .recipe import Recipe
from .selectors import (
    all_factor_predictors,
    all_nominal_predictors,
    all_numeric_predictors,
    all_outcomes,
    all_predictors,
    matches,
    starts_with,
)

__all__ = [
    "Recipe",
    "all_factor_predictors",
    "all_nominal_predictors",
    "all_numeric_predictors",
    "all_outcomes",
    "all_predictors",
    "matches",
    "starts_with",
]
