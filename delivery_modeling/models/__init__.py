"""Model specifications and engines for the delivery modeling project.

This package separates *what* is fitted (a :class:`ModelSpec` built with
``linear_reg``, ``boost_tree`` and friends) from *how* it is computed (the
engine wrappers in ``implementations``). All engines implement the
BasePredictor interface so workflows and tuning treat them uniformly.
"""

from .base import BasePredictor
from .implementations import (
    CatBoostRegressor,
    CubistModel,
    CubistRulesRegressor,
    ElasticNetModel,
    LightGBMRegressor,
    LinearRegressionModel,
    NearestNeighborModel,
    RandomForestModel,
    XGBoostRegressor,
)
from .spec import (
    ENGINES,
    ModelSpec,
    boost_tree,
    cubist_rules,
    linear_reg,
    nearest_neighbor,
    rand_forest,
)

__all__ = [
    "BasePredictor",
    "ModelSpec",
    "ENGINES",
    "linear_reg",
    "boost_tree",
    "rand_forest",
    "nearest_neighbor",
    "cubist_rules",
    "CatBoostRegressor",
    "CubistModel",
    "CubistRulesRegressor",
    "ElasticNetModel",
    "LightGBMRegressor",
    "LinearRegressionModel",
    "NearestNeighborModel",
    "RandomForestModel",
    "XGBoostRegressor",
]
