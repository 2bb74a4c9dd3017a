"""Specific engine implementations for the delivery modeling project.

This module contains all the concrete model implementations organized by
framework/library (scikit-learn, XGBoost, LightGBM, CatBoost, Cubist).
"""

from .catboost_models import CatBoostRegressor
from .cubist_models import CubistModel
from .lightgbm_models import CubistRulesRegressor, LightGBMRegressor
from .sklearn_models import ElasticNetModel, LinearRegressionModel, NearestNeighborModel, RandomForestModel
from .xgboost_models import XGBoostRegressor

__all__ = [
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
