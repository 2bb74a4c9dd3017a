"""Model specifications: what to fit, separate from how it is computed."""

import copy
import inspect
from typing import Any, Dict, Optional

from delivery_modeling.parameters import fill_placeholders, placeholder_ids

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

ENGINES = {
    "linear_reg": {"sklearn": LinearRegressionModel, "glmnet": ElasticNetModel},
    "boost_tree": {"xgboost": XGBoostRegressor, "lightgbm": LightGBMRegressor, "catboost": CatBoostRegressor},
    "rand_forest": {"sklearn": RandomForestModel},
    "nearest_neighbor": {"sklearn": NearestNeighborModel},
    "cubist_rules": {"cubist": CubistModel, "lightgbm": CubistRulesRegressor},
}

DEFAULT_ENGINES = {
    "linear_reg": "sklearn",
    "boost_tree": "xgboost",
    "rand_forest": "sklearn",
    "nearest_neighbor": "sklearn",
    "cubist_rules": "cubist",
}

MAIN_ARGS = {
    "linear_reg": ("penalty", "mixture"),
    "boost_tree": ("trees", "tree_depth", "learn_rate", "min_n"),
    "rand_forest": ("trees", "min_n", "mtry"),
    "nearest_neighbor": ("neighbors",),
    "cubist_rules": ("committees", "neighbors", "max_rules"),
}

SUPPORTED_MODES = ("regression",)


class ModelSpec:
    """
    A model type, its main arguments, the computational engine and the mode.

    Specifications are immutable in use: ``set_engine``, ``set_mode``,
    ``update`` and ``finalize`` return modified copies. Main arguments use
    engine-independent names and may hold ``tune()`` placeholders until
    the specification is finalized.
    """

    def __init__(self, model_type: str, args: Optional[Dict[str, Any]] = None,
                 engine: Optional[str] = None, mode: str = "regression"):
        if model_type not in ENGINES:
            raise ValueError(f"Unknown model type '{model_type}'; available: {sorted(ENGINES)}")
        self.model_type = model_type
        self.args = {name: None for name in MAIN_ARGS[model_type]}
        self.args.update(args or {})
        self.engine_args: Dict[str, Any] = {}
        self.engine = None
        self.mode = None
        self._set_engine(engine or DEFAULT_ENGINES[model_type])
        self._set_mode(mode)

    def _set_engine(self, engine: str):
        available = ENGINES[self.model_type]
        if engine not in available:
            raise ValueError(
                f"Engine '{engine}' is not available for {self.model_type}; "
                f"available engines: {sorted(available)}"
            )
        self.engine = engine

    def _set_mode(self, mode: str):
        if mode not in SUPPORTED_MODES:
            raise ValueError(
                f"Mode '{mode}' is not applicable to {self.model_type}; supported modes: {list(SUPPORTED_MODES)}"
            )
        self.mode = mode

    def set_engine(self, engine: str, **engine_args) -> "ModelSpec":
        """Returns a copy using ``engine`` with extra engine-specific arguments."""
        new = copy.deepcopy(self)
        new._set_engine(engine)
        new.engine_args = dict(engine_args)
        return new

    def set_mode(self, mode: str) -> "ModelSpec":
        new = copy.deepcopy(self)
        new._set_mode(mode)
        return new

    def update(self, **args) -> "ModelSpec":
        """Returns a copy with main arguments replaced."""
        unknown = [name for name in args if name not in self.args]
        if unknown:
            raise ValueError(
                f"{self.model_type} has no argument(s) {unknown}; main arguments are {list(self.args)}"
            )
        new = copy.deepcopy(self)
        new.args.update(args)
        return new

    def tunable_params(self) -> Dict[str, str]:
        """Maps each tuning id to the argument holding it."""
        params = placeholder_ids(self.args)
        params.update(placeholder_ids(self.engine_args))
        return params

    def finalize(self, params: Dict[str, Any]) -> "ModelSpec":
        new = copy.deepcopy(self)
        new.args = fill_placeholders(self.args, params)
        new.engine_args = fill_placeholders(self.engine_args, params)
        return new

    def build(self, random_state: Optional[int] = None) -> BasePredictor:
        """
        Instantiates the engine wrapper for this specification.

        Raises:
            ValueError: If any argument is still marked for tuning, or the
                engine rejects the argument combination.
        """
        unresolved = list(self.tunable_params())
        if unresolved:
            raise ValueError(f"{self.model_type} arguments still marked for tuning: {unresolved}")

        model_class = ENGINES[self.model_type][self.engine]
        kwargs = {name: value for name, value in self.args.items() if value is not None}
        kwargs.update(self.engine_args)
        if random_state is not None and "random_state" in inspect.signature(model_class).parameters:
            kwargs["random_state"] = random_state
        return model_class(**kwargs)

    def __repr__(self):
        args = ", ".join(f"{k}={v!r}" for k, v in self.args.items() if v is not None)
        return f"{self.model_type}({args}) [engine={self.engine}, mode={self.mode}]"


def linear_reg(penalty=None, mixture=None) -> ModelSpec:
    """Linear regression; ordinary least squares unless the ``glmnet`` engine is set."""
    return ModelSpec("linear_reg", {"penalty": penalty, "mixture": mixture})


def boost_tree(trees=None, tree_depth=None, learn_rate=None, min_n=None) -> ModelSpec:
    return ModelSpec(
        "boost_tree",
        {"trees": trees, "tree_depth": tree_depth, "learn_rate": learn_rate, "min_n": min_n},
    )


def rand_forest(trees=None, min_n=None, mtry=None) -> ModelSpec:
    return ModelSpec("rand_forest", {"trees": trees, "min_n": min_n, "mtry": mtry})


def nearest_neighbor(neighbors=None) -> ModelSpec:
    return ModelSpec("nearest_neighbor", {"neighbors": neighbors})


def cubist_rules(committees=None, neighbors=None, max_rules=None) -> ModelSpec:
    """Rule-based ensemble with linear models in the rules and optional instance correction."""
    return ModelSpec(
        "cubist_rules",
        {"committees": committees, "neighbors": neighbors, "max_rules": max_rules},
    )
