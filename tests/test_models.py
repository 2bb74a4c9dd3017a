"""Tests for model specifications and the engine wrappers behind them."""

import numpy as np
import pandas as pd
import pytest

from delivery_modeling.config import Config
from delivery_modeling.models import (
    BasePredictor,
    CubistModel,
    CubistRulesRegressor,
    ENGINES,
    ModelSpec,
    boost_tree,
    cubist_rules,
    linear_reg,
    nearest_neighbor,
    rand_forest,
)
from delivery_modeling.parameters import tune


@pytest.fixture
def xy(small_train):
    X = small_train.drop(columns=[Config.TARGET_COLUMN])
    y = small_train[Config.TARGET_COLUMN]
    return X, y


class TestModelSpec:

    def test_default_engines(self):
        assert linear_reg().engine == "sklearn"
        assert boost_tree().engine == "xgboost"
        assert cubist_rules().engine == "cubist"
        assert linear_reg().mode == "regression"

    def test_set_engine_returns_copy(self):
        spec = linear_reg(penalty=0.1)
        glmnet = spec.set_engine("glmnet")
        assert glmnet.engine == "glmnet"
        assert spec.engine == "sklearn"

    def test_inapplicable_engine(self):
        with pytest.raises(ValueError, match="not available"):
            cubist_rules().set_engine("xgboost")

    def test_unsupported_mode(self):
        with pytest.raises(ValueError, match="Mode"):
            rand_forest().set_mode("classification")

    def test_unknown_model_type(self):
        with pytest.raises(ValueError):
            ModelSpec("svm_rbf")

    def test_update_rejects_unknown_arguments(self):
        with pytest.raises(ValueError, match="no argument"):
            nearest_neighbor().update(k=3)

    def test_tunable_params_and_finalize(self):
        spec = cubist_rules(committees=tune(), neighbors=tune("nn"), max_rules=8)
        assert spec.tunable_params() == {"committees": "committees", "nn": "neighbors"}
        final = spec.finalize({"committees": 5, "nn": 2})
        assert final.tunable_params() == {}
        assert final.args == {"committees": 5, "neighbors": 2, "max_rules": 8}

    def test_build_refuses_placeholders(self):
        with pytest.raises(ValueError, match="tuning"):
            boost_tree(trees=tune()).build()

    def test_build_passes_seed(self):
        engine = rand_forest(trees=5).build(random_state=123)
        assert isinstance(engine, BasePredictor)
        assert engine.get_params()["random_state"] == 123

    def test_least_squares_rejects_penalty(self):
        with pytest.raises(ValueError, match="glmnet"):
            linear_reg(penalty=0.1).build()

    def test_glmnet_requires_penalty(self):
        with pytest.raises(ValueError, match="penalty"):
            linear_reg().set_engine("glmnet").build()

    def test_engine_args_are_forwarded(self):
        engine = nearest_neighbor(neighbors=3).set_engine("sklearn", weight_func="distance").build()
        assert engine.get_params()["weights"] == "distance"


class TestEngines:

    @pytest.mark.parametrize(
        "spec",
        [
            linear_reg(),
            linear_reg(penalty=0.01, mixture=0.5).set_engine("glmnet"),
            boost_tree(trees=10, tree_depth=2, learn_rate=0.1, min_n=5),
            boost_tree(trees=10, tree_depth=2, learn_rate=0.1, min_n=5).set_engine("lightgbm"),
            boost_tree(trees=10, tree_depth=2, learn_rate=0.1, min_n=5).set_engine("catboost"),
            rand_forest(trees=10, min_n=5, mtry=3),
            nearest_neighbor(neighbors=5),
            cubist_rules(committees=3, neighbors=0, max_rules=4),
            cubist_rules(committees=3, neighbors=2, max_rules=4).set_engine("lightgbm"),
        ],
        ids=lambda s: f"{s.model_type}-{s.engine}",
    )
    def test_fit_predict_on_raw_frame(self, spec, xy):
        X, y = xy
        engine = spec.build(random_state=1)
        engine.fit(X, y)
        pred = engine.predict(X.head(10))
        assert len(pred) == 10
        assert np.all(np.isfinite(pred))

    def test_every_engine_is_registered(self):
        assert set(ENGINES) == {"linear_reg", "boost_tree", "rand_forest", "nearest_neighbor", "cubist_rules"}
        for engines in ENGINES.values():
            for cls in engines.values():
                assert issubclass(cls, BasePredictor)

    def test_predict_aligns_unseen_dummy_columns(self, xy):
        X, y = xy
        engine = linear_reg().build()
        engine.fit(X, y)
        only_monday = X[X["day"] == "Mon"].head(3).copy()
        only_monday["day"] = only_monday["day"].astype(str)
        assert len(engine.predict(only_monday)) == 3

    def test_predict_before_fit(self, xy):
        X, _ = xy
        with pytest.raises(ValueError):
            rand_forest(trees=5).build().predict(X)

    def test_mtry_is_capped(self, xy):
        X, y = xy
        engine = rand_forest(trees=5, mtry=500).build()
        engine.fit(X, y)
        assert engine.model.max_features == engine.model.n_features_in_


class TestCubistRules:

    def test_neighbors_range(self):
        with pytest.raises(ValueError, match="neighbors"):
            CubistRulesRegressor(neighbors=10)

    def test_neighbor_correction_changes_training_predictions(self, xy):
        X, y = xy
        plain = CubistRulesRegressor(committees=5, neighbors=0, max_rules=4, random_state=1)
        corrected = CubistRulesRegressor(committees=5, neighbors=3, max_rules=4, random_state=1)
        plain.fit(X, y)
        corrected.fit(X, y)

        base = plain.predict(X)
        adjusted = corrected.predict(X)
        assert not np.allclose(base, adjusted)
        # neighbour residuals pull predictions toward the observed values
        assert np.mean(np.abs(adjusted - y)) < np.mean(np.abs(base - y))

    def test_params_report_main_arguments(self):
        params = CubistRulesRegressor(committees=7, neighbors=2, max_rules=12).get_params()
        assert params["committees"] == 7
        assert params["neighbors"] == 2
        assert params["num_leaves"] == 12
        assert params["linear_tree"] is True


class TestCubistEngine:

    def test_cubist_is_the_default_engine(self):
        engine = cubist_rules(committees=2, neighbors=0, max_rules=8).build(random_state=3)
        assert isinstance(engine, CubistModel)

    def test_zero_neighbors_disables_instance_correction(self):
        assert CubistModel(neighbors=0).model.neighbors is None
        assert CubistModel(neighbors=4).model.neighbors == 4

    @pytest.mark.parametrize("kwargs", [{"neighbors": 10}, {"neighbors": -1}, {"committees": 0}, {"committees": 101}])
    def test_argument_ranges(self, kwargs):
        with pytest.raises(ValueError):
            CubistModel(**kwargs)

    def test_params_map_to_cubist_arguments(self):
        params = CubistModel(committees=7, neighbors=2, max_rules=12, random_state=5).get_params()
        assert params["n_committees"] == 7
        assert params["n_rules"] == 12
        assert params["neighbors"] == 2
        assert params["random_state"] == 5
        assert params["committees"] == 7
        assert params["max_rules"] == 12

    def test_fit_predict_with_neighbors(self, xy):
        X, y = xy
        engine = cubist_rules(committees=2, neighbors=3, max_rules=6).build(random_state=1)
        engine.fit(X, y)
        pred = engine.predict(X.head(15))
        assert isinstance(pred, np.ndarray)
        assert pred.shape == (15,)
        assert np.all(np.isfinite(pred))
