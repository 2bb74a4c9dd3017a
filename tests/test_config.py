"""Tests for the configuration class and its hyperparameter helpers."""

import optuna
import pytest

from delivery_modeling.config import Config


class TestColumns:

    def test_item_columns(self):
        assert len(Config.ITEM_COLUMNS) == Config.N_ITEMS == 27
        assert Config.ITEM_COLUMNS[0] == "item_01"
        assert Config.ITEM_COLUMNS[-1] == "item_27"
        assert all(col.startswith(Config.ITEM_PREFIX) for col in Config.ITEM_COLUMNS)

    def test_all_columns_order(self):
        assert Config.ALL_COLUMNS[:4] == ["time_to_delivery", "hour", "day", "distance"]
        assert Config.ALL_COLUMNS[4:] == Config.ITEM_COLUMNS
        assert len(set(Config.ALL_COLUMNS)) == 31


class TestHyperparameterHelpers:

    def test_every_family_has_a_config(self):
        assert set(Config.MODEL_FAMILIES) == set(Config.HYPERPARAMETER_CONFIGS)

    def test_defaults(self):
        assert Config.get_defaults("cubist_rules") == {"committees": 20, "neighbors": 0, "max_rules": 16}
        assert Config.get_defaults("glmnet_reg") == {"deg_free": 10, "penalty": 1e-3, "mixture": 0.5}

    @pytest.mark.parametrize("family", sorted(Config.HYPERPARAMETER_CONFIGS))
    def test_search_space_stays_in_range(self, family):
        study = optuna.create_study(sampler=optuna.samplers.RandomSampler(seed=4))
        ranges = Config.get_param_ranges(family)
        for _ in range(5):
            params = Config.get_search_space(study.ask(), family)
            assert set(params) == set(ranges)
            for name, value in params.items():
                assert ranges[name]["min"] <= value <= ranges[name]["max"]
                if ranges[name]["type"] == "int":
                    assert isinstance(value, int)

    def test_unknown_family(self):
        with pytest.raises(ValueError, match="No config"):
            Config.get_defaults("svm_rbf")
        with pytest.raises(ValueError, match="No config"):
            Config.get_param_ranges("svm_rbf")

    def test_invalid_parameter_definition(self, monkeypatch):
        monkeypatch.setitem(Config.HYPERPARAMETER_CONFIGS, "broken", {"alpha": {"min": 0, "max": 1}})
        study = optuna.create_study()
        with pytest.raises(ValueError, match="Invalid parameter configuration"):
            Config.get_search_space(study.ask(), "broken")
