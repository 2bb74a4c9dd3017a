"""Tests for grids, resampled fitting, grid search, Optuna search and the final fit."""

import numpy as np
import pandas as pd
import pytest

from delivery_modeling.config import Config
from delivery_modeling.data_processing import InitialSplit, validation_set, vfold_cv
from delivery_modeling.models import linear_reg
from delivery_modeling.parameters import tune
from delivery_modeling.recipes import Recipe, all_factor_predictors, all_numeric_predictors, all_predictors
from delivery_modeling.tuning import (
    OptunaTuner,
    ParameterRange,
    fit_resamples,
    get_worker_count,
    grid_random,
    grid_regular,
    grid_space_filling,
    label_configs,
    last_fit,
    parallel_map,
    register_parallel_backend,
    reset_parallel_backend,
    tune_grid,
)
from delivery_modeling.workflows import Workflow, finalize_workflow

TARGET = Config.TARGET_COLUMN


def _recipe(data, deg_free):
    return (
        Recipe(data, outcome=TARGET)
        .step_dummy(all_factor_predictors())
        .step_zv(all_predictors())
        .step_normalize(all_numeric_predictors())
        .step_spline_natural("hour", deg_free=deg_free)
    )


@pytest.fixture
def lm_workflow(small_train):
    return Workflow().add_recipe(_recipe(small_train, tune())).add_model(linear_reg())


@pytest.fixture
def glmnet_workflow(small_train):
    return Workflow().add_recipe(_recipe(small_train, 4)).add_model(
        linear_reg(penalty=tune(), mixture=tune()).set_engine("glmnet")
    )


@pytest.fixture
def folds(small_train):
    return vfold_cv(small_train, v=3, strata=TARGET, seed=4)


class TestGrids:

    def test_regular_grid_is_factorial(self):
        grid = grid_regular(
            {"deg_free": {"min": 3, "max": 9, "type": "int"}, "mixture": {"min": 0.0, "max": 1.0, "type": "float"}},
            levels=3,
        )
        assert len(grid) == 9
        assert sorted(grid["deg_free"].unique()) == [3, 6, 9]
        assert sorted(grid["mixture"].unique()) == [0.0, 0.5, 1.0]

    def test_config_labels_group_preprocessors(self):
        grid = grid_regular(
            {"deg_free": {"min": 3, "max": 9, "type": "int"}, "mixture": {"min": 0.0, "max": 1.0, "type": "float"}},
            levels=3,
        )
        first = grid[grid["deg_free"] == 3][".config"].tolist()
        assert first == ["Preprocessor1_Model01", "Preprocessor1_Model02", "Preprocessor1_Model03"]
        assert grid[".config"].is_unique

    def test_labels_without_recipe_parameters(self):
        grid = label_configs(pd.DataFrame({"neighbors": [1, 2, 3]}), recipe_params=[])
        assert grid[".config"].tolist() == ["Preprocessor1_Model01", "Preprocessor1_Model02", "Preprocessor1_Model03"]

    def test_log_scale_levels(self):
        values = ParameterRange.from_config("penalty", {"min": 1e-4, "max": 1.0, "type": "float", "log": True}).regular(5)
        np.testing.assert_allclose(values, [1e-4, 1e-3, 1e-2, 1e-1, 1.0])

    def test_space_filling_uses_every_stratum_once(self):
        grid = grid_space_filling({"mixture": {"min": 0.0, "max": 1.0, "type": "float"}}, size=8, seed=3)
        strata = np.floor(grid["mixture"].to_numpy() * 8).astype(int)
        assert sorted(strata.tolist()) == list(range(8))

    def test_space_filling_respects_types_and_bounds(self):
        ranges = {
            "neighbors": {"min": 1, "max": 9, "type": "int"},
            "penalty": {"min": 1e-6, "max": 1.0, "type": "float", "log": True},
        }
        grid = grid_space_filling(ranges, size=6, seed=1)
        assert grid["neighbors"].between(1, 9).all()
        assert grid["penalty"].between(1e-6, 1.0).all()
        assert all(float(v).is_integer() for v in grid["neighbors"])

    def test_space_filling_is_seeded(self):
        ranges = {"mixture": {"min": 0.0, "max": 1.0, "type": "float"}}
        pd.testing.assert_frame_equal(grid_space_filling(ranges, size=4, seed=9), grid_space_filling(ranges, size=4, seed=9))

    def test_random_grid(self):
        grid = grid_random({"weight": {"choices": ["uniform", "distance"]}}, size=20, seed=2)
        assert set(grid["weight"]) <= {"uniform", "distance"}
        assert len(grid) <= 2

    @pytest.mark.parametrize(
        "conf",
        [
            {"min": 5, "max": 1, "type": "int"},
            {"min": 0.0, "max": 1.0, "type": "float", "log": True},
            {"min": 0, "max": 1, "type": "complex"},
        ],
    )
    def test_invalid_ranges(self, conf):
        with pytest.raises(ValueError):
            ParameterRange.from_config("p", conf)

    def test_empty_ranges(self):
        with pytest.raises(ValueError):
            grid_regular({})


class TestParallelBackend:

    def test_register_and_reset(self):
        assert register_parallel_backend(2) == 2
        assert get_worker_count() == 2
        reset_parallel_backend()
        assert get_worker_count() == max(Config.NUM_PARALLEL_WORKERS, 1)

    def test_all_cores(self):
        assert register_parallel_backend(-1) >= 1

    @pytest.mark.parametrize("cores", [0, -2])
    def test_invalid_core_count(self, cores):
        with pytest.raises(ValueError):
            register_parallel_backend(cores)

    def test_parallel_map_keeps_order(self):
        offset = 10
        result = parallel_map(lambda x: x * x + offset, range(8), n_jobs=2, show_progress=False)
        assert result == [x * x + offset for x in range(8)]

    def test_parallel_map_propagates_errors(self):
        def boom(x):
            raise RuntimeError(f"failed on {x}")

        with pytest.raises(RuntimeError, match="failed on"):
            parallel_map(boom, [1, 2], show_progress=False)


class TestFitResamples:

    def test_summarized_metrics(self, lm_workflow, folds):
        res = fit_resamples(finalize_workflow(lm_workflow, {"deg_free": 4}), folds, seed=1)
        summary = res.collect_metrics()
        assert summary[".metric"].tolist() == ["rmse", "rsq", "mae"]
        assert (summary["n"] == 3).all()
        assert (summary["std_err"] > 0).all()

        per_fold = res.collect_metrics(summarize=False)
        assert len(per_fold) == 9
        assert set(per_fold["id"]) == {"Fold01", "Fold02", "Fold03"}

    def test_saved_predictions_cover_every_row(self, lm_workflow, folds, small_train):
        res = fit_resamples(finalize_workflow(lm_workflow, {"deg_free": 4}), folds, save_pred=True)
        preds = res.collect_predictions()
        assert sorted(preds[".row"].tolist()) == list(range(len(small_train)))
        np.testing.assert_allclose(
            preds.sort_values(".row")[TARGET].to_numpy(), small_train[TARGET].to_numpy()
        )

    def test_predictions_require_save_pred(self, lm_workflow, folds):
        res = fit_resamples(finalize_workflow(lm_workflow, {"deg_free": 4}), folds, metrics=["rmse"])
        with pytest.raises(ValueError, match="save_pred"):
            res.collect_predictions()

    def test_rejects_placeholders(self, lm_workflow, folds):
        with pytest.raises(ValueError, match="tune_grid"):
            fit_resamples(lm_workflow, folds)

    def test_validation_set_gives_single_estimate(self, lm_workflow, split):
        small = split.data[[c for c in split.data.columns if not c.startswith("item_")]]
        three_way = type(split)(data=small, train_idx=split.train_idx, test_idx=split.test_idx, val_idx=split.val_idx)
        wf = Workflow().add_recipe(_recipe(three_way.training(), 4)).add_model(linear_reg())
        res = fit_resamples(wf, validation_set(three_way))
        summary = res.collect_metrics()
        assert (summary["n"] == 1).all()
        assert summary["std_err"].isna().all()


class TestTuneGrid:

    @pytest.fixture
    def results(self, lm_workflow, folds):
        return tune_grid(lm_workflow, folds, grid=pd.DataFrame({"deg_free": [3, 5, 8]}), seed=1)

    def test_candidates_and_resamples(self, results):
        summary = results.collect_metrics()
        assert len(summary) == 9
        assert sorted(summary["deg_free"].unique()) == [3, 5, 8]
        assert results.notes.empty

    def test_show_best_sorted(self, results):
        best = results.show_best("rmse", n=2)
        assert len(best) == 2
        assert best["mean"].is_monotonic_increasing

        rsq_best = results.show_best("rsq", n=3)
        assert rsq_best["mean"].is_monotonic_decreasing

    def test_select_best(self, results):
        best = results.select_best("rmse")
        assert set(best) == {"deg_free", ".config"}
        top = results.show_best("rmse", n=1).iloc[0]
        assert best["deg_free"] == top["deg_free"]
        assert isinstance(best["deg_free"], int)

    def test_select_by_one_std_err_prefers_simpler(self, results):
        best = results.select_best("rmse")
        simple = results.select_by_one_std_err("rmse", order_by="deg_free")
        assert simple["deg_free"] <= best["deg_free"]

    def test_unknown_metric_or_order(self, results):
        with pytest.raises(ValueError):
            results.show_best("mape")
        with pytest.raises(ValueError):
            results.select_by_one_std_err("rmse", order_by="penalty")

    def test_space_filling_grid_size(self, glmnet_workflow, folds):
        res = tune_grid(glmnet_workflow, folds, grid=4, seed=2, family_name="glmnet_reg", metrics=["rmse"])
        summary = res.collect_metrics()
        assert set(res.param_names) == {"penalty", "mixture"}
        assert summary[".config"].nunique() == len(summary) <= 4

    def test_grid_must_match_parameters(self, glmnet_workflow, folds):
        with pytest.raises(ValueError, match="missing"):
            tune_grid(glmnet_workflow, folds, grid=pd.DataFrame({"penalty": [0.1]}))
        with pytest.raises(ValueError, match="not tunable"):
            tune_grid(glmnet_workflow, folds, grid=pd.DataFrame({"penalty": [0.1], "mixture": [0.5], "trees": [5]}))

    def test_nothing_to_tune(self, lm_workflow, folds):
        with pytest.raises(ValueError, match="fit_resamples"):
            tune_grid(finalize_workflow(lm_workflow, {"deg_free": 4}), folds)

    def test_failed_candidates_become_notes(self, glmnet_workflow, folds):
        grid = pd.DataFrame({"penalty": [0.01, 0.01], "mixture": [0.5, 1.5]})
        res = tune_grid(glmnet_workflow, folds, grid=grid, metrics=["rmse"])
        assert len(res.notes) == len(folds)
        assert res.notes["note"].str.contains("mixture").all()
        assert res.collect_metrics()["mixture"].unique().tolist() == [0.5]

    def test_all_candidates_failing(self, glmnet_workflow, folds):
        grid = pd.DataFrame({"penalty": [0.01], "mixture": [2.0]})
        with pytest.raises(RuntimeError, match="All models failed"):
            tune_grid(glmnet_workflow, folds, grid=grid)

    def test_saved_predictions_per_candidate(self, lm_workflow, folds, small_train):
        res = tune_grid(lm_workflow, folds, grid=pd.DataFrame({"deg_free": [3, 4]}), save_pred=True)
        preds = res.collect_predictions()
        assert len(preds) == 2 * len(small_train)
        averaged = res.collect_predictions(summarize=True)
        assert len(averaged) == 2 * len(small_train)


class TestLastFit:

    @pytest.fixture
    def lean_split(self, split):
        small = split.data[[c for c in split.data.columns if not c.startswith("item_")]]
        return type(split)(data=small, train_idx=split.train_idx, test_idx=split.test_idx, val_idx=split.val_idx)

    def test_scores_the_test_set(self, lean_split):
        wf = Workflow().add_recipe(_recipe(lean_split.training(), 4)).add_model(linear_reg())
        result = last_fit(wf, lean_split, seed=1)

        metrics = result.collect_metrics()
        assert metrics[".metric"].tolist() == ["rmse", "rsq", "mae"]
        preds = result.collect_predictions()
        assert len(preds) == len(lean_split.test_idx)
        np.testing.assert_array_equal(preds[".row"].to_numpy(), lean_split.test_idx)
        assert result.extract_workflow().metadata["n_train"] == len(lean_split.train_idx)

    def test_add_validation_set(self, lean_split):
        wf = Workflow().add_recipe(_recipe(lean_split.training(), 4)).add_model(linear_reg())
        result = last_fit(wf, lean_split, add_validation_set=True)
        expected = len(lean_split.train_idx) + len(lean_split.val_idx)
        assert result.extract_workflow().metadata["n_train"] == expected

    def test_add_validation_set_needs_three_way_split(self, lean_split):
        two_way = InitialSplit(data=lean_split.data, train_idx=lean_split.train_idx, test_idx=lean_split.test_idx)
        wf = Workflow().add_recipe(_recipe(two_way.training(), 4)).add_model(linear_reg())
        with pytest.raises(ValueError, match="initial_validation_split"):
            last_fit(wf, two_way, add_validation_set=True)


class TestOptunaTuner:

    @pytest.fixture
    def tuner_config(self, tmp_path):
        class TunerConfig(Config):
            OPTUNA_DB_DIR = tmp_path / "optuna_db"
            N_CALLS_PER_FAMILY = 3

        return TunerConfig

    def test_runs_and_resumes(self, tuner_config, lm_workflow, folds, capsys):
        tuner = OptunaTuner(tuner_config, lm_workflow, folds, "linear_reg", metrics=["rmse", "rsq"])
        results = tuner.run()

        assert (tuner_config.OPTUNA_DB_DIR / "linear_reg.db").exists()
        summary = results.collect_metrics()
        assert set(summary[".config"]) <= {"Iter0", "Iter1", "Iter2"}
        assert summary["deg_free"].between(3, 15).all()
        assert set(results.select_best("rmse")) == {"deg_free", ".config"}

        again = OptunaTuner(tuner_config, lm_workflow, folds, "linear_reg", metrics=["rmse", "rsq"]).run()
        assert "Skipping" in capsys.readouterr().out
        assert len(again.collect_metrics()) == len(summary)

    def test_requires_placeholders(self, tuner_config, lm_workflow, folds):
        with pytest.raises(ValueError, match="no tune"):
            OptunaTuner(tuner_config, finalize_workflow(lm_workflow, {"deg_free": 4}), folds, "linear_reg")
