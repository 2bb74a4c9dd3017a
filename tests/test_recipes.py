"""Tests for recipes, selectors and preprocessing steps."""

import numpy as np
import pandas as pd
import pytest

from delivery_modeling.config import Config
from delivery_modeling.parameters import tune
from delivery_modeling.recipes import (
    Recipe,
    all_factor_predictors,
    all_numeric_predictors,
    all_outcomes,
    all_predictors,
    matches,
    starts_with,
)

TARGET = Config.TARGET_COLUMN


@pytest.fixture
def base_recipe(small_train):
    return (
        Recipe(small_train, outcome=TARGET)
        .step_dummy(all_factor_predictors())
        .step_zv(all_predictors())
        .step_normalize(all_numeric_predictors())
    )


class TestRecipeDeclaration:

    def test_roles(self, small_train):
        rec = Recipe(small_train, outcome=TARGET)
        assert rec.outcome == TARGET
        assert TARGET not in rec.predictors
        assert set(rec.predictors) == {"hour", "day", "distance", "item_01", "item_02"}

    def test_unknown_outcome(self, small_train):
        with pytest.raises(ValueError, match="not found"):
            Recipe(small_train, outcome="eta")

    def test_step_ids_are_sequential(self, base_recipe):
        rec = base_recipe.step_spline_natural("hour", deg_free=4)
        assert [s.id for s in rec.steps] == ["dummy_1", "zv_2", "normalize_3", "spline_natural_4"]

    def test_template_keeps_no_rows(self, base_recipe):
        assert len(base_recipe.template) == 0


class TestSteps:

    def test_dummy_drops_reference_level(self, base_recipe, small_train):
        baked = base_recipe.prep(small_train).juice()
        assert "day" not in baked.columns
        assert "day_Mon" not in baked.columns
        assert [f"day_{d}" for d in Config.DAY_LEVELS[1:]] == [c for c in baked.columns if c.startswith("day_")]

    def test_one_hot_keeps_every_level(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_dummy("day", one_hot=True).prep(small_train)
        baked = rec.juice()
        day_cols = [c for c in baked.columns if c.startswith("day_")]
        assert len(day_cols) == len(Config.DAY_LEVELS)
        np.testing.assert_allclose(baked[day_cols].sum(axis=1), 1.0)

    def test_zero_variance_columns_removed(self, small_train):
        data = small_train.assign(constant=3.0)
        rec = Recipe(data, outcome=TARGET).step_zv(all_predictors()).prep(data)
        assert "constant" not in rec.get_feature_names_out()
        assert "constant" not in rec.bake(data).columns

    def test_normalize_uses_training_estimates(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_normalize("distance").prep(small_train)
        juiced = rec.juice()
        assert juiced["distance"].mean() == pytest.approx(0.0, abs=1e-9)
        assert juiced["distance"].std() == pytest.approx(1.0)

        new = small_train.head(5).copy()
        baked = rec.bake(new)
        expected = (new["distance"] - small_train["distance"].mean()) / small_train["distance"].std()
        np.testing.assert_allclose(baked["distance"], expected)

    def test_natural_spline_basis(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_spline_natural("hour", deg_free=5).prep(small_train)
        baked = rec.juice()
        assert "hour" not in baked.columns
        assert [c for c in baked.columns if c.startswith("hour_")] == [f"hour_{i:02d}" for i in range(1, 6)]

    def test_natural_spline_extrapolates_linearly(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_spline_natural("hour", deg_free=4).prep(small_train)
        far = small_train.head(3).copy()
        far["hour"] = [30.0, 31.0, 32.0]
        basis = rec.bake(far)[[f"hour_{i:02d}" for i in range(1, 5)]].to_numpy()
        np.testing.assert_allclose(basis[2] - basis[1], basis[1] - basis[0], atol=1e-8)

    def test_spline_needs_three_degrees_of_freedom(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_spline_natural("hour", deg_free=2)
        with pytest.raises(ValueError, match="deg_free"):
            rec.prep(small_train)

    def test_spline_requires_numeric_column(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_spline_natural("day", deg_free=4)
        with pytest.raises(ValueError, match="numeric"):
            rec.prep(small_train)

    def test_interactions_between_spline_terms_and_days(self, base_recipe, small_train):
        rec = (
            base_recipe
            .step_spline_natural("hour", deg_free=3)
            .step_interact(terms=(starts_with("hour_"), starts_with("day_")))
            .prep(small_train)
        )
        names = rec.get_feature_names_out()
        assert "hour_01_x_day_Tue" in names
        assert "hour_03_x_day_Sun" in names
        baked = rec.juice()
        np.testing.assert_allclose(baked["hour_02_x_day_Sat"], baked["hour_02"] * baked["day_Sat"])

    def test_interact_needs_both_terms(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_interact(terms=(starts_with("hour"), starts_with("zzz")))
        with pytest.raises(ValueError):
            rec.prep(small_train)

    def test_log_and_impute(self, small_train):
        data = small_train.copy()
        data.loc[0, "distance"] = np.nan
        rec = (
            Recipe(data, outcome=TARGET)
            .step_impute_median("distance")
            .step_log("distance", offset=1.0)
            .step_rm(matches("^item_"))
            .prep(data)
        )
        baked = rec.juice()
        assert not baked["distance"].isna().any()
        assert not any(c.startswith("item_") for c in baked.columns)


class TestSelectorErrors:

    def test_outcome_cannot_be_normalized(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_normalize(all_outcomes())
        with pytest.raises(ValueError, match="outcome"):
            rec.prep(small_train)

    def test_unknown_column(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_normalize("no_such_column")
        with pytest.raises(ValueError, match="not found"):
            rec.prep(small_train)

    def test_unsupported_selector(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_zv(42)
        with pytest.raises(ValueError, match="Unsupported selector"):
            rec.prep(small_train)


class TestPrepAndBake:

    def test_prep_returns_copy(self, base_recipe, small_train):
        prepped = base_recipe.prep(small_train)
        assert prepped.is_prepped_
        assert not base_recipe.is_prepped_

    def test_template_preps_repeatedly_but_trained_recipe_does_not(self, base_recipe, small_train):
        first = base_recipe.prep(small_train)
        second = base_recipe.prep(small_train.head(100))
        assert len(first.juice()) == len(small_train)
        assert len(second.juice()) == 100
        with pytest.raises(ValueError, match="already prepped"):
            first.prep(small_train)

    def test_bake_before_prep(self, base_recipe, small_train):
        with pytest.raises(ValueError, match="prepped"):
            base_recipe.bake(small_train)

    def test_bake_matches_juice_on_training(self, base_recipe, small_train):
        prepped = base_recipe.prep(small_train)
        pd.testing.assert_frame_equal(prepped.bake(small_train), prepped.juice())

    def test_outcome_is_last_and_optional(self, base_recipe, small_train):
        prepped = base_recipe.prep(small_train)
        assert prepped.juice().columns[-1] == TARGET
        without_outcome = prepped.bake(small_train.drop(columns=[TARGET]))
        assert TARGET not in without_outcome.columns

    def test_bake_requires_predictors(self, base_recipe, small_train):
        prepped = base_recipe.prep(small_train)
        with pytest.raises(ValueError, match="missing"):
            prepped.bake(small_train.drop(columns=["distance"]))

    def test_levels_come_from_categories_not_training_rows(self, small_train):
        train_weekdays = small_train[small_train["day"] != "Sun"]
        rec = Recipe(train_weekdays, outcome=TARGET).step_dummy("day").prep(train_weekdays)
        sunday = small_train[small_train["day"] == "Sun"].head(2)
        baked = rec.bake(sunday)
        assert baked["day_Sun"].tolist() == [1.0, 1.0]


class TestTunableRecipes:

    def test_placeholders_are_reported(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_spline_natural("hour", deg_free=tune())
        assert rec.tunable_params() == {"deg_free": ("spline_natural_1", "deg_free")}

    def test_prep_refuses_placeholders(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_spline_natural("hour", deg_free=tune())
        with pytest.raises(ValueError, match="tuning"):
            rec.prep(small_train)

    def test_finalize_fills_placeholders(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_spline_natural("hour", deg_free=tune("hour_df"))
        final = rec.finalize({"hour_df": 4})
        assert final.tunable_params() == {}
        assert rec.tunable_params() == {"hour_df": ("spline_natural_1", "deg_free")}
        assert len([c for c in final.prep(small_train).juice().columns if c.startswith("hour_")]) == 4

    def test_update_step(self, small_train):
        rec = Recipe(small_train, outcome=TARGET).step_spline_natural("hour", deg_free=10)
        updated = rec.update_step("spline_natural_1", deg_free=3)
        assert updated.steps[0].deg_free == 3
        assert rec.steps[0].deg_free == 10
        with pytest.raises(ValueError):
            rec.update_step("spline_natural_9", deg_free=3)
