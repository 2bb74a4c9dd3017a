"""High-level training orchestration and evaluation helpers."""

import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd
from tqdm import tqdm

from delivery_modeling.config import Config
from delivery_modeling.data_processing.splitting import ValidationSplit, validation_set, vfold_cv
from delivery_modeling.metrics import metric_direction
from delivery_modeling.models.spec import ModelSpec
from delivery_modeling.parameters import tune
from delivery_modeling.recipes import (
    Recipe,
    all_factor_predictors,
    all_numeric_predictors,
    all_predictors,
    starts_with,
)
from delivery_modeling.reporting import (
    generate_summary_report,
    plot_hour_effect,
    plot_model_comparison,
    plot_predictions,
    plot_tuning_results,
)
from delivery_modeling.tuning import OptunaTuner, fit_resamples, get_worker_count, last_fit, tune_grid
from delivery_modeling.workflows import Workflow, finalize_workflow

SEARCH_MODES = ("default", "grid", "bayes")
RESAMPLING_MODES = ("validation", "vfold")


@dataclass
class Champion:
    """Best parameters found for one model family and their resampled score."""

    family_name: str
    params: dict
    score_cv: float
    std_err: float = float("nan")
    search: str = "default"


def _fit_champion(workflow, split, metrics, seed, add_validation_set):
    """
    Fits one finalized workflow on the training data and scores the test set.
    This function is designed to be run in a separate process.
    """
    result = last_fit(workflow, split, metrics=metrics, add_validation_set=add_validation_set, seed=seed)
    testing = split.testing()
    start_time = time.time()
    preds = result.extract_workflow().predict(testing)
    avg_pred_time = (time.time() - start_time) / len(preds) if len(preds) > 0 else 0
    return result, avg_pred_time


class Trainer:
    """
    Orchestrates the modeling pipeline: search, final evaluation, and reporting.
    """

    def __init__(self, config: Config, model_families: list[str] | None = None,
                 resampling: str | None = None, search: str = "default",
                 save_models: bool = False, grid_size: int | None = None):
        """
        Initializes the Trainer and loads the processed data splits.

        Args:
            config: Configuration object
            model_families: Families to run (keys of ``Config.MODEL_FAMILIES``); all by default
            resampling: 'validation' (single validation set) or 'vfold' (V-fold CV on the training set)
            search: 'default' (fit_resamples with default parameters), 'grid' (tune_grid)
                or 'bayes' (Optuna search)
            save_models: Whether to save the fitted champion workflows
            grid_size: Number of space-filling candidates per family for grid search
        """
        if search not in SEARCH_MODES:
            raise ValueError(f"search must be one of {SEARCH_MODES}, got '{search}'")
        resampling = resampling or config.RESAMPLING
        if resampling not in RESAMPLING_MODES:
            raise ValueError(f"resampling must be one of {RESAMPLING_MODES}, got '{resampling}'")
        families = list(model_families) if model_families else list(config.MODEL_FAMILIES)
        unknown = [f for f in families if f not in config.MODEL_FAMILIES]
        if unknown:
            raise ValueError(f"Unknown model families {unknown}; available: {list(config.MODEL_FAMILIES)}")

        self.config = config
        self.model_families = families
        self.resampling = resampling
        self.search = search
        self.save_models = save_models
        self.grid_size = grid_size or config.GRID_SIZE
        self.tuning_results = {}
        self.last_fits = {}
        self.split = self._load_data()

    def _load_data(self):
        """Loads the preprocessed partitions from disk as a single three-way split."""
        try:
            train = pd.read_pickle(self.config.TRAIN_PATH)
            validation = pd.read_pickle(self.config.VALIDATION_PATH)
            test = pd.read_pickle(self.config.TEST_PATH)
        except FileNotFoundError:
            print("Error: Processed data not found. Please run preprocessing first.")
            return None

        data = pd.concat([train, validation, test], ignore_index=True)
        n_train, n_val = len(train), len(validation)
        return ValidationSplit(
            data=data,
            train_idx=np.arange(n_train),
            test_idx=np.arange(n_train + n_val, len(data)),
            val_idx=np.arange(n_train, n_train + n_val),
        )

    def _resamples(self):
        cfg = self.config
        if self.resampling == "validation":
            return validation_set(self.split)
        return vfold_cv(
            self.split.training(),
            v=cfg.CV_FOLDS,
            repeats=cfg.CV_REPEATS,
            strata=cfg.TARGET_COLUMN,
            seed=cfg.RANDOM_STATE,
            breaks=cfg.STRATA_BREAKS,
            pool=cfg.STRATA_POOL,
        )

    def build_recipe(self, data: pd.DataFrame, deg_free=None, spline: bool = True) -> Recipe:
        """
        The delivery-time recipe: indicator columns for the day, zero-variance
        filter, normalization and, for spline families, a natural-spline basis
        for the order hour and its interactions with the day indicators.
        """
        cfg = self.config
        rec = (
            Recipe(data, outcome=cfg.TARGET_COLUMN)
            .step_dummy(all_factor_predictors())
            .step_zv(all_predictors())
            .step_normalize(all_numeric_predictors())
        )
        if spline:
            rec = rec.step_spline_natural(
                cfg.HOUR_COLUMN, deg_free=cfg.SPLINE_DEG_FREE if deg_free is None else deg_free
            )
            if cfg.INTERACT_HOUR_DAY:
                rec = rec.step_interact(
                    terms=(starts_with(f"{cfg.HOUR_COLUMN}_"), starts_with(f"{cfg.DAY_COLUMN}_"))
                )
        return rec

    def build_model_spec(self, family_name: str) -> ModelSpec:
        """Model specification with every configured parameter marked for tuning."""
        info = self.config.MODEL_FAMILIES[family_name]
        family_config = self.config.HYPERPARAMETER_CONFIGS[family_name]
        args = {name: tune() for name in family_config if name not in self.config.RECIPE_PARAMETERS}
        return ModelSpec(info["model"], args, engine=info["engine"])

    def build_workflow(self, family_name: str, data: pd.DataFrame | None = None) -> Workflow:
        """Recipe plus model for one family, with ``tune()`` placeholders for its search space."""
        data = self.split.training() if data is None else data
        uses_spline = "deg_free" in self.config.HYPERPARAMETER_CONFIGS[family_name]
        rec = self.build_recipe(data, deg_free=tune() if uses_spline else None, spline=uses_spline)
        return Workflow().add_recipe(rec).add_model(self.build_model_spec(family_name))

    def _search_family(self, family_name: str, resamples) -> Champion:
        """Runs the configured search for one family and returns its best candidate."""
        cfg = self.config
        workflow = self.build_workflow(family_name)
        metric = cfg.PRIMARY_METRIC

        if self.search == "default":
            params = cfg.get_defaults(family_name)
            results = fit_resamples(
                finalize_workflow(workflow, params), resamples, metrics=cfg.METRICS, seed=cfg.RANDOM_STATE
            )
            summary = results.collect_metrics()
            best = summary[summary[".metric"] == metric].iloc[0]
            self.tuning_results[family_name] = results
            return Champion(family_name, params, float(best["mean"]), float(best["std_err"]), self.search)

        if self.search == "grid":
            results = tune_grid(
                workflow,
                resamples,
                grid=self.grid_size,
                metrics=cfg.METRICS,
                seed=cfg.RANDOM_STATE,
                family_name=family_name,
            )
        else:
            results = OptunaTuner(cfg, workflow, resamples, family_name, metrics=cfg.METRICS).run()

        self.tuning_results[family_name] = results
        plot_tuning_results(results, cfg.TUNING_PLOT_DIR / f"{family_name}.png", metric=metric,
                            title=f"{family_name} ({self.search} search)")
        best_row = results.show_best(metric, n=1).iloc[0]
        best = results.select_best(metric)
        params = {name: best[name] for name in results.param_names}
        return Champion(family_name, params, float(best_row["mean"]), float(best_row["std_err"]), self.search)

    def run_optimization_and_evaluation(self):
        """
        Runs the search (or default training) for every requested family,
        updates the persistent champion results file and evaluates the
        champions on the test set. This is the only function that modifies
        the champion CSV file.
        """
        if self.split is None:
            print("Exiting due to missing data.")
            return None

        resamples = self._resamples()
        print(
            f"\nResampling: {self.resampling} ({len(resamples)} resample(s)), "
            f"search: {self.search}, workers: {get_worker_count()}"
        )

        champions = []
        for family_name in self.model_families:
            print(f"\nTraining {family_name} ({self.search})...")
            try:
                champion = self._search_family(family_name, resamples)
            except Exception as e:
                print(f"  Error training {family_name}: {e}")
                continue
            print(f"  {family_name}: CV {self.config.PRIMARY_METRIC} = {champion.score_cv:.4f}")
            champions.append(champion)

        if not champions:
            print("\nNo successful models found to evaluate.")
            return None

        print("\nSearch/Training complete. Updating champion file...")
        new_results_df = pd.DataFrame([self._champion_row(c) for c in champions])
        self._update_and_save_champion_results(new_results_df, self.config.RESULTS_CSV_PATH)

        return self._evaluate_and_report(champions)

    def _champion_row(self, champion: Champion) -> dict:
        return {
            "model": champion.family_name,
            "score_cv": champion.score_cv,
            "std_err_cv": champion.std_err,
            "search": champion.search,
            "resampling": self.resampling,
            **champion.params,
        }

    def _update_and_save_champion_results(self, new_results_df: pd.DataFrame, path: Path):
        """
        Reads an existing result file, merges new results, keeps only the best
        entry for each model (based on CV score), and saves the file.
        """
        if path.exists():
            old_results_df = pd.read_csv(path)
            combined_df = pd.concat([old_results_df, new_results_df], ignore_index=True)
        else:
            combined_df = new_results_df

        if metric_direction(self.config.PRIMARY_METRIC) == "minimize":
            best_indices = combined_df.groupby("model")["score_cv"].idxmin()
        else:
            best_indices = combined_df.groupby("model")["score_cv"].idxmax()
        final_df = combined_df.loc[best_indices].sort_values("model").reset_index(drop=True)

        path.parent.mkdir(parents=True, exist_ok=True)
        final_df.to_csv(path, index=False)
        print(f"Champion results file updated and saved to {path}")

    def _params_from_row(self, family_name: str, row: pd.Series) -> dict:
        """Default parameters of a family overridden by the values stored in a champion row."""
        params = self.config.get_defaults(family_name)
        for name, conf in self.config.HYPERPARAMETER_CONFIGS.get(family_name, {}).items():
            if name not in row or pd.isna(row[name]):
                continue
            value = row[name]
            if conf.get("type") == "int":
                value = int(round(float(value)))
            elif conf.get("type") == "float":
                value = float(value)
            params[name] = value
        return params

    def run_evaluation_from_files(self):
        """
        Runs evaluation by READING from the persistent champion results file,
        without modifying it.
        """
        print("\nInitiating evaluation using parameters from the champion results file...")
        if self.split is None:
            print("Exiting due to missing data.")
            return None

        path = self.config.RESULTS_CSV_PATH
        if not path.exists():
            print("\nError: No champion results file found. Run a search first with --run-search or --train-default.")
            return None

        results_df = pd.read_csv(path)
        results_df = results_df[results_df["model"].isin(self.model_families)]
        print(f"\nFound {len(results_df)} model families in the champion file.")

        champions = []
        for _, row in results_df.iterrows():
            family_name = row["model"]
            try:
                params = self._params_from_row(family_name, row)
            except ValueError as e:
                print(f"Warning: Could not load parameters for {family_name}: {e}")
                continue
            champions.append(
                Champion(
                    family_name,
                    params,
                    float(row["score_cv"]),
                    float(row.get("std_err_cv", float("nan"))),
                    str(row.get("search", "default")),
                )
            )

        if not champions:
            print("\nNo successful models found to evaluate.")
            return None
        return self._evaluate_and_report(champions)

    def _evaluate_and_report(self, champions: list[Champion]) -> pd.DataFrame:
        """
        Fits every champion on the training data, scores it on the test set
        and writes the summary report and plots.
        """
        cfg = self.config
        print("\nThe following models will be evaluated on the test set:")
        for champion in champions:
            print(f"  - {champion.family_name.upper()} (CV {cfg.PRIMARY_METRIC}: {champion.score_cv:.4f})")

        training = self.split.training()
        workflows = {
            c.family_name: finalize_workflow(self.build_workflow(c.family_name, training), c.params)
            for c in champions
        }

        print("\nSubmitting model evaluation tasks to be run in parallel...")
        outcomes = {}
        max_workers = max(1, min(len(workflows), get_worker_count()))
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            future_to_family = {
                executor.submit(_fit_champion, wf, self.split, list(cfg.METRICS), cfg.RANDOM_STATE,
                                cfg.LAST_FIT_ADD_VALIDATION): family
                for family, wf in workflows.items()
            }
            progress_bar = tqdm(as_completed(future_to_family), total=len(future_to_family), desc="Evaluating Models")
            for future in progress_bar:
                family_name = future_to_family[future]
                try:
                    outcomes[family_name] = future.result()
                except Exception as exc:
                    print(f"\nModel {family_name} generated an exception: {exc}")

        print("\nFinal evaluation complete.")
        rows = []
        for champion in champions:
            if champion.family_name not in outcomes:
                continue
            result, avg_pred_time = outcomes[champion.family_name]
            self.last_fits[champion.family_name] = result
            test_metrics = result.collect_metrics()
            rows.append({
                "model": champion.family_name,
                "score_cv": champion.score_cv,
                **{f"{m}_test": v for m, v in zip(test_metrics[".metric"], test_metrics[".estimate"])},
                "avg_pred_time": avg_pred_time,
                **champion.params,
            })

            if self.save_models:
                fitted = result.extract_workflow()
                fitted.metadata.update({
                    "model_family": champion.family_name,
                    "score_cv": champion.score_cv,
                    "training_timestamp": str(pd.Timestamp.now()),
                })
                fitted.save(cfg.MODELS_DIR / f"{champion.family_name}.pkl")
                print(f"Saved fitted workflow for '{champion.family_name}'")

        if not rows:
            print("\nNo models could be evaluated on the test set.")
            return pd.DataFrame()

        results_df = pd.DataFrame(rows)
        generate_summary_report(rows, cfg.SUMMARY_REPORT_PATH)
        plot_model_comparison(results_df, cfg.RESULTS_PLOT_PATH, metric=cfg.PRIMARY_METRIC)

        test_col = f"{cfg.PRIMARY_METRIC}_test"
        ascending = metric_direction(cfg.PRIMARY_METRIC) == "minimize"
        best_family = results_df.sort_values(test_col, ascending=ascending).iloc[0]["model"]
        plot_predictions(
            self.last_fits[best_family].collect_predictions(),
            cfg.TARGET_COLUMN,
            cfg.PREDICTIONS_PLOT_PATH,
            title=f"Observed vs Predicted: {best_family} (test set)",
        )
        plot_hour_effect(training, cfg.TARGET_COLUMN, cfg.HOUR_COLUMN, cfg.DAY_COLUMN, cfg.HOUR_EFFECT_PLOT_PATH)
        return results_df
