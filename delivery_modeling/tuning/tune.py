"""Grid search over tunable workflow parameters and the final fit on the test set."""

import logging
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd

from delivery_modeling.data_processing.splitting import InitialSplit, ResampleSet, ValidationSplit
from delivery_modeling.metrics import MetricSet, as_metric_set, metric_direction
from delivery_modeling.tuning.grid import grid_space_filling, label_configs
from delivery_modeling.tuning.parallel import parallel_map
from delivery_modeling.tuning.resampling import ResampleResults, assess_resample
from delivery_modeling.workflows import (
    FittedWorkflow,
    Workflow,
    as_python_value,
    extract_parameter_set,
    finalize_workflow,
)


class TuneResults(ResampleResults):
    """Resampled performance of every tuning candidate."""

    def __init__(self, metrics: pd.DataFrame, predictions: Optional[pd.DataFrame],
                 metric_set: MetricSet, outcome: str, param_names: List[str],
                 notes: Optional[pd.DataFrame] = None):
        super().__init__(metrics, predictions, metric_set, outcome, param_names)
        self.notes = notes if notes is not None else pd.DataFrame(columns=["id", ".config", "note"])

    def _metric(self, metric: Optional[str]) -> str:
        metric = metric or self.metric_set.primary
        if metric not in self.metric_set.names:
            raise ValueError(f"Metric '{metric}' was not computed; available: {self.metric_set.names}")
        return metric

    def show_best(self, metric: Optional[str] = None, n: int = 5) -> pd.DataFrame:
        """
        Top ``n`` candidates for one metric.

        Args:
            metric: Metric to rank by; defaults to the first of the metric set.
            n: Number of candidates to return.
        """
        metric = self._metric(metric)
        summary = self.collect_metrics()
        summary = summary[summary[".metric"] == metric]
        ascending = metric_direction(metric) == "minimize"
        return summary.sort_values("mean", ascending=ascending, kind="stable").head(n).reset_index(drop=True)

    def select_best(self, metric: Optional[str] = None) -> Dict[str, Any]:
        """Parameter values (plus ``.config``) of the best candidate."""
        best = self.show_best(metric, n=1).iloc[0]
        return {name: as_python_value(best[name]) for name in self.param_names + [".config"]}

    def select_by_one_std_err(self, metric: Optional[str] = None,
                              order_by: Union[str, List[str], None] = None) -> Dict[str, Any]:
        """
        Simplest candidate within one standard error of the numerically best.

        Args:
            metric: Metric to rank by.
            order_by: Parameter(s) sorted from simplest to most complex; a
                leading ``-`` sorts that parameter in descending order
                (e.g. ``"-penalty"`` treats large penalties as simpler).
        """
        metric = self._metric(metric)
        summary = self.collect_metrics()
        summary = summary[summary[".metric"] == metric].reset_index(drop=True)
        minimize = metric_direction(metric) == "minimize"
        best_idx = summary["mean"].idxmin() if minimize else summary["mean"].idxmax()
        best = summary.loc[best_idx]
        bound = best["std_err"] if not np.isnan(best["std_err"]) else 0.0
        if minimize:
            candidates = summary[summary["mean"] <= best["mean"] + bound]
        else:
            candidates = summary[summary["mean"] >= best["mean"] - bound]

        if order_by is None:
            order_by = list(self.param_names)
        elif isinstance(order_by, str):
            order_by = [order_by]
        columns = [o.lstrip("-") for o in order_by]
        unknown = [c for c in columns if c not in self.param_names]
        if unknown:
            raise ValueError(f"Cannot order by {unknown}; tuned parameters are {self.param_names}")
        ascending = [not o.startswith("-") for o in order_by]
        chosen = candidates.sort_values(columns, ascending=ascending, kind="stable").iloc[0]
        return {name: as_python_value(chosen[name]) for name in self.param_names + [".config"]}


def _prepare_grid(workflow: Workflow, grid, family_name: Optional[str], seed: Optional[int]) -> pd.DataFrame:
    ranges = extract_parameter_set(workflow, family_name)
    if not ranges:
        raise ValueError("The workflow has no tune() placeholders; use fit_resamples() instead")
    recipe_params = [pid for pid, loc in workflow.tunable_params().items() if loc[0] == "recipe"]

    if isinstance(grid, (int, np.integer)):
        return grid_space_filling(ranges, size=int(grid), seed=seed, recipe_params=recipe_params)

    grid = pd.DataFrame(grid)
    missing = [p for p in ranges if p not in grid.columns]
    if missing:
        raise ValueError(f"Grid is missing tunable parameter column(s) {missing}")
    extra = [c for c in grid.columns if c not in ranges and c != ".config"]
    if extra:
        raise ValueError(f"Grid has column(s) {extra} that are not tunable parameters of the workflow")
    if ".config" not in grid.columns:
        grid = label_configs(grid, recipe_params)
    return grid.reset_index(drop=True)


def tune_grid(workflow: Workflow, resamples: ResampleSet, grid: Union[int, pd.DataFrame] = 10,
              metrics=None, seed: Optional[int] = None, family_name: Optional[str] = None,
              save_pred: bool = False) -> TuneResults:
    """
    Evaluates every candidate of a grid on every resample.

    Each (candidate, resample) pair is fitted as an independent job on the
    registered parallel backend. A failing fit is recorded in
    ``TuneResults.notes`` and excluded from the metrics.

    Args:
        workflow: Workflow with ``tune()`` placeholders.
        resamples: Output of ``vfold_cv`` or ``validation_set``.
        grid: Number of space-filling candidates, or a frame of candidates.
        metrics: A ``metric_set`` or list of metric names.
        seed: Seed for the grid and the model engines.
        family_name: Model family whose configured ranges apply.
        save_pred: Keep held-out predictions for every candidate.

    Returns:
        TuneResults

    Raises:
        ValueError: If the workflow has nothing to tune or the grid does not
            match its parameters.
        RuntimeError: If every candidate fails.
    """
    metric_set = as_metric_set(metrics)
    candidates = _prepare_grid(workflow, grid, family_name, seed)
    param_names = [c for c in candidates.columns if c != ".config"]
    data = resamples.data

    jobs = [
        (row, resample)
        for row in candidates.to_dict("records")
        for resample in resamples
    ]
    print(f"Tuning {len(candidates)} candidates x {len(resamples)} resamples = {len(jobs)} fits")

    def _job(job):
        row, resample = job
        params = {k: as_python_value(v) for k, v in row.items() if k != ".config"}
        try:
            candidate = finalize_workflow(workflow, params)
            result = assess_resample(
                candidate,
                resample.analysis_data(data),
                resample.assessment_data(data),
                metric_set,
                resample.id,
                config_label=row[".config"],
                params=params,
                save_pred=save_pred,
                seed=seed,
                rows=resample.assessment,
            )
        except Exception as exc:
            return {"error": f"{type(exc).__name__}: {exc}", "id": resample.id, ".config": row[".config"]}
        return result

    results = parallel_map(_job, jobs, desc="Grid search")

    failures = [r for r in results if "error" in r]
    successes = [r for r in results if "error" not in r]
    notes = pd.DataFrame(
        [{"id": r["id"], ".config": r[".config"], "note": r["error"]} for r in failures],
        columns=["id", ".config", "note"],
    )
    for _, note in notes.iterrows():
        logging.debug("Candidate %s failed on %s: %s", note[".config"], note["id"], note["note"])
    if failures:
        print(f"Warning: {len(failures)} of {len(results)} fits failed; see .notes")
    if not successes:
        raise RuntimeError(f"All models failed during tuning. First error: {failures[0]['error']}")

    metrics_df = pd.concat([r["metrics"] for r in successes], ignore_index=True)
    predictions = None
    if save_pred:
        predictions = pd.concat([r["predictions"] for r in successes], ignore_index=True)
    return TuneResults(metrics_df, predictions, metric_set, workflow._outcome(), param_names, notes)


class LastFitResult:
    """A workflow fitted on the training data and evaluated once on the test set."""

    def __init__(self, workflow: FittedWorkflow, metrics: pd.DataFrame, predictions: pd.DataFrame):
        self.workflow = workflow
        self.metrics = metrics
        self.predictions = predictions

    def collect_metrics(self) -> pd.DataFrame:
        return self.metrics.copy()

    def collect_predictions(self) -> pd.DataFrame:
        return self.predictions.copy()

    def extract_workflow(self) -> FittedWorkflow:
        return self.workflow

    def __repr__(self):
        values = ", ".join(f"{m}={e:.4f}" for m, e in zip(self.metrics[".metric"], self.metrics[".estimate"]))
        return f"<LastFitResult: {values}>"


def last_fit(workflow: Workflow, split: InitialSplit, metrics=None,
             add_validation_set: bool = False, seed: Optional[int] = None) -> LastFitResult:
    """
    Fits a finalized workflow on the training set and scores it on the test set.

    Args:
        workflow: Workflow without ``tune()`` placeholders.
        split: ``initial_split`` or ``initial_validation_split`` output.
        metrics: A ``metric_set`` or list of metric names.
        add_validation_set: For a three-way split, train on training and
            validation rows combined.
        seed: Seed for the model engine.
    """
    metric_set = as_metric_set(metrics)
    if add_validation_set:
        if not isinstance(split, ValidationSplit):
            raise ValueError("add_validation_set requires a split from initial_validation_split()")
        training = split.training_and_validation()
    else:
        training = split.training()
    testing = split.testing()

    fitted = workflow.fit(training, random_state=seed)
    predictions = fitted.augment(testing)
    truth = testing[fitted.outcome].to_numpy()
    scores = metric_set(truth, predictions[".pred"].to_numpy())
    scores[".config"] = "Preprocessor1_Model1"

    predictions = predictions[[".pred", fitted.outcome]].copy()
    predictions.insert(0, ".row", split.test_idx)
    return LastFitResult(fitted, scores, predictions)
