"""Fitting a workflow across resamples and collecting performance estimates."""

import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from delivery_modeling.data_processing.splitting import ResampleSet
from delivery_modeling.metrics import MetricSet, as_metric_set
from delivery_modeling.tuning.parallel import parallel_map
from delivery_modeling.workflows import Workflow


def assess_resample(workflow: Workflow, analysis: pd.DataFrame, assessment: pd.DataFrame,
                    metrics: MetricSet, resample_id: str, config_label: str = "Preprocessor1_Model1",
                    params: Optional[Dict[str, Any]] = None, save_pred: bool = False,
                    seed: Optional[int] = None, rows: Optional[np.ndarray] = None) -> Dict[str, Any]:
    """
    Fits ``workflow`` on the analysis rows and scores it on the assessment rows.

    Returns:
        dict: ``metrics`` (long frame) and, when ``save_pred``, ``predictions``.
    """
    fitted = workflow.fit(analysis, random_state=seed)
    pred = fitted.predict(assessment)[".pred"].to_numpy()
    truth = assessment[fitted.outcome].to_numpy()

    scores = metrics(truth, pred)
    scores.insert(0, "id", resample_id)
    for name, value in (params or {}).items():
        scores[name] = value
    scores[".config"] = config_label
    logging.debug("%s %s: %s", resample_id, config_label, dict(zip(scores[".metric"], scores[".estimate"])))

    result = {"metrics": scores, "predictions": None}
    if save_pred:
        predictions = pd.DataFrame({
            "id": resample_id,
            ".row": assessment.index.to_numpy() if rows is None else np.asarray(rows),
            ".pred": pred,
            fitted.outcome: truth,
        })
        for name, value in (params or {}).items():
            predictions[name] = value
        predictions[".config"] = config_label
        result["predictions"] = predictions
    return result


def summarize_metrics(metrics: pd.DataFrame, param_names: List[str]) -> pd.DataFrame:
    """Mean, count and standard error of each metric per candidate."""
    keys = list(param_names) + [".metric", ".estimator", ".config"]
    grouped = metrics.groupby(keys, sort=False, dropna=False)[".estimate"]
    summary = grouped.agg(mean="mean", n="count", std="std").reset_index()
    summary["std_err"] = summary["std"] / np.sqrt(summary["n"])
    columns = list(param_names) + [".metric", ".estimator", "mean", "n", "std_err", ".config"]
    return summary[columns]


class ResampleResults:
    """Per-resample metrics (and optionally predictions) for a workflow."""

    def __init__(self, metrics: pd.DataFrame, predictions: Optional[pd.DataFrame],
                 metric_set: MetricSet, outcome: str, param_names: Optional[List[str]] = None):
        self.metrics = metrics
        self.predictions = predictions
        self.metric_set = metric_set
        self.outcome = outcome
        self.param_names = list(param_names or [])

    def collect_metrics(self, summarize: bool = True) -> pd.DataFrame:
        """
        Performance estimates.

        Args:
            summarize: Average over resamples (``mean``, ``n``, ``std_err``)
                instead of returning one row per resample.
        """
        if not summarize:
            return self.metrics.copy()
        return summarize_metrics(self.metrics, self.param_names)

    def collect_predictions(self, summarize: bool = False) -> pd.DataFrame:
        """
        Held-out predictions; requires ``save_pred=True`` when fitting.

        With ``summarize=True`` predictions for the same row (from repeated
        resampling) are averaged.
        """
        if self.predictions is None:
            raise ValueError("Predictions were not saved; rerun with save_pred=True")
        if not summarize:
            return self.predictions.copy()
        keys = self.param_names + [".row", ".config"]
        return (
            self.predictions.groupby(keys, sort=False)[[".pred", self.outcome]]
            .mean()
            .reset_index()
        )

    def __repr__(self):
        n_resamples = self.metrics["id"].nunique() if not self.metrics.empty else 0
        return f"<{type(self).__name__}: {n_resamples} resamples, metrics {self.metric_set.names}>"


def fit_resamples(workflow: Workflow, resamples: ResampleSet, metrics=None,
                  save_pred: bool = False, seed: Optional[int] = None) -> ResampleResults:
    """
    Fits a finalized workflow to every resample and scores the held-out rows.

    Each resample is an independent job on the registered parallel
    backend. A failing fit propagates its exception.

    Args:
        workflow: Workflow without ``tune()`` placeholders.
        resamples: Output of ``vfold_cv`` or ``validation_set``.
        metrics: A ``metric_set`` or list of metric names.
        save_pred: Keep the held-out predictions.
        seed: Seed for the model engines.

    Returns:
        ResampleResults
    """
    unresolved = list(workflow.tunable_params())
    if unresolved:
        raise ValueError(f"fit_resamples needs a finalized workflow; still tunable: {unresolved}; use tune_grid()")
    metric_set = as_metric_set(metrics)
    data = resamples.data

    def _job(resample):
        return assess_resample(
            workflow,
            resample.analysis_data(data),
            resample.assessment_data(data),
            metric_set,
            resample.id,
            save_pred=save_pred,
            seed=seed,
            rows=resample.assessment,
        )

    results = parallel_map(_job, list(resamples), desc="Resampling")
    all_metrics = pd.concat([r["metrics"] for r in results], ignore_index=True)
    predictions = None
    if save_pred:
        predictions = pd.concat([r["predictions"] for r in results], ignore_index=True)
    return ResampleResults(all_metrics, predictions, metric_set, workflow._outcome())
