"""Bayesian hyperparameter search for workflows using Optuna."""

import numpy as np
import optuna
import pandas as pd

from delivery_modeling.config import Config
from delivery_modeling.data_processing.splitting import ResampleSet
from delivery_modeling.metrics import as_metric_set, metric_direction
from delivery_modeling.tuning.parallel import get_worker_count
from delivery_modeling.tuning.resampling import assess_resample
from delivery_modeling.tuning.tune import TuneResults
from delivery_modeling.workflows import Workflow, finalize_workflow


class OptunaTuner:
    """Searches the tunable parameters of one model family's workflow with Optuna."""

    def __init__(
        self,
        config: Config,
        workflow: Workflow,
        resamples: ResampleSet,
        family_name: str,
        metrics=None,
        n_trials: int | None = None,
    ):
        self.config = config
        self.workflow = workflow
        self.resamples = resamples
        self.family_name = family_name
        self.metric_set = as_metric_set(metrics if metrics is not None else config.METRICS)
        self.metric = self.metric_set.primary
        self.direction = metric_direction(self.metric)
        self.n_trials = n_trials if n_trials is not None else config.N_CALLS_PER_FAMILY
        self.tunable = list(workflow.tunable_params())
        if not self.tunable:
            raise ValueError(f"Workflow for '{family_name}' has no tune() placeholders to search")
        self.config.OPTUNA_DB_DIR.mkdir(exist_ok=True, parents=True)

    def _evaluate(self, workflow, params, trial=None):
        """Scores a finalized workflow on every resample, with optional pruning."""
        data = self.resamples.data
        records, running = [], []

        for step, resample in enumerate(self.resamples):
            result = assess_resample(
                workflow,
                resample.analysis_data(data),
                resample.assessment_data(data),
                self.metric_set,
                resample.id,
                config_label=f"Iter{trial.number}" if trial is not None else "Iter0",
                params=params,
                seed=self.config.RANDOM_STATE,
            )
            scores = result["metrics"]
            records.extend(scores.to_dict("records"))
            running.append(float(scores.loc[scores[".metric"] == self.metric, ".estimate"].iloc[0]))

            if trial is not None and hasattr(trial, "report") and hasattr(trial, "should_prune"):
                trial.report(float(np.mean(running)), step=step)
                if trial.should_prune():
                    raise optuna.exceptions.TrialPruned()

        return float(np.mean(running)), records

    def _objective(self, trial):
        """The core objective function for Optuna."""
        suggested = self.config.get_search_space(trial, self.family_name)
        params = {name: value for name, value in suggested.items() if name in self.tunable}
        missing = [name for name in self.tunable if name not in params]
        if missing:
            raise ValueError(f"No search space configured for {missing} in family '{self.family_name}'")

        candidate = finalize_workflow(self.workflow, params)
        score, records = self._evaluate(candidate, params, trial)
        trial.set_user_attr("resample_metrics", records)
        return score

    def _create_study(self):
        storage_url = f"sqlite:///{self.config.OPTUNA_DB_DIR}/{self.family_name}.db"
        db_path = self.config.OPTUNA_DB_DIR / f"{self.family_name}.db"
        if db_path.exists():
            print(f"Resuming existing study '{self.family_name}' from {db_path}.")
        else:
            print(f"Creating new study '{self.family_name}'.")

        workers = get_worker_count()
        sampler = optuna.samplers.TPESampler(
            seed=self.config.RANDOM_STATE,
            constant_liar=True,
            n_startup_trials=max(10, 2 * workers),
            n_ei_candidates=64,
            multivariate=True,
        )
        return optuna.create_study(
            study_name=self.family_name,
            storage=storage_url,
            direction=self.direction,
            sampler=sampler,
            pruner=optuna.pruners.MedianPruner(n_startup_trials=5),
            load_if_exists=True,
        )

    def run(self) -> TuneResults:
        """
        Runs (or resumes) the search until ``n_trials`` trials have completed.

        Returns:
            TuneResults: One candidate per completed trial, labelled ``IterN``.
        """
        study = self._create_study()
        completed_trials = len(
            [t for t in study.trials if t.state == optuna.trial.TrialState.COMPLETE]
        )
        remaining_trials = self.n_trials - completed_trials

        if remaining_trials > 0:
            print(
                f"Optimising {self.family_name.upper()} – running {remaining_trials} more trials..."
            )
            study.optimize(
                self._objective,
                n_trials=remaining_trials,
                n_jobs=get_worker_count(),
                show_progress_bar=True,
                catch=(ValueError,),
            )
        else:
            print(
                f"Skipping {self.family_name.upper()} – already optimised with {completed_trials} trials."
            )

        self.study = study
        return self.to_tune_results(study)

    def to_tune_results(self, study) -> TuneResults:
        """Collects the per-resample metrics stored on completed trials."""
        records, notes = [], []
        for trial in study.trials:
            if trial.state == optuna.trial.TrialState.COMPLETE:
                records.extend(trial.user_attrs.get("resample_metrics", []))
            elif trial.state == optuna.trial.TrialState.FAIL:
                notes.append({"id": None, ".config": f"Iter{trial.number}", "note": "trial failed"})

        if not records:
            raise RuntimeError(f"No completed trials for '{self.family_name}'; all candidates failed or were pruned")

        metrics_df = pd.DataFrame(records)
        return TuneResults(
            metrics_df,
            None,
            self.metric_set,
            self.workflow._outcome(),
            list(self.tunable),
            pd.DataFrame(notes, columns=["id", ".config", "note"]),
        )
