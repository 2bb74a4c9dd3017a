"""Workflows: a preprocessing recipe and a model specification fitted as one unit."""

import copy
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import joblib
import numpy as np
import pandas as pd

from delivery_modeling.config import Config
from delivery_modeling.models.base import BasePredictor
from delivery_modeling.models.spec import ModelSpec
from delivery_modeling.recipes.recipe import Recipe


class Workflow:
    """
    Bundles a recipe (or a plain outcome/predictor declaration) with a model.

    Like recipes and model specifications, workflows are modified by
    returning copies, so one base workflow can be reused for several model
    families or tuning candidates.
    """

    def __init__(self):
        self.recipe: Optional[Recipe] = None
        self.model: Optional[ModelSpec] = None
        self.outcome: Optional[str] = None
        self.predictors: Optional[List[str]] = None

    def _copy(self) -> "Workflow":
        return copy.deepcopy(self)

    def add_recipe(self, recipe: Recipe) -> "Workflow":
        if self.recipe is not None:
            raise ValueError("A recipe has already been added; use update_recipe() to replace it")
        if self.outcome is not None:
            raise ValueError("Variables and a recipe cannot both be used to preprocess data")
        new = self._copy()
        new.recipe = recipe
        return new

    def add_variables(self, outcome: str, predictors: Optional[List[str]] = None) -> "Workflow":
        """Uses the given columns as-is instead of a recipe."""
        if self.recipe is not None:
            raise ValueError("Variables and a recipe cannot both be used to preprocess data")
        new = self._copy()
        new.outcome = outcome
        new.predictors = list(predictors) if predictors is not None else None
        return new

    def add_model(self, model: ModelSpec) -> "Workflow":
        if self.model is not None:
            raise ValueError("A model has already been added; use update_model() to replace it")
        new = self._copy()
        new.model = model
        return new

    def update_recipe(self, recipe: Recipe) -> "Workflow":
        return self.remove_recipe().add_recipe(recipe)

    def update_model(self, model: ModelSpec) -> "Workflow":
        return self.remove_model().add_model(model)

    def remove_recipe(self) -> "Workflow":
        new = self._copy()
        new.recipe = None
        return new

    def remove_model(self) -> "Workflow":
        new = self._copy()
        new.model = None
        return new

    def tunable_params(self) -> Dict[str, tuple]:
        """
        Maps every tuning id in the workflow to where it lives.

        Returns:
            dict: ``{id: ("recipe", step_id, arg)}`` or ``{id: ("model", arg)}``.
        """
        params = {}
        if self.recipe is not None:
            for param_id, (step_id, arg) in self.recipe.tunable_params().items():
                params[param_id] = ("recipe", step_id, arg)
        if self.model is not None:
            for param_id, arg in self.model.tunable_params().items():
                if param_id in params:
                    raise ValueError(
                        f"Tuning id '{param_id}' is used by both the recipe and the model; "
                        "give one of them an explicit id with tune('...')"
                    )
                params[param_id] = ("model", arg)
        return params

    def finalize(self, params: Dict[str, Any]) -> "Workflow":
        new = self._copy()
        if new.recipe is not None:
            new.recipe = new.recipe.finalize(params)
        if new.model is not None:
            new.model = new.model.finalize(params)
        return new

    def _outcome(self) -> str:
        if self.recipe is not None:
            return self.recipe.outcome
        if self.outcome is not None:
            return self.outcome
        raise ValueError("The workflow needs a recipe or variables (add_recipe/add_variables) before fitting")

    def fit(self, data: pd.DataFrame, random_state: Optional[int] = None) -> "FittedWorkflow":
        """
        Prepares the recipe on ``data`` and fits the model to the result.

        Args:
            data: Training frame including the outcome column.
            random_state: Seed passed to the engine; defaults to
                ``Config.RANDOM_STATE``.

        Returns:
            FittedWorkflow: The trained recipe and model.

        Raises:
            ValueError: If the model is missing, or any ``tune()``
                placeholder has not been finalized.
        """
        if self.model is None:
            raise ValueError("The workflow has no model; call add_model() before fitting")
        unresolved = list(self.tunable_params())
        if unresolved:
            raise ValueError(
                f"Workflow arguments still marked for tuning: {unresolved}; use finalize_workflow() first"
            )

        outcome = self._outcome()
        if outcome not in data.columns:
            raise ValueError(f"Outcome '{outcome}' not found in training data")

        start = time.time()
        if self.recipe is not None:
            prepped = self.recipe.prep(data)
            processed = prepped.juice()
            X = processed.drop(columns=[outcome])
            y = processed[outcome]
            predictors = prepped.predictors
        else:
            prepped = None
            predictors = self.predictors or [c for c in data.columns if c != outcome]
            X = data[predictors]
            y = data[outcome]

        seed = Config.RANDOM_STATE if random_state is None else random_state
        engine = self.model.build(random_state=seed)
        engine.fit(X, y)
        logging.debug("Fitted %s on %d rows in %.2fs", self.model.model_type, len(X), time.time() - start)

        return FittedWorkflow(
            workflow=self,
            recipe=prepped,
            engine=engine,
            outcome=outcome,
            predictors=list(predictors),
            metadata={"n_train": len(data), "fit_seconds": time.time() - start},
        )

    def __repr__(self):
        pre = "Recipe" if self.recipe is not None else ("Variables" if self.outcome else "None")
        n_steps = len(self.recipe.steps) if self.recipe is not None else 0
        return (
            f"== Workflow ==\nPreprocessor: {pre}"
            + (f" ({n_steps} steps)" if n_steps else "")
            + f"\nModel: {self.model!r}"
        )


class FittedWorkflow:
    """
    A trained workflow ready for prediction on raw data.

    The wrapper holds the prepped recipe and the fitted engine, so a single
    ``predict(raw_dataframe)`` call applies exactly the preprocessing
    estimated on the training data before the model is evaluated.
    """

    def __init__(self, workflow: Workflow, recipe: Optional[Recipe], engine: BasePredictor,
                 outcome: str, predictors: List[str], metadata: Optional[Dict[str, Any]] = None):
        self.workflow = workflow
        self.recipe = recipe
        self.engine = engine
        self.outcome = outcome
        self.predictors = predictors
        self.metadata = metadata or {}

    def fit(self, X: pd.DataFrame, y: pd.Series, **fit_params) -> "FittedWorkflow":
        """Refits the underlying workflow on ``X`` with outcome ``y``."""
        data = X.copy()
        data[self.outcome] = np.asarray(y)
        refit = self.workflow.fit(data)
        self.__dict__.update(refit.__dict__)
        return self

    def _prepare(self, new_data: pd.DataFrame) -> pd.DataFrame:
        if self.recipe is not None:
            baked = self.recipe.bake(new_data)
            return baked.drop(columns=[self.outcome], errors="ignore")
        missing = [c for c in self.predictors if c not in new_data.columns]
        if missing:
            raise ValueError(f"New data is missing predictor columns: {missing}")
        return new_data[self.predictors]

    def predict(self, new_data: pd.DataFrame) -> pd.DataFrame:
        """
        Predicts the outcome for raw (unprocessed) rows.

        Returns:
            pd.DataFrame: One ``.pred`` column, one row per input row.
        """
        X = self._prepare(new_data)
        return pd.DataFrame({".pred": np.asarray(self.engine.predict(X), dtype=float)})

    def augment(self, new_data: pd.DataFrame) -> pd.DataFrame:
        """Returns ``new_data`` with a ``.pred`` column appended."""
        out = new_data.reset_index(drop=True).copy()
        out[".pred"] = self.predict(new_data)[".pred"].to_numpy()
        return out

    def extract_recipe(self) -> Optional[Recipe]:
        return self.recipe

    def extract_fit_engine(self) -> BasePredictor:
        return self.engine

    def get_model_info(self) -> Dict[str, Any]:
        """
        Get information about the wrapped model.

        Returns:
            Dictionary containing model metadata
        """
        spec = self.workflow.model
        info = {
            "model_type": spec.model_type,
            "engine": spec.engine,
            "mode": spec.mode,
            "outcome": self.outcome,
            "args": {k: v for k, v in spec.args.items() if v is not None},
            **self.metadata,
        }
        if self.recipe is not None:
            features = self.recipe.get_feature_names_out()
            info["num_features"] = len(features)
            info["features"] = features
            info["steps"] = [step.id for step in self.recipe.steps]
        info["model_params"] = self.engine.get_params()
        return info

    def save(self, filepath: Union[str, Path]) -> None:
        """
        Save the fitted workflow to disk.

        Args:
            filepath: Path to save the workflow
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, filepath)

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> "FittedWorkflow":
        return load_workflow(filepath)


def load_workflow(filepath: Union[str, Path]) -> FittedWorkflow:
    """
    Load a FittedWorkflow from disk.

    Args:
        filepath: Path to the saved workflow file

    Returns:
        FittedWorkflow instance

    Raises:
        ValueError: If the file can't be read or doesn't contain a FittedWorkflow
    """
    filepath = Path(filepath)

    try:
        obj = joblib.load(filepath)
    except Exception as e:
        raise ValueError(f"Failed to load fitted workflow from {filepath}: {e}") from e

    if not isinstance(obj, FittedWorkflow):
        raise ValueError(f"File contains {type(obj)}, expected FittedWorkflow")
    return obj


def extract_parameter_set(workflow: Workflow, family_name: Optional[str] = None) -> Dict[str, dict]:
    """
    Collects the ranges for every tunable parameter in a workflow.

    Ranges come from ``Config.HYPERPARAMETER_CONFIGS[family_name]`` when a
    family is given, falling back to ``Config.DEFAULT_PARAMETER_RANGES``
    keyed by argument name.

    Raises:
        ValueError: If no range is known for a parameter.
    """
    family_config = Config.HYPERPARAMETER_CONFIGS.get(family_name, {}) if family_name else {}
    ranges = {}
    for param_id, location in workflow.tunable_params().items():
        arg = location[-1]
        conf = family_config.get(param_id) or Config.DEFAULT_PARAMETER_RANGES.get(arg)
        if conf is None:
            raise ValueError(f"No range known for tunable parameter '{param_id}' (argument '{arg}')")
        ranges[param_id] = dict(conf)
    return ranges


def finalize_workflow(workflow: Workflow, params: Dict[str, Any]) -> Workflow:
    """
    Replaces every ``tune()`` placeholder with the chosen value.

    Args:
        workflow: Workflow holding placeholders.
        params: Values keyed by tuning id, e.g. a ``select_best`` result.
            Extra keys (like ``.config``) are ignored.

    Raises:
        ValueError: If a placeholder has no value in ``params``.
    """
    missing = [p for p in workflow.tunable_params() if p not in params]
    if missing:
        raise ValueError(f"No value supplied for tunable parameter(s) {missing}")
    values = {k: as_python_value(v) for k, v in params.items()}
    return workflow.finalize(values)


def as_python_value(value):
    # numpy scalars from grid frames become plain ints/floats
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    return value
