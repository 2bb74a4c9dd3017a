"""Declarative feature-engineering recipes."""

import copy
from typing import Any, Dict, List, Optional

import pandas as pd

from delivery_modeling.parameters import fill_placeholders, is_tune, placeholder_ids
from delivery_modeling.recipes.steps import (
    Step,
    StepDummy,
    StepImputeMedian,
    StepInteract,
    StepLog,
    StepNormalize,
    StepRm,
    StepSplineNatural,
    StepZv,
)


class Recipe:
    """
    An ordered list of preprocessing steps tied to an outcome column.

    The recipe is declared against a template frame: the outcome column is
    the response and every other column is a predictor. Steps are added
    with the chainable ``step_*`` methods, estimated on training data with
    :meth:`prep` and applied to new data with :meth:`bake`. The same
    estimates are reused for every frame that is baked, so training and
    inference data go through identical transformations.

    Example:
        >>> rec = (
        ...     Recipe(train, outcome="time_to_delivery")
        ...     .step_dummy(all_factor_predictors())
        ...     .step_zv(all_predictors())
        ...     .step_normalize(all_numeric_predictors())
        ...     .step_spline_natural("hour", deg_free=10)
        ... )
        >>> baked = rec.prep(train).bake(test)
    """

    def __init__(self, data: pd.DataFrame, outcome: str):
        """
        Initialize the recipe.

        Args:
            data: Template frame defining the available columns.
            outcome: Name of the response column.

        Raises:
            ValueError: If the outcome is not a column of ``data``.
        """
        if outcome not in data.columns:
            raise ValueError(f"Outcome '{outcome}' not found in data columns {list(data.columns)}")
        self.outcome = outcome
        self.data = data.head(0).copy()
        self.steps: List[Step] = []
        self.is_prepped_ = False
        self.training_ = None

    @property
    def template(self) -> pd.DataFrame:
        """Zero-row frame holding the columns the recipe was declared on."""
        return self.data

    @property
    def predictors(self) -> list[str]:
        return [c for c in self.template.columns if c != self.outcome]

    def _add_step(self, step: Step) -> "Recipe":
        if self.is_prepped_:
            raise ValueError("Cannot add steps to a prepped recipe")
        step.id = f"{step.name}_{len(self.steps) + 1}"
        self.steps.append(step)
        return self

    def step_dummy(self, *selectors, one_hot: bool = False) -> "Recipe":
        return self._add_step(StepDummy(selectors, one_hot=one_hot))

    def step_zv(self, *selectors) -> "Recipe":
        return self._add_step(StepZv(selectors))

    def step_normalize(self, *selectors) -> "Recipe":
        return self._add_step(StepNormalize(selectors))

    def step_spline_natural(self, *selectors, deg_free=10) -> "Recipe":
        return self._add_step(StepSplineNatural(selectors, deg_free=deg_free))

    def step_interact(self, terms, sep: str = "_x_") -> "Recipe":
        return self._add_step(StepInteract(terms, sep=sep))

    def step_impute_median(self, *selectors) -> "Recipe":
        return self._add_step(StepImputeMedian(selectors))

    def step_log(self, *selectors, offset: float = 0.0) -> "Recipe":
        return self._add_step(StepLog(selectors, offset=offset))

    def step_rm(self, *selectors) -> "Recipe":
        return self._add_step(StepRm(selectors))

    def tunable_params(self) -> Dict[str, tuple]:
        """Maps each tuning id to the ``(step_id, argument)`` holding it."""
        params = {}
        for step in self.steps:
            for param_id, arg in placeholder_ids(step.args()).items():
                params[param_id] = (step.id, arg)
        return params

    def update_step(self, step_id: str, **args) -> "Recipe":
        """Returns a copy of the recipe with arguments of one step replaced."""
        new = copy.deepcopy(self)
        for step in new.steps:
            if step.id == step_id:
                for arg, value in args.items():
                    if arg not in step.tunable_args:
                        raise ValueError(f"step '{step_id}' has no updatable argument '{arg}'")
                    setattr(step, arg, value)
                return new
        raise ValueError(f"No step with id '{step_id}'; available: {[s.id for s in self.steps]}")

    def finalize(self, params: Dict[str, Any]) -> "Recipe":
        """Returns a copy with every matching ``tune()`` placeholder filled in."""
        new = copy.deepcopy(self)
        for step in new.steps:
            for arg, value in fill_placeholders(step.args(), params).items():
                setattr(step, arg, value)
        return new

    def _estimate(self, X: pd.DataFrame) -> "Recipe":
        """Estimates all steps in place on ``X``."""
        if self.is_prepped_:
            raise ValueError("Recipe is already prepped; call prep() on the unprepped template instead")
        unresolved = [
            f"{step.id}.{arg}" for step in self.steps for arg, v in step.args().items() if is_tune(v)
        ]
        if unresolved:
            raise ValueError(f"Recipe arguments still marked for tuning: {unresolved}")

        missing = [c for c in self.template.columns if c not in X.columns]
        if missing:
            raise ValueError(f"Training data is missing recipe columns: {missing}")

        current = X[list(self.template.columns)].copy()
        for step in self.steps:
            step.prep(current, self.outcome)
            current = step.bake(current)

        self.training_ = self._order_columns(current)
        self.is_prepped_ = True
        return self

    def prep(self, training: pd.DataFrame) -> "Recipe":
        """
        Estimates the recipe on ``training``.

        Returns:
            Recipe: A prepped copy; the original stays reusable as a template.
        """
        return copy.deepcopy(self)._estimate(training)

    def _order_columns(self, data: pd.DataFrame) -> pd.DataFrame:
        if self.outcome in data.columns:
            cols = [c for c in data.columns if c != self.outcome] + [self.outcome]
            return data[cols]
        return data

    def bake(self, new_data: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """
        Applies the estimated steps to new data.

        Args:
            new_data: Frame with the recipe's predictor columns. The
                outcome is carried through when present. ``None`` returns
                the processed training data.

        Returns:
            pd.DataFrame: Processed data with the outcome as last column.
        """
        if not self.is_prepped_:
            raise ValueError("Recipe must be prepped before it can be baked")
        if new_data is None:
            return self.training_.copy()

        missing = [c for c in self.predictors if c not in new_data.columns]
        if missing:
            raise ValueError(f"New data is missing predictor columns: {missing}")

        keep = self.predictors + ([self.outcome] if self.outcome in new_data.columns else [])
        current = new_data[keep].copy()
        for step in self.steps:
            current = step.bake(current)
        return self._order_columns(current).reset_index(drop=True)

    def juice(self) -> pd.DataFrame:
        return self.bake(None)

    def get_feature_names_out(self) -> list[str]:
        if not self.is_prepped_:
            raise ValueError("Recipe must be prepped before getting feature names")
        return [c for c in self.training_.columns if c != self.outcome]

    def __repr__(self):
        lines = [f"Recipe(outcome={self.outcome!r}, predictors={len(self.predictors)})"]
        lines += [f"  {step!r}" for step in self.steps]
        if self.is_prepped_:
            lines.append("  [trained]")
        return "\n".join(lines)
