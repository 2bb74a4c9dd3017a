"""Preprocessing steps that make up a recipe."""

import logging
from typing import Any, Dict

import numpy as np
import pandas as pd
from sklearn.preprocessing import SplineTransformer

from delivery_modeling.parameters import is_tune
from delivery_modeling.recipes.selectors import resolve_selectors


class Step:
    """
    Base class for recipe steps.

    A step selects its columns and estimates whatever it needs from the
    training data in :meth:`prep`, then applies the same transformation to
    any frame in :meth:`bake`.
    """

    name = "step"
    requires_columns = False
    tunable_args: tuple = ()

    def __init__(self, selectors):
        self.selectors = list(selectors)
        self.id = None
        self.columns_ = None
        self.trained = False

    def args(self) -> Dict[str, Any]:
        """Current values of the tunable arguments."""
        return {arg: getattr(self, arg) for arg in self.tunable_args}

    def _select(self, data: pd.DataFrame, outcome: str) -> list[str]:
        columns = resolve_selectors(self.selectors, data, outcome, self.name)
        if self.requires_columns and not columns:
            raise ValueError(f"step_{self.name} selectors {self.selectors} did not match any columns")
        return columns

    def prep(self, data: pd.DataFrame, outcome: str) -> None:
        for arg, value in self.args().items():
            if is_tune(value):
                raise ValueError(
                    f"step_{self.name} argument '{arg}' is marked for tuning; finalize it before prep"
                )
        self.columns_ = self._select(data, outcome)
        self._fit(data)
        self.trained = True

    def bake(self, data: pd.DataFrame) -> pd.DataFrame:
        if not self.trained:
            raise ValueError(f"step_{self.name} must be prepped before it can be baked")
        missing = [c for c in self.columns_ if c not in data.columns]
        if missing:
            raise ValueError(f"step_{self.name} requires columns missing from new data: {missing}")
        return self._apply(data)

    def _fit(self, data: pd.DataFrame) -> None:
        pass

    def _apply(self, data: pd.DataFrame) -> pd.DataFrame:
        raise NotImplementedError

    def __repr__(self):
        args = ", ".join(f"{k}={v!r}" for k, v in self.args().items())
        sel = ", ".join(repr(s) for s in self.selectors)
        return f"step_{self.name}({sel}{', ' + args if args else ''})"


class StepDummy(Step):
    """Converts nominal columns into indicator columns named ``<col>_<level>``."""

    name = "dummy"

    def __init__(self, selectors, one_hot: bool = False):
        super().__init__(selectors)
        self.one_hot = one_hot
        self.levels_ = {}

    def _fit(self, data):
        for col in self.columns_:
            series = data[col]
            if isinstance(series.dtype, pd.CategoricalDtype):
                levels = [str(level) for level in series.cat.categories]
            else:
                levels = sorted(series.dropna().astype(str).unique().tolist())
            self.levels_[col] = levels

    def _apply(self, data):
        out = data.copy()
        for col in self.columns_:
            values = out[col].astype(str)
            levels = self.levels_[col] if self.one_hot else self.levels_[col][1:]
            dummies = {f"{col}_{level}": (values == level).astype(float) for level in levels}
            position = out.columns.get_loc(col)
            out = out.drop(columns=col)
            for offset, (name, values_) in enumerate(dummies.items()):
                out.insert(position + offset, name, values_.to_numpy())
        return out


class StepZv(Step):
    """Removes columns that contain a single value in the training data."""

    name = "zv"

    def _fit(self, data):
        self.removed_ = [c for c in self.columns_ if data[c].nunique(dropna=True) <= 1]
        if self.removed_:
            logging.debug("step_zv removing %s", self.removed_)

    def _apply(self, data):
        return data.drop(columns=[c for c in self.removed_ if c in data.columns])

    def bake(self, data):
        if not self.trained:
            raise ValueError("step_zv must be prepped before it can be baked")
        return self._apply(data)


class StepNormalize(Step):
    """Centers and scales numeric columns to mean zero and unit variance."""

    name = "normalize"

    def _fit(self, data):
        self.means_ = {}
        self.sds_ = {}
        for col in self.columns_:
            values = data[col].astype(float)
            sd = values.std(ddof=1)
            self.means_[col] = values.mean()
            self.sds_[col] = sd if np.isfinite(sd) and sd > 0 else 1.0

    def _apply(self, data):
        out = data.copy()
        for col in self.columns_:
            out[col] = (out[col].astype(float) - self.means_[col]) / self.sds_[col]
        return out


class StepSplineNatural(Step):
    """
    Replaces numeric columns with a cubic spline basis of ``deg_free`` terms.

    Outside the training range the basis is extended linearly, which gives
    the natural-spline behaviour of constraining the fit to be linear
    beyond the boundary knots.
    """

    name = "spline_natural"
    requires_columns = True
    tunable_args = ("deg_free",)

    def __init__(self, selectors, deg_free=10):
        super().__init__(selectors)
        self.deg_free = deg_free
        self.transformers_ = {}

    def _fit(self, data):
        if int(self.deg_free) < 3:
            raise ValueError(f"step_spline_natural needs deg_free >= 3, got {self.deg_free}")
        for col in self.columns_:
            if not pd.api.types.is_numeric_dtype(data[col]):
                raise ValueError(f"step_spline_natural requires numeric columns; '{col}' is {data[col].dtype}")
            # n_knots + degree - 2 output columns without the intercept term
            spline = SplineTransformer(
                n_knots=int(self.deg_free) - 1,
                degree=3,
                knots="uniform",
                extrapolation="linear",
                include_bias=False,
            )
            spline.fit(data[[col]].astype(float).to_numpy())
            self.transformers_[col] = spline

    def _apply(self, data):
        out = data.copy()
        for col in self.columns_:
            basis = self.transformers_[col].transform(out[[col]].astype(float).to_numpy())
            position = out.columns.get_loc(col)
            out = out.drop(columns=col)
            for j in range(basis.shape[1]):
                out.insert(position + j, f"{col}_{j + 1:02d}", basis[:, j])
        return out


class StepInteract(Step):
    """Adds products of every column pair drawn from two selections."""

    name = "interact"
    requires_columns = True

    def __init__(self, terms, sep: str = "_x_"):
        if len(terms) != 2:
            raise ValueError("step_interact expects terms=(left_selector, right_selector)")
        super().__init__(terms)
        self.terms = tuple(terms)
        self.sep = sep
        self.pairs_ = []

    def _select(self, data, outcome):
        left = resolve_selectors([self.terms[0]], data, outcome, self.name)
        right = resolve_selectors([self.terms[1]], data, outcome, self.name)
        if not left or not right:
            raise ValueError(f"step_interact terms {self.terms} must each match at least one column")
        self.pairs_ = [(a, b) for a in left for b in right if a != b]
        return list(dict.fromkeys(left + right))

    def _apply(self, data):
        out = data.copy()
        products = {
            f"{a}{self.sep}{b}": out[a].astype(float).to_numpy() * out[b].astype(float).to_numpy()
            for a, b in self.pairs_
        }
        return pd.concat([out, pd.DataFrame(products, index=out.index)], axis=1)


class StepImputeMedian(Step):
    """Fills missing numeric values with the training median."""

    name = "impute_median"

    def _fit(self, data):
        self.medians_ = {col: data[col].astype(float).median() for col in self.columns_}

    def _apply(self, data):
        out = data.copy()
        for col, median in self.medians_.items():
            out[col] = out[col].astype(float).fillna(median)
        return out


class StepLog(Step):
    """Log-transforms numeric columns after adding ``offset``."""

    name = "log"

    def __init__(self, selectors, offset: float = 0.0):
        super().__init__(selectors)
        self.offset = offset

    def _fit(self, data):
        for col in self.columns_:
            if (data[col].astype(float) + self.offset <= 0).any():
                raise ValueError(f"step_log found non-positive values in '{col}' (offset={self.offset})")

    def _apply(self, data):
        out = data.copy()
        for col in self.columns_:
            out[col] = np.log(out[col].astype(float) + self.offset)
        return out


class StepRm(Step):
    """Removes the selected columns."""

    name = "rm"

    def _apply(self, data):
        return data.drop(columns=self.columns_)
