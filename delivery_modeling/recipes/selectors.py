"""Column selectors used by recipe steps."""

import re

import pandas as pd


class Selector:
    """Base class: resolves to a list of column names on a given frame."""

    def select(self, data: pd.DataFrame, outcome: str) -> list[str]:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


def _is_nominal(series: pd.Series) -> bool:
    return (
        isinstance(series.dtype, pd.CategoricalDtype)
        or pd.api.types.is_object_dtype(series)
        or pd.api.types.is_string_dtype(series)
        or pd.api.types.is_bool_dtype(series)
    )


class AllPredictors(Selector):
    def select(self, data, outcome):
        return [c for c in data.columns if c != outcome]


class AllNumericPredictors(Selector):
    def select(self, data, outcome):
        return [
            c for c in data.columns
            if c != outcome and pd.api.types.is_numeric_dtype(data[c]) and not pd.api.types.is_bool_dtype(data[c])
        ]


class AllNominalPredictors(Selector):
    def select(self, data, outcome):
        return [c for c in data.columns if c != outcome and _is_nominal(data[c])]


class AllOutcomes(Selector):
    def select(self, data, outcome):
        return [outcome] if outcome in data.columns else []


class StartsWith(Selector):
    def __init__(self, prefix: str):
        self.prefix = prefix

    def select(self, data, outcome):
        return [c for c in data.columns if str(c).startswith(self.prefix)]

    def __repr__(self):
        return f"starts_with({self.prefix!r})"


class Matches(Selector):
    def __init__(self, pattern: str):
        self.pattern = re.compile(pattern)

    def select(self, data, outcome):
        return [c for c in data.columns if self.pattern.search(str(c))]

    def __repr__(self):
        return f"matches({self.pattern.pattern!r})"


class ColumnName(Selector):
    def __init__(self, name: str):
        self.name = name

    def select(self, data, outcome):
        if self.name not in data.columns:
            raise ValueError(f"Column '{self.name}' not found; available columns: {list(data.columns)}")
        return [self.name]

    def __repr__(self):
        return repr(self.name)


def all_predictors() -> Selector:
    return AllPredictors()


def all_numeric_predictors() -> Selector:
    return AllNumericPredictors()


def all_nominal_predictors() -> Selector:
    return AllNominalPredictors()


# Categorical columns are the only nominal type the deliveries data carries
all_factor_predictors = all_nominal_predictors


def all_outcomes() -> Selector:
    return AllOutcomes()


def starts_with(prefix: str) -> Selector:
    return StartsWith(prefix)


def matches(pattern: str) -> Selector:
    return Matches(pattern)


def as_selector(value) -> Selector:
    """Turns a column name or selector into a :class:`Selector`."""
    if isinstance(value, Selector):
        return value
    if isinstance(value, str):
        return ColumnName(value)
    raise ValueError(f"Unsupported selector {value!r}; use a column name or a selector function")


def resolve_selectors(selectors, data: pd.DataFrame, outcome: str, step_name: str,
                      allow_outcome: bool = False) -> list[str]:
    """
    Resolves selectors against ``data`` into an ordered, de-duplicated
    list of column names.

    Raises:
        ValueError: If a named column does not exist, or if the selection
            includes the outcome for a step that only operates on
            predictors.
    """
    columns = []
    for sel in selectors:
        sel = as_selector(sel)
        for col in sel.select(data, outcome):
            if col not in columns:
                columns.append(col)

    if not allow_outcome and outcome in columns:
        raise ValueError(
            f"step_{step_name} cannot be applied to the outcome '{outcome}'; "
            "select predictors only (e.g. all_numeric_predictors())"
        )
    return columns
