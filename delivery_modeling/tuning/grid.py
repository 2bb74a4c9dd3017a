"""Candidate grids for tuning."""

import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from delivery_modeling.config import Config


@dataclass
class ParameterRange:
    """The values one tunable parameter may take."""

    name: str
    low: Optional[float] = None
    high: Optional[float] = None
    type: str = "float"
    log: bool = False
    choices: List[Any] = field(default_factory=list)
    default: Any = None

    @classmethod
    def from_config(cls, name: str, conf: dict) -> "ParameterRange":
        """Builds a range from a ``HYPERPARAMETER_CONFIGS`` style entry."""
        if "choices" in conf:
            return cls(name=name, type="categorical", choices=list(conf["choices"]), default=conf.get("default"))
        if conf.get("type") not in ("int", "float"):
            raise ValueError(f"Invalid parameter configuration for {name}: {conf}")
        if conf["min"] > conf["max"]:
            raise ValueError(f"Range for {name} has min > max: {conf}")
        if conf.get("log", False) and conf["min"] <= 0:
            raise ValueError(f"Log-scaled range for {name} must be positive: {conf}")
        return cls(
            name=name,
            low=conf["min"],
            high=conf["max"],
            type=conf["type"],
            log=conf.get("log", False),
            default=conf.get("default"),
        )

    def from_unit(self, u: np.ndarray) -> np.ndarray:
        """Maps points of the unit interval onto the range."""
        u = np.asarray(u, dtype=float)
        if self.type == "categorical":
            idx = np.minimum((u * len(self.choices)).astype(int), len(self.choices) - 1)
            return np.asarray(self.choices, dtype=object)[idx]
        if self.log:
            values = np.exp(np.log(self.low) + u * (np.log(self.high) - np.log(self.low)))
        else:
            values = self.low + u * (self.high - self.low)
        if self.type == "int":
            values = np.clip(np.rint(values), self.low, self.high).astype(int)
        return values

    def regular(self, levels: int) -> list:
        """``levels`` evenly spaced values (on the log scale when ``log``), de-duplicated."""
        if self.type == "categorical":
            return list(self.choices)
        if levels < 1:
            raise ValueError(f"levels must be at least 1, got {levels}")
        u = np.linspace(0.0, 1.0, levels) if levels > 1 else np.array([0.5])
        return list(dict.fromkeys(self.from_unit(u).tolist()))


RangeLike = Union[ParameterRange, dict]


def _as_ranges(ranges: Dict[str, RangeLike]) -> List[ParameterRange]:
    if not ranges:
        raise ValueError("At least one parameter range is required to build a grid")
    return [
        r if isinstance(r, ParameterRange) else ParameterRange.from_config(name, r)
        for name, r in ranges.items()
    ]


def label_configs(grid: pd.DataFrame, recipe_params: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Adds a ``.config`` column naming each candidate ``PreprocessorP_ModelMM``.

    Candidates sharing the same recipe parameter values share a
    preprocessor number.
    """
    grid = grid.drop(columns=[".config"], errors="ignore").reset_index(drop=True)
    if recipe_params is None:
        recipe_params = Config.RECIPE_PARAMETERS
    pre_cols = [c for c in grid.columns if c in set(recipe_params)]

    if pre_cols:
        pre_keys = list(grid[pre_cols].itertuples(index=False, name=None))
        pre_ids = {key: i + 1 for i, key in enumerate(dict.fromkeys(pre_keys))}
        pre_index = pd.Series([pre_ids[key] for key in pre_keys], index=grid.index)
    else:
        pre_index = pd.Series(1, index=grid.index)

    model_index = pre_index.groupby(pre_index).cumcount() + 1
    width_pre = max(len(str(pre_index.max())), 1)
    width_model = max(len(str(model_index.max())), 2)
    grid[".config"] = [
        f"Preprocessor{p:0{width_pre}d}_Model{m:0{width_model}d}"
        for p, m in zip(pre_index, model_index)
    ]
    return grid


def _to_frame(columns: Dict[str, Iterable], recipe_params) -> pd.DataFrame:
    grid = pd.DataFrame(columns).drop_duplicates().reset_index(drop=True)
    return label_configs(grid, recipe_params)


def grid_regular(ranges: Dict[str, RangeLike], levels: Union[int, Dict[str, int]] = 3,
                 recipe_params: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Full factorial grid with ``levels`` values per parameter.

    Args:
        ranges: Parameter ranges keyed by tuning id.
        levels: Levels for every parameter, or a dict of levels per parameter.
        recipe_params: Ids belonging to the recipe (for ``.config`` labels).

    Returns:
        pd.DataFrame: One row per candidate plus ``.config``.
    """
    params = _as_ranges(ranges)
    values = []
    for p in params:
        n = levels.get(p.name, 3) if isinstance(levels, dict) else levels
        values.append(p.regular(n))
    rows = list(itertools.product(*values))
    columns = {p.name: [row[i] for row in rows] for i, p in enumerate(params)}
    return _to_frame(columns, recipe_params)


def grid_space_filling(ranges: Dict[str, RangeLike], size: int = 10, seed: Optional[int] = None,
                       recipe_params: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Latin hypercube design of ``size`` candidates.

    Every parameter's range is split into ``size`` strata and each stratum
    is used exactly once, so candidates cover the space evenly even when it
    has many dimensions. Integer parameters are rounded, which can collapse
    candidates; duplicates are dropped.
    """
    if size < 1:
        raise ValueError(f"size must be at least 1, got {size}")
    params = _as_ranges(ranges)
    rng = np.random.default_rng(Config.RANDOM_STATE if seed is None else seed)
    # one random position inside each of the size strata, shuffled per dimension
    unit = np.column_stack([
        (rng.permutation(size) + rng.random(size)) / size for _ in params
    ])
    columns = {p.name: p.from_unit(unit[:, i]) for i, p in enumerate(params)}
    return _to_frame(columns, recipe_params)


def grid_random(ranges: Dict[str, RangeLike], size: int = 10, seed: Optional[int] = None,
                recipe_params: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Independent uniform draws (log-uniform for log-scaled ranges)."""
    if size < 1:
        raise ValueError(f"size must be at least 1, got {size}")
    params = _as_ranges(ranges)
    rng = np.random.default_rng(Config.RANDOM_STATE if seed is None else seed)
    unit = rng.random((size, len(params)))
    columns = {p.name: p.from_unit(unit[:, i]) for i, p in enumerate(params)}
    return _to_frame(columns, recipe_params)
