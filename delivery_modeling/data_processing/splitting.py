"""Stratified data splitting and resampling schemes."""

import logging
import warnings
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from sklearn.model_selection import RepeatedKFold, RepeatedStratifiedKFold, train_test_split


def _random_state(seed):
    """sklearn ``random_state`` from an int, ``None`` or ``np.random.Generator``."""
    if isinstance(seed, np.random.Generator):
        return int(seed.integers(2**31 - 1))
    return seed


def _pool_small_strata(codes: np.ndarray, pool: float) -> np.ndarray:
    """Merges strata holding less than ``pool`` of the rows into a neighbour."""
    codes = codes.copy()
    n = len(codes)
    while True:
        labels, counts = np.unique(codes, return_counts=True)
        if len(labels) < 2:
            break
        smallest = int(np.argmin(counts))
        if counts[smallest] >= pool * n:
            break
        if smallest == 0:
            neighbour = 1
        elif smallest == len(labels) - 1:
            neighbour = smallest - 1
        else:
            neighbour = smallest - 1 if counts[smallest - 1] <= counts[smallest + 1] else smallest + 1
        codes[codes == labels[smallest]] = labels[neighbour]
    # Relabel to 0..k-1 keeping order
    _, codes = np.unique(codes, return_inverse=True)
    return codes


def make_strata(y, breaks: int = 4, pool: float = 0.1, depth: int = 20) -> np.ndarray:
    """
    Converts a stratification variable into integer stratum codes.

    Numeric variables are binned at their quantiles. When there are fewer
    than ``depth`` rows per bin the number of bins is reduced; below two
    bins a warning is raised and every row lands in one stratum. Strata
    holding less than ``pool`` of the rows are merged with a neighbour.

    Args:
        y: Stratification variable.
        breaks: Desired number of quantile bins for numeric data.
        pool: Minimum share of rows per stratum.
        depth: Minimum rows per bin before the number of bins is reduced.

    Returns:
        np.ndarray: Integer stratum code per row.
    """
    y = pd.Series(y).reset_index(drop=True)
    n = len(y)
    if n == 0:
        return np.zeros(0, dtype=int)

    if pd.api.types.is_numeric_dtype(y) and not pd.api.types.is_bool_dtype(y):
        if n / breaks < depth:
            breaks = int(np.floor(n / depth))
        if breaks < 2:
            warnings.warn(
                "The number of observations in each quantile is below the recommended "
                f"threshold of {depth}. Stratification will use a single stratum.",
                UserWarning,
            )
            return np.zeros(n, dtype=int)
        edges = np.unique(np.nanquantile(y.to_numpy(dtype=float), np.linspace(0, 1, breaks + 1)))
        if len(edges) < 3:
            return np.zeros(n, dtype=int)
        codes = pd.cut(y, bins=edges, include_lowest=True, labels=False)
        codes = codes.fillna(0).astype(int).to_numpy()
    else:
        codes = pd.Categorical(y.astype(str)).codes.astype(int)

    return _pool_small_strata(codes, pool)


def _resolve_strata(df: pd.DataFrame, strata, breaks: int, pool: float) -> np.ndarray:
    if strata is None:
        return np.zeros(len(df), dtype=int)
    if strata not in df.columns:
        raise ValueError(f"Stratification column '{strata}' not found in data")
    return make_strata(df[strata], breaks=breaks, pool=pool)


def _stratify_or_none(codes: np.ndarray, min_count: int = 2):
    """Strata codes for sklearn, or ``None`` when a stratum is too small to sample."""
    if codes is None or len(np.unique(codes)) < 2:
        return None
    if np.bincount(codes).min() < min_count:
        warnings.warn(
            f"A stratum holds fewer than {min_count} rows; sampling without stratification.",
            UserWarning,
        )
        return None
    return codes


def _partition(strata_codes: np.ndarray, props: list[float], random_state) -> list[np.ndarray]:
    """Samples positions into ``len(props) + 1`` groups, stratified on ``strata_codes``."""
    remaining = np.arange(len(strata_codes))
    remaining_share = 1.0
    groups = []
    for prop in props:
        codes = strata_codes[remaining]
        taken, remaining = train_test_split(
            remaining,
            train_size=prop / remaining_share,
            random_state=random_state,
            stratify=_stratify_or_none(np.unique(codes, return_inverse=True)[1]),
        )
        remaining_share -= prop
        groups.append(taken)
    groups.append(remaining)
    return [np.sort(g).astype(int) for g in groups]


@dataclass
class Resample:
    """One analysis/assessment partition of a frame, stored as row positions."""

    id: str
    analysis: np.ndarray
    assessment: np.ndarray

    def analysis_data(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.iloc[self.analysis].reset_index(drop=True)

    def assessment_data(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.iloc[self.assessment].reset_index(drop=True)


@dataclass
class ResampleSet:
    """An ordered collection of resamples over a single frame."""

    data: pd.DataFrame
    resamples: list[Resample] = field(default_factory=list)
    kind: str = "resamples"

    def __iter__(self):
        return iter(self.resamples)

    def __len__(self):
        return len(self.resamples)

    def __getitem__(self, item):
        return self.resamples[item]

    @property
    def ids(self) -> list[str]:
        return [r.id for r in self.resamples]


@dataclass
class InitialSplit:
    """Training/testing partition."""

    data: pd.DataFrame
    train_idx: np.ndarray
    test_idx: np.ndarray

    def training(self) -> pd.DataFrame:
        return self.data.iloc[self.train_idx].reset_index(drop=True)

    def testing(self) -> pd.DataFrame:
        return self.data.iloc[self.test_idx].reset_index(drop=True)


@dataclass
class ValidationSplit(InitialSplit):
    """Training/validation/testing partition."""

    val_idx: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))

    def validation(self) -> pd.DataFrame:
        return self.data.iloc[self.val_idx].reset_index(drop=True)

    def training_and_validation(self) -> pd.DataFrame:
        return pd.concat([self.training(), self.validation()], ignore_index=True)


def _check_props(props: list[float]):
    if any(p <= 0 for p in props):
        raise ValueError(f"Split proportions must be positive, got {props}")
    if sum(props) >= 1:
        raise ValueError(
            f"Split proportions {props} sum to {sum(props):.3f}; they must leave rows for a test set"
        )


def initial_split(df: pd.DataFrame, prop: float = 0.75, strata: str | None = None, seed=None,
                  breaks: int = 4, pool: float = 0.1) -> InitialSplit:
    """Splits a frame into training and testing sets, optionally stratified."""
    _check_props([prop])
    codes = _resolve_strata(df, strata, breaks, pool)
    train_idx, test_idx = _partition(codes, [prop], _random_state(seed))
    return InitialSplit(data=df.reset_index(drop=True), train_idx=train_idx, test_idx=test_idx)


def initial_validation_split(df: pd.DataFrame, prop: tuple[float, float] = (0.6, 0.2), strata: str | None = None,
                             seed=None, breaks: int = 4, pool: float = 0.1) -> ValidationSplit:
    """
    Splits a frame into training, validation and testing sets.

    Args:
        df: Data to split.
        prop: Training and validation proportions; the remainder is the
            test set.
        strata: Optional column used for stratified sampling.
        seed: Seed or ``np.random.Generator``.
        breaks: Quantile bins for a numeric stratification column.
        pool: Minimum share of rows per stratum.

    Returns:
        ValidationSplit: The three-way partition.

    Raises:
        ValueError: If the proportions are not positive or leave no test set.
    """
    prop = list(prop)
    if len(prop) != 2:
        raise ValueError(f"prop must hold the training and validation proportions, got {prop}")
    _check_props(prop)
    codes = _resolve_strata(df, strata, breaks, pool)
    train_idx, val_idx, test_idx = _partition(codes, prop, _random_state(seed))
    logging.debug("Three-way split sizes: %s/%s/%s", len(train_idx), len(val_idx), len(test_idx))
    return ValidationSplit(
        data=df.reset_index(drop=True), train_idx=train_idx, test_idx=test_idx, val_idx=val_idx
    )


def validation_set(split: ValidationSplit) -> ResampleSet:
    """Wraps the training and validation sets of a split as a single resample."""
    data = split.training_and_validation()
    n_train = len(split.train_idx)
    resample = Resample(
        id="validation",
        analysis=np.arange(n_train),
        assessment=np.arange(n_train, len(data)),
    )
    return ResampleSet(data=data, resamples=[resample], kind="validation_set")


def vfold_cv(df: pd.DataFrame, v: int = 10, repeats: int = 1, strata: str | None = None, seed=None,
             breaks: int = 4, pool: float = 0.1) -> ResampleSet:
    """
    Creates (repeated) V-fold cross-validation resamples.

    Folds are drawn with ``RepeatedStratifiedKFold`` on the strata codes so
    that every fold has a similar distribution of the stratification
    variable. When no stratum holds ``v`` rows, stratification is dropped
    with a warning and plain ``RepeatedKFold`` is used.
    """
    data = df.reset_index(drop=True)
    n = len(data)
    if v < 2 or v > n:
        raise ValueError(f"v must be between 2 and the number of rows ({n}), got {v}")
    if repeats < 1:
        raise ValueError(f"repeats must be at least 1, got {repeats}")

    codes = _resolve_strata(data, strata, breaks, pool)
    random_state = _random_state(seed)
    if len(np.unique(codes)) > 1 and np.bincount(codes).max() < v:
        warnings.warn(
            f"Every stratum holds fewer than v={v} rows; folds are drawn without stratification.",
            UserWarning,
        )
        codes = np.zeros(n, dtype=int)

    if len(np.unique(codes)) > 1:
        splitter = RepeatedStratifiedKFold(n_splits=v, n_repeats=repeats, random_state=random_state)
    else:
        splitter = RepeatedKFold(n_splits=v, n_repeats=repeats, random_state=random_state)

    resamples = []
    for i, (analysis, assessment) in enumerate(splitter.split(np.zeros(n), codes)):
        rep, k = divmod(i, v)
        fold_id = f"Fold{k + 1:02d}"
        if repeats > 1:
            fold_id = f"Repeat{rep + 1}/{fold_id}"
        resamples.append(Resample(id=fold_id, analysis=analysis, assessment=assessment))
    return ResampleSet(data=data, resamples=resamples, kind="vfold_cv")
