"""Data loading and splitting utilities for the delivery modeling project.

The :mod:`data_processing` package reads the deliveries table and
partitions it for modeling. It exposes:

``loader``
    Reading, type coercion and simulation of the deliveries table.

``splitting``
    Stratified training/validation/test splits, validation sets and
    V-fold cross-validation.

``preprocessor``
    The :class:`DataPreprocessor` that persists the three partitions.
"""

from .loader import DeliveryDataLoader, simulate_deliveries, write_deliveries
from .preprocessor import DataPreprocessor
from .splitting import (
    InitialSplit,
    Resample,
    ResampleSet,
    ValidationSplit,
    initial_split,
    initial_validation_split,
    make_strata,
    validation_set,
    vfold_cv,
)

__all__ = [
    "DataPreprocessor",
    "DeliveryDataLoader",
    "InitialSplit",
    "Resample",
    "ResampleSet",
    "ValidationSplit",
    "initial_split",
    "initial_validation_split",
    "make_strata",
    "simulate_deliveries",
    "validation_set",
    "vfold_cv",
    "write_deliveries",
]
