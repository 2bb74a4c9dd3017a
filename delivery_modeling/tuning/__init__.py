"""Resampling, grid search and Bayesian search for delivery workflows."""

from .grid import ParameterRange, grid_random, grid_regular, grid_space_filling, label_configs
from .hyperparameter import OptunaTuner
from .parallel import get_worker_count, parallel_map, register_parallel_backend, reset_parallel_backend
from .resampling import ResampleResults, fit_resamples
from .tune import LastFitResult, TuneResults, last_fit, tune_grid

__all__ = [
    "ParameterRange",
    "grid_regular",
    "grid_space_filling",
    "grid_random",
    "label_configs",
    "OptunaTuner",
    "register_parallel_backend",
    "get_worker_count",
    "parallel_map",
    "reset_parallel_backend",
    "ResampleResults",
    "fit_resamples",
    "TuneResults",
    "LastFitResult",
    "tune_grid",
    "last_fit",
]
