"""Process-wide parallel backend for independent model fits."""

import logging
from typing import Callable, Iterable, List, Optional

import joblib
from joblib import Parallel, delayed
from tqdm import tqdm
from tqdm_joblib import tqdm_joblib

from delivery_modeling.config import Config

_registered_workers: Optional[int] = None


def register_parallel_backend(cores: int) -> int:
    """
    Sets the number of worker processes used for resampling and tuning.

    Args:
        cores: Number of workers; ``-1`` uses every available core.

    Returns:
        int: The effective worker count.

    Raises:
        ValueError: If ``cores`` is 0 or below -1.
    """
    global _registered_workers
    if cores == -1:
        effective = joblib.cpu_count()
    elif cores >= 1:
        effective = int(cores)
    else:
        raise ValueError(f"cores must be a positive integer or -1 (all cores), got {cores}")
    _registered_workers = effective
    logging.debug("Parallel backend registered with %d workers", effective)
    return effective


def get_worker_count() -> int:
    """Registered worker count, or ``Config.NUM_PARALLEL_WORKERS`` when none was registered."""
    if _registered_workers is not None:
        return _registered_workers
    return max(int(Config.NUM_PARALLEL_WORKERS), 1)


def reset_parallel_backend() -> None:
    global _registered_workers
    _registered_workers = None


def parallel_map(fn: Callable, items: Iterable, desc: str = "Fitting",
                 n_jobs: Optional[int] = None, show_progress: bool = True) -> List:
    """
    Applies ``fn`` to every item, in parallel when more than one worker is available.

    Results are returned in the order of ``items`` regardless of the order
    in which the jobs finish. Exceptions raised by ``fn`` propagate.
    """
    items = list(items)
    workers = min(n_jobs or get_worker_count(), max(len(items), 1))

    if workers == 1:
        return [fn(item) for item in tqdm(items, desc=desc, disable=not show_progress)]

    with tqdm_joblib(tqdm(total=len(items), desc=desc, disable=not show_progress)):
        return Parallel(n_jobs=workers)(delayed(fn)(item) for item in items)
