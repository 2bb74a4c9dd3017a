import os

import pytest

# Ensure non-interactive backend for matplotlib
os.environ.setdefault("MPLBACKEND", "Agg")

from delivery_modeling.config import Config
from delivery_modeling.data_processing import initial_validation_split, simulate_deliveries
from delivery_modeling.tuning import register_parallel_backend, reset_parallel_backend


@pytest.fixture(autouse=True)
def single_worker():
    """Run every fit in-process unless a test registers its own backend."""
    register_parallel_backend(1)
    yield
    reset_parallel_backend()


@pytest.fixture(scope="session")
def deliveries():
    return simulate_deliveries(n_rows=400, seed=7)


@pytest.fixture(scope="session")
def split(deliveries):
    return initial_validation_split(
        deliveries, prop=(0.6, 0.2), strata=Config.TARGET_COLUMN, seed=11
    )


@pytest.fixture
def train(split):
    return split.training()


@pytest.fixture
def small_train(train):
    """Training rows restricted to a handful of predictors for quick fits."""
    return train[[Config.TARGET_COLUMN, "hour", "day", "distance", "item_01", "item_02"]]
