"""Loading and simulating the restaurant deliveries table."""

from pathlib import Path

import numpy as np
import pandas as pd

from delivery_modeling.config import Config


class DeliveryDataLoader:
    """Reads the deliveries CSV and coerces it into the expected schema."""

    def __init__(self, config: Config):
        self.config = config

    def _required_columns(self) -> list[str]:
        return list(self.config.ALL_COLUMNS)

    def load(self, path: str | Path | None = None) -> pd.DataFrame:
        """
        Loads the deliveries table from disk.

        Args:
            path: Optional CSV path. Defaults to ``Config.RAW_DATA_PATH``.

        Returns:
            pd.DataFrame: Table with the response, ``hour``, an ordered
            ``day`` categorical, ``distance`` and the item count columns.

        Raises:
            ValueError: If required columns are missing from the file.
        """
        path = Path(path) if path is not None else self.config.RAW_DATA_PATH
        df = pd.read_csv(path)

        missing = [c for c in self._required_columns() if c not in df.columns]
        if missing:
            raise ValueError(f"Deliveries file {path} is missing columns: {missing}")

        df = df[self._required_columns()].copy()
        df = self.coerce(df)

        n_missing = df[self.config.TARGET_COLUMN].isnull().sum()
        if n_missing:
            print(f"Warning: Found and removed {n_missing} rows with a missing '{self.config.TARGET_COLUMN}'.")
            df = df.dropna(subset=[self.config.TARGET_COLUMN]).reset_index(drop=True)

        print(f"Loaded {len(df)} deliveries from {path}")
        return df

    def coerce(self, df: pd.DataFrame) -> pd.DataFrame:
        """Applies column types: numeric measures, integer counts, ordered day."""
        cfg = self.config
        for col in [cfg.TARGET_COLUMN, cfg.HOUR_COLUMN, cfg.DISTANCE_COLUMN]:
            df[col] = pd.to_numeric(df[col], errors="coerce")
        for col in cfg.ITEM_COLUMNS:
            df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0).astype(int)
        df[cfg.DAY_COLUMN] = pd.Categorical(
            df[cfg.DAY_COLUMN].astype(str).str.strip().str[:3].str.title(),
            categories=cfg.DAY_LEVELS,
            ordered=True,
        )
        return df


def _hour_effect(hour: np.ndarray) -> np.ndarray:
    """Lunch and dinner rush peaks, in minutes."""
    lunch = 6.0 * np.exp(-((hour - 12.5) ** 2) / 2.0)
    dinner = 9.0 * np.exp(-((hour - 19.0) ** 2) / 3.0)
    return lunch + dinner


def simulate_deliveries(n_rows: int = 10012, seed: int = Config.RANDOM_STATE) -> pd.DataFrame:
    """
    Generates a synthetic deliveries table with the project schema.

    Delivery time increases with distance and basket size, peaks around
    lunch and dinner, and is slower on the weekend, where the dinner rush
    is also stronger.

    Args:
        n_rows: Number of orders to simulate.
        seed: Seed for the random generator.

    Returns:
        pd.DataFrame: Simulated deliveries.
    """
    if n_rows <= 0:
        raise ValueError(f"n_rows must be positive, got {n_rows}")

    rng = np.random.default_rng(seed)
    cfg = Config

    is_dinner = rng.random(n_rows) < 0.6
    hour = np.where(
        is_dinner,
        rng.normal(18.8, 1.4, n_rows),
        rng.normal(12.4, 1.0, n_rows),
    )
    hour = np.round(np.clip(hour, 11.0, 23.0), 3)

    day_probs = np.array([0.11, 0.11, 0.12, 0.14, 0.18, 0.19, 0.15])
    day_idx = rng.choice(len(cfg.DAY_LEVELS), size=n_rows, p=day_probs)
    day = np.array(cfg.DAY_LEVELS)[day_idx]

    distance = np.round(np.clip(rng.gamma(4.0, 0.85, n_rows), 0.3, 12.0), 2)

    item_rates = rng.uniform(0.03, 0.35, cfg.N_ITEMS)
    item_minutes = rng.uniform(0.2, 1.8, cfg.N_ITEMS)
    items = rng.poisson(item_rates, size=(n_rows, cfg.N_ITEMS))

    day_effect = np.array([0.0, 0.0, 0.3, 0.8, 2.0, 3.0, 1.5])[day_idx]
    weekend = np.isin(day_idx, [4, 5, 6]).astype(float)
    dinner_rush = 9.0 * np.exp(-((hour - 19.0) ** 2) / 3.0)

    time_to_delivery = (
        11.0
        + _hour_effect(hour)
        + day_effect
        + 0.35 * weekend * dinner_rush
        + 2.4 * distance
        + items @ item_minutes
        + rng.normal(0.0, 2.0, n_rows)
    )
    time_to_delivery = np.round(np.maximum(time_to_delivery, 5.0), 4)

    df = pd.DataFrame(
        {
            cfg.TARGET_COLUMN: time_to_delivery,
            cfg.HOUR_COLUMN: hour,
            cfg.DAY_COLUMN: pd.Categorical(day, categories=cfg.DAY_LEVELS, ordered=True),
            cfg.DISTANCE_COLUMN: distance,
        }
    )
    item_frame = pd.DataFrame(items, columns=cfg.ITEM_COLUMNS)
    return pd.concat([df, item_frame], axis=1)


def write_deliveries(df: pd.DataFrame, path: str | Path) -> Path:
    """Writes a deliveries table to CSV, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    print(f"Deliveries table with {len(df)} rows saved to {path}")
    return path
