"""Data preparation pipeline: load, split and persist the deliveries table."""

import pandas as pd

from delivery_modeling.config import Config
from delivery_modeling.data_processing.loader import DeliveryDataLoader
from delivery_modeling.data_processing.splitting import ValidationSplit, initial_validation_split


class DataPreprocessor:
    """
    Handles loading, stratified splitting and saving of the deliveries data.

    The three partitions written here are the only inputs the training
    pipeline reads, so every model family sees exactly the same rows.
    """

    def __init__(self, config: Config):
        """
        Initializes the preprocessor with the project configuration.

        Args:
            config (Config): The project's configuration object.
        """
        self.config = config

    def split(self, df: pd.DataFrame) -> ValidationSplit:
        """Performs the stratified training/validation/test split."""
        return initial_validation_split(
            df,
            prop=self.config.SPLIT_PROPS,
            strata=self.config.TARGET_COLUMN,
            seed=self.config.RANDOM_STATE,
            breaks=self.config.STRATA_BREAKS,
            pool=self.config.STRATA_POOL,
        )

    def process(self) -> ValidationSplit:
        """
        Executes the full preparation pipeline: loading, splitting, and
        saving the three partitions.
        """
        print("Starting data preprocessing...")
        self.config.PROCESSED_DATA_DIR.mkdir(parents=True, exist_ok=True)

        print("Step 1: Loading raw deliveries...")
        df = DeliveryDataLoader(self.config).load()

        train_prop, val_prop = self.config.SPLIT_PROPS
        print(
            f"Step 2: Splitting data ({train_prop:.0%} training / {val_prop:.0%} validation, "
            f"stratified on '{self.config.TARGET_COLUMN}')..."
        )
        split = self.split(df)

        target = self.config.TARGET_COLUMN
        for name, frame in [("training", split.training()), ("validation", split.validation()),
                            ("test", split.testing())]:
            print(
                f"  {name:<10} n={len(frame):>6}  median {target}={frame[target].median():.2f}"
            )

        print(f"Step 3: Saving processed splits to '{self.config.PROCESSED_DATA_DIR.resolve()}'...")
        split.training().to_pickle(self.config.TRAIN_PATH)
        split.validation().to_pickle(self.config.VALIDATION_PATH)
        split.testing().to_pickle(self.config.TEST_PATH)

        print("Preprocessing complete.")
        return split
