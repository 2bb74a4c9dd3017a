"""Project configuration and hyperparameter search spaces."""

from pathlib import Path

_ITEM_PREFIX = "item_"
_N_ITEMS = 27


class Config:
    """
    Central configuration class for the delivery modeling project.

    This class holds all static configuration values, including file paths,
    column definitions, resampling settings, and hyperparameter search
    spaces for all model families.
    """

    PROJECT_ROOT = Path(__file__).parent.parent
    DATA_DIR = PROJECT_ROOT / "data"
    OUTPUT_DIR = PROJECT_ROOT / "artifacts" / "experiments"
    MODELS_DIR = PROJECT_ROOT / "artifacts" / "trained_models"
    DECK_PATH = PROJECT_ROOT / "artifacts" / "deck" / "tidy_delivery_modeling.pptx"

    RAW_DATA_PATH = DATA_DIR / "raw" / "deliveries.csv"
    PROCESSED_DATA_DIR = DATA_DIR / "processed"
    TRAIN_PATH = PROCESSED_DATA_DIR / "train.pkl"
    VALIDATION_PATH = PROCESSED_DATA_DIR / "validation.pkl"
    TEST_PATH = PROCESSED_DATA_DIR / "test.pkl"

    OPTUNA_DB_DIR = OUTPUT_DIR / "optuna_db"
    RESULTS_CSV_PATH = OUTPUT_DIR / "champion_results.csv"
    SUMMARY_REPORT_PATH = OUTPUT_DIR / "test_set_summary.csv"
    RESULTS_PLOT_PATH = OUTPUT_DIR / "comparison_chart.png"
    PREDICTIONS_PLOT_PATH = OUTPUT_DIR / "observed_vs_predicted.png"
    HOUR_EFFECT_PLOT_PATH = OUTPUT_DIR / "hour_effect.png"
    TUNING_PLOT_DIR = OUTPUT_DIR / "tuning"

    TARGET_COLUMN = "time_to_delivery"
    HOUR_COLUMN = "hour"
    DAY_COLUMN = "day"
    DISTANCE_COLUMN = "distance"
    ITEM_PREFIX = _ITEM_PREFIX
    N_ITEMS = _N_ITEMS
    DAY_LEVELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    # Class-scope names are not visible inside comprehensions
    ITEM_COLUMNS = [f"{_ITEM_PREFIX}{i:02d}" for i in range(1, _N_ITEMS + 1)]
    ALL_COLUMNS = [TARGET_COLUMN, HOUR_COLUMN, DAY_COLUMN, DISTANCE_COLUMN] + ITEM_COLUMNS

    # Training / validation proportions; the remainder is the test set
    SPLIT_PROPS = (0.6, 0.2)
    STRATA_BREAKS = 4
    STRATA_POOL = 0.1
    RANDOM_STATE = 991

    RESAMPLING = "validation"
    CV_FOLDS = 10
    CV_REPEATS = 1
    GRID_SIZE = 25
    N_CALLS_PER_FAMILY = 50
    NUM_PARALLEL_WORKERS = 4

    SPLINE_DEG_FREE = 10
    # Spline families also get hour x day interaction terms
    INTERACT_HOUR_DAY = True
    # Refit champions on training + validation rows before scoring the test set
    LAST_FIT_ADD_VALIDATION = False
    METRICS = ["rmse", "rsq", "mae"]
    PRIMARY_METRIC = "rmse"

    # Each family is a model type plus an engine. Every parameter listed in
    # HYPERPARAMETER_CONFIGS for a family is marked with tune() when the
    # family's workflow is built; "deg_free" belongs to the recipe.
    MODEL_FAMILIES = {
        "linear_reg": {"model": "linear_reg", "engine": "sklearn"},
        "glmnet_reg": {"model": "linear_reg", "engine": "glmnet"},
        "cubist_rules": {"model": "cubist_rules", "engine": "cubist"},
        "xgboost_boost_tree": {"model": "boost_tree", "engine": "xgboost"},
        "lightgbm_boost_tree": {"model": "boost_tree", "engine": "lightgbm"},
        "catboost_boost_tree": {"model": "boost_tree", "engine": "catboost"},
        "rand_forest": {"model": "rand_forest", "engine": "sklearn"},
        "nearest_neighbor": {"model": "nearest_neighbor", "engine": "sklearn"},
    }

    RECIPE_PARAMETERS = ["deg_free"]

    HYPERPARAMETER_CONFIGS = {
        # Plain least squares: only the spline flexibility is tuned
        "linear_reg": {
            "deg_free": {"min": 3, "max": 15, "type": "int", "default": 10},
        },
        "glmnet_reg": {
            "deg_free": {"min": 3, "max": 15, "type": "int", "default": 10},
            "penalty": {
                "min": 1e-6,
                "max": 1.0,
                "type": "float",
                "log": True,
                "default": 1e-3,
            },
            "mixture": {"min": 0.0, "max": 1.0, "type": "float", "default": 0.5},
        },
        # Rule-based ensemble; trees handle hour, no spline tuning needed
        "cubist_rules": {
            "committees": {"min": 1, "max": 100, "type": "int", "default": 20},
            "neighbors": {"min": 0, "max": 9, "type": "int", "default": 0},
            "max_rules": {"min": 4, "max": 64, "type": "int", "default": 16},
        },
        "xgboost_boost_tree": {
            "trees": {"min": 100, "max": 1000, "type": "int", "default": 500},
            "tree_depth": {"min": 2, "max": 10, "type": "int", "default": 6},
            "learn_rate": {
                "min": 0.005,
                "max": 0.3,
                "type": "float",
                "log": True,
                "default": 0.05,
            },
            "min_n": {"min": 2, "max": 40, "type": "int", "default": 5},
        },
        "lightgbm_boost_tree": {
            "trees": {"min": 100, "max": 1000, "type": "int", "default": 500},
            "tree_depth": {"min": 2, "max": 10, "type": "int", "default": 6},
            "learn_rate": {
                "min": 0.005,
                "max": 0.3,
                "type": "float",
                "log": True,
                "default": 0.05,
            },
            "min_n": {"min": 2, "max": 40, "type": "int", "default": 20},
        },
        "catboost_boost_tree": {
            "trees": {"min": 100, "max": 1000, "type": "int", "default": 500},
            "tree_depth": {"min": 2, "max": 10, "type": "int", "default": 6},
            "learn_rate": {
                "min": 0.005,
                "max": 0.3,
                "type": "float",
                "log": True,
                "default": 0.05,
            },
        },
        "rand_forest": {
            "trees": {"min": 100, "max": 1000, "type": "int", "default": 500},
            "min_n": {"min": 2, "max": 40, "type": "int", "default": 5},
            "mtry": {"min": 1, "max": 30, "type": "int", "default": 10},
        },
        "nearest_neighbor": {
            "deg_free": {"min": 3, "max": 15, "type": "int", "default": 10},
            "neighbors": {"min": 1, "max": 50, "type": "int", "default": 10},
        },
    }

    # Fallback ranges for tune() placeholders a family config does not cover
    DEFAULT_PARAMETER_RANGES = {
        "deg_free": {"min": 3, "max": 15, "type": "int", "default": 10},
        "penalty": {"min": 1e-10, "max": 1.0, "type": "float", "log": True, "default": 1e-3},
        "mixture": {"min": 0.0, "max": 1.0, "type": "float", "default": 1.0},
        "trees": {"min": 1, "max": 2000, "type": "int", "default": 500},
        "tree_depth": {"min": 1, "max": 15, "type": "int", "default": 6},
        "learn_rate": {"min": 1e-3, "max": 0.3, "type": "float", "log": True, "default": 0.05},
        "min_n": {"min": 2, "max": 40, "type": "int", "default": 5},
        "mtry": {"min": 1, "max": 30, "type": "int", "default": 10},
        "neighbors": {"min": 1, "max": 15, "type": "int", "default": 5},
        "committees": {"min": 1, "max": 100, "type": "int", "default": 20},
        "max_rules": {"min": 4, "max": 64, "type": "int", "default": 16},
    }

    @staticmethod
    def _suggest_param(trial, param_name, param_config):
        """
        Helper method to generate optuna suggestion based on parameter configuration.

        Args:
            trial: Optuna trial object
            param_name (str): Name of the parameter
            param_config (dict): Configuration for the parameter

        Returns:
            Suggested parameter value
        """
        if "choices" in param_config:
            return trial.suggest_categorical(param_name, param_config["choices"])
        elif param_config.get("type") == "int":
            return trial.suggest_int(
                param_name, param_config["min"], param_config["max"]
            )
        elif param_config.get("type") == "float":
            log = param_config.get("log", False)
            return trial.suggest_float(
                param_name, param_config["min"], param_config["max"], log=log
            )
        else:
            raise ValueError(
                f"Invalid parameter configuration for {param_name}: {param_config}"
            )

    @staticmethod
    def get_search_space(trial, family_name):
        """
        Defines the hyperparameter search space for a given model family.

        Args:
            trial (optuna.trial.Trial): The Optuna trial object.
            family_name (str): The model family name.

        Returns:
            dict: A dictionary of suggested hyperparameters for the trial.
        """
        params = {}
        family_config = Config.HYPERPARAMETER_CONFIGS.get(family_name, {})
        if not family_config:
            raise ValueError(f"No config for model family '{family_name}'")

        for param, config in family_config.items():
            params[param] = Config._suggest_param(trial, param, config)

        return params

    @staticmethod
    def get_defaults(family_name):
        """
        Get default hyperparameters for a given model family.

        Args:
            family_name (str): The model family name.

        Returns:
            dict: A dictionary of default hyperparameters.
        """
        params = {}
        family_config = Config.HYPERPARAMETER_CONFIGS.get(family_name, {})
        if not family_config:
            raise ValueError(f"No config for model family '{family_name}'")

        for param, config in family_config.items():
            if "default" in config:
                params[param] = config["default"]
            else:
                raise ValueError(f"No default for '{param}' in '{family_name}'")

        return params

    @staticmethod
    def get_param_ranges(family_name):
        """Returns the range definitions used by the grid builders for a family."""
        family_config = Config.HYPERPARAMETER_CONFIGS.get(family_name)
        if family_config is None:
            raise ValueError(f"No config for model family '{family_name}'")
        return {name: dict(conf) for name, conf in family_config.items()}
