# main.py

"""Command-line interface for the delivery-time modeling pipeline."""

import argparse
import os
import warnings

from optuna.exceptions import ExperimentalWarning

from delivery_modeling.config import Config
from delivery_modeling.data_processing.loader import simulate_deliveries, write_deliveries
from delivery_modeling.data_processing.preprocessor import DataPreprocessor
from delivery_modeling.deck import build_deck
from delivery_modeling.training.trainer import Trainer
from delivery_modeling.tuning.parallel import register_parallel_backend

for var in ["OMP_NUM_THREADS", "OPENBLAS_NUM_THREADS", "MKL_NUM_THREADS", "NUMEXPR_NUM_THREADS", "VECLIB_MAXIMUM_THREADS"]:
    os.environ[var] = "1"

warnings.filterwarnings('ignore', category=UserWarning)
warnings.filterwarnings('ignore', category=FutureWarning)
# Multivariate/constant_liar TPE options are experimental in Optuna
warnings.filterwarnings('ignore', category=ExperimentalWarning)


def main(args):
    """
    Main function to orchestrate the modeling pipeline.

    Handles command-line arguments to simulate or preprocess data, run the
    default fits, grid or Bayesian searches, final evaluation, and to
    render the deck.
    """
    config = Config()

    simulate_rows = getattr(args, 'simulate_data', None)
    if simulate_rows is not None:
        df = simulate_deliveries(n_rows=simulate_rows, seed=config.RANDOM_STATE)
        write_deliveries(df, config.RAW_DATA_PATH)
        return

    if args.preprocess_only:
        preprocessor = DataPreprocessor(config)
        preprocessor.process()
        print("Preprocessing complete. Exiting as requested.")
        return

    if getattr(args, 'build_deck', False):
        build_deck(config)
        return

    bayes_search = getattr(args, 'bayes_search', False)
    if not (args.run_search or args.train_default or bayes_search or args.evaluate_only):
        return

    if not args.skip_preprocessing:
        preprocessor = DataPreprocessor(config)
        preprocessor.process()

    cores = getattr(args, 'cores', None)
    if cores is not None:
        workers = register_parallel_backend(cores)
        print(f"Registered parallel backend with {workers} worker(s)")

    if args.train_default:
        search = "default"
    elif bayes_search:
        search = "bayes"
    else:
        search = "grid"

    model_families = args.model_families or list(Config.MODEL_FAMILIES.keys())
    print("running model families:", model_families)

    trainer = Trainer(
        config,
        model_families=model_families,
        resampling=getattr(args, 'resampling', None),
        search=search,
        save_models=args.save_models,
        grid_size=getattr(args, 'grid_size', None),
    )

    if args.evaluate_only:
        trainer.run_evaluation_from_files()
    else:
        trainer.run_optimization_and_evaluation()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Main pipeline for the delivery-time modeling project. Handles data preparation, resampled fitting, tuning, final evaluation and the deck.",
        formatter_class=argparse.RawTextHelpFormatter
    )

    # Group for mutually exclusive actions. One of these is required.
    action_group = parser.add_mutually_exclusive_group(required=True)
    action_group.add_argument(
        "--simulate-data",
        type=int,
        metavar="N",
        help="Write N simulated deliveries to the raw data path and exit."
    )
    action_group.add_argument(
        "--preprocess-only",
        action="store_true",
        help="Only run the stratified training/validation/test split and then exit."
    )
    action_group.add_argument(
        "--train-default",
        dest="train_default",
        action="store_true",
        help="Fit every model family with its default parameters on the resamples, then evaluate on the test set."
    )
    action_group.add_argument(
        "--run-search",
        action="store_true",
        help="Run a space-filling grid search for every model family and evaluate the champions."
    )
    action_group.add_argument(
        "--bayes-search",
        action="store_true",
        help="Run a (resumable) Optuna search for every model family and evaluate the champions."
    )
    action_group.add_argument(
        "--evaluate-only",
        action="store_true",
        help="Evaluate models using the best parameters from the existing champion results file, skipping the search."
    )
    action_group.add_argument(
        "--build-deck",
        action="store_true",
        help="Render the presentation deck, embedding any results and plots already produced."
    )

    parser.add_argument(
        "--skip-preprocessing",
        action="store_true",
        help="Skip the data preprocessing step and use existing processed data files."
    )
    parser.add_argument(
        "--resampling",
        type=str,
        choices=['validation', 'vfold'],
        default=None,
        help=f"Resampling scheme used during search. Defaults to '{Config.RESAMPLING}'.\n"
             "'validation' scores on the validation partition, 'vfold' uses V-fold CV on the training partition."
    )
    parser.add_argument(
        "--model-families",
        type=str,
        nargs="*",
        help="Specify which model families to run (e.g., 'linear_reg cubist_rules').\nBy default, all model families are run. Available options: " +
             ", ".join(Config.MODEL_FAMILIES.keys())
    )
    parser.add_argument(
        "--cores",
        type=int,
        default=None,
        help="Number of cores for the parallel backend (-1 uses all available).\n"
             f"Defaults to Config.NUM_PARALLEL_WORKERS ({Config.NUM_PARALLEL_WORKERS})."
    )
    parser.add_argument(
        "--grid-size",
        type=int,
        default=None,
        help=f"Number of space-filling grid candidates per family for --run-search. Defaults to {Config.GRID_SIZE}."
    )
    parser.add_argument(
        "--save-models",
        action="store_true",
        help="If set, saves the final evaluated champion workflows as .pkl files in the models directory."
    )

    args = parser.parse_args()

    main(args)
