"""Functions for generating model evaluation reports and plots."""

from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns


def plot_tuning_results(results, output_path: Path, metric: str | None = None, title: str | None = None):
    """
    Plots the resampled estimate of one metric against every tuned parameter.

    Args:
        results: A ``TuneResults`` object.
        output_path: Where to save the figure.
        metric: Metric to plot; defaults to the first metric of the results.
        title: Optional figure title.
    """
    metric = metric or results.metric_set.primary
    summary = results.collect_metrics()
    summary = summary[summary[".metric"] == metric]
    params = [p for p in results.param_names if p in summary.columns]
    if summary.empty or not params:
        print(f"No tuning results to plot for '{metric}'.")
        return

    fig, axes = plt.subplots(1, len(params), figsize=(5 * len(params), 4.5), sharey=True, squeeze=False)
    for ax, param in zip(axes[0], params):
        ax.errorbar(
            summary[param].astype(float),
            summary["mean"],
            yerr=summary["std_err"].fillna(0),
            fmt="o",
            color="steelblue",
            ecolor="lightgray",
            alpha=0.8,
        )
        ax.set_xlabel(param, fontsize=12)
        if param in ("penalty", "learn_rate") and (summary[param].astype(float) > 0).all():
            ax.set_xscale("log")
        ax.spines["top"].set_visible(False)
        ax.spines["right"].set_visible(False)
    axes[0][0].set_ylabel(f"{metric} (resampled)", fontsize=12)
    fig.suptitle(title or f"Tuning results ({metric})", fontsize=14, fontweight="bold")

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    plt.savefig(output_path)
    plt.close(fig)
    print(f"Tuning plot saved to {output_path}")


def plot_model_comparison(results_df: pd.DataFrame, output_path: Path, metric: str = "rmse"):
    """Bar chart of each evaluated model's test-set metric."""
    column = f"{metric}_test"
    if results_df.empty or column not in results_df.columns:
        print("No test-set results to plot.")
        return

    fig = plt.figure(figsize=(10, 8))
    ascending = metric != "rsq"
    order = results_df.sort_values(column, ascending=ascending)["model"]
    sns.barplot(data=results_df, y="model", x=column, order=order, color="steelblue")
    plt.xlabel(f"Test Set {metric.upper()}" + (" (Lower is Better)" if ascending else " (Higher is Better)"))
    plt.ylabel("Model Family")
    plt.title("Final Model Performance on the Test Set")
    plt.tight_layout()
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path)
    plt.close(fig)
    print(f"Comparison chart saved to {output_path}")


def plot_predictions(predictions: pd.DataFrame, outcome: str, output_path: Path, title: str | None = None):
    """Observed versus predicted values with the identity line."""
    fig, ax = plt.subplots(figsize=(7, 7))
    ax.scatter(predictions[outcome], predictions[".pred"], s=8, alpha=0.3, color="steelblue")

    low = float(min(predictions[outcome].min(), predictions[".pred"].min()))
    high = float(max(predictions[outcome].max(), predictions[".pred"].max()))
    ax.plot([low, high], [low, high], linestyle="--", color="black", linewidth=1)
    ax.set_xlim(low, high)
    ax.set_ylim(low, high)
    ax.set_aspect("equal")
    ax.set_xlabel(f"Observed {outcome}", fontsize=12)
    ax.set_ylabel(f"Predicted {outcome}", fontsize=12)
    ax.set_title(title or "Observed vs Predicted (test set)", fontsize=14)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    plt.savefig(output_path)
    plt.close(fig)
    print(f"Prediction plot saved to {output_path}")


def plot_hour_effect(df: pd.DataFrame, outcome: str, hour_column: str, day_column: str, output_path: Path):
    """
    Mean delivery time by time of day, one line per day of week.

    This is the non-linear pattern the spline terms of the recipe are meant
    to capture.
    """
    binned = df[[outcome, hour_column, day_column]].copy()
    binned["hour_bin"] = np.floor(binned[hour_column] * 2) / 2

    fig, ax = plt.subplots(figsize=(10, 6))
    sns.lineplot(data=binned, x="hour_bin", y=outcome, hue=day_column, errorbar=None, ax=ax)
    ax.set_xlabel("Order time (hour of day)", fontsize=12)
    ax.set_ylabel(f"Mean {outcome}", fontsize=12)
    ax.set_title("Delivery time by hour and day", fontsize=14)
    ax.legend(title="Day", bbox_to_anchor=(1.02, 1), loc="upper left")
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    plt.savefig(output_path)
    plt.close(fig)
    print(f"Hour effect plot saved to {output_path}")


def generate_summary_report(all_results: list[dict], output_path: Path):
    """
    Generates a single CSV file summarizing the test-set performance of all
    evaluated models and prints an aligned table.
    """
    df = pd.DataFrame(all_results)
    if df.empty:
        print("No model results to report.")
        return

    id_col = ["model"]
    score_cols = [c for c in ["score_cv", "rmse_test", "rsq_test", "mae_test"] if c in df.columns]
    timing_col = ["avg_pred_time"] if "avg_pred_time" in df.columns else []
    param_cols = sorted(c for c in df.columns if c not in id_col + score_cols + timing_col)
    sort_by = next((c for c in ["rmse_test", "score_cv"] if c in df.columns), "model")
    df = df[id_col + score_cols + timing_col + param_cols].sort_values(sort_by)

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    print(f"Summary report saved to {output_path}")

    print("\nModel Performance Summary:")
    max_name_width = max(len("Model"), max(len(str(name)) for name in df["model"]))

    header = f"{'Model':<{max_name_width}} | {'CV RMSE':<10} | {'Test RMSE':<10} | {'Test R2':<8} | {'Avg Pred Time (s)':<18}"
    print(header)
    print("-" * len(header))

    def _fmt(row, col, spec):
        if col in row and not pd.isna(row[col]):
            return format(float(row[col]), spec)
        return "N/A"

    for _, row in df.iterrows():
        print(
            f"{row['model']:<{max_name_width}} | {_fmt(row, 'score_cv', '.4f'):<10} | "
            f"{_fmt(row, 'rmse_test', '.4f'):<10} | {_fmt(row, 'rsq_test', '.4f'):<8} | "
            f"{_fmt(row, 'avg_pred_time', '.6f'):<18}"
        )
