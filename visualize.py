from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns


METRIC_LABELS = {
    "rmse": "RMSE",
    "rsq": "R²",
    "mae": "MAE",
}


def _save(fig, path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=200)
    plt.close(fig)
    return path


def histogram(
    df,
    path,
    bins=20,
    ncols=3,
    title="Histograms",
    target=None,  # drawn in its own colour when given
):
    num_df = df.select_dtypes(include=np.number)
    cols = list(num_df.columns)
    if not cols:
        raise ValueError("No numeric columns to plot.")

    n = len(cols)
    nrows = int(np.ceil(n / ncols))

    fig, axs = plt.subplots(nrows, ncols, figsize=(4*ncols, 3*nrows), sharey=False)
    axs = np.atleast_1d(axs).ravel()

    for j, col in enumerate(cols):
        ax = axs[j]
        color = "crimson" if col == target else "C0"
        ax.hist(num_df[col].dropna(), bins=bins, edgecolor="black", color=color)
        ax.set_title(col, fontsize=10, pad=10)
        ax.set_xlabel("Value")
        ax.set_ylabel("Frequency")

    # remove empty plots
    for k in range(j+1, len(axs)):
        fig.delaxes(axs[k])

    fig.suptitle(title, fontsize=14)
    fig.tight_layout(rect=[0, 0, 1, 0.95])
    return _save(fig, path)


def scatter_against_target(df, target, path, ncols=3, s=15, alpha=0.6):
    """One scatter panel per numeric predictor, target on the y axis."""
    if target not in df.columns:
        raise ValueError(f"Target '{target}' not found in DataFrame.")
    cols = [c for c in df.select_dtypes(include=np.number).columns if c != target]
    if not cols:
        raise ValueError("No numeric predictors to plot.")

    nrows = int(np.ceil(len(cols) / ncols))
    fig, axs = plt.subplots(nrows, ncols, figsize=(4*ncols, 3.5*nrows), sharey=True)
    axs = np.atleast_1d(axs).ravel()

    for j, col in enumerate(cols):
        ax = axs[j]
        ax.scatter(df[col], df[target], s=s, alpha=alpha)
        ax.set_xlabel(col)
        if j % ncols == 0:
            ax.set_ylabel(target)
        ax.grid(True, ls="--", alpha=0.3)

    for k in range(j+1, len(axs)):
        fig.delaxes(axs[k])

    fig.suptitle(f"Predictors vs {target}", fontsize=14)
    fig.tight_layout(rect=[0, 0, 1, 0.95])
    return _save(fig, path)


def plot_tuning_curves(metrics_df: pd.DataFrame, path, best_penalty=None, mixture=None):
    """
    Mean cross-validated metric vs penalty, one panel per metric.

    ``metrics_df`` is the aggregated table from ``TuningResult.collect_metrics``
    (columns penalty, metric, mean, n, std_err).
    """
    metric_names = list(dict.fromkeys(metrics_df["metric"]))
    if not metric_names:
        raise ValueError("No tuning metrics to plot.")

    fig, axes = plt.subplots(
        1,
        len(metric_names),
        figsize=(5.5 * len(metric_names), 4.5),
        squeeze=False,
    )
    for ax, name in zip(axes[0], metric_names):
        sub = metrics_df[metrics_df["metric"] == name]
        ax.errorbar(
            sub["penalty"],
            sub["mean"],
            yerr=sub["std_err"].fillna(0.0),
            marker="o",
            linewidth=1.6,
            capsize=3,
        )
        if best_penalty is not None:
            ax.axvline(best_penalty, color="crimson", linestyle="--", linewidth=1.2)
        label = METRIC_LABELS.get(name, name)
        ax.set_title(label)
        ax.set_xlabel("Penalty")
        ax.set_ylabel(f"Mean CV {label}")
        ax.grid(True, which="both", ls="--", alpha=0.4)

    title = "Cross-validated metrics vs penalty"
    if mixture is not None:
        title += f" (mixture={mixture:g})"
    fig.suptitle(title, fontsize=13)
    fig.tight_layout(rect=[0, 0, 1, 0.93])
    return _save(fig, path)


def plot_variable_importance(importance_df: pd.DataFrame, path, penalty=None, top_k=None):
    """Horizontal bars of |coefficient|, coloured by the sign of the coefficient."""
    data = importance_df if top_k is None else importance_df.head(top_k)
    if data.empty:
        raise ValueError("No variable importance values to plot.")

    fig, ax = plt.subplots(figsize=(7, max(2.5, 0.45 * len(data) + 1.5)))
    sns.barplot(
        data=data,
        x="importance",
        y="variable",
        hue="sign",
        hue_order=["POS", "NEG"],
        palette={"POS": "#4C72B0", "NEG": "#C44E52"},
        dodge=False,
        ax=ax,
    )
    ax.set_xlabel("Importance (|standardised coefficient|)")
    ax.set_ylabel("")
    title = "Variable importance"
    if penalty is not None:
        title += f" (penalty={penalty:g})"
    ax.set_title(title)
    ax.grid(axis="x", ls="--", alpha=0.3)
    fig.tight_layout()
    return _save(fig, path)
