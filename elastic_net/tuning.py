"""
Cross-validated penalty search, candidate selection and the final refit.

The ``|grid| x K`` fit/score cycles of a tuning run are independent: each one
fits a fresh pipeline on its fold's analysis rows and scores the assessment rows.
They are handed to ``joblib.Parallel`` and the per-cycle rows are merged once
all cycles are back. A failing cycle aborts the whole run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.pipeline import Pipeline

from .data import fold_indices
from .model import ModelSpec, fit_model, predict


def _rmse(y_true, y_pred) -> float:
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


METRICS: Dict[str, Callable[[np.ndarray, np.ndarray], float]] = {
    "rmse": _rmse,
    "rsq": lambda y_true, y_pred: float(r2_score(y_true, y_pred)),
    "mae": lambda y_true, y_pred: float(mean_absolute_error(y_true, y_pred)),
}

# rsq is a goodness-of-fit score, the others are errors
MAXIMIZE = {"rsq"}

TIE_BREAKS = ("smallest", "largest")


def get_metric(name: str) -> Callable[[np.ndarray, np.ndarray], float]:
    try:
        return METRICS[name]
    except KeyError:
        raise ValueError(f"Unknown metric '{name}'. Available: {sorted(METRICS)}") from None


def penalty_grid(start: float = 0.0, stop: float = 10.0, step: float = 0.5) -> np.ndarray:
    """Evenly spaced penalties from ``start`` to ``stop`` inclusive."""
    if step <= 0:
        raise ValueError(f"step must be positive, got {step}.")
    if start < 0 or stop < start:
        raise ValueError(f"Invalid penalty range [{start}, {stop}].")
    n_steps = (stop - start) / step
    if not np.isclose(n_steps, round(n_steps), rtol=0.0, atol=1e-9):
        raise ValueError(f"step {step} does not divide the penalty range [{start}, {stop}].")
    return np.linspace(start, stop, int(round(n_steps)) + 1)


@dataclass(frozen=True)
class MetricRecord:
    penalty: float
    metric: str
    mean: float
    n: int
    std_err: float


@dataclass
class TuningResult:
    """Fold-level scores for every (penalty, fold, metric) triple of a tuning run."""

    penalties: np.ndarray
    metrics: Tuple[str, ...]
    n_folds: int
    fold_metrics: pd.DataFrame = field(repr=False)

    def collect_metrics(self) -> pd.DataFrame:
        """Mean, fold count and standard error per (penalty, metric), in grid order."""
        grouped = self.fold_metrics.groupby(["penalty", "metric"], sort=False)["value"]
        summary = grouped.agg(mean="mean", n="count", std="std").reset_index()
        summary["std_err"] = summary["std"] / np.sqrt(summary["n"])
        return summary.drop(columns="std")

    def records(self) -> List[MetricRecord]:
        return [
            MetricRecord(
                penalty=float(row.penalty),
                metric=str(row.metric),
                mean=float(row.mean),
                n=int(row.n),
                std_err=float(row.std_err),
            )
            for row in self.collect_metrics().itertuples(index=False)
        ]

    def select_best(self, metric: str = "rmse", tie_break: str = "smallest") -> float:
        return select_best(self.records(), metric=metric, tie_break=tie_break)


def _fit_and_score(
    spec: ModelSpec,
    penalty: float,
    fold: int,
    X: np.ndarray,
    y: np.ndarray,
    analysis_idx: np.ndarray,
    assessment_idx: np.ndarray,
    metrics: Sequence[str],
) -> List[dict]:
    model = fit_model(spec.finalize(penalty), X[analysis_idx], y[analysis_idx])
    preds = predict(model, X[assessment_idx])
    y_true = y[assessment_idx]
    return [
        {
            "penalty": penalty,
            "fold": fold + 1,
            "metric": name,
            "value": get_metric(name)(y_true, preds),
        }
        for name in metrics
    ]


def tune_grid(
    X,
    y,
    spec: ModelSpec,
    penalties: Sequence[float],
    fold_ids: np.ndarray,
    metrics: Sequence[str] = ("rmse", "rsq"),
    n_jobs: int = 1,
) -> TuningResult:
    """Score every penalty on every fold."""
    X = np.asarray(X, dtype=float)
    y = np.asarray(y, dtype=float)
    penalties = np.asarray(penalties, dtype=float)
    metrics = tuple(metrics)

    if len(X) != len(y) or len(X) != len(fold_ids):
        raise ValueError(
            f"Row counts disagree: X={len(X)}, y={len(y)}, fold_ids={len(fold_ids)}."
        )
    if penalties.size == 0:
        raise ValueError("Penalty grid is empty.")
    if len(np.unique(penalties)) != penalties.size:
        raise ValueError("Penalty grid contains duplicate values.")
    if not metrics:
        raise ValueError("At least one metric is required.")
    for name in metrics:
        get_metric(name)
    spec.validate()
    if (penalties < 0).any():
        raise ValueError(f"Penalties must be non-negative, got {penalties[penalties < 0].tolist()}.")

    folds = fold_indices(fold_ids)
    smallest = min(len(assessment_idx) for _, assessment_idx in folds)
    if "rsq" in metrics and smallest < 2:
        raise ValueError(
            f"rsq is undefined on assessment folds of {smallest} row; use fewer folds or drop rsq."
        )
    tasks = (
        delayed(_fit_and_score)(spec, float(penalty), fold, X, y, analysis_idx, assessment_idx, metrics)
        for penalty in penalties
        for fold, (analysis_idx, assessment_idx) in enumerate(folds)
    )
    per_cycle = Parallel(n_jobs=n_jobs)(tasks)

    rows = [row for cycle in per_cycle for row in cycle]
    return TuningResult(
        penalties=penalties,
        metrics=metrics,
        n_folds=len(folds),
        fold_metrics=pd.DataFrame.from_records(rows, columns=["penalty", "fold", "metric", "value"]),
    )


def select_best(
    records: Sequence[MetricRecord],
    metric: str = "rmse",
    tie_break: str = "smallest",
) -> float:
    """
    Penalty with the best mean ``metric``.

    Errors are minimised and ``rsq`` is maximised. When several penalties share
    the best mean exactly, ``tie_break`` picks the smallest or the largest of them.
    """
    if tie_break not in TIE_BREAKS:
        raise ValueError(f"tie_break must be one of {TIE_BREAKS}, got '{tie_break}'.")
    if not records:
        raise ValueError("No metric records to select from.")

    candidates = [rec for rec in records if rec.metric == metric]
    if not candidates:
        available = sorted({rec.metric for rec in records})
        raise ValueError(f"Metric '{metric}' not found in records. Available: {available}")

    means = np.array([rec.mean for rec in candidates], dtype=float)
    if np.isnan(means).all():
        raise ValueError(f"All mean values for metric '{metric}' are NaN.")
    best = np.nanmax(means) if metric in MAXIMIZE else np.nanmin(means)

    tied = [rec.penalty for rec, value in zip(candidates, means) if value == best]
    return min(tied) if tie_break == "smallest" else max(tied)


def fit_final(spec: ModelSpec, X_train, y_train) -> Pipeline:
    """Refit the finalised spec on the whole training split."""
    if spec.penalty is None:
        raise ValueError("penalty is unset; call spec.finalize(best_penalty) first.")
    return fit_model(spec, np.asarray(X_train, dtype=float), np.asarray(y_train, dtype=float))


def evaluate(model: Pipeline, X_test, y_test, metrics: Sequence[str] = ("rmse", "rsq")) -> Dict[str, float]:
    """Score a fitted pipeline once on held-out rows."""
    preds = predict(model, np.asarray(X_test, dtype=float))
    y_test = np.asarray(y_test, dtype=float)
    return {name: get_metric(name)(y_test, preds) for name in metrics}


def last_fit(
    spec: ModelSpec,
    X_train,
    y_train,
    X_test,
    y_test,
    metrics: Sequence[str] = ("rmse", "rsq"),
) -> Tuple[Pipeline, Dict[str, float]]:
    model = fit_final(spec, X_train, y_train)
    return model, evaluate(model, X_test, y_test, metrics)
