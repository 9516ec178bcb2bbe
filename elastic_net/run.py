import argparse
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import dump
from sklearn.pipeline import Pipeline

from visualize import plot_tuning_curves, plot_variable_importance

from .data import (
    TARGET_NAME,
    load_dataset,
    make_design_matrix,
    make_folds,
    make_synthetic_dataset,
    split_train_test,
)
from .model import ModelSpec, predict, variable_importance
from .tuning import METRICS, TIE_BREAKS, last_fit, penalty_grid, tune_grid


OUTPUT_DIR = Path(__file__).resolve().parent
BASE_DIR = OUTPUT_DIR.parent
RESULTS_DIR = OUTPUT_DIR / "results"
DEFAULT_DATA_PATH = BASE_DIR / "data" / "latitude.csv"

RANDOM_STATE = 18
TRAIN_FRACTION = 0.75
N_FOLDS = 10
PENALTY_MIN = 0.0
PENALTY_MAX = 10.0
PENALTY_STEP = 0.5
MIXTURE = 0.5


@dataclass
class RunResult:
    """Everything produced by one tune -> select -> refit -> evaluate run."""

    target: str
    penalties: np.ndarray
    mixture: float
    n_folds: int
    metric: str
    tie_break: str
    best_penalty: float
    best_cv: float
    n_train: int
    n_test: int
    test_metrics: Dict[str, float]
    feature_names: List[str]
    tuning_metrics: pd.DataFrame = field(repr=False)
    fold_metrics: pd.DataFrame = field(repr=False)
    importance: pd.DataFrame = field(repr=False)
    model: Pipeline = field(repr=False)

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "penalty_grid": self.penalties.tolist(),
            "mixture": self.mixture,
            "n_folds": self.n_folds,
            "metric": self.metric,
            "tie_break": self.tie_break,
            "best_penalty": self.best_penalty,
            "best_cv": self.best_cv,
            "n_train": self.n_train,
            "n_test": self.n_test,
            "test_metrics": self.test_metrics,
            "tuning_metrics": self.tuning_metrics.to_dict(orient="records"),
            "variable_importance": self.importance.to_dict(orient="records"),
            "feature_names": self.feature_names,
        }


def describe_importance(importance: pd.DataFrame, top_k: int = 5) -> str:
    """Short textual reading of the strongest predictors."""
    lines = ["Top predictors (|standardised coefficient|):"]
    for row in importance.head(top_k).itertuples(index=False):
        if row.importance == 0:
            lines.append(f"  - {row.variable}: dropped by the penalty")
            continue
        direction = "increases" if row.sign == "POS" else "decreases"
        lines.append(f"  - {row.variable}: {direction} the prediction ({row.importance:.4f})")
    return "\n".join(lines)


def save_artifacts(result_dir: Path, result: RunResult) -> None:
    result_dir.mkdir(parents=True, exist_ok=True)

    cv_path = result_dir / "cv_metrics.csv"
    result.fold_metrics.to_csv(cv_path, index=False)
    tuning_path = result_dir / "tuning_metrics.csv"
    result.tuning_metrics.to_csv(tuning_path, index=False)
    importance_path = result_dir / "variable_importance.csv"
    result.importance.to_csv(importance_path, index=False)
    print(f"Saved fold-by-fold metrics to {cv_path}")

    curve_path = plot_tuning_curves(
        result.tuning_metrics,
        result_dir / "tuning_curve.png",
        best_penalty=result.best_penalty,
        mixture=result.mixture,
    )
    print(f"Saved tuning curve to {curve_path}")
    vip_path = plot_variable_importance(
        result.importance,
        result_dir / "variable_importance.png",
        penalty=result.best_penalty,
    )
    print(f"Saved variable importance chart to {vip_path}")

    model_path = result_dir / "model.joblib"
    dump(result.model, model_path)
    feature_names_path = result_dir / "feature_names.json"
    with feature_names_path.open("w", encoding="utf-8") as handle:
        json.dump(result.feature_names, handle, indent=2)
    targets_path = result_dir / "targets.json"
    with targets_path.open("w", encoding="utf-8") as handle:
        json.dump([result.target], handle, indent=2)
    summary_path = result_dir / "summary.json"
    with summary_path.open("w", encoding="utf-8") as handle:
        json.dump(result.to_dict(), handle, indent=2)
    print(f"Saved fitted model and summary to {result_dir}")


def run_pipeline(
    df: pd.DataFrame,
    target: str = TARGET_NAME,
    train_fraction: float = TRAIN_FRACTION,
    n_folds: int = N_FOLDS,
    penalties: Optional[Sequence[float]] = None,
    mixture: float = MIXTURE,
    metrics: Sequence[str] = ("rmse", "rsq"),
    metric: str = "rmse",
    tie_break: str = "smallest",
    n_jobs: int = 1,
    random_state: int = RANDOM_STATE,
    result_dir: Optional[Path] = RESULTS_DIR,
    save_predictions: bool = False,
    verbose: bool = True,
) -> RunResult:
    """Split, tune the penalty by K-fold CV on the training rows, refit and score on the test rows."""
    if penalties is None:
        penalties = penalty_grid(PENALTY_MIN, PENALTY_MAX, PENALTY_STEP)
    penalties = np.asarray(penalties, dtype=float)

    df = df.reset_index(drop=True)
    X_df, y = make_design_matrix(df, target)
    feature_names = X_df.columns.tolist()

    # the same seed drives the split and the folds
    train_df, test_df = split_train_test(df, train_fraction=train_fraction, seed=random_state)
    train_pos, test_pos = train_df.index.to_numpy(), test_df.index.to_numpy()
    X_train, y_train = X_df.values[train_pos], y[train_pos]
    X_test, y_test = X_df.values[test_pos], y[test_pos]

    fold_ids = make_folds(len(train_pos), k=n_folds, seed=random_state)
    spec = ModelSpec(mixture=mixture)

    if verbose:
        print(f"\n=== Elastic net tuning: {target} ===")
        print(
            f"{len(train_pos)} training rows, {len(test_pos)} test rows, {len(feature_names)} predictors; "
            f"{len(penalties)} penalties x {n_folds} folds (mixture={mixture:g})"
        )

    tuning = tune_grid(
        X_train,
        y_train,
        spec,
        penalties,
        fold_ids,
        metrics=metrics,
        n_jobs=n_jobs,
    )
    tuning_metrics = tuning.collect_metrics()
    best_penalty = tuning.select_best(metric=metric, tie_break=tie_break)
    best_cv = float(
        tuning_metrics.loc[
            (tuning_metrics["metric"] == metric) & (tuning_metrics["penalty"] == best_penalty),
            "mean",
        ].iloc[0]
    )

    final_spec = spec.finalize(best_penalty)
    model, test_metrics = last_fit(final_spec, X_train, y_train, X_test, y_test, metrics=metrics)
    importance = variable_importance(model, feature_names)

    result = RunResult(
        target=target,
        penalties=penalties,
        mixture=mixture,
        n_folds=n_folds,
        metric=metric,
        tie_break=tie_break,
        best_penalty=best_penalty,
        best_cv=best_cv,
        n_train=len(train_pos),
        n_test=len(test_pos),
        test_metrics=test_metrics,
        feature_names=feature_names,
        tuning_metrics=tuning_metrics,
        fold_metrics=tuning.fold_metrics,
        importance=importance,
        model=model,
    )

    if verbose:
        print(f"Best penalty by mean CV {metric}: {best_penalty:g} ({metric}={best_cv:.4f})")
        print("Test set: " + " | ".join(f"{name}={value:.4f}" for name, value in test_metrics.items()))
        print(describe_importance(importance))

    if result_dir is not None:
        save_artifacts(result_dir, result)
        if save_predictions:
            preds = predict(model, X_test)
            pred_path = result_dir / "test_predictions.csv"
            pd.DataFrame(
                {f"{target}_actual": y_test, f"{target}_pred": preds},
                index=test_df.index,
            ).to_csv(pred_path, index=True)
            print(f"Saved test predictions to {pred_path}")

    return result


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Elastic net penalty tuning with K-fold cross-validation.")
    parser.add_argument(
        "--data",
        type=str,
        default=str(DEFAULT_DATA_PATH),
        help=f"Delimited input file (default: {DEFAULT_DATA_PATH}).",
    )
    parser.add_argument(
        "--synthetic",
        action="store_true",
        help="Ignore --data and run on a generated 100-row, 3-predictor dataset.",
    )
    parser.add_argument("--sep", type=str, default=",", help="Field delimiter of the input file (default: ',').")
    parser.add_argument(
        "--target",
        type=str,
        default=TARGET_NAME,
        help=f"Numeric response column (default: {TARGET_NAME}).",
    )
    parser.add_argument(
        "--train-fraction",
        type=float,
        default=TRAIN_FRACTION,
        dest="train_fraction",
        help=f"Share of rows used for training (default: {TRAIN_FRACTION}).",
    )
    parser.add_argument("--folds", type=int, default=N_FOLDS, help=f"Number of CV folds (default: {N_FOLDS}).")
    parser.add_argument(
        "--penalty-min",
        type=float,
        default=PENALTY_MIN,
        dest="penalty_min",
        help=f"Smallest penalty in the grid (default: {PENALTY_MIN}).",
    )
    parser.add_argument(
        "--penalty-max",
        type=float,
        default=PENALTY_MAX,
        dest="penalty_max",
        help=f"Largest penalty in the grid (default: {PENALTY_MAX}).",
    )
    parser.add_argument(
        "--penalty-step",
        type=float,
        default=PENALTY_STEP,
        dest="penalty_step",
        help=f"Spacing of the penalty grid (default: {PENALTY_STEP}).",
    )
    parser.add_argument(
        "--mixture",
        type=float,
        default=MIXTURE,
        help=f"L1 share of the penalty, 0 = ridge, 1 = lasso (default: {MIXTURE}).",
    )
    parser.add_argument(
        "--metrics",
        choices=sorted(METRICS),
        nargs="+",
        default=["rmse", "rsq"],
        help="Metrics computed during tuning and on the test set (default: rmse rsq).",
    )
    parser.add_argument(
        "--metric",
        choices=sorted(METRICS),
        default="rmse",
        help="Metric used to select the best penalty (default: rmse).",
    )
    parser.add_argument(
        "--tie-break",
        choices=TIE_BREAKS,
        default="smallest",
        dest="tie_break",
        help="Which penalty wins when several share the best CV score (default: smallest).",
    )
    parser.add_argument(
        "--n-jobs",
        type=int,
        default=1,
        dest="n_jobs",
        help="Parallel workers for the tuning grid; -1 uses all cores (default: 1).",
    )
    parser.add_argument(
        "--random-state",
        type=int,
        default=RANDOM_STATE,
        dest="random_state",
        help=f"Seed for the train/test split and the fold assignment (default: {RANDOM_STATE}).",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=str(RESULTS_DIR),
        dest="output_dir",
        help=f"Directory for plots, metrics and the fitted model (default: {RESULTS_DIR}).",
    )
    parser.add_argument(
        "--save-predictions",
        action="store_true",
        help="Persist actual vs. predicted values for the test rows.",
    )
    args = parser.parse_args(argv)
    if args.metric not in args.metrics:
        parser.error(f"--metric {args.metric} must be one of --metrics {args.metrics}")
    return args


def main(argv: Optional[Sequence[str]] = None) -> RunResult:
    args = parse_args(argv)
    if args.synthetic:
        df = make_synthetic_dataset(random_state=args.random_state, target=args.target)
    else:
        data_path = Path(args.data)
        if not data_path.exists():
            raise FileNotFoundError(
                f"Dataset not found: {data_path}. Pass --data <file> or run with --synthetic."
            )
        df = load_dataset(data_path, target=args.target, sep=args.sep)

    return run_pipeline(
        df,
        target=args.target,
        train_fraction=args.train_fraction,
        n_folds=args.folds,
        penalties=penalty_grid(args.penalty_min, args.penalty_max, args.penalty_step),
        mixture=args.mixture,
        metrics=args.metrics,
        metric=args.metric,
        tie_break=args.tie_break,
        n_jobs=args.n_jobs,
        random_state=args.random_state,
        result_dir=Path(args.output_dir),
        save_predictions=args.save_predictions,
    )


if __name__ == "__main__":
    main()
