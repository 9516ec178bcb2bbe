"""
Preprocessing and model declarations for the elastic-net regression.

``fit_preprocessor``/``apply_preprocessor`` are the standalone form of the
pipeline's ``scaler`` step; both are built by ``make_preprocessor``.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, replace
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import ElasticNet, LinearRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler


def make_preprocessor() -> StandardScaler:
    return StandardScaler(with_mean=True, with_std=True)


def fit_preprocessor(X) -> StandardScaler:
    """Learn per-column means and standard deviations from the training context only."""
    scaler = make_preprocessor()
    scaler.fit(X)
    return scaler


def apply_preprocessor(scaler: StandardScaler, X) -> np.ndarray:
    return scaler.transform(X)


@dataclass(frozen=True)
class ModelSpec:
    """
    Linear regression with a blended L1/L2 penalty.

    ``penalty`` stays ``None`` while it is being tuned; ``finalize`` binds a value.
    ``mixture`` runs from 0 (pure ridge) to 1 (pure lasso).
    """

    penalty: Optional[float] = None
    mixture: float = 0.5
    max_iter: int = 10_000
    tol: float = 1e-4

    def validate(self) -> None:
        if self.penalty is not None and self.penalty < 0:
            raise ValueError(f"penalty must be non-negative, got {self.penalty}.")
        if not 0.0 <= self.mixture <= 1.0:
            raise ValueError(f"mixture must lie in [0, 1], got {self.mixture}.")

    def finalize(self, penalty: float) -> "ModelSpec":
        spec = replace(self, penalty=float(penalty))
        spec.validate()
        return spec

    def build_pipeline(self) -> Pipeline:
        self.validate()
        if self.penalty is None:
            raise ValueError("penalty is unset; finalize the spec before fitting.")

        if self.penalty == 0:
            # the unpenalised limit of the elastic net is ordinary least squares
            reg = LinearRegression(fit_intercept=True)
        else:
            reg = ElasticNet(
                alpha=self.penalty,
                l1_ratio=self.mixture,
                fit_intercept=True,
                max_iter=self.max_iter,
                tol=self.tol,
            )
        return Pipeline(
            steps=[
                ("scaler", make_preprocessor()),
                ("model", reg),
            ]
        )


def fit_model(spec: ModelSpec, X, y) -> Pipeline:
    """Fit scaler and regression on the same rows. Non-convergence is an error."""
    model = spec.build_pipeline()
    with warnings.catch_warnings():
        warnings.simplefilter("error", category=ConvergenceWarning)
        try:
            model.fit(X, y)
        except ConvergenceWarning as exc:
            raise RuntimeError(
                f"Elastic net did not converge (penalty={spec.penalty}, mixture={spec.mixture}): {exc}"
            ) from exc
    return model


def predict(model: Pipeline, X) -> np.ndarray:
    return model.predict(X)


def variable_importance(model: Pipeline, feature_names: Sequence[str]) -> pd.DataFrame:
    """
    Absolute standardised coefficients with their direction.

    Predictors are scaled inside the pipeline, so coefficient magnitudes are
    comparable across columns.
    """
    coefs = np.ravel(model.named_steps["model"].coef_)
    if len(coefs) != len(feature_names):
        raise ValueError(
            f"Model has {len(coefs)} coefficients but {len(feature_names)} feature names were given."
        )
    df = pd.DataFrame(
        {
            "variable": list(feature_names),
            "importance": np.abs(coefs),
            "sign": np.where(coefs >= 0, "POS", "NEG"),
        }
    )
    return df.sort_values("importance", ascending=False, kind="mergesort").reset_index(drop=True)
