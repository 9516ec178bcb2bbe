"""
Loading, encoding and splitting of the latitude dataset.

Every split is reproducible from its seed: the train/test partition goes through
``train_test_split`` and the cross-validation folds through a shuffled ``KFold``.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

import numpy as np
import pandas as pd
from sklearn.datasets import make_regression
from sklearn.model_selection import KFold, train_test_split

TARGET_NAME = "latitude"


def load_dataset(path: str | Path, target: str = TARGET_NAME, sep: str = ",") -> pd.DataFrame:
    """
    Read a delimited file into a dataframe with a numeric target column.

    Raises ``FileNotFoundError`` when the file is missing and ``ValueError`` when
    it cannot be parsed or does not carry a usable target column.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dataset not found: {path}")

    try:
        df = pd.read_csv(path, sep=sep, header=0, skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise ValueError(f"Could not parse dataset {path}: {exc}") from exc

    if df.empty:
        raise ValueError(f"Dataset {path} contains no rows.")
    if target not in df.columns:
        raise ValueError(f"Target '{target}' not found in dataset columns: {list(df.columns)}")
    if not pd.api.types.is_numeric_dtype(df[target]):
        raise ValueError(f"Target '{target}' must be numeric, got dtype {df[target].dtype}.")
    if df[target].isna().any():
        raise ValueError(f"Target '{target}' has {int(df[target].isna().sum())} missing values.")

    for col in df.columns:
        if not pd.api.types.is_numeric_dtype(df[col]) and not isinstance(df[col].dtype, pd.CategoricalDtype):
            df[col] = df[col].astype("category")
    return df


def make_synthetic_dataset(
    n_rows: int = 100,
    n_features: int = 3,
    noise: float = 0.5,
    random_state: int = 18,
    target: str = TARGET_NAME,
) -> pd.DataFrame:
    """Numeric toy dataset whose target sits in a plausible latitude range."""
    X, y = make_regression(
        n_samples=n_rows,
        n_features=n_features,
        n_informative=n_features,
        noise=noise,
        random_state=random_state,
    )
    # squash the response into roughly 30-50 degrees north
    y = 40.0 + 5.0 * (y - y.mean()) / y.std()
    df = pd.DataFrame(X, columns=[f"x{i + 1}" for i in range(n_features)])
    df[target] = y
    return df


def make_design_matrix(df: pd.DataFrame, target: str = TARGET_NAME) -> Tuple[pd.DataFrame, np.ndarray]:
    """Split a dataframe into dummy-encoded predictors and the target vector."""
    if target not in df.columns:
        raise ValueError(f"Target '{target}' not found in dataset columns: {list(df.columns)}")

    X_df = df.drop(columns=[target])
    # checked before encoding: get_dummies turns a missing category into the baseline level
    if X_df.isna().any().any():
        missing = X_df.columns[X_df.isna().any()].tolist()
        raise ValueError(f"Predictors contain missing values: {missing}")
    X_df = pd.get_dummies(X_df, drop_first=True, dtype=float)

    y = df[target].to_numpy(dtype=float)
    return X_df.astype(float), y


def split_train_test(
    df: pd.DataFrame,
    train_fraction: float = 0.75,
    seed: int = 18,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Partition rows into disjoint train and test frames."""
    if not 0.0 < train_fraction < 1.0:
        raise ValueError(f"train_fraction must lie in (0, 1), got {train_fraction}.")
    train, test = train_test_split(df, train_size=train_fraction, random_state=seed)
    return train, test


def make_folds(n_rows: int, k: int = 10, seed: int = 18) -> np.ndarray:
    """
    Assign each of ``n_rows`` training rows to one of ``k`` folds.

    Returns
    -------
    fold_ids:
        Integer array of length ``n_rows``; ``fold_ids[i]`` is the fold in which
        row ``i`` is held out. Fold sizes differ by at most one.
    """
    if k < 2:
        raise ValueError(f"Need at least 2 folds, got {k}.")
    if k > n_rows:
        raise ValueError(f"Cannot build {k} folds from {n_rows} rows.")

    kf = KFold(n_splits=k, shuffle=True, random_state=seed)
    fold_ids = np.empty(n_rows, dtype=int)
    for fold_idx, (_, test_idx) in enumerate(kf.split(np.arange(n_rows))):
        fold_ids[test_idx] = fold_idx
    return fold_ids


def fold_indices(fold_ids: np.ndarray) -> List[Tuple[np.ndarray, np.ndarray]]:
    """(analysis rows, assessment rows) for every fold, in fold order."""
    fold_ids = np.asarray(fold_ids)
    rows = np.arange(len(fold_ids))
    return [
        (rows[fold_ids != fold], rows[fold_ids == fold])
        for fold in np.unique(fold_ids)
    ]
