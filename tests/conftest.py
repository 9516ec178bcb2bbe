"""Shared fixtures: headless matplotlib and a small synthetic latitude dataset."""

import matplotlib

matplotlib.use("Agg")

import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
import pytest  # noqa: E402

from elastic_net.data import make_design_matrix, make_synthetic_dataset  # noqa: E402


@pytest.fixture
def synthetic_df() -> pd.DataFrame:
    return make_synthetic_dataset(n_rows=100, n_features=3, random_state=18)


@pytest.fixture
def design(synthetic_df):
    X_df, y = make_design_matrix(synthetic_df)
    return X_df.values, y


@pytest.fixture
def mixed_df() -> pd.DataFrame:
    """Numeric and categorical predictors with a latitude target."""
    rng = np.random.default_rng(7)
    n = 60
    region = rng.choice(["north", "south", "west"], size=n)
    elevation = rng.normal(500, 120, size=n)
    rainfall = rng.normal(800, 200, size=n)
    latitude = 38 + 0.004 * elevation - 0.002 * rainfall + np.where(region == "north", 2.0, 0.0)
    latitude = latitude + rng.normal(0, 0.3, size=n)
    return pd.DataFrame(
        {
            "elevation": elevation,
            "rainfall": rainfall,
            "region": pd.Categorical(region),
            "latitude": latitude,
        }
    )
