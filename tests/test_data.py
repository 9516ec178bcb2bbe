"""Tests for dataset loading, encoding and splitting."""

import numpy as np
import pandas as pd
import pytest

from elastic_net.data import (
    fold_indices,
    load_dataset,
    make_design_matrix,
    make_folds,
    make_synthetic_dataset,
    split_train_test,
)


class TestLoadDataset:
    """Reading delimited files."""

    def test_reads_numeric_and_categorical_columns(self, tmp_path):
        path = tmp_path / "sites.csv"
        path.write_text("elevation,region,latitude\n120.5,north,41.2\n88.0,south,35.9\n101.1,north,40.0\n")

        df = load_dataset(path)

        assert list(df.columns) == ["elevation", "region", "latitude"]
        assert isinstance(df["region"].dtype, pd.CategoricalDtype)
        assert df["latitude"].tolist() == [41.2, 35.9, 40.0]

    def test_custom_separator(self, tmp_path):
        path = tmp_path / "sites.tsv"
        path.write_text("x\tlatitude\n1\t40\n2\t41\n")

        df = load_dataset(path, sep="\t")

        assert df.shape == (2, 2)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_dataset(tmp_path / "nope.csv")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")
        with pytest.raises(ValueError, match="parse"):
            load_dataset(path)

    def test_header_only(self, tmp_path):
        path = tmp_path / "header.csv"
        path.write_text("x,latitude\n")
        with pytest.raises(ValueError, match="no rows"):
            load_dataset(path)

    def test_missing_target_column(self, tmp_path):
        path = tmp_path / "sites.csv"
        path.write_text("x,y\n1,2\n")
        with pytest.raises(ValueError, match="latitude"):
            load_dataset(path)

    def test_non_numeric_target(self, tmp_path):
        path = tmp_path / "sites.csv"
        path.write_text("x,latitude\n1,north\n2,south\n")
        with pytest.raises(ValueError, match="numeric"):
            load_dataset(path)

    def test_missing_target_values(self, tmp_path):
        path = tmp_path / "sites.csv"
        path.write_text("x,latitude\n1,40.1\n2,\n")
        with pytest.raises(ValueError, match="missing"):
            load_dataset(path)


class TestDesignMatrix:
    def test_dummy_encodes_categoricals(self, mixed_df):
        X_df, y = make_design_matrix(mixed_df)

        assert "latitude" not in X_df.columns
        assert {"region_south", "region_west"} <= set(X_df.columns)
        assert "region_north" not in X_df.columns
        assert len(X_df) == len(y) == len(mixed_df)
        assert (X_df.dtypes == float).all()

    def test_unknown_target(self, synthetic_df):
        with pytest.raises(ValueError):
            make_design_matrix(synthetic_df, target="elevation")

    def test_missing_predictor_values(self, synthetic_df):
        df = synthetic_df.copy()
        df.loc[3, "x1"] = np.nan
        with pytest.raises(ValueError, match="missing"):
            make_design_matrix(df)

    def test_missing_category_is_not_encoded_as_baseline(self):
        df = pd.DataFrame(
            {
                "x": [1.0, 2.0, 3.0, 4.0],
                "region": pd.Categorical(["north", None, "south", "west"]),
                "latitude": [40.0, 41.0, 35.0, 38.0],
            }
        )
        with pytest.raises(ValueError, match="region"):
            make_design_matrix(df)

    def test_synthetic_dataset_shape(self):
        df = make_synthetic_dataset(n_rows=100, n_features=3)
        assert df.shape == (100, 4)
        assert df["latitude"].between(20, 60).all()


class TestSplitTrainTest:
    @pytest.mark.parametrize("fraction", [0.1, 0.5, 0.75, 0.9])
    def test_partition_is_disjoint_and_complete(self, synthetic_df, fraction):
        train, test = split_train_test(synthetic_df, train_fraction=fraction, seed=18)

        assert len(train) + len(test) == len(synthetic_df)
        assert set(train.index).isdisjoint(test.index)
        assert set(train.index) | set(test.index) == set(synthetic_df.index)

    def test_fraction_is_respected(self, synthetic_df):
        train, test = split_train_test(synthetic_df, train_fraction=0.5, seed=18)
        assert len(train) == 50
        assert len(test) == 50

    def test_same_seed_same_split(self, synthetic_df):
        first, _ = split_train_test(synthetic_df, train_fraction=0.5, seed=18)
        second, _ = split_train_test(synthetic_df, train_fraction=0.5, seed=18)
        assert first.index.tolist() == second.index.tolist()

    def test_different_seed_different_split(self, synthetic_df):
        first, _ = split_train_test(synthetic_df, train_fraction=0.5, seed=18)
        second, _ = split_train_test(synthetic_df, train_fraction=0.5, seed=19)
        assert first.index.tolist() != second.index.tolist()

    @pytest.mark.parametrize("fraction", [0.0, 1.0, -0.2, 1.5])
    def test_invalid_fraction(self, synthetic_df, fraction):
        with pytest.raises(ValueError):
            split_train_test(synthetic_df, train_fraction=fraction)


class TestMakeFolds:
    @pytest.mark.parametrize("n_rows,k", [(50, 10), (47, 10), (75, 4), (10, 2), (13, 13)])
    def test_folds_cover_rows_with_balanced_sizes(self, n_rows, k):
        fold_ids = make_folds(n_rows, k=k, seed=18)

        assert fold_ids.shape == (n_rows,)
        assert sorted(np.unique(fold_ids).tolist()) == list(range(k))
        sizes = np.bincount(fold_ids, minlength=k)
        assert sizes.sum() == n_rows
        assert sizes.max() - sizes.min() <= 1

    def test_fold_indices_are_complementary(self):
        fold_ids = make_folds(50, k=10, seed=18)
        pairs = fold_indices(fold_ids)

        assert len(pairs) == 10
        held_out = np.concatenate([assessment for _, assessment in pairs])
        assert sorted(held_out.tolist()) == list(range(50))
        for analysis, assessment in pairs:
            assert set(analysis).isdisjoint(assessment)
            assert len(analysis) + len(assessment) == 50

    def test_same_seed_same_folds(self):
        np.testing.assert_array_equal(make_folds(50, 10, seed=18), make_folds(50, 10, seed=18))

    def test_different_seed_different_folds(self):
        assert not np.array_equal(make_folds(50, 10, seed=18), make_folds(50, 10, seed=3))

    @pytest.mark.parametrize("n_rows,k", [(50, 1), (50, 0), (5, 6)])
    def test_invalid_fold_count(self, n_rows, k):
        with pytest.raises(ValueError):
            make_folds(n_rows, k=k)
