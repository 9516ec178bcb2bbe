"""
Score new rows with the elastic net fitted by ``python -m elastic_net.run``.

The run leaves ``model.joblib``, ``feature_names.json`` and ``targets.json`` in its
results directory; this module reloads them, lines up the columns of the new rows
with the training design matrix and writes the predictions next to the inputs.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

import pandas as pd
from joblib import load

from .run import RESULTS_DIR


def load_artifacts(model_dir: Path = RESULTS_DIR) -> Tuple[pd.Index, str, Any]:
    """Load the saved pipeline, feature ordering and target name."""
    model_dir = Path(model_dir)
    model_path = model_dir / "model.joblib"
    feature_names_path = model_dir / "feature_names.json"
    targets_path = model_dir / "targets.json"

    if not model_path.exists():
        raise FileNotFoundError(
            f"Missing trained model in '{model_dir}'. Run `python -m elastic_net.run` first."
        )
    if not feature_names_path.exists():
        raise FileNotFoundError(
            f"Missing feature name list in '{model_dir}'. Did the training complete successfully?"
        )
    if not targets_path.exists():
        raise FileNotFoundError(
            f"Missing target metadata in '{model_dir}'. Run the training script again to regenerate artefacts."
        )

    model = load(model_path)
    with feature_names_path.open("r", encoding="utf-8") as handle:
        feature_names = pd.Index(json.load(handle))
    with targets_path.open("r", encoding="utf-8") as handle:
        targets: List[str] = json.load(handle)
    return feature_names, targets[0], model


def prepare_features(feature_names: pd.Index, rows: pd.DataFrame) -> pd.DataFrame:
    """Dummy-encode new rows and align them with the training columns; absent columns become zero."""
    encoded = pd.get_dummies(rows, drop_first=False, dtype=float)
    unknown = [col for col in encoded.columns if col not in feature_names]
    encoded = encoded.drop(columns=unknown)
    absent = [col for col in feature_names if col not in encoded.columns]
    # an unseen level of a categorical that is present is a genuine zero dummy
    categorical = [c for c in rows.columns if not pd.api.types.is_numeric_dtype(rows[c])]
    filled = [col for col in absent if not any(col.startswith(f"{c}_") for c in categorical)]
    if filled:
        print(f"[inference] Missing predictor columns filled with 0.0: {filled}")
    for col in absent:
        encoded[col] = 0.0
    return encoded.loc[:, feature_names].astype(float)


def predict_rows(rows: pd.DataFrame, model_dir: Path = RESULTS_DIR) -> pd.DataFrame:
    feature_names, target, model = load_artifacts(model_dir)
    features = prepare_features(feature_names, rows.drop(columns=[target], errors="ignore"))
    out = rows.reset_index(drop=True).copy()
    out[f"{target}_pred"] = model.predict(features.values)
    return out


def main(
    input_csv: str,
    output_csv: Optional[str] = None,
    model_dir: Path = RESULTS_DIR,
    sep: str = ",",
) -> Path:
    rows = pd.read_csv(input_csv, sep=sep, skipinitialspace=True)
    out = predict_rows(rows, model_dir)

    output_path = Path(output_csv) if output_csv else Path(model_dir) / "manual_inference.csv"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    out.to_csv(output_path, index=False)
    print(f"Scored {len(out)} rows. Wrote predictions to {output_path}")
    return output_path


def _cli(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Predict the target for new rows with the fitted elastic net.")
    parser.add_argument("--input", dest="input_csv", required=True, help="CSV file with predictor columns.")
    parser.add_argument(
        "--output",
        dest="output_csv",
        default=None,
        help="Output CSV path. If omitted, writes manual_inference.csv under the model dir.",
    )
    parser.add_argument(
        "--model-dir",
        dest="model_dir",
        default=str(RESULTS_DIR),
        help=f"Directory holding the training artefacts (default: {RESULTS_DIR}).",
    )
    parser.add_argument("--sep", default=",", help="Field delimiter of the input file (default: ',').")
    args = parser.parse_args(argv)
    main(input_csv=args.input_csv, output_csv=args.output_csv, model_dir=Path(args.model_dir), sep=args.sep)


if __name__ == "__main__":
    _cli()
