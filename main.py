import argparse
from pathlib import Path

from elastic_net.data import TARGET_NAME, load_dataset, make_synthetic_dataset
from elastic_net.run import DEFAULT_DATA_PATH, RESULTS_DIR
from visualize import histogram, scatter_against_target

# Quick look at the data before tuning anything:
#   python main.py --data data/latitude.csv
#   python main.py --synthetic


def main(argv=None):
    parser = argparse.ArgumentParser(description="Exploratory plots of the latitude dataset.")
    parser.add_argument("--data", default=str(DEFAULT_DATA_PATH), help="Delimited input file.")
    parser.add_argument("--synthetic", action="store_true", help="Use the generated toy dataset instead.")
    parser.add_argument("--target", default=TARGET_NAME, help="Response column.")
    parser.add_argument("--output-dir", default=str(RESULTS_DIR / "eda"), dest="output_dir")
    args = parser.parse_args(argv)

    if args.synthetic:
        df = make_synthetic_dataset(target=args.target)
    else:
        df = load_dataset(args.data, target=args.target)

    print(df.describe(include="all").T)

    out = Path(args.output_dir)
    hist_path = histogram(df, out / "histograms.png", bins=20, ncols=3, target=args.target)
    scatter_path = scatter_against_target(df, args.target, out / "scatter_vs_target.png")
    print(f"Saved histograms to {hist_path}")
    print(f"Saved predictor scatter plots to {scatter_path}")


if __name__ == "__main__":
    main()
