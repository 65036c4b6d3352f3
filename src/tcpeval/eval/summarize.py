from __future__ import annotations

import argparse
from pathlib import Path
from typing import List

import pandas as pd

COLUMNS = ["bandwidth", "rtt", "flow_count", "utilization", "queue", "drop_rate"]


def summarize_results(path: str | Path) -> pd.DataFrame:
    """Load the appended fixed-width result rows of one output file."""
    df = pd.read_csv(path, sep=r"\s+", header=None, names=COLUMNS)
    df["flow_count"] = df["flow_count"].astype(int)
    return df


def aggregate_by(df: pd.DataFrame, keys: List[str]) -> pd.DataFrame:
    """Mean of the measured columns over repeated runs sharing ``keys``."""
    measured = [c for c in ("utilization", "queue", "drop_rate") if c not in keys]
    out = df.groupby(keys, as_index=False)[measured].mean()
    out["runs"] = df.groupby(keys).size().to_numpy()
    return out


def write_csv(df: pd.DataFrame, out_csv: str | Path) -> None:
    out_path = Path(out_csv)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out_path, index=False)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Summarize an experiment output file into CSV")
    parser.add_argument("--in", dest="input_file", required=True, help="Output file the runs appended to")
    parser.add_argument("--out", required=True, help="Output CSV path")
    parser.add_argument("--group", nargs="*", default=[], help="Average over runs sharing these columns")
    args = parser.parse_args()
    frame = summarize_results(args.input_file)
    if args.group:
        frame = aggregate_by(frame, args.group)
    write_csv(frame, args.out)
