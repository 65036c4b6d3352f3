from __future__ import annotations

import argparse
from pathlib import Path

from tcpeval.eval.summarize import summarize_results


def plot_results(input_file: str | Path, out_png: str | Path, x: str = "flow_count") -> None:
    try:
        import matplotlib.pyplot as plt
        import seaborn as sns
    except Exception as exc:  # pragma: no cover
        raise RuntimeError("matplotlib and seaborn are required for plotting") from exc

    df = summarize_results(input_file)
    hue = "bandwidth" if df["bandwidth"].nunique() > 1 else None

    fig, axes = plt.subplots(1, 2, figsize=(10, 4))
    sns.lineplot(data=df, x=x, y="utilization", hue=hue, marker="o", ax=axes[0])
    axes[0].set_ylabel("Bottleneck utilization (%)")
    sns.lineplot(data=df, x=x, y="drop_rate", hue=hue, marker="o", ax=axes[1])
    axes[1].set_ylabel("Drop rate (%)")
    for ax in axes:
        ax.set_xlabel(x.replace("_", " "))
    fig.tight_layout()
    Path(out_png).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_png, dpi=150)
    plt.close(fig)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Plot utilization and drop rate of an output file")
    parser.add_argument("--in", dest="input_file", required=True)
    parser.add_argument("--out", dest="out_png", required=True)
    parser.add_argument("--x", default="flow_count", help="Column for the x axis")
    args = parser.parse_args()
    plot_results(args.input_file, args.out_png, x=args.x)
