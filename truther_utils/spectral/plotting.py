"""
Scatter plots for the optimization trace and the PCA projection.
"""

from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402


def save_scatter(
    xs: list[float],
    ys: list[float],
    path: str | Path,
    title: str,
    xlabel: str,
    ylabel: str,
    marker_size: float = 4.0,
) -> Path:
    """
    Save an 8×8 inch scatter plot.

    Raises:
        OSError: If the image cannot be written.
    """
    path = Path(path)
    fig = plt.figure(figsize=(8, 8))
    try:
        plt.scatter(xs, ys, s=marker_size)
        plt.xlabel(xlabel)
        plt.ylabel(ylabel)
        plt.title(title)
        plt.grid(True, which="major", ls="-", alpha=0.2)
        plt.tight_layout()
        plt.savefig(path)
    finally:
        plt.close(fig)
    return path


def plot_cost(trace, path: str | Path = "cost.png") -> Path:
    """Epochs vs cost scatter of an optimization trace."""
    return save_scatter(
        [p.iteration for p in trace],
        [p.cost for p in trace],
        path,
        title="epochs vs cost",
        xlabel="epochs",
        ylabel="cost",
        marker_size=4.0,
    )


def plot_points(points, path: str | Path = "vectors.png") -> Path:
    """x vs y scatter of projected points (first two columns)."""
    pairs = points[:, :2].tolist()
    return save_scatter(
        [x for x, _ in pairs],
        [y for _, y in pairs],
        path,
        title="x vs y",
        xlabel="x",
        ylabel="y",
        marker_size=36.0,
    )
