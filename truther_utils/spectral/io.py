"""
IO utilities: console report, TensorBoard logging and the projected-points data file.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import torch

from truther_utils.spectral.errors import NumericalFailure

if TYPE_CHECKING:
    from torch.utils.tensorboard import SummaryWriter

    from truther_utils.spectral.eigen import EigenDecomposition
    from truther_utils.spectral.optimizer import TracePoint
    from truther_utils.spectral.pca import PrincipalComponents


# Metric name prefixes
LOSSES_PREFIX = "losses"
CHARTS_PREFIX = "charts"
SPECTRUM_PREFIX = "spectrum"
PCA_PREFIX = "pca"


def format_complex(z: complex) -> str:
    return f"({z.real:f}{z.imag:+f}i)"


def print_spectrum(decomposition: "EigenDecomposition") -> None:
    """
    Print eigenvalues with magnitude and phase, the eigenvector matrix, and the
    (magnitude, phase) of every eigenvector component.
    """
    mags, phases = decomposition.value_geometry()
    for i in range(decomposition.size):
        value = complex(decomposition.values[i].item())
        print(i, format_complex(value), mags[i].item(), phases[i].item())
    print()

    n = decomposition.size
    for i in range(n):
        print(" ".join(format_complex(complex(decomposition.vectors[i, j].item())) for j in range(n)))
    print()

    vec_mags, vec_phases = decomposition.vector_geometry()
    for i in range(n):
        print(" ".join(f"({vec_mags[i, j].item():f}, {vec_phases[i, j].item():f})" for j in range(n)))


def print_trace_point(point: "TracePoint") -> None:
    print(point.iteration, point.cost)


def print_weight_magnitudes(weights: torch.Tensor) -> None:
    """Print |w| row by row."""
    mags = torch.abs(weights)
    for row in mags.tolist():
        print(" ".join(f"{v:f}" for v in row))


def print_points(points: torch.Tensor) -> None:
    print()
    for x, y in points[:, :2].tolist():
        print(x, y)


def load_matrix(path: str | Path) -> np.ndarray:
    """
    Read a whitespace-separated real matrix, one row per line.

    Raises:
        OSError: If the file cannot be read.
        NumericalFailure: If an entry is not a number or rows differ in length.
    """
    try:
        return np.loadtxt(path, ndmin=2)
    except ValueError as e:
        raise NumericalFailure(f"cannot parse matrix file {path}: {e}") from e


def write_points(path: str | Path, points: torch.Tensor) -> Path:
    """
    Write one "x y" line per projected point.

    Args:
        path: Output text file.
        points: Tensor of shape (n, >=2); the first two columns are written.

    Returns:
        The path written.
    """
    path = Path(path)
    with open(path, "w") as f:
        for x, y in points[:, :2].tolist():
            f.write(f"{x:f} {y:f}\n")
    return path


def log_hyperparameters(writer: "SummaryWriter", params: dict) -> None:
    writer.add_text(
        "hyperparameters",
        "|param|value|\n|-|-|\n%s" % ("\n".join([f"|{key}|{value}|" for key, value in params.items()])),
    )


def log_spectrum_metrics(
    writer: "SummaryWriter",
    decomposition: "EigenDecomposition",
    components: "PrincipalComponents | None" = None,
) -> None:
    """
    Log eigenvalue magnitudes/phases and PCA explained variance, indexed by position.

    Args:
        writer: TensorBoard SummaryWriter.
        decomposition: Eigendecomposition of the input matrix.
        components: Fitted principal components, if any.
    """
    mags, phases = decomposition.value_geometry()
    for i in range(decomposition.size):
        writer.add_scalar(f"{SPECTRUM_PREFIX}/eigenvalue_magnitude", mags[i].item(), i)
        writer.add_scalar(f"{SPECTRUM_PREFIX}/eigenvalue_phase", phases[i].item(), i)
    if components is not None:
        ratios = components.explained_variance_ratio()
        for i in range(components.num_components):
            writer.add_scalar(f"{PCA_PREFIX}/explained_variance", components.explained_variance[i].item(), i)
            writer.add_scalar(f"{PCA_PREFIX}/explained_variance_ratio", ratios[i].item(), i)


def log_optimizer_metrics(writer: "SummaryWriter", point: "TracePoint") -> None:
    """
    Log one optimization step to TensorBoard.

    Args:
        writer: TensorBoard SummaryWriter.
        point: Trace point for the step.
    """
    writer.add_scalar(f"{LOSSES_PREFIX}/cost", point.cost, point.iteration)
    writer.add_scalar(f"{CHARTS_PREFIX}/grad_norm", point.grad_norm, point.iteration)
    writer.add_scalar(f"{CHARTS_PREFIX}/scaling", point.scaling, point.iteration)


def log_final_cost(writer: "SummaryWriter", cost: float, iteration: int) -> None:
    """Log the cost after the last update."""
    writer.add_scalar(f"{LOSSES_PREFIX}/final_cost", cost, iteration)
