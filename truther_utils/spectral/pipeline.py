"""
End-to-end pipeline: eigendecomposition, PCA projection of the eigenvector
geometry, and an optional complex linear fit.

Usage:
    from truther_utils.spectral.pipeline import run_pipeline

    result = run_pipeline(REFERENCE_ADJACENCY, seed=1, neural=True)
    result.points           # (N, k) projected rows of real(eigenvectors)
    result.neural.trace     # optimization trace
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
import torch

from truther_utils.spectral.autodiff import DTYPE, Node, ParameterSet, evaluate, matmul, quadratic
from truther_utils.spectral.eigen import EigenDecomposition, as_matrix, decompose
from truther_utils.spectral.optimizer import GradientDescent, TracePoint
from truther_utils.spectral.pca import PrincipalComponents, fit_pca, project


@dataclass
class LinearFit:
    """Outcome of fitting Y ≈ A·X."""
    parameters: ParameterSet
    loss: Node
    trace: list[TracePoint]
    final_cost: float

    @property
    def weights(self) -> torch.Tensor:
        return self.parameters.get("A").X


@dataclass
class PipelineResult:
    matrix: torch.Tensor
    decomposition: EigenDecomposition
    components: PrincipalComponents
    points: torch.Tensor
    fit: LinearFit | None = None


def uniform_complex(
    rng: np.random.Generator,
    shape: tuple[int, ...],
    low: float = -1.0,
    high: float = 1.0,
) -> torch.Tensor:
    """Complex tensor whose real and imaginary parts are each uniform in [low, high)."""
    parts = rng.uniform(low, high, size=shape + (2,))
    return torch.complex(torch.from_numpy(parts[..., 0]), torch.from_numpy(parts[..., 1])).to(DTYPE)


def build_linear_model(
    decomposition: EigenDecomposition,
    rng: np.random.Generator,
) -> tuple[ParameterSet, Node]:
    """
    Build the graph Quadratic(Y, A·X) seeded from the eigendecomposition.

    A (N×N) is drawn from `rng`. X (N×1) is the first row of the eigenvector
    matrix and Y (N×1) is that row scaled by the first eigenvalue.

    Returns:
        The parameter set (A, X, Y in that order) and the loss node.
    """
    n = decomposition.size
    params = ParameterSet()
    a = params.add("A", n, n)
    x = params.add("X", n, 1)
    y = params.add("Y", n, 1)

    a.X.copy_(uniform_complex(rng, (n, n)))
    row = decomposition.vectors[0, :].reshape(n, 1)
    x.X.copy_(row)
    y.X.copy_(decomposition.values[0] * row)

    loss = quadratic(y, matmul(a, x))
    return params, loss


def fit_linear_model(
    decomposition: EigenDecomposition,
    rng: np.random.Generator,
    learning_rate: float = 0.3,
    iterations: int = 128,
    callback: Callable[[TracePoint], None] | None = None,
) -> LinearFit:
    """
    Train only A in Y ≈ A·X with clipped gradient descent.

    Args:
        decomposition: Source of the X and Y seed values.
        rng: Generator for the initial A.
        learning_rate: Fixed real step size.
        iterations: Number of steps.
        callback: Called with each TracePoint as it is produced.
    """
    params, loss = build_linear_model(decomposition, rng)
    optimizer = GradientDescent(
        loss,
        params,
        trainable=[params.get("A")],
        learning_rate=learning_rate,
        iterations=iterations,
    )
    trace = optimizer.run(callback=callback)
    return LinearFit(
        parameters=params,
        loss=loss,
        trace=trace,
        final_cost=abs(evaluate(loss)),
    )


def run_pipeline(
    matrix,
    seed: int = 1,
    neural: bool = False,
    learning_rate: float = 0.3,
    iterations: int = 128,
    k: int = 2,
    callback: Callable[[TracePoint], None] | None = None,
    on_decomposition: Callable[[EigenDecomposition], None] | None = None,
) -> PipelineResult:
    """
    Run the whole pipeline on one real square matrix.

    Args:
        matrix: Real N×N matrix, N >= 2.
        seed: Seed for the generator used by the linear fit.
        neural: If True, also fit the complex linear model.
        learning_rate: Step size for the fit.
        iterations: Number of fit iterations.
        k: Number of principal components to project onto.
        callback: Per-iteration hook for the fit.
        on_decomposition: Called once with the eigendecomposition, before the fit.

    Raises:
        NumericalFailure: If the eigendecomposition fails.
        RankDeficiency: If the eigenvector geometry has no variance.
        DimensionError: If k exceeds the number of components.
    """
    m = as_matrix(matrix)
    decomposition = decompose(m)
    if on_decomposition is not None:
        on_decomposition(decomposition)

    fit = None
    if neural:
        rng = np.random.default_rng(seed)
        fit = fit_linear_model(
            decomposition,
            rng,
            learning_rate=learning_rate,
            iterations=iterations,
            callback=callback,
        )

    ranks = decomposition.vectors.real.contiguous()
    components = fit_pca(ranks)
    points = project(ranks, components, k)

    return PipelineResult(
        matrix=m,
        decomposition=decomposition,
        components=components,
        points=points,
        fit=fit,
    )
