"""
Spectral analysis of a graph adjacency matrix with a small complex linear fit.

Core components:
- decompose: Eigendecomposition into complex eigenvalues and right eigenvectors
- fit_pca / project: Principal components of real data and projection onto them
- ParameterSet / matmul / quadratic / gradient: Complex reverse-mode autodiff
  over a fixed three-node graph
- GradientDescent: Fixed-iteration descent with global gradient-norm clipping

Glue:
- pipeline: Matrix -> eigendecomposition -> PCA projection (-> linear fit)
- io: Console report, TensorBoard metrics, projected-points data file
- plotting: Cost and projection scatter plots
"""

from truther_utils.spectral.errors import (
    SpectralError,
    NumericalFailure,
    RankDeficiency,
    ShapeMismatch,
    DimensionError,
    GradientStateError,
)
from truther_utils.spectral.eigen import (
    REFERENCE_ADJACENCY,
    EigenDecomposition,
    decompose,
    magnitude,
    phase,
)
from truther_utils.spectral.pca import PrincipalComponents, fit_pca, project
from truther_utils.spectral.autodiff import (
    NodeKind,
    Parameter,
    MatMul,
    Quadratic,
    ParameterSet,
    matmul,
    quadratic,
    evaluate,
    gradient,
)
from truther_utils.spectral.optimizer import GradientDescent, OptimizerState, TracePoint

__all__ = [
    # Errors
    "SpectralError",
    "NumericalFailure",
    "RankDeficiency",
    "ShapeMismatch",
    "DimensionError",
    "GradientStateError",
    # Spectral analysis
    "REFERENCE_ADJACENCY",
    "EigenDecomposition",
    "decompose",
    "magnitude",
    "phase",
    # PCA
    "PrincipalComponents",
    "fit_pca",
    "project",
    # Autodiff
    "NodeKind",
    "Parameter",
    "MatMul",
    "Quadratic",
    "ParameterSet",
    "matmul",
    "quadratic",
    "evaluate",
    "gradient",
    # Optimizer
    "GradientDescent",
    "OptimizerState",
    "TracePoint",
]
