"""
Error kinds raised by the spectral pipeline.

Library code raises these and never exits the process; the runnable script
decides whether a failure aborts the run.
"""

from __future__ import annotations


class SpectralError(Exception):
    """Base class for every error raised by truther_utils.spectral."""


class NumericalFailure(SpectralError):
    """Eigendecomposition did not converge or produced unusable output."""


class RankDeficiency(NumericalFailure):
    """Covariance matrix is degenerate, so no principal components exist."""


class ShapeMismatch(SpectralError, ValueError):
    """Graph node operands have incompatible shapes."""


class DimensionError(SpectralError, ValueError):
    """Requested projection dimension does not fit the fitted components."""


class GradientStateError(SpectralError, RuntimeError):
    """Gradient buffers were not zeroed before a differentiation pass."""
