"""
Eigendecomposition of a real square matrix and the complex geometry derived from it.

Factorizes an N×N real matrix (typically a graph adjacency matrix) into N
complex eigenvalue/right-eigenvector pairs and exposes the magnitude and phase
of every eigenvalue and eigenvector component.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
import torch

from truther_utils.spectral.errors import NumericalFailure


# 5-node reference graph: two pairs of structurally identical nodes plus a hub
# with a self loop.
REFERENCE_ADJACENCY = [
    [0, 1, 0, 1, 1],
    [1, 0, 1, 0, 1],
    [0, 1, 0, 1, 1],
    [1, 0, 1, 0, 1],
    [1, 1, 1, 1, 1],
]


def as_matrix(matrix) -> torch.Tensor:
    """
    Convert a nested list, numpy array or tensor into a float64 square matrix.

    Args:
        matrix: Real N×N matrix in any array-like form.

    Returns:
        Tensor of shape (N, N) and dtype float64.

    Raises:
        NumericalFailure: If the input is not a finite real square matrix with N >= 2.
    """
    if isinstance(matrix, torch.Tensor):
        if matrix.is_complex():
            raise NumericalFailure("expected a real matrix, got a complex tensor")
        tensor = matrix.detach().to(dtype=torch.float64, device="cpu")
    else:
        array = np.asarray(matrix)
        if np.iscomplexobj(array):
            raise NumericalFailure("expected a real matrix, got complex values")
        tensor = torch.as_tensor(array.astype(np.float64))

    if tensor.dim() != 2 or tensor.shape[0] != tensor.shape[1]:
        raise NumericalFailure(f"expected a square matrix, got shape {tuple(tensor.shape)}")
    if tensor.shape[0] < 2:
        raise NumericalFailure(f"expected at least a 2x2 matrix, got {tuple(tensor.shape)}")
    if not torch.isfinite(tensor).all():
        raise NumericalFailure("matrix contains NaN or infinite entries")
    return tensor


def magnitude(z: torch.Tensor) -> torch.Tensor:
    """Elementwise modulus sqrt(re² + im²)."""
    return torch.abs(z)


def phase(z: torch.Tensor) -> torch.Tensor:
    """Elementwise argument atan2(im, re), in (-π, π]."""
    angle = torch.atan2(z.imag, z.real)
    # A negative real part with imag == -0.0 gives exactly -π
    return torch.where(angle == -math.pi, torch.full_like(angle, math.pi), angle)


@dataclass
class EigenDecomposition:
    """Eigenvalues and right eigenvectors of a real square matrix.

    `vectors[:, i]` is the unit-length eigenvector for `values[i]`. The order is
    whatever the solver returns; nothing is sorted.
    """
    values: torch.Tensor
    vectors: torch.Tensor

    @property
    def size(self) -> int:
        return self.values.shape[0]

    def pairs(self) -> list[tuple[complex, torch.Tensor]]:
        """(eigenvalue, eigenvector column) pairs in solver order."""
        return [(complex(self.values[i].item()), self.vectors[:, i]) for i in range(self.size)]

    def value_geometry(self) -> tuple[torch.Tensor, torch.Tensor]:
        """Magnitude and phase of every eigenvalue."""
        return magnitude(self.values), phase(self.values)

    def vector_geometry(self) -> tuple[torch.Tensor, torch.Tensor]:
        """Magnitude and phase of every eigenvector component, both N×N."""
        return magnitude(self.vectors), phase(self.vectors)

    def residual(self, matrix) -> torch.Tensor:
        """
        Per-pair residual ||M·v - λ·v|| for checking the factorization.

        Args:
            matrix: The matrix that was decomposed.

        Returns:
            Real tensor of shape (N,).
        """
        m = as_matrix(matrix).to(torch.complex128)
        lhs = m @ self.vectors
        rhs = self.vectors * self.values.unsqueeze(0)
        return torch.linalg.norm(lhs - rhs, dim=0)


def decompose(matrix) -> EigenDecomposition:
    """
    Factorize a real square matrix into complex eigenpairs.

    Uses the right-eigenvector convention M·v = λ·v. Eigenvectors keep the
    solver's unit-length normalization and order.

    Args:
        matrix: Real N×N matrix, N >= 2.

    Returns:
        EigenDecomposition with N eigenvalues and an N×N eigenvector matrix.

    Raises:
        NumericalFailure: If the input is invalid or the factorization fails.
    """
    m = as_matrix(matrix)

    try:
        values, vectors = torch.linalg.eig(m)
    except torch.linalg.LinAlgError as e:
        raise NumericalFailure(f"eigendecomposition failed: {e}") from e

    if not (torch.isfinite(torch.view_as_real(values)).all() and torch.isfinite(torch.view_as_real(vectors)).all()):
        raise NumericalFailure("eigendecomposition produced non-finite values")

    return EigenDecomposition(
        values=values.to(torch.complex128),
        vectors=vectors.to(torch.complex128),
    )
