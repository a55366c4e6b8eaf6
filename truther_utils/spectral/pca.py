"""
PCA: principal components of a real data matrix and projection onto them.

Components are the eigenvectors of the mean-centred sample covariance of the
data, ordered by decreasing explained variance.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import torch

from truther_utils.spectral.errors import DimensionError, RankDeficiency


@dataclass
class PrincipalComponents:
    """
    Fitted principal components.

    Attributes:
        vectors: Orthonormal directions as columns, shape (features, features).
        explained_variance: Variance along each direction, decreasing.
        mean: Column means of the fitted data.
    """
    vectors: torch.Tensor
    explained_variance: torch.Tensor
    mean: torch.Tensor

    @property
    def num_components(self) -> int:
        return self.vectors.shape[1]

    def explained_variance_ratio(self) -> torch.Tensor:
        total = self.explained_variance.sum()
        return self.explained_variance / total


def _as_data(data) -> torch.Tensor:
    if isinstance(data, torch.Tensor):
        tensor = data.detach().to(dtype=torch.float64, device="cpu")
    else:
        tensor = torch.as_tensor(np.asarray(data, dtype=np.float64))
    if tensor.dim() == 1:
        tensor = tensor.unsqueeze(0)
    return tensor


def fit_pca(
    data,
    epsilon: float = 1e-12,
) -> PrincipalComponents:
    """
    Fit principal components of a real data matrix.

    Args:
        data: Real matrix of shape (samples, features).
        epsilon: Total variance at or below epsilon · max|data|² is treated as zero.

    Returns:
        PrincipalComponents with one direction per feature.

    Raises:
        RankDeficiency: With fewer than 2 rows, non-finite entries, or no variance.
    """
    x = _as_data(data)
    if x.dim() != 2:
        raise RankDeficiency(f"expected a 2-D data matrix, got shape {tuple(x.shape)}")

    n, _ = x.shape
    if n < 2:
        raise RankDeficiency(f"need at least 2 rows to estimate a covariance, got {n}")
    if not torch.isfinite(x).all():
        raise RankDeficiency("data contains NaN or infinite entries")

    mean = x.mean(dim=0)
    centred = x - mean
    cov = (centred.T @ centred) / (n - 1)

    # Symmetric, so eigh; eigenvalues come back ascending
    eigenvalues, eigenvectors = torch.linalg.eigh(cov)
    eigenvalues = eigenvalues.flip(0)
    eigenvectors = eigenvectors.flip(1)

    # Threshold scales with the largest entry
    scale = x.abs().max().item() ** 2
    if scale == 0.0 or eigenvalues.sum().item() <= epsilon * scale:
        raise RankDeficiency("covariance matrix has zero variance in every direction")

    # Round-off can leave tiny negative variances
    eigenvalues = eigenvalues.clamp(min=0.0)

    return PrincipalComponents(
        vectors=eigenvectors,
        explained_variance=eigenvalues,
        mean=mean,
    )


def project(
    data,
    components: PrincipalComponents,
    k: int,
) -> torch.Tensor:
    """
    Project rows of data onto the top-k principal directions.

    The map is linear: data · vectors[:, :k], with no centring.

    Args:
        data: Real matrix of shape (rows, features), or a single row.
        components: Fitted components.
        k: Number of leading components to keep.

    Returns:
        Tensor of shape (rows, k).

    Raises:
        DimensionError: If k is out of range or the feature count does not match.
    """
    if k < 1 or k > components.num_components:
        raise DimensionError(
            f"k={k} must be between 1 and the number of components ({components.num_components})"
        )

    x = _as_data(data)
    if x.dim() != 2 or x.shape[1] != components.vectors.shape[0]:
        raise DimensionError(
            f"data has shape {tuple(x.shape)}, expected (*, {components.vectors.shape[0]})"
        )

    return x @ components.vectors[:, :k]
