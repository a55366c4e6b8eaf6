"""
Tests for the eigendecomposition and PCA stages.

Tests include:
- Eigenpairs: count, M·v = λ·v, unit-length vectors, derived magnitude/phase
- Failure modes: non-square, too small, non-finite input
- PCA: orthonormal components, variance ordering, projection linearity
"""

import math

import numpy as np
import pytest
import torch

from truther_utils.spectral import (
    REFERENCE_ADJACENCY,
    DimensionError,
    NumericalFailure,
    RankDeficiency,
    decompose,
    fit_pca,
    magnitude,
    phase,
    project,
)


# ============================================================================
# Eigendecomposition Tests
# ============================================================================

def test_reference_adjacency_eigenpairs():
    """Every eigenpair of the reference matrix satisfies M·v = λ·v."""
    dec = decompose(REFERENCE_ADJACENCY)

    assert dec.values.shape == (5,)
    assert dec.vectors.shape == (5, 5)
    assert len(dec.pairs()) == 5
    assert torch.all(dec.residual(REFERENCE_ADJACENCY) < 1e-10)


def test_reference_adjacency_spectrum_matches_numpy():
    """Eigenvalues agree with numpy up to ordering."""
    dec = decompose(REFERENCE_ADJACENCY)
    expected = np.sort_complex(np.linalg.eigvals(np.array(REFERENCE_ADJACENCY, dtype=float)))
    actual = np.sort_complex(dec.values.numpy())
    np.testing.assert_allclose(actual, expected, atol=1e-10)


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
@pytest.mark.parametrize("n", [2, 3, 6, 9])
def test_random_matrix_eigenpairs(seed, n):
    """Random non-symmetric matrices give N unit-length right eigenvectors."""
    rng = np.random.default_rng(seed)
    m = rng.normal(size=(n, n))
    dec = decompose(m)

    assert dec.size == n
    scale = np.linalg.norm(m, 2)
    assert torch.all(dec.residual(m) < 1e-9 * max(scale, 1.0))

    norms = torch.linalg.norm(dec.vectors, dim=0)
    assert torch.allclose(norms, torch.ones(n, dtype=torch.float64), atol=1e-10)


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_magnitude_and_phase_ranges(seed):
    """Magnitudes are non-negative and phases lie in (-π, π]."""
    rng = np.random.default_rng(seed)
    dec = decompose(rng.normal(size=(7, 7)))

    for mags, phases in (dec.value_geometry(), dec.vector_geometry()):
        assert torch.all(mags >= 0)
        assert torch.all(phases > -math.pi)
        assert torch.all(phases <= math.pi)


def test_phase_maps_negative_zero_imaginary_to_pi():
    """-1 - 0j sits on the branch cut and must report +π."""
    z = torch.complex(
        torch.tensor([-1.0, -1.0, 1.0, 0.0], dtype=torch.float64),
        torch.tensor([-0.0, 0.0, 1.0, -2.0], dtype=torch.float64),
    )

    assert phase(z).tolist() == pytest.approx([math.pi, math.pi, math.pi / 4, -math.pi / 2])
    assert magnitude(z).tolist() == pytest.approx([1.0, 1.0, math.sqrt(2), 2.0])


def test_rotation_matrix_has_complex_pair():
    """A 90° rotation has eigenvalues ±i."""
    dec = decompose([[0.0, -1.0], [1.0, 0.0]])
    values = sorted(dec.values.tolist(), key=lambda z: z.imag)

    assert values[0] == pytest.approx(-1j)
    assert values[1] == pytest.approx(1j)
    mags, phases = dec.value_geometry()
    assert torch.allclose(mags, torch.ones(2, dtype=torch.float64))
    assert sorted(phases.tolist()) == pytest.approx([-math.pi / 2, math.pi / 2])


def test_decompose_rejects_non_square():
    with pytest.raises(NumericalFailure):
        decompose(np.ones((3, 4)))


def test_decompose_rejects_1x1():
    with pytest.raises(NumericalFailure):
        decompose([[2.0]])


def test_decompose_rejects_non_finite():
    m = np.eye(3)
    m[1, 2] = np.nan
    with pytest.raises(NumericalFailure):
        decompose(m)


def test_decompose_accepts_tensor_input():
    m = torch.tensor(REFERENCE_ADJACENCY, dtype=torch.float32)
    dec = decompose(m)
    assert dec.values.dtype == torch.complex128
    assert torch.all(dec.residual(m) < 1e-10)


# ============================================================================
# PCA Tests
# ============================================================================

def test_pca_components_orthonormal_and_ordered():
    """Components are orthonormal and variances are sorted descending."""
    rng = np.random.default_rng(0)
    data = rng.normal(size=(40, 5)) @ rng.normal(size=(5, 5))
    pc = fit_pca(data)

    gram = pc.vectors.T @ pc.vectors
    assert torch.allclose(gram, torch.eye(5, dtype=torch.float64), atol=1e-10)

    var = pc.explained_variance
    assert torch.all(var[:-1] >= var[1:])
    assert torch.all(var >= 0)


def test_pca_variance_matches_covariance_eigenvalues():
    rng = np.random.default_rng(1)
    data = rng.normal(size=(30, 4))
    pc = fit_pca(data)

    expected = np.sort(np.linalg.eigvalsh(np.cov(data, rowvar=False)))[::-1]
    np.testing.assert_allclose(pc.explained_variance.numpy(), expected, atol=1e-10)
    assert pc.explained_variance_ratio().sum().item() == pytest.approx(1.0)


def test_pca_first_component_follows_dominant_direction():
    """Points spread along (1, 1) give a first component parallel to it."""
    t = np.linspace(-1.0, 1.0, 21)
    data = np.stack([t, t], axis=1) + np.array([[0.01, -0.01]] * 21) * np.sign(t)[:, None]
    pc = fit_pca(data)

    first = pc.vectors[:, 0].numpy()
    assert abs(abs(first @ np.array([1.0, 1.0]) / math.sqrt(2)) - 1.0) < 1e-3


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_projection_is_linear(seed):
    """Project(a·x1 + x2) = a·Project(x1) + Project(x2)."""
    rng = np.random.default_rng(seed)
    pc = fit_pca(rng.normal(size=(10, 5)))

    x1 = rng.normal(size=(3, 5))
    x2 = rng.normal(size=(3, 5))
    a = rng.normal()

    lhs = project(a * x1 + x2, pc, 2)
    rhs = a * project(x1, pc, 2) + project(x2, pc, 2)
    assert torch.allclose(lhs, rhs, atol=1e-12)


def test_projection_shape_and_values():
    rng = np.random.default_rng(3)
    data = rng.normal(size=(6, 4))
    pc = fit_pca(data)

    points = project(data, pc, 3)
    assert points.shape == (6, 3)
    np.testing.assert_allclose(points.numpy(), data @ pc.vectors[:, :3].numpy(), atol=1e-12)


def test_projection_single_row():
    pc = fit_pca(np.random.default_rng(4).normal(size=(8, 3)))
    assert project(np.ones(3), pc, 2).shape == (1, 2)


def test_projection_rejects_bad_k():
    pc = fit_pca(np.random.default_rng(5).normal(size=(8, 3)))
    with pytest.raises(DimensionError):
        project(np.zeros((2, 3)), pc, 4)
    with pytest.raises(DimensionError):
        project(np.zeros((2, 3)), pc, 0)


def test_projection_rejects_feature_mismatch():
    pc = fit_pca(np.random.default_rng(6).normal(size=(8, 3)))
    with pytest.raises(DimensionError):
        project(np.zeros((2, 4)), pc, 2)


def test_pca_rejects_single_row():
    with pytest.raises(RankDeficiency):
        fit_pca(np.ones((1, 4)))


def test_pca_rejects_constant_data():
    with pytest.raises(RankDeficiency):
        fit_pca(np.full((5, 3), 2.5))


def test_rank_deficiency_is_numerical_failure():
    """Callers catching NumericalFailure also see PCA degeneracy."""
    with pytest.raises(NumericalFailure):
        fit_pca(np.zeros((4, 4)))


def test_pca_of_reference_eigenvectors():
    """The reference eigenvector geometry has a usable 2-D projection."""
    dec = decompose(REFERENCE_ADJACENCY)
    ranks = dec.vectors.real
    pc = fit_pca(ranks)
    points = project(ranks, pc, 2)

    assert points.shape == (5, 2)
    assert torch.isfinite(points).all()


@pytest.mark.parametrize("scale", [1e-7, 1e-3, 1e5])
def test_pca_accepts_small_and_large_scale_data(scale):
    """Variance threshold follows the data scale, so rescaled data fits the same way."""
    data = np.random.default_rng(0).normal(size=(10, 3))
    unit = fit_pca(data)
    scaled = fit_pca(data * scale)

    np.testing.assert_allclose(
        scaled.explained_variance.numpy(),
        unit.explained_variance.numpy() * scale ** 2,
        rtol=1e-8,
    )


def test_pca_rejects_constant_small_scale_data():
    with pytest.raises(RankDeficiency):
        fit_pca(np.full((6, 2), 3e-9))
