"""Chordal initialization, translation recovery and rounding."""

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import splu

from ..exceptions import FactorizationError
from ..math.rotations import project_to_SOd
from .data_matrices import TranslationData


def _factor_spd(A: sp.spmatrix, name: str):
    """Sparse symmetric-mode LU factorization of an SPD matrix."""
    try:
        return splu(
            A.tocsc(),
            permc_spec="MMD_AT_PLUS_A",
            diag_pivot_thresh=0.0,
            options=dict(SymmetricMode=True),
        )
    except RuntimeError as e:
        raise FactorizationError(f"Failed to factor {name}: {e}") from e


def chordal_initialization(LGrho: sp.csr_matrix, d: int) -> np.ndarray:
    """Chordal relaxation estimate of the rotations.

    Minimizes sum_ij kappa_ij ||R_j - R_i R_ij||_F^2 = tr(R L(G^rho) R^T) over
    unconstrained d x d blocks with R_0 fixed to the identity, then projects
    every block onto SO(d).

    Args:
        LGrho: Rotational connection Laplacian (dn x dn)
        d: Group dimension

    Returns:
        d x dn matrix of rotations [R_0, ..., R_{n-1}] with R_0 = I
    """
    n = LGrho.shape[0] // d
    R = np.zeros((d, d * n))
    R[:, :d] = np.eye(d)

    if n == 1:
        return R

    LGrho = LGrho.tocsr()
    L_reduced = LGrho[d:, d:]
    L_coupling = LGrho[d:, :d].toarray()

    # Stationarity: L_reduced R_red^T = -L_coupling * I
    factor = _factor_spd(L_reduced, "reduced rotational connection Laplacian")
    R[:, d:] = factor.solve(-L_coupling).T

    for i in range(1, n):
        R[:, i * d:(i + 1) * d] = project_to_SOd(R[:, i * d:(i + 1) * d])

    return R


def recover_translations(data: TranslationData, R: np.ndarray) -> np.ndarray:
    """Optimal translations for fixed rotations, with t_0 = 0.

    Solves min_t sum_ij tau_ij ||t_j - t_i - R_i t_ij||^2.

    Args:
        data: Weighted reduced incidence and translational matrices
        R: d x dn rotations

    Returns:
        d x n matrix of translations
    """
    d = R.shape[0]
    n = data.Ared_SqrtOmega.shape[0] + 1

    gram = data.Ared_SqrtOmega @ data.SqrtOmega_AredT
    rhs = -(data.Ared_SqrtOmega @ (data.SqrtOmega_T @ R.T))

    factor = _factor_spd(gram, "reduced translational Laplacian")

    t = np.zeros((d, n))
    t[:, 1:] = factor.solve(np.ascontiguousarray(rhs)).T
    return t


def round_rotations(Y: np.ndarray, d: int, offset: int = 0) -> np.ndarray:
    """Round a rank-r point to a d x N matrix with rotation blocks.

    The rank-d truncated SVD Sigma_d V_d^T of Y is taken; if fewer than half of
    its orientation blocks have positive determinant the whole matrix is
    reflected, and each block is then projected onto SO(d).

    Args:
        Y: r x N point of the relaxation
        d: Group dimension
        offset: Number of leading translation columns

    Returns:
        d x N matrix; its orientation blocks are rotations
    """
    _, sigmas, Vt = np.linalg.svd(Y, full_matrices=False)
    R = sigmas[:d, np.newaxis] * Vt[:d, :]

    n = (Y.shape[1] - offset) // d
    blocks = [R[:, offset + i * d:offset + (i + 1) * d] for i in range(n)]
    num_positive = sum(1 for block in blocks if np.linalg.det(block) > 0)

    if 2 * num_positive < n:
        R[d - 1, :] = -R[d - 1, :]

    for i in range(n):
        cols = slice(offset + i * d, offset + (i + 1) * d)
        R[:, cols] = project_to_SOd(R[:, cols])

    return R


def round_solution(Y: np.ndarray, d: int, offset: int, data: TranslationData) -> np.ndarray:
    """Round Y to feasible poses X = [t | R] of shape d x (n + dn).

    Translations are recomputed from the rounded rotations.
    """
    R = round_rotations(Y, d, offset)[:, offset:]
    t = recover_translations(data, R)
    return np.hstack([t, R])
