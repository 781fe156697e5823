"""Rotation and SE(d) helpers in arbitrary dimension d."""

import numpy as np
from typing import Optional, Tuple


def project_to_SOd(M: np.ndarray) -> np.ndarray:
    """Project a square matrix onto the nearest rotation in Frobenius norm.

    Args:
        M: d x d matrix

    Returns:
        d x d rotation matrix R with det(R) = +1
    """
    if M.ndim != 2 or M.shape[0] != M.shape[1]:
        raise ValueError(f"M must be a square matrix, got shape {M.shape}")

    U, _, Vt = np.linalg.svd(M)
    # Flip the last singular direction if needed to land in SO(d)
    if np.linalg.det(U @ Vt) < 0:
        U = U.copy()
        U[:, -1] = -U[:, -1]
    return U @ Vt


def project_to_stiefel(M: np.ndarray) -> np.ndarray:
    """Orthonormal polar factor of a p x k matrix (p >= k)."""
    U, _, Vt = np.linalg.svd(M, full_matrices=False)
    return U @ Vt


def random_rotation(d: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Sample a rotation uniformly (Haar measure) from SO(d).

    Args:
        d: Dimension
        rng: Random generator

    Returns:
        d x d rotation matrix
    """
    rng = rng if rng is not None else np.random.default_rng()

    Q, R = np.linalg.qr(rng.standard_normal((d, d)))
    Q = Q * np.sign(np.diag(R))
    if np.linalg.det(Q) < 0:
        Q[:, 0] = -Q[:, 0]
    return Q


def rotation_angle(R: np.ndarray) -> float:
    """Geodesic angle of a rotation: ||log(R)||_F / sqrt(2)."""
    d = R.shape[0]
    if d == 2:
        return float(abs(np.arctan2(R[1, 0], R[0, 0])))

    eigenvalues = np.linalg.eigvals(R)
    angles = np.abs(np.angle(eigenvalues))
    return float(np.sqrt(np.sum(angles**2) / 2.0))


def planar_rotation(theta: float) -> np.ndarray:
    """2 x 2 rotation by angle theta."""
    c, s = np.cos(theta), np.sin(theta)
    return np.array([[c, -s], [s, c]])


def compose(R1: np.ndarray, t1: np.ndarray, R2: np.ndarray, t2: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Compose two SE(d) transformations: T1 * T2."""
    R = R1 @ R2
    t = R1 @ t2 + t1
    return R, t


def invert(R: np.ndarray, t: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Invert SE(d) transformation."""
    R_inv = R.T
    t_inv = -R_inv @ t
    return R_inv, t_inv


def relative_transform(
    R_i: np.ndarray, t_i: np.ndarray, R_j: np.ndarray, t_j: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """Relative transform T_i^{-1} T_j taking pose i to pose j."""
    R_inv, t_inv = invert(R_i, t_i)
    return compose(R_inv, t_inv, R_j, t_j)
