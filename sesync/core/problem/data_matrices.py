"""Assembly of the sparse data matrices describing an SE-Sync problem."""

import numpy as np
import scipy.sparse as sp
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from scipy.sparse.csgraph import connected_components

from ..exceptions import ConfigurationError
from ..models.measurements import RelativePoseMeasurement


@dataclass(frozen=True)
class TranslationData:
    """Weighted reduced incidence and translational data matrices.

    Pose 0 is the reference pose whose row is removed from the incidence
    matrix, so that Ared_SqrtOmega has full row rank on a connected graph.
    """

    Ared_SqrtOmega: sp.csr_matrix
    SqrtOmega_AredT: sp.csr_matrix
    SqrtOmega_T: sp.csr_matrix
    TT_SqrtOmega: sp.csr_matrix


def validate_measurements(
    measurements: Sequence[RelativePoseMeasurement],
    num_poses: Optional[int] = None
) -> Tuple[int, int]:
    """Check a measurement list and infer the problem size.

    Args:
        measurements: Relative pose measurements
        num_poses: Declared number of poses; inferred from the indices if None

    Returns:
        Tuple of (n, d)
    """
    if len(measurements) == 0:
        raise ConfigurationError("Measurement list is empty")

    d = measurements[0].dimension
    max_index = 0
    for k, measurement in enumerate(measurements):
        if measurement.dimension != d:
            raise ConfigurationError(
                f"Measurement {k} has dimension {measurement.dimension}, expected {d}"
            )
        max_index = max(max_index, measurement.i, measurement.j)

    if num_poses is None:
        n = max_index + 1
    else:
        n = num_poses
        if max_index >= n:
            raise ConfigurationError(
                f"Pose index {max_index} is out of range for {n} poses"
            )

    # Every pose must be reachable, otherwise translations and the global
    # rotation of each component are undetermined
    A = construct_oriented_incidence_matrix(measurements, n)
    adjacency = abs(A) @ abs(A).T
    num_components, _ = connected_components(adjacency, directed=False)
    if num_components != 1:
        raise ConfigurationError(
            f"Measurement graph must be connected, found {num_components} components"
        )

    return n, d


def construct_oriented_incidence_matrix(
    measurements: Sequence[RelativePoseMeasurement],
    n: int
) -> sp.csr_matrix:
    """Oriented incidence matrix A (n x m).

    Column e has -1 at the tail pose i and +1 at the head pose j of
    measurement e.
    """
    m = len(measurements)
    rows = np.empty(2 * m, dtype=int)
    cols = np.empty(2 * m, dtype=int)
    data = np.empty(2 * m)

    for e, measurement in enumerate(measurements):
        rows[2 * e:2 * e + 2] = (measurement.i, measurement.j)
        cols[2 * e:2 * e + 2] = e
        data[2 * e:2 * e + 2] = (-1.0, 1.0)

    return sp.csr_matrix((data, (rows, cols)), shape=(n, m))


def construct_rotational_connection_laplacian(
    measurements: Sequence[RelativePoseMeasurement],
    n: int,
    d: int
) -> sp.csr_matrix:
    """Rotational connection Laplacian L(G^rho) (dn x dn).

    For each measurement (i, j) with rotation R_ij and precision kappa:
    - kappa * I is added to the (i, i) and (j, j) blocks
    - -kappa * R_ij is added to the (i, j) block
    - -kappa * R_ij^T is added to the (j, i) block
    """
    rows: List[np.ndarray] = []
    cols: List[np.ndarray] = []
    data: List[np.ndarray] = []

    block_r, block_c = np.meshgrid(np.arange(d), np.arange(d), indexing="ij")
    identity = np.eye(d)

    for measurement in measurements:
        i, j = measurement.i, measurement.j
        kappa = measurement.kappa
        R = measurement.rotation()

        for (bi, bj, block) in (
            (i, i, kappa * identity),
            (j, j, kappa * identity),
            (i, j, -kappa * R),
            (j, i, -kappa * R.T),
        ):
            rows.append((bi * d + block_r).ravel())
            cols.append((bj * d + block_c).ravel())
            data.append(block.ravel())

    # Duplicate entries are summed on conversion
    return sp.csr_matrix(
        (np.concatenate(data), (np.concatenate(rows), np.concatenate(cols))),
        shape=(d * n, d * n)
    )


def construct_translational_weight_matrix(
    measurements: Sequence[RelativePoseMeasurement]
) -> sp.csr_matrix:
    """Diagonal matrix Omega of translational precisions (m x m)."""
    return sp.diags([measurement.tau for measurement in measurements], format="csr")


def construct_translational_data_matrix(
    measurements: Sequence[RelativePoseMeasurement],
    n: int,
    d: int
) -> sp.csr_matrix:
    """Translational data matrix T (m x dn).

    Row e holds -t_ij^T in the column block of the tail pose i.
    """
    m = len(measurements)
    rows = np.repeat(np.arange(m), d)
    cols = np.empty(m * d, dtype=int)
    data = np.empty(m * d)

    for e, measurement in enumerate(measurements):
        cols[e * d:(e + 1) * d] = measurement.i * d + np.arange(d)
        data[e * d:(e + 1) * d] = -measurement.translation()

    return sp.csr_matrix((data, (rows, cols)), shape=(m, d * n))


def construct_translation_data(
    measurements: Sequence[RelativePoseMeasurement],
    A: sp.csr_matrix,
    n: int,
    d: int
) -> TranslationData:
    """Build the weighted matrices used to eliminate the translations."""
    sqrt_omega = sp.diags(
        np.sqrt([measurement.tau for measurement in measurements]), format="csr"
    )

    # Drop the reference pose's row
    Ared = A[1:, :]

    Ared_SqrtOmega = (Ared @ sqrt_omega).tocsr()
    SqrtOmega_T = (sqrt_omega @ construct_translational_data_matrix(measurements, n, d)).tocsr()

    return TranslationData(
        Ared_SqrtOmega=Ared_SqrtOmega,
        SqrtOmega_AredT=Ared_SqrtOmega.T.tocsr(),
        SqrtOmega_T=SqrtOmega_T,
        TT_SqrtOmega=SqrtOmega_T.T.tocsr(),
    )


def construct_quadratic_form_data_matrix(
    measurements: Sequence[RelativePoseMeasurement],
    n: int,
    d: int
) -> sp.csr_matrix:
    """Data matrix M of the explicit formulation ((n + dn) x (n + dn)).

    With X = [t | R] the objective is tr(X M X^T), where

        M = [[ A Omega A^T,    A Omega T              ],
             [ T^T Omega A^T,  L(G^rho) + T^T Omega T ]]
    """
    A = construct_oriented_incidence_matrix(measurements, n)
    Omega = construct_translational_weight_matrix(measurements)
    T = construct_translational_data_matrix(measurements, n, d)
    LGrho = construct_rotational_connection_laplacian(measurements, n, d)

    L_tau = A @ Omega @ A.T
    V = A @ Omega @ T
    Sigma = T.T @ Omega @ T

    M = sp.bmat([[L_tau, V], [V.T, LGrho + Sigma]], format="csr")
    M.sum_duplicates()
    M.eliminate_zeros()
    return M
