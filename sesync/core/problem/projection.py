"""Orthogonal projection operator used to eliminate translations.

Given the weighted reduced incidence matrix B = Ared * Omega^(1/2), the
operator computes

    Pi X = X - B^T (B B^T)^{-1} B X

i.e. the orthogonal projection onto the complement of range(B^T).
"""

import logging

import numpy as np
import scipy.linalg
import scipy.sparse as sp
from abc import ABC, abstractmethod
from typing import Optional
from scipy.sparse.linalg import lsmr, splu

from ..exceptions import FactorizationError
from ..models.settings import ProjectionFactorization
from .data_matrices import TranslationData


logger = logging.getLogger(__name__)


class OrthogonalProjection(ABC):
    """Cached factorization of B applied as the projector Pi."""

    factorization: ProjectionFactorization

    def __init__(self, data: TranslationData):
        self.Ared_SqrtOmega = data.Ared_SqrtOmega
        self.SqrtOmega_AredT = data.SqrtOmega_AredT

    @abstractmethod
    def solve(self, X: np.ndarray) -> np.ndarray:
        """Least-squares coefficients Z minimizing ||B^T Z - X||_F."""
        pass

    def project(self, X: np.ndarray) -> np.ndarray:
        """Compute Pi X for an (m,) vector or (m, k) matrix X."""
        return X - self.SqrtOmega_AredT @ self.solve(X)


class CholeskyProjection(OrthogonalProjection):
    """Projection via a sparse Cholesky factorization of B B^T.

    SuperLU is run in symmetric mode (symmetric fill-reducing ordering, no
    off-diagonal pivoting) so that the factorization is the LDL^T form of a
    Cholesky factorization and its pivots are the entries of D.
    """

    factorization = ProjectionFactorization.CHOLESKY

    def __init__(self, data: TranslationData, pivot_tolerance: float = 1e-10):
        """Factor B B^T.

        Args:
            data: Weighted reduced incidence and translational matrices
            pivot_tolerance: Smallest admissible ratio of smallest to largest pivot

        Raises:
            FactorizationError: If B B^T is singular or ill-conditioned
        """
        super().__init__(data)

        gram = (self.Ared_SqrtOmega @ self.SqrtOmega_AredT).tocsc()

        try:
            self._factor = splu(
                gram,
                permc_spec="MMD_AT_PLUS_A",
                diag_pivot_thresh=0.0,
                options=dict(SymmetricMode=True),
            )
        except RuntimeError as e:
            raise FactorizationError(f"Cholesky factorization failed: {e}") from e

        pivots = self._factor.U.diagonal()
        largest = np.max(np.abs(pivots))
        smallest = np.min(pivots)
        if smallest <= pivot_tolerance * largest:
            raise FactorizationError(
                f"Cholesky factorization is ill-conditioned "
                f"(pivot ratio {smallest / largest:.3e} <= {pivot_tolerance:.1e})"
            )

        self.pivot_ratio = float(smallest / largest)

    def solve(self, X: np.ndarray) -> np.ndarray:
        return self._factor.solve(np.asarray(self.Ared_SqrtOmega @ X))


class QRProjection(OrthogonalProjection):
    """Projection via a rank-revealing (column-pivoted) QR factorization of B^T."""

    factorization = ProjectionFactorization.QR

    def __init__(self, data: TranslationData):
        super().__init__(data)

        B_T = self.SqrtOmega_AredT.toarray()
        Q, R, P = scipy.linalg.qr(B_T, mode="economic", pivoting=True)

        diagonal = np.abs(np.diag(R))
        if diagonal.size == 0 or diagonal[0] == 0.0:
            raise FactorizationError("QR factorization of an all-zero incidence matrix")

        # Numerical rank, as in numpy.linalg.matrix_rank
        threshold = diagonal[0] * max(B_T.shape) * np.finfo(float).eps
        self.rank = int(np.sum(diagonal > threshold))
        if self.rank < B_T.shape[1]:
            logger.debug(f"QR projection is rank deficient: rank {self.rank} < {B_T.shape[1]}")

        self._Q = Q[:, :self.rank]
        self._R = R[:self.rank, :self.rank]
        self._permutation = P[:self.rank]
        self._num_columns = B_T.shape[1]

    def solve(self, X: np.ndarray) -> np.ndarray:
        # Basic solution: coefficients of the dependent columns are zero
        Z = np.zeros((self._num_columns,) + X.shape[1:])
        Z[self._permutation] = scipy.linalg.solve_triangular(self._R, self._Q.T @ X)
        return Z


class LeastSquaresProjection(OrthogonalProjection):
    """Projection via sparse iterative least squares (LSMR) on B^T.

    Each column of X is solved separately against the column-scaled sparse
    matrix B^T D, where D holds the inverse column norms of B^T. Nothing is
    densified, so memory stays O(nnz(B)).
    """

    factorization = ProjectionFactorization.LSMR

    def __init__(self, data: TranslationData, tolerance: float = 1e-12, max_iterations: Optional[int] = None):
        """Prepare the scaled least-squares operator.

        Args:
            data: Weighted reduced incidence and translational matrices
            tolerance: LSMR stopping tolerance (atol and btol)
            max_iterations: LSMR iteration cap per column; defaults to 10 * (n - 1)

        Raises:
            FactorizationError: If a column of B^T is identically zero
        """
        super().__init__(data)

        column_norms = np.sqrt(np.asarray(self.SqrtOmega_AredT.power(2).sum(axis=0)).ravel())
        if np.any(column_norms == 0.0):
            raise FactorizationError("Reduced incidence matrix has a pose without measurements")

        self._scaling = 1.0 / column_norms
        self._scaled = (self.SqrtOmega_AredT @ sp.diags(self._scaling)).tocsr()
        self.tolerance = tolerance
        self.max_iterations = max_iterations if max_iterations is not None else 10 * column_norms.size

    def _solve_column(self, x: np.ndarray) -> np.ndarray:
        result = lsmr(
            self._scaled,
            x,
            atol=self.tolerance,
            btol=self.tolerance,
            conlim=1e12,
            maxiter=self.max_iterations,
        )
        z, istop, iterations = result[0], result[1], result[2]
        if istop not in (0, 1, 2):
            logger.warning(f"LSMR stopped early (istop={istop}) after {iterations} iterations")
        return self._scaling * z

    def solve(self, X: np.ndarray) -> np.ndarray:
        if X.ndim == 1:
            return self._solve_column(X)
        return np.column_stack([self._solve_column(X[:, k]) for k in range(X.shape[1])])


def build_orthogonal_projection(
    data: TranslationData,
    use_cholesky: bool = True,
    pivot_tolerance: float = 1e-10,
    dense_qr_max_entries: int = 4_000_000,
    lsmr_tolerance: float = 1e-12
) -> OrthogonalProjection:
    """Build the projection operator, falling back to QR if Cholesky fails.

    The QR path uses a dense pivoted QR only while B^T has at most
    dense_qr_max_entries entries; larger problems use sparse LSMR solves.

    Args:
        data: Weighted reduced incidence and translational matrices
        use_cholesky: Try the Cholesky path first
        pivot_tolerance: Pivot ratio below which Cholesky is rejected
        dense_qr_max_entries: Largest m * (n - 1) handled by the dense QR
        lsmr_tolerance: Stopping tolerance of the sparse least-squares path

    Returns:
        Projection operator with its factorization computed
    """
    if use_cholesky:
        try:
            projection = CholeskyProjection(data, pivot_tolerance)
            logger.debug(f"Using Cholesky projection (pivot ratio {projection.pivot_ratio:.3e})")
            return projection
        except FactorizationError as e:
            logger.warning(f"{e}; falling back to QR-based projection")

    m, num_columns = data.SqrtOmega_AredT.shape
    if m * num_columns <= dense_qr_max_entries:
        return QRProjection(data)

    logger.debug(f"B^T has {m} x {num_columns} entries; using sparse LSMR projection")
    return LeastSquaresProjection(data, tolerance=lsmr_tolerance)
