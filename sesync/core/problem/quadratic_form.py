"""Quadratic forms S defining the objective F(Y) = tr(Y S Y^T).

Each formulation is a separate class that owns exactly the data matrices
and solve path it needs.
"""

import numpy as np
import scipy.sparse as sp
from abc import ABC, abstractmethod

from ..models.settings import Formulation, ProjectionFactorization
from .projection import OrthogonalProjection


class QuadraticForm(ABC):
    """Symmetric positive semidefinite data matrix S, applied matrix-free."""

    formulation: Formulation

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of rows (and columns) of S."""
        pass

    @property
    @abstractmethod
    def num_translations(self) -> int:
        """Number of leading translation coordinates in the stacked unknowns."""
        pass

    @abstractmethod
    def product(self, X: np.ndarray) -> np.ndarray:
        """Compute S X for an (N,) vector or (N, k) matrix X."""
        pass

    @abstractmethod
    def surrogate(self) -> sp.csr_matrix:
        """Sparse matrix approximating S, used to build preconditioners."""
        pass


class ImplicitQuadraticForm(QuadraticForm):
    """Translation-eliminated form Q = L(G^rho) + T^T Omega^(1/2) Pi Omega^(1/2) T."""

    formulation = Formulation.IMPLICIT

    def __init__(
        self,
        LGrho: sp.csr_matrix,
        SqrtOmega_T: sp.csr_matrix,
        TT_SqrtOmega: sp.csr_matrix,
        projection: OrthogonalProjection
    ):
        """Initialize implicit form.

        Args:
            LGrho: Rotational connection Laplacian (dn x dn)
            SqrtOmega_T: Weighted translational data matrix (m x dn)
            TT_SqrtOmega: Transpose of SqrtOmega_T, cached
            projection: Orthogonal projection operator Pi
        """
        self.LGrho = LGrho
        self.SqrtOmega_T = SqrtOmega_T
        self.TT_SqrtOmega = TT_SqrtOmega
        self.projection = projection

    @property
    def size(self) -> int:
        return self.LGrho.shape[0]

    @property
    def num_translations(self) -> int:
        return 0

    @property
    def projection_factorization(self) -> ProjectionFactorization:
        return self.projection.factorization

    def product(self, X: np.ndarray) -> np.ndarray:
        return self.LGrho @ X + self.TT_SqrtOmega @ self.projection.project(self.SqrtOmega_T @ X)

    def surrogate(self) -> sp.csr_matrix:
        return self.LGrho


class ExplicitQuadraticForm(QuadraticForm):
    """Joint rotation/translation form M over X = [t | R]."""

    formulation = Formulation.EXPLICIT

    def __init__(self, M: sp.csr_matrix, num_poses: int):
        self.M = M
        self._num_poses = num_poses

    @property
    def size(self) -> int:
        return self.M.shape[0]

    @property
    def num_translations(self) -> int:
        return self._num_poses

    def product(self, X: np.ndarray) -> np.ndarray:
        return self.M @ X

    def surrogate(self) -> sp.csr_matrix:
        return self.M
