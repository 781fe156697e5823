"""Preconditioners approximating S^{-1} on tangent vectors."""

import logging

import numpy as np
import scipy.sparse as sp
from abc import ABC, abstractmethod
from typing import Optional
from scipy.sparse.linalg import spilu

from ..exceptions import ConfigurationError, FactorizationError
from ..models.settings import PreconditionerType


logger = logging.getLogger(__name__)


class Preconditioner(ABC):
    """Approximate solve with S, applied to ambient r x N matrices.

    The result is not tangent; callers re-project it onto T_Y(D).
    """

    kind: PreconditionerType

    @abstractmethod
    def apply(self, dotY: np.ndarray) -> np.ndarray:
        """Approximate dotY * S^{-1} for an r x N matrix dotY."""
        pass


class IdentityPreconditioner(Preconditioner):
    """No preconditioning."""

    kind = PreconditionerType.NONE

    def apply(self, dotY: np.ndarray) -> np.ndarray:
        return dotY.copy()


class JacobiPreconditioner(Preconditioner):
    """Diagonal (Jacobi) preconditioner built from diag(S)."""

    kind = PreconditionerType.JACOBI

    def __init__(self, S: sp.spmatrix):
        """Cache the inverse diagonal of S.

        Args:
            S: Sparse symmetric matrix whose diagonal approximates S

        Raises:
            ConfigurationError: If a diagonal entry is not strictly positive
        """
        diagonal = np.asarray(S.diagonal(), dtype=float)
        if np.any(diagonal <= 0):
            raise ConfigurationError(
                "Jacobi preconditioner requires a strictly positive diagonal"
            )

        self.inverse_diagonal = 1.0 / diagonal
        self.matrix = sp.diags(self.inverse_diagonal, format="csr")

    def apply(self, dotY: np.ndarray) -> np.ndarray:
        return dotY * self.inverse_diagonal[np.newaxis, :]


class IncompleteCholeskyPreconditioner(Preconditioner):
    """Incomplete factorization of the regularized surrogate S + shift * I.

    S is only positive semidefinite, so a diagonal shift proportional to its
    largest diagonal entry is added before factoring.
    """

    kind = PreconditionerType.INCOMPLETE_CHOLESKY

    def __init__(
        self,
        S: sp.spmatrix,
        shift: float = 1e-6,
        drop_tolerance: float = 1e-4,
        fill_factor: float = 10.0
    ):
        """Factor the shifted surrogate.

        Args:
            S: Sparse symmetric positive semidefinite matrix
            shift: Diagonal shift relative to max(diag(S))
            drop_tolerance: Drop tolerance of the incomplete factorization
            fill_factor: Upper bound on fill-in ratio

        Raises:
            FactorizationError: If the factorization breaks down
        """
        n = S.shape[0]
        regularization = shift * float(np.max(np.abs(S.diagonal())))
        A = (S + regularization * sp.identity(n, format="csr")).tocsc()

        try:
            self.factor = spilu(
                A,
                drop_tol=drop_tolerance,
                fill_factor=fill_factor,
                permc_spec="MMD_AT_PLUS_A",
                diag_pivot_thresh=0.0,
                options=dict(SymmetricMode=True),
            )
        except RuntimeError as e:
            raise FactorizationError(f"Incomplete Cholesky factorization failed: {e}") from e

        pivots = self.factor.U.diagonal()
        if not np.all(np.isfinite(pivots)) or np.any(pivots <= 0):
            raise FactorizationError(
                "Incomplete Cholesky factorization broke down (non-positive pivot)"
            )

        self.shift = regularization

    def apply(self, dotY: np.ndarray) -> np.ndarray:
        return self.factor.solve(np.ascontiguousarray(dotY.T)).T


def build_preconditioner(
    kind: PreconditionerType,
    S: sp.spmatrix,
    shift: float = 1e-6,
    drop_tolerance: float = 1e-4,
    fill_factor: float = 10.0,
    fallback: Optional[PreconditionerType] = PreconditionerType.JACOBI
) -> Preconditioner:
    """Construct the requested preconditioner.

    If an incomplete Cholesky factorization breaks down and a fallback is
    given, the fallback preconditioner is built instead.

    Args:
        kind: Requested preconditioner
        S: Surrogate of the data matrix
        shift: Relative diagonal shift for the incomplete factorization
        drop_tolerance: Drop tolerance for the incomplete factorization
        fill_factor: Fill ratio bound for the incomplete factorization
        fallback: Preconditioner to use after a breakdown, or None to raise

    Returns:
        Preconditioner
    """
    if kind == PreconditionerType.NONE:
        return IdentityPreconditioner()

    if kind == PreconditionerType.JACOBI:
        return JacobiPreconditioner(S)

    if kind == PreconditionerType.INCOMPLETE_CHOLESKY:
        try:
            return IncompleteCholeskyPreconditioner(S, shift, drop_tolerance, fill_factor)
        except FactorizationError as e:
            if fallback is None or fallback == PreconditionerType.INCOMPLETE_CHOLESKY:
                raise
            logger.warning(f"{e}; falling back to {fallback.value} preconditioner")
            return build_preconditioner(fallback, S, fallback=None)

    raise ConfigurationError(f"Unknown preconditioner: {kind}")
