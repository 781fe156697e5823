"""Global optimality certification via the minimum eigenvalue of S - Lambda(Y).

If Y is a critical point of the rank-restricted problem, then S - Lambda(Y)
is positive semidefinite if and only if Y Y^T is a minimizer of the
semidefinite relaxation.
"""

import logging

import numpy as np
from typing import TYPE_CHECKING, Optional
from scipy.sparse.linalg import ArpackNoConvergence, LinearOperator, eigsh

from ..models.settings import MinEigenResult
from .quadratic_form import QuadraticForm

if TYPE_CHECKING:
    from .problem import SESyncProblem


logger = logging.getLogger(__name__)


def compute_lambda_blocks(form: QuadraticForm, Y: np.ndarray, d: int) -> np.ndarray:
    """Diagonal blocks of the Lagrange multiplier matrix Lambda(Y).

    Block i is Sym((S Y^T)_i Y_i), where (S Y^T)_i are the rows of S Y^T and
    Y_i the columns of Y belonging to the orientation of pose i.

    Args:
        form: Quadratic form S
        Y: r x N point
        d: Group dimension

    Returns:
        d x (d*n) matrix of stacked symmetric blocks
    """
    offset = form.num_translations
    r = Y.shape[0]
    n = (Y.shape[1] - offset) // d

    SYt = form.product(np.ascontiguousarray(Y.T))

    SYt_blocks = SYt[offset:, :].reshape(n, d, r)
    Y_blocks = Y[:, offset:].reshape(r, n, d).transpose(1, 0, 2)

    P = SYt_blocks @ Y_blocks
    Lambda = 0.5 * (P + P.transpose(0, 2, 1))
    return Lambda.transpose(1, 0, 2).reshape(d, n * d)


class SMinusLambdaOperator(LinearOperator):
    """Matrix-free operator x -> (S - Lambda(Y) + sigma * I) x.

    Holds a read-only reference to the problem, which must outlive this
    operator. Lambda(Y) is computed once on construction unless supplied.
    """

    def __init__(
        self,
        problem: "SESyncProblem",
        Y: np.ndarray,
        sigma: float = 0.0,
        lambda_blocks: Optional[np.ndarray] = None
    ):
        """Initialize operator.

        Args:
            problem: Problem supplying the data matrix product
            Y: Critical point at which Lambda is evaluated
            sigma: Spectral shift
            lambda_blocks: Precomputed Lambda(Y) blocks (d x dn), reused if given
        """
        size = problem.quadratic_form.size
        super().__init__(dtype=np.float64, shape=(size, size))

        self.problem = problem
        self.sigma = sigma
        self.dim = problem.dimension
        self.offset = problem.quadratic_form.num_translations
        self.num_poses = problem.num_poses
        if lambda_blocks is None:
            lambda_blocks = problem.compute_lambda_blocks(Y)
        self.lambda_blocks = lambda_blocks
        self.num_matvecs = 0

    def _lambda_product(self, X: np.ndarray) -> np.ndarray:
        d, n = self.dim, self.num_poses
        k = X.shape[1]
        blocks = self.lambda_blocks.reshape(d, n, d).transpose(1, 0, 2)
        X_rot = X[self.offset:, :].reshape(n, d, k)

        result = np.zeros_like(X)
        result[self.offset:, :] = (blocks @ X_rot).reshape(n * d, k)
        return result

    def _matmat(self, X: np.ndarray) -> np.ndarray:
        X = np.asarray(X, dtype=np.float64)
        self.num_matvecs += X.shape[1]

        Y = self.problem.data_matrix_product(X) - self._lambda_product(X)
        if self.sigma != 0:
            Y += self.sigma * X
        return Y

    def _matvec(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64).reshape(-1, 1)
        return self._matmat(x).ravel()

    def _adjoint(self) -> "SMinusLambdaOperator":
        # Symmetric
        return self


def _largest_magnitude_eigenpair(
    operator: LinearOperator,
    num_lanczos_vectors: int,
    max_iterations: int,
    tolerance: float,
    v0: Optional[np.ndarray] = None
):
    """Largest-magnitude eigenpair; returns (value, vector, converged)."""
    size = operator.shape[0]
    ncv = max(2, min(num_lanczos_vectors, size))

    try:
        values, vectors = eigsh(
            operator,
            k=1,
            which="LM",
            ncv=ncv,
            maxiter=max_iterations,
            tol=tolerance,
            v0=v0,
        )
    except ArpackNoConvergence as e:
        if len(e.eigenvalues) > 0:
            return float(e.eigenvalues[0]), e.eigenvectors[:, 0], False
        return float("nan"), np.zeros(size), False

    return float(values[0]), vectors[:, 0], True


def compute_min_eig(
    problem: "SESyncProblem",
    Y: np.ndarray,
    max_iterations: int = 10000,
    min_eigenvalue_nonnegativity_tolerance: float = 1e-5,
    num_lanczos_vectors: int = 20,
    rng: Optional[np.random.Generator] = None
) -> MinEigenResult:
    """Estimate the minimum eigenpair of S - Lambda(Y) with Lanczos iterations.

    The largest-magnitude eigenvalue lambda_lm is computed first. If it is
    negative it is also the minimum eigenvalue. Otherwise the spectrum is
    shifted by -2 * lambda_lm, making lambda_min - 2 * lambda_lm the
    largest-magnitude eigenvalue of the shifted operator.

    Args:
        problem: SE-Sync problem
        Y: Critical point
        max_iterations: Maximum number of Lanczos restarts
        min_eigenvalue_nonnegativity_tolerance: Absolute accuracy required of lambda_min
        num_lanczos_vectors: Lanczos subspace size
        rng: Random generator for the starting vector perturbation

    Returns:
        Minimum eigenpair and convergence flag
    """
    rng = rng if rng is not None else np.random.default_rng()

    operator = SMinusLambdaOperator(problem, Y)
    size = operator.shape[0]

    lambda_lm, v_lm, converged = _largest_magnitude_eigenpair(
        operator, num_lanczos_vectors, max_iterations, 1e-4,
        v0=rng.standard_normal(size),
    )

    if not converged:
        logger.warning("Lanczos iterations for the largest-magnitude eigenvalue did not converge")
        return MinEigenResult(
            min_eigenvalue=lambda_lm,
            min_eigenvector=_normalized(v_lm).tolist(),
            converged=False,
            num_matvecs=operator.num_matvecs,
        )

    if lambda_lm <= 0:
        return MinEigenResult(
            min_eigenvalue=lambda_lm,
            min_eigenvector=_normalized(v_lm).tolist(),
            converged=True,
            num_matvecs=operator.num_matvecs,
        )

    shift = -2.0 * lambda_lm
    shifted = SMinusLambdaOperator(problem, Y, sigma=shift, lambda_blocks=operator.lambda_blocks)

    # At a critical point the rows of Y lie in the null space of S - Lambda(Y),
    # so they are eigenvectors for the minimum eigenvalue whenever the
    # relaxation is exact, but unstable fixed points of the Lanczos iteration
    # otherwise. Start from a ~3% perturbation of the first row.
    v0 = Y[0, :].copy()
    perturbation = rng.standard_normal(size)
    perturbation /= np.linalg.norm(perturbation)
    v0 = v0 + 0.03 * np.linalg.norm(v0) * perturbation
    if not np.any(v0):
        v0 = perturbation

    # Relative precision that yields the requested absolute precision
    relative_tolerance = min(min_eigenvalue_nonnegativity_tolerance / lambda_lm, 1e-1)

    value, vector, converged = _largest_magnitude_eigenpair(
        shifted, num_lanczos_vectors, max_iterations, relative_tolerance, v0=v0
    )

    if not converged:
        logger.warning("Lanczos iterations for the minimum eigenvalue did not converge")

    return MinEigenResult(
        min_eigenvalue=value - shift,
        min_eigenvector=_normalized(vector).tolist(),
        converged=converged,
        num_matvecs=operator.num_matvecs + shifted.num_matvecs,
        shift=shift,
    )


def _normalized(v: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(v)
    return v / norm if norm > 0 else v
