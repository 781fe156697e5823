"""Problem configuration and result models."""

import math
from enum import Enum
from typing import List, Optional

import numpy as np
from pydantic import BaseModel, Field, field_validator


class Formulation(str, Enum):
    """Form of the SE-Sync problem to solve."""
    # Translations eliminated analytically (Schur complement)
    IMPLICIT = "implicit"
    # Translations kept as explicit unconstrained variables
    EXPLICIT = "explicit"
    ROBUST = "robust"


class ProjectionFactorization(str, Enum):
    """Factorization backing the orthogonal projection operator."""
    CHOLESKY = "cholesky"
    QR = "qr"
    # Sparse iterative least squares, used instead of QR on large graphs
    LSMR = "lsmr"


class PreconditionerType(str, Enum):
    """Preconditioning strategy for the truncated CG inner iterations."""
    NONE = "none"
    JACOBI = "jacobi"
    INCOMPLETE_CHOLESKY = "incomplete_cholesky"


class ProblemSettings(BaseModel):
    """Construction-time configuration of an SE-Sync problem."""

    formulation: Formulation = Field(
        default=Formulation.IMPLICIT,
        description="Problem formulation"
    )
    use_cholesky: bool = Field(
        default=True,
        description="Prefer sparse Cholesky over QR for the orthogonal projection"
    )
    preconditioner: PreconditionerType = Field(
        default=PreconditionerType.INCOMPLETE_CHOLESKY,
        description="Preconditioner applied to tangent vectors"
    )
    relaxation_rank: Optional[int] = Field(
        default=None,
        ge=1,
        description="Initial relaxation rank r; defaults to the group dimension d"
    )
    cholesky_pivot_tolerance: float = Field(
        default=1e-10,
        gt=0,
        lt=1,
        description="Smallest admissible ratio of smallest to largest Cholesky pivot"
    )
    dense_qr_max_entries: int = Field(
        default=4_000_000,
        ge=0,
        description="Largest m * (n - 1) for which the QR path factors B^T densely; larger graphs use sparse LSMR"
    )
    lsmr_tolerance: float = Field(
        default=1e-12,
        gt=0,
        lt=1,
        description="Stopping tolerance of the sparse least-squares projection"
    )
    incomplete_cholesky_shift: float = Field(
        default=1e-6,
        ge=0,
        description="Diagonal shift, relative to the largest diagonal entry, for the incomplete factorization"
    )
    incomplete_cholesky_drop_tolerance: float = Field(
        default=1e-4,
        ge=0,
        le=1,
        description="Drop tolerance of the incomplete factorization"
    )
    incomplete_cholesky_fill_factor: float = Field(
        default=10.0,
        ge=1,
        description="Fill ratio upper bound of the incomplete factorization"
    )
    seed: Optional[int] = Field(
        default=None,
        description="Seed for the random generator used by random_sample"
    )


class MinEigenResult(BaseModel):
    """Minimum eigenpair of S - Lambda(Y) computed for certification."""

    min_eigenvalue: float = Field(description="Estimated minimum eigenvalue")
    min_eigenvector: List[float] = Field(
        default_factory=list,
        description="Unit-norm eigenvector associated with min_eigenvalue"
    )
    converged: bool = Field(description="Whether the Lanczos iterations converged")
    num_matvecs: int = Field(default=0, description="Number of operator applications")
    shift: float = Field(default=0.0, description="Spectral shift used in the final solve")

    @field_validator('min_eigenvalue')
    @classmethod
    def validate_min_eigenvalue(cls, v):
        """Keep non-converged placeholders JSON serializable."""
        if math.isnan(v):
            return -math.inf
        return v

    def eigenvector(self) -> np.ndarray:
        """Eigenvector as a numpy array."""
        return np.array(self.min_eigenvector, dtype=float)

    def is_certified(self, tolerance: float = 1e-5) -> bool:
        """Check whether the eigenpair certifies global optimality.

        Args:
            tolerance: Nonnegativity tolerance on the minimum eigenvalue

        Returns:
            True if the solver converged and lambda_min >= -tolerance
        """
        return self.converged and self.min_eigenvalue >= -tolerance
