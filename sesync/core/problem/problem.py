"""The rank-restricted Riemannian relaxation of an SE-Sync problem."""

import logging

import numpy as np
import scipy.sparse as sp
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from ..exceptions import ConfigurationError, DimensionMismatchError, SESyncError
from ..manifold.geometry import ManifoldFactory, ProblemGeometry
from ..manifold.stiefel import StiefelProduct
from ..models.measurements import RelativePoseMeasurement
from ..models.settings import (
    Formulation,
    MinEigenResult,
    PreconditionerType,
    ProblemSettings,
    ProjectionFactorization,
)
from .certification import compute_lambda_blocks, compute_min_eig
from .data_matrices import (
    construct_oriented_incidence_matrix,
    construct_quadratic_form_data_matrix,
    construct_rotational_connection_laplacian,
    construct_translation_data,
    validate_measurements,
)
from .initialization import chordal_initialization, recover_translations, round_solution
from .preconditioner import (
    IncompleteCholeskyPreconditioner,
    JacobiPreconditioner,
    Preconditioner,
    build_preconditioner,
)
from .projection import build_orthogonal_projection
from .quadratic_form import ExplicitQuadraticForm, ImplicitQuadraticForm, QuadraticForm


MeasurementLike = Union[RelativePoseMeasurement, Dict[str, Any]]


class SESyncProblem:
    """Rank-restricted Riemannian form of the SE-Sync semidefinite relaxation.

    All measurement-dependent matrices and factorizations are built once on
    construction; afterwards every evaluation method is a pure function of
    its arguments. Only set_relaxation_rank() mutates the instance, and it
    must not run concurrently with any other call.

    Points Y have shape r x N, where N = dn (implicit formulation) or
    N = n + dn (explicit formulation, translations first).
    """

    def __init__(
        self,
        measurements: Iterable[MeasurementLike],
        formulation: Optional[Formulation] = None,
        use_cholesky: Optional[bool] = None,
        preconditioner: Optional[PreconditionerType] = None,
        relaxation_rank: Optional[int] = None,
        settings: Optional[ProblemSettings] = None,
        num_poses: Optional[int] = None,
        manifold_factory: ManifoldFactory = StiefelProduct
    ):
        """Initialize problem.

        Args:
            measurements: Non-empty list of relative pose measurements
            formulation: Problem formulation (overrides settings)
            use_cholesky: Prefer Cholesky over QR for the projection (overrides settings)
            preconditioner: Preconditioning strategy (overrides settings)
            relaxation_rank: Initial relaxation rank r >= d (overrides settings)
            settings: Full problem settings
            num_poses: Declared number of poses; inferred from the measurements if None
            manifold_factory: Callable (k, p, n) -> Stiefel product manifold

        Raises:
            ConfigurationError: If the measurements or settings are invalid
        """
        self.logger = logging.getLogger(__name__)

        self.settings = self._resolve_settings(
            settings,
            formulation=formulation,
            use_cholesky=use_cholesky,
            preconditioner=preconditioner,
            relaxation_rank=relaxation_rank,
        )

        if self.settings.formulation == Formulation.ROBUST:
            raise ConfigurationError("The robust formulation is not supported")

        self.measurements: List[RelativePoseMeasurement] = self._parse_measurements(measurements)
        self._n, self._d = validate_measurements(self.measurements, num_poses)
        self._m = len(self.measurements)

        r = self.settings.relaxation_rank if self.settings.relaxation_rank is not None else self._d
        self._check_rank(r)
        self._r = r

        self.logger.info(
            f"Building {self.settings.formulation.value} SE({self._d}) problem with "
            f"{self._n} poses, {self._m} measurements, rank {self._r}"
        )

        self._build(manifold_factory)
        self._rng = np.random.default_rng(self.settings.seed)
        self._closed = False

    @staticmethod
    def _resolve_settings(settings: Optional[ProblemSettings], **overrides) -> ProblemSettings:
        values = settings.model_dump() if settings is not None else {}
        values.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return ProblemSettings(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid problem settings: {e}") from e

    @staticmethod
    def _parse_measurements(measurements: Iterable[MeasurementLike]) -> List[RelativePoseMeasurement]:
        parsed = []
        for k, measurement in enumerate(measurements):
            if isinstance(measurement, RelativePoseMeasurement):
                parsed.append(measurement)
                continue
            try:
                parsed.append(RelativePoseMeasurement.model_validate(measurement))
            except ValidationError as e:
                raise ConfigurationError(f"Invalid measurement {k}: {e}") from e
        return parsed

    def _check_rank(self, rank: int) -> None:
        if rank < self._d:
            raise ConfigurationError(
                f"Relaxation rank must be at least the dimension {self._d}, got {rank}"
            )

    def _build(self, manifold_factory: ManifoldFactory) -> None:
        """Assemble data matrices and factorizations."""
        n, d = self._n, self._d

        self._A = construct_oriented_incidence_matrix(self.measurements, n)
        self._translation_data = construct_translation_data(self.measurements, self._A, n, d)

        if self.settings.formulation == Formulation.IMPLICIT:
            LGrho = construct_rotational_connection_laplacian(self.measurements, n, d)
            projection = build_orthogonal_projection(
                self._translation_data,
                use_cholesky=self.settings.use_cholesky,
                pivot_tolerance=self.settings.cholesky_pivot_tolerance,
                dense_qr_max_entries=self.settings.dense_qr_max_entries,
                lsmr_tolerance=self.settings.lsmr_tolerance,
            )
            self._form: QuadraticForm = ImplicitQuadraticForm(
                LGrho,
                self._translation_data.SqrtOmega_T,
                self._translation_data.TT_SqrtOmega,
                projection,
            )
            self._LGrho = LGrho
            self.logger.debug(f"Projection factorization: {projection.factorization.value}")
        else:
            M = construct_quadratic_form_data_matrix(self.measurements, n, d)
            self._form = ExplicitQuadraticForm(M, n)
            self._LGrho = construct_rotational_connection_laplacian(self.measurements, n, d)

        self._preconditioner: Preconditioner = build_preconditioner(
            self.settings.preconditioner,
            self._form.surrogate(),
            shift=self.settings.incomplete_cholesky_shift,
            drop_tolerance=self.settings.incomplete_cholesky_drop_tolerance,
            fill_factor=self.settings.incomplete_cholesky_fill_factor,
        )
        self.logger.debug(f"Preconditioner: {self._preconditioner.kind.value}")

        self._manifold = manifold_factory(d, self._r, n)
        self._geometry = ProblemGeometry(self._manifold, self._form.num_translations)

    # ------------------------------------------------------------------
    # Lifecycle

    def set_relaxation_rank(self, rank: int) -> None:
        """Change the relaxation rank r; resizes the manifold only.

        Requires exclusive access to the problem.
        """
        self._check_rank(rank)
        self._manifold.set_p(rank)
        self._r = rank
        self.settings = self.settings.model_copy(update={"relaxation_rank": rank})

    def close(self) -> None:
        """Release the cached factorizations."""
        self._form = None
        self._preconditioner = None
        self._closed = True

    def __enter__(self) -> "SESyncProblem":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def _require_open(self) -> None:
        if self._closed:
            raise SESyncError("Problem has been closed")

    # ------------------------------------------------------------------
    # Accessors

    @property
    def formulation(self) -> Formulation:
        return self.settings.formulation

    @property
    def num_poses(self) -> int:
        return self._n

    @property
    def num_measurements(self) -> int:
        return self._m

    @property
    def dimension(self) -> int:
        """Dimension d of the group SE(d)."""
        return self._d

    @property
    def relaxation_rank(self) -> int:
        return self._r

    @property
    def oriented_incidence_matrix(self) -> sp.csr_matrix:
        return self._A

    @property
    def manifold(self) -> StiefelProduct:
        return self._manifold

    @property
    def geometry(self) -> ProblemGeometry:
        return self._geometry

    @property
    def quadratic_form(self) -> QuadraticForm:
        self._require_open()
        return self._form

    @property
    def projection_factorization(self) -> Optional[ProjectionFactorization]:
        """Factorization actually used for the projection (None if explicit)."""
        self._require_open()
        if isinstance(self._form, ImplicitQuadraticForm):
            return self._form.projection_factorization
        return None

    @property
    def preconditioner_type(self) -> PreconditionerType:
        """Preconditioner actually in use after any construction-time fallback."""
        self._require_open()
        return self._preconditioner.kind

    @property
    def jacobi_preconditioner(self) -> Optional[sp.csr_matrix]:
        """Inverse diagonal matrix of the Jacobi preconditioner, if in use."""
        self._require_open()
        if isinstance(self._preconditioner, JacobiPreconditioner):
            return self._preconditioner.matrix
        return None

    @property
    def incomplete_cholesky_preconditioner(self) -> Optional[IncompleteCholeskyPreconditioner]:
        self._require_open()
        if isinstance(self._preconditioner, IncompleteCholeskyPreconditioner):
            return self._preconditioner
        return None

    @property
    def point_shape(self) -> tuple:
        """Shape r x N of a point in the domain."""
        return self._geometry.shape

    # ------------------------------------------------------------------
    # Objective and derivatives

    def data_matrix_product(self, X: np.ndarray) -> np.ndarray:
        """Compute S X for an (N,) vector or (N, k) matrix X.

        S is Q (implicit formulation) or M (explicit formulation).
        """
        self._require_open()
        if X.shape[0] != self._form.size:
            raise DimensionMismatchError(
                f"Expected {self._form.size} rows, got array of shape {X.shape}"
            )
        return self._form.product(X)

    def evaluate_objective(self, Y: np.ndarray) -> float:
        """F(Y) = tr(Y S Y^T)."""
        self._geometry.check_shape(Y)
        SYt = self.data_matrix_product(np.ascontiguousarray(Y.T))
        return float(np.sum(Y.T * SYt))

    def euclidean_gradient(self, Y: np.ndarray) -> np.ndarray:
        """nabla F(Y) = 2 Y S."""
        self._geometry.check_shape(Y)
        return 2.0 * self.data_matrix_product(np.ascontiguousarray(Y.T)).T

    def riemannian_gradient(self, Y: np.ndarray, nabla_F_Y: Optional[np.ndarray] = None) -> np.ndarray:
        """grad F(Y), the tangent projection of the Euclidean gradient.

        Args:
            Y: Point in the domain
            nabla_F_Y: Precomputed Euclidean gradient at Y

        Returns:
            Riemannian gradient at Y
        """
        if nabla_F_Y is None:
            nabla_F_Y = self.euclidean_gradient(Y)
        return self._geometry.tangent_space_projection(Y, nabla_F_Y)

    def riemannian_hessian_vector_product(
        self,
        Y: np.ndarray,
        dotY: np.ndarray,
        nabla_F_Y: Optional[np.ndarray] = None
    ) -> np.ndarray:
        """Hess F(Y)[dotY], the Riemannian Hessian applied to a tangent vector.

        Args:
            Y: Point in the domain
            dotY: Tangent vector at Y
            nabla_F_Y: Precomputed Euclidean gradient at Y

        Returns:
            Tangent vector at Y
        """
        if nabla_F_Y is None:
            nabla_F_Y = self.euclidean_gradient(Y)
        self._geometry.check_shape(dotY, "dotY")

        H_dotY = 2.0 * self.data_matrix_product(np.ascontiguousarray(dotY.T)).T
        # Weingarten map of the Stiefel blocks
        H_dotY -= self._geometry.weingarten_correction(Y, nabla_F_Y, dotY)
        return self._geometry.tangent_space_projection(Y, H_dotY)

    def precondition(self, Y: np.ndarray, dotY: np.ndarray) -> np.ndarray:
        """Apply the preconditioner to dotY and project back onto T_Y(D)."""
        self._require_open()
        self._geometry.check_shape(dotY, "dotY")
        return self._geometry.tangent_space_projection(Y, self._preconditioner.apply(dotY))

    # ------------------------------------------------------------------
    # Geometry

    def tangent_space_projection(self, Y: np.ndarray, dotY: np.ndarray) -> np.ndarray:
        """Orthogonal projection of ambient dotY onto T_Y(D)."""
        return self._geometry.tangent_space_projection(Y, dotY)

    def retract(self, Y: np.ndarray, dotY: np.ndarray) -> np.ndarray:
        """Retraction of tangent vector dotY at Y."""
        return self._geometry.retract(Y, dotY)

    def random_sample(self, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Random point of the domain D."""
        return self._geometry.random_sample(rng if rng is not None else self._rng)

    # ------------------------------------------------------------------
    # Initialization, rounding and certification

    def chordal_initialization(self) -> np.ndarray:
        """Chordal initialization lifted to rank r (zero-padded rows)."""
        d = self._d
        R = chordal_initialization(self._LGrho, d)

        Y = np.zeros(self._geometry.shape)
        offset = self._geometry.num_translations
        Y[:d, offset:] = R
        if offset > 0:
            Y[:d, :offset] = recover_translations(self._translation_data, R)
        return Y

    def round_solution(self, Y: np.ndarray) -> np.ndarray:
        """Round Y to feasible poses X = [t | R] of shape d x (n + dn)."""
        self._geometry.check_shape(Y)
        return round_solution(
            Y, self._d, self._geometry.num_translations, self._translation_data
        )

    def compute_lambda_blocks(self, Y: np.ndarray) -> np.ndarray:
        """Diagonal blocks (d x dn) of the Lagrange multiplier matrix Lambda(Y)."""
        self._geometry.check_shape(Y)
        self._require_open()
        return compute_lambda_blocks(self._form, Y, self._d)

    def compute_S_minus_Lambda_min_eig(
        self,
        Y: np.ndarray,
        max_iterations: int = 10000,
        min_eigenvalue_nonnegativity_tolerance: float = 1e-5,
        num_lanczos_vectors: int = 20,
        rng: Optional[np.random.Generator] = None
    ) -> MinEigenResult:
        """Minimum eigenpair of S - Lambda(Y) for a critical point Y.

        Args:
            Y: Critical point of the rank-restricted problem
            max_iterations: Maximum number of Lanczos restarts
            min_eigenvalue_nonnegativity_tolerance: Absolute accuracy required of lambda_min
            num_lanczos_vectors: Lanczos subspace size
            rng: Random generator for starting vectors

        Returns:
            Minimum eigenpair and convergence flag
        """
        self._geometry.check_shape(Y)
        return compute_min_eig(
            self,
            Y,
            max_iterations=max_iterations,
            min_eigenvalue_nonnegativity_tolerance=min_eigenvalue_nonnegativity_tolerance,
            num_lanczos_vectors=num_lanczos_vectors,
            rng=rng if rng is not None else np.random.default_rng(self.settings.seed),
        )
