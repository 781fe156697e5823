"""SE-Sync problem assembly, evaluation and certification."""

from .problem import SESyncProblem
from .data_matrices import (
    TranslationData,
    validate_measurements,
    construct_oriented_incidence_matrix,
    construct_rotational_connection_laplacian,
    construct_translational_weight_matrix,
    construct_translational_data_matrix,
    construct_translation_data,
    construct_quadratic_form_data_matrix,
)
from .projection import (
    OrthogonalProjection,
    CholeskyProjection,
    QRProjection,
    LeastSquaresProjection,
    build_orthogonal_projection,
)
from .quadratic_form import QuadraticForm, ImplicitQuadraticForm, ExplicitQuadraticForm
from .preconditioner import (
    Preconditioner,
    IdentityPreconditioner,
    JacobiPreconditioner,
    IncompleteCholeskyPreconditioner,
    build_preconditioner,
)
from .certification import SMinusLambdaOperator, compute_lambda_blocks, compute_min_eig
from .initialization import (
    chordal_initialization,
    recover_translations,
    round_rotations,
    round_solution,
)

__all__ = [
    "SESyncProblem",
    "TranslationData",
    "validate_measurements",
    "construct_oriented_incidence_matrix",
    "construct_rotational_connection_laplacian",
    "construct_translational_weight_matrix",
    "construct_translational_data_matrix",
    "construct_translation_data",
    "construct_quadratic_form_data_matrix",
    "OrthogonalProjection",
    "CholeskyProjection",
    "QRProjection",
    "LeastSquaresProjection",
    "build_orthogonal_projection",
    "QuadraticForm",
    "ImplicitQuadraticForm",
    "ExplicitQuadraticForm",
    "Preconditioner",
    "IdentityPreconditioner",
    "JacobiPreconditioner",
    "IncompleteCholeskyPreconditioner",
    "build_preconditioner",
    "SMinusLambdaOperator",
    "compute_lambda_blocks",
    "compute_min_eig",
    "chordal_initialization",
    "recover_translations",
    "round_rotations",
    "round_solution",
]
