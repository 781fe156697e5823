"""SE-Sync - certifiably correct pose-graph synchronization

Rank-restricted Riemannian relaxation of the special Euclidean
synchronization problem, with global optimality certification.
"""

__version__ = "0.1.0"

# Core models
from .core.models.measurements import RelativePoseMeasurement
from .core.models.settings import (
    Formulation,
    MinEigenResult,
    PreconditionerType,
    ProblemSettings,
    ProjectionFactorization,
)

# Errors
from .core.exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    FactorizationError,
    SESyncError,
)

# Geometry
from .core.manifold.stiefel import StiefelProduct

# Problem
from .core.problem.problem import SESyncProblem

__all__ = [
    # Version
    "__version__",
    # Models
    "RelativePoseMeasurement",
    "Formulation",
    "ProjectionFactorization",
    "PreconditionerType",
    "ProblemSettings",
    "MinEigenResult",
    # Errors
    "SESyncError",
    "ConfigurationError",
    "FactorizationError",
    "DimensionMismatchError",
    # Geometry
    "StiefelProduct",
    # Problem
    "SESyncProblem",
]
