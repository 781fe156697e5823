"""Data models for SE-Sync."""

from .measurements import RelativePoseMeasurement
from .settings import (
    Formulation,
    MinEigenResult,
    PreconditionerType,
    ProblemSettings,
    ProjectionFactorization,
)

__all__ = [
    "RelativePoseMeasurement",
    "Formulation",
    "ProjectionFactorization",
    "PreconditionerType",
    "ProblemSettings",
    "MinEigenResult",
]
