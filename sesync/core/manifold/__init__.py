"""Manifold geometry for the rank-restricted relaxation."""

from .stiefel import StiefelProduct
from .geometry import ProblemGeometry, ManifoldFactory

__all__ = [
    "StiefelProduct",
    "ProblemGeometry",
    "ManifoldFactory",
]
