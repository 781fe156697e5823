"""Math primitives for SE-Sync."""

from .rotations import (
    project_to_SOd,
    project_to_stiefel,
    random_rotation,
    rotation_angle,
    planar_rotation,
    compose,
    invert,
    relative_transform,
)
from .finite_differences import directional_derivative, check_directional_derivative

__all__ = [
    "project_to_SOd",
    "project_to_stiefel",
    "random_rotation",
    "rotation_angle",
    "planar_rotation",
    "compose",
    "invert",
    "relative_transform",
    "directional_derivative",
    "check_directional_derivative",
]
