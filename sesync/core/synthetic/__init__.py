"""Synthetic data generation for testing and validation."""

from .pose_graph_gen import PoseGraphGenerator, SyntheticPoseGraph
from .alignment import align_poses, pose_errors, unpack_poses

__all__ = [
    "PoseGraphGenerator",
    "SyntheticPoseGraph",
    "align_poses",
    "pose_errors",
    "unpack_poses",
]
