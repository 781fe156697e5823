"""Synthetic pose graph generation utilities."""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from scipy.linalg import expm

from ..math.rotations import random_rotation, relative_transform
from ..models.measurements import RelativePoseMeasurement


@dataclass
class SyntheticPoseGraph:
    """Ground-truth poses together with their relative measurements."""

    rotations: np.ndarray  # n x d x d
    translations: np.ndarray  # n x d
    measurements: List[RelativePoseMeasurement] = field(default_factory=list)

    @property
    def num_poses(self) -> int:
        return self.rotations.shape[0]

    @property
    def dimension(self) -> int:
        return self.rotations.shape[1]

    def edges(self) -> List[Tuple[int, int]]:
        return [(measurement.i, measurement.j) for measurement in self.measurements]


class PoseGraphGenerator:
    """Generator for synthetic pose graphs and test data."""

    def __init__(self, seed: Optional[int] = None):
        """Initialize pose graph generator.

        Args:
            seed: Random seed for reproducible generation
        """
        self.rng = np.random.default_rng(seed)

    def generate_poses(
        self,
        n: int,
        d: int = 3,
        translation_scale: float = 1.0
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Generate random ground-truth poses.

        Args:
            n: Number of poses
            d: Dimension of SE(d)
            translation_scale: Standard deviation of the translations

        Returns:
            Tuple of (rotations n x d x d, translations n x d)
        """
        rotations = np.stack([random_rotation(d, self.rng) for _ in range(n)])
        translations = translation_scale * self.rng.standard_normal((n, d))
        return rotations, translations

    def perturb_rotation(self, R: np.ndarray, angle_std: float) -> np.ndarray:
        """Right-multiply R by a random rotation of roughly angle_std radians."""
        if angle_std <= 0:
            return R.copy()

        d = R.shape[0]
        W = self.rng.normal(0, angle_std, (d, d))
        # Random element of so(d)
        omega = (W - W.T) / 2.0
        return R @ expm(omega)

    def measure(
        self,
        rotations: np.ndarray,
        translations: np.ndarray,
        edges: List[Tuple[int, int]],
        kappa: float = 1.0,
        tau: float = 1.0,
        rotation_noise: float = 0.0,
        translation_noise: float = 0.0
    ) -> List[RelativePoseMeasurement]:
        """Create relative measurements along the given edges.

        Args:
            rotations: Ground-truth rotations (n x d x d)
            translations: Ground-truth translations (n x d)
            edges: List of (i, j) pairs
            kappa: Rotational precision assigned to every measurement
            tau: Translational precision assigned to every measurement
            rotation_noise: Standard deviation of the rotation noise (radians)
            translation_noise: Standard deviation of the translation noise

        Returns:
            List of measurements
        """
        measurements = []
        d = rotations.shape[1]

        for i, j in edges:
            R_ij, t_ij = relative_transform(rotations[i], translations[i], rotations[j], translations[j])

            R_ij = self.perturb_rotation(R_ij, rotation_noise)
            if translation_noise > 0:
                t_ij = t_ij + self.rng.normal(0, translation_noise, d)

            measurements.append(
                RelativePoseMeasurement.from_numpy(i, j, R_ij, t_ij, kappa=kappa, tau=tau)
            )

        return measurements

    def generate_cycle(
        self,
        n: int,
        d: int = 3,
        translation_scale: float = 1.0,
        **measurement_kwargs
    ) -> SyntheticPoseGraph:
        """Generate a single cycle 0 -> 1 -> ... -> n-1 -> 0.

        Args:
            n: Number of poses
            d: Dimension of SE(d)
            translation_scale: Standard deviation of the translations
            **measurement_kwargs: Forwarded to measure()

        Returns:
            Synthetic pose graph
        """
        rotations, translations = self.generate_poses(n, d, translation_scale)
        edges = [(i, (i + 1) % n) for i in range(n)]
        measurements = self.measure(rotations, translations, edges, **measurement_kwargs)
        return SyntheticPoseGraph(rotations, translations, measurements)

    def generate_odometry_with_loop_closures(
        self,
        n: int,
        num_loop_closures: int,
        d: int = 3,
        translation_scale: float = 1.0,
        **measurement_kwargs
    ) -> SyntheticPoseGraph:
        """Generate an odometry chain plus random loop closures.

        Args:
            n: Number of poses
            num_loop_closures: Number of additional non-consecutive edges
            d: Dimension of SE(d)
            translation_scale: Standard deviation of the translations
            **measurement_kwargs: Forwarded to measure()

        Returns:
            Synthetic pose graph
        """
        rotations, translations = self.generate_poses(n, d, translation_scale)
        edges = [(i, i + 1) for i in range(n - 1)]

        existing = set(edges)
        max_closures = n * (n - 1) // 2 - len(edges)
        while len(edges) < n - 1 + min(num_loop_closures, max_closures):
            i, j = sorted(self.rng.choice(n, size=2, replace=False).tolist())
            if (i, j) not in existing:
                existing.add((i, j))
                edges.append((i, j))

        measurements = self.measure(rotations, translations, edges, **measurement_kwargs)
        return SyntheticPoseGraph(rotations, translations, measurements)
