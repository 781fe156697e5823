"""Comparison of estimated poses with ground truth up to a global rigid transform."""

import numpy as np
from typing import Tuple

from ..math.rotations import project_to_SOd, rotation_angle


def unpack_poses(X: np.ndarray, d: int) -> Tuple[np.ndarray, np.ndarray]:
    """Split X = [t | R] (d x (n + dn)) into rotations (n x d x d) and translations (n x d)."""
    n = X.shape[1] // (d + 1)
    translations = X[:, :n].T.copy()
    rotations = X[:, n:].reshape(d, n, d).transpose(1, 0, 2).copy()
    return rotations, translations


def align_poses(
    rotations: np.ndarray,
    translations: np.ndarray,
    reference_rotations: np.ndarray,
    reference_translations: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """Apply the global rigid transform that best aligns an estimate to a reference.

    Args:
        rotations: Estimated rotations (n x d x d)
        translations: Estimated translations (n x d)
        reference_rotations: Reference rotations (n x d x d)
        reference_translations: Reference translations (n x d)

    Returns:
        Tuple of aligned (rotations, translations)
    """
    G = project_to_SOd(np.sum(reference_rotations @ rotations.transpose(0, 2, 1), axis=0))
    c = np.mean(reference_translations - translations @ G.T, axis=0)

    aligned_rotations = G[np.newaxis, :, :] @ rotations
    aligned_translations = translations @ G.T + c
    return aligned_rotations, aligned_translations


def pose_errors(
    X: np.ndarray,
    reference_rotations: np.ndarray,
    reference_translations: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """Per-pose rotation (radians) and translation errors after alignment.

    Args:
        X: Estimated poses [t | R] (d x (n + dn))
        reference_rotations: Reference rotations (n x d x d)
        reference_translations: Reference translations (n x d)

    Returns:
        Tuple of (rotation_errors, translation_errors), each of length n
    """
    d = reference_rotations.shape[1]
    rotations, translations = unpack_poses(X, d)
    rotations, translations = align_poses(
        rotations, translations, reference_rotations, reference_translations
    )

    rotation_errors = np.array([
        rotation_angle(R_ref.T @ R) for R, R_ref in zip(rotations, reference_rotations)
    ])
    translation_errors = np.linalg.norm(translations - reference_translations, axis=1)
    return rotation_errors, translation_errors
