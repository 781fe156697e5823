"""Manifold geometry of the SE-Sync search space."""

import numpy as np
from typing import Callable, Optional

from .stiefel import StiefelProduct
from ..exceptions import DimensionMismatchError


ManifoldFactory = Callable[[int, int, int], StiefelProduct]


class ProblemGeometry:
    """Geometry of the domain D of the rank-restricted relaxation.

    The domain is R^{r x t} x St(d, r)^n, where t is the number of leading
    translation columns (0 for the implicit formulation, n for the explicit
    one). Translation columns are Euclidean; orientation columns are handled
    by the injected Stiefel product.
    """

    def __init__(self, manifold: StiefelProduct, num_translations: int = 0):
        """Initialize geometry.

        Args:
            manifold: Product manifold for the orientation blocks
            num_translations: Number of leading Euclidean columns
        """
        self.manifold = manifold
        self.num_translations = num_translations

    @property
    def rank(self) -> int:
        return self.manifold.p

    @property
    def shape(self) -> tuple:
        """Shape of a point in D."""
        p, cols = self.manifold.shape
        return (p, self.num_translations + cols)

    def check_shape(self, A: np.ndarray, name: str = "Y") -> None:
        """Raise if A does not have the shape of a point in D."""
        if A.shape != self.shape:
            raise DimensionMismatchError(
                f"{name} must have shape {self.shape}, got {A.shape}"
            )

    def rotations(self, A: np.ndarray) -> np.ndarray:
        """Orientation columns of A."""
        return A[:, self.num_translations:]

    def translations(self, A: np.ndarray) -> np.ndarray:
        """Translation columns of A (empty for the implicit formulation)."""
        return A[:, :self.num_translations]

    def _assemble(self, translations: np.ndarray, rotations: np.ndarray) -> np.ndarray:
        if self.num_translations == 0:
            return rotations
        return np.hstack([translations, rotations])

    def tangent_space_projection(self, Y: np.ndarray, V: np.ndarray) -> np.ndarray:
        """Project ambient V onto the tangent space T_Y(D)."""
        self.check_shape(Y)
        self.check_shape(V, "V")
        return self._assemble(
            self.translations(V).copy(),
            self.manifold.proj(self.rotations(Y), self.rotations(V)),
        )

    def retract(self, Y: np.ndarray, V: np.ndarray) -> np.ndarray:
        """Retract tangent vector V at Y back onto D."""
        self.check_shape(Y)
        self.check_shape(V, "V")
        return self._assemble(
            self.translations(Y) + self.translations(V),
            self.manifold.retract(self.rotations(Y), self.rotations(V)),
        )

    def weingarten_correction(self, Y: np.ndarray, nabla_F: np.ndarray, dotY: np.ndarray) -> np.ndarray:
        """Curvature term dotY_i * Sym(Y_i^T nablaF_i), zero on translations."""
        return self._assemble(
            np.zeros_like(self.translations(dotY)),
            self.manifold.sym_block_diag_product(
                self.rotations(dotY), self.rotations(Y), self.rotations(nabla_F)
            ),
        )

    def random_sample(self, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Sample a random point of D."""
        rng = rng if rng is not None else np.random.default_rng()
        rotations = self.manifold.random_sample(rng)
        translations = rng.standard_normal((self.rank, self.num_translations))
        return self._assemble(translations, rotations)

    def is_feasible(self, Y: np.ndarray, tolerance: float = 1e-8) -> bool:
        """Check the orthonormality constraints of every orientation block."""
        if Y.shape != self.shape:
            return False
        return self.manifold.is_feasible(self.rotations(Y), tolerance)
