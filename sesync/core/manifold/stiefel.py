"""Product of Stiefel manifolds St(k, p)^n."""

import numpy as np
from typing import Optional


class StiefelProduct:
    """Product of n Stiefel manifolds St(k, p).

    A point is stored as a p x (k*n) matrix whose i-th block of k columns
    has orthonormal columns. All operations act block-wise and never mutate
    their arguments.
    """

    def __init__(self, k: int, p: int, n: int):
        """Initialize the product manifold.

        Args:
            k: Number of orthonormal columns per block (group dimension d)
            p: Ambient row dimension (relaxation rank r), p >= k
            n: Number of blocks (poses)
        """
        if k < 1 or n < 1:
            raise ValueError(f"k and n must be positive, got k={k}, n={n}")
        if p < k:
            raise ValueError(f"p must be at least k, got p={p} < k={k}")

        self.k = k
        self.p = p
        self.n = n

    @property
    def shape(self) -> tuple:
        """Shape of a point on the manifold."""
        return (self.p, self.k * self.n)

    def set_p(self, p: int) -> None:
        """Change the ambient row dimension (relaxation rank)."""
        if p < self.k:
            raise ValueError(f"p must be at least k, got p={p} < k={self.k}")
        self.p = p

    def _blocks(self, A: np.ndarray) -> np.ndarray:
        """View a p x (k*n) matrix as an n x p x k stack of blocks."""
        p = A.shape[0]
        return A.reshape(p, self.n, self.k).transpose(1, 0, 2)

    def _unblocks(self, B: np.ndarray) -> np.ndarray:
        """Inverse of _blocks."""
        n, p, k = B.shape
        return B.transpose(1, 0, 2).reshape(p, n * k)

    def project(self, A: np.ndarray) -> np.ndarray:
        """Nearest point on the manifold (block-wise polar factor)."""
        U, _, Vt = np.linalg.svd(self._blocks(A), full_matrices=False)
        return self._unblocks(U @ Vt)

    def sym_block_diag_product(self, A: np.ndarray, B: np.ndarray, C: np.ndarray) -> np.ndarray:
        """Compute the block-wise product A_i * Sym(B_i^T C_i).

        Args:
            A: p x (k*n) matrix
            B: p x (k*n) matrix
            C: p x (k*n) matrix

        Returns:
            p x (k*n) matrix
        """
        A_blocks = self._blocks(A)
        P = self._blocks(B).transpose(0, 2, 1) @ self._blocks(C)
        sym_P = 0.5 * (P + P.transpose(0, 2, 1))
        return self._unblocks(A_blocks @ sym_P)

    def proj(self, Y: np.ndarray, V: np.ndarray) -> np.ndarray:
        """Orthogonal projection of ambient V onto the tangent space at Y."""
        return V - self.sym_block_diag_product(Y, Y, V)

    def retract(self, Y: np.ndarray, V: np.ndarray) -> np.ndarray:
        """QR-based retraction of tangent vector V at Y."""
        Q, R = np.linalg.qr(self._blocks(Y + V))

        # Normalize so that R has a positive diagonal, making qf() unique
        signs = np.sign(np.diagonal(R, axis1=1, axis2=2))
        signs[signs == 0] = 1.0
        return self._unblocks(Q * signs[:, np.newaxis, :])

    def random_sample(self, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Sample a point uniformly at random (Haar measure on each block)."""
        rng = rng if rng is not None else np.random.default_rng()

        G = rng.standard_normal((self.n, self.p, self.k))
        Q, R = np.linalg.qr(G)
        signs = np.sign(np.diagonal(R, axis1=1, axis2=2))
        signs[signs == 0] = 1.0
        return self._unblocks(Q * signs[:, np.newaxis, :])

    def constraint_violation(self, Y: np.ndarray) -> float:
        """Largest deviation of any block from orthonormality."""
        blocks = self._blocks(Y)
        gram = blocks.transpose(0, 2, 1) @ blocks
        return float(np.max(np.abs(gram - np.eye(self.k))))

    def is_feasible(self, Y: np.ndarray, tolerance: float = 1e-8) -> bool:
        """Check the per-block orthonormality constraints."""
        return Y.shape == self.shape and self.constraint_violation(Y) <= tolerance
