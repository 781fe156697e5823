"""Tests for the product of Stiefel manifolds."""

import numpy as np
import pytest

from sesync.core.manifold.stiefel import StiefelProduct


@pytest.fixture
def manifold():
    """St(3, 5)^4."""
    return StiefelProduct(3, 5, 4)


class TestStiefelProduct:
    """Test projection, retraction and sampling on St(k, p)^n."""

    def test_shape(self, manifold):
        """Points are p x (k*n)."""
        assert manifold.shape == (5, 12)

    def test_invalid_dimensions(self):
        """p must be at least k."""
        with pytest.raises(ValueError):
            StiefelProduct(3, 2, 4)

        with pytest.raises(ValueError):
            StiefelProduct(0, 2, 4)

    def test_set_p(self, manifold):
        """Changing p only changes the row dimension."""
        manifold.set_p(7)
        assert manifold.shape == (7, 12)

        with pytest.raises(ValueError):
            manifold.set_p(2)

    def test_random_sample_feasible(self, manifold, rng):
        """Random samples satisfy the orthonormality constraints."""
        Y = manifold.random_sample(rng)

        assert Y.shape == manifold.shape
        assert manifold.is_feasible(Y)

    def test_project(self, manifold, rng):
        """Projection yields a feasible point and fixes feasible points."""
        A = rng.standard_normal(manifold.shape)
        Y = manifold.project(A)

        assert manifold.is_feasible(Y)
        np.testing.assert_allclose(manifold.project(Y), Y, atol=1e-12)

    def test_tangent_projection(self, manifold, rng):
        """proj is idempotent and yields Y_i^T V_i skew-symmetric."""
        Y = manifold.random_sample(rng)
        V = manifold.proj(Y, rng.standard_normal(manifold.shape))

        np.testing.assert_allclose(manifold.proj(Y, V), V, atol=1e-12)

        for i in range(manifold.n):
            block = Y[:, 3 * i:3 * (i + 1)].T @ V[:, 3 * i:3 * (i + 1)]
            np.testing.assert_allclose(block, -block.T, atol=1e-12)

    def test_tangent_projection_is_orthogonal(self, manifold, rng):
        """The residual of the projection is normal to the tangent space."""
        Y = manifold.random_sample(rng)
        V = rng.standard_normal(manifold.shape)
        W = manifold.proj(Y, rng.standard_normal(manifold.shape))

        residual = V - manifold.proj(Y, V)
        assert abs(np.sum(residual * W)) < 1e-10

    def test_retract(self, manifold, rng):
        """Retraction stays on the manifold and is first-order accurate."""
        Y = manifold.random_sample(rng)
        V = manifold.proj(Y, rng.standard_normal(manifold.shape))

        assert manifold.is_feasible(manifold.retract(Y, V))
        np.testing.assert_allclose(manifold.retract(Y, 0 * V), Y, atol=1e-12)

        h = 1e-6
        step = manifold.retract(Y, h * V)
        assert np.linalg.norm(step - Y - h * V) < 1e-10

    def test_retract_does_not_mutate(self, manifold, rng):
        """Arguments are left unchanged."""
        Y = manifold.random_sample(rng)
        V = manifold.proj(Y, rng.standard_normal(manifold.shape))
        Y_copy, V_copy = Y.copy(), V.copy()

        manifold.retract(Y, V)
        manifold.proj(Y, V)

        np.testing.assert_array_equal(Y, Y_copy)
        np.testing.assert_array_equal(V, V_copy)

    def test_sym_block_diag_product(self, manifold, rng):
        """Block-wise product matches a per-block loop."""
        A, B, C = (rng.standard_normal(manifold.shape) for _ in range(3))
        result = manifold.sym_block_diag_product(A, B, C)

        for i in range(manifold.n):
            cols = slice(3 * i, 3 * (i + 1))
            P = B[:, cols].T @ C[:, cols]
            np.testing.assert_allclose(result[:, cols], A[:, cols] @ (0.5 * (P + P.T)), atol=1e-12)

    def test_constraint_violation(self, manifold, rng):
        """Scaling a feasible point is detected."""
        Y = manifold.random_sample(rng)

        assert manifold.constraint_violation(Y) < 1e-12
        assert not manifold.is_feasible(2.0 * Y)
        assert not manifold.is_feasible(Y[:, :-3])
