"""Tests for finite-difference derivative checks."""

import numpy as np
import pytest

from sesync.core.math.finite_differences import (
    check_directional_derivative,
    directional_derivative,
)


class TestDirectionalDerivative:
    """Test directional derivative estimates."""

    def test_scalar_quadratic(self, rng):
        """Derivative of tr(Y A Y^T) along V is 2 tr(V A Y^T) for symmetric A."""
        B = rng.standard_normal((4, 4))
        A = B + B.T
        Y = rng.standard_normal((2, 4))
        V = rng.standard_normal((2, 4))

        def func(Z):
            return np.trace(Z @ A @ Z.T)

        expected = 2.0 * np.trace(V @ A @ Y.T)
        assert directional_derivative(func, Y, V, h=1e-4) == pytest.approx(expected, rel=1e-8)

    def test_matrix_valued(self, rng):
        """Derivative of Y -> Y Y^T Y is V Y^T Y + Y V^T Y + Y Y^T V."""
        Y = rng.standard_normal((3, 2))
        V = rng.standard_normal((3, 2))

        def func(Z):
            return Z @ Z.T @ Z

        expected = V @ Y.T @ Y + Y @ V.T @ Y + Y @ Y.T @ V
        ok, error = check_directional_derivative(func, expected, Y, V, h=1e-5)

        assert ok
        assert error < 1e-6

    def test_forward_less_accurate_than_central(self, rng):
        """Central differences beat forward differences on a cubic."""
        Y = rng.standard_normal((2, 2))
        V = rng.standard_normal((2, 2))

        def func(Z):
            return np.sum(Z**3)

        exact = np.sum(3 * Y**2 * V)
        forward = directional_derivative(func, Y, V, h=1e-3, method="forward")
        central = directional_derivative(func, Y, V, h=1e-3, method="central")

        assert abs(central - exact) < abs(forward - exact)

    def test_detects_wrong_derivative(self, rng):
        """An incorrect analytic derivative is flagged."""
        Y = rng.standard_normal((2, 2))
        V = rng.standard_normal((2, 2))

        exact = np.sum(2 * Y * V)
        ok, error = check_directional_derivative(lambda Z: np.sum(Z**2), exact + 1.0, Y, V)

        assert not ok
        assert error == pytest.approx(1.0, abs=1e-4)

    def test_invalid_arguments(self):
        """Shape mismatch and unknown methods are rejected."""
        with pytest.raises(ValueError):
            directional_derivative(np.sum, np.zeros((2, 2)), np.zeros((2, 3)))

        with pytest.raises(ValueError):
            directional_derivative(np.sum, np.zeros((2, 2)), np.zeros((2, 2)), method="backward")
