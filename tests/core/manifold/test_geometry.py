"""Tests for the domain geometry with Euclidean translation columns."""

import numpy as np
import pytest

from sesync.core.exceptions import DimensionMismatchError
from sesync.core.manifold.geometry import ProblemGeometry
from sesync.core.manifold.stiefel import StiefelProduct


@pytest.fixture
def geometry():
    """R^{4 x 3} x St(2, 4)^3."""
    return ProblemGeometry(StiefelProduct(2, 4, 3), num_translations=3)


class TestProblemGeometry:
    """Test the explicit-formulation domain geometry."""

    def test_shape(self, geometry):
        """Translation columns precede orientation columns."""
        assert geometry.shape == (4, 9)
        assert geometry.rank == 4

    def test_check_shape(self, geometry):
        """Wrongly shaped arguments raise."""
        geometry.check_shape(np.zeros((4, 9)))

        with pytest.raises(DimensionMismatchError, match="dotY"):
            geometry.check_shape(np.zeros((4, 6)), "dotY")

    def test_random_sample(self, geometry, rng):
        """Random samples are feasible."""
        Y = geometry.random_sample(rng)

        assert Y.shape == geometry.shape
        assert geometry.is_feasible(Y)

    def test_translations_untouched_by_projection(self, geometry, rng):
        """Translation columns of a tangent vector are unconstrained."""
        Y = geometry.random_sample(rng)
        V = rng.standard_normal(geometry.shape)
        P = geometry.tangent_space_projection(Y, V)

        np.testing.assert_allclose(geometry.translations(P), geometry.translations(V))
        np.testing.assert_allclose(geometry.tangent_space_projection(Y, P), P, atol=1e-12)

    def test_retract_translations(self, geometry, rng):
        """Translations retract additively."""
        Y = geometry.random_sample(rng)
        V = geometry.tangent_space_projection(Y, rng.standard_normal(geometry.shape))
        Z = geometry.retract(Y, V)

        np.testing.assert_allclose(
            geometry.translations(Z), geometry.translations(Y) + geometry.translations(V)
        )
        assert geometry.is_feasible(Z)

    def test_weingarten_correction(self, geometry, rng):
        """Curvature term vanishes on translation columns."""
        Y = geometry.random_sample(rng)
        G = rng.standard_normal(geometry.shape)
        V = rng.standard_normal(geometry.shape)

        correction = geometry.weingarten_correction(Y, G, V)

        assert correction.shape == geometry.shape
        np.testing.assert_array_equal(geometry.translations(correction), 0.0)

    def test_implicit_geometry(self, rng):
        """Without translations the geometry is the Stiefel product itself."""
        manifold = StiefelProduct(3, 3, 2)
        geometry = ProblemGeometry(manifold)

        Y = geometry.random_sample(rng)
        V = rng.standard_normal(geometry.shape)

        assert geometry.shape == manifold.shape
        np.testing.assert_allclose(
            geometry.tangent_space_projection(Y, V), manifold.proj(Y, V)
        )
        assert geometry.translations(Y).shape == (3, 0)
