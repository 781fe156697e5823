"""Tests for relative pose measurement models."""

import numpy as np
import pytest
from pydantic import ValidationError

from sesync.core.math.rotations import planar_rotation, random_rotation
from sesync.core.models.measurements import RelativePoseMeasurement


class TestRelativePoseMeasurement:
    """Test measurement validation and conversions."""

    def test_from_numpy(self, rng):
        """Arrays are converted to plain lists and back."""
        R = random_rotation(3, rng)
        t = rng.standard_normal(3)

        measurement = RelativePoseMeasurement.from_numpy(0, 2, R, t, kappa=5.0, tau=2.0)

        assert measurement.i == 0
        assert measurement.j == 2
        assert measurement.dimension == 3
        assert measurement.kappa == 5.0
        assert measurement.tau == 2.0
        np.testing.assert_allclose(measurement.rotation(), R)
        np.testing.assert_allclose(measurement.translation(), t)

    def test_planar_measurement(self):
        """Two-dimensional measurements are accepted."""
        measurement = RelativePoseMeasurement(
            i=1, j=0, R=planar_rotation(0.5).tolist(), t=[1.0, -1.0], kappa=1.0, tau=1.0
        )
        assert measurement.dimension == 2

    def test_frozen(self, rng):
        """Measurements are immutable."""
        measurement = RelativePoseMeasurement.from_numpy(0, 1, np.eye(3), np.zeros(3))

        with pytest.raises(ValidationError):
            measurement.kappa = 2.0

    def test_from_dict(self):
        """Test validation from a plain dictionary."""
        data = {
            "i": 0,
            "j": 1,
            "R": [[1.0, 0.0], [0.0, 1.0]],
            "t": [0.5, 0.0],
            "kappa": 10.0,
            "tau": 3.0,
        }
        measurement = RelativePoseMeasurement.model_validate(data)
        assert measurement.tau == 3.0

    @pytest.mark.parametrize("kappa,tau", [(0.0, 1.0), (1.0, 0.0), (-1.0, 1.0), (1.0, -2.0)])
    def test_nonpositive_precision(self, kappa, tau):
        """Precisions must be strictly positive."""
        with pytest.raises(ValidationError):
            RelativePoseMeasurement.from_numpy(0, 1, np.eye(2), np.zeros(2), kappa=kappa, tau=tau)

    def test_negative_index(self):
        """Pose indices are nonnegative."""
        with pytest.raises(ValidationError):
            RelativePoseMeasurement.from_numpy(-1, 1, np.eye(2), np.zeros(2))

    def test_self_loop(self):
        """A measurement must connect two distinct poses."""
        with pytest.raises(ValidationError, match="endpoints must differ"):
            RelativePoseMeasurement.from_numpy(3, 3, np.eye(2), np.zeros(2))

    def test_non_orthogonal_rotation(self):
        """Non-orthogonal matrices are rejected."""
        with pytest.raises(ValidationError, match="orthogonal"):
            RelativePoseMeasurement.from_numpy(0, 1, 2.0 * np.eye(3), np.zeros(3))

    def test_reflection(self):
        """Improper rotations are rejected."""
        with pytest.raises(ValidationError, match="determinant"):
            RelativePoseMeasurement.from_numpy(0, 1, np.diag([1.0, 1.0, -1.0]), np.zeros(3))

    def test_non_square_rotation(self):
        """The rotation must be square."""
        with pytest.raises(ValidationError, match="square"):
            RelativePoseMeasurement(
                i=0, j=1, R=[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], t=[0.0, 0.0], kappa=1.0, tau=1.0
            )

    def test_non_finite_rotation(self):
        """NaN entries are rejected."""
        R = np.eye(2)
        R[0, 1] = np.nan
        with pytest.raises(ValidationError):
            RelativePoseMeasurement.from_numpy(0, 1, R, np.zeros(2))

    def test_non_finite_translation(self):
        """NaN and infinite translations are rejected."""
        for bad in (np.nan, np.inf):
            with pytest.raises(ValidationError, match="t must be finite"):
                RelativePoseMeasurement.from_numpy(0, 1, np.eye(3), np.array([bad, 0.0, 0.0]))

    @pytest.mark.parametrize("kappa,tau", [(np.inf, 1.0), (1.0, np.inf), (np.nan, 1.0), (1.0, np.nan)])
    def test_non_finite_precision(self, kappa, tau):
        """Precisions must be finite."""
        with pytest.raises(ValidationError):
            RelativePoseMeasurement.from_numpy(0, 1, np.eye(2), np.zeros(2), kappa=kappa, tau=tau)

    def test_translation_dimension(self):
        """Translation length must match the rotation size."""
        with pytest.raises(ValidationError, match="does not match"):
            RelativePoseMeasurement.from_numpy(0, 1, np.eye(3), np.zeros(2))
