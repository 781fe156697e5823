"""Relative pose measurements between pairs of poses."""

from typing import List

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RelativePoseMeasurement(BaseModel):
    """Noisy relative transform from pose i to pose j.

    The measurement model is
    - R_j = R_i @ R
    - t_j = t_i + R_i @ t

    with isotropic Langevin noise on the rotation (concentration kappa) and
    isotropic Gaussian noise on the translation (precision tau).
    """

    model_config = ConfigDict(frozen=True)

    i: int = Field(ge=0, description="Index of the tail pose")
    j: int = Field(ge=0, description="Index of the head pose")
    R: List[List[float]] = Field(description="Relative rotation, d x d", min_length=2)
    t: List[float] = Field(description="Relative translation, length d", min_length=2)
    kappa: float = Field(gt=0, allow_inf_nan=False, description="Rotational measurement precision")
    tau: float = Field(gt=0, allow_inf_nan=False, description="Translational measurement precision")

    @field_validator('R')
    @classmethod
    def validate_rotation(cls, v):
        R = np.asarray(v, dtype=float)
        d = len(v)
        if R.shape != (d, d):
            raise ValueError(f"R must be a square matrix, got shape {R.shape}")
        if not np.all(np.isfinite(R)):
            raise ValueError("R must be finite")
        if not np.allclose(R.T @ R, np.eye(d), atol=1e-6):
            raise ValueError("R must be orthogonal")
        if np.linalg.det(R) < 0:
            raise ValueError("R must have determinant +1")
        return v

    @field_validator('t')
    @classmethod
    def validate_translation(cls, v):
        if not np.all(np.isfinite(np.asarray(v, dtype=float))):
            raise ValueError("t must be finite")
        return v

    @model_validator(mode='after')
    def validate_consistency(self):
        if self.i == self.j:
            raise ValueError(f"Measurement endpoints must differ, got i = j = {self.i}")
        if len(self.t) != len(self.R):
            raise ValueError(
                f"Translation length {len(self.t)} does not match rotation size {len(self.R)}"
            )
        return self

    @property
    def dimension(self) -> int:
        """Dimension d of the group SE(d) this measurement lives in."""
        return len(self.R)

    def rotation(self) -> np.ndarray:
        """Relative rotation as a d x d array."""
        return np.array(self.R, dtype=float)

    def translation(self) -> np.ndarray:
        """Relative translation as a length-d array."""
        return np.array(self.t, dtype=float)

    @classmethod
    def from_numpy(
        cls,
        i: int,
        j: int,
        R: np.ndarray,
        t: np.ndarray,
        kappa: float = 1.0,
        tau: float = 1.0,
    ) -> "RelativePoseMeasurement":
        """Build a measurement from numpy arrays."""
        return cls(
            i=int(i),
            j=int(j),
            R=np.asarray(R, dtype=float).tolist(),
            t=np.asarray(t, dtype=float).ravel().tolist(),
            kappa=float(kappa),
            tau=float(tau),
        )
