"""Finite-difference checks for matrix-valued objective derivatives."""

import numpy as np
from typing import Callable, Union


ArrayOrScalar = Union[float, np.ndarray]


def directional_derivative(
    func: Callable[[np.ndarray], ArrayOrScalar],
    Y: np.ndarray,
    V: np.ndarray,
    h: float = 1e-6,
    method: str = "central"
) -> ArrayOrScalar:
    """Estimate D func(Y)[V] with finite differences.

    Args:
        func: Scalar- or matrix-valued function of a matrix argument
        Y: Base point
        V: Direction, same shape as Y
        h: Step size
        method: Finite difference method ("forward", "central")

    Returns:
        Derivative estimate with the same shape as func(Y)
    """
    if Y.shape != V.shape:
        raise ValueError(f"Direction shape {V.shape} does not match point shape {Y.shape}")

    if method == "forward":
        return (np.asarray(func(Y + h * V)) - np.asarray(func(Y))) / h
    elif method == "central":
        f_plus = np.asarray(func(Y + h * V))
        f_minus = np.asarray(func(Y - h * V))
        return (f_plus - f_minus) / (2 * h)
    else:
        raise ValueError(f"Unknown finite difference method: {method}")


def check_directional_derivative(
    func: Callable[[np.ndarray], ArrayOrScalar],
    derivative: ArrayOrScalar,
    Y: np.ndarray,
    V: np.ndarray,
    h: float = 1e-6,
    atol: float = 1e-6,
    rtol: float = 1e-5
) -> tuple[bool, float]:
    """Compare an analytic directional derivative against finite differences.

    Args:
        func: Function being differentiated
        derivative: Analytic value of D func(Y)[V]
        Y: Base point
        V: Direction
        h: Step size
        atol: Absolute tolerance
        rtol: Relative tolerance

    Returns:
        Tuple of (is_correct, max_abs_error)
    """
    numeric = directional_derivative(func, Y, V, h)
    analytic = np.asarray(derivative)

    error = float(np.max(np.abs(analytic - numeric)))
    is_correct = bool(np.allclose(analytic, numeric, atol=atol, rtol=rtol))

    return is_correct, error
