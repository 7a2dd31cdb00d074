"""Helpers for 3-component vectors stored as numpy arrays."""

from typing import Sequence

import numpy as np
from numpy.typing import NDArray


Vec3 = NDArray[np.float64]


def as_vec3(value: Sequence[float] | NDArray[np.float64], name: str = "vector") -> Vec3:
    """Coerce a sequence into a float64 array of shape (3,).

    Args:
        value: Any sequence of three numbers
        name: Field name used in the error message

    Returns:
        A new float64 array

    Raises:
        ValueError: If the value does not have exactly three components
    """
    arr = np.array(value, dtype=np.float64)
    if arr.shape != (3,):
        raise ValueError(f"{name} must have 3 components, got shape {arr.shape}")
    return arr


def format_vec3(vec: Vec3, precision: int = 2) -> str:
    """Format a vector as ``[x, y, z]`` with fixed precision."""
    return "[" + ", ".join(f"{float(v):.{precision}f}" for v in vec) + "]"
