"""Placement class for module position and orientation."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation


@dataclass
class Placement:
    """Position and orientation of a module in layout space.

    Rotation is stored as Euler angles (XYZ order) in degrees, which is the
    unit connection results are expressed in.
    """

    position: NDArray[np.float64] = field(
        default_factory=lambda: np.zeros(3, dtype=np.float64)
    )
    rotation: NDArray[np.float64] = field(
        default_factory=lambda: np.zeros(3, dtype=np.float64)
    )

    def __post_init__(self) -> None:
        self.position = np.array(self.position, dtype=np.float64)
        self.rotation = np.array(self.rotation, dtype=np.float64)

    def rotate(self, vector: NDArray[np.float64]) -> NDArray[np.float64]:
        """Rotate a vector by this placement's Euler angles."""
        r = Rotation.from_euler("xyz", self.rotation, degrees=True)
        return r.apply(vector)

    def as_dict(self) -> dict[str, list[float]]:
        """Plain-data form, suitable for YAML or JSON output."""
        return {
            "position": [float(v) for v in self.position],
            "rotation": [float(v) for v in self.rotation],
        }

    @staticmethod
    def identity() -> Placement:
        """Create a placement at the origin with no rotation."""
        return Placement()
