"""Anchor connection algorithm.

Pure functions deciding whether two anchors can be mated and computing the
transform that snaps the second module onto the first. Nothing here logs or
raises on incompatible input; the outcome is returned as data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from ..core.transform import Placement
from ..core.vector import as_vec3
from .anchors import Anchor


@dataclass(frozen=True)
class ConnectionSpec:
    """A declared intent to connect one module's anchor to another's.

    Attributes:
        source_module: Module owning the source anchor
        source_anchor: Anchor id on the source module
        target_module: Module that gets placed by this connection
        target_anchor: Anchor id on the target module
        label: Optional human-readable name
    """

    source_module: str
    source_anchor: str
    target_module: str
    target_anchor: str
    label: str | None = None

    @property
    def name(self) -> str:
        """Label if set, otherwise ``"<source_anchor> <-> <target_anchor>"``."""
        return self.label or f"{self.source_anchor} <-> {self.target_anchor}"


@dataclass(eq=False)
class ConnectionResult:
    """Outcome of connecting two anchors.

    Incompatible results carry zero translation, rotation and distance, and
    an error describing the mismatched directions.
    """

    compatible: bool
    translation: NDArray[np.float64] = field(
        default_factory=lambda: np.zeros(3, dtype=np.float64)
    )
    rotation_degrees: float = 0.0
    distance: float = 0.0
    error: str | None = None

    def __post_init__(self) -> None:
        self.translation = as_vec3(self.translation, "translation")
        self.rotation_degrees = float(self.rotation_degrees)
        self.distance = float(self.distance)

    @classmethod
    def incompatible(cls, reason: str) -> ConnectionResult:
        """Create a failed result with the given reason."""
        return cls(compatible=False, error=reason)


@runtime_checkable
class RotationAligner(Protocol):
    """Strategy for aligning the rotational frames of two anchors.

    ``angle`` measures the misalignment between two anchors and ``apply``
    folds that angle into a module's Euler rotation (degrees).
    """

    def angle(self, a: Anchor, b: Anchor) -> float:
        ...

    def apply(self, rotation: NDArray[np.float64], angle: float) -> NDArray[np.float64]:
        ...


class YawOnlyAligner:
    """Yaw-only approximation of frame alignment.

    The angle is the unsigned angle between the two ``up`` vectors, in
    [0, 180] degrees, and it is always applied about the Y axis. This gives
    the magnitude of the misalignment only, not its sense or a full 3D
    rotation.
    """

    def angle(self, a: Anchor, b: Anchor) -> float:
        dot = float(np.dot(a.up, b.up))
        # Clip so drift past +-1 cannot turn arccos into NaN
        return float(np.degrees(np.arccos(np.clip(dot, -1.0, 1.0))))

    def apply(self, rotation: NDArray[np.float64], angle: float) -> NDArray[np.float64]:
        rotated = np.array(rotation, dtype=np.float64)
        rotated[1] += angle
        return rotated


YAW_ONLY = YawOnlyAligner()


def check_compatible(a: Anchor, b: Anchor, tolerance: float = 0.0) -> bool:
    """Check whether two anchors face each other and can be mated.

    With ``tolerance == 0`` the directions must be exact component-wise
    negations of each other. Two zero directions pass this test.

    With ``tolerance > 0`` the cosine of the angle between the directions
    must be at most ``-1 + tolerance``. Zero-length directions never pass.

    Args:
        a: First anchor
        b: Second anchor
        tolerance: Allowed deviation from exactly antiparallel

    Returns:
        True if the anchors are compatible
    """
    if tolerance < 0:
        raise ValueError(f"tolerance must be >= 0, got {tolerance}")

    if tolerance == 0:
        return bool(np.array_equal(a.direction, -b.direction))

    norm_a = np.linalg.norm(a.direction)
    norm_b = np.linalg.norm(b.direction)
    if norm_a == 0 or norm_b == 0:
        return False
    cosine = float(np.dot(a.direction, b.direction) / (norm_a * norm_b))
    return cosine <= -1.0 + tolerance


def compute_translation(a: Anchor, b: Anchor) -> NDArray[np.float64]:
    """Compute the translation between two anchors, ``b.position - a.position``.

    Both positions must already be expressed in a common frame.
    """
    return b.position - a.position


def compute_rotation(a: Anchor, b: Anchor) -> float:
    """Compute the angle in degrees between the anchors' up vectors."""
    return YAW_ONLY.angle(a, b)


def connect(
    a: Anchor,
    b: Anchor,
    tolerance: float = 0.0,
    aligner: RotationAligner = YAW_ONLY,
) -> ConnectionResult:
    """Connect two anchors.

    Args:
        a: Anchor on the module being connected to
        b: Anchor on the module being placed
        tolerance: Compatibility tolerance, see check_compatible
        aligner: Strategy computing the rotation correction

    Returns:
        ConnectionResult with translation, rotation and distance when the
        anchors are compatible, or an error message when they are not
    """
    if not check_compatible(a, b, tolerance):
        return ConnectionResult.incompatible(
            f"Incompatible directions: {_format_direction(a.direction)} "
            f"vs {_format_direction(b.direction)}"
        )

    translation = compute_translation(a, b)
    return ConnectionResult(
        compatible=True,
        translation=translation,
        rotation_degrees=aligner.angle(a, b),
        distance=float(np.linalg.norm(translation)),
    )


def apply_connection(
    position: NDArray[np.float64],
    rotation: NDArray[np.float64],
    connection: ConnectionResult,
    aligner: RotationAligner = YAW_ONLY,
) -> Placement:
    """Apply a connection result to a module's position and rotation.

    An incompatible result leaves the inputs unchanged.

    Args:
        position: Current module position [x, y, z]
        rotation: Current Euler rotation in degrees [x, y, z]
        connection: Result from connect()
        aligner: Strategy folding the rotation correction into the rotation

    Returns:
        The new Placement
    """
    position = as_vec3(position, "position")
    rotation = as_vec3(rotation, "rotation")

    if not connection.compatible:
        return Placement(position=position, rotation=rotation)

    return Placement(
        position=position + connection.translation,
        rotation=aligner.apply(rotation, connection.rotation_degrees),
    )


def _format_direction(vec: NDArray[np.float64]) -> str:
    # Integral components print without a trailing ".0"
    return ",".join(f"{v:g}" for v in vec)
