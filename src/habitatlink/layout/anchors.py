"""Anchor points where habitat modules can be connected."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

import numpy as np
from numpy.typing import NDArray

from ..core.vector import as_vec3
from ..errors import AnchorError


class AnchorKind(Enum):
    """Kind of interconnect an anchor provides.

    Purely descriptive; the connection math does not depend on it.
    """

    VERTICAL = "vertical_interconnect"
    HORIZONTAL = "horizontal_interconnect"

    @classmethod
    def parse(cls, value: "AnchorKind | str") -> "AnchorKind":
        """Parse a kind from its value, accepting '-' or '_' separators."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        # Short forms: "vertical", "horizontal"
        if normalized in ("vertical", "horizontal"):
            normalized = f"{normalized}_interconnect"
        try:
            return cls(normalized)
        except ValueError:
            raise AnchorError(f"Unknown anchor kind: {value!r}") from None


@dataclass(eq=False)
class Anchor:
    """An oriented attachment point in a module's local frame.

    ``direction`` is the outward normal another module approaches from and
    ``up`` fixes the rotational frame at the anchor face. Both are expected
    to be unit vectors. They are not required to be orthogonal: skew inputs
    give skew results rather than errors.

    Attributes:
        id: Identifier, unique within the owning module
        kind: Interconnect kind
        radius: Physical clearance radius, carried but unused by the math
        position: Location in module-local space [x, y, z]
        direction: Outward unit normal [x, y, z]
        up: Unit "up" vector at the anchor face [x, y, z]
        compatible_types: Module type tags this anchor may mate with
    """

    id: str
    kind: AnchorKind
    radius: float
    position: NDArray[np.float64]
    direction: NDArray[np.float64]
    up: NDArray[np.float64]
    compatible_types: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        self.kind = AnchorKind.parse(self.kind)
        self.radius = float(self.radius)
        try:
            self.position = as_vec3(self.position, "position")
            self.direction = as_vec3(self.direction, "direction")
            self.up = as_vec3(self.up, "up")
        except ValueError as e:
            raise AnchorError(f"Anchor '{self.id}': {e}") from e
        self.compatible_types = frozenset(self.compatible_types)

    def accepts(self, module_type: str | None) -> bool:
        """Check whether a module of the given type may mate with this anchor.

        An anchor with no declared compatible types accepts anything, and so
        does a module without a type.
        """
        if not self.compatible_types or module_type is None:
            return True
        return module_type in self.compatible_types

    def validate(self, tolerance: float = 1e-6) -> None:
        """Check the anchor against stricter rules than the connection math needs.

        Raises:
            AnchorError: If radius is not positive, or direction or up is not
                unit length within tolerance
        """
        if self.radius <= 0:
            raise AnchorError(f"Anchor '{self.id}': radius must be positive, got {self.radius}")
        for name in ("direction", "up"):
            length = float(np.linalg.norm(getattr(self, name)))
            if abs(length - 1.0) > tolerance:
                raise AnchorError(
                    f"Anchor '{self.id}': {name} must be a unit vector, got length {length:.6g}"
                )


def parse_anchor(data: dict[str, Any]) -> Anchor:
    """Parse an anchor from YAML data.

    Args:
        data: Dictionary with id, kind, radius, position, direction, up and
            optional compatible fields

    Returns:
        Anchor instance
    """
    if not isinstance(data, dict):
        raise AnchorError(f"Anchor definition must be a mapping, got {type(data).__name__}")

    missing = [key for key in ("id", "position", "direction", "up") if key not in data]
    if missing:
        anchor_id = data.get("id", "<unnamed>")
        raise AnchorError(f"Anchor '{anchor_id}' is missing: {', '.join(missing)}")

    compatible: Iterable[str] = data.get("compatible", data.get("compatible_types", ()))
    if isinstance(compatible, str):
        compatible = [compatible]

    return Anchor(
        id=str(data["id"]),
        kind=data.get("kind", AnchorKind.HORIZONTAL),
        radius=data.get("radius", 0.2),
        position=data["position"],
        direction=data["direction"],
        up=data["up"],
        compatible_types=frozenset(str(t) for t in compatible),
    )
