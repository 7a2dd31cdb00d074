"""Connection settings shared by the registry, loader and CLI."""

from dataclasses import dataclass, fields, replace
from typing import Any

from .errors import LayoutError


@dataclass(frozen=True)
class ConnectionSettings:
    """Options controlling how declared connections are resolved.

    Attributes:
        tolerance: Direction compatibility tolerance. 0 means the exact
            component-wise antiparallel test.
        chain: Resolve connections breadth-first from a root module instead
            of placing every target relative to the origin.
        root: Root module for chained resolution. Defaults to the source of
            the first declared connection.
        strict_vectors: Reject anchors whose direction or up vectors are not
            unit length.
        unit_tolerance: Allowed deviation from unit length when
            strict_vectors is set.
    """

    tolerance: float = 0.0
    chain: bool = False
    root: str | None = None
    strict_vectors: bool = False
    unit_tolerance: float = 1e-6

    def __post_init__(self) -> None:
        if self.tolerance < 0:
            raise LayoutError(f"tolerance must be >= 0, got {self.tolerance}")
        if self.unit_tolerance < 0:
            raise LayoutError(f"unit_tolerance must be >= 0, got {self.unit_tolerance}")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ConnectionSettings":
        """Build settings from the ``settings`` block of a layout file.

        Args:
            data: Mapping of setting name to value, or None for defaults

        Returns:
            ConnectionSettings instance

        Raises:
            LayoutError: If the block is not a mapping, has unknown keys or
                has values of the wrong type
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise LayoutError("settings must be a mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise LayoutError(f"Unknown settings: {', '.join(unknown)}")

        values = dict(data)
        for key in ("tolerance", "unit_tolerance"):
            if key in values:
                try:
                    values[key] = float(values[key])
                except (TypeError, ValueError):
                    raise LayoutError(
                        f"{key} must be a number, got {values[key]!r}"
                    ) from None
        for key in ("chain", "strict_vectors"):
            if key in values and not isinstance(values[key], bool):
                raise LayoutError(f"{key} must be true or false, got {values[key]!r}")
        if values.get("root") is not None:
            values["root"] = str(values["root"])
        return cls(**values)

    def override(self, **changes: Any) -> "ConnectionSettings":
        """Return a copy with the non-None values in changes applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
