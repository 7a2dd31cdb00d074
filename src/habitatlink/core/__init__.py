"""Core vector and placement types."""

from .transform import Placement
from .vector import Vec3, as_vec3, format_vec3

__all__ = ["Placement", "Vec3", "as_vec3", "format_vec3"]
