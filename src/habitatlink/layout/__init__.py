"""Anchor model, connection algorithm and connection registry."""

from .anchors import Anchor, AnchorKind, parse_anchor
from .connection import (
    YAW_ONLY,
    ConnectionResult,
    ConnectionSpec,
    RotationAligner,
    YawOnlyAligner,
    apply_connection,
    check_compatible,
    compute_rotation,
    compute_translation,
    connect,
)
from .loader import LayoutLoader
from .registry import ConnectionRegistry, ModuleGraph

__all__ = [
    "Anchor",
    "AnchorKind",
    "parse_anchor",
    "ConnectionSpec",
    "ConnectionResult",
    "RotationAligner",
    "YawOnlyAligner",
    "YAW_ONLY",
    "check_compatible",
    "compute_translation",
    "compute_rotation",
    "connect",
    "apply_connection",
    "ConnectionRegistry",
    "ModuleGraph",
    "LayoutLoader",
]
