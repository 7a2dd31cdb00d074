"""habitatlink - anchor connection kernel for habitat module layouts."""

from .config import ConnectionSettings
from .core import Placement
from .errors import AnchorError, HabitatLinkError, LayoutError, UnknownModuleError
from .layout import (
    YAW_ONLY,
    Anchor,
    AnchorKind,
    ConnectionRegistry,
    ConnectionResult,
    ConnectionSpec,
    LayoutLoader,
    ModuleGraph,
    RotationAligner,
    YawOnlyAligner,
    apply_connection,
    check_compatible,
    compute_rotation,
    compute_translation,
    connect,
)

__version__ = "0.1.0"

__all__ = [
    "Anchor",
    "AnchorKind",
    "ConnectionSpec",
    "ConnectionResult",
    "ConnectionRegistry",
    "ConnectionSettings",
    "LayoutLoader",
    "ModuleGraph",
    "Placement",
    "RotationAligner",
    "YawOnlyAligner",
    "YAW_ONLY",
    "check_compatible",
    "compute_translation",
    "compute_rotation",
    "connect",
    "apply_connection",
    "HabitatLinkError",
    "AnchorError",
    "LayoutError",
    "UnknownModuleError",
]
