"""Registry of modules and declared connections between their anchors."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

from ..config import ConnectionSettings
from ..core.transform import Placement
from ..core.vector import format_vec3
from ..errors import UnknownModuleError
from .anchors import Anchor
from .connection import (
    YAW_ONLY,
    ConnectionResult,
    ConnectionSpec,
    RotationAligner,
    apply_connection,
    connect,
)

logger = logging.getLogger(__name__)


@dataclass
class ModuleGraph:
    """Modules as nodes and declared connections as directed edges.

    Edges keep declaration order, both overall and per source module.
    """

    nodes: list[str] = field(default_factory=list)
    edges: list[ConnectionSpec] = field(default_factory=list)

    def outgoing(self, module_id: str) -> list[ConnectionSpec]:
        """Edges whose source is module_id, in declaration order."""
        return [e for e in self.edges if e.source_module == module_id]


class ConnectionRegistry:
    """Stateful coordinator for a layout-building session.

    Register modules (named anchor sets), declare connections between their
    anchors, then resolve all declared connections into module placements.
    Registrations and declarations may be interleaved freely; ids are only
    checked at resolution time.

    Not thread-safe. Use one registry per session.

    Example:
        registry = ConnectionRegistry()
        registry.register_module("m1", [anchor_a])
        registry.register_module("m2", [anchor_b])
        registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))
        placements = registry.resolve_all()
    """

    def __init__(
        self,
        tolerance: float = 0.0,
        aligner: RotationAligner = YAW_ONLY,
    ) -> None:
        """Initialize an empty registry.

        Args:
            tolerance: Direction compatibility tolerance passed to connect()
            aligner: Rotation strategy passed to connect() and apply_connection()
        """
        if tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {tolerance}")
        self.tolerance = tolerance
        self.aligner = aligner
        self._modules: dict[str, list[Anchor]] = {}
        self._module_types: dict[str, str | None] = {}
        self._connections: list[ConnectionSpec] = []
        self.diagnostics: list[str] = []

    @classmethod
    def from_settings(
        cls,
        settings: ConnectionSettings,
        aligner: RotationAligner = YAW_ONLY,
    ) -> ConnectionRegistry:
        """Create a registry configured from ConnectionSettings."""
        return cls(tolerance=settings.tolerance, aligner=aligner)

    @property
    def modules(self) -> Mapping[str, Sequence[Anchor]]:
        """Read-only view of the module table."""
        return MappingProxyType(self._modules)

    @property
    def connections(self) -> tuple[ConnectionSpec, ...]:
        """Declared connections in declaration order."""
        return tuple(self._connections)

    def module_type(self, module_id: str) -> str | None:
        """Type tag registered for a module, if any."""
        return self._module_types.get(module_id)

    def register_module(
        self,
        module_id: str,
        anchors: Iterable[Anchor],
        module_type: str | None = None,
    ) -> None:
        """Register a module, replacing any anchors previously registered under its id.

        Args:
            module_id: Module identifier
            anchors: The module's anchors
            module_type: Optional type tag used by check_policy()
        """
        anchor_list = list(anchors)
        self._modules[module_id] = anchor_list
        self._module_types[module_id] = module_type
        logger.debug("Registered module %s with %d anchors", module_id, len(anchor_list))

    def declare_connection(self, spec: ConnectionSpec) -> None:
        """Append a connection to resolve later. Ids are not checked here."""
        self._connections.append(spec)
        logger.debug(
            "Declared connection %s.%s <-> %s.%s",
            spec.source_module,
            spec.source_anchor,
            spec.target_module,
            spec.target_anchor,
        )

    def reset(self) -> None:
        """Clear all modules, connections and diagnostics."""
        self._modules.clear()
        self._module_types.clear()
        self._connections.clear()
        self.diagnostics = []
        logger.debug("Registry cleared")

    def anchor(self, module_id: str, anchor_id: str) -> Anchor | None:
        """Find an anchor by module and anchor id, or None if either is unknown."""
        anchors = self._modules.get(module_id)
        if anchors is None:
            return None
        for anchor in anchors:
            if anchor.id == anchor_id:
                return anchor
        return None

    def graph(self) -> ModuleGraph:
        """Build the module graph from the current state."""
        return ModuleGraph(nodes=list(self._modules), edges=list(self._connections))

    def check_policy(self, spec: ConnectionSpec) -> bool:
        """Check that both anchors of a connection accept the other module's type.

        Raises:
            UnknownModuleError: If a module or anchor referenced by spec is unknown
        """
        source = self.anchor(spec.source_module, spec.source_anchor)
        target = self.anchor(spec.target_module, spec.target_anchor)
        if source is None or target is None:
            raise UnknownModuleError(
                f"Cannot check '{spec.name}': "
                f"{spec.source_module}.{spec.source_anchor} or "
                f"{spec.target_module}.{spec.target_anchor} not found"
            )
        return source.accepts(self.module_type(spec.target_module)) and target.accepts(
            self.module_type(spec.source_module)
        )

    def resolve_all(self) -> dict[str, Placement]:
        """Resolve every declared connection relative to an unplaced origin.

        Connections are processed in declaration order. Each compatible
        connection places its target module by applying the connection to
        the origin; the source module's own placement is not taken into
        account. When several connections target the same module the last
        compatible one wins. Connections referencing unknown modules or
        anchors, and incompatible ones, are skipped and reported in
        ``diagnostics``.

        Returns:
            Mapping of target module id to Placement
        """
        self.diagnostics = []
        results: dict[str, Placement] = {}
        origin = Placement.identity()

        logger.info("Resolving %d connections", len(self._connections))
        for spec in self._connections:
            connection = self._connect(spec)
            if connection is None or not connection.compatible:
                continue

            placement = apply_connection(
                origin.position, origin.rotation, connection, self.aligner
            )
            results[spec.target_module] = placement
            logger.info(
                "Placed %s at %s via %s",
                spec.target_module,
                format_vec3(placement.position),
                spec.name,
            )

        return results

    def resolve_chained(self, root: str | None = None) -> dict[str, Placement]:
        """Resolve connections breadth-first, placing targets relative to their sources.

        The root module sits at the origin. Walking outward, a target module
        is placed by rotating the connection translation into its source's
        frame and adding the source position; the rotation correction is
        folded into the source rotation. Each module is placed once, by the
        first compatible connection that reaches it. Modules not reachable
        from the root are left out and reported in ``diagnostics``.

        Args:
            root: Root module id. Defaults to the source of the first declared
                connection.

        Returns:
            Mapping of module id to Placement, including the root

        Raises:
            UnknownModuleError: If the root, given or defaulted, is not registered
        """
        self.diagnostics = []
        if root is None:
            if not self._connections:
                return {}
            root = self._connections[0].source_module
        if root not in self._modules:
            raise UnknownModuleError(f"Root module '{root}' is not registered")

        results: dict[str, Placement] = {root: Placement.identity()}
        logger.info("Resolving %d connections from root %s", len(self._connections), root)

        graph = self.graph()
        # Only placed modules enter the queue, so an incompatible edge never
        # hides a module that a later edge reaches
        queue = deque([root])
        while queue:
            source_id = queue.popleft()
            source_placement = results[source_id]
            for spec in graph.outgoing(source_id):
                if spec.target_module in results:
                    continue
                connection = self._connect(spec)
                if connection is None or not connection.compatible:
                    continue

                placement = Placement(
                    position=source_placement.position
                    + source_placement.rotate(connection.translation),
                    rotation=self.aligner.apply(
                        source_placement.rotation, connection.rotation_degrees
                    ),
                )
                results[spec.target_module] = placement
                queue.append(spec.target_module)
                logger.info(
                    "Placed %s at %s via %s",
                    spec.target_module,
                    format_vec3(placement.position),
                    spec.name,
                )

        for module_id in self._modules:
            if module_id not in results:
                self._report(f"Module not placed (unreachable from {root}): {module_id}")

        return results

    def _connect(self, spec: ConnectionSpec) -> ConnectionResult | None:
        """Look up both anchors of spec and connect them, or report why not."""
        if spec.source_module not in self._modules or spec.target_module not in self._modules:
            self._report(
                f"Modules not found: {spec.source_module} or {spec.target_module}"
            )
            return None

        source = self.anchor(spec.source_module, spec.source_anchor)
        target = self.anchor(spec.target_module, spec.target_anchor)
        if source is None or target is None:
            self._report(
                f"Anchors not found: {spec.source_module}.{spec.source_anchor} "
                f"or {spec.target_module}.{spec.target_anchor}"
            )
            return None

        connection = connect(source, target, self.tolerance, self.aligner)
        if not connection.compatible:
            self._report(f"Connection {spec.name} skipped: {connection.error}")
        return connection

    def _report(self, message: str) -> None:
        self.diagnostics.append(message)
        logger.warning(message)
