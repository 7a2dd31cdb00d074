"""YAML loader for habitat layout definitions."""

from pathlib import Path
from typing import Any

import yaml

from ..config import ConnectionSettings
from ..errors import LayoutError
from .anchors import Anchor, parse_anchor
from .connection import ConnectionSpec
from .registry import ConnectionRegistry


def parse_endpoint(value: str) -> tuple[str, str]:
    """Split a ``module.anchor`` reference into its two ids.

    The module id ends at the first dot, so anchor ids may contain dots but
    module ids may not.
    """
    module_id, sep, anchor_id = str(value).partition(".")
    if not sep or not module_id or not anchor_id:
        raise LayoutError(f"Expected 'module.anchor', got {value!r}")
    return module_id, anchor_id


def parse_connection(data: dict[str, Any]) -> ConnectionSpec:
    """Parse a connection from YAML data.

    Accepts either the short form::

        source: hab_1.port_c
        target: lab_1.port_d
        label: Hab to lab

    or the long form with ``source_module``, ``source_anchor``,
    ``target_module`` and ``target_anchor`` keys.
    """
    if not isinstance(data, dict):
        raise LayoutError(f"Connection definition must be a mapping, got {type(data).__name__}")

    label = data.get("label", data.get("name"))
    if "source" in data or "target" in data:
        if "source" not in data or "target" not in data:
            raise LayoutError("Connection needs both 'source' and 'target'")
        source_module, source_anchor = parse_endpoint(data["source"])
        target_module, target_anchor = parse_endpoint(data["target"])
    else:
        keys = ("source_module", "source_anchor", "target_module", "target_anchor")
        missing = [k for k in keys if k not in data]
        if missing:
            raise LayoutError(f"Connection is missing: {', '.join(missing)}")
        source_module, source_anchor, target_module, target_anchor = (
            str(data[k]) for k in keys
        )

    return ConnectionSpec(
        source_module=source_module,
        source_anchor=source_anchor,
        target_module=target_module,
        target_anchor=target_anchor,
        label=str(label) if label is not None else None,
    )


class LayoutLoader:
    """Loads module and connection definitions from YAML into a registry.

    YAML format:
        settings:                  # optional, see ConnectionSettings
          tolerance: 0.0
          chain: false

        modules:
          hab_1:
            type: habitat          # optional, used by policy checks
            anchors:
              - id: port_c
                kind: horizontal_interconnect
                radius: 0.2
                position: [2, 0, 0]
                direction: [1, 0, 0]
                up: [0, 1, 0]
                compatible: [habitat, lab]

        connections:
          - source: hab_1.port_c
            target: lab_1.port_d
            label: Hab to lab
    """

    def __init__(self, **overrides: Any) -> None:
        """Initialize the loader.

        Args:
            overrides: ConnectionSettings fields that take precedence over a
                file's settings block. None values are ignored.
        """
        self._overrides = overrides
        self.settings = ConnectionSettings().override(**overrides)

    def load(self, path: str | Path) -> ConnectionRegistry:
        """Load a layout definition from a YAML file.

        Args:
            path: Path to the YAML file

        Returns:
            ConnectionRegistry populated with the file's modules and connections
        """
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f)

        return self._build_registry(data)

    def load_string(self, yaml_string: str) -> ConnectionRegistry:
        """Load a layout definition from a YAML string."""
        data = yaml.safe_load(yaml_string)
        return self._build_registry(data)

    def _build_registry(self, data: Any) -> ConnectionRegistry:
        """Build a registry from parsed YAML data."""
        if not isinstance(data, dict):
            raise LayoutError("Layout must be a mapping with 'modules' and 'connections'")

        self.settings = ConnectionSettings.from_dict(data.get("settings")).override(
            **self._overrides
        )
        registry = ConnectionRegistry.from_settings(self.settings)

        modules = data.get("modules") or {}
        if not isinstance(modules, dict):
            raise LayoutError("'modules' must be a mapping of module id to definition")

        for module_id, module_def in modules.items():
            anchors, module_type = self._parse_module(str(module_id), module_def)
            registry.register_module(str(module_id), anchors, module_type=module_type)

        connections = data.get("connections") or []
        if not isinstance(connections, list):
            raise LayoutError("'connections' must be a list")

        for index, connection_def in enumerate(connections):
            try:
                spec = parse_connection(connection_def)
            except LayoutError as e:
                raise LayoutError(f"Connection #{index}: {e}") from e
            registry.declare_connection(spec)

        return registry

    def _parse_module(
        self, module_id: str, module_def: Any
    ) -> tuple[list[Anchor], str | None]:
        """Parse a module's anchors and optional type tag."""
        if module_def is None:
            return [], None
        if isinstance(module_def, list):
            # Bare list of anchors
            module_def = {"anchors": module_def}
        if not isinstance(module_def, dict):
            raise LayoutError(f"Module '{module_id}' must be a mapping or a list of anchors")

        anchors: list[Anchor] = []
        seen: set[str] = set()
        anchor_defs = module_def.get("anchors") or []
        if not isinstance(anchor_defs, list):
            raise LayoutError(f"Module '{module_id}': 'anchors' must be a list")

        for anchor_def in anchor_defs:
            try:
                anchor = parse_anchor(anchor_def)
                if self.settings.strict_vectors:
                    anchor.validate(self.settings.unit_tolerance)
            except (ValueError, TypeError) as e:
                raise LayoutError(f"Module '{module_id}': {e}") from e

            if anchor.id in seen:
                raise LayoutError(f"Module '{module_id}' has duplicate anchor id '{anchor.id}'")
            seen.add(anchor.id)
            anchors.append(anchor)

        module_type = module_def.get("type")
        return anchors, str(module_type) if module_type is not None else None
