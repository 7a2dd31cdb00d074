"""Tests for the connection registry."""

import logging

import numpy as np
import pytest

from habitatlink import (
    Anchor,
    AnchorKind,
    ConnectionRegistry,
    ConnectionSettings,
    ConnectionSpec,
    Placement,
    UnknownModuleError,
)


def make_anchor(anchor_id, position, direction, up=(0, 0, 1), compatible=()):
    """Build a horizontal anchor with a fixed radius."""
    return Anchor(
        id=anchor_id,
        kind=AnchorKind.HORIZONTAL,
        radius=0.2,
        position=position,
        direction=direction,
        up=up,
        compatible_types=compatible,
    )


def anchor_a():
    return make_anchor("A", (0, -2, 0), (0, -1, 0))


def anchor_b():
    return make_anchor("B", (0, 2, 0), (0, 1, 0))


def two_module_registry() -> ConnectionRegistry:
    """Registry with m1.A facing m2.B, as in the vertical stacking case."""
    registry = ConnectionRegistry()
    registry.register_module("m1", [anchor_a()])
    registry.register_module("m2", [anchor_b()])
    return registry


def assert_placement(placement: Placement, position, rotation):
    np.testing.assert_allclose(placement.position, position, atol=1e-9)
    np.testing.assert_allclose(placement.rotation, rotation, atol=1e-9)


def test_scenario_c_single_connection():
    """A single declared connection places the target module."""
    registry = two_module_registry()
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))

    results = registry.resolve_all()

    assert list(results) == ["m2"]
    assert_placement(results["m2"], [0, 4, 0], [0, 0, 0])
    assert registry.diagnostics == []


def test_scenario_d_last_write_wins():
    """The last compatible connection targeting a module decides its placement."""
    registry = ConnectionRegistry()
    registry.register_module("m1", [
        anchor_a(),
        make_anchor("C", (2, 0, 0), (1, 0, 0), up=(0, 1, 0)),
    ])
    registry.register_module("m2", [
        anchor_b(),
        make_anchor("D", (-2, 0, 0), (-1, 0, 0), up=(0, 1, 0)),
    ])
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B", "A-B"))
    registry.declare_connection(ConnectionSpec("m1", "C", "m2", "D", "C-D"))

    results = registry.resolve_all()

    assert_placement(results["m2"], [-4, 0, 0], [0, 0, 0])


def test_incompatible_later_spec_does_not_overwrite():
    """Only compatible connections write a result."""
    registry = two_module_registry()
    registry.register_module("m3", [make_anchor("E", (0, 0, 0), (0, -1, 0))])
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))
    registry.declare_connection(ConnectionSpec("m1", "A", "m3", "E"))

    results = registry.resolve_all()

    assert "m3" not in results
    assert_placement(results["m2"], [0, 4, 0], [0, 0, 0])
    assert len(registry.diagnostics) == 1
    assert "Incompatible directions" in registry.diagnostics[0]


def test_resolution_is_relative_to_origin_not_source():
    """Chained declarations do not accumulate in single-hop mode."""
    registry = two_module_registry()
    registry.register_module("m3", [make_anchor("E", (0, 1, 0), (0, 1, 0))])
    registry.register_module("m2", [anchor_b(), make_anchor("F", (0, -1, 0), (0, -1, 0))])
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))
    registry.declare_connection(ConnectionSpec("m2", "F", "m3", "E"))

    results = registry.resolve_all()

    assert_placement(results["m2"], [0, 4, 0], [0, 0, 0])
    assert_placement(results["m3"], [0, 2, 0], [0, 0, 0])


@pytest.mark.parametrize(
    "spec,fragment",
    [
        (ConnectionSpec("missing", "A", "m2", "B"), "Modules not found"),
        (ConnectionSpec("m1", "A", "missing", "B"), "Modules not found"),
        (ConnectionSpec("m1", "Z", "m2", "B"), "Anchors not found"),
        (ConnectionSpec("m1", "A", "m2", "Z"), "Anchors not found"),
    ],
)
def test_unknown_references_are_skipped(spec, fragment, caplog):
    """A bad reference is reported and later connections still resolve."""
    registry = two_module_registry()
    registry.declare_connection(spec)
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))

    with caplog.at_level(logging.WARNING, logger="habitatlink"):
        results = registry.resolve_all()

    assert_placement(results["m2"], [0, 4, 0], [0, 0, 0])
    assert len(registry.diagnostics) == 1
    assert fragment in registry.diagnostics[0]
    assert fragment in caplog.text


def test_declarations_may_precede_registration():
    """Ids are only checked when resolving."""
    registry = ConnectionRegistry()
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))
    registry.register_module("m1", [anchor_a()])
    registry.register_module("m2", [anchor_b()])

    assert_placement(registry.resolve_all()["m2"], [0, 4, 0], [0, 0, 0])


def test_register_module_replaces_anchors():
    """Re-registering a module replaces its anchors rather than merging."""
    registry = two_module_registry()
    registry.register_module("m2", [make_anchor("X", (0, 5, 0), (0, 1, 0))])
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))

    results = registry.resolve_all()

    assert results == {}
    assert [a.id for a in registry.modules["m2"]] == ["X"]
    assert "Anchors not found" in registry.diagnostics[0]


def test_resolve_all_is_idempotent():
    """Resolving twice without changes gives the same placements."""
    registry = two_module_registry()
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))
    registry.declare_connection(ConnectionSpec("m1", "Z", "m2", "B"))

    first = registry.resolve_all()
    first_diagnostics = list(registry.diagnostics)
    second = registry.resolve_all()

    assert first.keys() == second.keys()
    for module_id in first:
        assert_placement(second[module_id], first[module_id].position, first[module_id].rotation)
    assert registry.diagnostics == first_diagnostics


def test_reset_clears_everything():
    """reset() drops modules, connections and diagnostics."""
    registry = two_module_registry()
    registry.declare_connection(ConnectionSpec("m1", "Z", "m2", "B"))
    registry.resolve_all()

    registry.reset()

    assert dict(registry.modules) == {}
    assert registry.connections == ()
    assert registry.diagnostics == []
    assert registry.resolve_all() == {}


def test_anchor_lookup():
    registry = two_module_registry()
    assert registry.anchor("m1", "A").id == "A"
    assert registry.anchor("m1", "B") is None
    assert registry.anchor("nope", "A") is None


def test_tolerance_from_settings():
    """Registries built from settings use the configured tolerance."""
    settings = ConnectionSettings(tolerance=1e-6)
    registry = ConnectionRegistry.from_settings(settings)
    registry.register_module("m1", [make_anchor("A", (0, 0, 0), (0, 1, 0))])
    registry.register_module("m2", [make_anchor("B", (0, 3, 0), (1e-4, -1, 0))])
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))

    assert "m2" in registry.resolve_all()

    strict = ConnectionRegistry()
    strict.register_module("m1", registry.modules["m1"])
    strict.register_module("m2", registry.modules["m2"])
    strict.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))
    assert strict.resolve_all() == {}


def test_negative_tolerance_rejected():
    with pytest.raises(ValueError):
        ConnectionRegistry(tolerance=-1)


def test_check_policy():
    """Anchors accept modules whose type is listed, or any type if none are listed."""
    registry = ConnectionRegistry()
    registry.register_module(
        "hab", [make_anchor("A", (0, 0, 0), (1, 0, 0), compatible=["lab"])], module_type="habitat"
    )
    registry.register_module(
        "lab", [make_anchor("B", (0, 0, 0), (-1, 0, 0), compatible=["habitat"])], module_type="lab"
    )
    registry.register_module(
        "power", [make_anchor("P", (0, 0, 0), (-1, 0, 0))], module_type="power"
    )

    assert registry.check_policy(ConnectionSpec("hab", "A", "lab", "B"))
    assert not registry.check_policy(ConnectionSpec("hab", "A", "power", "P"))
    with pytest.raises(UnknownModuleError):
        registry.check_policy(ConnectionSpec("hab", "A", "lab", "missing"))


def test_graph_reflects_declarations():
    registry = two_module_registry()
    registry.register_module("m3", [])
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))
    registry.declare_connection(ConnectionSpec("m1", "A", "m3", "E"))
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B", "again"))

    graph = registry.graph()

    assert graph.nodes == ["m1", "m2", "m3"]
    assert graph.outgoing("m2") == []
    assert [e.label for e in graph.outgoing("m1")] == [None, None, "again"]


def chain_registry() -> ConnectionRegistry:
    """m1 -> m2 -> m3 stacked along +Y, m2 turned by its up vector."""
    registry = ConnectionRegistry()
    registry.register_module("m1", [make_anchor("top", (0, 1, 0), (0, 1, 0))])
    registry.register_module("m2", [
        make_anchor("bottom", (0, 0, 0), (0, -1, 0)),
        make_anchor("top", (0, 2, 0), (0, 1, 0)),
    ])
    registry.register_module("m3", [make_anchor("bottom", (0, 0, 0), (0, -1, 0), up=(1, 0, 0))])
    registry.register_module("orphan", [])
    registry.declare_connection(ConnectionSpec("m2", "top", "m3", "bottom"))
    registry.declare_connection(ConnectionSpec("m1", "top", "m2", "bottom"))
    return registry


def test_resolve_chained_accumulates_from_root():
    """Targets are placed relative to their already placed source."""
    registry = chain_registry()

    results = registry.resolve_chained("m1")

    assert list(results) == ["m1", "m2", "m3"]
    assert_placement(results["m1"], [0, 0, 0], [0, 0, 0])
    assert_placement(results["m2"], [0, -1, 0], [0, 0, 0])
    assert_placement(results["m3"], [0, -3, 0], [0, 90, 0])
    assert registry.diagnostics == ["Module not placed (unreachable from m1): orphan"]


def test_resolve_chained_rotates_translation_into_source_frame():
    """A yawed source turns the offset of the next module."""
    registry = ConnectionRegistry()
    registry.register_module("root", [make_anchor("side", (0, 0, 0), (1, 0, 0), up=(0, 1, 0))])
    registry.register_module("mid", [
        make_anchor("in", (0, 0, 0), (-1, 0, 0), up=(0, 0, 1)),
        make_anchor("out", (0, 0, 1), (0, 0, 1)),
    ])
    registry.register_module("tip", [make_anchor("in", (0, 0, 3), (0, 0, -1))])
    registry.declare_connection(ConnectionSpec("root", "side", "mid", "in"))
    registry.declare_connection(ConnectionSpec("mid", "out", "tip", "in"))

    results = registry.resolve_chained()

    assert_placement(results["mid"], [0, 0, 0], [0, 90, 0])
    # Translation (0, 0, 2) yawed by 90 degrees about Y becomes (2, 0, 0)
    assert_placement(results["tip"], [2, 0, 0], [0, 90, 0])


def test_resolve_chained_first_edge_wins():
    """In chained mode a module is placed once, by the first edge reaching it."""
    registry = two_module_registry()
    registry.register_module("m1", [anchor_a(), make_anchor("C", (2, 0, 0), (1, 0, 0))])
    registry.register_module("m2", [anchor_b(), make_anchor("D", (-2, 0, 0), (-1, 0, 0))])
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))
    registry.declare_connection(ConnectionSpec("m1", "C", "m2", "D"))

    results = registry.resolve_chained()

    assert_placement(results["m2"], [0, 4, 0], [0, 0, 0])


def test_resolve_chained_unknown_root():
    registry = chain_registry()
    with pytest.raises(UnknownModuleError):
        registry.resolve_chained("nowhere")


def test_resolve_chained_empty_registry():
    assert ConnectionRegistry().resolve_chained() == {}


def test_resolve_chained_retries_module_after_incompatible_edge():
    """A module first hit by an incompatible edge is still placed through a later path."""
    registry = ConnectionRegistry()
    registry.register_module("root", [
        make_anchor("bad", (0, 0, 0), (1, 0, 0)),
        make_anchor("up", (0, 1, 0), (0, 1, 0)),
    ])
    registry.register_module("m2", [
        make_anchor("side", (0, 0, 0), (1, 0, 0)),
        make_anchor("bottom", (0, 0, 0), (0, -1, 0)),
        make_anchor("top", (0, 1, 0), (0, 1, 0)),
    ])
    registry.register_module("m3", [
        make_anchor("bottom", (0, 0, 0), (0, -1, 0)),
        make_anchor("top", (0, 1, 0), (0, 1, 0)),
    ])
    registry.register_module("m4", [make_anchor("bottom", (0, 0, 0), (0, -1, 0))])
    registry.declare_connection(ConnectionSpec("root", "bad", "m2", "side"))
    registry.declare_connection(ConnectionSpec("root", "up", "m3", "bottom"))
    registry.declare_connection(ConnectionSpec("m3", "top", "m2", "bottom"))
    registry.declare_connection(ConnectionSpec("m2", "top", "m4", "bottom"))

    results = registry.resolve_chained("root")

    assert list(results) == ["root", "m3", "m2", "m4"]
    assert_placement(results["m3"], [0, -1, 0], [0, 0, 0])
    assert_placement(results["m2"], [0, -2, 0], [0, 0, 0])
    assert_placement(results["m4"], [0, -3, 0], [0, 0, 0])
    assert len(registry.diagnostics) == 1
    assert "Incompatible directions" in registry.diagnostics[0]
    assert not any("unreachable" in d for d in registry.diagnostics)


def test_resolve_chained_unknown_default_root():
    """The defaulted root must be registered too."""
    registry = ConnectionRegistry()
    registry.register_module("m2", [anchor_b()])
    registry.declare_connection(ConnectionSpec("m1", "A", "m2", "B"))

    with pytest.raises(UnknownModuleError, match="Root module 'm1'"):
        registry.resolve_chained()
