"""Main entry point for habitatlink."""

import argparse
import logging
import sys
from pathlib import Path

import yaml

from .core.vector import format_vec3
from .errors import HabitatLinkError
from .layout import LayoutLoader


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="habitatlink",
        description="Habitatlink - resolve module connections in a habitat layout",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "layout",
        metavar="LAYOUT",
        help="Layout YAML file with modules and connections",
    )
    parser.add_argument(
        "--chain",
        action="store_true",
        default=None,
        help="Place modules relative to their source module, starting from a root",
    )
    parser.add_argument(
        "--root",
        metavar="MODULE",
        help="Root module for --chain (default: source of the first connection)",
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        metavar="EPS",
        help="Direction compatibility tolerance (default: 0, exact match)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Reject anchors whose direction or up vectors are not unit length",
    )
    parser.add_argument(
        "--yaml",
        action="store_true",
        help="Print placements and diagnostics as YAML",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log each resolved connection",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Resolve a layout file and print the resulting placements."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        loader = LayoutLoader(
            tolerance=args.tolerance,
            chain=args.chain,
            root=args.root,
            strict_vectors=args.strict,
        )
        registry = loader.load(Path(args.layout))
        if loader.settings.chain:
            placements = registry.resolve_chained(loader.settings.root)
        else:
            placements = registry.resolve_all()
    except (OSError, yaml.YAMLError, HabitatLinkError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if args.yaml:
        print(yaml.safe_dump(
            {
                "placements": {m: p.as_dict() for m, p in placements.items()},
                "diagnostics": list(registry.diagnostics),
            },
            sort_keys=False,
        ), end="")
        return 0

    mode = "chained" if loader.settings.chain else "single-hop"
    print(f"Habitatlink - {args.layout}")
    print("=" * 40)
    print(
        f"{len(registry.modules)} modules, {len(registry.connections)} connections ({mode})"
    )
    for module_id, placement in placements.items():
        print(
            f"- {module_id}: position {format_vec3(placement.position)} "
            f"rotation {format_vec3(placement.rotation)}"
        )

    if registry.diagnostics:
        print("\nDiagnostics:")
        for message in registry.diagnostics:
            print(f"  {message}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
