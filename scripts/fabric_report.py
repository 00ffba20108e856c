#!/usr/bin/env python3
"""
InfiniBand Fabric Report Script

Main entry point for building a fabric from an inventory file, validating
it, and answering path queries.

Usage:
    python scripts/fabric_report.py --inventory inventory/fabric.yaml
    python scripts/fabric_report.py -i inventory/fabric.yaml -o fabric.json --format json
    python scripts/fabric_report.py -i inventory/fabric.yaml --path node01 ib1/L02
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

# Add parent directory to path for imports when running as script
script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
if project_root not in sys.path:
    sys.path.insert(0, project_root)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def resolve_device(fabric, identifier: str):
    """
    Find a device by GUID (any integer base), LID ("lid:12") or name.

    Raises:
        ValueError: If no device matches
    """
    if identifier.startswith("lid:"):
        device = fabric.device_at(int(identifier[4:], 0))
    else:
        device = fabric.find_device_by_name(identifier)
        if device is None:
            try:
                device = fabric.find_device(int(identifier, 0))
            except ValueError:
                device = None

    if device is None:
        raise ValueError(f"No device matches {identifier!r}")
    return device


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Build an InfiniBand fabric model and report on it"
    )
    parser.add_argument(
        "-i", "--inventory",
        default="inventory/fabric.yaml",
        help="Path to inventory file (default: inventory/fabric.yaml)"
    )
    parser.add_argument(
        "-o", "--output",
        help="Output file path (default: stdout for text, required for JSON)"
    )
    parser.add_argument(
        "-f", "--format",
        choices=["json", "text"],
        default="text",
        help="Output format: text or json (default: text)"
    )
    parser.add_argument(
        "--lmc",
        type=int,
        help="Subnet LMC to use instead of the inventory setting"
    )
    parser.add_argument(
        "--no-infer-lmc",
        action="store_true",
        help="Trust the configured LMC instead of inferring it from the LIDs"
    )
    parser.add_argument(
        "--path",
        nargs=2,
        metavar=("SRC", "DST"),
        action="append",
        help="Trace the unicast path between two devices (name, GUID or lid:N)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output"
    )

    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    # Import here to allow --help to work without dependencies
    from inventory import InventoryError, load_inventory, build_fabric
    from ibfabric import FabricError, FabricValidator
    from output import to_json, to_text, format_path, format_issues

    try:
        logger.info(f"Loading inventory from {args.inventory}")
        inventory = load_inventory(args.inventory)

        fabric = build_fabric(
            inventory,
            lmc=args.lmc,
            infer_lmc=False if args.no_infer_lmc else None
        )

        logger.info("Validating fabric...")
        issues = FabricValidator().validate(fabric)

        if args.format == "json":
            if not args.output:
                print("Error: --output is required for JSON format", file=sys.stderr)
                sys.exit(1)
            to_json(fabric, args.output, issues)
            print(f"Fabric written to {args.output}")

            print(f"\nBuilt {len(fabric.devices)} devices and {len(fabric.ports)} ports")
            if issues:
                print(format_issues(issues))

        else:  # text format
            text = to_text(fabric, issues)
            if args.output:
                with open(args.output, "w", encoding="utf-8") as f:
                    f.write(text)
                print(f"Report written to {args.output}")
            else:
                print(text)

        for src, dst in args.path or []:
            path = fabric.trace_path(resolve_device(fabric, src), resolve_device(fabric, dst))
            print(format_path(path))

    except InventoryError as e:
        logger.error(f"Inventory error: {e}")
        sys.exit(1)
    except FabricError as e:
        logger.error(f"Fabric error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
