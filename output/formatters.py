"""
Output Formatters

Provides functions to format a fabric, traced paths and validation
results for different output formats.
"""

import json
import logging
from typing import List, Optional, TextIO
from pathlib import Path

from ibfabric import Fabric, Device, ValidationIssue

logger = logging.getLogger(__name__)


def to_json(
    fabric: Fabric,
    path: str,
    issues: Optional[List[ValidationIssue]] = None,
    indent: int = 2
) -> None:
    """
    Write a fabric to a JSON file.

    Args:
        fabric: Fabric to serialize
        path: Output file path
        issues: Optional list of validation issues to include
        indent: JSON indentation level
    """
    output = fabric.to_dict()

    if issues is not None:
        output["validation_issues"] = [issue.to_dict() for issue in issues]
        output["summary"]["issue_count"] = len(issues)
        output["summary"]["error_count"] = sum(1 for i in issues if i.severity == "error")
        output["summary"]["warning_count"] = sum(1 for i in issues if i.severity == "warning")

    path_obj = Path(path)
    path_obj.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(output, f, indent=indent, ensure_ascii=False)

    logger.info(f"Fabric written to {path}")


def to_text(
    fabric: Fabric,
    issues: Optional[List[ValidationIssue]] = None,
    file: Optional[TextIO] = None
) -> str:
    """
    Format a fabric as human-readable text: every device and its ports
    with their cabled peers.

    Args:
        fabric: Fabric to format
        issues: Optional list of validation issues
        file: Optional file to write to

    Returns:
        Formatted text string
    """
    lines = []

    # Header
    lines.append("=" * 60)
    lines.append("INFINIBAND FABRIC REPORT")
    lines.append("=" * 60)
    lines.append("")

    # Summary
    summary = fabric.to_dict()["summary"]
    lines.append("SUMMARY")
    lines.append("-" * 40)
    lines.append(f"  Devices:            {summary['device_count']}")
    lines.append(f"  Host Adapters:      {summary['hca_count']}")
    lines.append(f"  Switches:           {summary['switch_count']}")
    lines.append(f"  Ports:              {summary['port_count']}")
    lines.append(f"  Cables:             {summary['cable_count']}")
    lines.append(f"  Dark Ports:         {summary['dark_port_count']}")
    lines.append(f"  LMC:                {fabric.lmc}")
    lines.append("")

    # Devices
    lines.append("DEVICES")
    lines.append("-" * 40)
    for guid in sorted(fabric.devices):
        device = fabric.devices[guid]
        lines.append(f"Entity: {device.label()}")
        for number in sorted(device.ports):
            port = device.ports[number]
            peer = fabric.ports.get(port.peer) if port.peer else None
            lines.append(
                f"\tport[{number}]: {port.label()} <--> "
                f"{peer.label() if peer else 'None'}"
            )

    lines.append("")

    # Validation issues
    if issues:
        lines.append("VALIDATION ISSUES")
        lines.append("-" * 40)
        for issue in issues:
            severity_marker = {
                "error": "[ERROR]",
                "warning": "[WARN]",
                "info": "[INFO]"
            }.get(issue.severity, "[?]")

            lines.append(f"  {severity_marker} {_issue_location(issue)}")
            lines.append(f"    {issue.message}")
        lines.append("")

    # Footer
    lines.append("=" * 60)

    text = "\n".join(lines)

    if file is not None:
        file.write(text)

    return text


def format_path(path: List[Device]) -> str:
    """
    Format a traced unicast path.

    Example:
        host01/H01 -> switch1/L05 -> host02/H01 (2 hops)
    """
    if not path:
        return "(empty path)"

    hops = len(path) - 1
    return " -> ".join(d.label() for d in path) + f" ({hops} hop{'s' if hops != 1 else ''})"


def format_issues(issues: List[ValidationIssue]) -> str:
    """
    Format validation issues as a summary text.

    Args:
        issues: List of validation issues

    Returns:
        Formatted summary string
    """
    if not issues:
        return "No validation issues found."

    lines = []

    error_count = sum(1 for i in issues if i.severity == "error")
    warning_count = sum(1 for i in issues if i.severity == "warning")
    info_count = sum(1 for i in issues if i.severity == "info")

    lines.append(f"Found {len(issues)} issues: {error_count} errors, {warning_count} warnings, {info_count} info")
    lines.append("")

    for issue in issues:
        prefix = {
            "error": "ERROR",
            "warning": "WARN",
            "info": "INFO"
        }.get(issue.severity, "???")

        lines.append(f"[{prefix}] {_issue_location(issue)} - {issue.message}")

    return "\n".join(lines)


def _issue_location(issue: ValidationIssue) -> str:
    if issue.port is None:
        return issue.device
    return f"{issue.device}/P{issue.port:02d}"
