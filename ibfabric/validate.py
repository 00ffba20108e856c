"""
Fabric Validation

Checks a built fabric for:
- Asymmetric cables and port index/device membership mismatches (error)
- Width/speed mismatches between cable ends (warning)
- Routes to LIDs missing from the LID map (warning)
- Dark ports and switches without forwarding entries (info)
"""

import logging
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, asdict

from .fabric import Fabric

logger = logging.getLogger(__name__)


@dataclass
class ValidationIssue:
    """Represents a validation issue found on the fabric."""
    severity: str  # "error", "warning", "info"
    device: str
    port: Optional[int]
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        if result["details"] is None:
            del result["details"]
        return result


class FabricValidator:
    """
    Validates a fabric's cabling, membership and routing.

    Validation checks:
    1. Cable symmetry - the peer of a port's peer is the port itself
    2. Membership - flat port index and device port maps agree
    3. Link mismatches - cable ends report different width or speed
    4. Unassigned routes - routing tables point at LIDs nobody owns
    5. Dark ports - ports without a cable
    6. Empty forwarding - switches without any forwarding entry while
       others have them
    """

    def validate(self, fabric: Fabric) -> List[ValidationIssue]:
        """
        Validate a fabric.

        Args:
            fabric: Fabric with cables loaded (LID map and routes optional)

        Returns:
            List of validation issues found
        """
        issues: List[ValidationIssue] = []

        issues.extend(self._check_cable_symmetry(fabric))
        issues.extend(self._check_membership(fabric))
        issues.extend(self._check_link_mismatches(fabric))
        issues.extend(self._check_unassigned_routes(fabric))
        issues.extend(self._check_dark_ports(fabric))
        issues.extend(self._check_empty_forwarding(fabric))

        # Sort by severity (error first, then warning, then info)
        severity_order = {"error": 0, "warning": 1, "info": 2}
        issues.sort(key=lambda x: (severity_order.get(x.severity, 3), x.device, x.port or 0))

        logger.info(
            f"Validation complete: {len(issues)} issues "
            f"({sum(1 for i in issues if i.severity == 'error')} errors, "
            f"{sum(1 for i in issues if i.severity == 'warning')} warnings)"
        )

        return issues

    def _check_cable_symmetry(self, fabric: Fabric) -> List[ValidationIssue]:
        """Check that every cable is seen the same way from both ends."""
        issues = []

        for key in sorted(fabric.ports):
            port = fabric.ports[key]
            if port.peer is None:
                continue

            peer = fabric.ports.get(port.peer)
            if peer is None:
                issues.append(ValidationIssue(
                    severity="error",
                    device=port.label(entity_only=True),
                    port=port.port,
                    message=f"Cabled to unknown port {port.peer}",
                ))
            elif peer.peer != port.key:
                issues.append(ValidationIssue(
                    severity="error",
                    device=port.label(entity_only=True),
                    port=port.port,
                    message=(
                        f"Asymmetric cable: peer {peer.label()} points back at {peer.peer}"
                    ),
                ))

        return issues

    def _check_membership(self, fabric: Fabric) -> List[ValidationIssue]:
        """Check that the port index and device port maps hold the same ports."""
        issues = []

        for port in fabric.ports.values():
            device = fabric.devices.get(port.guid)
            if device is None or device.ports.get(port.port) is not port:
                issues.append(ValidationIssue(
                    severity="error",
                    device=port.label(entity_only=True),
                    port=port.port,
                    message="Port is indexed but not held by its device",
                ))

        for guid, device in fabric.devices.items():
            for number, port in device.ports.items():
                if fabric.ports.get((guid, number)) is not port:
                    issues.append(ValidationIssue(
                        severity="error",
                        device=device.label(),
                        port=number,
                        message="Port is held by its device but not indexed",
                    ))

        return issues

    def _check_link_mismatches(self, fabric: Fabric) -> List[ValidationIssue]:
        """Check for width/speed mismatches between cable ends."""
        issues = []

        for port, peer in fabric.cables():
            if peer is None:
                continue

            for attr in ("width", "speed"):
                local = getattr(port, attr)
                remote = getattr(peer, attr)

                if local and remote and local != remote:
                    issues.append(ValidationIssue(
                        severity="warning",
                        device=port.label(entity_only=True),
                        port=port.port,
                        message=(
                            f"{attr.capitalize()} mismatch with {peer.label()}: "
                            f"{local} vs {remote}"
                        ),
                        details={
                            f"local_{attr}": local,
                            f"remote_{attr}": remote,
                            "remote_port": peer.label(),
                        }
                    ))

        return issues

    def _check_unassigned_routes(self, fabric: Fabric) -> List[ValidationIssue]:
        """Check for routes to LIDs that no device owns."""
        issues = []

        if not fabric.lid_map:
            return issues

        for guid in sorted(fabric.devices):
            device = fabric.devices[guid]
            for number in sorted(device.routes):
                unknown = sorted(
                    lid for lid in device.routes[number] if lid not in fabric.lid_map
                )
                if unknown:
                    issues.append(ValidationIssue(
                        severity="warning",
                        device=device.label(),
                        port=number,
                        message=f"Routes to {len(unknown)} unassigned lids",
                        details={"lids": unknown},
                    ))

        return issues

    def _check_dark_ports(self, fabric: Fabric) -> List[ValidationIssue]:
        """Check for ports without a cable."""
        return [
            ValidationIssue(
                severity="info",
                device=port.label(entity_only=True),
                port=port.port,
                message="Port is not cabled",
            )
            for port, peer in fabric.cables()
            if peer is None and port.peer is None
        ]

    def _check_empty_forwarding(self, fabric: Fabric) -> List[ValidationIssue]:
        """Check for switches with no forwarding entries when others have some."""
        issues = []

        switches = [d for d in fabric.devices.values() if not d.is_hca]
        if not any(d.forwarding_table for d in switches):
            return issues

        for device in switches:
            if not device.forwarding_table:
                issues.append(ValidationIssue(
                    severity="info",
                    device=device.label(),
                    port=None,
                    message="Switch has no forwarding entries",
                ))

        return issues
