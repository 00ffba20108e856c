"""
Fabric Device

A device (entity) is a host channel adapter or switch chip: a group of
ports sharing one GUID and one device class. Each device carries its
routing table (source port -> destination LIDs) as read from routing
dumps, and the unicast forwarding table compiled from it.
"""

import logging
from typing import Dict, Set, Any, Optional

from .errors import DuplicatePort, ForeignPort, DeviceClassMismatch, NoRoute
from .port import Port, DeviceClass

logger = logging.getLogger(__name__)


class Device:
    """
    A host adapter or switch on the fabric.

    Attributes:
        guid: Device GUID (immutable)
        device_class: DeviceClass.HCA or DeviceClass.SWITCH (immutable)
        ports: port number -> Port
        routes: source port number -> set of destination LIDs
        forwarding_table: destination LID -> output port number
    """

    LABEL_ENTITY = "entity"
    LABEL_NAME = "name"
    LABEL_LEAF = "leaf"
    LABEL_SPINE = "spine"

    def __init__(self, guid: int, device_class: str):
        if guid <= 0:
            raise ValueError(f"Invalid device GUID: {guid}")
        if device_class not in (DeviceClass.HCA, DeviceClass.SWITCH):
            raise DeviceClassMismatch(
                f"Device {guid:#018x} needs a known device class, got {device_class}"
            )

        self._guid = guid
        self._device_class = device_class

        self.ports: Dict[int, Port] = {}
        self.routes: Dict[int, Set[int]] = {}
        self.forwarding_table: Dict[int, int] = {}

    @property
    def guid(self) -> int:
        return self._guid

    @property
    def device_class(self) -> str:
        return self._device_class

    @property
    def is_hca(self) -> bool:
        return self._device_class == DeviceClass.HCA

    def attach_port(self, port: Port) -> None:
        """
        Attach a port to this device.

        Raises:
            ForeignPort: If the port carries another device GUID
            DeviceClassMismatch: If the port's class differs from the device's
            DuplicatePort: If the port number is already taken
        """
        if port.guid != self._guid:
            raise ForeignPort(
                f"Port {port.label()} ({port.guid:#018x}) does not belong to "
                f"device {self._guid:#018x}"
            )
        if port.device_class != self._device_class:
            raise DeviceClassMismatch(
                f"Port {port.label()} is {port.device_class} but device "
                f"{self._guid:#018x} is {self._device_class}"
            )
        if port.port in self.ports:
            raise DuplicatePort(
                f"Device {self._guid:#018x} already has port {port.port}"
            )

        self.ports[port.port] = port

    @property
    def first_port(self) -> Optional[Port]:
        """
        Port with the lowest port number.

        Device properties (name, LID, hca/leaf/spine ids) are shared by all
        ports, so they are read from this one.
        """
        if not self.ports:
            return None
        return self.ports[min(self.ports)]

    @property
    def lid(self) -> int:
        port = self.first_port
        return port.lid if port else 0

    @property
    def hca(self) -> int:
        port = self.first_port
        return port.hca if port else 0

    @property
    def name(self) -> str:
        port = self.first_port
        return port.name if port else ""

    def label(self, kind: str = LABEL_ENTITY) -> str:
        """
        Build a device label from its first port.

        Args:
            kind: One of LABEL_ENTITY (e.g. switch1/L29), LABEL_NAME,
                LABEL_LEAF or LABEL_SPINE

        Returns:
            Label string, empty if the device has no ports
        """
        port = self.first_port
        if port is None:
            return ""

        if kind == self.LABEL_ENTITY:
            return port.label(entity_only=True)
        if kind == self.LABEL_NAME:
            return port.name
        if kind == self.LABEL_LEAF:
            return str(port.leaf)
        if kind == self.LABEL_SPINE:
            return str(port.spine)
        raise ValueError(f"Unknown label kind: {kind}")

    def clear_routes(self) -> None:
        self.routes.clear()

    def add_route(self, port: int, lid: int) -> bool:
        """
        Record that `lid` is routed out of `port`.

        Returns:
            True if the route is new, False if it was already known
        """
        lids = self.routes.setdefault(port, set())
        if lid in lids:
            return False
        lids.add(lid)
        return True

    def compile_forwarding_table(self) -> None:
        """
        Rebuild the forwarding table from the routing table.

        Ports are visited in ascending order and the first port to claim a
        LID keeps it, so duplicate claims resolve to the lowest port number.
        """
        self.forwarding_table.clear()

        for port in sorted(self.routes):
            for lid in sorted(self.routes[port]):
                if lid in self.forwarding_table:
                    logger.debug(
                        f"{self.label()}: lid {lid} already forwarded out port "
                        f"{self.forwarding_table[lid]}, ignoring port {port}"
                    )
                    continue
                self.forwarding_table[lid] = port

    def resolve_next_hop(self, lid: int) -> int:
        """
        Get the output port for a destination LID.

        Raises:
            NoRoute: If the forwarding table has no entry for `lid`
        """
        try:
            return self.forwarding_table[lid]
        except KeyError:
            raise NoRoute(f"{self.label()} has no forwarding entry for lid {lid}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guid": f"{self._guid:#018x}",
            "type": self._device_class,
            "label": self.label(),
            "lid": self.lid,
            "ports": [self.ports[n].to_dict() for n in sorted(self.ports)],
            "forwarding_entries": len(self.forwarding_table),
        }

    def __repr__(self) -> str:
        return f"Device({self._guid:#018x}, {self._device_class}, {len(self.ports)} ports)"
