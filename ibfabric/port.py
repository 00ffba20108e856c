"""
Port Record

One physical connector on one fabric device (host adapter or switch),
keyed by (guid, port number). A port's only mutable relationship is its
peer: the key of the port cabled to it, or None for a dark port.
"""

from typing import Dict, Any, Optional, Tuple
from dataclasses import dataclass, asdict

# (guid, port number)
PortKey = Tuple[int, int]

MAX_PORT_NUMBER = 255


class DeviceClass:
    """Device classes a port can belong to."""
    UNKNOWN = "unknown"
    HCA = "hca"
    SWITCH = "switch"

    ALL = (UNKNOWN, HCA, SWITCH)


@dataclass
class Port:
    """
    A port on a host channel adapter or switch.

    guid: device GUID shared by every port of the device
    port: port number on the device (1..255)
    device_class: one of DeviceClass
    lid: base LID of the port (does not include LMC derived LIDs)
    name: device name as reported by the fabric, not necessarily unique
    hca: host adapter index on its host (usually a PCI card)
    leaf: switch leaf id
    spine: switch spine id
    width: link width, e.g. "4x"
    speed: link speed, e.g. "FDR"
    peer: key of the cabled port, None if dark
    """
    guid: int
    port: int
    device_class: str = DeviceClass.UNKNOWN
    lid: int = 0
    name: str = ""
    hca: int = 0
    leaf: int = 0
    spine: int = 0
    width: str = ""
    speed: str = ""
    peer: Optional[PortKey] = None

    def __post_init__(self):
        if self.guid <= 0:
            raise ValueError(f"Invalid port GUID: {self.guid}")
        if not 0 < self.port <= MAX_PORT_NUMBER:
            raise ValueError(f"Invalid port number {self.port} on {self.guid:#018x}")
        if self.device_class not in DeviceClass.ALL:
            raise ValueError(f"Invalid device class: {self.device_class}")

    def __setattr__(self, name, value):
        # guid and port make up the index key
        if name in ("guid", "port") and name in self.__dict__:
            raise AttributeError(f"Port {name} cannot be changed after creation")
        super().__setattr__(name, value)

    @property
    def key(self) -> PortKey:
        return (self.guid, self.port)

    def __hash__(self):
        return hash(self.key)

    def __eq__(self, other):
        if not isinstance(other, Port):
            return False
        return self.key == other.key

    def label(self, entity_only: bool = False) -> str:
        """
        Build a port label.

        Examples:
            switch1/S03/P12
            switch1/L05/P02
            host01/H01/P01
            host01/P01

        Args:
            entity_only: Leave out the port number part

        Returns:
            Label string
        """
        name = self.name or f"{self.guid:#018x}"

        if self.spine:
            entity = f"{name}/S{self.spine:02d}"
        elif self.leaf:
            entity = f"{name}/L{self.leaf:02d}"
        elif self.hca:
            entity = f"{name}/H{self.hca:02d}"
        else:
            entity = name

        if entity_only:
            return entity
        return f"{entity}/P{self.port:02d}"

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["guid"] = f"{self.guid:#018x}"
        result["label"] = self.label()
        if self.peer is not None:
            result["peer"] = {"guid": f"{self.peer[0]:#018x}", "port": self.peer[1]}
        return result

    def __repr__(self) -> str:
        return f"Port({self.guid:#018x}/{self.port}, {self.device_class}, lid={self.lid})"
