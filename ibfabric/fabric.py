"""
Fabric Model

Builds an InfiniBand fabric from discovered cables and routing dumps:
1. Wire cabled ports into devices (host adapters and switches)
2. Build the LID map, inferring the subnet LMC when asked
3. Load routes and compile every device's forwarding table
4. Replay unicast forwarding to trace paths and count hops
"""

import math
import logging
from typing import Dict, List, Optional, Set, Any

from .device import Device
from .errors import (
    CableAlreadyKnown,
    CableMismatch,
    DeviceClassMismatch,
    UnknownDevice,
    AddressError,
    AddressCollision,
    Unreachable,
    RoutingCycle,
    FabricError,
)
from .port import Port, PortKey, DeviceClass

logger = logging.getLogger(__name__)

# LMC is a 3 bit field
MAX_LMC = 7


class Fabric:
    """
    Owner of every device and port on a fabric.

    Ports are held twice: in a flat (guid, port) index and in their
    device's port map. Both always hold the same Port objects.

    The LMC is the subnet's LID mask control: every host adapter answers
    to 2^lmc consecutive LIDs starting at its base LID. Switches only
    ever get their base LID.
    """

    def __init__(self, lmc: int = 0):
        if not 0 <= lmc <= MAX_LMC:
            raise ValueError(f"LMC must be between 0 and {MAX_LMC}, got {lmc}")

        self.lmc = lmc
        self.devices: Dict[int, Device] = {}
        self.ports: Dict[PortKey, Port] = {}
        self.lid_map: Dict[int, Device] = {}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_device(
        self,
        guid: int,
        device_class: str = DeviceClass.UNKNOWN,
        create: bool = False
    ) -> Optional[Device]:
        """
        Find a device by GUID, optionally creating it.

        Args:
            guid: Device GUID
            device_class: Class the device must have (checked when creating
                or when the device already exists and a class is given)
            create: Create the device if it is not known yet

        Returns:
            Device, or None if not found and not created

        Raises:
            DeviceClassMismatch: If the existing device has another class, or
                a device would be created with an unknown class
        """
        device = self.devices.get(guid)

        if device is None:
            if not create:
                return None
            device = Device(guid, device_class)
            self.devices[guid] = device
            logger.debug(f"New {device_class} device {guid:#018x}")
            return device

        if device_class != DeviceClass.UNKNOWN and device.device_class != device_class:
            raise DeviceClassMismatch(
                f"Device {guid:#018x} is {device.device_class}, not {device_class}"
            )
        return device

    def find_port(self, guid: int, port: int) -> Optional[Port]:
        return self.ports.get((guid, port))

    def device_at(self, lid: int) -> Optional[Device]:
        """Get the device answering to a LID (needs a built LID map)."""
        return self.lid_map.get(lid)

    def find_device_by_name(self, name: str) -> Optional[Device]:
        """Find a device by name or entity label; first match by GUID order."""
        for guid in sorted(self.devices):
            device = self.devices[guid]
            if name in (device.name, device.label()):
                return device
        return None

    def get_connection(self, port: Port) -> Optional[Port]:
        """Get the port cabled to `port`, None if it is dark."""
        if port.peer is None:
            logger.warning(
                f"Detected disconnected port {port.guid:#018x}.{port.port}: {port.label()}"
            )
            return None
        return self.ports.get(port.peer)

    # ------------------------------------------------------------------
    # Cabling
    # ------------------------------------------------------------------

    def add_cable(self, port_a: Port, port_b: Optional[Port] = None) -> None:
        """
        Add a cable to the fabric, creating devices as needed.

        The fabric takes ownership of both ports. Unset peer links are set
        on both sides. A port seen again with identical data is accepted
        without change.

        Args:
            port_a: First end of the cable
            port_b: Other end, or None for a dark port

        Raises:
            CableMismatch: If the ends do not describe the same cable
            CableAlreadyKnown: If an end is already known with other data
            DeviceClassMismatch: If a port's class conflicts with its device
            DuplicatePort: If a device already holds the port number
        """
        self._check_cable(port_a, port_b)

        known_a = port_a.key in self.ports
        known_b = port_b is not None and port_b.key in self.ports

        if known_a or known_b:
            self._check_resighted(port_a, port_b.key if port_b is not None else None)
            if port_b is not None:
                self._check_resighted(port_b, port_a.key)
            logger.debug(f"Cable at {port_a.label()} already known, skipping")
            return

        # Check both devices before touching anything
        ends = [port_a] if port_b is None else [port_a, port_b]
        for port in ends:
            if port.device_class == DeviceClass.UNKNOWN:
                raise DeviceClassMismatch(f"Port {port.label()} has no device class")
            device = self.devices.get(port.guid)
            if device is not None and device.device_class != port.device_class:
                raise DeviceClassMismatch(
                    f"Port {port.label()} is {port.device_class} but device "
                    f"{port.guid:#018x} is {device.device_class}"
                )

        if port_b is not None:
            port_a.peer = port_b.key
            port_b.peer = port_a.key

        for port in ends:
            device = self.find_device(port.guid, port.device_class, create=True)
            device.attach_port(port)
            self.ports[port.key] = port

    def _check_cable(self, port_a: Port, port_b: Optional[Port]) -> None:
        """Sanity check both ends of a cable."""
        if port_b is None:
            if port_a.peer is not None:
                raise CableMismatch(
                    f"Port {port_a.label()} is cabled to {port_a.peer} "
                    f"but no peer port was given"
                )
            return

        if port_a.key == port_b.key:
            raise CableMismatch(f"Loopback cable on a single port: {port_a.label()}")

        if port_a.guid == port_b.guid and port_a.device_class != port_b.device_class:
            raise DeviceClassMismatch(
                f"Ports {port_a.label()} and {port_b.label()} share device "
                f"{port_a.guid:#018x} but are {port_a.device_class} and {port_b.device_class}"
            )

        peers = (port_a.peer, port_b.peer)
        if peers != (None, None) and peers != (port_b.key, port_a.key):
            raise CableMismatch(
                f"Ports {port_a.label()} and {port_b.label()} disagree on their "
                f"peers: {port_a.peer} / {port_b.peer}"
            )

    def _check_resighted(self, port: Port, expected_peer: Optional[PortKey]) -> None:
        """Accept a port that is already known only if nothing changed."""
        known = self.ports.get(port.key)
        if known is None:
            raise CableAlreadyKnown(
                f"Cable at {port.label()} is half known: its peer is already "
                f"on the fabric"
            )
        if known is port:
            return

        if (
            known.peer != expected_peer
            or known.device_class != port.device_class
            or known.lid != port.lid
        ):
            raise CableAlreadyKnown(
                f"Port {port.label()} already known with other data: "
                f"peer {known.peer} lid {known.lid}, now peer {expected_peer} lid {port.lid}"
            )

    def add_cables(self, pending: Dict[PortKey, Port]) -> None:
        """
        Add every cable from a map of pending ports.

        Each cable usually appears twice, once from each end; both entries
        are taken out of `pending` together. A port whose peer is already
        on the fabric goes through the same re-sight checks as add_cable.
        `pending` is always empty afterwards: on failure, ports not yet
        added are released.

        Args:
            pending: (guid, port) -> Port, with peer keys set for cabled ports

        Raises:
            FabricError: The first cable error met
        """
        added = 0

        try:
            for key in sorted(pending):
                port = pending.pop(key, None)
                if port is None:
                    # Taken with its peer
                    continue

                peer = None
                if port.peer is not None:
                    # The other end may be on the fabric from an earlier batch
                    peer = pending.pop(port.peer, None) or self.ports.get(port.peer)
                    if peer is None:
                        raise CableMismatch(
                            f"Port {port.label()} is cabled to {port.peer} "
                            f"which is neither pending nor on the fabric"
                        )

                self.add_cable(port, peer)
                added += 1
        except FabricError:
            if pending:
                logger.warning(f"Cable ingestion failed, releasing {len(pending)} pending ports")
            pending.clear()
            raise

        logger.info(
            f"Added {added} cables: {len(self.devices)} devices, {len(self.ports)} ports"
        )

    # ------------------------------------------------------------------
    # LID map
    # ------------------------------------------------------------------

    def clear_lid_map(self) -> None:
        self.lid_map.clear()

    def build_lid_map(self, infer_lmc: bool = False) -> None:
        """
        Build the LID -> device map.

        With `infer_lmc`, the LMC is recomputed from the LIDs seen on the
        fabric, and the map is rebuilt once if it changed. If the inferred
        LMC does not fit, the previous LMC and its map are restored before
        the collision is raised.

        Raises:
            AddressError: If a device has no base LID
            AddressCollision: If two devices claim the same LID
        """
        self.clear_lid_map()

        lids_per_hca = 1 << self.lmc

        for guid in sorted(self.devices):
            device = self.devices[guid]
            base = device.lid
            if base <= 0:
                raise AddressError(f"Device {device.label()} ({guid:#018x}) has no base lid")

            count = lids_per_hca if device.is_hca else 1
            for lid in range(base, base + count):
                owner = self.lid_map.get(lid)
                if owner is not None:
                    raise AddressCollision(
                        f"lid {lid} of {device.label()} already taken by "
                        f"{owner.label()} (lmc {self.lmc})"
                    )
                logger.debug(f"Set {device.device_class} lid {device.label()} = {lid}")
                self.lid_map[lid] = device

        logger.info(f"Built lid map: {len(self.lid_map)} lids, lmc {self.lmc}")

        if not infer_lmc:
            return

        lmc = self._infer_lmc()
        if lmc != self.lmc:
            logger.info(f"Inferred lmc {lmc} differs from {self.lmc}, rebuilding lid map")
            previous = self.lmc
            self.lmc = lmc
            try:
                self.build_lid_map(infer_lmc=False)
            except AddressCollision:
                logger.warning(f"Inferred lmc {lmc} does not fit, restoring lmc {previous}")
                self.lmc = previous
                self.build_lid_map(infer_lmc=False)
                raise

    def _infer_lmc(self) -> int:
        """
        Guess the subnet LMC from the LID map.

        LMC LIDs of a host adapter are consecutive, so for every host adapter
        port, walk up from its base LID until a LID owned by another device
        is hit. The smallest such gap bounds the LMC offset:
        LIDs = base .. base + 2^lmc - 1.
        """
        max_offset = (1 << MAX_LMC) - 1
        searched = 0

        for key in sorted(self.ports):
            if max_offset == 0:
                break

            port = self.ports[key]
            if port.device_class != DeviceClass.HCA:
                continue

            searched += 1
            owner = self.devices[port.guid]
            for offset in range(1, max_offset + 1):
                other = self.lid_map.get(port.lid + offset)
                if other is not None and other is not owner:
                    logger.debug(
                        f"Port {port.label()}: lid {port.lid} + {offset} taken by "
                        f"{other.label()}"
                    )
                    max_offset = offset - 1
                    break

        if not searched:
            logger.info(f"No host adapter ports, keeping lmc {self.lmc}")
            return self.lmc

        lmc = int(math.log2(max_offset)) + 1 if max_offset > 0 else 0
        logger.info(f"Fabric lmc = {lmc}, max lmc offset = {max_offset}")
        return lmc

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def clear_routes(self) -> None:
        for device in self.devices.values():
            device.clear_routes()

    def add_route(self, guid: int, port: int, lid: int) -> bool:
        """
        Add a route to a device: `lid` is forwarded out of `port`.

        Build the LID map before adding routes.

        Returns:
            True if the route is new on the device

        Raises:
            UnknownDevice: If no device with `guid` was cabled in
        """
        device = self.devices.get(guid)
        if device is None:
            raise UnknownDevice(f"Route source {guid:#018x} is not on the fabric")

        target = self.lid_map.get(lid)
        if target is None:
            # Routing dumps are not always clean
            logger.warning(f"Route {device.label()} port {port} to unknown lid {lid}")
        else:
            logger.debug(f"Route: src {device.label()} port {port} to {target.label()}")

        return device.add_route(port, lid)

    def compile_forwarding_tables(self) -> None:
        for device in self.devices.values():
            device.compile_forwarding_table()

        entries = sum(len(d.forwarding_table) for d in self.devices.values())
        logger.info(f"Compiled forwarding tables: {entries} entries on {len(self.devices)} devices")

    # ------------------------------------------------------------------
    # Forwarding simulation
    # ------------------------------------------------------------------

    def _attached_switch(self, device: Device) -> Device:
        """Device cabled to the first port of a host adapter."""
        port = device.first_port
        peer = self.get_connection(port) if port else None
        if peer is None:
            raise Unreachable(f"Host adapter {device.label()} is not cabled")
        return self.devices[peer.guid]

    def _forward(self, device: Device, lid: int) -> Device:
        """Next device a packet for `lid` reaches when leaving `device`."""
        port_number = device.resolve_next_hop(lid)

        port = device.ports.get(port_number)
        if port is None:
            raise Unreachable(
                f"{device.label()} forwards lid {lid} out of missing port {port_number}"
            )

        peer = self.get_connection(port)
        if peer is None:
            raise Unreachable(
                f"{device.label()} forwards lid {lid} out of dark port {port_number}"
            )
        return self.devices[peer.guid]

    def trace_path(self, start: Device, end: Device) -> List[Device]:
        """
        Replay unicast forwarding from `start` to `end`.

        Routing dumps carry no tables for host adapters, so a host adapter
        endpoint is taken to use its first port and the switch on the other
        end of it does the routing.

        Returns:
            Devices visited, `start` and `end` included

        Raises:
            Unreachable: If a cable on the way is dark
            NoRoute: If a switch has no forwarding entry for the target
            RoutingCycle: If forwarding loops back to a visited switch
        """
        path = [start]

        left = self._attached_switch(start) if start.is_hca else start
        right = self._attached_switch(end) if end.is_hca else end
        if left is not start:
            path.append(left)

        target_lid = right.lid
        current = left
        visited: Set[int] = {current.guid}

        while current.lid != target_lid:
            current = self._forward(current, target_lid)
            if current.guid in visited:
                raise RoutingCycle(
                    f"Forwarding loop toward lid {target_lid} at {current.label()} "
                    f"after {len(path)} devices"
                )
            visited.add(current.guid)
            path.append(current)

        if right is not end:
            path.append(end)

        return path

    def count_hops(self, start: Device, end: Device) -> int:
        """Number of device to device traversals from `start` to `end`."""
        return len(self.trace_path(start, end)) - 1

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def cables(self) -> List[tuple]:
        """
        List cables once each, as (port, peer or None), ordered by port key.
        """
        result = []
        for key in sorted(self.ports):
            port = self.ports[key]
            if port.peer is None:
                result.append((port, None))
            elif key < port.peer:
                result.append((port, self.ports.get(port.peer)))
        return result

    def to_dict(self) -> Dict[str, Any]:
        cables = self.cables()
        return {
            "lmc": self.lmc,
            "devices": [self.devices[g].to_dict() for g in sorted(self.devices)],
            "lid_map": {
                str(lid): f"{device.guid:#018x}" for lid, device in sorted(self.lid_map.items())
            },
            "summary": {
                "device_count": len(self.devices),
                "hca_count": sum(1 for d in self.devices.values() if d.is_hca),
                "switch_count": sum(1 for d in self.devices.values() if not d.is_hca),
                "port_count": len(self.ports),
                "cable_count": sum(1 for _, peer in cables if peer is not None),
                "dark_port_count": sum(1 for _, peer in cables if peer is None),
            },
        }
