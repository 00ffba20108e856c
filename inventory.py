"""
Inventory Loader

Loads and parses a fabric inventory YAML file (cables, routes and
fabric settings) and builds a Fabric from it.

Example:
    fabric:
      lmc: 0
      infer_lmc: true
    cables:
      - - {guid: 0x0002c9030045f121, port: 1, type: hca, lid: 2, name: host01, hca: 1}
        - {guid: 0x0002c903006e1430, port: 1, type: switch, lid: 1, name: switch1}
      - - {guid: 0x0002c903006e1430, port: 3, type: switch, lid: 1, name: switch1}
    routes:
      - {guid: 0x0002c903006e1430, port: 1, lids: [2]}
"""

import os
import logging
from typing import Dict, List, Any, Optional

import yaml

from ibfabric import Fabric, Port, PortKey, DeviceClass, MAX_LMC

logger = logging.getLogger(__name__)

DEFAULT_LMC = 0
DEFAULT_INFER_LMC = True

_DEVICE_CLASSES = {
    "hca": DeviceClass.HCA,
    "ca": DeviceClass.HCA,
    "switch": DeviceClass.SWITCH,
    "sw": DeviceClass.SWITCH,
}


class InventoryError(Exception):
    """Exception raised for inventory loading errors."""
    pass


def load_inventory(path: str) -> Dict[str, Any]:
    """
    Load and parse the inventory file.

    Args:
        path: Path to the inventory YAML file

    Returns:
        Dictionary containing:
        - settings: lmc and infer_lmc
        - cables: List of (Port, Optional[Port]) pairs
        - routes: List of (guid, port, lid) triples

    Raises:
        InventoryError: If file cannot be loaded or parsed
    """
    path = os.path.expanduser(path)

    if not os.path.isfile(path):
        raise InventoryError(f"Inventory file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InventoryError(f"Failed to parse inventory file: {e}")
    except IOError as e:
        raise InventoryError(f"Failed to read inventory file: {e}")

    if not data:
        raise InventoryError("Inventory file is empty")

    return _process_inventory(data)


def _process_inventory(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Process raw inventory data into settings, port pairs and route triples.

    Args:
        data: Raw parsed YAML data

    Returns:
        Processed inventory
    """
    if not isinstance(data, dict):
        raise InventoryError("Inventory must be a mapping")

    settings = data.get("fabric") or {}
    lmc = _to_int(settings.get("lmc", DEFAULT_LMC), "fabric.lmc")
    if not 0 <= lmc <= MAX_LMC:
        raise InventoryError(f"fabric.lmc must be between 0 and {MAX_LMC}, got {lmc}")
    infer_lmc = bool(settings.get("infer_lmc", DEFAULT_INFER_LMC))

    raw_cables = data.get("cables") or []
    if not raw_cables:
        raise InventoryError("No cables defined in inventory")

    cables = []
    for index, raw_cable in enumerate(raw_cables):
        if not isinstance(raw_cable, list) or not 1 <= len(raw_cable) <= 2:
            raise InventoryError(f"Cable #{index} must be a list of one or two ports")

        ends = [_build_port(raw_port, f"cables[{index}]") for raw_port in raw_cable]
        cables.append((ends[0], ends[1] if len(ends) == 2 else None))

    routes = []
    for index, raw_route in enumerate(data.get("routes") or []):
        where = f"routes[{index}]"
        if not isinstance(raw_route, dict):
            raise InventoryError(f"{where} must be a mapping")

        guid = _to_int(raw_route.get("guid"), f"{where}.guid")
        port = _to_int(raw_route.get("port"), f"{where}.port")
        lids = raw_route.get("lids", [])
        if not isinstance(lids, list):
            lids = [lids]

        for lid in lids:
            routes.append((guid, port, _to_int(lid, f"{where}.lids")))

    return {
        "settings": {
            "lmc": lmc,
            "infer_lmc": infer_lmc,
        },
        "cables": cables,
        "routes": routes,
    }


def _build_port(raw_port: Any, where: str) -> Port:
    """Build a Port from one inventory port mapping."""
    if not isinstance(raw_port, dict):
        raise InventoryError(f"{where}: port must be a mapping")

    raw_type = str(raw_port.get("type", "")).lower()
    if raw_type not in _DEVICE_CLASSES:
        raise InventoryError(f"{where}: unknown device type {raw_port.get('type')!r}")

    try:
        return Port(
            guid=_to_int(raw_port.get("guid"), f"{where}.guid"),
            port=_to_int(raw_port.get("port"), f"{where}.port"),
            device_class=_DEVICE_CLASSES[raw_type],
            lid=_to_int(raw_port.get("lid", 0), f"{where}.lid"),
            name=str(raw_port.get("name", "")),
            hca=_to_int(raw_port.get("hca", 0), f"{where}.hca"),
            leaf=_to_int(raw_port.get("leaf", 0), f"{where}.leaf"),
            spine=_to_int(raw_port.get("spine", 0), f"{where}.spine"),
            width=str(raw_port.get("width", "")),
            speed=str(raw_port.get("speed", "")),
        )
    except ValueError as e:
        raise InventoryError(f"{where}: {e}")


def _to_int(value: Any, where: str) -> int:
    """Convert a YAML int or a string in any base (e.g. "0x2c9") to int."""
    if isinstance(value, bool) or value is None:
        raise InventoryError(f"{where}: expected an integer, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value), 0)
    except ValueError:
        raise InventoryError(f"{where}: expected an integer, got {value!r}")


def pending_ports(cables: List[tuple]) -> Dict[PortKey, Port]:
    """
    Build the pending port map handed to Fabric.add_cables, with peer keys
    set on both ends of every cable.

    Raises:
        InventoryError: If a port appears twice with conflicting cables
    """
    pending: Dict[PortKey, Port] = {}

    for port_a, port_b in cables:
        if port_b is not None:
            port_a.peer = port_b.key
            port_b.peer = port_a.key

        for port in (port_a, port_b):
            if port is None:
                continue
            known = pending.get(port.key)
            if known is not None and known.peer != port.peer:
                raise InventoryError(
                    f"Port {port.label()} listed twice with different cables"
                )
            pending[port.key] = port

    return pending


def build_fabric(
    inventory: Dict[str, Any],
    lmc: Optional[int] = None,
    infer_lmc: Optional[bool] = None
) -> Fabric:
    """
    Build a fabric from a processed inventory: cables, LID map, routes
    and forwarding tables.

    Args:
        inventory: Output of load_inventory
        lmc: Override the inventory's LMC setting
        infer_lmc: Override the inventory's infer_lmc setting

    Returns:
        Fabric ready for queries

    Raises:
        FabricError: If the inventory does not describe a consistent fabric
    """
    settings = inventory.get("settings", {})
    if lmc is None:
        lmc = settings.get("lmc", DEFAULT_LMC)
    if infer_lmc is None:
        infer_lmc = settings.get("infer_lmc", DEFAULT_INFER_LMC)

    fabric = Fabric(lmc=lmc)

    logger.info(f"Adding {len(inventory.get('cables', []))} cables")
    fabric.add_cables(pending_ports(inventory.get("cables", [])))

    fabric.build_lid_map(infer_lmc=infer_lmc)

    routes = inventory.get("routes", [])
    fabric.clear_routes()
    new_routes = sum(1 for guid, port, lid in routes if fabric.add_route(guid, port, lid))
    logger.info(f"Loaded {new_routes} routes ({len(routes) - new_routes} duplicates)")

    fabric.compile_forwarding_tables()

    return fabric
