"""
ibfabric - InfiniBand fabric model

Contains:
- port: Port records and device classes
- device: Host adapters and switches with routing/forwarding tables
- fabric: Cabling, LID map with LMC inference, forwarding simulation
- validate: Fabric health checks
"""

from .errors import (
    FabricError,
    DuplicatePort,
    ForeignPort,
    DeviceClassMismatch,
    UnknownDevice,
    CableError,
    CableAlreadyKnown,
    CableMismatch,
    AddressError,
    AddressCollision,
    RoutingError,
    NoRoute,
    Unreachable,
    RoutingCycle,
)
from .port import Port, PortKey, DeviceClass
from .device import Device
from .fabric import Fabric, MAX_LMC
from .validate import FabricValidator, ValidationIssue

__all__ = [
    'FabricError',
    'DuplicatePort',
    'ForeignPort',
    'DeviceClassMismatch',
    'UnknownDevice',
    'CableError',
    'CableAlreadyKnown',
    'CableMismatch',
    'AddressError',
    'AddressCollision',
    'RoutingError',
    'NoRoute',
    'Unreachable',
    'RoutingCycle',
    'Port',
    'PortKey',
    'DeviceClass',
    'Device',
    'Fabric',
    'MAX_LMC',
    'FabricValidator',
    'ValidationIssue',
]
