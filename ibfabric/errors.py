"""
Fabric Errors

Every consistency check in the fabric model raises one of these.
Nothing is retried internally; callers decide whether to give up,
rebuild, or carry on.
"""


class FabricError(Exception):
    """Base class for fabric model errors."""
    pass


class DuplicatePort(FabricError):
    """Two ports share the same device id and port number."""
    pass


class ForeignPort(FabricError):
    """A port was attached to a device with a different device id."""
    pass


class DeviceClassMismatch(FabricError):
    """A port's device class conflicts with its device's established class."""
    pass


class UnknownDevice(DeviceClassMismatch):
    """A lookup-only operation named a device that was never cabled in."""
    pass


class CableError(FabricError):
    """Base class for cable ingestion errors."""
    pass


class CableAlreadyKnown(CableError):
    """A cable endpoint reappeared with different peer data."""
    pass


class CableMismatch(CableError):
    """The two ends of a cable do not describe the same cable."""
    pass


class AddressError(FabricError):
    """Base class for address map errors."""
    pass


class AddressCollision(AddressError):
    """Two devices claim the same address."""
    pass


class RoutingError(FabricError):
    """Base class for forwarding simulation errors."""
    pass


class NoRoute(RoutingError):
    """A forwarding table has no entry for the requested address."""
    pass


class Unreachable(RoutingError):
    """A port expected to be cabled is dark."""
    pass


class RoutingCycle(RoutingError):
    """A traversal revisited a device without reaching its target."""
    pass
