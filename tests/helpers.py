"""Port builders shared by the fabric tests."""

import os

from ibfabric import Port, DeviceClass

SWITCH_GUID = 0x100
H1_GUID = 0x200
H2_GUID = 0x300

REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
SAMPLE_INVENTORY = os.path.join(REPO_ROOT, "inventory", "fabric.yaml")


def hca_port(guid, port=1, lid=0, name=None, **kwargs):
    return Port(
        guid=guid,
        port=port,
        device_class=DeviceClass.HCA,
        lid=lid,
        name=name or f"host{guid:x}",
        hca=1,
        **kwargs
    )


def switch_port(guid, port, lid=0, name=None, **kwargs):
    return Port(
        guid=guid,
        port=port,
        device_class=DeviceClass.SWITCH,
        lid=lid,
        name=name or f"sw{guid:x}",
        **kwargs
    )
