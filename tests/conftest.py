"""Shared fixtures for fabric tests."""

import pytest

from ibfabric import Fabric

from helpers import SWITCH_GUID, H1_GUID, H2_GUID, hca_port, switch_port


@pytest.fixture
def simple_fabric():
    """
    Switch S (lid 1) with host adapters H1 (lid 2) on port 1 and
    H2 (lid 3) on port 2. Routes on S: port 1 -> {2}, port 2 -> {3}.
    """
    fabric = Fabric()
    fabric.add_cable(hca_port(H1_GUID, lid=2), switch_port(SWITCH_GUID, 1, lid=1))
    fabric.add_cable(hca_port(H2_GUID, lid=3), switch_port(SWITCH_GUID, 2, lid=1))
    fabric.build_lid_map()
    fabric.add_route(SWITCH_GUID, 1, 2)
    fabric.add_route(SWITCH_GUID, 2, 3)
    fabric.compile_forwarding_tables()
    return fabric
