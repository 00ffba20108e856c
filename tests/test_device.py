"""Tests for fabric devices."""

import pytest

from ibfabric import (
    Device,
    DeviceClass,
    DuplicatePort,
    ForeignPort,
    DeviceClassMismatch,
    NoRoute,
)

from helpers import hca_port, switch_port


@pytest.fixture
def switch():
    device = Device(0x100, DeviceClass.SWITCH)
    for number in (3, 1, 2):
        device.attach_port(switch_port(0x100, number, lid=7, name="ib1", leaf=4))
    return device


class TestDeviceCreation:
    """Test device identity."""

    def test_unknown_class_rejected(self):
        with pytest.raises(DeviceClassMismatch):
            Device(0x100, DeviceClass.UNKNOWN)

    def test_zero_guid_rejected(self):
        with pytest.raises(ValueError):
            Device(0, DeviceClass.SWITCH)

    def test_identity_is_read_only(self, switch):
        with pytest.raises(AttributeError):
            switch.guid = 5
        with pytest.raises(AttributeError):
            switch.device_class = DeviceClass.HCA


class TestAttachPort:
    """Test attaching ports to a device."""

    def test_attach(self, switch):
        assert sorted(switch.ports) == [1, 2, 3]

    def test_duplicate_port(self, switch):
        with pytest.raises(DuplicatePort):
            switch.attach_port(switch_port(0x100, 2, lid=7))

    def test_class_mismatch(self, switch):
        with pytest.raises(DeviceClassMismatch):
            switch.attach_port(hca_port(0x100, port=4, lid=7))
        assert 4 not in switch.ports

    def test_foreign_port(self, switch):
        with pytest.raises(ForeignPort):
            switch.attach_port(switch_port(0x101, 4, lid=7))


class TestDeviceProperties:
    """Test properties read from the first port."""

    def test_first_port_is_lowest_number(self, switch):
        assert switch.first_port.port == 1

    def test_lid_and_name(self, switch):
        assert switch.lid == 7
        assert switch.name == "ib1"

    def test_labels(self, switch):
        assert switch.label() == "ib1/L04"
        assert switch.label(Device.LABEL_NAME) == "ib1"
        assert switch.label(Device.LABEL_LEAF) == "4"
        assert switch.label(Device.LABEL_SPINE) == "0"

    def test_bad_label_kind(self, switch):
        with pytest.raises(ValueError):
            switch.label("rack")

    def test_empty_device(self):
        device = Device(0x5, DeviceClass.HCA)
        assert device.first_port is None
        assert device.lid == 0
        assert device.label() == ""

    def test_hca(self):
        device = Device(0x5, DeviceClass.HCA)
        device.attach_port(hca_port(0x5, lid=3))
        assert device.is_hca
        assert device.hca == 1


class TestRoutes:
    """Test routing and forwarding tables."""

    def test_add_route_is_idempotent(self, switch):
        assert switch.add_route(1, 10) is True
        assert switch.add_route(1, 10) is False
        assert switch.routes == {1: {10}}

    def test_clear_routes(self, switch):
        switch.add_route(1, 10)
        switch.clear_routes()
        assert switch.routes == {}

    def test_compile(self, switch):
        switch.add_route(1, 10)
        switch.add_route(1, 11)
        switch.add_route(2, 12)
        switch.compile_forwarding_table()
        assert switch.forwarding_table == {10: 1, 11: 1, 12: 2}

    def test_lowest_port_wins_tie(self, switch):
        switch.add_route(3, 10)
        switch.add_route(2, 10)
        switch.compile_forwarding_table()
        assert switch.resolve_next_hop(10) == 2

    def test_compile_replaces_table(self, switch):
        switch.add_route(1, 10)
        switch.compile_forwarding_table()
        switch.clear_routes()
        switch.add_route(2, 11)
        switch.compile_forwarding_table()
        assert switch.forwarding_table == {11: 2}

    def test_no_route(self, switch):
        switch.compile_forwarding_table()
        with pytest.raises(NoRoute):
            switch.resolve_next_hop(10)


class TestDeviceToDict:
    """Test device serialization."""

    def test_to_dict(self, switch):
        result = switch.to_dict()
        assert result["guid"] == "0x0000000000000100"
        assert result["type"] == DeviceClass.SWITCH
        assert result["lid"] == 7
        assert [p["port"] for p in result["ports"]] == [1, 2, 3]
