"""Tests for fabric validation."""

from ibfabric import Fabric, FabricValidator

from helpers import SWITCH_GUID, H1_GUID, hca_port, switch_port


def issues_of(fabric, severity=None):
    issues = FabricValidator().validate(fabric)
    if severity is None:
        return issues
    return [i for i in issues if i.severity == severity]


class TestFabricValidator:
    """Test validation checks."""

    def test_clean_fabric(self, simple_fabric):
        assert issues_of(simple_fabric) == []

    def test_dark_port(self, simple_fabric):
        simple_fabric.add_cable(switch_port(SWITCH_GUID, 3, lid=1))
        issues = issues_of(simple_fabric, "info")
        assert len(issues) == 1
        assert issues[0].port == 3
        assert "not cabled" in issues[0].message

    def test_speed_mismatch(self):
        fabric = Fabric()
        fabric.add_cable(
            hca_port(H1_GUID, lid=2, width="4x", speed="FDR"),
            switch_port(SWITCH_GUID, 1, lid=1, width="4x", speed="QDR"),
        )
        issues = issues_of(fabric, "warning")
        assert len(issues) == 1
        assert "Speed mismatch" in issues[0].message
        # Reported from the end with the lower port key, here the switch
        assert issues[0].device == "sw100"
        assert issues[0].port == 1
        assert issues[0].details["local_speed"] == "QDR"
        assert issues[0].details["remote_speed"] == "FDR"
        assert issues[0].details["remote_port"] == "host200/H01/P01"

    def test_route_to_unassigned_lid(self, simple_fabric):
        simple_fabric.add_route(SWITCH_GUID, 2, 40)
        issues = issues_of(simple_fabric, "warning")
        assert len(issues) == 1
        assert issues[0].details == {"lids": [40]}

    def test_asymmetric_cable(self, simple_fabric):
        simple_fabric.find_port(SWITCH_GUID, 1).peer = (SWITCH_GUID, 2)
        errors = issues_of(simple_fabric, "error")
        assert errors
        assert all("cable" in e.message.lower() for e in errors)

    def test_membership_mismatch(self, simple_fabric):
        del simple_fabric.devices[H1_GUID].ports[1]
        errors = issues_of(simple_fabric, "error")
        assert len(errors) == 1
        assert "not held by its device" in errors[0].message

    def test_switch_without_forwarding(self, simple_fabric):
        simple_fabric.add_cable(switch_port(SWITCH_GUID, 3, lid=1), switch_port(0x500, 1, lid=9))
        simple_fabric.build_lid_map()
        issues = [i for i in issues_of(simple_fabric, "info") if "forwarding" in i.message]
        assert len(issues) == 1
        assert issues[0].port is None

    def test_errors_sorted_first(self, simple_fabric):
        simple_fabric.add_cable(switch_port(SWITCH_GUID, 3, lid=1))
        del simple_fabric.devices[H1_GUID].ports[1]
        issues = issues_of(simple_fabric)
        assert issues[0].severity == "error"
        assert issues[-1].severity == "info"

    def test_issue_to_dict(self, simple_fabric):
        simple_fabric.add_cable(switch_port(SWITCH_GUID, 3, lid=1))
        result = issues_of(simple_fabric)[0].to_dict()
        assert "details" not in result
        assert result["severity"] == "info"
