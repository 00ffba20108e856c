"""Tests for output formatters and the report script."""

import importlib.util
import io
import json
import os

import pytest

from ibfabric import FabricValidator
from output import to_json, to_text, format_path, format_issues

from helpers import REPO_ROOT, SAMPLE_INVENTORY, SWITCH_GUID, H1_GUID, H2_GUID, switch_port


def load_report_script():
    path = os.path.join(REPO_ROOT, "scripts", "fabric_report.py")
    spec = importlib.util.spec_from_file_location("fabric_report", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestToText:
    """Test the human-readable fabric dump."""

    def test_lists_devices_and_peers(self, simple_fabric):
        simple_fabric.add_cable(switch_port(SWITCH_GUID, 3, lid=1))
        text = to_text(simple_fabric)

        assert "Entity: sw100" in text
        assert "port[1]: sw100/P01 <--> host200/H01/P01" in text
        assert "port[3]: sw100/P03 <--> None" in text
        assert "Dark Ports:         1" in text

    def test_includes_issues(self, simple_fabric):
        simple_fabric.add_cable(switch_port(SWITCH_GUID, 3, lid=1))
        issues = FabricValidator().validate(simple_fabric)
        text = to_text(simple_fabric, issues)

        assert "VALIDATION ISSUES" in text
        assert "[INFO] sw100/P03" in text

    def test_writes_to_file(self, simple_fabric):
        buffer = io.StringIO()
        text = to_text(simple_fabric, file=buffer)
        assert buffer.getvalue() == text


class TestToJson:
    """Test JSON export."""

    def test_to_json(self, simple_fabric, tmp_path):
        path = tmp_path / "out" / "fabric.json"
        to_json(simple_fabric, str(path), issues=[])

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["lmc"] == 0
        assert data["summary"]["device_count"] == 3
        assert data["summary"]["cable_count"] == 2
        assert data["summary"]["issue_count"] == 0
        assert data["lid_map"]["2"] == f"{H1_GUID:#018x}"
        assert data["validation_issues"] == []


class TestFormatPath:
    """Test path rendering."""

    def test_format_path(self, simple_fabric):
        path = simple_fabric.trace_path(
            simple_fabric.devices[H1_GUID], simple_fabric.devices[H2_GUID]
        )
        assert format_path(path) == "host200/H01 -> sw100 -> host300/H01 (2 hops)"

    def test_single_hop(self, simple_fabric):
        path = simple_fabric.trace_path(
            simple_fabric.devices[H1_GUID], simple_fabric.devices[SWITCH_GUID]
        )
        assert format_path(path).endswith("(1 hop)")

    def test_empty(self):
        assert format_path([]) == "(empty path)"


class TestFormatIssues:
    """Test issue summaries."""

    def test_no_issues(self):
        assert format_issues([]) == "No validation issues found."

    def test_summary(self, simple_fabric):
        simple_fabric.add_cable(switch_port(SWITCH_GUID, 3, lid=1))
        text = format_issues(FabricValidator().validate(simple_fabric))
        assert text.startswith("Found 1 issues: 0 errors, 0 warnings, 1 info")
        assert "[INFO] sw100/P03 - Port is not cabled" in text


class TestReportScript:
    """Test the fabric_report command line."""

    def test_text_report_with_path(self, capsys):
        script = load_report_script()
        script.main(["-i", SAMPLE_INVENTORY, "--path", "node01", "node04"])

        out = capsys.readouterr().out
        assert "INFINIBAND FABRIC REPORT" in out
        assert "node01/H01 -> ib1/L01 -> ib1/S01 -> ib1/L02 -> node04/H01 (4 hops)" in out

    def test_json_needs_output(self):
        script = load_report_script()
        with pytest.raises(SystemExit) as exc:
            script.main(["-i", SAMPLE_INVENTORY, "-f", "json"])
        assert exc.value.code == 1

    def test_missing_inventory(self, tmp_path):
        script = load_report_script()
        with pytest.raises(SystemExit) as exc:
            script.main(["-i", str(tmp_path / "missing.yaml")])
        assert exc.value.code == 1

    def test_resolve_device(self):
        from inventory import load_inventory, build_fabric

        script = load_report_script()
        fabric = build_fabric(load_inventory(SAMPLE_INVENTORY))

        assert script.resolve_device(fabric, "lid:13").name == "node02"
        assert script.resolve_device(fabric, "ib1/S01").label() == "ib1/S01"
        assert script.resolve_device(fabric, "0x0002c90300a1b003").name == "node03"
        with pytest.raises(ValueError):
            script.resolve_device(fabric, "nothing")
