from __future__ import annotations

import logging
import re
import socket
from types import SimpleNamespace

import pytest

from esmc.auth import hardware


def test_hardware_id_is_stable_sha256():
    first = hardware.get_hardware_id()
    assert re.fullmatch(r"[0-9a-f]{64}", first)
    assert hardware.get_hardware_id() == first


def test_env_override_is_ignored(monkeypatch, caplog):
    expected = hardware.get_hardware_id()
    monkeypatch.setenv("ESMC_HARDWARE_ID", "spoofed")
    with caplog.at_level(logging.WARNING, logger="esmc.auth.hardware"):
        assert hardware.get_hardware_id() == expected
    assert "ESMC_HARDWARE_ID" in caplog.text


def test_fingerprint_changes_with_hostname(monkeypatch):
    original = hardware.get_hardware_id()
    monkeypatch.setattr(hardware, "_hostname", lambda: "some-other-host")
    assert hardware.get_hardware_id() != original


def test_base_machine_id_is_sha256():
    assert re.fullmatch(r"[0-9a-f]{64}", hardware.generate_base_machine_id())


def test_os_info_string():
    info = hardware.OSInfo(platform="Linux", release="6.1", arch="x86_64")
    assert str(info) == "Linux 6.1 (x86_64)"


def test_device_name_falls_back(monkeypatch):
    monkeypatch.setattr(hardware, "_hostname", lambda: "")
    assert hardware.get_device_name() == "Unknown Device"


def test_format_mac():
    assert hardware._format_mac(0x0A1B2C3D4E5F) == "0a:1b:2c:3d:4e:5f"


# -----------------------------------------------------------------------------
# psutil-backed probes
# -----------------------------------------------------------------------------


def _link(address):
    return SimpleNamespace(family=hardware.psutil.AF_LINK, address=address)


def _inet(address):
    return SimpleNamespace(family=socket.AF_INET, address=address)


@pytest.fixture
def interfaces(monkeypatch):
    table = {
        "lo": [_link("00:00:00:00:00:00"), _inet("127.0.0.1")],
        "docker0": [_link("02:42:AC:11:00:01")],
        "eth0": [_inet("10.0.0.2"), _link("0A-1B-2C-3D-4E-5F")],
    }
    monkeypatch.setattr(hardware.psutil, "net_if_addrs", lambda: table)
    return table


def test_mac_addresses_come_from_link_entries(interfaces):
    assert hardware._mac_addresses() == ["02:42:ac:11:00:01", "0a:1b:2c:3d:4e:5f"]


def test_primary_mac_skips_virtual_interfaces(interfaces):
    assert hardware._primary_mac() == "0a:1b:2c:3d:4e:5f"


def test_total_memory_uses_psutil(monkeypatch):
    monkeypatch.setattr(hardware.psutil, "virtual_memory", lambda: SimpleNamespace(total=8 * 1024**3))
    assert hardware._total_memory() == 8 * 1024**3


def test_total_memory_unavailable(monkeypatch):
    def denied():
        raise PermissionError("no /proc")

    monkeypatch.setattr(hardware.psutil, "virtual_memory", denied)
    assert hardware._total_memory() == 0


def test_no_interfaces_falls_back_to_node(monkeypatch):
    monkeypatch.setattr(hardware.psutil, "net_if_addrs", lambda: {})
    monkeypatch.setattr(hardware.uuid, "getnode", lambda: 0x0A1B2C3D4E5F)
    assert hardware._mac_addresses() == ["0a:1b:2c:3d:4e:5f"]
    assert hardware._primary_mac() == "0a:1b:2c:3d:4e:5f"


# -----------------------------------------------------------------------------
# OS machine id
# -----------------------------------------------------------------------------


def test_machine_id_reads_linux_file(monkeypatch, tmp_path):
    machine_id = tmp_path / "machine-id"
    machine_id.write_text("abc123\n", encoding="utf-8")
    monkeypatch.setattr(hardware.sys, "platform", "linux")
    monkeypatch.setattr(hardware, "_LINUX_MACHINE_ID_FILES", (str(tmp_path / "missing"), str(machine_id)))
    assert hardware.get_machine_id() == "abc123"


def test_machine_id_reads_ioreg_on_macos(monkeypatch):
    output = '  "IOPlatformUUID" = "4C4C4544-0042-3010-8052-B4C04F564433"\n'

    def fake_run(args, **kwargs):
        assert args[0] == "ioreg"
        return SimpleNamespace(stdout=output)

    monkeypatch.setattr(hardware.sys, "platform", "darwin")
    monkeypatch.setattr(hardware.subprocess, "run", fake_run)
    assert hardware.get_machine_id() == "4C4C4544-0042-3010-8052-B4C04F564433"


def test_machine_id_is_independent_of_network_interfaces(monkeypatch, interfaces, tmp_path):
    machine_id = tmp_path / "machine-id"
    machine_id.write_text("stable-id", encoding="utf-8")
    monkeypatch.setattr(hardware.sys, "platform", "linux")
    monkeypatch.setattr(hardware, "_LINUX_MACHINE_ID_FILES", (str(machine_id),))
    before = hardware.get_machine_id()
    interfaces["tun0"] = [_link("aa:bb:cc:dd:ee:ff")]
    assert hardware.get_machine_id() == before


def test_machine_id_falls_back_to_derived_id(monkeypatch):
    def missing(args, **kwargs):
        raise FileNotFoundError("ioreg")

    monkeypatch.setattr(hardware.sys, "platform", "darwin")
    monkeypatch.setattr(hardware.subprocess, "run", missing)
    assert hardware.get_machine_id() == hardware.generate_base_machine_id()
