"""Hardware identification for device binding.

The fingerprint is derived from local machine characteristics only; the
``ESMC_HARDWARE_ID`` environment variable is never honoured.
"""

from __future__ import annotations

import logging
import os
import platform
import re
import socket
import subprocess
import sys
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import psutil

from ..utils.hashing import sha256_hex

logger = logging.getLogger("esmc.auth.hardware")

_NULL_MAC = "00:00:00:00:00:00"
_LINUX_MACHINE_ID_FILES = ("/etc/machine-id", "/var/lib/dbus/machine-id")
_BSD_HOSTID_FILE = "/etc/hostid"
_IOREG_UUID = re.compile(r'"IOPlatformUUID"\s*=\s*"([^"]+)"')
_VIRTUAL_INTERFACE_MARKERS = ("loopback", "virtual", "docker", "veth", "vmnet", "vbox", "utun", "tun", "tap")


@dataclass(frozen=True)
class OSInfo:
    platform: str
    release: str
    arch: str

    def __str__(self) -> str:
        return f"{self.platform} {self.release} ({self.arch})"


def _hostname() -> str:
    return socket.gethostname()


def _cpu_model() -> str:
    return platform.processor() or platform.machine() or "unknown"


def _total_memory() -> int:
    try:
        return int(psutil.virtual_memory().total)
    except (OSError, RuntimeError) as exc:
        logger.debug("Total memory unavailable: %s", exc)
        return 0


def _format_mac(node: int) -> str:
    return ":".join(f"{(node >> shift) & 0xFF:02x}" for shift in range(40, -1, -8))


def _interface_macs() -> Dict[str, str]:
    """Map interface name to its link-layer address."""
    try:
        interfaces = psutil.net_if_addrs()
    except (OSError, RuntimeError) as exc:
        logger.debug("Network interfaces unavailable: %s", exc)
        return {}

    macs: Dict[str, str] = {}
    for name, addresses in sorted(interfaces.items()):
        for address in addresses:
            if address.family != psutil.AF_LINK or not address.address:
                continue
            mac = address.address.replace("-", ":").lower()
            if mac != _NULL_MAC:
                macs[name] = mac
                break
    return macs


def _mac_addresses() -> List[str]:
    addresses = list(_interface_macs().values())
    if not addresses:
        node = uuid.getnode()
        # Bit 40 set means getnode() fell back to a random value.
        if not node >> 40 & 1:
            addresses.append(_format_mac(node))
    return addresses


def _is_virtual_interface(name: str) -> bool:
    lowered = name.lower()
    return lowered == "lo" or any(marker in lowered for marker in _VIRTUAL_INTERFACE_MARKERS)


def _primary_mac() -> str:
    for name, mac in _interface_macs().items():
        if not _is_virtual_interface(name):
            return mac
    macs = _mac_addresses()
    return macs[0] if macs else "no-mac"


def generate_base_machine_id() -> str:
    """Hash platform, hostname, CPU, memory and every MAC address."""
    hardware = "|".join(
        [
            platform.system().lower(),
            _hostname(),
            _cpu_model(),
            str(_total_memory()),
            ",".join(sorted(_mac_addresses())),
        ]
    )
    return sha256_hex(hardware)


def _read_first_line(paths: Iterable[str]) -> Optional[str]:
    for candidate in paths:
        try:
            with open(candidate, encoding="utf-8") as handle:
                value = handle.read().strip()
        except OSError:
            continue
        if value:
            return value
    return None


def _darwin_machine_id() -> Optional[str]:
    try:
        output = subprocess.run(
            ["ioreg", "-rd1", "-c", "IOPlatformExpertDevice"],
            capture_output=True,
            text=True,
            timeout=5,
            check=True,
        ).stdout
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("ioreg lookup failed: %s", exc)
        return None
    match = _IOREG_UUID.search(output)
    return match.group(1) if match else None


def _windows_machine_id() -> Optional[str]:
    import winreg

    try:
        with winreg.OpenKey(
            winreg.HKEY_LOCAL_MACHINE,
            r"SOFTWARE\Microsoft\Cryptography",
            0,
            winreg.KEY_READ | winreg.KEY_WOW64_64KEY,
        ) as key:
            value, _ = winreg.QueryValueEx(key, "MachineGuid")
    except OSError as exc:
        logger.debug("MachineGuid lookup failed: %s", exc)
        return None
    return str(value).strip() or None


def _os_machine_id() -> Optional[str]:
    if sys.platform == "darwin":
        return _darwin_machine_id()
    if sys.platform == "win32":
        return _windows_machine_id()
    if sys.platform.startswith(("freebsd", "openbsd", "netbsd")):
        return _read_first_line((_BSD_HOSTID_FILE,)) or _read_first_line(_LINUX_MACHINE_ID_FILES)
    return _read_first_line(_LINUX_MACHINE_ID_FILES)


def get_machine_id() -> str:
    """Return the OS machine id, or the derived base id where none exists.

    Linux reads ``/etc/machine-id``, macOS the ``IOPlatformUUID``, Windows the
    ``MachineGuid`` registry value and the BSDs ``/etc/hostid``.
    """
    machine_id = _os_machine_id()
    if machine_id:
        return machine_id
    logger.warning("No OS machine id found; deriving one from hardware")
    return generate_base_machine_id()


def get_hardware_id() -> str:
    """Return the multi-factor SHA-256 hardware fingerprint."""
    try:
        fingerprint_data = "|".join(
            [
                generate_base_machine_id(),
                _hostname(),
                _cpu_model()[:50],
                str(_total_memory()),
                platform.machine(),
                _primary_mac(),
            ]
        )
        fingerprint = sha256_hex(fingerprint_data)
    except OSError as exc:
        logger.error("Error getting hardware ID: %s", exc)
        return sha256_hex(_hostname() + platform.machine())

    override = os.environ.get("ESMC_HARDWARE_ID")
    if override and override != fingerprint:
        logger.warning(
            "Ignoring ESMC_HARDWARE_ID override; using the derived hardware fingerprint"
        )
    return fingerprint


def get_device_name() -> str:
    return _hostname() or "Unknown Device"


def get_os_info() -> OSInfo:
    return OSInfo(platform=platform.system(), release=platform.release(), arch=platform.machine())
