"""Naming of OVS bridges for physical NICs and OVS package defaults."""

from __future__ import annotations

import logging

from .ovs import RHEL, UBUNTU, CommandError, OvsCommands

logger = logging.getLogger(__name__)

UBUNTU_DEFAULT_FILE = "/etc/default/openvswitch-switch"
RHEL_DEFAULT_FILE = "/etc/default/openvswitch"
DELETE_TRANSIENT_PORTS = "--delete-transient-ports"

_DEFAULTS = {
    UBUNTU: (UBUNTU_DEFAULT_FILE, 'OVS_CTL_OPTS="$OVS_CTL_OPTS --delete-transient-ports"'),
    RHEL: (RHEL_DEFAULT_FILE, "OPTIONS=--delete-transient-ports"),
}


def get_bridge_name(iface: str) -> str:
    """Name of the OVS bridge created for a NIC."""
    return f"br{iface}"


def get_nic_name(ovs: OvsCommands, br_name: str) -> str:
    """Return the physical NIC behind a bridge, or "" if it cannot be found."""
    try:
        stdout, _ = ovs.run_ovs_vsctl("br-get-external-id", br_name, "bridge-uplink")
    except CommandError as exc:
        logger.error(
            "Failed to get the bridge-uplink for the bridge %r:, stderr: %r, error: %s",
            br_name,
            exc.stderr,
            exc,
        )
        return ""
    if not stdout and br_name.startswith("br"):
        # Bridges created before bridge-uplink was recorded.
        return br_name[len("br") :]
    return stdout


def get_nic_name_windows(br_name: str) -> str:
    """Return the NIC from a Windows bridge name of the form "vEthernet (<nic>)"."""
    parts = br_name.split(" ", 1)
    if len(parts) != 2 or len(parts[1]) < 2:
        raise ValueError("invalid bridge name")
    return parts[1][1:-1]


def ensure_delete_transient_ports(platform: str, default_file: str | None = None) -> bool:
    """Make the OVS package defaults pass --delete-transient-ports.

    Returns True if the option was appended to the file.
    """
    if platform not in _DEFAULTS:
        return False
    standard_file, text = _DEFAULTS[platform]
    path = default_file or standard_file

    try:
        with open(path, encoding="utf-8") as fh:
            contents = fh.read()
    except OSError as exc:
        logger.error("failed to parse file %s (%s)", path, exc)
        return False

    if any(DELETE_TRANSIENT_PORTS in line for line in contents.split("\n")):
        return False

    try:
        with open(path, "a", encoding="utf-8") as fh:
            fh.write(text)
    except OSError as exc:
        logger.error("failed to write to %s (%s)", path, exc)
        return False
    return True