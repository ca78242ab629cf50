"""MAC and IP address helpers, and address lookups on OVS/OVN ports."""

from __future__ import annotations

import ipaddress
import random
import re

from .ovs import WINDOWS_OS, CommandError, OvsCommands

MAC_PREFIX = "00:00:00"

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

_HEX2 = re.compile(r"^[0-9A-Fa-f]{2}$")
_HEX4 = re.compile(r"^[0-9A-Fa-f]{4}$")
_MAC_LENGTHS = (6, 8, 20)


def generate_mac() -> str:
    """Return a random MAC address under the 00:00:00 prefix."""
    rng = random.Random()
    octets = ":".join(f"{rng.randrange(255):02X}" for _ in range(3))
    return f"{MAC_PREFIX}:{octets}"


def next_ip(ip: str | IPAddress) -> IPAddress:
    """Return the address that follows ``ip``."""
    return ipaddress.ip_address(ip) + 1


def _parse_mac(text: str) -> str:
    """Parse a hardware address and return it as lower-case, colon-separated hex."""
    if "." in text:
        groups = text.split(".")
        if not all(_HEX4.match(g) for g in groups):
            raise ValueError(f"invalid MAC address {text!r}")
        octets = [g[i : i + 2] for g in groups for i in (0, 2)]
    else:
        sep = ":" if ":" in text else "-"
        octets = text.split(sep)
        if not all(_HEX2.match(o) for o in octets):
            raise ValueError(f"invalid MAC address {text!r}")
    if len(octets) not in _MAC_LENGTHS:
        raise ValueError(f"invalid MAC address {text!r}")
    return ":".join(o.lower() for o in octets)


def get_port_addresses(
    ovs: OvsCommands, port_name: str
) -> tuple[str, IPAddress] | tuple[None, None]:
    """Return the dynamic MAC and IP of a logical switch port, or (None, None)."""
    try:
        out, _ = ovs.run_ovn_nbctl(
            "get", "logical_switch_port", port_name, "dynamic_addresses"
        )
    except CommandError as exc:
        raise CommandError(
            f"Error while obtaining addresses for {port_name}: {exc}",
            exc.stdout,
            exc.stderr,
            exc.returncode,
        ) from exc
    if out == "[]":
        return None, None

    # dynamic addresses look like "0a:00:00:00:00:01 192.168.1.3"
    addresses = out.strip('"').split(" ")
    if len(addresses) != 2:
        raise ValueError(f"Error while obtaining addresses for {port_name}")
    mac_text, ip_text = addresses
    try:
        ip = ipaddress.ip_address(ip_text)
    except ValueError as exc:
        raise ValueError(
            f"failed to parse logical switch port {port_name!r} IP {ip_text!r}"
        ) from exc
    try:
        mac = _parse_mac(mac_text)
    except ValueError as exc:
        raise ValueError(
            f"failed to parse logical switch port {port_name!r} MAC {mac_text!r}: {exc}"
        ) from exc
    return mac, ip


def get_ovs_port_mac_address(ovs: OvsCommands, port_name: str) -> str:
    """Return the MAC address an OVS interface is using."""
    try:
        mac_address, _ = ovs.run_ovs_vsctl(
            "--if-exists", "get", "interface", port_name, "mac_in_use"
        )
    except CommandError as exc:
        raise CommandError(
            f"Failed to get MAC address for {port_name!r}, "
            f"stderr: {exc.stderr!r}, error: {exc}",
            exc.stdout,
            exc.stderr,
            exc.returncode,
        ) from exc
    if not mac_address:
        raise ValueError(f"No mac_address found for {port_name!r}")
    if ovs.system == WINDOWS_OS and mac_address == "00:00:00:00:00:00":
        mac_address = ovs.fetch_if_mac_windows(port_name)
    try:
        return _parse_mac(mac_address)
    except ValueError as exc:
        raise ValueError(
            f"failed to parse port {port_name!r} MAC {mac_address!r}: {exc}"
        ) from exc