import ipaddress
import re

import pytest

from ovnkube_util.netutil import (
    generate_mac,
    get_ovs_port_mac_address,
    get_port_addresses,
    next_ip,
)
from ovnkube_util.ovs import CommandError, OvsCommands


class FakeExecutor:
    def __init__(self, responses=None, failures=None):
        self.responses = responses or {}
        self.failures = failures or {}
        self.calls = []

    def look_path(self, name):
        return name

    def run(self, path, args):
        key = " ".join([path, *args])
        self.calls.append(key)
        if key in self.failures:
            raise CommandError("exit status 1", "", self.failures[key], 1)
        return self.responses.get(key, ""), ""


def make_ovs(responses=None, failures=None, system="linux"):
    return OvsCommands(
        executor=FakeExecutor(responses, failures),
        system=system,
        retries=0,
        retry_interval=0,
    )


NBCTL_GET = "ovn-nbctl --timeout=15 get logical_switch_port p1 dynamic_addresses"
VSCTL_GET = "ovs-vsctl --timeout=15 --if-exists get interface eth0 mac_in_use"


def test_generate_mac_format():
    for _ in range(50):
        mac = generate_mac()
        match = re.fullmatch(r"00:00:00:([0-9A-F]{2}):([0-9A-F]{2}):([0-9A-F]{2})", mac)
        assert match is not None
        assert all(int(octet, 16) < 255 for octet in match.groups())


def test_next_ip_crosses_octet():
    assert next_ip("10.0.0.255") == ipaddress.ip_address("10.0.1.0")


@pytest.mark.parametrize("start", ["192.168.1.3", "100.64.0.1", "fd00::1"])
def test_next_ip_is_successor(start):
    result = next_ip(start)
    assert int(result) == int(ipaddress.ip_address(start)) + 1
    assert result.version == ipaddress.ip_address(start).version


def test_next_ip_accepts_address_object():
    addr = ipaddress.ip_address("100.64.0.1")
    assert next_ip(addr) > addr


def test_get_port_addresses_parses_dynamic_addresses():
    ovs = make_ovs({NBCTL_GET: '"0a:00:00:00:00:01 192.168.1.3"\n'})
    mac, ip = get_port_addresses(ovs, "p1")
    assert mac == "0a:00:00:00:00:01"
    assert ip == ipaddress.ip_address("192.168.1.3")


def test_get_port_addresses_empty():
    ovs = make_ovs({NBCTL_GET: "[]\n"})
    assert get_port_addresses(ovs, "p1") == (None, None)


@pytest.mark.parametrize(
    "output",
    ["0a:00:00:00:00:01", "0a:00:00:00:00:01 not-an-ip", "zz:00 192.168.1.3"],
)
def test_get_port_addresses_malformed(output):
    ovs = make_ovs({NBCTL_GET: output})
    with pytest.raises(ValueError):
        get_port_addresses(ovs, "p1")


def test_get_port_addresses_command_failure():
    ovs = make_ovs(failures={NBCTL_GET: "boom"})
    with pytest.raises(CommandError, match="p1"):
        get_port_addresses(ovs, "p1")


def test_get_ovs_port_mac_address():
    ovs = make_ovs({VSCTL_GET: '"0A:00:00:00:00:02"\n'})
    assert get_ovs_port_mac_address(ovs, "eth0") == "0a:00:00:00:00:02"


def test_get_ovs_port_mac_address_missing():
    ovs = make_ovs({VSCTL_GET: ""})
    with pytest.raises(ValueError, match="No mac_address"):
        get_ovs_port_mac_address(ovs, "eth0")


def test_get_ovs_port_mac_address_command_failure():
    ovs = make_ovs(failures={VSCTL_GET: "no such interface"})
    with pytest.raises(CommandError) as info:
        get_ovs_port_mac_address(ovs, "eth0")
    assert info.value.stderr == "no such interface"


def test_get_ovs_port_mac_address_windows_fallback():
    powershell = (
        'powershell $(Get-NetAdapter -IncludeHidden -InterfaceAlias "eth0" ).MacAddress'
    )
    ovs = make_ovs(
        {VSCTL_GET: "00:00:00:00:00:00", powershell: "0A-00-00-00-00-03\r\n"},
        system="windows",
    )
    assert get_ovs_port_mac_address(ovs, "eth0") == "0a:00:00:00:00:03"


def test_get_ovs_port_mac_address_zero_on_linux_kept():
    ovs = make_ovs({VSCTL_GET: "00:00:00:00:00:00"})
    assert get_ovs_port_mac_address(ovs, "eth0") == "00:00:00:00:00:00"