# ovnkube-util

Helpers for a Kubernetes network controller built on OVN and Open vSwitch.
The package runs the `ovs-vsctl`, `ovs-ofctl`, `ovn-nbctl` and `ovn-sbctl`
command-line tools and builds on them: gateway routers and their ports,
routes, SNAT rules and load balancers; bridge and NIC naming; and the match
strings of network-policy ACLs.

It has no dependencies outside the standard library. The OVS and OVN tools
must be installed on the host for the command wrappers to do real work.

## Modules

### `ovnkube_util.ovs`

- `OvsCommands(executor=None, north=None, south=None, system=None, retries=200, retry_interval=2.0)`
  looks up the paths of `ovs-ofctl`, `ovs-vsctl`, `ovn-nbctl`, `ovn-sbctl`
  and, depending on `system`, either `ip` or `powershell`, `netsh` and
  `route`, as soon as it is created. A missing tool raises
  `FileNotFoundError`.
- Its methods `run_ovs_ofctl`, `run_ovs_vsctl`, `run_ovn_nbctl`,
  `run_ovn_nbctl_with_timeout`, `run_ovn_nbctl_unix`, `run_ovn_sbctl`,
  `run_ovn_sbctl_with_timeout`, `run_ovn_sbctl_unix`, `run_ip`,
  `run_powershell`, `run_netsh`, `run_route` and `raw_exec` each return
  `(stdout, stderr)` with the output trimmed. `ovs-vsctl` and the `*_unix`
  variants get `--timeout=15`. `run_ovn_nbctl`/`run_ovn_sbctl` add the
  connection options of the `north`/`south` `OvnDbConfig` and a timeout.
  The OVN commands are retried (up to `retries` times, `retry_interval`
  seconds apart) while stderr says "Connection refused".
- `fetch_if_mac_windows(name)` asks powershell for an adapter's MAC and
  returns it lower-case and colon-separated.
- Failures raise `CommandError`, which carries `stdout`, `stderr` and
  `returncode`.
- `OvnDbConfig(scheme, url, private_key, certificate, ca_cert)` with
  `DbScheme.UNIX`, `TCP` or `SSL`; `connection_args()` gives the
  command-line options.
- `SubprocessExecutor` runs the commands as child processes. Any object
  with `look_path(name)` and `run(path, args)` can take its place, which is
  how the wrappers are tested without OVS installed.
- `running_platform(os_release_path="/etc/os-release", system=None)`
  returns `"RHEL"`, `"Ubuntu"`, `"Photon"` or `"windows"`, and raises
  `ValueError` for an unknown platform.

### `ovnkube_util.kube`

`Service`, `ServicePort` and `ServiceType`, with `is_cluster_ip_set`,
`service_type_has_cluster_ip` and `service_type_has_node_port`;
`string_arg(values, name)` returns a non-empty argument from a mapping or
raises `ValueError`; `get_k8s_mgmt_intf_name(node_name)` names the node's
management port.

### `ovnkube_util.netutil`

`generate_mac()` returns a random address under `00:00:00`;
`next_ip(ip)` returns the following address;
`get_port_addresses(ovs, port)` returns a logical switch port's dynamic
`(mac, ip)` or `(None, None)`; `get_ovs_port_mac_address(ovs, port)`
returns an OVS interface's MAC.

### `ovnkube_util.iptables`

`FakeIPTables(proto=Protocol.IPV4)` is an in-memory iptables with `filter`
and `nat` tables and the methods `list_chains`, `new_chain`, `clear_chain`,
`exists`, `insert` (1-based position), `delete` and `match_state`, which
raises `IPTablesError` unless the tables hold exactly the given rules.

### `ovnkube_util.bridge`

`get_bridge_name(iface)`, `get_nic_name(ovs, bridge)` (asks `ovs-vsctl`
for the bridge uplink), `get_nic_name_windows(bridge)` and
`ensure_delete_transient_ports(platform, default_file=None)`, which appends
`--delete-transient-ports` to the OVS package defaults file of a RHEL or
Ubuntu host if it is not there and returns whether it did.

### `ovnkube_util.gateway`

`gateway_init(...)` creates a node's gateway router `GR_<node>`, its port on
the `join` switch, the external switch `ext_<node>` and its ports, the
static routes, SNAT rules and, when `nodeport_enable` is true, the TCP and
UDP north-south load balancers. `gateway_cleanup(ovs, node_name,
nodeport_enable)` removes them again. `get_default_gateway_router_ip(ovs)`
returns the name and SNAT IP of the gateway router with the lowest IP,
skipping entries whose IP cannot be parsed. Also `get_k8s_cluster_router`,
`get_node_chassis_id`, `ensure_gateway_port_address` and
`get_gateway_load_balancers`. Failures raise `GatewayError`.

### `ovnkube_util.policy`

`GressPolicy(policy_type, idx)` for a `PolicyType.INGRESS` or `EGRESS`
rule, with `add_port_policy`, `add_ip_block`, `l3_match_from_address_sets`,
`match_from_ip_block`, `add_address_set` and `del_address_set` (the last two
return the old and new layer-3 match, or `None` when nothing changed).
`PortPolicy.l4_match()` raises `ValueError` for protocols other than TCP and
UDP.

## Examples

```python
from ovnkube_util.bridge import get_bridge_name, get_nic_name_windows
from ovnkube_util.iptables import FakeIPTables
from ovnkube_util.kube import get_k8s_mgmt_intf_name
from ovnkube_util.netutil import next_ip
from ovnkube_util.policy import GressPolicy, PolicyType, PortPolicy

get_k8s_mgmt_intf_name("node1")                 # "k8s-node1"
get_k8s_mgmt_intf_name("averylongnodename")     # "k8s-averylongno"
get_bridge_name("eth0")                         # "breth0"
get_nic_name_windows("vEthernet (Ethernet0)")   # "Ethernet0"
next_ip("10.0.0.255")                           # IPv4Address('10.0.1.0')

rule = GressPolicy(PolicyType.INGRESS, 0)
rule.add_address_set("a1")                      # ("ip4", "ip4.src == {$a1}")
PortPolicy("TCP", 80).l4_match()                # "tcp && tcp.dst==80"

ipt = FakeIPTables()
ipt.insert("nat", "PREROUTING", 1, "-j", "OVN-KUBE-NODEPORT")
ipt.exists("nat", "PREROUTING", "-j", "OVN-KUBE-NODEPORT")   # True
ipt.match_state({"filter": {}, "nat": {"PREROUTING": ["-j OVN-KUBE-NODEPORT"]}})
```

## What the package does not do

- It has no command-line program and no long-running controller: nothing
  watches Kubernetes for pods, namespaces, services or network policies.
  `ovnkube_util.policy` only builds match strings; it does not create ACLs
  or port groups in OVN.
- It does not talk to the Kubernetes API server.
- It does not move IP addresses or routes between a NIC and its bridge;
  `ovnkube_util.bridge` only names bridges and NICs and edits the OVS
  defaults file.
- It has no driver for the real iptables; `FakeIPTables` is in-memory only.