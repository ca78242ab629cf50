"""Creating and removing a node's OVN gateway router and its surroundings."""

from __future__ import annotations

import ipaddress
import logging
from typing import Callable, Sequence

from .netutil import IPAddress, get_port_addresses
from .ovs import CommandError, OvsCommands

logger = logging.getLogger(__name__)

PHYSICAL_NETWORK_NAME = "physnet"
DISTRIBUTED_ROUTER_NEXTHOP = "100.64.0.1"
_FORCE_SNAT_TAG = "lb_force_snat_ip="

IPInterface = ipaddress.IPv4Interface | ipaddress.IPv6Interface
IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


class GatewayError(Exception):
    """Setting up or tearing down a gateway failed."""


def _checked(runner: Callable[..., tuple[str, str]], failure: str, *args: str) -> str:
    """Run a ctl command and return its stdout, turning failure into GatewayError."""
    try:
        stdout, _ = runner(*args)
    except CommandError as exc:
        raise GatewayError(
            f"{failure}, stdout: {exc.stdout!r}, stderr: {exc.stderr!r}, error: {exc}"
        ) from exc
    return stdout


def _parse_ip(text: str) -> IPAddress | None:
    if "%" in text:
        return None
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def _parse_cidr(text: str) -> IPInterface:
    if "/" not in text:
        raise ValueError(f"invalid CIDR address: {text}")
    return ipaddress.ip_interface(text)


def _ip_sort_key(ip: IPAddress) -> bytes:
    # Compare every address in its 16-byte form, IPv4 mapped into IPv6.
    if ip.version == 4:
        return b"\x00" * 10 + b"\xff\xff" + ip.packed
    return ip.packed


def get_k8s_cluster_router(ovs: OvsCommands) -> str:
    """Return the UUID of the distributed cluster router."""
    try:
        router, _ = ovs.run_ovn_nbctl(
            "--data=bare", "--no-heading", "--columns=_uuid", "find",
            "logical_router", "external_ids:k8s-cluster-router=yes",
        )
    except CommandError as exc:
        logger.error(
            "Failed to get k8s cluster router, stderr: %r, error: %s", exc.stderr, exc
        )
        raise GatewayError(f"Failed to get k8s cluster router: {exc}") from exc
    if not router:
        raise GatewayError("Failed to get k8s cluster router")
    return router


def get_node_chassis_id(ovs: OvsCommands, node_name: str) -> str:
    """Return the chassis name registered for a node in the southbound database."""
    try:
        chassis_id, _ = ovs.run_ovn_sbctl(
            "--data=bare", "--no-heading", "--columns=name", "find",
            "Chassis", f"hostname={node_name}",
        )
    except CommandError as exc:
        logger.error(
            "Failed to find Chassis ID for node %s, stderr: %r, error: %s",
            node_name, exc.stderr, exc,
        )
        raise GatewayError(f"Failed to find Chassis ID for node {node_name}: {exc}") from exc
    if not chassis_id:
        raise GatewayError(f"No chassis ID configured for node {node_name}")
    return chassis_id


def get_default_gateway_router_ip(ovs: OvsCommands) -> tuple[str, IPAddress]:
    """Return the name and SNAT IP of the gateway router with the lowest IP."""
    try:
        stdout, _ = ovs.run_ovn_nbctl(
            "--data=bare", "--format=table", "--no-heading",
            "--columns=name,options", "find", "logical_router",
            "options:lb_force_snat_ip!=-",
        )
    except CommandError as exc:
        raise GatewayError(
            f"failed to get logical routers, stdout: {exc.stdout!r}, "
            f"stderr: {exc.stderr!r}, err: {exc}"
        ) from exc

    lines = stdout.strip().replace("\r\n", "\n").split("\n")
    routers: list[tuple[str, IPAddress]] = []
    for line in lines:
        parts = line.split()
        for part in parts:
            if not part.startswith(_FORCE_SNAT_TAG):
                continue
            ip_text = part[len(_FORCE_SNAT_TAG):]
            ip = _parse_ip(ip_text)
            if ip is None:
                logger.warning(
                    "failed to parse gateway router %r IP %r", parts[0], ip_text
                )
                continue
            routers.append((parts[0], ip))

    if not routers:
        raise GatewayError("failed to parse gateway routers")

    return min(routers, key=lambda router: _ip_sort_key(router[1]))


def ensure_gateway_port_address(ovs: OvsCommands, port_name: str) -> tuple[str, IPInterface]:
    """Make sure a gateway port on the join switch has addresses; return MAC and IP/prefix."""
    try:
        mac, ip = get_port_addresses(ovs, port_name)
    except (CommandError, ValueError):
        mac, ip = None, None

    if mac is None or ip is None:
        _checked(
            ovs.run_ovn_nbctl,
            f"failed to add logical switch port {port_name}",
            "--wait=sb", "--may-exist", "lsp-add", "join", port_name,
            "--", "--if-exists", "clear", "logical_switch_port", port_name,
            "dynamic_addresses",
            "--", "lsp-set-addresses", port_name, "dynamic",
        )
        try:
            mac, ip = get_port_addresses(ovs, port_name)
        except (CommandError, ValueError) as exc:
            raise GatewayError(
                f"error while waiting for addresses for gateway switch port "
                f"{port_name!r}: {exc}"
            ) from exc
        if mac is None or ip is None:
            raise GatewayError(f"empty addresses for gateway switch port {port_name!r}")

    try:
        cidr_text, _ = ovs.run_ovn_nbctl(
            "--if-exists", "get", "logical_switch", "join", "other-config:subnet"
        )
    except CommandError as exc:
        raise GatewayError(
            f"Failed to get 'join' switch external-ids: stderr: {exc.stderr!r}, {exc}"
        ) from exc
    try:
        network: IPNetwork = _parse_cidr(cidr_text).network
    except ValueError as exc:
        raise GatewayError(
            f"Failed to parse 'join' switch subnet {cidr_text!r}: {exc}"
        ) from exc
    if ip.version != network.version or ip not in network:
        raise GatewayError(
            f"gateway router port {port_name!r} IP {str(ip)!r} not contained in "
            f"'join' switch subnet {cidr_text!r}"
        )
    return mac, ipaddress.ip_interface(f"{ip}/{network.prefixlen}")


def get_gateway_load_balancers(ovs: OvsCommands, gateway_router: str) -> tuple[str, str]:
    """Return the TCP and UDP load balancer UUIDs of a gateway router ("" if absent)."""
    lbs = []
    for proto in ("TCP", "UDP"):
        try:
            lb, _ = ovs.run_ovn_nbctl(
                "--data=bare", "--no-heading", "--columns=_uuid", "find",
                "load_balancer", f"external_ids:{proto}_lb_gateway_router={gateway_router}",
            )
        except CommandError as exc:
            raise GatewayError(
                f"Failed to get gateway router {gateway_router!r} {proto} "
                f"loadbalancer, stderr: {exc.stderr!r}, error: {exc}"
            ) from exc
        lbs.append(lb)
    return lbs[0], lbs[1]


def gateway_init(
    ovs: OvsCommands,
    cluster_ip_subnet: Sequence[str],
    node_name: str,
    iface_id: str,
    nic_ip: str,
    nic_mac_address: str,
    default_gw: str,
    rampout_ip_subnet: str,
    localnet: bool,
    snat: bool,
    lsp_args: Sequence[str],
    nodeport_enable: bool,
) -> None:
    """Create the gateway router for a node and wire it to the cluster and outside."""
    try:
        physical_iface = _parse_cidr(nic_ip)
    except ValueError as exc:
        raise GatewayError(f"error parsing {nic_ip} ({exc})") from exc
    physical_ip = str(physical_iface.ip)
    physical_ip_mask = f"{physical_ip}/{physical_iface.network.prefixlen}"

    if default_gw:
        gw = _parse_ip(default_gw)
        if gw is None:
            raise GatewayError(f"error parsing default gateway {default_gw}")
        default_gw = str(gw)

    cluster_router = get_k8s_cluster_router(ovs)
    system_id = get_node_chassis_id(ovs, node_name)
    nbctl = ovs.run_ovn_nbctl

    gateway_router = f"GR_{node_name}"
    _checked(
        nbctl, f"Failed to create logical router {gateway_router}",
        "--", "--may-exist", "lr-add", gateway_router,
        "--", "set", "logical_router", gateway_router,
        f"options:chassis={system_id}", f"external_ids:physical_ip={physical_ip}",
    )

    gw_switch_port = f"jtor-{gateway_router}"
    gw_router_port = f"rtoj-{gateway_router}"
    router_mac, router_cidr = ensure_gateway_port_address(ovs, gw_switch_port)
    router_ip = str(router_cidr.ip)

    # The IP moves from the switch port to the router port in one transaction,
    # because IPAM ignores switch ports attached to routers.
    _checked(
        nbctl, "failed to add logical port to router",
        "--", "--may-exist", "lrp-add", gateway_router, gw_router_port,
        router_mac, str(router_cidr),
        "--", "set", "logical_switch_port", gw_switch_port, "type=router",
        f"options:router-port={gw_router_port}", "addresses=router",
    )

    # With several gateway routers, traffic into the logical space is SNATed
    # so that replies return through the same gateway.
    _checked(
        nbctl, "Failed to set logical router",
        "set", "logical_router", gateway_router, f"options:lb_force_snat_ip={router_ip}",
    )

    for entry in cluster_ip_subnet:
        _checked(
            nbctl,
            "Failed to add a static route in GR with distributed router as the nexthop",
            "--may-exist", "lr-route-add", gateway_router, entry, DISTRIBUTED_ROUTER_NEXTHOP,
        )

    _, default_gateway_ip = get_default_gateway_router_ip(ovs)
    _checked(
        nbctl,
        "Failed to add a default route in distributed router with first GR as the nexthop",
        "--may-exist", "lr-route-add", cluster_router, "0.0.0.0/0", str(default_gateway_ip),
    )

    if nodeport_enable:
        lb_tcp, lb_udp = get_gateway_load_balancers(ovs, gateway_router)
        if not lb_tcp:
            lb_tcp = _checked(
                nbctl, "Failed to create load balancer",
                "--", "create", "load_balancer",
                f"external_ids:TCP_lb_gateway_router={gateway_router}", "protocol=tcp",
            )
        if not lb_udp:
            lb_udp = _checked(
                nbctl, "Failed to create load balancer",
                "--", "create", "load_balancer",
                f"external_ids:UDP_lb_gateway_router={gateway_router}", "protocol=udp",
            )
        _checked(
            nbctl, "Failed to set north-south load-balancers to the gateway router",
            "set", "logical_router", gateway_router, f"load_balancer={lb_tcp}",
        )
        _checked(
            nbctl, "Failed to add north-south load-balancers to the gateway router",
            "add", "logical_router", gateway_router, "load_balancer", lb_udp,
        )

    external_switch = f"ext_{node_name}"
    _checked(nbctl, "Failed to create logical switch", "--may-exist", "ls-add", external_switch)

    cmd_args = [
        "--", "--may-exist", "lsp-add", external_switch, iface_id,
        "--", "lsp-set-addresses", iface_id, "unknown",
    ]
    if localnet:
        cmd_args += [
            "--", "lsp-set-type", iface_id, "localnet",
            "--", "lsp-set-options", iface_id, f"network_name={PHYSICAL_NETWORK_NAME}",
        ]
    cmd_args += list(lsp_args)
    _checked(nbctl, "Failed to add logical port to switch", *cmd_args)

    external_router_port = f"rtoe-{gateway_router}"
    _checked(
        nbctl, "Failed to add logical port to router",
        "--", "--may-exist", "lrp-add", gateway_router, external_router_port,
        nic_mac_address, physical_ip_mask,
        "--", "set", "logical_router_port", external_router_port,
        "external-ids:gateway-physical-ip=yes",
    )

    external_switch_port = f"etor-{gateway_router}"
    _checked(
        nbctl, "Failed to add logical port to router",
        "--", "--may-exist", "lsp-add", external_switch, external_switch_port,
        "--", "set", "logical_switch_port", external_switch_port, "type=router",
        f"options:router-port={external_router_port}",
        f'addresses="{nic_mac_address}"',
    )

    if default_gw:
        _checked(
            nbctl,
            "Failed to add a static route in GR with physical gateway as the default next hop",
            "--may-exist", "lr-route-add", gateway_router, "0.0.0.0/0", default_gw,
            external_router_port,
        )

    if snat:
        for entry in cluster_ip_subnet:
            _checked(
                nbctl, "Failed to create default SNAT rules",
                "--may-exist", "lr-nat-add", gateway_router, "snat", physical_ip, entry,
            )

    # A host route to the gateway router's IP keeps return traffic on this gateway.
    _checked(
        nbctl,
        f"Failed to add /32 route to Gateway router's IP of {router_ip!r} "
        "on the distributed router",
        "--may-exist", "lr-route-add", cluster_router, router_ip, router_ip,
    )

    if rampout_ip_subnet:
        for subnet in rampout_ip_subnet.split(","):
            try:
                _parse_cidr(subnet)
            except ValueError:
                continue
            _checked(
                nbctl,
                "Failed to add source IP address based routes in distributed router",
                "--may-exist", "--policy=src-ip", "lr-route-add", cluster_router,
                subnet, router_ip,
            )


def gateway_cleanup(ovs: OvsCommands, node_name: str, nodeport_enable: bool) -> None:
    """Remove every northbound object created for a node's gateway."""
    try:
        cluster_router = get_k8s_cluster_router(ovs)
    except GatewayError as exc:
        raise GatewayError("failed to get cluster router") from exc

    nbctl = ovs.run_ovn_nbctl
    gateway_router = f"GR_{node_name}"

    try:
        router_ip_network, _ = nbctl(
            "--if-exist", "get", "logical_router_port", f"rtoj-{gateway_router}", "networks"
        )
    except CommandError as exc:
        raise GatewayError(
            f"Failed to get logical router port, stderr: {exc.stderr!r}, error: {exc}"
        ) from exc

    router_ip = ""
    router_ip_network = router_ip_network.strip('[]"')
    if router_ip_network:
        router_ip = router_ip_network.split("/")[0]

    if router_ip:
        try:
            uuids, _ = nbctl(
                "--data=bare", "--no-heading", "--columns=_uuid", "find",
                "logical_router_static_route", f"nexthop={router_ip}",
            )
        except CommandError as exc:
            raise GatewayError(
                f"Failed to fetch all routes with gateway router {gateway_router} "
                f"as nexthop, stderr: {exc.stderr!r}, error: {exc}"
            ) from exc
        for route in uuids.split():
            try:
                nbctl(
                    "--if-exists", "remove", "logical_router", cluster_router,
                    "static_routes", route,
                )
            except CommandError as exc:
                logger.error(
                    "Failed to delete static route %s, stderr: %r, err = %s",
                    route, exc.stderr, exc,
                )

    _checked(
        nbctl, f"Failed to delete logical switch port jtor-{gateway_router}",
        "--if-exist", "lsp-del", f"jtor-{gateway_router}",
    )
    _checked(
        nbctl, f"Failed to delete gateway router {gateway_router}",
        "--if-exist", "lr-del", gateway_router,
    )
    external_switch = f"ext_{node_name}"
    _checked(
        nbctl, f"Failed to delete external switch {external_switch}",
        "--if-exist", "ls-del", external_switch,
    )

    if nodeport_enable:
        lb_tcp, lb_udp = get_gateway_load_balancers(ovs, gateway_router)
        _checked(
            nbctl, f"Failed to delete Gateway router TCP load balancer {lb_tcp}",
            "lb-del", lb_tcp,
        )
        _checked(
            nbctl, f"Failed to delete Gateway router UDP load balancer {lb_udp}",
            "lb-del", lb_udp,
        )