"""Kubernetes service helpers and small naming utilities."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Mapping

CLUSTER_IP_NONE = "None"
MGMT_INTF_PREFIX = "k8s-"
_MGMT_NAME_LIMIT = 11


class ServiceType(enum.Enum):
    """Kubernetes service types."""

    CLUSTER_IP = "ClusterIP"
    NODE_PORT = "NodePort"
    LOAD_BALANCER = "LoadBalancer"
    EXTERNAL_NAME = "ExternalName"


@dataclass
class ServicePort:
    """One port exposed by a service."""

    port: int = 0
    node_port: int = 0
    protocol: str = "TCP"
    name: str = ""


@dataclass
class Service:
    """The parts of a Kubernetes service that load balancing needs."""

    name: str
    namespace: str = "default"
    type: ServiceType = ServiceType.CLUSTER_IP
    cluster_ip: str = ""
    ports: list[ServicePort] = field(default_factory=list)
    external_ips: list[str] = field(default_factory=list)


def is_cluster_ip_set(service: Service) -> bool:
    """True unless the service is headless or has no cluster IP."""
    return service.cluster_ip not in (CLUSTER_IP_NONE, "")


def service_type_has_cluster_ip(service: Service) -> bool:
    """True if services of this type get a cluster IP."""
    return service.type in (
        ServiceType.CLUSTER_IP,
        ServiceType.NODE_PORT,
        ServiceType.LOAD_BALANCER,
    )


def service_type_has_node_port(service: Service) -> bool:
    """True if services of this type get a node port."""
    return service.type in (ServiceType.NODE_PORT, ServiceType.LOAD_BALANCER)


def string_arg(values: Mapping[str, str | None], name: str) -> str:
    """Return the named argument, raising ValueError if it is missing or empty."""
    value = values.get(name)
    if not value:
        raise ValueError(f"argument --{name} should be non-null")
    return value


def get_k8s_mgmt_intf_name(node_name: str) -> str:
    """Name of the node's management OVS internal port, short enough for an interface."""
    return MGMT_INTF_PREFIX + node_name[:_MGMT_NAME_LIMIT]