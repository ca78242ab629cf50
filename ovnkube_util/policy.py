"""Building OVN ACL match expressions for network policy rules."""

from __future__ import annotations

import bisect
import enum
from dataclasses import dataclass, field
from typing import Iterable

TCP = "TCP"
UDP = "UDP"

TO_LPORT = "to-lport"
ADD_ACL = "add"
DELETE_ACL = "delete"
NONE_MATCH = "None"
DEFAULT_DENY_PRIORITY = "1000"
DEFAULT_ALLOW_PRIORITY = "1001"
IP_BLOCK_DENY_PRIORITY = "1010"


class PolicyType(enum.Enum):
    """Direction of traffic a network policy rule applies to."""

    INGRESS = "Ingress"
    EGRESS = "Egress"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PortPolicy:
    """A protocol and destination port that a rule allows."""

    protocol: str
    port: int

    def l4_match(self) -> str:
        """Return the layer-4 match for this port, or raise ValueError."""
        if self.protocol == TCP:
            return f"tcp && tcp.dst=={self.port}"
        if self.protocol == UDP:
            return f"udp && udp.dst=={self.port}"
        raise ValueError(f"unknown port protocol {self.protocol}")


@dataclass
class GressPolicy:
    """One ingress or egress rule of a network policy."""

    policy_type: PolicyType
    idx: int
    peer_address_sets: set[str] = field(default_factory=set)
    sorted_peer_address_sets: list[str] = field(default_factory=list)
    port_policies: list[PortPolicy] = field(default_factory=list)
    ip_block_cidr: list[str] = field(default_factory=list)
    ip_block_except: list[str] = field(default_factory=list)

    @property
    def _direction(self) -> str:
        return "src" if self.policy_type is PolicyType.INGRESS else "dst"

    def add_port_policy(self, protocol: str, port: int) -> PortPolicy:
        """Allow traffic to a protocol and port."""
        policy = PortPolicy(protocol, port)
        self.port_policies.append(policy)
        return policy

    def add_ip_block(self, cidr: str, except_: Iterable[str] = ()) -> None:
        """Allow a CIDR, except for the listed blocks."""
        self.ip_block_cidr.append(cidr)
        self.ip_block_except.extend(except_)

    def l3_match_from_address_sets(self) -> str:
        """Return the layer-3 match over all peer address sets."""
        if not self.sorted_peer_address_sets:
            return "ip4"
        addresses = ", ".join(f"${name}" for name in self.sorted_peer_address_sets)
        return f"ip4.{self._direction} == {{{addresses}}}"

    def match_from_ip_block(self, lport_match: str, l4_match: str) -> str:
        """Return the ACL match argument for this rule's IP block CIDRs."""
        cidrs = "{" + ", ".join(self.ip_block_cidr) + "}"
        l3 = f"ip4.{self._direction} == {cidrs}"
        if l4_match == NONE_MATCH:
            return f'match="{l3} && {lport_match}"'
        return f'match="{l3} && {l4_match} && {lport_match}"'

    def add_address_set(self, hashed_address_set: str) -> tuple[str, str] | None:
        """Add a peer address set.

        Returns the old and new layer-3 matches, or None if it was already present.
        """
        if hashed_address_set in self.peer_address_sets:
            return None
        old = self.l3_match_from_address_sets()
        bisect.insort(self.sorted_peer_address_sets, hashed_address_set)
        self.peer_address_sets.add(hashed_address_set)
        return old, self.l3_match_from_address_sets()

    def del_address_set(self, hashed_address_set: str) -> tuple[str, str] | None:
        """Remove a peer address set.

        Returns the old and new layer-3 matches, or None if it was not present.
        """
        if hashed_address_set not in self.peer_address_sets:
            return None
        old = self.l3_match_from_address_sets()
        self.sorted_peer_address_sets.remove(hashed_address_set)
        self.peer_address_sets.discard(hashed_address_set)
        return old, self.l3_match_from_address_sets()