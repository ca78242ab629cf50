import pytest

from ovnkube_util.policy import (
    NONE_MATCH,
    TCP,
    UDP,
    GressPolicy,
    PolicyType,
    PortPolicy,
)


def test_l4_match_tcp():
    assert PortPolicy(TCP, 80).l4_match() == "tcp && tcp.dst==80"


def test_l4_match_udp():
    assert PortPolicy(UDP, 53).l4_match() == "udp && udp.dst==53"


def test_l4_match_unknown_protocol():
    with pytest.raises(ValueError, match="unknown port protocol SCTP"):
        PortPolicy("SCTP", 80).l4_match()


def test_empty_l3_match_is_ip4():
    gress = GressPolicy(PolicyType.INGRESS, 0)
    assert gress.l3_match_from_address_sets() == "ip4"


def test_single_address_set_ingress():
    gress = GressPolicy(PolicyType.INGRESS, 0)
    gress.add_address_set("a")
    assert gress.l3_match_from_address_sets() == "ip4.src == {$a}"


def test_egress_uses_destination():
    gress = GressPolicy(PolicyType.EGRESS, 1)
    gress.add_address_set("abc")
    match = gress.l3_match_from_address_sets()
    assert match.startswith("ip4.dst == {")
    assert "$abc" in match


def test_address_sets_are_sorted():
    gress = GressPolicy(PolicyType.INGRESS, 0)
    for name in ["zeta", "alpha", "mid"]:
        gress.add_address_set(name)
    assert gress.sorted_peer_address_sets == sorted(["zeta", "alpha", "mid"])
    match = gress.l3_match_from_address_sets()
    assert match.index("$alpha") < match.index("$mid") < match.index("$zeta")


def test_add_address_set_reports_old_and_new():
    gress = GressPolicy(PolicyType.INGRESS, 0)
    before = gress.l3_match_from_address_sets()
    result = gress.add_address_set("x")
    assert result == (before, gress.l3_match_from_address_sets())
    assert result[0] != result[1]


def test_add_duplicate_returns_none():
    gress = GressPolicy(PolicyType.INGRESS, 0)
    gress.add_address_set("x")
    assert gress.add_address_set("x") is None
    assert gress.sorted_peer_address_sets == ["x"]


def test_del_address_set_round_trip():
    gress = GressPolicy(PolicyType.EGRESS, 0)
    empty = gress.l3_match_from_address_sets()
    gress.add_address_set("one")
    with_one = gress.l3_match_from_address_sets()
    assert gress.del_address_set("one") == (with_one, empty)
    assert gress.peer_address_sets == set()
    assert gress.sorted_peer_address_sets == []


def test_del_missing_returns_none():
    gress = GressPolicy(PolicyType.INGRESS, 0)
    gress.add_address_set("keep")
    assert gress.del_address_set("other") is None
    assert gress.sorted_peer_address_sets == ["keep"]


def test_del_keeps_remaining_sorted():
    gress = GressPolicy(PolicyType.INGRESS, 0)
    for name in ["c", "a", "b"]:
        gress.add_address_set(name)
    gress.del_address_set("b")
    assert gress.sorted_peer_address_sets == ["a", "c"]


def test_add_port_policy():
    gress = GressPolicy(PolicyType.INGRESS, 0)
    gress.add_port_policy(TCP, 443)
    gress.add_port_policy(UDP, 53)
    assert gress.port_policies == [PortPolicy(TCP, 443), PortPolicy(UDP, 53)]


def test_add_ip_block():
    gress = GressPolicy(PolicyType.INGRESS, 0)
    gress.add_ip_block("10.0.0.0/8", ["10.1.0.0/16"])
    gress.add_ip_block("192.168.0.0/16")
    assert gress.ip_block_cidr == ["10.0.0.0/8", "192.168.0.0/16"]
    assert gress.ip_block_except == ["10.1.0.0/16"]


def test_match_from_ip_block_without_l4():
    gress = GressPolicy(PolicyType.INGRESS, 0)
    gress.add_ip_block("10.0.0.0/8")
    gress.add_ip_block("192.168.0.0/16")
    lport = "outport == @pg"
    match = gress.match_from_ip_block(lport, NONE_MATCH)
    assert match.startswith('match="ip4.src == {10.0.0.0/8, 192.168.0.0/16} && ')
    assert match.endswith(lport + '"')
    assert NONE_MATCH not in match


def test_match_from_ip_block_with_l4_egress():
    gress = GressPolicy(PolicyType.EGRESS, 0)
    gress.add_ip_block("10.0.0.0/8")
    lport = "inport == @pg"
    l4 = PortPolicy(TCP, 80).l4_match()
    match = gress.match_from_ip_block(lport, l4)
    assert match.startswith('match="ip4.dst == {10.0.0.0/8} && ')
    assert match.index(l4) < match.index(lport)
    assert match.endswith(lport + '"')


@pytest.mark.parametrize(
    "policy_type, expected",
    [(PolicyType.INGRESS, "Ingress"), (PolicyType.EGRESS, "Egress")],
)
def test_gress_policy_type_str(policy_type, expected):
    gress = GressPolicy(policy_type, 3)
    assert str(gress.policy_type) == expected
    assert gress.idx == 3