import pytest

from ovnkube_util.iptables import FakeIPTables, IPTablesError, Protocol


@pytest.fixture
def ipt():
    return FakeIPTables(Protocol.IPV4)


def test_prepopulated_tables_are_empty(ipt):
    assert ipt.list_chains("filter") == []
    assert ipt.list_chains("nat") == []


def test_list_chains_unknown_table(ipt):
    with pytest.raises(IPTablesError):
        ipt.list_chains("raw")


def test_new_chain_is_listed(ipt):
    ipt.new_chain("nat", "OVN-KUBE-NODEPORT")
    assert ipt.list_chains("nat") == ["OVN-KUBE-NODEPORT"]


def test_new_chain_keeps_existing_rules(ipt):
    ipt.insert("filter", "FORWARD", 1, "-j", "ACCEPT")
    ipt.new_chain("filter", "FORWARD")
    assert ipt.exists("filter", "FORWARD", "-j", "ACCEPT") is True


def test_new_chain_unknown_table(ipt):
    with pytest.raises(IPTablesError):
        ipt.new_chain("mangle", "X")


def test_clear_chain_flushes(ipt):
    ipt.insert("filter", "FORWARD", 1, "-j", "ACCEPT")
    ipt.clear_chain("filter", "FORWARD")
    assert ipt.exists("filter", "FORWARD", "-j", "ACCEPT") is False


def test_clear_chain_creates_missing(ipt):
    ipt.clear_chain("nat", "NEW")
    assert "NEW" in ipt.list_chains("nat")


def test_exists_missing_chain(ipt):
    with pytest.raises(IPTablesError):
        ipt.exists("filter", "NOPE", "-j", "ACCEPT")


def test_insert_orders_rules(ipt):
    ipt.insert("filter", "FORWARD", 1, "-j", "A")
    ipt.insert("filter", "FORWARD", 1, "-j", "B")
    ipt.insert("filter", "FORWARD", 10, "-j", "C")
    with pytest.raises(IPTablesError):
        ipt.match_state({"filter": {"FORWARD": ["-j A", "-j B", "-j C"]}, "nat": {}})
    ipt.match_state({"filter": {"FORWARD": ["-j B", "-j A", "-j C"]}, "nat": {}})
    assert ipt.exists("filter", "FORWARD", "-j", "C") is True


def test_insert_invalid_position(ipt):
    with pytest.raises(IPTablesError, match="invalid rule position"):
        ipt.insert("filter", "FORWARD", 0, "-j", "A")


def test_delete_removes_only_first(ipt):
    ipt.insert("filter", "FORWARD", 1, "-j", "A")
    ipt.insert("filter", "FORWARD", 2, "-j", "A")
    ipt.delete("filter", "FORWARD", "-j", "A")
    assert ipt.exists("filter", "FORWARD", "-j", "A") is True
    ipt.delete("filter", "FORWARD", "-j", "A")
    assert ipt.exists("filter", "FORWARD", "-j", "A") is False


def test_delete_missing_chain(ipt):
    with pytest.raises(IPTablesError):
        ipt.delete("nat", "NOPE", "-j", "A")


def test_match_state_table_count(ipt):
    with pytest.raises(IPTablesError, match="tables"):
        ipt.match_state({"filter": {}})


def test_match_state_chain_count(ipt):
    ipt.new_chain("filter", "FORWARD")
    with pytest.raises(IPTablesError, match="chains"):
        ipt.match_state({"filter": {}, "nat": {}})


def test_match_state_rule_count(ipt):
    ipt.insert("nat", "PREROUTING", 1, "-j", "X")
    with pytest.raises(IPTablesError, match="rules in chain"):
        ipt.match_state({"filter": {}, "nat": {"PREROUTING": []}})


def test_match_state_unknown_chain(ipt):
    ipt.new_chain("nat", "A")
    with pytest.raises(IPTablesError):
        ipt.match_state({"filter": {}, "nat": {"B": []}})