"""An in-memory iptables stand-in for checking the rules code creates."""

from __future__ import annotations

import enum
from typing import Mapping, Sequence


class IPTablesError(Exception):
    """An iptables operation failed or the state did not match."""


class Protocol(enum.Enum):
    """Address family of an iptables instance."""

    IPV4 = 0
    IPV6 = 1


class FakeIPTables:
    """Tables of chains of rules, with the operations of a live iptables helper."""

    def __init__(self, proto: Protocol = Protocol.IPV4) -> None:
        self.proto = proto
        self.tables: dict[str, dict[str, list[str]]] = {"filter": {}, "nat": {}}

    def __repr__(self) -> str:
        return f"FakeIPTables(proto={self.proto!r}, tables={self.tables!r})"

    def _table(self, table_name: str) -> dict[str, list[str]]:
        try:
            return self.tables[table_name]
        except KeyError:
            raise IPTablesError(f"table {table_name} does not exist") from None

    @staticmethod
    def _chain(table: Mapping[str, list[str]], chain_name: str) -> list[str]:
        try:
            return table[chain_name]
        except KeyError:
            raise IPTablesError(f"chain {chain_name} does not exist") from None

    def list_chains(self, table_name: str) -> list[str]:
        """Return the names of all chains in a table."""
        return list(self._table(table_name))

    def new_chain(self, table_name: str, chain_name: str) -> None:
        """Create a chain; an existing chain is left as it is."""
        table = self._table(table_name)
        table.setdefault(chain_name, [])

    def clear_chain(self, table_name: str, chain_name: str) -> None:
        """Remove every rule in a chain, creating the chain if needed."""
        table = self._table(table_name)
        table[chain_name] = []

    def exists(self, table_name: str, chain_name: str, *args: str) -> bool:
        """True if the rule is in the chain."""
        chain = self._chain(self._table(table_name), chain_name)
        return " ".join(args) in chain

    def insert(self, table_name: str, chain_name: str, pos: int, *args: str) -> None:
        """Insert a rule at a 1-based position, appending past the end."""
        table = self._table(table_name)
        if pos < 1:
            raise IPTablesError(f"invalid rule position {pos}")
        chain = table.setdefault(chain_name, [])
        chain.insert(pos - 1, " ".join(args))

    def delete(self, table_name: str, chain_name: str, *args: str) -> None:
        """Remove the first occurrence of a rule from a chain."""
        chain = self._chain(self._table(table_name), chain_name)
        rule = " ".join(args)
        if rule in chain:
            chain.remove(rule)

    def match_state(self, tables: Mapping[str, Mapping[str, Sequence[str]]]) -> None:
        """Raise IPTablesError unless the tables hold exactly the given rules."""
        if len(tables) != len(self.tables):
            raise IPTablesError(
                f"expected {len(tables)} tables, got {len(self.tables)}"
            )
        for table_name, table in tables.items():
            found_table = self._table(table_name)
            if len(table) != len(found_table):
                raise IPTablesError(
                    f"expected {list(table)} chains from table {table_name}, "
                    f"got {list(found_table)}"
                )
            for chain_name, chain in table.items():
                found_chain = self._chain(found_table, chain_name)
                if len(chain) != len(found_chain):
                    raise IPTablesError(
                        f"expected {len(chain)} {list(chain)} rules in chain "
                        f"{table_name}/{chain_name}, got {len(found_chain)} {found_chain}"
                    )
                for pos, (rule, found) in enumerate(zip(chain, found_chain)):
                    if rule != found:
                        raise IPTablesError(
                            f"expected rule {rule!r} at pos {pos} in chain "
                            f"{table_name}/{chain_name}, got {found!r}"
                        )