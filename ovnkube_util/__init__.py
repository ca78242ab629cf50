"""Helpers for OVS/OVN commands, gateway routers, bridges and network-policy matches."""

__version__ = "0.1.0"