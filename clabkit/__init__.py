"""Topology model, container runtime interface and runtime helpers for network labs."""

__version__ = "0.1.0"

__all__ = [
    "dockerauth",
    "iptables",
    "model",
    "nodedef",
    "portmaps",
    "runtime",
    "specs",
    "topology",
]