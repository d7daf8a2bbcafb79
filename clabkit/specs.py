"""Container, network and filter specifications for a podman service."""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from clabkit.model import GenericFilter, GenericMgmtIPs, MgmtNet, NodeConfig
from clabkit.portmaps import PortMapping, convert_expose, convert_port_map

log = logging.getLogger(__name__)

# Label carrying the management network name of a container.
MGMT_NET_LABEL = "clab-net-mgmt"

CPU_PERIOD = 100000

_BYTE_SIZES = {
    "": 1,
    "b": 1,
    "kib": 1024,
    "ki": 1024,
    "kb": 1000,
    "k": 1000,
    "mib": 1024**2,
    "mi": 1024**2,
    "mb": 1000**2,
    "m": 1000**2,
    "gib": 1024**3,
    "gi": 1024**3,
    "gb": 1000**3,
    "g": 1000**3,
    "tib": 1024**4,
    "ti": 1024**4,
    "tb": 1000**4,
    "t": 1000**4,
    "pib": 1024**5,
    "pi": 1024**5,
    "pb": 1000**5,
    "p": 1000**5,
    "eib": 1024**6,
    "ei": 1024**6,
    "eb": 1000**6,
    "e": 1000**6,
}
_UINT64_MAX = 2**64 - 1


class InvalidBindError(ValueError):
    """A bind mount string has no destination part."""


@dataclass
class Mount:
    """A bind mount in container spec form."""

    destination: str
    source: str
    type: str = "bind"
    options: list[str] | None = None


@dataclass
class ResourceLimits:
    """Memory and CPU limits of a container; None means no limit."""

    memory_limit: int | None = None
    cpu_quota: int | None = None
    cpu_period: int | None = None
    cpus: str = ""


@dataclass
class NetworkSpec:
    """Network namespace and attachments of a container."""

    ns_mode: str
    ns_value: str = ""
    port_mappings: list[PortMapping] = field(default_factory=list)
    expose: dict[int, str] = field(default_factory=dict)
    # network name -> {"static_ips": [...], "static_mac": "..."}
    networks: dict[str, dict[str, Any]] = field(default_factory=dict)
    host_add: list[str] = field(default_factory=list)
    use_image_hosts: bool = False
    publish_exposed_ports: bool = False


def convert_mounts(binds: Iterable[str] | None) -> list[Mount] | None:
    """Turn "src:dest[:opts]" bind strings into mounts; None when there are none."""
    binds = list(binds or ())
    if not binds:
        return None
    mounts = []
    for bind in binds:
        parts = bind.split(":", 2)
        if len(parts) == 1:
            raise InvalidBindError(f"invalid bind mount provided: {bind}")
        mount = Mount(destination=parts[1], source=parts[0])
        if len(parts) == 3:
            mount.options = parts[2].split(",")
        mounts.append(mount)
    log.debug("converted mounts %s into %s", binds, mounts)
    return mounts


def podman_filters(filters: Iterable[GenericFilter]) -> dict[str, list[str]]:
    """Group generic filters into podman list filters by filter type."""
    result: dict[str, list[str]] = {}
    for flt in filters:
        operator, value = flt.operator, flt.match
        if operator == "exists":
            operator, value = "=", ""
        if flt.filter_type == "name":
            text = value
        elif operator != "=":
            log.warning("received a filter with unsupported match type: %s", flt)
            continue
        else:
            text = flt.field + operator + value
        result.setdefault(flt.filter_type, []).append(text)
    return result


def _parse_ip(text: str) -> str | None:
    if not text or "%" in text:
        return None
    try:
        address = ipaddress.ip_address(text)
    except ValueError:
        return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return str(address.ipv4_mapped)
    return str(address)


def _parse_cidr(text: str) -> str:
    if "%" in text or "/" not in text:
        raise ValueError(f"invalid CIDR address: {text}")
    try:
        interface = ipaddress.ip_interface(text)
    except ValueError:
        raise ValueError(f"invalid CIDR address: {text}") from None
    return str(interface)


def podman_network_options(mgmt: MgmtNet) -> dict[str, Any]:
    """Describe the management network to create.

    The bridge name defaults to the network name and is written back to mgmt.
    """
    if mgmt.bridge == "" and mgmt.network != "":
        mgmt.bridge = mgmt.network
    subnets = []
    ipv6 = False
    if mgmt.ipv4_subnet:
        gateway = None
        if mgmt.ipv4_gw not in ("", "0.0.0.0"):
            gateway = _parse_ip(mgmt.ipv4_gw)
        subnets.append({"subnet": _parse_cidr(mgmt.ipv4_subnet), "gateway": gateway})
    if mgmt.ipv6_subnet:
        subnet = _parse_cidr(mgmt.ipv6_subnet)
        ipv6 = True
        gateway = None
        if mgmt.ipv6_gw not in ("", "::"):
            gateway = _parse_ip(mgmt.ipv6_gw)
        subnets.append({"subnet": subnet, "gateway": gateway})
    options = {"mtu": mgmt.mtu} if mgmt.mtu else {}
    return {
        "name": mgmt.network,
        "network_interface": mgmt.bridge,
        "driver": "bridge",
        "internal": False,
        "dns_enabled": False,
        "ipv6_enabled": ipv6,
        "labels": {"containerlab": ""},
        "options": options,
        "subnets": subnets,
        "ipam_options": {},
    }


def _parse_bytes(text: str) -> int:
    digits = 0
    for char in text:
        if char not in "0123456789.,":
            break
        digits += 1
    number = float(text[:digits].replace(",", ""))
    unit = text[digits:].strip().lower()
    if unit not in _BYTE_SIZES:
        raise ValueError(f"unhandled size name: {unit}")
    value = number * _BYTE_SIZES[unit]
    if value >= _UINT64_MAX:
        raise ValueError(f"too large: {text}")
    return int(value)


def resource_limits(node: NodeConfig) -> ResourceLimits:
    """Memory and CPU limits of a node; an unparsable memory value gives a limit of 0."""
    limits = ResourceLimits(cpus=node.cpu_set)
    if node.memory:
        try:
            limits.memory_limit = _parse_bytes(node.memory)
        except ValueError:
            log.warning("Unable to parse memory limit %r for node %r", node.memory, node.long_name)
            limits.memory_limit = 0
    if node.cpu != 0:
        limits.cpu_quota = int(node.cpu * CPU_PERIOD)
        limits.cpu_period = CPU_PERIOD
    return limits


def _parse_mac(text: str) -> str:
    error = ValueError(f"invalid MAC address: {text}")
    hexdigits = "0123456789abcdefABCDEF"
    if len(text) < 14:
        raise error
    if text[2] in ":-":
        sep = text[2]
        if (len(text) + 1) % 3:
            raise error
        groups = text.split(sep)
        width = 2
    elif text[4] == ".":
        if (len(text) + 1) % 5:
            raise error
        groups = text.split(".")
        width = 4
    else:
        raise error
    if any(len(g) != width or any(c not in hexdigits for c in g) for g in groups):
        raise error
    octets = [g[i : i + 2].lower() for g in groups for i in range(0, width, 2)]
    if len(octets) not in (6, 8, 20):
        raise error
    return ":".join(octets)


def network_spec(node: NodeConfig, mgmt: MgmtNet) -> NetworkSpec:
    """Network namespace settings of a node for its network mode."""
    parts = node.network_mode.split(":", 1)
    mode = parts[0]
    if mode == "container":
        if len(parts) != 2 or parts[1] == "":
            raise ValueError(
                f"container network mode was specified for container {node.short_name!r}, "
                f"but no container name was found: {parts}"
            )
        if node.short_name:
            prefix = node.long_name.split(node.short_name, 1)[0]
        else:
            prefix = node.long_name[:1]
        return NetworkSpec(ns_mode="container", ns_value=prefix + parts[1])
    if mode == "host":
        return NetworkSpec(ns_mode="host", host_add=list(node.extra_hosts))
    if mode in ("bridge", ""):
        mac = _parse_mac(node.mac_address) if node.mac_address else ""
        static_ips = [
            ip
            for ip in (_parse_ip(node.mgmt_ipv4_address), _parse_ip(node.mgmt_ipv6_address))
            if ip is not None
        ]
        return NetworkSpec(
            ns_mode="bridge",
            port_mappings=convert_port_map(node.port_bindings),
            expose=convert_expose(node.port_set),
            networks={mgmt.network: {"static_ips": static_ips, "static_mac": mac}},
            host_add=list(node.extra_hosts),
        )
    raise ValueError(f"network Mode {parts} is not currently supported with Podman")


def _get(mapping: Any, key: str) -> Any:
    if isinstance(mapping, Mapping):
        return mapping.get(key)
    return None


def mgmt_ips_from_inspect(inspect: Mapping[str, Any] | None) -> GenericMgmtIPs:
    """Management addresses from a container inspect document; empty when not found."""
    labels = _get(_get(inspect, "Config"), "Labels")
    net_name = _get(labels, MGMT_NET_LABEL)
    if not net_name:
        log.debug("Couldn't extract mgmt net data from inspect output")
        return GenericMgmtIPs()
    data = _get(_get(_get(inspect, "NetworkSettings"), "Networks"), net_name)
    if not isinstance(data, Mapping):
        log.debug("Couldn't extract mgmt IPs for net %r", net_name)
        return GenericMgmtIPs()
    return GenericMgmtIPs(
        ipv4_addr=data.get("IPAddress") or "",
        ipv4_plen=int(data.get("IPPrefixLen") or 0),
        ipv4_gw=data.get("Gateway") or "",
        ipv6_addr=data.get("GlobalIPv6Address") or "",
        ipv6_plen=int(data.get("GlobalIPv6PrefixLen") or 0),
    )