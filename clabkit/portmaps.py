"""Port bindings and exposed ports in the form a podman container spec expects."""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping

log = logging.getLogger(__name__)

_INT_RE = re.compile(r"[+-]?[0-9]+")


class PortError(ValueError):
    """A port, port range or port mapping is malformed."""


@dataclass
class PortMapping:
    """A published port: host_port 0 lets the runtime pick a free port."""

    container_port: int = 0
    host_port: int = 0
    range: int = 0
    protocol: str = ""
    host_ip: str = ""


def parse_and_validate_port(port: str) -> int:
    """Parse a single port number between 1 and 65535."""
    if not _INT_RE.fullmatch(port):
        raise PortError(f"invalid port number: {port!r}")
    num = int(port)
    if num < 1 or num > 65535:
        raise PortError(f"port numbers must be between 1 and 65535 (inclusive), got {num}")
    return num


def parse_and_validate_range(port_range: str) -> tuple[int, int]:
    """Parse "port" or "start-end" into the start port and the number of ports."""
    parts = port_range.split("-")
    if len(parts) > 2:
        raise PortError("invalid port format - port ranges are formatted as startPort-stopPort")
    if parts[0] == "":
        raise PortError("port numbers cannot be negative")
    start = parse_and_validate_port(parts[0])
    length = 1
    if len(parts) == 2:
        if parts[1] == "":
            raise PortError("must provide ending number for port range")
        end = parse_and_validate_port(parts[1])
        if end <= start:
            raise PortError(
                "the end port of a range must be higher than the start port - "
                f"{end} is not higher than {start}"
            )
        # a range counts every port in it, so 8080-8081 is 2 ports
        length = end - start + 1
    return start, length


def _normalize_ip(text: str) -> str:
    if "%" in text:
        raise PortError(f"cannot parse {text!r} as an IP address")
    try:
        address = ipaddress.ip_address(text)
    except ValueError:
        raise PortError(f"cannot parse {text!r} as an IP address") from None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return str(address.ipv4_mapped)
    return str(address)


def parse_split_port(
    host_ip: str | None,
    host_port: str | None,
    container_port: str,
    protocol: str | None,
) -> PortMapping:
    """Build a port mapping from its parts; None marks a part that was not given."""
    if container_port == "":
        raise PortError("must provide a non-empty container port to publish")
    try:
        ctr_start, ctr_len = parse_and_validate_range(container_port)
    except PortError as exc:
        raise PortError(f"error parsing container port: {exc}") from exc
    mapping = PortMapping(container_port=ctr_start, range=ctr_len)

    if protocol is not None:
        if protocol == "":
            raise PortError("must provide a non-empty protocol to publish")
        mapping.protocol = protocol
    if host_ip is not None and host_ip not in ("", "0.0.0.0"):
        mapping.host_ip = _normalize_ip(host_ip)
    if host_port is not None and host_port != "":
        try:
            host_start, host_len = parse_and_validate_range(host_port)
        except PortError as exc:
            raise PortError(f"error parsing host port: {exc}") from exc
        if host_len != ctr_len:
            raise PortError(
                "host and container port ranges have different lengths: "
                f"{host_len} vs {ctr_len}"
            )
        mapping.host_port = host_start

    log.debug(
        "Adding port mapping from %d to %d length %d protocol %r",
        mapping.host_port,
        mapping.container_port,
        mapping.range,
        mapping.protocol,
    )
    return mapping


def convert_port_map(port_map: Mapping[str, Iterable[tuple[str, str]]] | None) -> list[PortMapping]:
    """Turn container port specs with (host ip, host port) bindings into port mappings."""
    result: list[PortMapping] = []
    for port, bindings in (port_map or {}).items():
        parts = port.split("/")
        if len(parts) > 2:
            raise PortError("invalid port format - protocol can only be specified once")
        protocol = parts[1] if len(parts) == 2 else None
        for host_ip, host_port in bindings:
            result.append(parse_split_port(host_ip, host_port, parts[0], protocol))
    return result


def _split_proto_port(raw: str) -> tuple[str, str]:
    parts = raw.split("/")
    if raw == "" or parts[0] == "":
        return "", ""
    if len(parts) == 1 or parts[1] == "":
        return "tcp", parts[0]
    return parts[1], parts[0]


def convert_expose(port_set: Iterable[str] | None) -> dict[int, str]:
    """Map every exposed port number to its comma separated protocols."""
    result: dict[int, str] = {}
    for spec in sorted(port_set or ()):
        proto, port = _split_proto_port(spec)
        start, length = parse_and_validate_range(port)
        for number in range(start, start + length):
            if number in result:
                result[number] = ",".join(result[number].split(",") + proto.split(","))
            else:
                result[number] = proto
    return result