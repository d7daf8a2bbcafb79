"""Runtime-facing data model: nodes, links, containers and filters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Endpoint:
    """One end of a link between two nodes."""

    node: "NodeConfig"
    endpoint_name: str = ""
    mac: str = ""


@dataclass
class Link:
    """A link between two node endpoints."""

    a: Endpoint
    b: Endpoint
    mtu: int = 0
    labels: dict[str, str] = field(default_factory=dict)
    vars: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return (
            f"link [{self.a.node.short_name}:{self.a.endpoint_name}, "
            f"{self.b.node.short_name}:{self.b.endpoint_name}]"
        )


@dataclass
class MgmtNet:
    """Management network options."""

    network: str = ""
    bridge: str = ""
    ipv4_subnet: str = ""
    ipv4_gw: str = ""
    ipv6_subnet: str = ""
    ipv6_gw: str = ""
    mtu: str = ""
    external_access: bool | None = None


@dataclass
class ConfigDispatcher:
    """Variables for the post-start configuration of a node."""

    vars: dict[str, Any] | None = None


@dataclass
class Extras:
    """Kind specific node parameters."""

    srl_agents: list[str] = field(default_factory=list)
    mysocket_proxy: str = ""
    ceos_copy_to_flash: list[str] = field(default_factory=list)


@dataclass
class NodeConfig:
    """Resolved configuration of a single lab node."""

    short_name: str = ""
    long_name: str = ""
    fqdn: str = ""
    lab_dir: str = ""
    index: int = 0
    group: str = ""
    kind: str = ""
    startup_config: str = ""
    startup_delay: int = 0
    enforce_startup_config: bool = False
    auto_remove: bool | None = None
    res_startup_config: str = ""
    config: ConfigDispatcher | None = None
    res_config: str = ""
    node_type: str = ""
    position: str = ""
    license: str = ""
    image: str = ""
    sysctls: dict[str, str] = field(default_factory=dict)
    user: str = ""
    entrypoint: str = ""
    cmd: str = ""
    exec: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    binds: list[str] = field(default_factory=list)
    # container port spec ("80/tcp") -> list of (host_ip, host_port) pairs
    port_bindings: dict[str, list[tuple[str, str]]] = field(default_factory=dict)
    # container port specs to expose
    port_set: set[str] = field(default_factory=set)
    network_mode: str = ""
    mgmt_net: str = ""
    mgmt_intf: str = ""
    mgmt_ipv4_address: str = ""
    mgmt_ipv4_prefix_length: int = 0
    mgmt_ipv6_address: str = ""
    mgmt_ipv6_prefix_length: int = 0
    mgmt_ipv4_gateway: str = ""
    mgmt_ipv6_gateway: str = ""
    mac_address: str = ""
    container_id: str = ""
    tls_cert: str = ""
    tls_key: str = field(default="", repr=False)
    tls_anchor: str = ""
    ns_path: str = ""
    publish: list[str] = field(default_factory=list)
    extra_hosts: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    endpoints: list[Endpoint] = field(default_factory=list, repr=False)
    sans: list[str] = field(default_factory=list)
    sandbox: str = ""
    kernel: str = ""
    runtime: str = ""
    cpu: float = 0.0
    cpu_set: str = ""
    memory: str = ""
    deployment_status: str = ""
    extras: Extras | None = None
    wait_for: list[str] = field(default_factory=list)


@dataclass
class HostRequirements:
    """Host features a node needs in order to run."""

    ssse3: bool = False
    virt_required: bool = False


@dataclass
class ContainerMount:
    """A mount of a running container."""

    source: str = ""
    destination: str = ""


@dataclass
class GenericMgmtIPs:
    """Management addresses of a container."""

    ipv4_addr: str = ""
    ipv4_plen: int = 0
    ipv4_gw: str = ""
    ipv6_addr: str = ""
    ipv6_plen: int = 0
    ipv6_gw: str = ""


@dataclass
class GenericContainer:
    """Runtime independent description of a container."""

    names: list[str] = field(default_factory=list)
    id: str = ""
    short_id: str = ""
    image: str = ""
    state: str = ""
    status: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    pid: int = 0
    network_settings: GenericMgmtIPs = field(default_factory=GenericMgmtIPs)
    mounts: list[ContainerMount] = field(default_factory=list)

    def container_ipv4(self) -> str:
        """IPv4 address with prefix length, or "N/A"."""
        ns = self.network_settings
        if not ns.ipv4_addr:
            return "N/A"
        return f"{ns.ipv4_addr}/{ns.ipv4_plen}"

    def container_ipv6(self) -> str:
        """IPv6 address with prefix length, or "N/A"."""
        ns = self.network_settings
        if not ns.ipv6_addr:
            return "N/A"
        return f"{ns.ipv6_addr}/{ns.ipv6_plen}"


@dataclass
class GenericFilter:
    """A container filter: type "label" or "name", operator "=", "!=" or "exists"."""

    filter_type: str = ""
    field: str = ""
    operator: str = ""
    match: str = ""


def filters_from_label_strings(labels: list[str]) -> list[GenericFilter]:
    """Turn "key=value" and "key" strings into label filters."""
    result = []
    for text in labels:
        if "=" in text:
            parts = text.split("=")
            result.append(
                GenericFilter(
                    filter_type="label",
                    field=parts[0].strip(),
                    operator="=",
                    match=parts[1].strip(),
                )
            )
        else:
            result.append(
                GenericFilter(filter_type="label", field=text.strip(), operator="exists")
            )
    return result


@dataclass
class ContainerDetails:
    """Container information as shown in tables and graphs."""

    lab_name: str = ""
    lab_path: str = ""
    name: str = ""
    container_id: str = ""
    image: str = ""
    kind: str = ""
    group: str = ""
    state: str = ""
    ipv4_address: str = ""
    ipv6_address: str = ""


@dataclass
class MySocketIoEntry:
    """A published socket entry."""

    socket_id: str | None = None
    dns_name: str | None = None
    ports: list[int] = field(default_factory=list)
    type: str | None = None
    cloud_auth: bool = False
    name: str | None = None
    lab_name: str | None = None

    def _name(self) -> str:
        return self.name or ""

    def is_clab_entry(self) -> bool:
        """True when the entry name looks like one created for a lab node."""
        name = self._name()
        return "clab" in name and len(name.split("-")) >= 4

    def container_name(self) -> str:
        """Container name derived from the entry name.

        clab-slr01-srlnode1-tcp-22 gives slr01-srlnode1.
        """
        name = self._name()
        parts = name.split("-")
        if len(parts) < 4:
            raise ValueError(
                f"issue with entry {name}. does not seem to be a clab based mysocketio entry"
            )
        return "-".join(parts[1:-2])


@dataclass
class LabData:
    """Containers and socket entries of a lab."""

    containers: list[ContainerDetails] = field(default_factory=list)
    mysocketio: list[MySocketIoEntry] = field(default_factory=list)