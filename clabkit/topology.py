"""Lab topology and the node/kind/defaults inheritance rules."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from clabkit.model import ConfigDispatcher, Extras
from clabkit.nodedef import NodeDefinition

_PROTOCOLS = frozenset({"tcp", "udp", "sctp"})
_EXTRAS_KEYS = {
    "srl-agents": "srl_agents",
    "mysocket-proxy": "mysocket_proxy",
    "ceos-copy-to-flash": "ceos_copy_to_flash",
}


def _merge_lists(*lists: list[str] | None) -> list[str] | None:
    """Concatenate lists keeping the first occurrence of each item; None when empty."""
    result: list[str] = []
    seen: set[str] = set()
    for items in lists:
        for item in items or ():
            if item not in seen:
                seen.add(item)
                result.append(item)
    return result or None


def _merge_maps(*maps: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Merge mappings, later ones winning; None when every input is None."""
    result: dict[str, Any] | None = None
    for mapping in maps:
        if mapping is None:
            continue
        if result is None:
            result = {}
        result.update(mapping)
    return result


def _config_vars(definition: NodeDefinition) -> dict[str, Any] | None:
    if definition.config is None:
        return None
    return definition.config.get("vars")


def _sysctls(definition: NodeDefinition) -> dict[str, str]:
    return definition.sysctls if definition.sysctls is not None else {}


def _extras_from_section(section: Mapping[str, Any] | None) -> Extras | None:
    if section is None:
        return None
    unknown = sorted(str(k) for k in section if k not in _EXTRAS_KEYS)
    if unknown:
        raise ValueError(f"unknown extras field(s): {', '.join(unknown)}")
    kwargs: dict[str, Any] = {}
    for key, value in section.items():
        name = _EXTRAS_KEYS[key]
        if name == "mysocket_proxy":
            kwargs[name] = "" if value is None else str(value)
        else:
            kwargs[name] = [str(v) for v in value or ()]
    return Extras(**kwargs)


def _parse_port(text: str) -> int:
    if not text.isdigit():
        raise ValueError(f"invalid port value {text!r}")
    value = int(text)
    if value > 65535:
        raise ValueError(f"port value {text!r} is out of range")
    return value


def _parse_port_range(text: str) -> tuple[int, int]:
    if text == "":
        raise ValueError("empty string specified for ports")
    if "-" not in text:
        value = _parse_port(text)
        return value, value
    start_text, end_text = text.split("-", 1)
    start, end = _parse_port(start_text), _parse_port(end_text)
    if end < start:
        raise ValueError(f"invalid range specified for port: {text}")
    return start, end


def _split_parts(raw: str) -> tuple[str, str, str]:
    parts = raw.split(":")
    count = len(parts)
    container = parts[-1]
    if count == 1:
        return "", "", container
    if count == 2:
        return "", parts[0], container
    if count == 3:
        return parts[0], parts[1], container
    return ":".join(parts[:-2]), parts[-2], container


def _split_proto(raw: str) -> tuple[str, str]:
    if raw == "":
        return "", ""
    port, sep, proto = raw.partition("/")
    if not sep or proto == "":
        return port, "tcp"
    return port, proto


def _parse_port_spec(raw: str) -> list[tuple[str, str, str]]:
    """Return (container port key, host ip, host port) triples for one spec."""
    ip, host_port, container = _split_parts(raw)
    if ip:
        address = ip[1:-1] if ip.startswith("[") and ip.endswith("]") else ip
        try:
            ipaddress.ip_address(address)
        except ValueError:
            raise ValueError(f"invalid IP address: {ip}") from None
        ip = address
    if container == "":
        raise ValueError(f"no port specified: {raw}<empty>")
    port, proto = _split_proto(container)
    proto = proto.lower()
    if proto not in _PROTOCOLS:
        raise ValueError(f"invalid proto: {proto}")
    start, end = _parse_port_range(port)
    host_start = host_end = 0
    if host_port:
        host_start, host_end = _parse_port_range(host_port)
    host_span_differs = bool(host_port) and (end - start) != (host_end - host_start)
    if host_span_differs and end != start:
        raise ValueError(f"invalid ranges specified for container and host ports: {container} and {host_port}")
    result = []
    for offset in range(end - start + 1):
        binding_port = ""
        if host_port:
            binding_port = str(host_start + offset)
            if host_span_differs:
                binding_port = f"{host_start}-{host_end}"
        result.append((f"{start + offset}/{proto}", ip, binding_port))
    return result


def _parse_port_specs(specs: Iterable[str]) -> tuple[set[str], dict[str, list[tuple[str, str]]]]:
    port_set: set[str] = set()
    port_map: dict[str, list[tuple[str, str]]] = {}
    for raw in specs:
        for key, ip, host_port in _parse_port_spec(raw):
            port_set.add(key)
            port_map.setdefault(key, []).append((ip, host_port))
    return port_set, port_map


@dataclass
class LinkConfig:
    """A link as written in the topology file."""

    endpoints: list[str] = field(default_factory=list)
    labels: dict[str, str] | None = None
    vars: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LinkConfig":
        if not isinstance(data, Mapping):
            raise ValueError(f"link must be a mapping, got {type(data).__name__}")
        unknown = sorted(str(k) for k in data if k not in ("endpoints", "labels", "vars"))
        if unknown:
            raise ValueError(f"unknown link field(s): {', '.join(unknown)}")
        labels = data.get("labels")
        variables = data.get("vars")
        return cls(
            endpoints=[str(e) for e in data.get("endpoints") or ()],
            labels=None if labels is None else {str(k): str(v) for k, v in labels.items()},
            vars=None if variables is None else dict(variables),
        )


@dataclass
class Topology:
    """Nodes, kinds, defaults and links of a lab."""

    defaults: NodeDefinition | None = field(default_factory=NodeDefinition)
    kinds: dict[str, NodeDefinition] | None = field(default_factory=dict)
    nodes: dict[str, NodeDefinition] = field(default_factory=dict)
    links: list[LinkConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Topology":
        """Build a topology from its parsed mapping."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(f"topology must be a mapping, got {type(data).__name__}")
        unknown = sorted(str(k) for k in data if k not in ("defaults", "kinds", "nodes", "links"))
        if unknown:
            raise ValueError(f"unknown topology field(s): {', '.join(unknown)}")
        return cls(
            defaults=NodeDefinition.from_dict(data.get("defaults")),
            kinds={k: NodeDefinition.from_dict(v) for k, v in (data.get("kinds") or {}).items()},
            nodes={k: NodeDefinition.from_dict(v) for k, v in (data.get("nodes") or {}).items()},
            links=[LinkConfig.from_dict(link) for link in data.get("links") or ()],
        )

    def _node(self, name: str) -> NodeDefinition | None:
        if name not in self.nodes:
            return None
        return self.nodes[name] or NodeDefinition()

    def _node_kind_def(self, name: str) -> NodeDefinition:
        return self.get_kind(self.get_node_kind(name))

    def _pick(self, name: str, attr: str, empty: Any) -> Any:
        node = self._node(name)
        if node is None:
            return empty
        for definition in (node, self._node_kind_def(name), self.get_defaults()):
            value = getattr(definition, attr)
            if value:
                return value
        return empty

    def get_defaults(self) -> NodeDefinition:
        """The defaults section, empty when absent."""
        return self.defaults if self.defaults is not None else NodeDefinition()

    def get_kind(self, kind: str) -> NodeDefinition:
        """The definition of a kind, empty when absent."""
        if not self.kinds or kind not in self.kinds:
            return NodeDefinition()
        return self.kinds[kind] or NodeDefinition()

    def get_kinds(self) -> dict[str, NodeDefinition]:
        """All kind definitions."""
        return self.kinds if self.kinds is not None else {}

    def get_node_kind(self, name: str) -> str:
        """Kind of a node, falling back to the default kind."""
        node = self._node(name)
        if node is None:
            return ""
        return node.kind or self.get_defaults().kind

    def get_node_binds(self, name: str) -> list[str] | None:
        node = self._node(name)
        if node is None:
            return None
        return _merge_lists(node.binds, self._node_kind_def(name).binds, self.get_defaults().binds)

    def get_node_ports(
        self, name: str
    ) -> tuple[set[str] | None, dict[str, list[tuple[str, str]]] | None]:
        """Exposed port set and port bindings of the first level that defines ports."""
        node = self._node(name)
        if node is None:
            return None, None
        for definition in (node, self._node_kind_def(name), self.get_defaults()):
            if definition.ports:
                return _parse_port_specs(definition.ports)
        return None, None

    def get_node_env(self, name: str) -> dict[str, str] | None:
        node = self._node(name)
        if node is None:
            return None
        return _merge_maps(self.get_defaults().env, self._node_kind_def(name).env, node.env)

    def get_node_env_files(self, name: str) -> list[str] | None:
        node = self._node(name)
        if node is None:
            return None
        return _merge_lists(
            self.get_defaults().env_files, self._node_kind_def(name).env_files, node.env_files
        )

    def get_node_publish(self, name: str) -> list[str] | None:
        node = self._node(name)
        if node is None:
            return None
        if node.publish:
            return node.publish
        kinds = self.kinds or {}
        kind_def = kinds.get(node.kind)
        if kind_def is not None and kind_def.publish:
            return kind_def.publish
        return self.defaults.publish if self.defaults is not None else None

    def get_node_labels(self, name: str) -> dict[str, str] | None:
        node = self._node(name)
        if node is None:
            return None
        return _merge_maps(self.get_defaults().labels, self._node_kind_def(name).labels, node.labels)

    def get_node_config_dispatcher(self, name: str) -> ConfigDispatcher | None:
        node = self._node(name)
        if node is None:
            return None
        return ConfigDispatcher(
            vars=_merge_maps(
                _config_vars(self.get_defaults()),
                _config_vars(self._node_kind_def(name)),
                _config_vars(node),
            )
        )

    def get_node_startup_config(self, name: str) -> str:
        return self._pick(name, "startup_config", "")

    def get_node_startup_delay(self, name: str) -> int:
        return self._pick(name, "startup_delay", 0)

    def get_node_enforce_startup_config(self, name: str) -> bool:
        return self._pick(name, "enforce_startup_config", False)

    def get_node_auto_remove(self, name: str) -> bool:
        """Auto-remove flag of the first level that sets it; False otherwise."""
        node = self._node(name)
        if node is not None:
            if node.auto_remove is not None:
                return node.auto_remove
            kind_value = self._node_kind_def(name).auto_remove
            if kind_value is not None:
                return kind_value
        default_value = self.get_defaults().auto_remove
        if default_value is not None:
            return default_value
        return False

    def get_node_license(self, name: str) -> str:
        return self._pick(name, "license", "")

    def get_node_image(self, name: str) -> str:
        return self._pick(name, "image", "")

    def get_node_group(self, name: str) -> str:
        return self._pick(name, "group", "")

    def get_node_type(self, name: str) -> str:
        return self._pick(name, "type", "")

    def get_node_position(self, name: str) -> str:
        return self._pick(name, "position", "")

    def get_node_entrypoint(self, name: str) -> str:
        return self._pick(name, "entrypoint", "")

    def get_node_cmd(self, name: str) -> str:
        return self._pick(name, "cmd", "")

    def get_node_exec(self, name: str) -> list[str] | None:
        """Defaults, kind and node exec commands, in that order."""
        node = self._node(name)
        if node is None:
            return None
        sources = (self.get_defaults().exec, self._node_kind_def(name).exec, node.exec)
        if all(source is None for source in sources):
            return None
        return [cmd for source in sources for cmd in source or ()]

    def get_node_user(self, name: str) -> str:
        return self._pick(name, "user", "")

    def get_node_network_mode(self, name: str) -> str:
        return self._pick(name, "network_mode", "")

    def get_node_sandbox(self, name: str) -> str:
        return self._pick(name, "sandbox", "")

    def get_node_kernel(self, name: str) -> str:
        return self._pick(name, "kernel", "")

    def get_node_runtime(self, name: str) -> str:
        return self._pick(name, "runtime", "")

    def get_node_cpu(self, name: str) -> float:
        return self._pick(name, "cpu", 0.0)

    def get_node_cpu_set(self, name: str) -> str:
        return self._pick(name, "cpu_set", "")

    def get_node_memory(self, name: str) -> str:
        return self._pick(name, "memory", "")

    def get_sysctls(self, name: str) -> dict[str, str] | None:
        node = self._node(name)
        if node is None:
            return None
        return _merge_maps(
            _sysctls(self.get_defaults()), _sysctls(self._node_kind_def(name)), _sysctls(node)
        )

    def get_sans(self, name: str) -> list[str] | None:
        """Subject alternative names set on the node itself."""
        node = self._node(name)
        if node is None or not node.sans:
            return None
        return node.sans

    def get_node_extras(self, name: str) -> Extras | None:
        node = self._node(name)
        if node is None:
            return None
        for definition in (node, self._node_kind_def(name)):
            if definition.extras is not None:
                return _extras_from_section(definition.extras)
        return _extras_from_section(self.get_defaults().extras)

    def get_wait_for(self, name: str) -> list[str] | None:
        node = self._node(name)
        if node is None:
            return None
        return _merge_lists(self._node_kind_def(name).wait_for, node.wait_for)

    def import_envs(self, environ: Mapping[str, str] | None = None) -> None:
        """Import shell variables into every definition that asks for it."""
        definitions = [self.defaults, *self.get_kinds().values(), *self.nodes.values()]
        for definition in definitions:
            if definition is not None:
                definition.import_envs(environ)