# clabkit

Building blocks for container-based network labs: a lab topology model with
defaults → kind → node inheritance, a container runtime interface with a
registry, and helpers for Docker and Podman style back ends (registry auth,
iptables forwarding rules, port mapping conversion and container spec
generation). It has no dependencies outside the standard library.

## Installation

```
pip install .
```

## Topologies

`clabkit.topology.Topology.from_dict` builds a topology from an already parsed
mapping with the keys `defaults`, `kinds`, `nodes` and `links`; unknown keys
raise `ValueError`. The `get_node_*` methods resolve the effective setting of a
node by looking at the node itself, then its kind, then the defaults.

```python
from clabkit.topology import Topology

topo = Topology.from_dict({
    "defaults": {"user": "admin", "binds": ["x:z"]},
    "kinds": {"srl": {"image": "image:latest", "env": {"env1": "v1"}}},
    "nodes": {"node1": {"kind": "srl", "env": {"env2": "v2"}}},
})

topo.get_node_image("node1")   # "image:latest"
topo.get_node_user("node1")    # "admin"
topo.get_node_env("node1")     # {"env1": "v1", "env2": "v2"}
topo.get_node_binds("node1")   # ["x:z"]
```

Lists such as binds and env files are merged without duplicates; maps such as
env, labels and sysctls are merged with the node winning over the kind and the
kind over the defaults. `get_node_exec` concatenates defaults, kind and node
commands. `get_node_ports` returns the exposed port set and the port bindings
of the first level that defines `ports`. `get_node_auto_remove` returns
`False` when no level sets it.

Node definitions are `clabkit.nodedef.NodeDefinition` objects, built with
`NodeDefinition.from_dict` from the topology file's keys (`startup-config`,
`network-mode`, `cpu-set` and so on). When a definition's `env` sets
`__IMPORT_ENVS` to `"true"`, `import_envs(environ)` copies the variables of
`environ` (the process environment by default) into it, keeping those already
present; `Topology.import_envs` does this for every definition.

## Runtimes

`clabkit.runtime` defines the abstract `ContainerRuntime` class, its
`RuntimeConfig` and the `ContainerStatus` enum, a registry (`register`,
`get_runtime`), the option helpers `with_config`, `with_mgmt_net` and
`with_keep_mgmt_net` that `ContainerRuntime.init` applies, and
`wait_for_container_running`, which polls a runtime until a container reports
`ContainerStatus.RUNNING` and raises `TimeoutError` when the timeout passes.

## Helpers

- `clabkit.dockerauth`: find and read a docker client config
  (`get_docker_config_path`, `load_docker_config`), get the registry domain of
  an image reference (`get_image_domain_name`) and build the registry auth
  string for an image (`get_docker_auth`).
- `clabkit.iptables`: `install_forward_rule` and `delete_forward_rule` run the
  `iptables` command to manage the `DOCKER-USER` accept rule for a management
  bridge, raising `IptablesError` on failure.
- `clabkit.portmaps`: validate ports and port ranges and turn port bindings
  into `PortMapping` records (`convert_port_map`) and exposed ports into a
  port-to-protocols map (`convert_expose`); bad input raises `PortError`.
- `clabkit.specs`: bind mount conversion (`convert_mounts`), list filters
  (`podman_filters`), management network options (`podman_network_options`),
  resource limits (`resource_limits`), network specs for each network mode
  (`network_spec`) and management addresses from an inspect document
  (`mgmt_ips_from_inspect`).
- `clabkit.model`: shared data types such as `NodeConfig`, `MgmtNet`,
  `GenericContainer`, `GenericFilter` and `MySocketIoEntry`, plus
  `filters_from_label_strings`.

## What this package does not do

- It ships no concrete runtime: the registry starts empty, and nothing here
  talks to a Docker, Podman or containerd service. A back end has to subclass
  `ContainerRuntime` and `register` itself.
- It does not read YAML topology files; `Topology.from_dict` takes a mapping
  that has already been parsed.
- It has no command-line tool and does not deploy or destroy labs.

## Tests

```
pip install ".[test]"
pytest
```