"""Node definitions as they appear in a lab topology file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Mapping

# Environment variable holding the expected number of interfaces injected into every container.
CLAB_ENV_INTFS = "CLAB_INTFS"

# Setting this key to "true" in a node's env imports the shell environment.
IMPORT_ENVS_KEY = "__IMPORT_ENVS"


def _scalar_to_str(key: str, value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError(f"field {key!r} expects a scalar value, got {type(value).__name__}")


def _to_str(key: str, value: Any) -> str:
    return _scalar_to_str(key, value)


def _to_uint(key: str, value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r} expects an unsigned integer, got {value!r}")
    if value < 0:
        raise ValueError(f"field {key!r} cannot be negative, got {value}")
    return value


def _to_bool(key: str, value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"field {key!r} expects a boolean, got {value!r}")
    return value


def _to_opt_bool(key: str, value: Any) -> bool | None:
    if value is None:
        return None
    return _to_bool(key, value)


def _to_float(key: str, value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {key!r} expects a number, got {value!r}")
    return float(value)


def _to_str_list(key: str, value: Any) -> list[str] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError(f"field {key!r} expects a list, got {type(value).__name__}")
    return [_scalar_to_str(key, item) for item in value]


def _to_str_map(key: str, value: Any) -> dict[str, str] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ValueError(f"field {key!r} expects a mapping, got {type(value).__name__}")
    return {_scalar_to_str(key, k): _scalar_to_str(key, v) for k, v in value.items()}


def _to_section(key: str, value: Any) -> dict[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ValueError(f"field {key!r} expects a mapping, got {type(value).__name__}")
    return dict(value)


def _spec(key: str, convert: Callable[[str, Any], Any], default: Any = None) -> Any:
    meta = {"key": key, "convert": convert}
    return field(default=default, metadata=meta)


@dataclass
class NodeDefinition:
    """Configuration a node, a kind or the defaults section can carry."""

    kind: str = _spec("kind", _to_str, "")
    group: str = _spec("group", _to_str, "")
    type: str = _spec("type", _to_str, "")
    startup_config: str = _spec("startup-config", _to_str, "")
    startup_delay: int = _spec("startup-delay", _to_uint, 0)
    enforce_startup_config: bool = _spec("enforce-startup-config", _to_bool, False)
    auto_remove: bool | None = _spec("auto-remove", _to_opt_bool)
    # raw "config" section; holds a "vars" mapping
    config: dict[str, Any] | None = _spec("config", _to_section)
    image: str = _spec("image", _to_str, "")
    license: str = _spec("license", _to_str, "")
    position: str = _spec("position", _to_str, "")
    entrypoint: str = _spec("entrypoint", _to_str, "")
    cmd: str = _spec("cmd", _to_str, "")
    sans: list[str] | None = _spec("SANs", _to_str_list)
    exec: list[str] | None = _spec("exec", _to_str_list)
    binds: list[str] | None = _spec("binds", _to_str_list)
    ports: list[str] | None = _spec("ports", _to_str_list)
    mgmt_ipv4: str = _spec("mgmt_ipv4", _to_str, "")
    mgmt_ipv6: str = _spec("mgmt_ipv6", _to_str, "")
    publish: list[str] | None = _spec("publish", _to_str_list)
    env: dict[str, str] | None = _spec("env", _to_str_map)
    env_files: list[str] | None = _spec("env-files", _to_str_list)
    user: str = _spec("user", _to_str, "")
    labels: dict[str, str] | None = _spec("labels", _to_str_map)
    network_mode: str = _spec("network-mode", _to_str, "")
    sandbox: str = _spec("sandbox", _to_str, "")
    kernel: str = _spec("kernel", _to_str, "")
    runtime: str = _spec("runtime", _to_str, "")
    cpu: float = _spec("cpu", _to_float, 0.0)
    cpu_set: str = _spec("cpu-set", _to_str, "")
    memory: str = _spec("memory", _to_str, "")
    sysctls: dict[str, str] | None = _spec("sysctls", _to_str_map)
    # raw "extras" section, kind specific
    extras: dict[str, Any] | None = _spec("extras", _to_section)
    wait_for: list[str] | None = _spec("wait-for", _to_str_list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "NodeDefinition":
        """Build a definition from a parsed topology mapping; unknown keys are rejected."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(f"node definition must be a mapping, got {type(data).__name__}")
        by_key = {f.metadata["key"]: f for f in fields(cls)}
        unknown = sorted(str(k) for k in data if k not in by_key)
        if unknown:
            raise ValueError(f"unknown node definition field(s): {', '.join(unknown)}")
        kwargs = {
            by_key[key].name: by_key[key].metadata["convert"](key, value)
            for key, value in data.items()
        }
        return cls(**kwargs)

    def import_envs(self, environ: Mapping[str, str] | None = None) -> None:
        """Copy shell variables into env when env sets __IMPORT_ENVS to "true".

        Variables already present in env are kept as they are.
        """
        if self.env is None or self.env.get(IMPORT_ENVS_KEY) != "true":
            return
        source = os.environ if environ is None else environ
        for name, value in source.items():
            if name in self.env:
                continue
            # the value is cut at its first "=", as an environ entry split on "=" would be
            self.env[name] = value.split("=")[0]