"""Container runtime interface, registry and runtime options."""

from __future__ import annotations

import abc
import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable

log = logging.getLogger(__name__)

# Timeout applied when a runtime is configured with none.
DEFAULT_TIMEOUT = 30.0


class ContainerStatus(str, enum.Enum):
    """Coarse state of a container as reported by a runtime."""

    NOT_FOUND = "NotFound"
    RUNNING = "Running"
    STOPPED = "Stopped"


@dataclass
class RuntimeConfig:
    """Settings shared by all runtimes; timeout is in seconds."""

    timeout: float = 0.0
    graceful_shutdown: bool = False
    debug: bool = False
    keep_mgmt_net: bool = False


RuntimeOption = Callable[["ContainerRuntime"], None]


class ContainerRuntime(abc.ABC):
    """A backend able to run lab nodes as containers."""

    name: str = ""
    default_timeout: float = DEFAULT_TIMEOUT

    def __init__(self) -> None:
        self.config = RuntimeConfig()
        self.mgmt: Any = None

    def init(self, *args: RuntimeOption) -> None:
        """Apply the given runtime options to this runtime."""
        for option in args:
            option(self)

    def with_config(self, config: RuntimeConfig) -> None:
        """Take timeout, debug and graceful shutdown settings from config."""
        self.config.timeout = config.timeout
        self.config.debug = config.debug
        self.config.graceful_shutdown = config.graceful_shutdown
        if self.config.timeout <= 0:
            self.config.timeout = self.default_timeout

    def with_mgmt_net(self, mgmt: Any) -> None:
        """Set the management network description."""
        self.mgmt = mgmt

    def with_keep_mgmt_net(self) -> None:
        """Keep the management network when the lab is destroyed."""
        self.config.keep_mgmt_net = True

    @abc.abstractmethod
    def create_net(self) -> None:
        """Create the management network."""

    @abc.abstractmethod
    def delete_net(self) -> None:
        """Delete the management network."""

    @abc.abstractmethod
    def pull_image_if_required(self, image: str) -> None:
        """Pull an image unless it is already present."""

    @abc.abstractmethod
    def create_container(self, node: Any) -> str:
        """Create a container without starting it and return its id."""

    @abc.abstractmethod
    def start_container(self, container_id: str, node: Any) -> Any:
        """Start a created container; may return a handle for life-cycle events."""

    @abc.abstractmethod
    def stop_container(self, name: str) -> None:
        """Stop a running container."""

    @abc.abstractmethod
    def pause_container(self, name: str) -> None:
        """Pause a container."""

    @abc.abstractmethod
    def unpause_container(self, name: str) -> None:
        """Resume a paused container."""

    @abc.abstractmethod
    def list_containers(self, filters: Iterable[Any]) -> list[Any]:
        """List containers matching all filters."""

    @abc.abstractmethod
    def get_ns_path(self, name: str) -> str:
        """Return the network namespace path of a container."""

    @abc.abstractmethod
    def exec(self, name: str, cmd: Any) -> Any:
        """Run a command in a container and return its result."""

    @abc.abstractmethod
    def exec_not_wait(self, name: str, cmd: Any) -> None:
        """Start a command in a container without waiting for it."""

    @abc.abstractmethod
    def delete_container(self, name: str) -> None:
        """Remove a container."""

    @abc.abstractmethod
    def get_hosts_path(self, name: str) -> str:
        """Return the path of the file mounted as /etc/hosts in a container."""

    @abc.abstractmethod
    def get_container_status(self, name: str) -> ContainerStatus:
        """Return the status of a container."""


_RUNTIMES: dict[str, Callable[[], ContainerRuntime]] = {}


def register(name: str, factory: Callable[[], ContainerRuntime]) -> None:
    """Register a runtime factory under a name, replacing any previous one."""
    _RUNTIMES[name] = factory


def get_runtime(name: str) -> ContainerRuntime:
    """Create a fresh runtime registered under name."""
    try:
        factory = _RUNTIMES[name]
    except KeyError:
        raise KeyError(f"unknown container runtime {name!r}") from None
    return factory()


def with_config(config: RuntimeConfig) -> RuntimeOption:
    """Option that applies config to a runtime."""
    return lambda runtime: runtime.with_config(config)


def with_mgmt_net(mgmt: Any) -> RuntimeOption:
    """Option that sets the management network of a runtime."""
    return lambda runtime: runtime.with_mgmt_net(mgmt)


def with_keep_mgmt_net() -> RuntimeOption:
    """Option that keeps the management network on destroy."""
    return lambda runtime: runtime.with_keep_mgmt_net()


def wait_for_container_running(
    runtime: ContainerRuntime,
    container_name: str,
    node_name: str,
    timeout: float = 15 * 60.0,
    interval: float = 1.0,
) -> None:
    """Poll a container until it runs; raise TimeoutError when timeout passes first."""
    start = time.monotonic()
    deadline = start + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining < interval:
            time.sleep(max(remaining, 0.0))
            break
        time.sleep(interval)
        if runtime.get_container_status(container_name) == ContainerStatus.RUNNING:
            return
        log.info(
            "node %r depends on external container %r, which is not running yet. "
            "Waited %ds. Retrying...",
            node_name,
            container_name,
            int(time.monotonic() - start),
        )
    message = (
        f"node {node_name!r} waited {time.monotonic() - start:.1f}s for external dependency "
        f"container {container_name!r} to come up, which did not happen. Giving up now"
    )
    log.error(message)
    raise TimeoutError(message)