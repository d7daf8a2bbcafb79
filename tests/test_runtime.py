import pytest

from clabkit import runtime as rt
from clabkit.runtime import (
    DEFAULT_TIMEOUT,
    ContainerRuntime,
    ContainerStatus,
    RuntimeConfig,
    get_runtime,
    register,
    wait_for_container_running,
    with_config,
    with_keep_mgmt_net,
    with_mgmt_net,
)


class FakeRuntime(ContainerRuntime):
    name = "fake"

    def __init__(self, statuses=None):
        super().__init__()
        self.statuses = list(statuses or [])
        self.polls = 0

    def create_net(self):
        return None

    def delete_net(self):
        return None

    def pull_image_if_required(self, image):
        return None

    def create_container(self, node):
        return "id"

    def start_container(self, container_id, node):
        return None

    def stop_container(self, name):
        return None

    def pause_container(self, name):
        return None

    def unpause_container(self, name):
        return None

    def list_containers(self, filters):
        return []

    def get_ns_path(self, name):
        return ""

    def exec(self, name, cmd):
        return None

    def exec_not_wait(self, name, cmd):
        return None

    def delete_container(self, name):
        return None

    def get_hosts_path(self, name):
        return ""

    def get_container_status(self, name):
        self.polls += 1
        if self.statuses:
            return self.statuses.pop(0)
        return ContainerStatus.STOPPED


def test_status_values():
    assert ContainerStatus.NOT_FOUND == "NotFound"
    assert ContainerStatus.RUNNING.value == "Running"
    assert ContainerStatus("Stopped") is ContainerStatus.STOPPED


def test_base_class_is_abstract():
    with pytest.raises(TypeError):
        ContainerRuntime()


def test_init_applies_options_in_order():
    r = FakeRuntime()
    mgmt = object()
    r.init(
        with_config(RuntimeConfig(timeout=5, debug=True, graceful_shutdown=True)),
        with_mgmt_net(mgmt),
        with_keep_mgmt_net(),
    )
    assert r.config == RuntimeConfig(timeout=5, graceful_shutdown=True, debug=True, keep_mgmt_net=True)
    assert r.mgmt is mgmt


def test_with_config_defaults_non_positive_timeout():
    r = FakeRuntime()
    r.with_config(RuntimeConfig(timeout=0))
    assert r.config.timeout == DEFAULT_TIMEOUT
    r.with_config(RuntimeConfig(timeout=-3))
    assert r.config.timeout == DEFAULT_TIMEOUT


def test_with_config_does_not_copy_keep_mgmt_net():
    r = FakeRuntime()
    r.with_config(RuntimeConfig(timeout=1, keep_mgmt_net=True))
    assert r.config.keep_mgmt_net is False


def test_register_and_get_runtime_gives_fresh_instances():
    register("fake-test", FakeRuntime)
    first = get_runtime("fake-test")
    second = get_runtime("fake-test")
    assert isinstance(first, FakeRuntime)
    assert first is not second


def test_get_runtime_unknown_raises():
    with pytest.raises(KeyError):
        get_runtime("no-such-runtime")


def test_wait_returns_once_running():
    r = FakeRuntime([ContainerStatus.STOPPED, ContainerStatus.NOT_FOUND, ContainerStatus.RUNNING])
    wait_for_container_running(r, "ext", "node1", timeout=5, interval=0.001)
    assert r.polls == 3


def test_wait_accepts_plain_string_status():
    r = FakeRuntime(["Running"])
    wait_for_container_running(r, "ext", "node1", timeout=5, interval=0.001)
    assert r.polls == 1


def test_wait_times_out():
    r = FakeRuntime()
    with pytest.raises(TimeoutError) as excinfo:
        wait_for_container_running(r, "ext", "node1", timeout=0.05, interval=0.01)
    assert "ext" in str(excinfo.value)
    assert "node1" in str(excinfo.value)
    assert r.polls >= 1


def test_registry_replaces_previous_factory():
    register("fake-replace", FakeRuntime)
    register("fake-replace", lambda: FakeRuntime([ContainerStatus.RUNNING]))
    r = rt.get_runtime("fake-replace")
    assert r.get_container_status("x") is ContainerStatus.RUNNING