import pytest

from clabkit.model import (
    ConfigDispatcher,
    ContainerDetails,
    Endpoint,
    GenericContainer,
    GenericFilter,
    GenericMgmtIPs,
    LabData,
    Link,
    MySocketIoEntry,
    NodeConfig,
    filters_from_label_strings,
)

SOCKET_CASES = [
    ("clab-slr01-srlnode1-tcp-22", "slr01-srlnode1", True),
    ("clab-slr01-srlnode1-udp-67464563", "slr01-srlnode1", True),
    ("clab-srlnode1-udp-67464563", "srlnode1", True),
]


@pytest.mark.parametrize("name,expected,_", SOCKET_CASES)
def test_container_name(name, expected, _):
    assert MySocketIoEntry(name=name).container_name() == expected


def test_container_name_error():
    with pytest.raises(ValueError):
        MySocketIoEntry(name="clab-srlnode1").container_name()


@pytest.mark.parametrize(
    "name,expected",
    [(c[0], c[2]) for c in SOCKET_CASES] + [("clab-srlnode1", False), ("a-b-c-d", False)],
)
def test_is_clab_entry(name, expected):
    assert MySocketIoEntry(name=name).is_clab_entry() is expected


def test_container_ips():
    ctr = GenericContainer(
        network_settings=GenericMgmtIPs(ipv4_addr="172.20.20.2", ipv4_plen=24)
    )
    assert ctr.container_ipv4() == "172.20.20.2/24"
    assert ctr.container_ipv6() == "N/A"
    ctr.network_settings.ipv6_addr = "2001:db8::2"
    ctr.network_settings.ipv6_plen = 64
    assert ctr.container_ipv6() == "2001:db8::2/64"


def test_container_ipv4_missing():
    assert GenericContainer().container_ipv4() == "N/A"


def test_filters_from_label_strings():
    result = filters_from_label_strings([" clab-node-name = n1 ", "containerlab"])
    assert result == [
        GenericFilter(filter_type="label", field="clab-node-name", operator="=", match="n1"),
        GenericFilter(filter_type="label", field="containerlab", operator="exists", match=""),
    ]


def test_filters_from_empty_list():
    assert filters_from_label_strings([]) == []


def test_link_str():
    a = Endpoint(node=NodeConfig(short_name="n1"), endpoint_name="e1-1")
    b = Endpoint(node=NodeConfig(short_name="n2"), endpoint_name="eth1")
    assert str(Link(a=a, b=b)) == "link [n1:e1-1, n2:eth1]"


def test_node_config_defaults_are_independent():
    first, second = NodeConfig(), NodeConfig()
    first.binds.append("a:b")
    assert second.binds == []
    assert first.auto_remove is None


def test_lab_data_holds_entries():
    data = LabData(
        containers=[ContainerDetails(name="clab-lab-n1", state="running")],
        mysocketio=[MySocketIoEntry(name="clab-lab-n1-tcp-22")],
    )
    assert data.containers[0].state == "running"
    assert data.mysocketio[0].container_name() == "lab-n1"


def test_config_dispatcher_vars():
    assert ConfigDispatcher().vars is None
    assert ConfigDispatcher(vars={"x": 1}).vars == {"x": 1}