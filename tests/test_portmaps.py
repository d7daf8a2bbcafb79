import pytest

from clabkit.portmaps import (
    PortError,
    PortMapping,
    convert_expose,
    convert_port_map,
    parse_and_validate_port,
    parse_and_validate_range,
    parse_split_port,
)


@pytest.mark.parametrize("text, value", [("80", 80), ("65535", 65535), ("1", 1)])
def test_parse_and_validate_port(text, value):
    assert parse_and_validate_port(text) == value


@pytest.mark.parametrize("text", ["0", "65536", "-1", "abc", "", " 80", "8_0"])
def test_parse_and_validate_port_rejects(text):
    with pytest.raises(PortError):
        parse_and_validate_port(text)


def test_port_error_is_value_error():
    with pytest.raises(ValueError):
        parse_and_validate_port("x")


def test_range_counts_both_ends():
    assert parse_and_validate_range("8080-8081") == (8080, 2)


def test_single_port_range_starts_at_port():
    start, length = parse_and_validate_range("443")
    assert start == 443
    assert parse_and_validate_range("443-444")[1] == length + 1


@pytest.mark.parametrize(
    "text, message",
    [
        ("1-2-3", "startPort-stopPort"),
        ("-5", "cannot be negative"),
        ("80-", "ending number"),
        ("81-80", "must be higher"),
        ("80-80", "must be higher"),
    ],
)
def test_range_errors(text, message):
    with pytest.raises(PortError, match=message):
        parse_and_validate_range(text)


def test_parse_split_port_full():
    mapping = parse_split_port("127.0.0.1", "8080", "80", "tcp")
    assert mapping.container_port == 80
    assert mapping.host_port == 8080
    assert mapping.protocol == "tcp"
    assert mapping.host_ip == "127.0.0.1"
    assert mapping.range == parse_and_validate_range("80")[1]


def test_parse_split_port_wildcard_ip_and_random_host_port():
    mapping = parse_split_port("0.0.0.0", "", "22", None)
    assert mapping == PortMapping(container_port=22, host_port=0, range=1)


def test_parse_split_port_ipv6_host():
    assert parse_split_port("::1", "2222", "22", "tcp").host_ip == "::1"


def test_parse_split_port_ipv4_mapped_host():
    assert parse_split_port("::ffff:127.0.0.1", "2222", "22", "tcp").host_ip == "127.0.0.1"


def test_parse_split_port_ranges():
    mapping = parse_split_port(None, "9000-9001", "80-81", "udp")
    assert mapping.container_port == 80
    assert mapping.host_port == 9000
    assert mapping.range == parse_and_validate_range("80-81")[1]


@pytest.mark.parametrize(
    "args, message",
    [
        ((None, None, "", None), "non-empty container port"),
        ((None, None, "80", ""), "non-empty protocol"),
        (("bogus", None, "80", None), "as an IP address"),
        (("fe80::1%eth0", None, "80", None), "as an IP address"),
        ((None, "8080-8081", "80", None), "different lengths"),
        ((None, "x", "80", None), "error parsing host port"),
        ((None, None, "0", None), "error parsing container port"),
    ],
)
def test_parse_split_port_errors(args, message):
    with pytest.raises(PortError, match=message):
        parse_split_port(*args)


def test_convert_port_map():
    result = convert_port_map({"80/tcp": [("", "8080")], "53/udp": [("", "5353"), ("", "5354")]})
    triples = {(m.container_port, m.host_port, m.protocol) for m in result}
    assert triples == {(80, 8080, "tcp"), (53, 5353, "udp"), (53, 5354, "udp")}


def test_convert_port_map_without_protocol():
    (mapping,) = convert_port_map({"80": [("", "8080")]})
    assert mapping.protocol == ""


def test_convert_port_map_empty():
    assert convert_port_map(None) == []


def test_convert_port_map_rejects_double_protocol():
    with pytest.raises(PortError, match="only be specified once"):
        convert_port_map({"80/tcp/udp": [("", "8080")]})


def test_convert_expose_merges_protocols():
    result = convert_expose({"80/tcp", "80/udp"})
    assert set(result) == {80}
    assert sorted(result[80].split(",")) == ["tcp", "udp"]


def test_convert_expose_range_and_default_protocol():
    result = convert_expose({"8000-8002/udp", "81"})
    assert set(result) == {8000, 8001, 8002, 81}
    assert result[81] == "tcp"
    assert {result[p] for p in (8000, 8001, 8002)} == {"udp"}


def test_convert_expose_rejects_invalid_port():
    with pytest.raises(PortError):
        convert_expose({"70000/tcp"})