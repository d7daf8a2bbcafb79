import pytest

from clabkit.nodedef import IMPORT_ENVS_KEY, NodeDefinition


def test_from_dict_maps_yaml_keys():
    data = {
        "kind": "srl",
        "startup-config": "test_data/config.cfg",
        "startup-delay": 5,
        "enforce-startup-config": True,
        "auto-remove": False,
        "mgmt_ipv4": "172.20.20.2",
        "env-files": ["a.env"],
        "network-mode": "host",
        "cpu-set": "0-1",
        "SANs": ["node1.example.com"],
        "wait-for": ["node2"],
        "cpu": 2,
        "config": {"vars": {"x": 1}},
    }
    node = NodeDefinition.from_dict(data)
    assert node.kind == "srl"
    assert node.startup_config == "test_data/config.cfg"
    assert node.startup_delay == 5
    assert node.enforce_startup_config is True
    assert node.auto_remove is False
    assert node.mgmt_ipv4 == "172.20.20.2"
    assert node.env_files == ["a.env"]
    assert node.network_mode == "host"
    assert node.cpu_set == "0-1"
    assert node.sans == ["node1.example.com"]
    assert node.wait_for == ["node2"]
    assert node.cpu == 2.0
    assert node.config == {"vars": {"x": 1}}


def test_from_dict_none_gives_empty_definition():
    node = NodeDefinition.from_dict(None)
    assert node == NodeDefinition()
    assert node.auto_remove is None
    assert node.binds is None
    assert node.startup_delay == 0


def test_from_dict_stringifies_scalars_in_maps():
    node = NodeDefinition.from_dict({"env": {"PORT": 80, "FLAG": True}})
    assert node.env == {"PORT": "80", "FLAG": "true"}


def test_from_dict_rejects_unknown_key():
    with pytest.raises(ValueError):
        NodeDefinition.from_dict({"kind": "srl", "colour": "red"})


@pytest.mark.parametrize(
    "data",
    [
        {"startup-delay": -1},
        {"startup-delay": "soon"},
        {"auto-remove": "yes"},
        {"cpu": "many"},
        {"binds": "a:b"},
        {"env": ["A=1"]},
        {"image": ["x"]},
    ],
)
def test_from_dict_rejects_bad_types(data):
    with pytest.raises(ValueError):
        NodeDefinition.from_dict(data)


def test_import_envs_copies_missing_variables():
    node = NodeDefinition(env={IMPORT_ENVS_KEY: "true", "HOME": "/lab"})
    node.import_envs({"HOME": "/root", "SHELL": "/bin/sh"})
    assert node.env["HOME"] == "/lab"
    assert node.env["SHELL"] == "/bin/sh"
    assert node.env[IMPORT_ENVS_KEY] == "true"


def test_import_envs_without_flag_is_noop():
    node = NodeDefinition(env={"A": "1"})
    node.import_envs({"B": "2"})
    assert node.env == {"A": "1"}


def test_import_envs_flag_must_be_true():
    node = NodeDefinition(env={IMPORT_ENVS_KEY: "false"})
    node.import_envs({"B": "2"})
    assert "B" not in node.env


def test_import_envs_without_env_keeps_none():
    node = NodeDefinition()
    node.import_envs({"B": "2"})
    assert node.env is None


def test_import_envs_cuts_value_at_equals():
    node = NodeDefinition(env={IMPORT_ENVS_KEY: "true"})
    node.import_envs({"OPTS": "a=b"})
    assert node.env["OPTS"] == "a"


def test_import_envs_flag_key_from_yaml():
    node = NodeDefinition.from_dict({"env": {"__IMPORT_ENVS": True}})
    node.import_envs({"LAB": "one"})
    assert node.env == {"__IMPORT_ENVS": "true", "LAB": "one"}