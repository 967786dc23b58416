"""Unit tests for the declarative topology description."""
import copy
import json

import pytest

from distributions import UniformDistribution
from id_allocator import IdAllocator
from model_errors import ConfigError, TopologyStructureError
from simulation_config import TOPOLOGY2_FILE
from topology_loader import load_topology, save_topology_json, topology_from_dict, topology_to_dict


@pytest.fixture
def description(topology):
    """JSON-clean description of the generated 5x5 topology"""
    return json.loads(json.dumps(topology_to_dict(topology)))


def node_entry(description, name):
    return next(n for n in description["nodes"] if n["name"] == name)


def test_round_trip_reproduces_the_generated_topology(topology, tmp_path):
    path = save_topology_json(topology, tmp_path / "topology.json")
    reloaded = load_topology(path, IdAllocator())

    assert len(reloaded.nodes) == len(topology.nodes)
    assert reloaded.nodes == topology.nodes
    assert reloaded.sensors == topology.sensors
    assert reloaded.actuators == topology.actuators
    for node in topology.nodes:
        other = reloaded.get_node(node.id)
        assert (other.parent_id, other.level) == (node.parent_id, node.level)


def test_loading_advances_the_allocator(description):
    allocator = IdAllocator()
    topology = topology_from_dict(description, allocator)
    largest = max([n.id for n in topology.nodes] + [s.id for s in topology.sensors]
                  + [a.id for a in topology.actuators])
    assert allocator.next_id() == largest + 1


def test_bundled_topology2_description():
    topology = load_topology(TOPOLOGY2_FILE, IdAllocator())
    assert topology.root.name == "cloud"
    assert [n.name for n in topology.leaves()] == ["B-0-0", "B-0-1"]
    assert topology.sensor_types == {"ULTRASONIC"}
    assert topology.actuator_types == {"SWITCH"}
    assert topology.sensors[1].distribution == UniformDistribution(3.0, 7.0)


def test_unknown_field_is_fatal(description):
    node_entry(description, "a-1")["colour"] = "blue"
    with pytest.raises(ConfigError, match="unknown fields"):
        topology_from_dict(description, IdAllocator())


def test_missing_field_is_fatal(description):
    del description["sensors"][3]["latency"]
    with pytest.raises(ConfigError, match="missing required fields"):
        topology_from_dict(description, IdAllocator())


def test_unknown_top_level_section_is_fatal(description):
    description["links"] = []
    with pytest.raises(ConfigError):
        topology_from_dict(description, IdAllocator())


def test_wrong_value_type_is_fatal(description):
    node_entry(description, "b-0-0")["mips"] = "500"
    with pytest.raises(ConfigError, match="must be a number"):
        topology_from_dict(description, IdAllocator())


def test_negative_latency_is_fatal(description):
    description["actuators"][0]["latency"] = -1.0
    with pytest.raises(ConfigError, match="non-negative"):
        topology_from_dict(description, IdAllocator())


def test_unknown_distribution_type_is_fatal(description):
    description["sensors"][0]["distribution"] = {"type": "poisson", "value": 5}
    with pytest.raises(ConfigError, match="Unknown distribution"):
        topology_from_dict(description, IdAllocator())


def test_parent_must_exist(description):
    node_entry(description, "a-2")["parent"] = 9999
    with pytest.raises(TopologyStructureError) as excinfo:
        topology_from_dict(description, IdAllocator())
    assert excinfo.value.subject == "a-2"


def test_parent_must_be_declared_first(description):
    reordered = copy.deepcopy(description)
    area = node_entry(reordered, "a-0")
    reordered["nodes"].remove(area)
    reordered["nodes"].append(area)
    with pytest.raises(TopologyStructureError, match="not defined before it"):
        topology_from_dict(reordered, IdAllocator())


def test_self_parent_is_a_cycle(description):
    proxy = node_entry(description, "proxy-server")
    proxy["parent"] = proxy["id"]
    with pytest.raises(TopologyStructureError, match="cyclic"):
        topology_from_dict(description, IdAllocator())


def test_duplicate_node_id_is_fatal(description):
    node_entry(description, "a-1")["id"] = node_entry(description, "a-0")["id"]
    with pytest.raises(TopologyStructureError, match="Duplicate id"):
        topology_from_dict(description, IdAllocator())


def test_duplicate_id_across_entity_kinds_is_fatal(description):
    description["sensors"][0]["id"] = description["nodes"][0]["id"]
    with pytest.raises(TopologyStructureError, match="Duplicate id"):
        topology_from_dict(description, IdAllocator())


def test_duplicate_name_is_fatal(description):
    node_entry(description, "b-0-1")["name"] = "b-0-0"
    with pytest.raises(TopologyStructureError, match="Duplicate name"):
        topology_from_dict(description, IdAllocator())


def test_declared_level_must_match_depth(description):
    node_entry(description, "b-1-1")["level"] = 2
    with pytest.raises(TopologyStructureError, match="declares level 2"):
        topology_from_dict(description, IdAllocator())


def test_gateway_must_resolve(description):
    description["sensors"][0]["gateway"] = 9999
    with pytest.raises(TopologyStructureError, match="unknown gateway"):
        topology_from_dict(description, IdAllocator())


def test_gateway_must_be_a_leaf(description):
    description["actuators"][0]["gateway"] = node_entry(description, "a-0")["id"]
    with pytest.raises(TopologyStructureError, match="not a leaf"):
        topology_from_dict(description, IdAllocator())


def test_two_roots_are_rejected(description):
    bin_node = node_entry(description, "b-4-4")
    bin_node["parent"] = None
    bin_node["level"] = 0
    bin_node["uplink_latency"] = 0.0
    with pytest.raises(TopologyStructureError, match="exactly one root"):
        topology_from_dict(description, IdAllocator())


def test_invalid_json_is_a_config_error(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{\"nodes\": [")
    with pytest.raises(ConfigError):
        load_topology(path, IdAllocator())


def test_duplicate_sensor_name_is_fatal(description):
    description["sensors"][1]["name"] = description["sensors"][0]["name"]
    with pytest.raises(TopologyStructureError, match="Duplicate name") as excinfo:
        topology_from_dict(description, IdAllocator())
    assert excinfo.value.subject == description["sensors"][0]["name"]


def test_sensor_cannot_reuse_a_device_name(description):
    description["sensors"][0]["name"] = "cloud"
    with pytest.raises(TopologyStructureError, match="Duplicate name"):
        topology_from_dict(description, IdAllocator())


def test_actuator_cannot_reuse_a_sensor_name(description):
    description["actuators"][2]["name"] = description["sensors"][2]["name"]
    with pytest.raises(TopologyStructureError, match="Duplicate name"):
        topology_from_dict(description, IdAllocator())


@pytest.mark.parametrize("value", [float("nan"), float("inf")])
def test_non_finite_latency_in_file_is_fatal(description, tmp_path, value):
    node_entry(description, "a-1")["uplink_latency"] = value
    path = tmp_path / "non_finite.json"
    # json writes these as the NaN / Infinity literals, which json.load accepts
    path.write_text(json.dumps(description))
    with pytest.raises(ConfigError, match="finite") as excinfo:
        load_topology(path, IdAllocator())
    assert excinfo.value.subject == "a-1"


def test_non_finite_distribution_value_is_fatal(description):
    description["sensors"][0]["distribution"] = {"type": "deterministic", "value": float("inf")}
    with pytest.raises(ConfigError, match="finite"):
        topology_from_dict(description, IdAllocator())


def test_non_utf8_file_is_a_config_error(tmp_path):
    path = tmp_path / "latin1.json"
    path.write_bytes(b'{"nodes": "\xff\xfe"}')
    with pytest.raises(ConfigError) as excinfo:
        load_topology(path, IdAllocator())
    assert excinfo.value.subject == str(path)


def test_missing_file_is_a_config_error(tmp_path):
    path = tmp_path / "absent.json"
    with pytest.raises(ConfigError, match="Cannot read") as excinfo:
        load_topology(path, IdAllocator())
    assert excinfo.value.subject == str(path)
