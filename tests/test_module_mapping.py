"""Unit tests for module mapping resolution."""
import pytest

from model_errors import MappingError
from module_mapping import ModuleMappingBuilder, PredicateMatcher, PrefixMatcher, RegexMatcher
from simulation_config import SimulationConfig
from smart_waste_app import MASTER_MODULE, USER_INTERFACE, WASTE_INFO_MODULE, create_module_mapping


def test_prefix_pattern_expands_to_every_bin(application, topology):
    table = ModuleMappingBuilder().assign_pattern(WASTE_INFO_MODULE, PrefixMatcher("b-")).finalize(
        application, topology)
    assert len(table) == 25
    assert table.devices_for(WASTE_INFO_MODULE) == [n.name for n in topology.leaves()]
    for assignment in table:
        assert topology.get_node(assignment.device_id).name == assignment.device


def test_unknown_device_is_rejected(application, topology):
    mapping = ModuleMappingBuilder().assign(USER_INTERFACE, "data-centre")
    with pytest.raises(MappingError) as excinfo:
        mapping.finalize(application, topology)
    assert excinfo.value.subject == "data-centre"


def test_unknown_module_is_rejected(application, topology):
    mapping = ModuleMappingBuilder().assign("billing", "cloud")
    with pytest.raises(MappingError) as excinfo:
        mapping.finalize(application, topology)
    assert excinfo.value.subject == "billing"


def test_pattern_matching_nothing_is_fine(application, topology):
    table = ModuleMappingBuilder().assign_pattern(WASTE_INFO_MODULE, PrefixMatcher("z-")).finalize(
        application, topology)
    assert len(table) == 0


def test_regex_and_callable_matchers(application, topology):
    mapping = ModuleMappingBuilder()
    mapping.assign_pattern(MASTER_MODULE, RegexMatcher(r"a-\d+"))
    mapping.assign(WASTE_INFO_MODULE, lambda name: name.endswith("-0"))
    table = mapping.finalize(application, topology)
    assert table.devices_for(MASTER_MODULE) == [f"a-{i}" for i in range(5)]
    # a-0 plus b-<i>-0 for every area
    assert len(table.devices_for(WASTE_INFO_MODULE)) == 6


def test_predicate_matcher_keeps_its_description():
    matcher = PredicateMatcher(lambda name: name == "cloud", "cloud only")
    assert matcher.matches("cloud")
    assert not matcher.matches("b-0-0")
    assert str(matcher) == "cloud only"


def test_duplicate_assignments_collapse(application, topology):
    mapping = ModuleMappingBuilder()
    mapping.assign(USER_INTERFACE, "cloud")
    mapping.assign(USER_INTERFACE, "cloud")
    assert mapping.finalize(application, topology).as_dict() == {USER_INTERFACE: ["cloud"]}


def test_place_on_root(application, topology):
    table = ModuleMappingBuilder().place_on_root(MASTER_MODULE).finalize(application, topology)
    [assignment] = table.assignments
    assert assignment.device == "cloud"
    assert assignment.exclusive


def test_root_only_module_cannot_go_elsewhere(application, topology):
    mapping = ModuleMappingBuilder().place_on_root(MASTER_MODULE).assign(MASTER_MODULE, "proxy-server")
    with pytest.raises(MappingError, match="root only"):
        mapping.finalize(application, topology)


def test_non_callable_matcher_is_rejected():
    with pytest.raises(MappingError):
        ModuleMappingBuilder().assign_pattern(WASTE_INFO_MODULE, 42)


def test_default_smart_waste_mapping(application, topology, config):
    table = create_module_mapping(config).finalize(application, topology)
    mapping = table.as_dict()
    assert len(mapping[WASTE_INFO_MODULE]) == 25
    assert mapping[USER_INTERFACE] == ["cloud"]
    assert MASTER_MODULE not in mapping


def test_cloud_mode_pins_master_module(application, topology):
    table = create_module_mapping(SimulationConfig(cloud=True)).finalize(application, topology)
    assert table.devices_for(MASTER_MODULE) == ["cloud"]


def test_table_exports(application, topology, config):
    table = create_module_mapping(config).finalize(application, topology)
    df = table.to_frame()
    assert list(df.columns) == ["module", "device", "device_id", "exclusive"]
    assert len(df) == 26

    placement = table.to_yafs_placement("swms")
    assert len(placement["initialAllocation"]) == 26
    assert placement["initialAllocation"][-1] == {
        "module_name": USER_INTERFACE, "app": "swms", "id_resource": topology.root.id}


def test_root_placement_marks_an_earlier_literal_pair_exclusive(application, topology):
    mapping = ModuleMappingBuilder().assign(MASTER_MODULE, "cloud").place_on_root(MASTER_MODULE)
    table = mapping.finalize(application, topology)
    assert [(a.device, a.exclusive) for a in table] == [("cloud", True)]
