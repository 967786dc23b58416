"""
Declarative description of a physical topology.

The description is a JSON object with three lists:

    {
      "nodes":     [{"id", "name", "parent", "level", "uplink_latency",
                     "mips", "ram", "up_bw", "down_bw", "rate_per_mips",
                     "busy_power", "idle_power", "cost", "cost_per_mem",
                     "cost_per_storage", "cost_per_bw", "storage"}, ...],
      "sensors":   [{"id", "name", "tuple_type", "gateway", "latency",
                     "distribution"}, ...],
      "actuators": [{"id", "name", "actuator_type", "gateway", "latency"}, ...]
    }

``parent`` is the id of a node declared earlier in the list (null for the
root); ``gateway`` is the id of a leaf node. Every field is required and no
other field is accepted. Loading is all-or-nothing.
"""
import json
import logging
from pathlib import Path

from distributions import distribution_from_dict
from fog_topology_utils import (
    NODE_PARAM_FIELDS,
    Actuator,
    PhysicalTopology,
    Sensor,
    check_number,
    make_fog_node,
)
from model_errors import ConfigError, TopologyStructureError

TOP_LEVEL_FIELDS = ("nodes", "sensors", "actuators")
NODE_FIELDS = ("id", "name", "parent", "level", "uplink_latency") + NODE_PARAM_FIELDS
SENSOR_FIELDS = ("id", "name", "tuple_type", "gateway", "latency", "distribution")
ACTUATOR_FIELDS = ("id", "name", "actuator_type", "gateway", "latency")


def topology_to_dict(topology):
    """Describe a built topology in the declarative format"""
    nodes = []
    for node in topology.nodes:
        entry = {
            "id": node.id,
            "name": node.name,
            "parent": node.parent_id,
            "level": node.level,
            "uplink_latency": node.uplink_latency,
        }
        entry.update({k: getattr(node, k) for k in NODE_PARAM_FIELDS})
        nodes.append(entry)
    sensors = [
        {
            "id": s.id,
            "name": s.name,
            "tuple_type": s.tuple_type,
            "gateway": s.gateway_id,
            "latency": s.latency,
            "distribution": s.distribution.to_dict(),
        }
        for s in topology.sensors
    ]
    actuators = [
        {
            "id": a.id,
            "name": a.name,
            "actuator_type": a.actuator_type,
            "gateway": a.gateway_id,
            "latency": a.latency,
        }
        for a in topology.actuators
    ]
    return {"nodes": nodes, "sensors": sensors, "actuators": actuators}


def save_topology_json(topology, path):
    path = Path(path)
    with open(path, "w") as f:
        json.dump(topology_to_dict(topology), f, indent=2)
    logging.info(f"Saved topology description to {path}")
    return path


def load_topology(path, allocator):
    """Read a JSON topology description and build it"""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Topology description {path} is not valid JSON: {e}", str(path)) from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"Topology description {path} is not UTF-8 text: {e}", str(path)) from e
    except OSError as e:
        raise ConfigError(f"Cannot read topology description {path}: {e}", str(path)) from e
    topology = topology_from_dict(data, allocator)
    logging.info(f"Loaded topology from {path}: {topology!r}")
    return topology


def topology_from_dict(data, allocator):
    """
    Build a PhysicalTopology from a parsed description.

    ConfigError: missing/unknown fields, wrong types, negative or
    non-finite values.
    TopologyStructureError: duplicate id or name across devices, sensors
    and actuators, parent not declared earlier, self-parent, level not
    matching depth, unresolved gateway.

    The allocator is advanced past the largest declared id so entities
    created afterwards in the same run keep unique ids.
    """
    _check_fields(data, TOP_LEVEL_FIELDS, "topology description")
    for key in TOP_LEVEL_FIELDS:
        if not isinstance(data[key], list):
            raise ConfigError(f"'{key}' must be a list, got: {type(data[key]).__name__}", key)
    if not data["nodes"]:
        raise TopologyStructureError("Topology description declares no nodes")

    declared_ids = set()
    nodes = {}
    names = set()
    for entry in data["nodes"]:
        _check_fields(entry, NODE_FIELDS, f"node {_label(entry)}")
        node_id = _check_id(entry["id"], entry["name"])
        name = _check_name(entry["name"])
        if node_id in declared_ids:
            raise TopologyStructureError(f"Duplicate id {node_id} in node '{name}'", node_id)
        _claim_name(name, names)

        parent_id = entry["parent"]
        if parent_id is None:
            expected_level = 0
        else:
            parent_id = _check_id(parent_id, name)
            if parent_id == node_id:
                raise TopologyStructureError(f"Node '{name}' is its own parent (cyclic parent chain)", name)
            if parent_id not in nodes:
                raise TopologyStructureError(
                    f"Node '{name}' references parent {parent_id} which is not defined before it", name)
            expected_level = nodes[parent_id].level + 1

        level = entry["level"]
        if isinstance(level, bool) or not isinstance(level, int):
            raise ConfigError(f"Level of '{name}' must be an integer, got: {level!r}", name)
        if level != expected_level:
            raise TopologyStructureError(
                f"Node '{name}' declares level {level} but sits at depth {expected_level}", name)

        params = {k: entry[k] for k in NODE_PARAM_FIELDS}
        nodes[node_id] = make_fog_node(node_id, name, level, parent_id, entry["uplink_latency"], params)
        declared_ids.add(node_id)

    sensors = []
    for entry in data["sensors"]:
        _check_fields(entry, SENSOR_FIELDS, f"sensor {_label(entry)}")
        name = _check_name(entry["name"])
        _claim_name(name, names)
        sensor_id = _claim_id(entry["id"], name, declared_ids)
        sensors.append(Sensor(
            id=sensor_id,
            name=name,
            tuple_type=_check_name(entry["tuple_type"]),
            gateway_id=_check_gateway(entry["gateway"], name, nodes),
            latency=check_number(entry["latency"], "latency", name),
            distribution=distribution_from_dict(entry["distribution"], owner=name),
        ))

    actuators = []
    for entry in data["actuators"]:
        _check_fields(entry, ACTUATOR_FIELDS, f"actuator {_label(entry)}")
        name = _check_name(entry["name"])
        _claim_name(name, names)
        actuator_id = _claim_id(entry["id"], name, declared_ids)
        actuators.append(Actuator(
            id=actuator_id,
            name=name,
            actuator_type=_check_name(entry["actuator_type"]),
            gateway_id=_check_gateway(entry["gateway"], name, nodes),
            latency=check_number(entry["latency"], "latency", name),
        ))

    topology = PhysicalTopology(nodes.values(), sensors, actuators).check_structure()
    allocator.advance_past(max(declared_ids))
    return topology


def _label(entry):
    if isinstance(entry, dict):
        return repr(entry.get("name", entry.get("id")))
    return repr(entry)


def _check_fields(entry, expected, what):
    if not isinstance(entry, dict):
        raise ConfigError(f"{what} must be an object, got: {entry!r}")
    missing = [k for k in expected if k not in entry]
    if missing:
        raise ConfigError(f"{what} missing required fields: {missing}", _label(entry))
    unknown = sorted(set(entry) - set(expected))
    if unknown:
        raise ConfigError(f"{what} has unknown fields: {unknown}", _label(entry))


def _check_id(value, owner):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"Id of '{owner}' must be a non-negative integer, got: {value!r}", owner)
    return value


def _check_name(value):
    if not isinstance(value, str) or not value:
        raise ConfigError(f"Names and types must be non-empty strings, got: {value!r}", value)
    return value


def _claim_id(value, owner, declared_ids):
    entity_id = _check_id(value, owner)
    if entity_id in declared_ids:
        raise TopologyStructureError(f"Duplicate id {entity_id} in '{owner}'", entity_id)
    declared_ids.add(entity_id)
    return entity_id


def _claim_name(name, names):
    if name in names:
        raise TopologyStructureError(f"Duplicate name '{name}'", name)
    names.add(name)


def _check_gateway(value, owner, nodes):
    gateway_id = _check_id(value, owner)
    if gateway_id not in nodes:
        raise TopologyStructureError(f"'{owner}' references unknown gateway {gateway_id}", owner)
    return gateway_id
