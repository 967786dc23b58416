"""
Physical topology of a fog deployment: a tree of fog devices with sensors
and actuators attached to the leaf devices.

Devices are kept in an arena keyed by id and point at their parent by id,
so a built topology holds no object references between entities and can be
handed around as read-only data.
"""
import json
import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import networkx as nx
import numpy as np
import pandas as pd

from distributions import distribution_from_dict
from model_errors import ConfigError, TopologyStructureError

# Resource, power and cost parameters every fog device is created with
NODE_PARAM_FIELDS = (
    "mips", "ram", "up_bw", "down_bw", "rate_per_mips", "busy_power", "idle_power",
    "cost", "cost_per_mem", "cost_per_storage", "cost_per_bw", "storage",
)


@dataclass(frozen=True)
class FogNode:
    """
    One fog device.
    mips: processing capacity
    ram: memory capacity (MB)
    up_bw / down_bw: uplink / downlink bandwidth
    level: depth in the tree, 0 for the root
    uplink_latency: latency of the link to the parent (0 for the root)
    """
    id: int
    name: str
    level: int
    parent_id: Optional[int]
    uplink_latency: float
    mips: float
    ram: float
    up_bw: float
    down_bw: float
    rate_per_mips: float
    busy_power: float
    idle_power: float
    cost: float
    cost_per_mem: float
    cost_per_storage: float
    cost_per_bw: float
    storage: float


@dataclass(frozen=True)
class Sensor:
    id: int
    name: str
    tuple_type: str
    gateway_id: int
    latency: float
    distribution: Any


@dataclass(frozen=True)
class Actuator:
    id: int
    name: str
    actuator_type: str
    gateway_id: int
    latency: float


def check_number(value, what, owner):
    """Reject non-numbers (bools included), NaN, infinities and negative values"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{what} of {owner} must be a number, got: {value!r}", owner)
    if not math.isfinite(value):
        raise ConfigError(f"{what} of {owner} must be finite, got: {value}", owner)
    if value < 0:
        raise ConfigError(f"{what} of {owner} must be non-negative, got: {value}", owner)
    return value


def make_fog_node(node_id, name, level, parent_id, uplink_latency, params):
    """Create a FogNode from a parameter dict, taking the values as given"""
    if not isinstance(params, dict):
        raise ConfigError(f"Parameters of {name} must be a dict, got: {params!r}", name)
    missing = [k for k in NODE_PARAM_FIELDS if k not in params]
    if missing:
        raise ConfigError(f"Fog device {name} missing parameters: {missing}", name)
    unknown = sorted(set(params) - set(NODE_PARAM_FIELDS))
    if unknown:
        raise ConfigError(f"Fog device {name} has unknown parameters: {unknown}", name)
    for key in NODE_PARAM_FIELDS:
        check_number(params[key], key, name)
    check_number(uplink_latency, "uplink latency", name)
    return FogNode(
        id=node_id,
        name=name,
        level=level,
        parent_id=parent_id,
        uplink_latency=uplink_latency,
        **{k: params[k] for k in NODE_PARAM_FIELDS},
    )


class PhysicalTopology:
    """Fog devices, sensors and actuators of one run"""

    def __init__(self, nodes, sensors=(), actuators=()):
        self.nodes: Tuple[FogNode, ...] = tuple(nodes)
        self.sensors: Tuple[Sensor, ...] = tuple(sensors)
        self.actuators: Tuple[Actuator, ...] = tuple(actuators)

        self._by_id: Dict[int, FogNode] = {}
        self._by_name: Dict[str, FogNode] = {}
        self._children: Dict[int, List[int]] = {}
        for node in self.nodes:
            if node.id in self._by_id:
                raise TopologyStructureError(f"Duplicate fog device id {node.id}", node.id)
            if node.name in self._by_name:
                raise TopologyStructureError(f"Duplicate fog device name '{node.name}'", node.name)
            self._by_id[node.id] = node
            self._by_name[node.name] = node
            self._children[node.id] = []
        for node in self.nodes:
            if node.parent_id is not None and node.parent_id in self._children:
                self._children[node.parent_id].append(node.id)

    def __len__(self):
        return len(self.nodes)

    def __repr__(self):
        return (f"PhysicalTopology(nodes={len(self.nodes)}, sensors={len(self.sensors)}, "
                f"actuators={len(self.actuators)})")

    @property
    def root(self):
        root = next((n for n in self.nodes if n.parent_id is None), None)
        if root is None:
            raise TopologyStructureError("Topology has no root device")
        return root

    def get_node(self, node_id):
        return self._by_id[node_id]

    def node_by_name(self, name):
        return self._by_name.get(name)

    def children(self, node_id):
        return [self._by_id[i] for i in self._children[node_id]]

    def parent(self, node_id):
        parent_id = self._by_id[node_id].parent_id
        return None if parent_id is None else self._by_id[parent_id]

    def leaves(self):
        return [n for n in self.nodes if not self._children[n.id]]

    @property
    def device_names(self):
        return [n.name for n in self.nodes]

    @property
    def sensor_types(self):
        return {s.tuple_type for s in self.sensors}

    @property
    def actuator_types(self):
        return {a.actuator_type for a in self.actuators}

    def check_structure(self):
        """
        Verify the tree invariants, raising TopologyStructureError on the
        first violation:
          - exactly one root, at level 0
          - every parent reference resolves and the parent chain has no cycle
          - level(node) == level(parent) + 1
          - ids and names unique across devices, sensors and actuators
          - every sensor/actuator gateway is an existing leaf device
        """
        roots = [n for n in self.nodes if n.parent_id is None]
        if len(roots) != 1:
            raise TopologyStructureError(
                f"Topology must have exactly one root, found {[n.name for n in roots]}",
                [n.name for n in roots])

        for node in self.nodes:
            if node.parent_id is not None and node.parent_id not in self._by_id:
                raise TopologyStructureError(
                    f"Fog device '{node.name}' references unknown parent {node.parent_id}", node.name)

        tree = nx.DiGraph()
        tree.add_nodes_from(self._by_id)
        tree.add_edges_from((n.parent_id, n.id) for n in self.nodes if n.parent_id is not None)
        try:
            cycle = nx.find_cycle(tree)
        except nx.NetworkXNoCycle:
            cycle = None
        if cycle:
            names = [self._by_id[u].name for u, _ in cycle]
            raise TopologyStructureError(f"Cyclic parent chain through {names}", names[0])

        for node in self.nodes:
            expected = 0 if node.parent_id is None else self._by_id[node.parent_id].level + 1
            if node.level != expected:
                raise TopologyStructureError(
                    f"Fog device '{node.name}' has level {node.level}, expected {expected}", node.name)

        seen = set(self._by_id)
        names = set(self._by_name)
        for entity in (*self.sensors, *self.actuators):
            if entity.id in seen:
                raise TopologyStructureError(f"Duplicate entity id {entity.id} ('{entity.name}')", entity.id)
            if entity.name in names:
                raise TopologyStructureError(f"Duplicate entity name '{entity.name}'", entity.name)
            seen.add(entity.id)
            names.add(entity.name)

        leaf_ids = {n.id for n in self.leaves()}
        for entity in (*self.sensors, *self.actuators):
            if entity.gateway_id not in self._by_id:
                raise TopologyStructureError(
                    f"'{entity.name}' references unknown gateway {entity.gateway_id}", entity.name)
            if entity.gateway_id not in leaf_ids:
                raise TopologyStructureError(
                    f"'{entity.name}' gateway '{self._by_id[entity.gateway_id].name}' is not a leaf device",
                    entity.name)
        return self

    def to_networkx(self):
        """
        Graph view of the topology in YAFS conventions: node attribute
        ``IPT`` is the processing rate, edge attributes ``BW`` and ``PR``
        are bandwidth and propagation delay.
        Numeric attributes are always floats.
        """
        G = nx.Graph()
        for node in self.nodes:
            G.add_node(node.id, name=node.name, type="fog", level=node.level,
                       IPT=float(node.mips), RAM=float(node.ram))
            if node.parent_id is not None:
                G.add_edge(node.id, node.parent_id, BW=float(node.up_bw), PR=float(node.uplink_latency))
        for sensor in self.sensors:
            G.add_node(sensor.id, name=sensor.name, type="sensor", tuple_type=sensor.tuple_type,
                       distribution=sensor.distribution.to_dict())
            G.add_edge(sensor.id, sensor.gateway_id, PR=float(sensor.latency))
        for act in self.actuators:
            G.add_node(act.id, name=act.name, type="actuator", actuator_type=act.actuator_type)
            G.add_edge(act.id, act.gateway_id, PR=float(act.latency))
        return G

    def nodes_frame(self):
        """One row per fog device, parent given by name"""
        rows = []
        for node in self.nodes:
            row = asdict(node)
            parent = self.parent(node.id)
            row["parent_name"] = parent.name if parent else None
            row["sensors"] = sum(1 for s in self.sensors if s.gateway_id == node.id)
            row["actuators"] = sum(1 for a in self.actuators if a.gateway_id == node.id)
            rows.append(row)
        return pd.DataFrame(rows)


@dataclass
class TierSpec:
    """
    One tier of the procedural branching schedule.
    name: device name, or name prefix when ``indexed``
    count: devices per parent
    indexed: append the position path (e.g. ``b-3-1``) to the name
    """
    name: str
    count: int
    params: Dict[str, Any]
    uplink_latency: float
    indexed: bool = True

    @classmethod
    def from_dict(cls, data):
        try:
            tier = cls(**data)
        except TypeError as e:
            raise ConfigError(f"Malformed tier {data.get('name')!r}: {e}", data.get("name")) from e
        if isinstance(tier.count, bool) or not isinstance(tier.count, int) or tier.count < 1:
            raise ConfigError(f"Tier '{tier.name}' needs a positive integer count, got: {tier.count!r}",
                              tier.name)
        if not tier.indexed and tier.count != 1:
            raise ConfigError(f"Tier '{tier.name}' repeats {tier.count} times but is not indexed",
                              tier.name)
        return tier

    def device_name(self, path):
        return f"{self.name}-{'-'.join(path)}" if self.indexed else self.name


@dataclass
class _BuildState:
    allocator: Any
    sensor: Dict[str, Any]
    actuator: Dict[str, Any]
    nodes: List[FogNode] = field(default_factory=list)
    sensors: List[Sensor] = field(default_factory=list)
    actuators: List[Actuator] = field(default_factory=list)


def create_tiered_topology(root_params, schedule, sensor, actuator, allocator):
    """
    Build a fog topology top-down from a fixed branching schedule.

    root_params: parameters of the root device, including its ``name``
    schedule: list of tier dicts (see TierSpec), top-down; every device of
        the last tier is a leaf and gets one sensor and one actuator
    sensor: ``{"prefix", "tuple_type", "latency", "distribution"}``
    actuator: ``{"prefix", "actuator_type", "latency"}``
    allocator: IdAllocator shared by every entity of the run

    With a schedule of one proxy tier, A areas and B bins per area the
    result has 1 + 1 + A + A*B devices and A*B sensors and actuators.
    """
    tiers = [TierSpec.from_dict(dict(t)) for t in schedule]
    params = dict(root_params)
    if "name" not in params:
        raise ConfigError("Root parameters need a 'name'")
    root_name = params.pop("name")

    state = _BuildState(allocator=allocator, sensor=dict(sensor), actuator=dict(actuator))
    for key in ("prefix", "tuple_type", "latency", "distribution"):
        if key not in state.sensor:
            raise ConfigError(f"Sensor declaration missing '{key}'", key)
    for key in ("prefix", "actuator_type", "latency"):
        if key not in state.actuator:
            raise ConfigError(f"Actuator declaration missing '{key}'", key)
    check_number(state.sensor["latency"], "latency", "sensor declaration")
    check_number(state.actuator["latency"], "latency", "actuator declaration")
    distribution = state.sensor["distribution"]
    if isinstance(distribution, dict):
        state.sensor["distribution"] = distribution_from_dict(distribution, owner="sensor declaration")

    root = make_fog_node(allocator.next_id(), root_name, 0, None, 0.0, params)
    state.nodes.append(root)
    if tiers:
        _add_tier(state, tiers, 0, root, [])
    else:
        _attach_endpoints(state, root, [])

    topology = PhysicalTopology(state.nodes, state.sensors, state.actuators).check_structure()
    logging.info(f"Created topology with {len(topology.nodes)} fog devices, "
                 f"{len(topology.sensors)} sensors and {len(topology.actuators)} actuators")
    return topology


def _add_tier(state, tiers, depth, parent, path):
    tier = tiers[depth]
    is_leaf_tier = depth == len(tiers) - 1
    for i in range(tier.count):
        child_path = path + [str(i)] if tier.indexed else path
        node = make_fog_node(state.allocator.next_id(), tier.device_name(child_path),
                             parent.level + 1, parent.id, tier.uplink_latency, tier.params)
        state.nodes.append(node)
        logging.debug(f"Added fog device {node.name} (id {node.id}) under {parent.name}")
        if is_leaf_tier:
            _attach_endpoints(state, node, child_path)
        else:
            _add_tier(state, tiers, depth + 1, node, child_path)


def _attach_endpoints(state, gateway, path):
    suffix = "-".join(path) if path else gateway.name
    sensor = Sensor(
        id=state.allocator.next_id(),
        name=f"{state.sensor['prefix']}-{suffix}",
        tuple_type=state.sensor["tuple_type"],
        gateway_id=gateway.id,
        latency=state.sensor["latency"],
        distribution=state.sensor["distribution"],
    )
    actuator = Actuator(
        id=state.allocator.next_id(),
        name=f"{state.actuator['prefix']}-{suffix}",
        actuator_type=state.actuator["actuator_type"],
        gateway_id=gateway.id,
        latency=state.actuator["latency"],
    )
    state.sensors.append(sensor)
    state.actuators.append(actuator)


def sanitize_graph_for_gexf(G):
    """
    Convert attribute values that GEXF can't handle (lists, dicts, numpy types)
    into JSON-serializable scalars/strings.
    """
    for n, attrs in G.nodes(data=True):
        for k, v in list(attrs.items()):
            attrs[k] = _gexf_value(v)

    for u, v, attrs in G.edges(data=True):
        for k, val in list(attrs.items()):
            attrs[k] = _gexf_value(val)
    return G


def _gexf_value(v):
    if isinstance(v, np.generic):
        return v.item()
    if isinstance(v, (list, dict, tuple, np.ndarray)):
        if isinstance(v, np.ndarray):
            v = v.tolist()
        return json.dumps(v)
    if not isinstance(v, (str, int, float, bool)):
        return str(v)
    return v


def write_topology_gexf(topology, path):
    G = sanitize_graph_for_gexf(topology.to_networkx())
    nx.write_gexf(G, str(path))
    logging.info(f"Saved topology graph to {path}")
    return path
