"""
Application model of a distributed fog application: modules (vertices),
typed tuple edges, per-module selectivity and the loops whose end-to-end
latency the simulation engine should monitor.

Edges may name sensor and actuator tuple types that no device provides yet;
those references are only checked by ``Application.validate`` against a
physical topology.
"""
import logging
import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

import networkx as nx

from model_errors import AppReferenceError, ConfigError, DuplicateDeclarationError, FrozenModelError


class TupleDirection(Enum):
    UP = "up"        # towards the cloud
    DOWN = "down"    # towards the leaves


class EdgeKind(Enum):
    SENSOR = "sensor"
    MODULE = "module"
    ACTUATOR = "actuator"


@dataclass(frozen=True)
class AppModule:
    name: str
    ram: float


@dataclass(frozen=True)
class AppEdge:
    """
    source / destination: module names, or a sensor tuple type (source of a
        SENSOR edge) / actuator type (destination of an ACTUATOR edge)
    cpu_length: processing cost of one tuple
    nw_length: network size of one tuple
    periodicity: emission period for periodic edges, None otherwise
    """
    source: str
    destination: str
    cpu_length: float
    nw_length: float
    tuple_type: str
    direction: TupleDirection
    kind: EdgeKind
    periodicity: Optional[float] = None

    @property
    def is_periodic(self):
        return self.periodicity is not None


@dataclass(frozen=True)
class SelectivityRule:
    """``fraction`` tuples of ``outgoing`` emitted per ``incoming`` tuple at ``module``"""
    module: str
    incoming: str
    outgoing: str
    fraction: float


@dataclass(frozen=True)
class AppLoop:
    entries: Tuple[str, ...]


def _non_negative(value, what, owner):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{what} of {owner} must be a number, got: {value!r}", owner)
    if not math.isfinite(value):
        raise ConfigError(f"{what} of {owner} must be finite, got: {value}", owner)
    if value < 0:
        raise ConfigError(f"{what} of {owner} must be non-negative, got: {value}", owner)
    return value


def _member(enum_cls, value, owner):
    try:
        return enum_cls(value)
    except ValueError as e:
        raise ConfigError(f"Invalid {enum_cls.__name__} {value!r} for {owner}", owner) from e


class Application:
    """Builder and container for one application graph"""

    def __init__(self, app_id):
        self.app_id = app_id
        self.modules: Dict[str, AppModule] = {}
        self.edges: List[AppEdge] = []
        self.selectivity: List[SelectivityRule] = []
        self.loops: List[AppLoop] = []
        self.frozen = False

    def __repr__(self):
        return (f"Application({self.app_id!r}, modules={len(self.modules)}, edges={len(self.edges)}, "
                f"selectivity={len(self.selectivity)}, loops={len(self.loops)})")

    def freeze(self):
        """
        Make the application read-only. Afterwards every add_* call raises
        FrozenModelError.
        """
        self.modules = MappingProxyType(dict(self.modules))
        self.edges = tuple(self.edges)
        self.selectivity = tuple(self.selectivity)
        self.loops = tuple(self.loops)
        self.frozen = True
        return self

    def _check_mutable(self):
        if self.frozen:
            raise FrozenModelError(f"Application {self.app_id} is frozen", self.app_id)

    def add_module(self, name, ram):
        self._check_mutable()
        if not isinstance(name, str) or not name:
            raise ConfigError(f"Module name must be a non-empty string, got: {name!r}", name)
        if name in self.modules:
            raise DuplicateDeclarationError(f"Module '{name}' is already declared in app {self.app_id}", name)
        module = AppModule(name, _non_negative(ram, "RAM", name))
        self.modules[name] = module
        return module

    def add_edge(self, source, destination, cpu_length, nw_length, tuple_type,
                 direction, kind, periodicity=None):
        """Record an edge; module and tag references are checked by validate()"""
        self._check_mutable()
        label = f"edge {source}->{destination}"
        edge = AppEdge(
            source=source,
            destination=destination,
            cpu_length=_non_negative(cpu_length, "CPU length", label),
            nw_length=_non_negative(nw_length, "network length", label),
            tuple_type=tuple_type,
            direction=_member(TupleDirection, direction, label),
            kind=_member(EdgeKind, kind, label),
            periodicity=None if periodicity is None else _non_negative(periodicity, "periodicity", label),
        )
        self.edges.append(edge)
        return edge

    def add_selectivity(self, module, incoming, outgoing, fraction):
        """
        Rules for the same (module, incoming) pair are independent: a module
        may emit 1.0 of one type and 0.05 of another per incoming tuple.
        """
        self._check_mutable()
        _non_negative(fraction, "selectivity fraction", f"{module}:{incoming}->{outgoing}")
        for rule in self.selectivity:
            if (rule.module, rule.incoming, rule.outgoing) == (module, incoming, outgoing):
                raise DuplicateDeclarationError(
                    f"Selectivity {incoming}->{outgoing} already declared for module '{module}'", module)
        rule = SelectivityRule(module, incoming, outgoing, fraction)
        self.selectivity.append(rule)
        return rule

    def add_loop(self, entries):
        self._check_mutable()
        entries = tuple(entries)
        if not entries:
            raise ConfigError(f"Empty loop in app {self.app_id}")
        loop = AppLoop(entries)
        self.loops.append(loop)
        return loop

    def selectivity_for(self, module, incoming):
        return [r for r in self.selectivity if r.module == module and r.incoming == incoming]

    def validate(self, topology) -> Optional[AppReferenceError]:
        """
        Check every reference against the declared modules and the sensor /
        actuator types of ``topology``. Returns the first violation, or None.
        Loop entries only need to resolve one by one; consecutive entries
        don't have to be joined by an edge.
        """
        sensor_types = topology.sensor_types
        actuator_types = topology.actuator_types

        for edge in self.edges:
            if edge.kind is EdgeKind.SENSOR:
                if edge.source not in sensor_types:
                    return AppReferenceError(
                        f"Edge {edge.source}->{edge.destination}: no sensor emits '{edge.source}'", edge.source)
            elif edge.source not in self.modules:
                return AppReferenceError(
                    f"Edge {edge.source}->{edge.destination}: undeclared module '{edge.source}'", edge.source)

            if edge.kind is EdgeKind.ACTUATOR:
                if edge.destination not in actuator_types:
                    return AppReferenceError(
                        f"Edge {edge.source}->{edge.destination}: no actuator of type '{edge.destination}'",
                        edge.destination)
            elif edge.destination not in self.modules:
                return AppReferenceError(
                    f"Edge {edge.source}->{edge.destination}: undeclared module '{edge.destination}'",
                    edge.destination)

        for rule in self.selectivity:
            if rule.module not in self.modules:
                return AppReferenceError(f"Selectivity rule names undeclared module '{rule.module}'", rule.module)

        known = set(self.modules) | sensor_types | actuator_types
        for loop in self.loops:
            for entry in loop.entries:
                if entry not in known:
                    return AppReferenceError(
                        f"Loop {list(loop.entries)} names unknown module or tuple type '{entry}'", entry)
        logging.debug(f"Application {self.app_id} validated against {topology!r}")
        return None

    def to_networkx(self):
        G = nx.DiGraph(name=self.app_id)
        for module in self.modules.values():
            G.add_node(module.name, type="module", RAM=module.ram)
        for edge in self.edges:
            for end, role in ((edge.source, EdgeKind.SENSOR), (edge.destination, EdgeKind.ACTUATOR)):
                if end not in G and edge.kind is role:
                    G.add_node(end, type=role.value)
            G.add_edge(edge.source, edge.destination, tuple_type=edge.tuple_type,
                       cpu_length=edge.cpu_length, nw_length=edge.nw_length,
                       direction=edge.direction.value, kind=edge.kind.value)
        return G

    def to_yafs_json(self):
        """
        Describe the application in the schema of YAFS'
        create_applications_from_json: ``module``, ``message``,
        ``transmission`` and ``loop`` lists.
        """
        messages = []
        for edge in self.edges:
            message = {
                "name": edge.tuple_type,
                "s": edge.source,
                "d": edge.destination,
                "instructions": edge.cpu_length,
                "bytes": edge.nw_length,
            }
            if edge.is_periodic:
                message["periodicity"] = edge.periodicity
            messages.append(message)
        return {
            "name": self.app_id,
            "module": [{"name": m.name, "RAM": m.ram, "type": "MODULE"} for m in self.modules.values()],
            "message": messages,
            "transmission": [
                {"module": r.module, "message_in": r.incoming, "message_out": r.outgoing,
                 "fractional": r.fraction}
                for r in self.selectivity
            ],
            "loop": [list(loop.entries) for loop in self.loops],
        }
