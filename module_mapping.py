"""
Module mapping: which application modules must run on which fog devices.

Constraints are declared against device names (literal or through a
matcher) and only resolved in ``finalize``, against the topology the run
actually built. The result is a flat list of (module, device) pairs for the
placement engine; no placement decision is taken here.
"""
import logging
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

import pandas as pd

from model_errors import MappingError


class PlacementMode(Enum):
    """How the engine should place modules the mapping leaves open"""
    CLOUD = "cloud"          # mapping only; unmapped modules are not placed at the edge
    EDGEWARDS = "edgewards"  # push remaining modules as close to the leaves as they fit


@dataclass(frozen=True)
class PrefixMatcher:
    prefix: str

    def matches(self, name):
        return name.startswith(self.prefix)

    def __str__(self):
        return f"prefix {self.prefix!r}"


@dataclass(frozen=True)
class RegexMatcher:
    pattern: str

    def matches(self, name):
        return re.fullmatch(self.pattern, name) is not None

    def __str__(self):
        return f"regex {self.pattern!r}"


@dataclass(frozen=True)
class PredicateMatcher:
    predicate: Callable[[str], bool]
    description: str = "predicate"

    def matches(self, name):
        return bool(self.predicate(name))

    def __str__(self):
        return self.description


@dataclass(frozen=True)
class _Constraint:
    module: str
    kind: str       # "device", "pattern" or "root"
    target: Any = None


@dataclass(frozen=True)
class Assignment:
    module: str
    device: str
    device_id: int
    exclusive: bool = False


class ModuleMappingTable:
    """Resolved (module, device) pairs, in declaration order"""

    def __init__(self, assignments):
        self.assignments: Tuple[Assignment, ...] = tuple(assignments)

    def __len__(self):
        return len(self.assignments)

    def __iter__(self):
        return iter(self.assignments)

    def __repr__(self):
        return f"ModuleMappingTable({len(self.assignments)} assignments)"

    def devices_for(self, module):
        return [a.device for a in self.assignments if a.module == module]

    def as_dict(self) -> Dict[str, List[str]]:
        mapping: Dict[str, List[str]] = {}
        for a in self.assignments:
            mapping.setdefault(a.module, []).append(a.device)
        return mapping

    def to_frame(self):
        return pd.DataFrame(
            [{"module": a.module, "device": a.device, "device_id": a.device_id, "exclusive": a.exclusive}
             for a in self.assignments],
            columns=["module", "device", "device_id", "exclusive"],
        )

    def to_yafs_placement(self, app_id):
        """Placement in the ``initialAllocation`` schema of YAFS' JSONPlacement"""
        return {
            "initialAllocation": [
                {"module_name": a.module, "app": app_id, "id_resource": a.device_id}
                for a in self.assignments
            ]
        }


class ModuleMappingBuilder:
    """Collects placement constraints for one application"""

    def __init__(self):
        self._constraints: List[_Constraint] = []

    def __len__(self):
        return len(self._constraints)

    def assign(self, module, device):
        """
        Pin ``module`` to ``device``. A module may be assigned several times,
        one instance per device. ``device`` may also be a matcher, which is
        the same as calling assign_pattern.
        """
        if not isinstance(device, str):
            return self.assign_pattern(module, device)
        self._constraints.append(_Constraint(module, "device", device))
        return self

    def assign_pattern(self, module, matcher):
        """
        Pin one instance of ``module`` to every device whose name the matcher
        accepts. A plain callable taking the device name works as matcher.
        Matching nothing is not an error.
        """
        if not hasattr(matcher, "matches"):
            if not callable(matcher):
                raise MappingError(f"Matcher for module '{module}' must be callable, got: {matcher!r}", module)
            matcher = PredicateMatcher(matcher, getattr(matcher, "__name__", "predicate"))
        self._constraints.append(_Constraint(module, "pattern", matcher))
        return self

    def place_on_root(self, module):
        """Place ``module`` exclusively on the root (cloud) device"""
        self._constraints.append(_Constraint(module, "root"))
        return self

    def finalize(self, application, topology):
        """
        Resolve every constraint against ``topology``.

        Raises MappingError for a module missing from ``application``, a
        literal device missing from ``topology``, or a module placed on the
        root exclusively that also has other assignments.
        """
        pairs = []
        seen = {}
        exclusive_modules = set()

        def add(module, node, exclusive=False):
            key = (module, node.name)
            if key in seen:
                # a repeated pair keeps its first position, placing on the root marks it exclusive
                if exclusive:
                    pairs[seen[key]] = replace(pairs[seen[key]], exclusive=True)
                return
            seen[key] = len(pairs)
            pairs.append(Assignment(module, node.name, node.id, exclusive))

        for constraint in self._constraints:
            if constraint.module not in application.modules:
                raise MappingError(
                    f"Mapping names module '{constraint.module}' which app {application.app_id} does not declare",
                    constraint.module)
            if constraint.kind == "device":
                node = topology.node_by_name(constraint.target)
                if node is None:
                    raise MappingError(
                        f"Module '{constraint.module}' mapped to unknown device '{constraint.target}'",
                        constraint.target)
                add(constraint.module, node)
            elif constraint.kind == "pattern":
                matched = [n for n in topology.nodes if constraint.target.matches(n.name)]
                logging.debug(f"{constraint.target} matched {len(matched)} devices for {constraint.module}")
                for node in matched:
                    add(constraint.module, node)
            else:
                add(constraint.module, topology.root, exclusive=True)
                exclusive_modules.add(constraint.module)

        for module in exclusive_modules:
            devices = [a.device for a in pairs if a.module == module]
            if len(devices) > 1:
                raise MappingError(
                    f"Module '{module}' is placed on the root only but also mapped to {devices[1:]}", module)

        table = ModuleMappingTable(pairs)
        logging.info(f"Module mapping resolved to {len(table)} assignments")
        return table
