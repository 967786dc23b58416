"""
Inter-emission time distributions for sensors.

A sensor emits a tuple every ``sample()`` time units. The distribution is
carried as data and handed to the simulation engine; ``sample`` is only
here so the engine (or a test) can draw values the same way every time.
"""
import math
from dataclasses import dataclass

import numpy as np

from model_errors import ConfigError


@dataclass(frozen=True)
class DeterministicDistribution:
    value: float

    @property
    def mean(self):
        return self.value

    def sample(self, rng=None):
        return self.value

    def to_dict(self):
        return {"type": "deterministic", "value": self.value}


@dataclass(frozen=True)
class UniformDistribution:
    min: float
    max: float

    @property
    def mean(self):
        return (self.min + self.max) / 2

    def sample(self, rng=None):
        rng = rng if rng is not None else np.random.default_rng()
        return float(rng.uniform(self.min, self.max))

    def to_dict(self):
        return {"type": "uniform", "min": self.min, "max": self.max}


@dataclass(frozen=True)
class NormalDistribution:
    mean: float
    stdev: float

    def sample(self, rng=None):
        rng = rng if rng is not None else np.random.default_rng()
        # inter-emission times cannot go negative
        return max(0.0, float(rng.normal(self.mean, self.stdev)))

    def to_dict(self):
        return {"type": "normal", "mean": self.mean, "stdev": self.stdev}


_DISTRIBUTION_FIELDS = {
    "deterministic": (DeterministicDistribution, ("value",)),
    "uniform": (UniformDistribution, ("min", "max")),
    "normal": (NormalDistribution, ("mean", "stdev")),
}


def distribution_from_dict(data, owner=None):
    """
    Build a distribution from its description, e.g.
    ``{"type": "deterministic", "value": 5}``.
    Unknown types, missing or extra fields, negative and non-finite values
    are fatal.
    """
    if not isinstance(data, dict):
        raise ConfigError(f"Distribution of {owner} must be an object, got: {data!r}", owner)
    kind = data.get("type")
    if kind not in _DISTRIBUTION_FIELDS:
        raise ConfigError(f"Unknown distribution type {kind!r} for {owner}", owner)
    cls, fields = _DISTRIBUTION_FIELDS[kind]

    expected = {"type", *fields}
    missing = expected - data.keys()
    if missing:
        raise ConfigError(f"Distribution of {owner} missing fields: {sorted(missing)}", owner)
    unknown = data.keys() - expected
    if unknown:
        raise ConfigError(f"Distribution of {owner} has unknown fields: {sorted(unknown)}", owner)

    values = []
    for name in fields:
        v = data[name]
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ConfigError(f"Distribution field '{name}' of {owner} must be a number, got: {v!r}", owner)
        if not math.isfinite(v):
            raise ConfigError(f"Distribution field '{name}' of {owner} must be finite, got: {v}", owner)
        if v < 0:
            raise ConfigError(f"Distribution field '{name}' of {owner} must be non-negative, got: {v}", owner)
        values.append(float(v))

    if kind == "uniform" and values[0] > values[1]:
        raise ConfigError(f"Uniform distribution of {owner} has min > max", owner)
    return cls(*values)
