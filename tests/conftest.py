"""Shared fixtures: a fresh allocator and the generated 5x5 smart waste models."""
import pytest

from id_allocator import IdAllocator
from simulation_config import SimulationConfig
from smart_waste_app import create_application, create_smart_waste_topology


@pytest.fixture
def allocator():
    return IdAllocator()


@pytest.fixture
def config(tmp_path):
    return SimulationConfig(results_folder=tmp_path / "results")


@pytest.fixture
def topology(config, allocator):
    """5 areas x 5 bins, generated"""
    return create_smart_waste_topology(config, allocator)


@pytest.fixture
def application(config):
    return create_application(config.app_id, config.sensor_type, config.actuator_type)
