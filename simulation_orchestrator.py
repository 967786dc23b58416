"""
Smart Waste Management System run bootstrap.

Builds the physical topology (generated or loaded from a description), the
application graph and the module mapping, checks them against each other,
saves them to the results folder and hands them to the placement /
simulation engine. Any build or validation failure stops the run before the
engine is started.
"""
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from application_graph import Application
from fog_topology_utils import PhysicalTopology, write_topology_gexf
from id_allocator import IdAllocator
from module_mapping import ModuleMappingTable, PlacementMode
from simulation_config import LOG_FORMAT, LOG_LEVEL, SimulationConfig
from smart_waste_app import create_application, create_module_mapping, create_smart_waste_topology
from topology_loader import load_topology, save_topology_json


@dataclass(frozen=True)
class SimulationModels:
    """Everything the engine receives for one run"""
    topology: PhysicalTopology
    application: Application
    mapping: ModuleMappingTable
    placement_mode: PlacementMode

    def to_yafs_json(self):
        app_id = self.application.app_id
        return {
            "apps": [self.application.to_yafs_json()],
            "placement": self.mapping.to_yafs_placement(app_id),
            "placement_mode": self.placement_mode.value,
        }


def build_models(config, allocator=None):
    """
    Build and cross-check the three models of a run, in order: topology,
    application, mapping. Each run gets a fresh allocator unless one is given.
    """
    allocator = allocator if allocator is not None else IdAllocator()

    if config.topology_file is not None:
        topology = load_topology(config.topology_file, allocator)
    else:
        topology = create_smart_waste_topology(config, allocator)

    application = create_application(config.app_id, config.sensor_type, config.actuator_type)
    error = application.validate(topology)
    if error is not None:
        logging.error(f"Application {config.app_id} does not fit the topology: {error}")
        raise error

    application.freeze()
    mapping = create_module_mapping(config).finalize(application, topology)
    logging.info(f"Built {topology!r}, {application!r}, {mapping!r}, placement {config.placement_mode.value}")
    return SimulationModels(topology, application, mapping, config.placement_mode)


def save_models(models, folder_results, iteration=0):
    """Write topology (GEXF + JSON description), node and mapping tables, engine input"""
    folder_results = Path(folder_results)
    folder_results.mkdir(parents=True, exist_ok=True)

    paths = [
        write_topology_gexf(models.topology, folder_results / f"swms_topology_{iteration}.gexf"),
        save_topology_json(models.topology, folder_results / f"swms_topology_{iteration}.json"),
    ]

    nodes_csv = folder_results / f"fog_devices_{iteration}.csv"
    models.topology.nodes_frame().to_csv(nodes_csv, index=False)
    mapping_csv = folder_results / f"module_mapping_{iteration}.csv"
    models.mapping.to_frame().to_csv(mapping_csv, index=False)

    engine_input = folder_results / f"engine_input_{iteration}.json"
    with open(engine_input, "w") as f:
        json.dump(models.to_yafs_json(), f, indent=2)

    paths.extend([nodes_csv, mapping_csv, engine_input])
    return paths


def main(config, iteration=0, engine=None):
    """
    One run. ``engine`` is the external placement / simulation engine: any
    callable taking a SimulationModels. Without one the models are only
    built and saved.
    """
    models = build_models(config)
    save_models(models, config.results_folder, iteration)

    if engine is None:
        logging.info("No engine attached, models saved only")
        return models

    logging.info(f"Starting engine for iteration {iteration}")
    engine(models)
    return models


if __name__ == '__main__':
    # Configure logging
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)

    config = SimulationConfig()
    config.results_folder.mkdir(parents=True, exist_ok=True)

    start_time = time.time()
    logging.info("Starting Smart Waste Management System...")
    models = main(config, iteration=0)

    print(f"\n--- Models built in {time.time() - start_time:.2f} seconds ---")
    print(f"Fog devices: {len(models.topology.nodes)}")
    print(f"Sensors: {len(models.topology.sensors)}  Actuators: {len(models.topology.actuators)}")
    print(f"Module assignments: {len(models.mapping)}")
    print(f"\nResults saved in: {config.results_folder}")
