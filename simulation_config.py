# ---- Configuration data for the Smart Waste Management System runs ----
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from module_mapping import PlacementMode

NUM_OF_AREAS = 5
NUM_OF_BINS_PER_AREA = 5

# Cloud-based deployment pins the master module to the cloud
CLOUD = False

APP_ID = "swms"

RESULTS_FOLDER = Path("results/")

LOG_LEVEL = "INFO"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Host characteristics shared by every fog device
DEVICE_COSTS = {
    "cost": 3.0,               # processing cost in this resource
    "cost_per_mem": 0.05,
    "cost_per_storage": 0.001,
    "cost_per_bw": 0.0,
    "storage": 1000000,        # host storage
}

CLOUD_PARAMS = {
    "name": "cloud",
    "mips": 44800,
    "ram": 40000,
    "up_bw": 100,
    "down_bw": 10000,
    "rate_per_mips": 0.01,
    "busy_power": 16 * 103,
    "idle_power": 16 * 83.25,
}

PROXY_PARAMS = {
    "mips": 2800,
    "ram": 4000,
    "up_bw": 10000,
    "down_bw": 10000,
    "rate_per_mips": 0.0,
    "busy_power": 107.339,
    "idle_power": 83.4333,
}

# Area routers share the proxy server's hardware
AREA_PARAMS = dict(PROXY_PARAMS)

BIN_PARAMS = {
    "mips": 500,
    "ram": 1000,
    "up_bw": 10000,
    "down_bw": 10000,
    "rate_per_mips": 0.0,
    "busy_power": 87.53,
    "idle_power": 82.44,
}

PROXY_LATENCY = 100   # proxy server <-> cloud, ms
AREA_LATENCY = 2      # area router <-> proxy server, ms
BIN_LATENCY = 2       # smart bin <-> area router, ms

SENSOR_DECLARATION = {
    "prefix": "s",
    "tuple_type": "BIN",
    "latency": 1.0,
    "distribution": {"type": "deterministic", "value": 5.0},
}

ACTUATOR_DECLARATION = {
    "prefix": "act",
    "actuator_type": "ACT_CONTROL",
    "latency": 1.0,
}

# Names of all smart bins start with this prefix
BIN_PREFIX = "b-"

TOPOLOGY2_FILE = Path(__file__).parent / "topologies" / "smart_waste_topology2.json"


@dataclass
class SimulationConfig:
    """
    Everything one run needs to build its models.
    topology_file: when set, the physical topology is loaded from this
        declarative description instead of being generated.
    """
    app_id: str = APP_ID
    num_of_areas: int = NUM_OF_AREAS
    num_of_bins_per_area: int = NUM_OF_BINS_PER_AREA
    cloud: bool = CLOUD
    topology_file: Optional[Path] = None
    bin_prefix: str = BIN_PREFIX
    sensor: Dict[str, Any] = field(default_factory=lambda: dict(SENSOR_DECLARATION))
    actuator: Dict[str, Any] = field(default_factory=lambda: dict(ACTUATOR_DECLARATION))
    results_folder: Path = RESULTS_FOLDER

    @property
    def sensor_type(self):
        return self.sensor["tuple_type"]

    @property
    def actuator_type(self):
        return self.actuator["actuator_type"]

    @property
    def placement_mode(self):
        return PlacementMode.CLOUD if self.cloud else PlacementMode.EDGEWARDS

    @classmethod
    def topology2(cls, **overrides):
        """Run on the hand-written topology with ultrasonic sensors and switches"""
        settings = dict(
            topology_file=TOPOLOGY2_FILE,
            bin_prefix="B",
            sensor={**SENSOR_DECLARATION, "tuple_type": "ULTRASONIC"},
            actuator={**ACTUATOR_DECLARATION, "actuator_type": "SWITCH"},
        )
        settings.update(overrides)
        return cls(**settings)

    def root_params(self) -> Dict[str, Any]:
        params = dict(CLOUD_PARAMS)
        params.update(DEVICE_COSTS)
        return params

    def branching_schedule(self) -> List[Dict[str, Any]]:
        """Tiers below the cloud, top-down; the last one holds the leaves"""
        return [
            {"name": "proxy-server", "count": 1, "indexed": False,
             "params": {**PROXY_PARAMS, **DEVICE_COSTS}, "uplink_latency": PROXY_LATENCY},
            {"name": "a", "count": self.num_of_areas, "indexed": True,
             "params": {**AREA_PARAMS, **DEVICE_COSTS}, "uplink_latency": AREA_LATENCY},
            {"name": "b", "count": self.num_of_bins_per_area, "indexed": True,
             "params": {**BIN_PARAMS, **DEVICE_COSTS}, "uplink_latency": BIN_LATENCY},
        ]
