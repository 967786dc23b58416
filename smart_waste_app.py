"""
Smart Waste Management System: topology, application and module mapping.

Smart bins are fog devices at the leaves; each carries a fill-level sensor
and a collection actuator. Bins report to area routers, routers to a proxy
server, and the proxy to the cloud.
"""
from application_graph import Application, EdgeKind, TupleDirection
from fog_topology_utils import create_tiered_topology
from module_mapping import ModuleMappingBuilder, PrefixMatcher

MASTER_MODULE = "master-module"
WASTE_INFO_MODULE = "waste-info-module"
USER_INTERFACE = "user_interface"


def create_smart_waste_topology(config, allocator):
    """cloud -> proxy-server -> a-<i> -> b-<i>-<j>, with s-/act- endpoints per bin"""
    return create_tiered_topology(
        config.root_params(),
        config.branching_schedule(),
        config.sensor,
        config.actuator,
        allocator,
    )


def create_application(app_id, sensor_type="BIN", actuator_type="ACT_CONTROL"):
    """
    Build the waste management application.
    sensor_type / actuator_type: tuple types of the bin sensors and
        actuators; the topology loaded from a description may use other
        names (e.g. ULTRASONIC / SWITCH) than the generated one.
    """
    application = Application(app_id)

    # Modules (vertices) of the application graph
    application.add_module(MASTER_MODULE, 10)
    application.add_module(WASTE_INFO_MODULE, 10)
    application.add_module(USER_INTERFACE, 10)

    # Bin sensor -> waste info module
    application.add_edge(sensor_type, WASTE_INFO_MODULE, 1000, 20000, sensor_type,
                         TupleDirection.UP, EdgeKind.SENSOR)
    application.add_edge(WASTE_INFO_MODULE, MASTER_MODULE, 2000, 2000, "THRESHOLD_REACHED",
                         TupleDirection.UP, EdgeKind.MODULE)
    application.add_edge(MASTER_MODULE, USER_INTERFACE, 500, 2000, "REQUEST_COLLECTION",
                         TupleDirection.UP, EdgeKind.MODULE)
    # Periodic control messages back down to the bin actuators
    application.add_edge(MASTER_MODULE, actuator_type, 28, 100, "ACT_PARAMS",
                         TupleDirection.DOWN, EdgeKind.ACTUATOR, periodicity=100)

    # Every bin reading is checked against the threshold
    application.add_selectivity(WASTE_INFO_MODULE, sensor_type, "THRESHOLD_REACHED", 1.0)
    application.add_selectivity(MASTER_MODULE, "THRESHOLD_REACHED", "ACT_PARAMS", 1.0)
    # Roughly one threshold report in twenty turns into a collection request
    application.add_selectivity(MASTER_MODULE, "THRESHOLD_REACHED", "REQUEST_COLLECTION", 0.05)

    # Loops to monitor; not every hop has to be a direct edge
    application.add_loop([WASTE_INFO_MODULE, MASTER_MODULE, USER_INTERFACE])
    application.add_loop([MASTER_MODULE, actuator_type])
    return application


def create_module_mapping(config):
    """
    One waste info module per smart bin, the user interface in the cloud,
    and in cloud mode the master module in the cloud as well.
    """
    mapping = ModuleMappingBuilder()
    mapping.assign_pattern(WASTE_INFO_MODULE, PrefixMatcher(config.bin_prefix))
    mapping.assign(USER_INTERFACE, "cloud")
    if config.cloud:
        mapping.place_on_root(MASTER_MODULE)
    return mapping
