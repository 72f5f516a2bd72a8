# varsim/seed.py
"""Reference variables loaded into an empty (or partial) catalogue at startup."""
import logging
from typing import List, Tuple

from varsim.errors import ConflictError
from varsim.schemas import Variable, derive_node_id
from varsim.store import VariableStore

log = logging.getLogger("seed")

# browseName, dataType, minimumSamplingInterval, minimum, maximum, valueType
SEED_ROWS: List[Tuple[str, str, int, float, float, str]] = [
    ("Temperature",         "Double",  100,  -50,    100, "Triangle"),
    ("Pressure",            "Double",  100,    0,    200, "Random"),
    ("Humidity",            "Double",  100,    0,    100, "Square"),
    ("FlowRate",            "Double",  100,    0,    500, "Random"),
    ("TankLevel",           "Double",  200,    0,   1000, "Triangle"),
    ("MotorSpeed",          "Double",   50,    0,   3000, "Sawtooth"),
    ("PowerConsumption",    "Double",  500,    0,  10000, "Random"),
    ("DeviceStatus",        "Boolean", 1000,   0,      1, "Random"),
    ("Vibration",           "Double",   50,    0,    100, "Triangle"),
    ("pH",                  "Double",  200,    0,     14, "Random"),
    ("BeltSpeed",           "Double",  100,    0,     50, "Triangle"),
    ("MaintenanceRequired", "Boolean", 5000,   0,      1, "Random"),
    ("OilPressure",         "Double",  200,    0,    150, "Triangle"),
    ("AirQuality",          "Double",  1000,   0,    500, "Random"),
    ("BearingTemperature",  "Double",  100,    0,    120, "Sawtooth"),
    ("CoolingWaterFlow",    "Double",  150,    0,    100, "Square"),
    ("BatteryLevel",        "Double",  1000,   0,    100, "Triangle"),
    ("EmergencyStop",       "Boolean",  50,    0,      1, "Random"),
    ("ProductionRate",      "Double",  500,    0,   1000, "Sawtooth"),
    ("ConveyorSpeed",       "Double",  200,    0,     30, "Triangle"),
]


def seed_variables() -> List[Variable]:
    return [
        Variable(
            browseName=name,
            nodeId=derive_node_id(name),
            dataType=data_type,
            minimumSamplingInterval=interval,
            minimum=lo,
            maximum=hi,
            valueType=value_type,
        )
        for name, data_type, interval, lo, hi, value_type in SEED_ROWS
    ]


def seed(store: VariableStore) -> int:
    """Insert every seed variable whose nodeId is not stored yet; return how many."""
    log.info("seeding variables")
    added = 0
    for variable in seed_variables():
        if store.find_by_node_id(variable.nodeId) is not None:
            continue
        try:
            store.insert(variable)
        except ConflictError as e:
            log.warning("seed skipped %s: %s", variable.browseName, e)
            continue
        log.info("seeded variable %s", variable.browseName)
        added += 1
    log.info("seeding completed added=%d", added)
    return added
