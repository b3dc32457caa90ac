"""Protocol constants shared across the link and bus channels."""

from __future__ import annotations

# Holding register addresses on the controller (1-based vendor numbering).
REG_MODE = 1601
REG_SETPOINT = 1602
REG_FAN_SPEED = 1603
REG_AIR_TEMPERATURE = 1606
REG_WATER_TEMPERATURE = 1607
REG_PUMP = 1613
REG_ERRORS = 1614
REG_VALVE = 1619

# Bit positions inside status words.
PUMP_BIT = 0
VALVE_BIT = 9
TEMP_SENSOR_ERROR_BIT = 2
WATER_TEMP_SENSOR1_ERROR_BIT = 3
WATER_TEMP_SENSOR2_ERROR_BIT = 4
FAN_SPEED_ERROR_BIT = 8
PUMP_ERROR_BIT = 14

# Raw temperature words are half-degree steps offset by -20 °C.
TEMPERATURE_SCALE = 0.5
TEMPERATURE_OFFSET = -20.0

SETPOINT_MIN = 16
SETPOINT_MAX = 30
FAN_SPEEDS = frozenset({0, 1, 2, 3, 4})
MODES = frozenset({0, 1, 2, 3, 4})

# Mode written to switch a unit on.
POWER_ON_MODE = 2

DEVICE_ID_PREFIX = "AC_"

# Topic suffixes published by the field gateway, keyed by state field.
BUS_READ_SUFFIXES: dict[str, str] = {
    "mode": "Режим_R",
    "set_temperature": "Уставка_R",
    "fan_speed": "Скорость_R",
    "temperature": "PV",
    "water_temperature": "CoolingWater",
    "pump_status": "Pump_State",
    "valve_status": "FC_Dial_Info_2_1619",
}

BUS_COMMAND_SUFFIXES: dict[str, str] = {
    "mode": "Режим_W",
    "set_temperature": "Уставка_W",
    "fan_speed": "Скорость_W",
}

# Writable control topics take the new value on "<topic>/on".
BUS_COMMAND_ON_SUFFIX = "/on"

# Substrings in link error messages that identify the failure class when no
# structured exception type is available.
CONFLICT_MARKERS = ("unexpected data", "expected address")
TIMEOUT_MARKERS = ("timeout", "timed out", "etimedout")
