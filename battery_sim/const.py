"""Constants for the battery storage simulator."""

from __future__ import annotations

# Battery chemistries
CHEMISTRY_LEAD_ACID = "lead_acid"  # KiBaM capacity model
CHEMISTRY_LITHIUM_ION = "lithium_ion"  # Linear capacity model

CHEMISTRIES = [CHEMISTRY_LEAD_ACID, CHEMISTRY_LITHIUM_ION]

# Voltage models
VOLTAGE_DYNAMIC = "dynamic"
VOLTAGE_BASIC = "basic"

VOLTAGE_MODELS = [VOLTAGE_DYNAMIC, VOLTAGE_BASIC]

# Dispatch modes
MODE_LOOK_AHEAD = "look_ahead"  # Automated, perfect forecast of the next day
MODE_LOOK_BEHIND = "look_behind"  # Automated, previous day used as forecast
MODE_MANUAL = "manual"

DISPATCH_MODES = [MODE_LOOK_AHEAD, MODE_LOOK_BEHIND, MODE_MANUAL]
AUTOMATED_MODES = [MODE_LOOK_AHEAD, MODE_LOOK_BEHIND]

# Battery coupling
COUPLING_AC = "ac"
COUPLING_DC = "dc"

COUPLINGS = [COUPLING_AC, COUPLING_DC]

# Replacement options
REPLACE_NONE = "none"
REPLACE_AT_CAPACITY = "capacity"
REPLACE_ON_SCHEDULE = "schedule"

REPLACEMENT_OPTIONS = [REPLACE_NONE, REPLACE_AT_CAPACITY, REPLACE_ON_SCHEDULE]

# Charge direction
DIRECTION_CHARGE = "charge"
DIRECTION_DISCHARGE = "discharge"
DIRECTION_IDLE = "idle"

# Configuration keys - Battery bank
CONF_CHEMISTRY = "chemistry"
CONF_TIME_STEP_MINUTES = "time_step_minutes"
CONF_SOC_MAX_PERCENT = "soc_max_percent"
CONF_SOC_MIN_PERCENT = "soc_min_percent"
CONF_NUM_CELLS_SERIES = "num_cells_series"
CONF_NUM_STRINGS = "num_strings"

# Configuration keys - Capacity (KiBaM reference discharge curves, per string)
CONF_Q20_AH = "q20_ah"  # Capacity at the 20-hour rate
CONF_T1_HOURS = "t1_hours"  # Fast discharge time
CONF_Q1_AH = "q1_ah"  # Capacity at the t1-hour rate
CONF_Q10_AH = "q10_ah"  # Capacity at the 10-hour rate

# Configuration keys - Voltage (per-cell nameplate curve)
CONF_VOLTAGE_MODEL = "voltage_model"
CONF_CELL_VOLTAGE_NOMINAL = "cell_voltage_nominal"
CONF_V_FULL = "v_full"
CONF_V_EXP = "v_exp"
CONF_V_NOM = "v_nom"
CONF_Q_FULL = "q_full"
CONF_Q_EXP = "q_exp"
CONF_Q_NOM = "q_nom"
CONF_C_RATE = "c_rate"
CONF_RESISTANCE = "resistance"

# Configuration keys - Lifetime
CONF_LIFETIME_TABLE = "lifetime_table"
CONF_REPLACEMENT_OPTION = "replacement_option"
CONF_REPLACEMENT_CAPACITY = "replacement_capacity"
# Years (1-based) at whose end the battery is replaced
CONF_REPLACEMENT_SCHEDULE = "replacement_schedule"

# Configuration keys - Thermal
CONF_MASS_KG = "mass_kg"
CONF_LENGTH_M = "length_m"
CONF_WIDTH_M = "width_m"
CONF_HEIGHT_M = "height_m"
CONF_CP = "cp"
CONF_H = "h"
CONF_T_ROOM_K = "t_room_k"
CONF_CAPACITY_VS_TEMPERATURE = "capacity_vs_temperature"

# Configuration keys - Dispatch
CONF_DISPATCH_MODE = "dispatch_mode"
CONF_MAX_CHARGE_CURRENT = "max_charge_current"
CONF_MAX_DISCHARGE_CURRENT = "max_discharge_current"
CONF_MIN_MODE_TIME_MINUTES = "min_mode_time_minutes"
CONF_COUPLING = "coupling"
CONF_DC_DC_EFFICIENCY = "dc_dc_efficiency"
CONF_AC_DC_EFFICIENCY = "ac_dc_efficiency"
CONF_DC_AC_EFFICIENCY = "dc_ac_efficiency"
CONF_SOC_TOLERANCE_PERCENT = "soc_tolerance_percent"
CONF_SCHEDULE = "schedule"
CONF_PROFILES = "profiles"

# Configuration keys - Profile entries
CONF_PROFILE_CHARGE = "charge"
CONF_PROFILE_DISCHARGE = "discharge"
CONF_PROFILE_GRID_CHARGE = "grid_charge"
CONF_PROFILE_PERCENT_DISCHARGE = "percent_discharge"
CONF_PROFILE_PERCENT_CHARGE = "percent_charge"

# Default values - Battery bank
DEFAULT_CHEMISTRY = CHEMISTRY_LITHIUM_ION
DEFAULT_TIME_STEP_MINUTES = 60
DEFAULT_SOC_MAX_PERCENT = 95.0
DEFAULT_SOC_MIN_PERCENT = 15.0
DEFAULT_NUM_CELLS_SERIES = 139
DEFAULT_NUM_STRINGS = 9

# Default values - Capacity (per string)
DEFAULT_Q20_AH = 100.0
DEFAULT_T1_HOURS = 1.0
DEFAULT_Q1_AH = 60.0
DEFAULT_Q10_AH = 93.0

# Default values - Voltage (Li-ion NMC cell nameplate)
DEFAULT_VOLTAGE_MODEL = VOLTAGE_DYNAMIC
DEFAULT_CELL_VOLTAGE_NOMINAL = 3.6
DEFAULT_V_FULL = 4.1
DEFAULT_V_EXP = 4.05
DEFAULT_V_NOM = 3.4
DEFAULT_Q_FULL = 3.4
DEFAULT_Q_EXP = 0.17
DEFAULT_Q_NOM = 3.06
DEFAULT_C_RATE = 0.2
DEFAULT_RESISTANCE = 0.1

# Default values - Lifetime
DEFAULT_REPLACEMENT_OPTION = REPLACE_NONE
DEFAULT_REPLACEMENT_CAPACITY = 80.0
# A replacement threshold of 0 % is numerically unusable
MIN_REPLACEMENT_CAPACITY = 2.0
# Rows of (DOD %, cycles, capacity %)
DEFAULT_LIFETIME_TABLE = [
    [20.0, 0.0, 100.0],
    [20.0, 5000.0, 80.0],
    [20.0, 10000.0, 60.0],
    [80.0, 0.0, 100.0],
    [80.0, 1000.0, 80.0],
    [80.0, 2000.0, 60.0],
]

# Default values - Thermal
DEFAULT_MASS_KG = 507.0
DEFAULT_LENGTH_M = 0.58
DEFAULT_WIDTH_M = 0.58
DEFAULT_HEIGHT_M = 0.58
DEFAULT_CP = 1004.0  # J/kg-K
DEFAULT_H = 20.0  # W/m2-K
DEFAULT_T_ROOM_K = 293.15
# Rows of (temperature C, capacity %)
DEFAULT_CAPACITY_VS_TEMPERATURE = [
    [-10.0, 60.0],
    [0.0, 80.0],
    [25.0, 100.0],
    [40.0, 100.0],
]

# Default values - Dispatch
DEFAULT_DISPATCH_MODE = MODE_LOOK_AHEAD
DEFAULT_MAX_CHARGE_CURRENT = 1000.0
DEFAULT_MAX_DISCHARGE_CURRENT = 1000.0
DEFAULT_MIN_MODE_TIME_MINUTES = 10.0
DEFAULT_COUPLING = COUPLING_AC
DEFAULT_DC_DC_EFFICIENCY = 99.0
DEFAULT_AC_DC_EFFICIENCY = 96.0
DEFAULT_DC_AC_EFFICIENCY = 96.0
DEFAULT_SOC_TOLERANCE_PERCENT = 0.001

# Manual dispatch supports at most six user-defined profiles
MAX_MANUAL_PROFILES = 6

# Automated dispatch tuning
PEAK_SHAVE_FRACTION = 0.7  # Share of usable energy the recharge must reach
TARGET_POWER_MARGIN = 0.01  # Target moved up to absorb voltage differences
INITIAL_TARGET_MIN_KW = 1e16

# Initial anti-chatter timer, large enough that the first flip is allowed
INITIAL_MODE_TIME_MINUTES = 1000.0

# KiBaM fit: candidate rate constants k = i * step for i in range(n)
KIBAM_FIT_CANDIDATES = 5000
KIBAM_FIT_STEP = 0.001
KIBAM_FIT_RESIDUAL_WARNING = 0.01

# Dynamic voltage guards
VOLTAGE_CEILING_FACTOR = 1.25

# Default internal resistance before a voltage model sets it
DEFAULT_INTERNAL_RESISTANCE = 0.004

# Time and unit constants
HOURS_PER_DAY = 24
HOURS_PER_YEAR = 8760
MONTHS_PER_YEAR = 12
MINUTES_PER_HOUR = 60
SECONDS_PER_HOUR = 3600.0
WATT_TO_KILOWATT = 0.001
KILOWATT_TO_WATT = 1000.0
CELSIUS_TO_KELVIN = 273.15

DAYS_IN_MONTH = [31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]
