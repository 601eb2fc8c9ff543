"""Configuration schemas for the battery storage simulator."""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol

from .const import (
    CHEMISTRIES,
    CONF_AC_DC_EFFICIENCY,
    CONF_C_RATE,
    CONF_CAPACITY_VS_TEMPERATURE,
    CONF_CELL_VOLTAGE_NOMINAL,
    CONF_CHEMISTRY,
    CONF_COUPLING,
    CONF_CP,
    CONF_DC_AC_EFFICIENCY,
    CONF_DC_DC_EFFICIENCY,
    CONF_DISPATCH_MODE,
    CONF_H,
    CONF_HEIGHT_M,
    CONF_LENGTH_M,
    CONF_LIFETIME_TABLE,
    CONF_MASS_KG,
    CONF_MAX_CHARGE_CURRENT,
    CONF_MAX_DISCHARGE_CURRENT,
    CONF_MIN_MODE_TIME_MINUTES,
    CONF_NUM_CELLS_SERIES,
    CONF_NUM_STRINGS,
    CONF_PROFILE_CHARGE,
    CONF_PROFILE_DISCHARGE,
    CONF_PROFILE_GRID_CHARGE,
    CONF_PROFILE_PERCENT_CHARGE,
    CONF_PROFILE_PERCENT_DISCHARGE,
    CONF_PROFILES,
    CONF_Q1_AH,
    CONF_Q10_AH,
    CONF_Q20_AH,
    CONF_Q_EXP,
    CONF_Q_FULL,
    CONF_Q_NOM,
    CONF_REPLACEMENT_CAPACITY,
    CONF_REPLACEMENT_OPTION,
    CONF_REPLACEMENT_SCHEDULE,
    CONF_RESISTANCE,
    CONF_SCHEDULE,
    CONF_SOC_MAX_PERCENT,
    CONF_SOC_MIN_PERCENT,
    CONF_SOC_TOLERANCE_PERCENT,
    CONF_T1_HOURS,
    CONF_T_ROOM_K,
    CONF_TIME_STEP_MINUTES,
    CONF_V_EXP,
    CONF_V_FULL,
    CONF_V_NOM,
    CONF_VOLTAGE_MODEL,
    CONF_WIDTH_M,
    COUPLINGS,
    DEFAULT_AC_DC_EFFICIENCY,
    DEFAULT_C_RATE,
    DEFAULT_CAPACITY_VS_TEMPERATURE,
    DEFAULT_CELL_VOLTAGE_NOMINAL,
    DEFAULT_CHEMISTRY,
    DEFAULT_COUPLING,
    DEFAULT_CP,
    DEFAULT_DC_AC_EFFICIENCY,
    DEFAULT_DC_DC_EFFICIENCY,
    DEFAULT_DISPATCH_MODE,
    DEFAULT_H,
    DEFAULT_HEIGHT_M,
    DEFAULT_LENGTH_M,
    DEFAULT_LIFETIME_TABLE,
    DEFAULT_MASS_KG,
    DEFAULT_MAX_CHARGE_CURRENT,
    DEFAULT_MAX_DISCHARGE_CURRENT,
    DEFAULT_MIN_MODE_TIME_MINUTES,
    DEFAULT_NUM_CELLS_SERIES,
    DEFAULT_NUM_STRINGS,
    DEFAULT_Q1_AH,
    DEFAULT_Q10_AH,
    DEFAULT_Q20_AH,
    DEFAULT_Q_EXP,
    DEFAULT_Q_FULL,
    DEFAULT_Q_NOM,
    DEFAULT_REPLACEMENT_CAPACITY,
    DEFAULT_REPLACEMENT_OPTION,
    DEFAULT_RESISTANCE,
    DEFAULT_SOC_MAX_PERCENT,
    DEFAULT_SOC_MIN_PERCENT,
    DEFAULT_SOC_TOLERANCE_PERCENT,
    DEFAULT_T1_HOURS,
    DEFAULT_T_ROOM_K,
    DEFAULT_TIME_STEP_MINUTES,
    DEFAULT_V_EXP,
    DEFAULT_V_FULL,
    DEFAULT_V_NOM,
    DEFAULT_VOLTAGE_MODEL,
    DEFAULT_WIDTH_M,
    DISPATCH_MODES,
    HOURS_PER_DAY,
    MAX_MANUAL_PROFILES,
    MINUTES_PER_HOUR,
    MONTHS_PER_YEAR,
    REPLACEMENT_OPTIONS,
    VOLTAGE_MODELS,
)

_LOGGER = logging.getLogger(__name__)

PERCENT = vol.All(vol.Coerce(float), vol.Range(min=0, max=100))
POSITIVE = vol.All(vol.Coerce(float), vol.Range(min=0, min_included=False))
NON_NEGATIVE = vol.All(vol.Coerce(float), vol.Range(min=0))


def _divides_hour(value: Any) -> int:
    """Validate a time step that divides one hour evenly."""
    minutes = int(value)
    if minutes <= 0 or MINUTES_PER_HOUR % minutes != 0:
        raise vol.Invalid(f"time step of {value} minutes does not divide one hour")
    return minutes


LIFETIME_TABLE = vol.All(
    vol.Length(min=1, msg="degradation table has no rows"),
    [vol.ExactSequence([vol.Coerce(float), NON_NEGATIVE, vol.Coerce(float)])],
)

CAPACITY_VS_TEMPERATURE_TABLE = vol.All(
    vol.Length(min=1, msg="capacity vs temperature table has no rows"),
    [vol.ExactSequence([vol.Coerce(float), vol.Coerce(float)])],
)

PROFILE_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_PROFILE_CHARGE, default=True): bool,
        vol.Optional(CONF_PROFILE_DISCHARGE, default=True): bool,
        vol.Optional(CONF_PROFILE_GRID_CHARGE, default=False): bool,
        vol.Optional(CONF_PROFILE_PERCENT_DISCHARGE, default=100.0): PERCENT,
        vol.Optional(CONF_PROFILE_PERCENT_CHARGE, default=100.0): PERCENT,
    }
)

BATTERY_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_CHEMISTRY, default=DEFAULT_CHEMISTRY): vol.In(CHEMISTRIES),
        vol.Required(
            CONF_TIME_STEP_MINUTES, default=DEFAULT_TIME_STEP_MINUTES
        ): _divides_hour,
        vol.Required(CONF_SOC_MAX_PERCENT, default=DEFAULT_SOC_MAX_PERCENT): PERCENT,
        vol.Required(CONF_SOC_MIN_PERCENT, default=DEFAULT_SOC_MIN_PERCENT): PERCENT,
        vol.Required(
            CONF_NUM_CELLS_SERIES, default=DEFAULT_NUM_CELLS_SERIES
        ): vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Required(CONF_NUM_STRINGS, default=DEFAULT_NUM_STRINGS): vol.All(
            vol.Coerce(int), vol.Range(min=1)
        ),
        vol.Optional(CONF_Q20_AH, default=DEFAULT_Q20_AH): POSITIVE,
        vol.Optional(CONF_T1_HOURS, default=DEFAULT_T1_HOURS): POSITIVE,
        vol.Optional(CONF_Q1_AH, default=DEFAULT_Q1_AH): POSITIVE,
        vol.Optional(CONF_Q10_AH, default=DEFAULT_Q10_AH): POSITIVE,
        vol.Optional(CONF_VOLTAGE_MODEL, default=DEFAULT_VOLTAGE_MODEL): vol.In(
            VOLTAGE_MODELS
        ),
        vol.Optional(
            CONF_CELL_VOLTAGE_NOMINAL, default=DEFAULT_CELL_VOLTAGE_NOMINAL
        ): POSITIVE,
        vol.Optional(CONF_V_FULL, default=DEFAULT_V_FULL): POSITIVE,
        vol.Optional(CONF_V_EXP, default=DEFAULT_V_EXP): POSITIVE,
        vol.Optional(CONF_V_NOM, default=DEFAULT_V_NOM): POSITIVE,
        vol.Optional(CONF_Q_FULL, default=DEFAULT_Q_FULL): POSITIVE,
        vol.Optional(CONF_Q_EXP, default=DEFAULT_Q_EXP): POSITIVE,
        vol.Optional(CONF_Q_NOM, default=DEFAULT_Q_NOM): POSITIVE,
        vol.Optional(CONF_C_RATE, default=DEFAULT_C_RATE): POSITIVE,
        vol.Optional(CONF_RESISTANCE, default=DEFAULT_RESISTANCE): NON_NEGATIVE,
    }
)

LIFETIME_SCHEMA = vol.Schema(
    {
        vol.Optional(
            CONF_LIFETIME_TABLE, default=DEFAULT_LIFETIME_TABLE
        ): LIFETIME_TABLE,
        vol.Optional(
            CONF_REPLACEMENT_OPTION, default=DEFAULT_REPLACEMENT_OPTION
        ): vol.In(REPLACEMENT_OPTIONS),
        vol.Optional(
            CONF_REPLACEMENT_CAPACITY, default=DEFAULT_REPLACEMENT_CAPACITY
        ): PERCENT,
        vol.Optional(CONF_REPLACEMENT_SCHEDULE, default=list): [
            vol.All(vol.Coerce(int), vol.Range(min=1))
        ],
    }
)

THERMAL_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_MASS_KG, default=DEFAULT_MASS_KG): POSITIVE,
        vol.Optional(CONF_LENGTH_M, default=DEFAULT_LENGTH_M): POSITIVE,
        vol.Optional(CONF_WIDTH_M, default=DEFAULT_WIDTH_M): POSITIVE,
        vol.Optional(CONF_HEIGHT_M, default=DEFAULT_HEIGHT_M): POSITIVE,
        vol.Optional(CONF_CP, default=DEFAULT_CP): POSITIVE,
        vol.Optional(CONF_H, default=DEFAULT_H): NON_NEGATIVE,
        vol.Optional(CONF_T_ROOM_K, default=DEFAULT_T_ROOM_K): POSITIVE,
        vol.Optional(
            CONF_CAPACITY_VS_TEMPERATURE, default=DEFAULT_CAPACITY_VS_TEMPERATURE
        ): CAPACITY_VS_TEMPERATURE_TABLE,
    }
)

DISPATCH_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_DISPATCH_MODE, default=DEFAULT_DISPATCH_MODE): vol.In(
            DISPATCH_MODES
        ),
        vol.Optional(
            CONF_MAX_CHARGE_CURRENT, default=DEFAULT_MAX_CHARGE_CURRENT
        ): NON_NEGATIVE,
        vol.Optional(
            CONF_MAX_DISCHARGE_CURRENT, default=DEFAULT_MAX_DISCHARGE_CURRENT
        ): NON_NEGATIVE,
        vol.Optional(
            CONF_MIN_MODE_TIME_MINUTES, default=DEFAULT_MIN_MODE_TIME_MINUTES
        ): NON_NEGATIVE,
        vol.Optional(CONF_COUPLING, default=DEFAULT_COUPLING): vol.In(COUPLINGS),
        vol.Optional(CONF_DC_DC_EFFICIENCY, default=DEFAULT_DC_DC_EFFICIENCY): PERCENT,
        vol.Optional(CONF_AC_DC_EFFICIENCY, default=DEFAULT_AC_DC_EFFICIENCY): PERCENT,
        vol.Optional(CONF_DC_AC_EFFICIENCY, default=DEFAULT_DC_AC_EFFICIENCY): PERCENT,
        vol.Optional(
            CONF_SOC_TOLERANCE_PERCENT, default=DEFAULT_SOC_TOLERANCE_PERCENT
        ): NON_NEGATIVE,
        vol.Optional(CONF_PROFILES): vol.All(
            vol.Length(min=1, max=MAX_MANUAL_PROFILES), [PROFILE_SCHEMA]
        ),
        vol.Optional(CONF_SCHEDULE): vol.All(
            vol.Length(min=MONTHS_PER_YEAR, max=MONTHS_PER_YEAR),
            [[vol.All(vol.Coerce(int), vol.Range(min=1))]],
        ),
    }
)

SYSTEM_SCHEMA = vol.Schema(
    {
        **BATTERY_SCHEMA.schema,
        **LIFETIME_SCHEMA.schema,
        **THERMAL_SCHEMA.schema,
        **DISPATCH_SCHEMA.schema,
    }
)


def _validate_schedule(config: dict[str, Any]) -> None:
    """Check the schedule shape and the profile ids it references."""
    steps_per_hour = MINUTES_PER_HOUR // config[CONF_TIME_STEP_MINUTES]
    allowed_columns = {HOURS_PER_DAY, HOURS_PER_DAY * steps_per_hour}
    num_profiles = len(config[CONF_PROFILES])

    columns = {len(row) for row in config[CONF_SCHEDULE]}
    if len(columns) != 1 or not columns <= allowed_columns:
        raise vol.Invalid(
            f"schedule rows must all have one of {sorted(allowed_columns)} columns",
            path=[CONF_SCHEDULE],
        )

    for row in config[CONF_SCHEDULE]:
        for profile in row:
            if profile > num_profiles:
                raise vol.Invalid(
                    f"schedule references profile {profile} but only "
                    f"{num_profiles} are defined",
                    path=[CONF_SCHEDULE],
                )


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate a simulator configuration and fill in defaults.

    Args:
        config: Raw configuration keyed by CONF_* constants

    Returns:
        Normalized configuration

    Raises:
        vol.Invalid: If any value or table is unusable
    """
    validated = SYSTEM_SCHEMA(dict(config))

    if validated[CONF_SOC_MIN_PERCENT] >= validated[CONF_SOC_MAX_PERCENT]:
        raise vol.Invalid(
            "minimum SOC must be below maximum SOC", path=[CONF_SOC_MIN_PERCENT]
        )

    if CONF_PROFILES not in validated:
        validated[CONF_PROFILES] = [PROFILE_SCHEMA({})]
    if CONF_SCHEDULE not in validated:
        validated[CONF_SCHEDULE] = [
            [1] * HOURS_PER_DAY for _ in range(MONTHS_PER_YEAR)
        ]
    _validate_schedule(validated)

    _LOGGER.debug(
        "Validated configuration: chemistry=%s, dispatch=%s, time step=%d min",
        validated[CONF_CHEMISTRY],
        validated[CONF_DISPATCH_MODE],
        validated[CONF_TIME_STEP_MINUTES],
    )
    return validated
