"""Conftest for battery simulator tests."""

from __future__ import annotations

from typing import Any

import pytest

from battery_sim.battery_model import Battery, create_battery
from battery_sim.const import (
    CHEMISTRY_LITHIUM_ION,
    CONF_AC_DC_EFFICIENCY,
    CONF_CAPACITY_VS_TEMPERATURE,
    CONF_CELL_VOLTAGE_NOMINAL,
    CONF_CHEMISTRY,
    CONF_COUPLING,
    CONF_DC_AC_EFFICIENCY,
    CONF_DC_DC_EFFICIENCY,
    CONF_DISPATCH_MODE,
    CONF_LIFETIME_TABLE,
    CONF_MIN_MODE_TIME_MINUTES,
    CONF_NUM_CELLS_SERIES,
    CONF_NUM_STRINGS,
    CONF_Q_FULL,
    CONF_SOC_MAX_PERCENT,
    CONF_SOC_MIN_PERCENT,
    CONF_TIME_STEP_MINUTES,
    CONF_VOLTAGE_MODEL,
    COUPLING_AC,
    DEFAULT_CAPACITY_VS_TEMPERATURE,
    DEFAULT_LIFETIME_TABLE,
    MODE_MANUAL,
    VOLTAGE_BASIC,
)
from battery_sim.dispatch import ManualDispatch


@pytest.fixture
def lifetime_table() -> list[list[float]]:
    """Two-DOD degradation table."""
    return [list(row) for row in DEFAULT_LIFETIME_TABLE]


@pytest.fixture
def capacity_vs_temperature() -> list[list[float]]:
    return [list(row) for row in DEFAULT_CAPACITY_VS_TEMPERATURE]


@pytest.fixture
def simple_config() -> dict[str, Any]:
    """A 10 kWh, 400 V lithium-ion bank with no derating and lossless converters.

    Constant voltage and flat retention tables keep the energy arithmetic
    exact, so dispatch tests can assert on kWh directly.
    """
    return {
        CONF_CHEMISTRY: CHEMISTRY_LITHIUM_ION,
        CONF_TIME_STEP_MINUTES: 60,
        CONF_SOC_MAX_PERCENT: 95.0,
        CONF_SOC_MIN_PERCENT: 15.0,
        CONF_NUM_CELLS_SERIES: 100,
        CONF_NUM_STRINGS: 1,
        CONF_Q_FULL: 25.0,
        CONF_VOLTAGE_MODEL: VOLTAGE_BASIC,
        CONF_CELL_VOLTAGE_NOMINAL: 4.0,
        CONF_LIFETIME_TABLE: [[50.0, 0.0, 100.0], [50.0, 10000.0, 100.0]],
        CONF_CAPACITY_VS_TEMPERATURE: [[-10.0, 100.0], [60.0, 100.0]],
        CONF_MIN_MODE_TIME_MINUTES: 0,
        CONF_COUPLING: COUPLING_AC,
        CONF_DC_DC_EFFICIENCY: 100.0,
        CONF_AC_DC_EFFICIENCY: 100.0,
        CONF_DC_AC_EFFICIENCY: 100.0,
        CONF_DISPATCH_MODE: MODE_MANUAL,
    }


@pytest.fixture
def simple_battery(simple_config) -> Battery:
    return create_battery(simple_config)


@pytest.fixture
def make_dispatch(simple_config):
    """Factory for a (battery, dispatcher) pair with config overrides."""

    def _make(
        overrides: dict[str, Any] | None = None, subhourly: bool | None = None
    ) -> tuple[Battery, ManualDispatch]:
        config = {**simple_config, **(overrides or {})}
        battery = create_battery(config)
        return battery, ManualDispatch.from_config(battery, config, subhourly)

    return _make
