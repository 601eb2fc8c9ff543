"""Time-series driver for the battery storage simulator."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from .battery_model import Battery, create_battery
from .config_schema import validate_config
from .const import (
    AUTOMATED_MODES,
    CONF_DISPATCH_MODE,
    CONF_REPLACEMENT_OPTION,
    CONF_REPLACEMENT_SCHEDULE,
    CONF_TIME_STEP_MINUTES,
    HOURS_PER_DAY,
    HOURS_PER_YEAR,
    MINUTES_PER_HOUR,
    MODE_LOOK_AHEAD,
    REPLACE_ON_SCHEDULE,
)
from .dispatch import ManualDispatch
from .helpers import resample_forecast, safe_float
from .optimizer import AutomatedDispatch

_LOGGER = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Per-step and per-year outputs of a simulation run."""

    dt_hour: float
    dispatch_mode: str

    # Per step
    soc_percent: list[float] = field(default_factory=list)
    battery_energy_kwh: list[float] = field(default_factory=list)  # + = discharge
    grid_energy_kwh: list[float] = field(default_factory=list)  # + = export
    pv_to_load_kwh: list[float] = field(default_factory=list)
    battery_to_load_kwh: list[float] = field(default_factory=list)
    grid_to_load_kwh: list[float] = field(default_factory=list)
    pv_to_battery_kwh: list[float] = field(default_factory=list)
    grid_to_battery_kwh: list[float] = field(default_factory=list)
    battery_voltage: list[float] = field(default_factory=list)
    temperature_k: list[float] = field(default_factory=list)
    capacity_percent: list[float] = field(default_factory=list)

    # Per year
    annual_charge_kwh: list[float] = field(default_factory=list)
    annual_discharge_kwh: list[float] = field(default_factory=list)
    annual_grid_import_kwh: list[float] = field(default_factory=list)
    annual_grid_export_kwh: list[float] = field(default_factory=list)
    annual_energy_loss_kwh: list[float] = field(default_factory=list)
    annual_efficiency_percent: list[float] = field(default_factory=list)
    annual_replacements: list[int] = field(default_factory=list)

    @property
    def num_steps(self) -> int:
        return len(self.soc_percent)

    def _record_step(self, battery: Battery, dispatch: ManualDispatch) -> None:
        self.soc_percent.append(battery.capacity_model().soc)
        self.battery_energy_kwh.append(dispatch.energy_tofrom_battery)
        self.grid_energy_kwh.append(dispatch.energy_tofrom_grid)
        self.pv_to_load_kwh.append(dispatch.pv_to_load)
        self.battery_to_load_kwh.append(dispatch.battery_to_load)
        self.grid_to_load_kwh.append(dispatch.grid_to_load)
        self.pv_to_battery_kwh.append(dispatch.pv_to_batt)
        self.grid_to_battery_kwh.append(dispatch.grid_to_batt)
        self.battery_voltage.append(battery.battery_voltage())
        self.temperature_k.append(battery.thermal_model().T_battery)
        self.capacity_percent.append(battery.lifetime_model().capacity_percent)

    def _record_year(self, battery: Battery, dispatch: ManualDispatch) -> None:
        self.annual_charge_kwh.append(dispatch.charge_annual)
        self.annual_discharge_kwh.append(dispatch.discharge_annual)
        self.annual_grid_import_kwh.append(dispatch.grid_import_annual)
        self.annual_grid_export_kwh.append(dispatch.grid_export_annual)
        self.annual_energy_loss_kwh.append(dispatch.energy_loss_annual)
        self.annual_efficiency_percent.append(dispatch.average_efficiency)
        self.annual_replacements.append(battery.lifetime_model().replacements)


def run_simulation(
    config: dict[str, Any],
    pv: Sequence[float],
    load: Sequence[float],
    years: int = 1,
    series_interval_minutes: int | None = None,
) -> SimulationResult:
    """Simulate a battery dispatched against PV and load.

    The PV and load series are average power (kW) per time step and
    describe one year; they repeat for every simulated year. In
    automated modes the same series double as a perfect forecast
    (look ahead) or as yesterday's actuals (look behind). Missing or
    non-numeric samples read as zero. With the ``schedule`` replacement
    option the battery is replaced at the first lifetime check after each
    listed year.

    Args:
        config: Raw configuration keyed by CONF_* constants
        pv: PV power per step (kW)
        load: Load power per step (kW)
        years: Number of years to simulate
        series_interval_minutes: Interval of the series when it differs
            from the configured time step; the series are resampled

    Returns:
        SimulationResult

    Raises:
        vol.Invalid: If the configuration is unusable
        ValueError: If the series are empty, differ in length or do not
            cover whole hours
    """
    validated = validate_config(config)
    dt_hour = validated[CONF_TIME_STEP_MINUTES] / MINUTES_PER_HOUR
    steps_per_hour = MINUTES_PER_HOUR // validated[CONF_TIME_STEP_MINUTES]
    mode = validated[CONF_DISPATCH_MODE]
    replace_on_schedule = validated[CONF_REPLACEMENT_OPTION] == REPLACE_ON_SCHEDULE

    pv = [safe_float(value) for value in pv]
    load = [safe_float(value) for value in load]
    if series_interval_minutes is not None:
        step_minutes = validated[CONF_TIME_STEP_MINUTES]
        pv = resample_forecast(pv, series_interval_minutes, step_minutes)
        load = resample_forecast(load, series_interval_minutes, step_minutes)

    if not pv or len(pv) != len(load):
        raise ValueError("PV and load series must be non-empty and equally long")
    if len(pv) % steps_per_hour != 0:
        raise ValueError(
            f"Series of {len(pv)} steps does not cover whole hours "
            f"at {steps_per_hour} steps per hour"
        )

    battery = create_battery(validated)
    automated = mode in AUTOMATED_MODES
    # Manual mode follows the schedule width
    dispatch = ManualDispatch.from_config(
        battery, validated, subhourly=True if automated else None
    )

    optimizer = None
    if automated:
        optimizer = AutomatedDispatch(dispatch, dt_hour, pv, load, mode)

    steps_per_day = HOURS_PER_DAY * steps_per_hour
    steps_per_year = len(pv)
    result = SimulationResult(dt_hour=dt_hour, dispatch_mode=mode)

    _LOGGER.debug(
        "Simulating %d year(s) of %d steps in %s mode", years, steps_per_year, mode
    )

    for year in range(years):
        if year > 0:
            dispatch.new_year()
            if optimizer is not None:
                optimizer.new_year()

        for idx in range(steps_per_year):
            hour_of_year = (idx // steps_per_hour) % HOURS_PER_YEAR
            step = idx % steps_per_hour

            if optimizer is not None:
                if mode == MODE_LOOK_AHEAD:
                    forecast_idx = idx
                else:
                    forecast_idx = (idx - steps_per_day) % steps_per_year
                optimizer.update_dispatch(hour_of_year, forecast_idx)

            dispatch.dispatch(
                hour_of_year, step, pv[idx] * dt_hour, load[idx] * dt_hour
            )
            result._record_step(battery, dispatch)

        result._record_year(battery, dispatch)

        if replace_on_schedule and year + 1 in validated[CONF_REPLACEMENT_SCHEDULE]:
            _LOGGER.info("Battery replacement scheduled after year %d", year + 1)
            battery.lifetime_model().force_replacement()

    _LOGGER.info(
        "Simulation finished: %d steps, final SOC %.1f%%, %d replacement(s)",
        result.num_steps,
        battery.capacity_model().soc,
        battery.lifetime_model().replacements,
    )
    return result
