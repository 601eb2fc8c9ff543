"""Battery dispatch controllers for the battery storage simulator.

Energy sign convention: positive battery energy discharges the battery,
negative battery energy charges it. Positive grid energy is export.
All energies are kWh per time step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .battery_model import Battery
from .const import (
    COUPLING_AC,
    HOURS_PER_DAY,
    INITIAL_MODE_TIME_MINUTES,
    KILOWATT_TO_WATT,
    MINUTES_PER_HOUR,
    WATT_TO_KILOWATT,
)
from .helpers import month_hour

_LOGGER = logging.getLogger(__name__)


@dataclass
class DispatchProfile:
    """What the battery may do while a schedule entry is active."""

    charge: bool = True
    discharge: bool = True
    grid_charge: bool = False
    percent_discharge: float = 100.0
    percent_charge: float = 100.0

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> DispatchProfile:
        """Create a profile from a validated profile dict."""
        from .const import (
            CONF_PROFILE_CHARGE,
            CONF_PROFILE_DISCHARGE,
            CONF_PROFILE_GRID_CHARGE,
            CONF_PROFILE_PERCENT_CHARGE,
            CONF_PROFILE_PERCENT_DISCHARGE,
        )

        return cls(
            charge=bool(config.get(CONF_PROFILE_CHARGE, True)),
            discharge=bool(config.get(CONF_PROFILE_DISCHARGE, True)),
            grid_charge=bool(config.get(CONF_PROFILE_GRID_CHARGE, False)),
            percent_discharge=float(config.get(CONF_PROFILE_PERCENT_DISCHARGE, 100.0)),
            percent_charge=float(config.get(CONF_PROFILE_PERCENT_CHARGE, 100.0)),
        )


@dataclass
class DispatchConfig:
    """Limits and conversion efficiencies shared by every dispatch mode."""

    dt_hour: float = 1.0
    soc_min: float = 15.0
    soc_max: float = 95.0
    max_charge_current: float = 1000.0
    max_discharge_current: float = 1000.0
    min_mode_time_minutes: float = 10.0
    coupling: str = COUPLING_AC
    dc_dc_efficiency: float = 99.0
    ac_dc_efficiency: float = 96.0
    dc_ac_efficiency: float = 96.0
    soc_tolerance: float = 0.001
    profiles: list[DispatchProfile] = field(default_factory=list)
    schedule: list[list[int]] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> DispatchConfig:
        """Create DispatchConfig from a configuration dict, filling in defaults."""
        from .config_schema import validate_config
        from .const import (
            CONF_AC_DC_EFFICIENCY,
            CONF_COUPLING,
            CONF_DC_AC_EFFICIENCY,
            CONF_DC_DC_EFFICIENCY,
            CONF_MAX_CHARGE_CURRENT,
            CONF_MAX_DISCHARGE_CURRENT,
            CONF_MIN_MODE_TIME_MINUTES,
            CONF_PROFILES,
            CONF_SCHEDULE,
            CONF_SOC_MAX_PERCENT,
            CONF_SOC_MIN_PERCENT,
            CONF_SOC_TOLERANCE_PERCENT,
            CONF_TIME_STEP_MINUTES,
        )

        config = validate_config(config)
        return cls(
            dt_hour=config[CONF_TIME_STEP_MINUTES] / MINUTES_PER_HOUR,
            soc_min=float(config[CONF_SOC_MIN_PERCENT]),
            soc_max=float(config[CONF_SOC_MAX_PERCENT]),
            max_charge_current=float(config[CONF_MAX_CHARGE_CURRENT]),
            max_discharge_current=float(config[CONF_MAX_DISCHARGE_CURRENT]),
            min_mode_time_minutes=float(config[CONF_MIN_MODE_TIME_MINUTES]),
            coupling=config[CONF_COUPLING],
            dc_dc_efficiency=float(config[CONF_DC_DC_EFFICIENCY]),
            ac_dc_efficiency=float(config[CONF_AC_DC_EFFICIENCY]),
            dc_ac_efficiency=float(config[CONF_DC_AC_EFFICIENCY]),
            soc_tolerance=float(config[CONF_SOC_TOLERANCE_PERCENT]),
            profiles=[DispatchProfile.from_config(p) for p in config[CONF_PROFILES]],
            schedule=[list(row) for row in config[CONF_SCHEDULE]],
        )


class Dispatch:
    """Controller logic shared by manual and automated dispatch.

    Holds a reference to a Battery it does not own. Each step a subclass
    picks a requested battery energy, passes it through the SOC, switch
    and current controllers, runs the battery and then books the
    realized flows.
    """

    def __init__(
        self,
        battery: Battery,
        dt_hour: float,
        soc_min: float,
        soc_max: float,
        max_charge_current: float,
        max_discharge_current: float,
        min_mode_time_minutes: float,
        coupling: str = COUPLING_AC,
        dc_dc_efficiency: float = 100.0,
        ac_dc_efficiency: float = 100.0,
        dc_ac_efficiency: float = 100.0,
    ):
        self.battery = battery
        self.dt_hour = dt_hour
        self.soc_min = soc_min
        self.soc_max = soc_max
        self.max_charge_current = max_charge_current
        self.max_discharge_current = max_discharge_current
        self.min_mode_time_minutes = min_mode_time_minutes
        self.coupling = coupling
        self.dc_dc_efficiency = dc_dc_efficiency
        self.ac_dc_efficiency = ac_dc_efficiency
        self.dc_ac_efficiency = dc_ac_efficiency

        # Per-step flows
        self._e_tofrom_batt = 0.0
        self._e_grid = 0.0
        self._e_gen = 0.0
        self._pv_to_load = 0.0
        self._battery_to_load = 0.0
        self._grid_to_load = 0.0
        self._pv_to_batt = 0.0
        self._grid_to_batt = 0.0
        self._battery_fraction = 0.0
        self._pv_fraction = 0.0
        self._loss_current = 0.0

        # Throttles of the active profile
        self.percent_discharge = 100.0
        self.percent_charge = 100.0

        # Anti-chatter state
        self._t_at_mode = INITIAL_MODE_TIME_MINUTES
        self._prev_charging = False
        self._charging = False
        self._grid_recharge = False

        voltage = battery.battery_voltage()
        q0 = battery.battery_charge_total()
        qmax = battery.battery_charge_maximum()
        self._e_max_discharge = (
            voltage * (q0 - qmax * soc_min * 0.01) * WATT_TO_KILOWATT
        )
        self._e_max_charge = voltage * (q0 - qmax * soc_max * 0.01) * WATT_TO_KILOWATT

        # Efficiency bookkeeping; the initial charge counts as charged energy
        self._charge_accumulated = q0 * voltage * WATT_TO_KILOWATT
        self._discharge_accumulated = 0.0
        self._charge_annual = 0.0
        self._discharge_annual = 0.0
        self._grid_import_annual = 0.0
        self._grid_export_annual = 0.0
        self._e_loss_annual = 0.0
        self._average_efficiency = 100.0

    @property
    def energy_tofrom_battery(self) -> float:
        return self._e_tofrom_batt

    @property
    def energy_tofrom_grid(self) -> float:
        return self._e_grid

    @property
    def pv_to_load(self) -> float:
        return self._pv_to_load

    @property
    def battery_to_load(self) -> float:
        return self._battery_to_load

    @property
    def grid_to_load(self) -> float:
        return self._grid_to_load

    @property
    def pv_to_batt(self) -> float:
        return self._pv_to_batt

    @property
    def grid_to_batt(self) -> float:
        return self._grid_to_batt

    @property
    def gen(self) -> float:
        """PV plus battery energy on the DC or AC bus this step."""
        return self._e_gen

    @property
    def average_efficiency(self) -> float:
        """Cumulative discharged over charged energy (%)."""
        return self._average_efficiency

    @property
    def charge_annual(self) -> float:
        return self._charge_annual

    @property
    def discharge_annual(self) -> float:
        return self._discharge_annual

    @property
    def grid_import_annual(self) -> float:
        return self._grid_import_annual

    @property
    def grid_export_annual(self) -> float:
        return self._grid_export_annual

    @property
    def energy_loss_annual(self) -> float:
        """Annual charged minus discharged energy (kWh)."""
        return self._e_loss_annual

    @property
    def charging(self) -> bool:
        return self._charging

    @property
    def grid_recharge(self) -> bool:
        """True while latched into recharging from the grid."""
        return self._grid_recharge

    @property
    def time_at_mode(self) -> float:
        """Minutes spent in the present charge direction."""
        return self._t_at_mode

    def new_year(self) -> None:
        """Reset the annual accumulators."""
        self._charge_annual = 0.0
        self._discharge_annual = 0.0
        self._grid_import_annual = 0.0
        self._grid_export_annual = 0.0
        self._e_loss_annual = 0.0

    def _reset_flows(self) -> None:
        self._loss_current = 0.0
        self._e_grid = 0.0
        self._e_tofrom_batt = 0.0
        self._pv_to_load = 0.0
        self._battery_to_load = 0.0
        self._grid_to_load = 0.0
        self._pv_to_batt = 0.0
        self._grid_to_batt = 0.0

    def soc_controller(
        self, battery_voltage: float, charge_total: float, charge_max: float
    ) -> None:
        """Limit the requested energy to the configured SOC window.

        The energy available in the window is captured when the charge
        direction changes, and the profile throttle is a percentage of
        that captured amount.
        """
        if self._e_tofrom_batt > 0:
            self._charging = False
            e_max_discharge = (
                battery_voltage
                * (charge_total - charge_max * self.soc_min * 0.01)
                * WATT_TO_KILOWATT
            )
            if e_max_discharge < 0:
                e_max_discharge = 0.0
            if self._e_tofrom_batt > e_max_discharge:
                self._e_tofrom_batt = e_max_discharge
            if self._charging != self._prev_charging:
                self._e_max_discharge = e_max_discharge

            e_percent = self._e_max_discharge * self.percent_discharge * 0.01
            if self._e_tofrom_batt > e_percent:
                self._e_tofrom_batt = e_percent

        elif self._e_tofrom_batt < 0:
            self._charging = True
            e_max_charge = (
                battery_voltage
                * (charge_total - charge_max * self.soc_max * 0.01)
                * WATT_TO_KILOWATT
            )
            if e_max_charge > 0:
                e_max_charge = 0.0
            if self._e_tofrom_batt < e_max_charge:
                self._e_tofrom_batt = e_max_charge
            if self._charging != self._prev_charging:
                self._e_max_charge = e_max_charge

            e_percent = self._e_max_charge * self.percent_charge * 0.01
            if abs(self._e_tofrom_batt) > abs(e_percent):
                self._e_tofrom_batt = e_percent

        else:
            self._charging = self._prev_charging

    def switch_controller(self) -> None:
        """Hold the battery idle instead of flipping direction too soon."""
        step_minutes = round(self.dt_hour * MINUTES_PER_HOUR)
        if self._charging != self._prev_charging:
            if self._t_at_mode <= self.min_mode_time_minutes:
                self._e_tofrom_batt = 0.0
                self._charging = self._prev_charging
                self._t_at_mode += step_minutes
            else:
                self._t_at_mode = 0.0
        self._t_at_mode += step_minutes

    def current_controller(self, battery_voltage: float) -> float:
        """Convert the requested energy to a current within the limits.

        Args:
            battery_voltage: Bank voltage (V)

        Returns:
            Current (A), positive when discharging
        """
        power_w = KILOWATT_TO_WATT * self._e_tofrom_batt / self.dt_hour
        current = power_w / battery_voltage
        if self._charging:
            if abs(current) > self.max_charge_current:
                current = -self.max_charge_current
        elif current > self.max_discharge_current:
            current = self.max_discharge_current
        return current

    def conversion_loss_in(self, current: float) -> float:
        """Current after the charging conversion path."""
        current_in = current
        current *= self.dc_dc_efficiency * 0.01
        if self.coupling == COUPLING_AC:
            current *= self.ac_dc_efficiency * 0.01
        self._loss_current += abs(current_in - current)
        return current

    def conversion_loss_out(self, current: float) -> float:
        """Current after the discharging conversion path."""
        current_in = current
        current *= self.dc_dc_efficiency * 0.01
        if self.coupling == COUPLING_AC:
            current *= self.dc_ac_efficiency * 0.01
        self._loss_current += abs(current_in - current)
        return current

    def total_loss(
        self, current: float, battery_voltage: float, battery_voltage_new: float
    ) -> None:
        """Subtract conversion losses from the realized battery energy."""
        mean_voltage = 0.5 * (battery_voltage + battery_voltage_new)
        multiplier = mean_voltage * self.dt_hour * WATT_TO_KILOWATT
        if self._charging:
            self.conversion_loss_in(current)
        else:
            self.conversion_loss_out(current)

        self._e_tofrom_batt -= self._loss_current * multiplier

    def compute_efficiency(self) -> None:
        """Update cumulative and annual throughput and the efficiency.

        The reported annual loss is charged minus discharged energy,
        which also absorbs the energy still stored in the battery.
        """
        if self._e_tofrom_batt > 0:
            self._discharge_accumulated += self._e_tofrom_batt
            self._discharge_annual += self._e_tofrom_batt
        elif self._e_tofrom_batt < 0:
            self._charge_accumulated += -self._e_tofrom_batt
            self._charge_annual += -self._e_tofrom_batt

        if self._charge_accumulated > 0:
            self._average_efficiency = (
                100.0 * self._discharge_accumulated / self._charge_accumulated
            )

        self._e_loss_annual = self._charge_annual - self._discharge_annual
        self._prev_charging = self._charging

    def compute_grid_net(self, e_gen: float, e_load: float) -> None:
        """Allocate generation against load and attribute battery charging.

        PV serves the load before the battery does. Battery charging is
        attributed to PV up to the PV surplus and to the grid otherwise.
        """
        e_pv = e_gen * self._pv_fraction
        e_battery = e_gen * self._battery_fraction
        self._e_grid = e_gen - e_load

        if self._e_grid > 0:
            self._grid_export_annual += self._e_grid
        else:
            self._grid_import_annual += -self._e_grid

        if e_pv > e_load:
            self._pv_to_load = e_load
        else:
            self._pv_to_load = e_pv
            if self._e_tofrom_batt > 0:
                self._battery_to_load = e_battery

            # Slightly more may be dispatched than needed
            if (
                self._battery_to_load > e_load
                or self._battery_to_load + self._pv_to_load > e_load
            ):
                self._battery_to_load = e_load - self._pv_to_load

            self._grid_to_load = e_load - (self._pv_to_load + self._battery_to_load)

        if self._e_tofrom_batt < 0:
            if self._pv_to_batt > abs(self._e_tofrom_batt):
                self._pv_to_batt = abs(self._e_tofrom_batt)
            self._grid_to_batt = abs(self._e_tofrom_batt) - self._pv_to_batt
        else:
            self._pv_to_batt = 0.0
            self._grid_to_batt = 0.0

    def _run_battery(self, e_pv: float, e_load: float) -> None:
        """Push the requested energy through the controllers and the battery."""
        battery = self.battery
        battery_voltage = battery.battery_voltage()

        self.soc_controller(
            battery_voltage,
            battery.battery_charge_total(),
            battery.battery_charge_maximum(),
        )
        self.switch_controller()
        current = self.current_controller(battery_voltage)

        battery.run(current)

        # Clamping inside the battery can change the realized flow
        current = battery.capacity_model().current
        battery_voltage_new = battery.battery_voltage()
        self._e_tofrom_batt = (
            current
            * 0.5
            * (battery_voltage + battery_voltage_new)
            * self.dt_hour
            * WATT_TO_KILOWATT
        )

        self.total_loss(current, battery_voltage, battery_voltage_new)
        self.compute_efficiency()

        self._e_gen = e_pv + self._e_tofrom_batt
        if abs(self._e_gen) > 0:
            self._battery_fraction = self._e_tofrom_batt / self._e_gen
            self._pv_fraction = e_pv / self._e_gen
        else:
            self._battery_fraction = 0.0
            self._pv_fraction = 0.0

        # DC-coupled systems are netted after an external inverter
        if self.coupling == COUPLING_AC:
            self.compute_grid_net(self._e_gen, e_load)


class ManualDispatch(Dispatch):
    """Rule-based dispatch driven by a month by hour profile schedule."""

    def __init__(
        self,
        battery: Battery,
        dt_hour: float,
        soc_min: float,
        soc_max: float,
        max_charge_current: float,
        max_discharge_current: float,
        min_mode_time_minutes: float,
        coupling: str,
        dc_dc_efficiency: float,
        ac_dc_efficiency: float,
        dc_ac_efficiency: float,
        schedule: list[list[int]],
        profiles: list[DispatchProfile],
        subhourly: bool | None = None,
        soc_tolerance: float = 0.001,
    ):
        """Initialize the dispatcher.

        Args:
            battery: Battery to dispatch
            dt_hour: Time step (hours)
            soc_min: Minimum SOC (%)
            soc_max: Maximum SOC (%)
            max_charge_current: Charge current limit (A)
            max_discharge_current: Discharge current limit (A)
            min_mode_time_minutes: Minimum time between direction changes
            coupling: COUPLING_AC or COUPLING_DC
            dc_dc_efficiency: DC/DC conversion efficiency (%)
            ac_dc_efficiency: AC/DC conversion efficiency (%)
            dc_ac_efficiency: DC/AC conversion efficiency (%)
            schedule: 12 rows of 1-based profile ids, one column per
                hour or one per sub-hourly step
            profiles: Dispatch profiles referenced by the schedule
            subhourly: Whether schedule columns are sub-hourly steps.
                None infers it from the schedule width. When forced on,
                hourly rows are repeated for every step of the hour.
            soc_tolerance: SOC band (%) for the grid recharge latch
        """
        super().__init__(
            battery,
            dt_hour,
            soc_min,
            soc_max,
            max_charge_current,
            max_discharge_current,
            min_mode_time_minutes,
            coupling,
            dc_dc_efficiency,
            ac_dc_efficiency,
            dc_ac_efficiency,
        )
        self.profiles = profiles
        self.soc_tolerance = soc_tolerance
        self.steps_per_hour = round(1 / dt_hour)

        subhourly_width = HOURS_PER_DAY * self.steps_per_hour
        if subhourly is None:
            subhourly = self.steps_per_hour > 1 and all(
                len(row) == subhourly_width for row in schedule
            )
        if subhourly:
            schedule = [
                row
                if len(row) == subhourly_width
                else [p for p in row for _ in range(self.steps_per_hour)]
                for row in schedule
            ]
        self.schedule = schedule
        self.subhourly = subhourly

        self.can_charge = False
        self.can_discharge = False
        self.can_grid_charge = False

    @classmethod
    def from_config(
        cls,
        battery: Battery,
        config: dict[str, Any],
        subhourly: bool | None = None,
    ) -> ManualDispatch:
        """Create a dispatcher from a configuration dict.

        The schedule column mode follows the schedule width unless
        ``subhourly`` is given.
        """
        cfg = DispatchConfig.from_config(config)
        return cls(
            battery,
            cfg.dt_hour,
            cfg.soc_min,
            cfg.soc_max,
            cfg.max_charge_current,
            cfg.max_discharge_current,
            cfg.min_mode_time_minutes,
            cfg.coupling,
            cfg.dc_dc_efficiency,
            cfg.ac_dc_efficiency,
            cfg.dc_ac_efficiency,
            schedule=cfg.schedule,
            profiles=cfg.profiles,
            subhourly=subhourly,
            soc_tolerance=cfg.soc_tolerance,
        )

    def profile_for(self, hour_of_year: int, step: int) -> int:
        """1-based profile id scheduled for a step."""
        month, hour = month_hour(hour_of_year)
        if self.subhourly:
            column = (hour - 1) * self.steps_per_hour + step
        else:
            column = hour - 1
        return self.schedule[month - 1][column]

    def dispatch(
        self, hour_of_year: int, step: int, e_pv: float, e_load: float
    ) -> None:
        """Dispatch the battery for one step.

        Args:
            hour_of_year: Hour of the year (0-8759)
            step: Sub-hourly step within the hour
            e_pv: PV energy this step (kWh)
            e_load: Load energy this step (kWh)
        """
        profile = self.profiles[self.profile_for(hour_of_year, step) - 1]

        self.can_charge = profile.charge
        self.can_discharge = profile.discharge
        self.can_grid_charge = profile.grid_charge
        self.percent_discharge = 0.0
        self.percent_charge = 0.0
        if self.can_discharge:
            self.percent_discharge = profile.percent_discharge
        if self.can_charge:
            self.percent_charge = 100.0
        if self.can_grid_charge:
            self.percent_charge = profile.percent_charge

        battery_voltage = self.battery.battery_voltage()
        energy_needed_to_fill = (
            self.battery.battery_charge_needed() * battery_voltage * WATT_TO_KILOWATT
        )

        self._reset_flows()
        self._charging = True

        if e_pv > e_load:
            if self.can_charge:
                # Offer the whole surplus; the controllers take what fits
                self._pv_to_batt = e_pv - e_load
                self._e_tofrom_batt = -self._pv_to_batt
                if e_pv - e_load < energy_needed_to_fill and self.can_grid_charge:
                    self._e_tofrom_batt = -energy_needed_to_fill
            elif self.can_grid_charge:
                self._e_tofrom_batt = -energy_needed_to_fill

        elif e_load >= e_pv:
            if self.can_discharge:
                self._e_tofrom_batt = e_load - e_pv
                soc = self.battery.capacity_model().soc
                near_min = abs(soc - self.soc_min) < self.soc_tolerance
                if (near_min or self._grid_recharge) and self.can_grid_charge:
                    self._grid_recharge = True
                    self._e_tofrom_batt = -energy_needed_to_fill
                    if abs(soc - self.soc_max) < self.soc_tolerance:
                        self._grid_recharge = False
            elif self.can_grid_charge:
                self._e_tofrom_batt = -energy_needed_to_fill
            else:
                self._grid_recharge = False

        self._run_battery(e_pv, e_load)
