"""Automated peak-shaving dispatch for the battery storage simulator.

Once per simulated day the optimizer looks at a 24 hour forecast of net
grid load (load - PV), picks a target power to shave peaks down to, and
rewrites the schedule and profiles of a ManualDispatch so that:

- profile 1 charges from PV only (the default for every step)
- each step above the target discharges by the excess
- the lowest-load steps recharge from the grid up to the target
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .const import (
    HOURS_PER_DAY,
    INITIAL_TARGET_MIN_KW,
    MODE_LOOK_AHEAD,
    PEAK_SHAVE_FRACTION,
    TARGET_POWER_MARGIN,
    WATT_TO_KILOWATT,
)
from .dispatch import DispatchProfile, ManualDispatch
from .helpers import month_hour

_LOGGER = logging.getLogger(__name__)


@dataclass
class GridPoint:
    """Forecast net grid load for one step of the day."""

    grid: float  # kW, positive = import
    hour: int  # Hour offset from the start of the day
    step: int  # Step within the hour


class AutomatedDispatch:
    """Writes a daily peak-shaving schedule into a manual dispatcher."""

    def __init__(
        self,
        dispatch: ManualDispatch,
        dt_hour: float,
        pv: Sequence[float],
        load: Sequence[float],
        mode: str = MODE_LOOK_AHEAD,
    ):
        """Initialize the optimizer.

        Args:
            dispatch: Dispatcher whose schedule is rewritten every day. Its
                schedule switches to sub-hourly columns.
            dt_hour: Time step (hours)
            pv: PV power forecast (kW) per step
            load: Load power forecast (kW) per step
            mode: MODE_LOOK_AHEAD or MODE_LOOK_BEHIND
        """
        self._dispatch = dispatch
        self._dt_hour = dt_hour
        self._mode = mode
        self._hour_last_updated = -999
        self.steps_per_hour = round(1 / dt_hour)
        self.num_steps = HOURS_PER_DAY * self.steps_per_hour
        self.grid: list[GridPoint] = []

        self._pv: Sequence[float] = []
        self._load: Sequence[float] = []
        self.update_pv_load_data(pv, load)

        dispatch.subhourly = True

    @property
    def mode(self) -> str:
        return self._mode

    def new_year(self) -> None:
        """Allow the first day of a repeated year to be planned again."""
        self._hour_last_updated = -999

    def update_pv_load_data(self, pv: Sequence[float], load: Sequence[float]) -> None:
        """Replace the forecast series."""
        if len(pv) != len(load):
            raise ValueError(
                f"PV and load forecasts differ in length ({len(pv)} vs {len(load)})"
            )
        if len(pv) < self.num_steps:
            _LOGGER.warning(
                "Forecast has %d steps, fewer than one day (%d); it will repeat",
                len(pv),
                self.num_steps,
            )
        self._pv = pv
        self._load = load

    def update_dispatch(self, hour_of_year: int, idx: int) -> None:
        """Plan the coming day at a day boundary.

        Calls for any other hour, or repeated calls for the same hour,
        change nothing.

        Args:
            hour_of_year: Hour of the year (0-8759)
            idx: Index of the first forecast step of the day to plan from
        """
        if hour_of_year % HOURS_PER_DAY != 0 or hour_of_year == self._hour_last_updated:
            return

        self.initialize(hour_of_year)
        self.sort_grid(idx)

        profile = 1
        self.set_charge(profile)

        e_useful, e_max = self.compute_energy()
        p_target = self.target_power(e_useful)

        profile = self.set_discharge(hour_of_year, p_target, e_max)
        last_profile = self.set_gridcharge(hour_of_year, profile, p_target, e_max)

        _LOGGER.debug(
            "Day at hour %d: usable energy %.3f kWh, target %.3f kW, "
            "%d discharge and %d grid charge profiles",
            hour_of_year,
            e_useful,
            p_target,
            profile - 1,
            last_profile - profile - 1,
        )

    def initialize(self, hour_of_year: int) -> None:
        """Forget yesterday's profiles and forecast."""
        self._hour_last_updated = hour_of_year
        self._dispatch.profiles = []
        self.grid = []

    def sort_grid(self, idx: int) -> list[GridPoint]:
        """Net grid load for each step of the day, highest first.

        Forecast indices wrap around the end of the series. Equal loads
        keep their chronological order.
        """
        n = len(self._pv)
        grid = []
        for hour in range(HOURS_PER_DAY):
            for step in range(self.steps_per_hour):
                i = idx % n
                grid.append(GridPoint(self._load[i] - self._pv[i], hour, step))
                idx += 1

        grid.sort(key=lambda point: point.grid, reverse=True)
        self.grid = grid
        return grid

    def set_charge(self, profile: int) -> None:
        """Make ``profile`` a PV-only charging profile for every step."""
        self._dispatch.profiles.append(
            DispatchProfile(
                charge=True,
                discharge=False,
                grid_charge=False,
                percent_discharge=0.0,
                percent_charge=100.0,
            )
        )
        for row in self._dispatch.schedule:
            row[:] = [profile] * self.num_steps

    def compute_energy(self) -> tuple[float, float]:
        """Energy available above the minimum SOC.

        Returns:
            Tuple of (usable energy, maximum cyclable energy) in kWh
        """
        battery = self._dispatch.battery
        e_useful = (
            battery.battery_voltage()
            * (
                battery.battery_charge_total()
                - battery.battery_charge_maximum() * self._dispatch.soc_min * 0.01
            )
            * WATT_TO_KILOWATT
        )
        return e_useful, e_useful

    def target_power(self, e_useful: float) -> float:
        """Power level (kW) to shave the day's peaks down to.

        First finds the lowest threshold below which the day holds enough
        headroom to recharge most of the usable energy. Then walks down
        the sorted load curve, accumulating the energy above each level,
        and stops where that energy equals the usable energy.

        Args:
            e_useful: Usable battery energy (kWh)

        Returns:
            Target grid power (kW)
        """
        grid = [point.grid for point in self.grid]
        n = self.num_steps
        dt = self._dt_hour

        p_target_min = INITIAL_TARGET_MIN_KW
        e_charge = 0.0
        index = n - 1
        while e_charge < PEAK_SHAVE_FRACTION * e_useful:
            e_charge = 0.0
            p_target_min = grid[index]
            for ii in range(n - 1, -1, -1):
                if grid[ii] > p_target_min:
                    break
                e_charge += (p_target_min - grid[ii]) * dt
            index -= 1
            if index < 0:
                break

        # Not enough headroom to recharge: shave the single peak only
        if e_charge < PEAK_SHAVE_FRACTION * e_useful:
            return PEAK_SHAVE_FRACTION * grid[0]

        grid_diff = [grid[ii] - grid[ii + 1] for ii in range(n - 1)]

        p_target = grid[0]
        shaved = 0.0
        for ii in range(n - 1):
            # Negative load is never shaved
            if grid[ii + 1] < 0:
                break
            p_target = grid[ii + 1]

            if grid_diff[ii] == 0:
                continue
            shaved += grid_diff[ii] * (ii + 1) * dt

            if shaved >= e_useful:
                p_target += (shaved - e_useful) / ((ii + 1) * dt)
                break

        p_target += TARGET_POWER_MARGIN * p_target

        if p_target < p_target_min:
            p_target = p_target_min
        return p_target

    def _schedule_profile(
        self, hour_of_year: int, point: GridPoint, profile: int
    ) -> None:
        month, hour = month_hour(hour_of_year + point.hour)
        column = (hour - 1) * self.steps_per_hour + point.step
        self._dispatch.schedule[month - 1][column] = profile

    def set_discharge(self, hour_of_year: int, p_target: float, e_max: float) -> int:
        """Add one discharge profile per step above the target.

        Returns:
            The last profile id used
        """
        profile = 1
        for point in self.grid:
            energy_required = (point.grid - p_target) * self._dt_hour
            if energy_required <= 0:
                break

            if e_max > 0:
                discharge_percent = 100 * energy_required / e_max
            else:
                discharge_percent = 100.0
            profile += 1

            self._schedule_profile(hour_of_year, point, profile)
            self._dispatch.profiles.append(
                DispatchProfile(
                    charge=True,
                    discharge=True,
                    grid_charge=False,
                    percent_discharge=discharge_percent,
                    percent_charge=100.0,
                )
            )
        return profile

    def set_gridcharge(
        self, hour_of_year: int, profile: int, p_target: float, e_max: float
    ) -> int:
        """Add grid charging profiles to the lowest-load steps.

        Steps are taken from the lowest net load upwards until the
        planned charge energy reaches ``e_max`` or the load reaches the
        target.

        Returns:
            The next unused profile id
        """
        profile += 1

        # Energy the PV surplus already provides
        charge_energy = 0.0
        for point in self.grid:
            if point.grid < 0:
                charge_energy += -point.grid * self._dt_hour

        if charge_energy >= e_max:
            return profile

        for point in reversed(self.grid):
            if point.grid > p_target or charge_energy >= e_max:
                break

            energy = (p_target - point.grid) * self._dt_hour
            charge_percent = 100 * energy / e_max
            charge_energy += energy
            if charge_percent < 0:
                break

            self._schedule_profile(hour_of_year, point, profile)
            self._dispatch.profiles.append(
                DispatchProfile(
                    charge=True,
                    discharge=False,
                    grid_charge=True,
                    percent_discharge=0.0,
                    percent_charge=charge_percent,
                )
            )
            profile += 1
        return profile
