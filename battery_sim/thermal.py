"""Lumped-mass thermal model for the battery storage simulator."""

from __future__ import annotations

import logging
from typing import Sequence

from .const import CELSIUS_TO_KELVIN, DEFAULT_INTERNAL_RESISTANCE, SECONDS_PER_HOUR
from .helpers import linterp_clamped

_LOGGER = logging.getLogger(__name__)


class ThermalModel:
    """Battery temperature from a single heat balance.

    dT/dt = (h * A * (T_room - T) + I^2 * R) / (m * Cp)

    All surfaces of the enclosure are assumed exposed to room air.
    """

    def __init__(
        self,
        mass: float,
        length: float,
        width: float,
        height: float,
        cp: float,
        h: float,
        t_room: float,
        capacity_vs_temperature: Sequence[Sequence[float]],
    ):
        """Initialize the model at room temperature.

        Args:
            mass: Battery mass (kg)
            length: Enclosure length (m)
            width: Enclosure width (m)
            height: Enclosure height (m)
            cp: Specific heat (J/kg-K)
            h: Heat transfer coefficient (W/m2-K)
            t_room: Room temperature (K)
            capacity_vs_temperature: Rows of (temperature C, capacity %)

        Raises:
            ValueError: If the capacity table has no rows
        """
        if not capacity_vs_temperature:
            raise ValueError("Capacity vs temperature table must not be empty")

        self.mass = mass
        self.length = length
        self.width = width
        self.height = height
        self.cp = cp
        self.h = h
        self.t_room = t_room
        self._R = DEFAULT_INTERNAL_RESISTANCE

        self.area = 2 * (length * width + length * height + width * height)
        self.T_battery = t_room

        self._cap_vs_temp = sorted(
            (float(row[0]) + CELSIUS_TO_KELVIN, float(row[1]))
            for row in capacity_vs_temperature
        )

    def f(self, T_battery: float, current: float) -> float:
        """Temperature derivative (K/s)."""
        return (1 / (self.mass * self.cp)) * (
            self.h * (self.t_room - T_battery) * self.area + current**2 * self._R
        )

    def rk4(self, current: float, dt_seconds: float) -> float:
        """Temperature after ``dt_seconds`` using classic Runge-Kutta."""
        T = self.T_battery
        k1 = dt_seconds * self.f(T, current)
        k2 = dt_seconds * self.f(T + k1 / 2, current)
        k3 = dt_seconds * self.f(T + k2 / 2, current)
        k4 = dt_seconds * self.f(T + k3, current)
        return T + (k1 + k4) / 6 + (k2 + k3) / 3

    def trapezoidal(self, current: float, dt_seconds: float) -> float:
        """Temperature after ``dt_seconds`` using a semi-implicit trapezoid."""
        B = 1 / (self.mass * self.cp)
        C = self.h * self.area
        D = current**2 * self._R
        T_prime = self.f(self.T_battery, current)

        num = self.T_battery + 0.5 * dt_seconds * (T_prime + B * (C * self.t_room + D))
        return num / (1 + 0.5 * dt_seconds * B * C)

    def update_temperature(self, current: float, R: float, dt_hour: float) -> None:
        """Advance the temperature one step.

        Args:
            current: Battery current (A)
            R: Internal resistance (Ohm)
            dt_hour: Time step (hours)
        """
        self._R = R
        self.T_battery = self.trapezoidal(current, dt_hour * SECONDS_PER_HOUR)

    def capacity_percent(self) -> float:
        """Capacity available at the present temperature (%)."""
        return linterp_clamped(self._cap_vs_temp, self.T_battery)

    def replace_battery(self) -> None:
        self.T_battery = self.t_room
        _LOGGER.debug("Thermal model reset to room temperature %.2f K", self.t_room)
