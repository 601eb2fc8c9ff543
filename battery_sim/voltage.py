"""Terminal voltage models for the battery storage simulator."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod

from .capacity import CapacityModel
from .const import DEFAULT_INTERNAL_RESISTANCE, VOLTAGE_CEILING_FACTOR

_LOGGER = logging.getLogger(__name__)


class VoltageModel(ABC):
    """Cell voltage of a bank of identical cells.

    Cells in series add voltage; strings in parallel share current and
    charge. All per-cell quantities are derived by dividing bank
    quantities by the number of strings.
    """

    def __init__(self, num_cells_series: int, num_strings: int, cell_voltage: float):
        self._num_cells_series = num_cells_series
        self._num_strings = num_strings
        self._cell_voltage = cell_voltage
        self._R = DEFAULT_INTERNAL_RESISTANCE

    @property
    def num_cells_series(self) -> int:
        return self._num_cells_series

    @property
    def num_strings(self) -> int:
        return self._num_strings

    def battery_voltage(self) -> float:
        """Bank terminal voltage (V)."""
        return self._num_cells_series * self._cell_voltage

    def cell_voltage(self) -> float:
        """Per-cell terminal voltage (V)."""
        return self._cell_voltage

    def R(self) -> float:
        """Internal resistance (Ohm)."""
        return self._R

    @abstractmethod
    def update_voltage(self, capacity: CapacityModel, dt_hour: float) -> None:
        """Recompute the cell voltage from the capacity state."""


class DynamicVoltage(VoltageModel):
    """Electrochemical voltage curve fitted from nameplate points.

    Uses the hybrid exponential/polarization form of Tremblay (2009):

        V = E0 - K * Q / (Q - it) + A * exp(-B * it) - R * I

    where ``it`` is the charge removed from a full cell.
    """

    def __init__(
        self,
        num_cells_series: int,
        num_strings: int,
        cell_voltage: float,
        v_full: float,
        v_exp: float,
        v_nom: float,
        q_full: float,
        q_exp: float,
        q_nom: float,
        c_rate: float,
        resistance: float,
    ):
        """Fit the curve constants.

        Args:
            num_cells_series: Cells in series per string
            num_strings: Strings in parallel
            cell_voltage: Nominal cell voltage (V)
            v_full: Cell voltage when fully charged (V)
            v_exp: Cell voltage at the end of the exponential zone (V)
            v_nom: Cell voltage at the end of the nominal zone (V)
            q_full: Cell capacity when fully charged (Ah)
            q_exp: Charge removed at the end of the exponential zone (Ah)
            q_nom: Charge removed at the end of the nominal zone (Ah)
            c_rate: Discharge rate of the nameplate curve (1/h)
            resistance: Cell internal resistance (Ohm)
        """
        super().__init__(num_cells_series, num_strings, cell_voltage)
        self._v_full = v_full
        self._v_exp = v_exp
        self._v_nom = v_nom
        self._q_full = q_full
        self._q_exp = q_exp
        self._q_nom = q_nom
        self._c_rate = c_rate
        self._R = resistance

        # Start fully charged rather than at the nominal voltage
        self._cell_voltage = v_full

        self._A = 0.0
        self._B = 0.0
        self._K = 0.0
        self._E0 = 0.0
        self.parameter_compute()

    def parameter_compute(self) -> None:
        """Derive E0, K, A and B from the nameplate points."""
        current = self._q_full * self._c_rate
        self._A = self._v_full - self._v_exp
        self._B = 3.0 / self._q_exp
        exp_nom = math.exp(-self._B * self._q_nom)
        self._K = (
            (self._v_full - self._v_nom + self._A * (exp_nom - 1))
            * (self._q_full - self._q_nom)
        ) / self._q_nom
        self._E0 = self._v_full + self._K + self._R * current - self._A

        _LOGGER.debug(
            "Voltage curve parameters: E0=%.4f K=%.4f A=%.4f B=%.4f R=%.4f",
            self._E0,
            self._K,
            self._A,
            self._B,
            self._R,
        )

    @property
    def E0(self) -> float:
        return self._E0

    @property
    def K(self) -> float:
        return self._K

    @property
    def A(self) -> float:
        return self._A

    @property
    def B(self) -> float:
        return self._B

    @property
    def full_charge_voltage(self) -> float:
        """Cell voltage of the fitted curve at full charge and zero current."""
        return self._E0 - self._K + self._A

    def update_voltage(self, capacity: CapacityModel, dt_hour: float) -> None:
        ns = self._num_strings
        self._cell_voltage = self.voltage_model_tremblay_hybrid(
            capacity.qmax / ns, capacity.current / ns, capacity.q0 / ns
        )

    def voltage_model(self, Q: float, current: float, q0: float) -> float:
        """Unnewehr universal model, per cell."""
        return self._E0 - self._R * current - self._K * (1 - q0 / Q)

    def voltage_model_tremblay_hybrid(
        self, Q: float, current: float, q0: float
    ) -> float:
        """Tremblay hybrid model, per cell.

        Args:
            Q: Cell capacity (Ah)
            current: Cell current (A), positive when discharging
            q0: Charge stored in the cell (Ah)

        Returns:
            Cell voltage (V), clamped into a representable range
        """
        it = Q - q0
        if q0 > 0:
            E = self._E0 - self._K * (Q / q0) + self._A * math.exp(-self._B * it)
            V = E - self._R * current
        else:
            V = math.nan

        # The curve cannot represent deep discharge
        if not math.isfinite(V) or V < 0:
            V = 0.5 * self._v_nom
        elif V > self._v_full * VOLTAGE_CEILING_FACTOR:
            V = self._v_full

        return V


class BasicVoltage(VoltageModel):
    """Constant voltage model."""

    def update_voltage(self, capacity: CapacityModel, dt_hour: float) -> None:
        return None
