"""Battery orchestrator for the battery storage simulator.

A Battery owns one capacity, voltage, lifetime, thermal and losses model
and advances them in a fixed order every time step:

1. thermal, using the internal resistance from the previous step
2. capacity, using the requested current
3. voltage, from the new capacity state
4. lifetime, only when the charge direction reversed (or on the first step)
5. losses, which feed lifetime and thermal derating back into capacity
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .capacity import CapacityModel, KibamCapacity, LithiumIonCapacity
from .const import (
    DEFAULT_C_RATE,
    DEFAULT_CELL_VOLTAGE_NOMINAL,
    DEFAULT_CHEMISTRY,
    DEFAULT_CP,
    DEFAULT_H,
    DEFAULT_HEIGHT_M,
    DEFAULT_LENGTH_M,
    DEFAULT_MASS_KG,
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
    DEFAULT_T1_HOURS,
    DEFAULT_T_ROOM_K,
    DEFAULT_TIME_STEP_MINUTES,
    DEFAULT_V_EXP,
    DEFAULT_V_FULL,
    DEFAULT_V_NOM,
    DEFAULT_VOLTAGE_MODEL,
    DEFAULT_WIDTH_M,
)
from .lifetime import LifetimeModel
from .thermal import ThermalModel
from .voltage import BasicVoltage, DynamicVoltage, VoltageModel

_LOGGER = logging.getLogger(__name__)


@dataclass
class BatteryConfig:
    """Battery bank configuration parameters."""

    chemistry: str = DEFAULT_CHEMISTRY
    time_step_minutes: int = DEFAULT_TIME_STEP_MINUTES
    soc_max_percent: float = DEFAULT_SOC_MAX_PERCENT
    soc_min_percent: float = DEFAULT_SOC_MIN_PERCENT
    num_cells_series: int = DEFAULT_NUM_CELLS_SERIES
    num_strings: int = DEFAULT_NUM_STRINGS

    # Per-string reference capacities
    q20_ah: float = DEFAULT_Q20_AH
    t1_hours: float = DEFAULT_T1_HOURS
    q1_ah: float = DEFAULT_Q1_AH
    q10_ah: float = DEFAULT_Q10_AH

    # Per-cell nameplate voltage curve
    voltage_model: str = DEFAULT_VOLTAGE_MODEL
    cell_voltage_nominal: float = DEFAULT_CELL_VOLTAGE_NOMINAL
    v_full: float = DEFAULT_V_FULL
    v_exp: float = DEFAULT_V_EXP
    v_nom: float = DEFAULT_V_NOM
    q_full: float = DEFAULT_Q_FULL
    q_exp: float = DEFAULT_Q_EXP
    q_nom: float = DEFAULT_Q_NOM
    c_rate: float = DEFAULT_C_RATE
    resistance: float = DEFAULT_RESISTANCE

    lifetime_table: list[list[float]] = field(default_factory=list)
    replacement_option: str = DEFAULT_REPLACEMENT_OPTION
    replacement_capacity: float = DEFAULT_REPLACEMENT_CAPACITY

    mass_kg: float = DEFAULT_MASS_KG
    length_m: float = DEFAULT_LENGTH_M
    width_m: float = DEFAULT_WIDTH_M
    height_m: float = DEFAULT_HEIGHT_M
    cp: float = DEFAULT_CP
    h: float = DEFAULT_H
    t_room_k: float = DEFAULT_T_ROOM_K
    capacity_vs_temperature: list[list[float]] = field(default_factory=list)

    # Derived values (calculated in __post_init__)
    dt_hour: float = field(init=False)
    steps_per_hour: int = field(init=False)
    nominal_voltage: float = field(init=False)

    def __post_init__(self) -> None:
        """Calculate derived values."""
        from .const import MINUTES_PER_HOUR

        self.dt_hour = self.time_step_minutes / MINUTES_PER_HOUR
        self.steps_per_hour = MINUTES_PER_HOUR // self.time_step_minutes
        self.nominal_voltage = self.num_cells_series * self.cell_voltage_nominal

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> BatteryConfig:
        """Create BatteryConfig from a configuration dict, filling in defaults."""
        from .config_schema import validate_config
        from .const import (
            CONF_C_RATE,
            CONF_CAPACITY_VS_TEMPERATURE,
            CONF_CELL_VOLTAGE_NOMINAL,
            CONF_CHEMISTRY,
            CONF_CP,
            CONF_H,
            CONF_HEIGHT_M,
            CONF_LENGTH_M,
            CONF_LIFETIME_TABLE,
            CONF_MASS_KG,
            CONF_NUM_CELLS_SERIES,
            CONF_NUM_STRINGS,
            CONF_Q1_AH,
            CONF_Q10_AH,
            CONF_Q20_AH,
            CONF_Q_EXP,
            CONF_Q_FULL,
            CONF_Q_NOM,
            CONF_REPLACEMENT_CAPACITY,
            CONF_REPLACEMENT_OPTION,
            CONF_RESISTANCE,
            CONF_SOC_MAX_PERCENT,
            CONF_SOC_MIN_PERCENT,
            CONF_T1_HOURS,
            CONF_T_ROOM_K,
            CONF_TIME_STEP_MINUTES,
            CONF_V_EXP,
            CONF_V_FULL,
            CONF_V_NOM,
            CONF_VOLTAGE_MODEL,
            CONF_WIDTH_M,
        )

        config = validate_config(config)
        return cls(
            chemistry=config[CONF_CHEMISTRY],
            time_step_minutes=int(config[CONF_TIME_STEP_MINUTES]),
            soc_max_percent=float(config[CONF_SOC_MAX_PERCENT]),
            soc_min_percent=float(config[CONF_SOC_MIN_PERCENT]),
            num_cells_series=int(config[CONF_NUM_CELLS_SERIES]),
            num_strings=int(config[CONF_NUM_STRINGS]),
            q20_ah=float(config[CONF_Q20_AH]),
            t1_hours=float(config[CONF_T1_HOURS]),
            q1_ah=float(config[CONF_Q1_AH]),
            q10_ah=float(config[CONF_Q10_AH]),
            voltage_model=config[CONF_VOLTAGE_MODEL],
            cell_voltage_nominal=float(config[CONF_CELL_VOLTAGE_NOMINAL]),
            v_full=float(config[CONF_V_FULL]),
            v_exp=float(config[CONF_V_EXP]),
            v_nom=float(config[CONF_V_NOM]),
            q_full=float(config[CONF_Q_FULL]),
            q_exp=float(config[CONF_Q_EXP]),
            q_nom=float(config[CONF_Q_NOM]),
            c_rate=float(config[CONF_C_RATE]),
            resistance=float(config[CONF_RESISTANCE]),
            lifetime_table=[list(row) for row in config[CONF_LIFETIME_TABLE]],
            replacement_option=config[CONF_REPLACEMENT_OPTION],
            replacement_capacity=float(config[CONF_REPLACEMENT_CAPACITY]),
            mass_kg=float(config[CONF_MASS_KG]),
            length_m=float(config[CONF_LENGTH_M]),
            width_m=float(config[CONF_WIDTH_M]),
            height_m=float(config[CONF_HEIGHT_M]),
            cp=float(config[CONF_CP]),
            h=float(config[CONF_H]),
            t_room_k=float(config[CONF_T_ROOM_K]),
            capacity_vs_temperature=[
                list(row) for row in config[CONF_CAPACITY_VS_TEMPERATURE]
            ],
        )


class LossesModel:
    """Feeds lifetime and thermal derating back into the capacity model."""

    def __init__(
        self,
        lifetime: LifetimeModel,
        thermal: ThermalModel,
        capacity: CapacityModel,
    ):
        self._lifetime = lifetime
        self._thermal = thermal
        self._capacity = capacity
        self._n_cycle = 0

    def run_losses(self, dt_hour: float) -> None:
        """Apply derating for one step.

        Lifetime derating only runs when a new cycle was counted and can
        only shrink capacity. Thermal derating is reapplied every step so
        capacity recovers when the battery warms up again.
        """
        if self._lifetime.cycles_elapsed > self._n_cycle:
            self._n_cycle += 1
            self._capacity.update_capacity_for_lifetime(
                self._lifetime.capacity_percent
            )

        self._capacity.update_capacity_for_thermal(self._thermal.capacity_percent())

    def replace_battery(self) -> None:
        self._n_cycle = 0


class Battery:
    """A battery bank advanced one time step at a time."""

    def __init__(self, dt_hour: float, chemistry: str):
        self.dt_hour = dt_hour
        self.dt_min = dt_hour * 60
        self.chemistry = chemistry

        self._capacity: CapacityModel | None = None
        self._voltage: VoltageModel | None = None
        self._lifetime: LifetimeModel | None = None
        self._thermal: ThermalModel | None = None
        self._losses: LossesModel | None = None
        self._first_step = True

    def initialize(
        self,
        capacity: CapacityModel,
        voltage: VoltageModel,
        lifetime: LifetimeModel,
        thermal: ThermalModel,
        losses: LossesModel,
    ) -> None:
        """Attach the sub-models. Must be called before ``run``."""
        self._capacity = capacity
        self._voltage = voltage
        self._lifetime = lifetime
        self._thermal = thermal
        self._losses = losses
        self._first_step = True

    def run(self, current: float) -> None:
        """Advance one time step with the requested current (A).

        Positive current discharges, negative current charges.
        """
        self._thermal.update_temperature(current, self._voltage.R(), self.dt_hour)
        self._capacity.update_capacity(current, self.dt_hour)
        self._voltage.update_voltage(self._capacity, self.dt_hour)

        if self._capacity.charge_changed:
            self._run_lifetime(self._capacity.prev_dod)
        elif self._first_step:
            self._run_lifetime(self._capacity.dod)
            self._first_step = False

        self._losses.run_losses(self.dt_hour)

    def _run_lifetime(self, dod: float) -> None:
        self._lifetime.rainflow(dod)
        if self._lifetime.check_replaced():
            _LOGGER.info(
                "Replacing battery: capacity, thermal and losses models reset"
            )
            self._capacity.replace_battery()
            self._thermal.replace_battery()
            self._losses.replace_battery()

    def capacity_model(self) -> CapacityModel:
        return self._capacity

    def voltage_model(self) -> VoltageModel:
        return self._voltage

    def lifetime_model(self) -> LifetimeModel:
        return self._lifetime

    def thermal_model(self) -> ThermalModel:
        return self._thermal

    def losses_model(self) -> LossesModel:
        return self._losses

    def battery_charge_needed(self) -> float:
        """Charge needed to fill the battery to qmax (Ah)."""
        charge_needed = self._capacity.qmax - self._capacity.q0
        return charge_needed if charge_needed > 0 else 0.0

    def battery_charge_total(self) -> float:
        return self._capacity.q0

    def battery_charge_maximum(self) -> float:
        return self._capacity.qmax

    def cell_voltage(self) -> float:
        return self._voltage.cell_voltage()

    def battery_voltage(self) -> float:
        return self._voltage.battery_voltage()


def create_battery(config: dict[str, Any]) -> Battery:
    """Build a fully initialized battery from a validated configuration.

    Capacities in the configuration are per string; the bank capacity is
    the string capacity times the number of strings.

    Args:
        config: Configuration as returned by ``validate_config``

    Returns:
        Initialized Battery
    """
    from .const import CHEMISTRY_LEAD_ACID, VOLTAGE_DYNAMIC

    cfg = BatteryConfig.from_config(config)
    strings = cfg.num_strings

    capacity: CapacityModel
    if cfg.chemistry == CHEMISTRY_LEAD_ACID:
        capacity = KibamCapacity(
            q20=cfg.q20_ah * strings,
            t1=cfg.t1_hours,
            q1=cfg.q1_ah * strings,
            q10=cfg.q10_ah * strings,
            soc_max=cfg.soc_max_percent,
        )
    else:
        capacity = LithiumIonCapacity(cfg.q_full * strings, cfg.soc_max_percent)

    voltage: VoltageModel
    if cfg.voltage_model == VOLTAGE_DYNAMIC:
        voltage = DynamicVoltage(
            cfg.num_cells_series,
            strings,
            cfg.cell_voltage_nominal,
            v_full=cfg.v_full,
            v_exp=cfg.v_exp,
            v_nom=cfg.v_nom,
            q_full=cfg.q_full,
            q_exp=cfg.q_exp,
            q_nom=cfg.q_nom,
            c_rate=cfg.c_rate,
            resistance=cfg.resistance,
        )
    else:
        voltage = BasicVoltage(
            cfg.num_cells_series, strings, cfg.cell_voltage_nominal
        )

    lifetime = LifetimeModel(
        cfg.lifetime_table, cfg.replacement_option, cfg.replacement_capacity
    )
    thermal = ThermalModel(
        cfg.mass_kg,
        cfg.length_m,
        cfg.width_m,
        cfg.height_m,
        cfg.cp,
        cfg.h,
        cfg.t_room_k,
        cfg.capacity_vs_temperature,
    )
    losses = LossesModel(lifetime, thermal, capacity)

    battery = Battery(cfg.dt_hour, cfg.chemistry)
    battery.initialize(capacity, voltage, lifetime, thermal, losses)

    _LOGGER.debug(
        "Created %s battery: %d x %d cells, qmax=%.2f Ah, voltage=%.1f V",
        cfg.chemistry,
        cfg.num_cells_series,
        strings,
        capacity.qmax,
        voltage.battery_voltage(),
    )
    return battery
