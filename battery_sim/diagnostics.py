"""Diagnostics support for the battery storage simulator."""

from __future__ import annotations

from typing import Any

from .battery_model import Battery
from .capacity import KibamCapacity
from .dispatch import ManualDispatch
from .voltage import DynamicVoltage


def get_diagnostics(
    battery: Battery, dispatch: ManualDispatch | None = None
) -> dict[str, Any]:
    """Return a JSON-serializable snapshot of the battery and dispatcher."""
    capacity = battery.capacity_model()
    voltage = battery.voltage_model()
    lifetime = battery.lifetime_model()
    thermal = battery.thermal_model()

    capacity_data = {
        "model": type(capacity).__name__,
        "soc_percent": capacity.soc,
        "dod_percent": capacity.dod,
        "q0_ah": capacity.q0,
        "qmax_ah": capacity.qmax,
        "qmax0_ah": capacity.qmax0,
        "current_a": capacity.current,
        "loss_current_a": capacity.loss_current,
        "charge_changed": capacity.charge_changed,
    }
    # Tank split and fitted constants are useful for debugging fits
    if isinstance(capacity, KibamCapacity):
        capacity_data.update(
            {
                "k": capacity.k,
                "c": capacity.c,
                "fit_residual": capacity.fit_residual,
                "available_charge_ah": capacity.q1(),
                "bound_charge_ah": capacity.q2(),
            }
        )

    voltage_data = {
        "model": type(voltage).__name__,
        "cell_voltage": voltage.cell_voltage(),
        "battery_voltage": voltage.battery_voltage(),
        "resistance_ohm": voltage.R(),
        "num_cells_series": voltage.num_cells_series,
        "num_strings": voltage.num_strings,
    }
    if isinstance(voltage, DynamicVoltage):
        voltage_data.update(
            {
                "E0": voltage.E0,
                "K": voltage.K,
                "A": voltage.A,
                "B": voltage.B,
                "full_charge_voltage": voltage.full_charge_voltage,
            }
        )

    diagnostics: dict[str, Any] = {
        "battery": {
            "chemistry": battery.chemistry,
            "dt_hour": battery.dt_hour,
            "charge_needed_ah": battery.battery_charge_needed(),
        },
        "capacity": capacity_data,
        "voltage": voltage_data,
        "lifetime": {
            "capacity_percent": lifetime.capacity_percent,
            "cycles_elapsed": lifetime.cycles_elapsed,
            "cycle_range": lifetime.cycle_range,
            "average_range": lifetime.average_range,
            "replacements": lifetime.replacements,
            "peaks": lifetime.peaks,
        },
        "thermal": {
            "temperature_k": thermal.T_battery,
            "room_temperature_k": thermal.t_room,
            "capacity_percent": thermal.capacity_percent(),
        },
    }

    if dispatch is not None:
        diagnostics["dispatch"] = {
            "coupling": dispatch.coupling,
            "charging": dispatch.charging,
            "grid_recharge": dispatch.grid_recharge,
            "time_at_mode_minutes": dispatch.time_at_mode,
            "num_profiles": len(dispatch.profiles),
            "flows_kwh": {
                "battery": dispatch.energy_tofrom_battery,
                "grid": dispatch.energy_tofrom_grid,
                "gen": dispatch.gen,
                "pv_to_load": dispatch.pv_to_load,
                "battery_to_load": dispatch.battery_to_load,
                "grid_to_load": dispatch.grid_to_load,
                "pv_to_battery": dispatch.pv_to_batt,
                "grid_to_battery": dispatch.grid_to_batt,
            },
            "annual_kwh": {
                "charge": dispatch.charge_annual,
                "discharge": dispatch.discharge_annual,
                "grid_import": dispatch.grid_import_annual,
                "grid_export": dispatch.grid_export_annual,
                "energy_loss": dispatch.energy_loss_annual,
            },
            "average_efficiency_percent": dispatch.average_efficiency,
        }

    return diagnostics
