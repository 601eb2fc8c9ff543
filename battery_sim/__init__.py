"""Battery energy storage simulation and dispatch.

Physical sub-models (capacity, voltage, lifetime, thermal) are composed
by a Battery orchestrator and driven one time step at a time by a manual
rule-table dispatcher, optionally planned daily by a peak-shaving
optimizer.
"""

from __future__ import annotations

from .battery_model import Battery, LossesModel, create_battery
from .config_schema import validate_config
from .diagnostics import get_diagnostics
from .dispatch import DispatchProfile, ManualDispatch
from .optimizer import AutomatedDispatch
from .simulation import SimulationResult, run_simulation

__all__ = [
    "AutomatedDispatch",
    "Battery",
    "DispatchProfile",
    "LossesModel",
    "ManualDispatch",
    "SimulationResult",
    "create_battery",
    "get_diagnostics",
    "run_simulation",
    "validate_config",
]
