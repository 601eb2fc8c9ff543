"""Charge capacity models for the battery storage simulator.

Two variants share one interface:

- KibamCapacity: kinetic battery model. Charge is split between an
  available tank and a bound tank that exchange charge at rate k. The
  rate constant k and the capacity ratio c are fitted once from two
  reference discharge capacities.
- LithiumIonCapacity: a single linear charge store.

Sign convention for current: positive = discharging, negative = charging.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod

from .const import (
    DIRECTION_CHARGE,
    DIRECTION_DISCHARGE,
    DIRECTION_IDLE,
    KIBAM_FIT_CANDIDATES,
    KIBAM_FIT_RESIDUAL_WARNING,
    KIBAM_FIT_STEP,
)
from .helpers import clamp

_LOGGER = logging.getLogger(__name__)


class CapacityModel(ABC):
    """Shared charge state and SOC bookkeeping.

    Invariant: 0 <= q0 <= qmax <= qmax0, and SOC is recomputed from
    q0/qmax after every mutation.
    """

    def __init__(self, q: float, soc_max: float):
        """Initialize a full battery of ``q`` Ah charged to ``soc_max`` %."""
        self._q0 = 0.01 * soc_max * q
        self._qmax = q
        self._qmax0 = q
        self._current = 0.0
        self._loss_current = 0.0
        self._dt_hour = 0.0

        self._soc_max = soc_max
        self._soc = soc_max
        self._dod = 100.0 - soc_max
        self._dod_prev = self._dod

        self._prev_direction = DIRECTION_DISCHARGE
        self._charge_changed = False

    @property
    def soc(self) -> float:
        """State of charge in percent."""
        return self._soc

    @property
    def dod(self) -> float:
        """Depth of discharge in percent (100 - SOC)."""
        return self._dod

    @property
    def prev_dod(self) -> float:
        """Depth of discharge before the last capacity update."""
        return self._dod_prev

    @property
    def q0(self) -> float:
        """Charge presently stored (Ah)."""
        return self._q0

    @property
    def qmax(self) -> float:
        """Maximum charge after degradation (Ah)."""
        return self._qmax

    @property
    def qmax0(self) -> float:
        """Maximum charge of a new battery (Ah)."""
        return self._qmax0

    @property
    def current(self) -> float:
        """Current actually applied during the last update (A)."""
        return self._current

    @property
    def loss_current(self) -> float:
        """Equivalent current of charge shed by derating (A)."""
        return self._loss_current

    @property
    def charge_changed(self) -> bool:
        """True when the last update reversed the charge direction."""
        return self._charge_changed

    @property
    def soc_max(self) -> float:
        return self._soc_max

    def update_soc(self) -> None:
        """Recompute SOC and DOD from the stored charge."""
        if self._qmax > 0:
            self._soc = 100.0 * (self._q0 / self._qmax)
        else:
            self._soc = 0.0

        # Model dynamics can leave SOC marginally outside its bounds
        self._soc = clamp(self._soc, 0.0, self._soc_max)

        self._dod = 100.0 - self._soc

    def check_charge_change(self) -> None:
        """Flag a reversal between charging and discharging.

        Idle steps never count as a reversal and do not reset the
        remembered direction.
        """
        direction = DIRECTION_IDLE
        if self._current < 0:
            direction = DIRECTION_CHARGE
        elif self._current > 0:
            direction = DIRECTION_DISCHARGE

        self._charge_changed = False
        if (
            direction != self._prev_direction
            and direction != DIRECTION_IDLE
            and self._prev_direction != DIRECTION_IDLE
        ):
            self._charge_changed = True
            self._prev_direction = direction

    def _record_shed_charge(self, q0_orig: float) -> None:
        """Book charge removed by derating as loss current."""
        if self._dt_hour > 0:
            self._loss_current += (q0_orig - self._q0) / self._dt_hour

    @abstractmethod
    def update_capacity(self, current: float, dt_hour: float) -> None:
        """Apply ``current`` (A) for ``dt_hour`` hours."""

    @abstractmethod
    def update_capacity_for_thermal(self, capacity_percent: float) -> None:
        """Cap stored charge at ``capacity_percent`` % of qmax for this step."""

    @abstractmethod
    def update_capacity_for_lifetime(self, capacity_percent: float) -> None:
        """Shrink qmax to ``capacity_percent`` % of qmax0 (never grows)."""

    @abstractmethod
    def replace_battery(self) -> None:
        """Reset to a new, fully charged battery."""

    @abstractmethod
    def q1(self) -> float:
        """Available charge (Ah)."""

    @abstractmethod
    def q10(self) -> float:
        """Reference capacity (Ah)."""


def _c_compute(F: float, t1: float, t2: float, k: float) -> float:
    """Capacity ratio c implied by capacity ratio F of t1/t2-hour discharges."""
    num = F * (1 - math.exp(-k * t1)) * t2 - (1 - math.exp(-k * t2)) * t1
    denom = num - k * F * t1 * t2 + k * t1 * t2
    if denom == 0:
        return math.nan
    return num / denom


def fit_kibam_parameters(
    F1: float,
    F2: float,
    t1: float,
    t2: float,
    t_ref: float = 20.0,
) -> tuple[float, float, float]:
    """Fit the KiBaM rate constant k and capacity ratio c.

    Scans k over a fixed grid; each candidate yields one estimate of c
    from the (t1, t_ref) capacity ratio F1 and one from the (t1, t2)
    ratio F2. The first candidate with the smallest disagreement wins.

    Args:
        F1: q(t1) / q(t_ref)
        F2: q(t1) / q(t2)
        t1: Fast discharge time in hours
        t2: Second reference discharge time in hours
        t_ref: Slow reference discharge time in hours

    Returns:
        Tuple of (k, c, residual)
    """
    best_residual = 10000.0
    best_k = KIBAM_FIT_STEP
    best_c = 0.5
    found = False

    for i in range(KIBAM_FIT_CANDIDATES):
        k_guess = i * KIBAM_FIT_STEP
        if k_guess == 0:
            continue
        c1 = _c_compute(F1, t1, t_ref, k_guess)
        c2 = _c_compute(F2, t1, t2, k_guess)
        residual = abs(c1 - c2)

        if residual < best_residual:
            best_residual = residual
            best_k = k_guess
            best_c = 0.5 * (c1 + c2)
            found = True

    if not found or best_residual > KIBAM_FIT_RESIDUAL_WARNING:
        _LOGGER.warning(
            "KiBaM fit did not converge cleanly (k=%.4f, c=%.4f, residual=%s)",
            best_k,
            best_c,
            best_residual,
        )

    return best_k, best_c, best_residual


class KibamCapacity(CapacityModel):
    """Kinetic battery model with available and bound charge tanks."""

    def __init__(
        self,
        q20: float,
        t1: float,
        q1: float,
        q10: float,
        soc_max: float,
    ):
        """Fit k and c, then start with a full battery.

        Args:
            q20: Capacity at the 20-hour discharge rate (Ah)
            t1: Fast discharge time (hours)
            q1: Capacity at the t1-hour discharge rate (Ah)
            q10: Capacity at the 10-hour discharge rate (Ah)
            soc_max: Maximum SOC in percent
        """
        super().__init__(q20, soc_max)
        self._q10 = q10
        self._q20 = q20
        self._q_t1 = q1
        self._t1 = t1
        self._t2 = 10.0

        self._k, self._c, self.fit_residual = fit_kibam_parameters(
            F1=q1 / q20,
            F2=q1 / q10,
            t1=t1,
            t2=self._t2,
        )
        self._qmax = self._qmax_compute()
        self._qmax0 = self._qmax

        _LOGGER.debug(
            "KiBaM parameters: k=%.4f c=%.4f qmax=%.3f Ah",
            self._k,
            self._c,
            self._qmax,
        )

        self._q1_0 = 0.0
        self._q2_0 = 0.0
        self.replace_battery()

    @property
    def k(self) -> float:
        """Rate constant between the tanks (1/h)."""
        return self._k

    @property
    def c(self) -> float:
        """Fraction of capacity held in the available tank."""
        return self._c

    def _exp(self, dt: float) -> float:
        return math.exp(-self._k * dt)

    def _q1_compute(self, q10: float, q0: float, dt: float, current: float) -> float:
        k, c, e = self._k, self._c, self._exp(dt)
        return (
            q10 * e
            + (q0 * k * c - current) * (1 - e) / k
            - current * c * (k * dt - 1 + e) / k
        )

    def _q2_compute(self, q20: float, q0: float, dt: float, current: float) -> float:
        k, c, e = self._k, self._c, self._exp(dt)
        return (
            q20 * e
            + q0 * (1 - c) * (1 - e)
            - current * (1 - c) * (k * dt - 1 + e) / k
        )

    def _icmax_compute(self, q10: float, q0: float, dt: float) -> float:
        k, c, e = self._k, self._c, self._exp(dt)
        num = -k * c * self._qmax + k * q10 * e + q0 * k * c * (1 - e)
        denom = 1 - e + c * (k * dt - 1 + e)
        return num / denom

    def _idmax_compute(self, q10: float, q0: float, dt: float) -> float:
        k, c, e = self._k, self._c, self._exp(dt)
        num = k * q10 * e + q0 * k * c * (1 - e)
        denom = 1 - e + c * (k * dt - 1 + e)
        return num / denom

    def _qmax_compute(self) -> float:
        k, c = self._k, self._c
        num = self._q20 * ((1 - math.exp(-k * 20)) * (1 - c) + k * c * 20)
        return num / (k * c * 20)

    def qmax_of_i(self, t_hours: float) -> float:
        """Charge deliverable by a constant-current discharge over ``t_hours``."""
        k, c = self._k, self._c
        e = math.exp(-k * t_hours)
        return (self._qmax * k * c * t_hours) / (1 - e + c * (k * t_hours - 1 + e))

    def update_capacity(self, current: float, dt_hour: float) -> None:
        self._dod_prev = self._dod
        self._loss_current = 0.0
        self._current = current
        self._dt_hour = dt_hour

        # Limit to what the tanks can deliver or absorb within dt
        if self._current > 0:
            idmax = self._idmax_compute(self._q1_0, self._q0, dt_hour)
            self._current = min(self._current, idmax)
        elif self._current < 0:
            icmax = self._icmax_compute(self._q1_0, self._q0, dt_hour)
            self._current = -min(abs(self._current), abs(icmax))

        q1 = self._q1_compute(self._q1_0, self._q0, dt_hour, self._current)
        q2 = self._q2_compute(self._q2_0, self._q0, dt_hour, self._current)

        # Rescale both tanks if the closed form overshoots qmax
        q_sum = q1 + q2
        if q_sum > self._qmax:
            self._loss_current += (q_sum - self._qmax) / dt_hour
            q1 = self._qmax * q1 / q_sum
            q2 = self._qmax * q2 / q_sum

        self._q1_0 = q1
        self._q2_0 = q2
        self._q0 = q1 + q2

        self.update_soc()
        self.check_charge_change()

    def _scale_charge(self, limit: float) -> None:
        if self._q0 > limit:
            q0_orig = self._q0
            p = limit / self._q0
            self._q1_0 *= p
            self._q2_0 *= p
            self._q0 = self._q1_0 + self._q2_0
            self._record_shed_charge(q0_orig)

    def update_capacity_for_thermal(self, capacity_percent: float) -> None:
        self._scale_charge(self._qmax * capacity_percent * 0.01)
        self.update_soc()

    def update_capacity_for_lifetime(self, capacity_percent: float) -> None:
        qmax_lifetime = self._qmax0 * capacity_percent * 0.01
        if qmax_lifetime <= self._qmax:
            self._qmax = qmax_lifetime

        self._scale_charge(self._qmax)
        self.update_soc()

    def replace_battery(self) -> None:
        self._qmax = self._qmax0
        self._q0 = self._qmax0 * self._soc_max * 0.01
        self._q1_0 = self._q0 * self._c
        self._q2_0 = self._q0 - self._q1_0
        self.update_soc()

    def q1(self) -> float:
        return self._q1_0

    def q2(self) -> float:
        """Bound charge (Ah)."""
        return self._q2_0

    def q10(self) -> float:
        return self._q10

    def q20(self) -> float:
        return self._q20


class LithiumIonCapacity(CapacityModel):
    """Linear charge store with hard limits at empty and qmax."""

    def update_capacity(self, current: float, dt_hour: float) -> None:
        self._dod_prev = self._dod
        self._loss_current = 0.0
        self._dt_hour = dt_hour
        q0_old = self._q0
        self._current = current

        self._q0 -= self._current * dt_hour

        # Back-solve the current that exactly reaches a boundary
        if self._q0 > self._qmax:
            self._current = -(self._qmax - q0_old) / dt_hour
            self._q0 = self._qmax

        if self._q0 < 0:
            self._current = q0_old / dt_hour
            self._q0 = 0.0

        self.update_soc()
        self.check_charge_change()

    def update_capacity_for_thermal(self, capacity_percent: float) -> None:
        qmax_thermal = self._qmax * capacity_percent * 0.01
        if self._q0 > qmax_thermal:
            q0_orig = self._q0
            self._q0 = qmax_thermal
            self._record_shed_charge(q0_orig)
        self.update_soc()

    def update_capacity_for_lifetime(self, capacity_percent: float) -> None:
        qmax_lifetime = self._qmax0 * capacity_percent * 0.01
        if qmax_lifetime <= self._qmax:
            self._qmax = qmax_lifetime

        if self._q0 > self._qmax:
            q0_orig = self._q0
            self._q0 = self._qmax
            self._record_shed_charge(q0_orig)

        self.update_soc()

    def replace_battery(self) -> None:
        self._qmax = self._qmax0
        self._q0 = self._qmax0 * self._soc_max * 0.01
        self.update_soc()

    def q1(self) -> float:
        return self._q0

    def q10(self) -> float:
        return self._qmax
