"""Cycle-life degradation model using rainflow cycle counting.

Depth-of-discharge samples taken at every charge/discharge reversal are
reduced to half-cycles with the rainflow algorithm. Each counted
half-cycle looks up the remaining capacity in a degradation table
indexed by (depth of discharge, cycle count).
"""

from __future__ import annotations

import logging
from typing import Sequence

from .const import (
    MIN_REPLACEMENT_CAPACITY,
    REPLACE_AT_CAPACITY,
    REPLACE_NONE,
)
from .helpers import interpolate, linterp_col

_LOGGER = logging.getLogger(__name__)

# Column indices of a degradation table row
DOD_COL = 0
CYCLES_COL = 1
CAPACITY_COL = 2


class LifetimeModel:
    """Rainflow cycle counter and capacity retention tracker."""

    def __init__(
        self,
        table: Sequence[Sequence[float]],
        replacement_option: str = REPLACE_NONE,
        replacement_capacity: float = 0.0,
    ):
        """Initialize the model.

        Args:
            table: Rows of (DOD %, cycles, capacity retention %). DOD
                values may repeat.
            replacement_option: One of the REPLACE_* options
            replacement_capacity: Retention % at or below which the
                battery is replaced (capacity option only)

        Raises:
            ValueError: If the table has no rows
        """
        if not table:
            raise ValueError("Degradation table must contain at least one row")

        self._table = [tuple(float(v) for v in row[:3]) for row in table]
        self._replacement_option = replacement_option
        self._replacement_capacity = replacement_capacity
        if replacement_capacity == 0:
            self._replacement_capacity = MIN_REPLACEMENT_CAPACITY

        self._replacements = 0
        self._replacement_scheduled = False

        self._peaks: list[float] = []
        self._n_cycles = 0
        self._range = 0.0
        self._average_range = 0.0
        self._capacity_percent = self.bilinear(0.0, 0)

    @property
    def capacity_percent(self) -> float:
        """Remaining capacity in percent of a new battery."""
        return self._capacity_percent

    @property
    def cycles_elapsed(self) -> int:
        """Half-cycles counted since the last replacement."""
        return self._n_cycles

    @property
    def cycle_range(self) -> float:
        """Range of the most recently counted half-cycle (% DOD)."""
        return self._range

    @property
    def average_range(self) -> float:
        return self._average_range

    @property
    def replacements(self) -> int:
        return self._replacements

    @property
    def peaks(self) -> list[float]:
        """Buffered DOD turning points not yet collapsed into cycles."""
        return list(self._peaks)

    @property
    def replacement_capacity(self) -> float:
        return self._replacement_capacity

    def rainflow(self, dod: float) -> None:
        """Add a DOD sample and count every half-cycle it completes.

        Args:
            dod: Depth of discharge in percent
        """
        peaks = self._peaks

        # Keep only turning points
        if peaks and dod == peaks[-1]:
            return
        if len(peaks) >= 2 and (peaks[-1] - peaks[-2]) * (dod - peaks[-1]) > 0:
            peaks[-1] = dod
        else:
            peaks.append(dod)

        while len(peaks) >= 3:
            y_range = abs(peaks[-2] - peaks[-3])
            x_range = abs(peaks[-1] - peaks[-2])

            if x_range < y_range:
                break

            self._count_half_cycle(y_range)

            # Discard the two interior points of range Y
            del peaks[-3:-1]

    def _count_half_cycle(self, cycle_range: float) -> None:
        self._range = cycle_range
        self._average_range = (
            self._average_range * self._n_cycles + cycle_range
        ) / (self._n_cycles + 1)
        self._n_cycles += 1

        # Retention never recovers within one battery life
        capacity = self.bilinear(self._average_range, self._n_cycles)
        if capacity <= self._capacity_percent:
            self._capacity_percent = capacity
        if self._capacity_percent < 0:
            self._capacity_percent = 0.0

    def check_replaced(self) -> bool:
        """Replace the battery if it is worn out or a replacement is due.

        Returns:
            True if a replacement happened
        """
        worn_out = (
            self._replacement_option == REPLACE_AT_CAPACITY
            and self._capacity_percent <= self._replacement_capacity
        )
        if not (worn_out or self._replacement_scheduled):
            return False

        self._replacements += 1
        self._capacity_percent = self.bilinear(0.0, 0)
        self._n_cycles = 0
        self._range = 0.0
        self._average_range = 0.0
        self._peaks.clear()
        self._replacement_scheduled = False

        _LOGGER.info("Battery replaced (replacement #%d)", self._replacements)
        return True

    def force_replacement(self) -> None:
        """Schedule a replacement at the next check."""
        self._replacement_scheduled = True

    def reset_replacements(self) -> None:
        self._replacements = 0

    def _column(self, dod: float) -> list[tuple[float, float]]:
        """(cycles, capacity) rows of the table at one DOD."""
        return [
            (row[CYCLES_COL], row[CAPACITY_COL])
            for row in self._table
            if row[DOD_COL] == dod
        ]

    def bilinear(self, dod: float, cycle_number: float) -> float:
        """Capacity retention at a depth of discharge after some cycles.

        Interpolates along cycles within the table DOD columns that
        bracket ``dod``, then between the two columns along DOD. Missing
        bracketing columns are synthesized at 0 % and 100 % DOD.

        Args:
            dod: Depth of discharge in percent
            cycle_number: Number of cycles

        Returns:
            Capacity retention in percent
        """
        table = self._table
        unique_dods = {row[DOD_COL] for row in table}

        # Single DOD column: one-dimensional lookup along cycles
        if len(unique_dods) == 1:
            rows = sorted(table, key=lambda row: row[CYCLES_COL])
            return linterp_col(rows, CYCLES_COL, cycle_number, CAPACITY_COL)

        d_lo = 0.0
        d_hi = 100.0
        for row in table:
            d = row[DOD_COL]
            if d_lo < d <= dod:
                d_lo = d
            elif dod < d < d_hi:
                d_hi = d

        low = self._column(d_lo)
        high = self._column(d_hi)

        if not low:
            # No data at 0 % DOD: assume no fade
            low = [(i * 500.0, 100.0) for i in range(len(high))]
        elif not high:
            # No data at 100 % DOD: assume steady fade
            high = [(100.0 + i * 500.0, 80.0 - i * 10.0) for i in range(len(low))]

        low.sort(key=lambda row: row[0])
        high.sort(key=lambda row: row[0])

        c_lo = linterp_col(low, 0, cycle_number, 1)
        c_hi = linterp_col(high, 0, cycle_number, 1)
        if c_lo < 0:
            c_lo = 0.0
        if c_hi > 100:
            c_hi = 100.0

        return interpolate(d_lo, c_lo, d_hi, c_hi, dod)
