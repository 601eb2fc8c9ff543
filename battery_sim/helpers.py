"""Helper functions for the battery storage simulator."""

from __future__ import annotations

import math
from typing import Any, Sequence

from .const import DAYS_IN_MONTH, HOURS_PER_DAY, HOURS_PER_YEAR


def clamp(value: float, min_value: float, max_value: float) -> float:
    """Clamp a value between min and max."""
    return max(min_value, min(max_value, value))


def safe_float(value: Any, default: float = 0.0) -> float:
    """Safely convert a value to float."""
    if value is None:
        return default
    try:
        result = float(value)
        if math.isnan(result) or math.isinf(result):
            return default
        return result
    except (TypeError, ValueError):
        return default


def interpolate(x1: float, y1: float, x2: float, y2: float, x: float) -> float:
    """Linear interpolation (or extrapolation) through two points."""
    if x1 == x2:
        return y1
    return y1 + (x - x1) * (y2 - y1) / (x2 - x1)


def linterp_col(
    rows: Sequence[Sequence[float]],
    x_col: int,
    x: float,
    y_col: int,
) -> float:
    """Piecewise-linear lookup of column ``y_col`` at ``x`` in column ``x_col``.

    Rows must be sorted by ``x_col``. Outside the table the end segments
    are extended linearly. A single row returns its own value.

    Args:
        rows: Table rows
        x_col: Index of the independent column
        x: Lookup value
        y_col: Index of the dependent column

    Returns:
        Interpolated value, or NaN for an empty table
    """
    n = len(rows)
    if n == 0:
        return math.nan
    if n == 1:
        return rows[0][y_col]

    if x <= rows[0][x_col]:
        i = 0
    elif x >= rows[-1][x_col]:
        i = n - 2
    else:
        i = 0
        while i < n - 2 and rows[i + 1][x_col] < x:
            i += 1

    return interpolate(
        rows[i][x_col], rows[i][y_col], rows[i + 1][x_col], rows[i + 1][y_col], x
    )


def linterp_clamped(points: Sequence[tuple[float, float]], x: float) -> float:
    """Piecewise-linear lookup that holds the end values outside the table."""
    if x <= points[0][0]:
        return points[0][1]
    if x >= points[-1][0]:
        return points[-1][1]
    return linterp_col(points, 0, x, 1)


def month_hour(hour_of_year: int) -> tuple[int, int]:
    """Return (month 1-12, hour of day 1-24) for an hour of a 365-day year."""
    hour_of_year = int(hour_of_year) % HOURS_PER_YEAR
    month = 1
    hours_elapsed = 0
    for days in DAYS_IN_MONTH:
        hours_elapsed += days * HOURS_PER_DAY
        if hour_of_year < hours_elapsed:
            break
        month += 1

    return month, hour_of_year % HOURS_PER_DAY + 1


def resample_forecast(
    forecast: list[float],
    source_interval_minutes: int,
    target_interval_minutes: int,
) -> list[float]:
    """Resample a forecast to a different time interval.

    Args:
        forecast: Source forecast values
        source_interval_minutes: Source interval in minutes
        target_interval_minutes: Target interval in minutes

    Returns:
        Resampled forecast
    """
    if source_interval_minutes == target_interval_minutes:
        return forecast

    if not forecast:
        return []

    # Calculate total duration in minutes
    total_duration = len(forecast) * source_interval_minutes
    target_steps = total_duration // target_interval_minutes

    resampled = []
    for i in range(target_steps):
        target_start = i * target_interval_minutes
        target_end = (i + 1) * target_interval_minutes

        # Find overlapping source intervals
        values = []
        weights = []

        first = target_start // source_interval_minutes
        last = min(len(forecast), math.ceil(target_end / source_interval_minutes))
        for j in range(first, last):
            value = forecast[j]
            source_start = j * source_interval_minutes
            source_end = (j + 1) * source_interval_minutes

            overlap_start = max(target_start, source_start)
            overlap_end = min(target_end, source_end)
            overlap = max(0, overlap_end - overlap_start)

            if overlap > 0:
                values.append(value)
                weights.append(overlap)

        if values:
            # Weighted average
            total_weight = sum(weights)
            weighted_sum = sum(v * w for v, w in zip(values, weights))
            resampled.append(weighted_sum / total_weight)

    return resampled
