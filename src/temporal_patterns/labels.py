"""
Labels and Rounding
===================
Fixed human-readable renderings shared by every output relation, and the
2-decimal rounding applied wherever a mean-like value is produced.

Day-of-week follows the dataset convention: 0 = Sunday ... 6 = Saturday.
"""

import numpy as np
import pandas as pd
from typing import Union, Iterable

from .errors import InvalidDomainError


DAY_NAMES = [
    'Sunday', 'Monday', 'Tuesday', 'Wednesday',
    'Thursday', 'Friday', 'Saturday'
]

WEEKDAY = 'Weekday'
WEEKEND = 'Weekend'


def day_name(dow: int) -> str:
    """Render a day-of-week number (0-6) as its name."""
    if not 0 <= dow <= 6:
        raise InvalidDomainError(f"Day of week must be in 0-6, got {dow}")
    return DAY_NAMES[int(dow)]


def hour_label(hour: int) -> str:
    """
    Render an hour of day (0-23) on the 12-hour clock.

    0 -> '12 AM', 1-11 -> '<n> AM', 12 -> '12 PM', 13-23 -> '<n-12> PM'
    """
    if not 0 <= hour <= 23:
        raise InvalidDomainError(f"Hour of day must be in 0-23, got {hour}")
    hour = int(hour)
    if hour == 0:
        return '12 AM'
    if hour < 12:
        return f'{hour} AM'
    if hour == 12:
        return '12 PM'
    return f'{hour - 12} PM'


def hour_day_label(dow: int, hour: int) -> str:
    """Segment label such as 'Thursday at 9 AM'."""
    return f'{day_name(dow)} at {hour_label(hour)}'


def weekday_or_weekend(dow: pd.Series, weekday_days: Iterable[int] = (0, 1, 2, 3, 4)) -> pd.Series:
    """Label each day-of-week as Weekday or Weekend."""
    invalid = ~dow.between(0, 6)
    if invalid.any():
        raise InvalidDomainError(
            f"Day of week must be in 0-6, got {sorted(dow[invalid].unique().tolist())}"
        )
    return pd.Series(
        np.where(dow.isin(list(weekday_days)), WEEKDAY, WEEKEND),
        index=dow.index,
        name='weekday_or_weekend'
    )


def round_half_away(
    values: Union[float, np.ndarray, pd.Series],
    decimals: int = 2
) -> Union[float, np.ndarray, pd.Series]:
    """
    Round half away from zero (2.675 -> 2.68, -0.125 -> -0.13).

    numpy and the builtin round() use round-half-to-even, which disagrees with
    the SQL numeric rounding the published figures were produced with. The
    scaled value is first snapped to 6 decimals so binary representation error
    (2.675 * 100 == 267.49999999999997) does not decide the direction.
    NaN propagates.
    """
    factor = 10.0 ** decimals
    arr = np.asarray(values, dtype=float)
    scaled = np.round(arr * factor, 6)
    rounded = np.sign(scaled) * np.floor(np.abs(scaled) + 0.5) / factor + 0.0

    if isinstance(values, pd.Series):
        return pd.Series(rounded, index=values.index, name=values.name)
    if np.ndim(rounded) == 0:
        return float(rounded)
    return rounded
