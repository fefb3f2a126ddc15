"""
Business-day arithmetic (weekends and Brazilian fixed national holidays are skipped).
"""

from datetime import date, datetime, timedelta
from typing import Union

# (month, day)
FIXED_HOLIDAYS = {
    (1, 1),    # Confraternização Universal
    (4, 21),   # Tiradentes
    (5, 1),    # Dia do Trabalho
    (9, 7),    # Independência
    (10, 12),  # Nossa Senhora Aparecida
    (11, 2),   # Finados
    (11, 15),  # Proclamação da República
    (12, 25),  # Natal
}

DateLike = Union[date, datetime]


def is_holiday(day: DateLike) -> bool:
    return (day.month, day.day) in FIXED_HOLIDAYS


def is_business_day(day: DateLike) -> bool:
    return day.weekday() < 5 and not is_holiday(day)


def add_business_days(start: DateLike, days: int) -> DateLike:
    """
    Move `days` business days forward from `start` (backwards for negative values).
    The time of day is preserved when `start` is a datetime.
    """
    step = 1 if days >= 0 else -1
    remaining = abs(days)
    current = start
    while remaining > 0:
        current = current + timedelta(days=step)
        if is_business_day(current):
            remaining -= 1
    return current


def business_days_between(start: DateLike, end: DateLike) -> int:
    """
    Count business days after `start` up to and including `end`.
    Negative when `end` lies before `start`.
    """
    start_day = start.date() if isinstance(start, datetime) else start
    end_day = end.date() if isinstance(end, datetime) else end
    if end_day == start_day:
        return 0
    sign = 1
    if end_day < start_day:
        start_day, end_day = end_day, start_day
        sign = -1
    count = 0
    current = start_day
    while current < end_day:
        current += timedelta(days=1)
        if is_business_day(current):
            count += 1
    return sign * count
