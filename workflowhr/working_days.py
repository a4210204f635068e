"""Working-day calendar of a company.

A company's week is described by a mask of seven booleans, Monday first.
Leave lengths and salary pro-rating are both counted against this mask.
"""

import calendar
import math
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from workflowhr.database import CompanyWorkingDays

WEEKDAY_FIELDS = (
    'monday_working',
    'tuesday_working',
    'wednesday_working',
    'thursday_working',
    'friday_working',
    'saturday_working',
    'sunday_working',
)

DEFAULT_MASK = (True, True, True, True, True, False, False)

DEFAULT_CONFIG = {
    'working_days_per_week': 5,
    'working_hours_per_day': 8.0,
    **dict(zip(WEEKDAY_FIELDS, DEFAULT_MASK)),
}

HALF_DAY = Decimal('0.5')


def get_working_days_config(db, company_id: int) -> Optional[CompanyWorkingDays]:
    return db.query(CompanyWorkingDays).filter(CompanyWorkingDays.company_id == company_id).first()


def working_mask(config) -> Tuple[bool, ...]:
    """Mask from a config row or dict; the Mon-Fri default when missing."""
    if config is None:
        return DEFAULT_MASK
    if isinstance(config, dict):
        return tuple(bool(config.get(field, False)) for field in WEEKDAY_FIELDS)
    return tuple(bool(getattr(config, field)) for field in WEEKDAY_FIELDS)


def company_mask(db, company_id: int) -> Tuple[bool, ...]:
    return working_mask(get_working_days_config(db, company_id))


def is_working_day(mask, day: date) -> bool:
    return bool(mask[day.weekday()])


def count_working_days(mask, start: date, end: date) -> int:
    """Working days between start and end, both inclusive."""
    if end < start:
        return 0
    total = 0
    current = start
    while current <= end:
        if mask[current.weekday()]:
            total += 1
        current += timedelta(days=1)
    return total


def working_days_in_month(mask, year: int, month: int) -> int:
    last_day = calendar.monthrange(year, month)[1]
    return count_working_days(mask, date(year, month, 1), date(year, month, last_day))


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def calculate_leave_days(mask, start: date, end: date, half_day: bool = False,
                         half_day_type: Optional[str] = None) -> Decimal:
    """
    Number of leave days a request consumes.

    Only working days count. A half day takes 0.5 off the total when the
    day it applies to (the first day for ``start``, the last for ``end``)
    is itself a working day. The result never goes below zero.
    """
    days = Decimal(count_working_days(mask, start, end))
    if half_day:
        half_date = end if half_day_type == 'end' else start
        if is_working_day(mask, half_date):
            days -= HALF_DAY
    return max(days, Decimal('0'))


def leave_days_within(mask, start: date, end: date, window_start: date, window_end: date,
                      half_day: bool = False, half_day_type: Optional[str] = None) -> Decimal:
    """Portion of a leave that falls inside [window_start, window_end]."""
    clipped_start = max(start, window_start)
    clipped_end = min(end, window_end)
    if clipped_end < clipped_start:
        return Decimal('0')
    days = Decimal(count_working_days(mask, clipped_start, clipped_end))
    if half_day:
        half_date = end if half_day_type == 'end' else start
        if clipped_start <= half_date <= clipped_end and is_working_day(mask, half_date):
            days -= HALF_DAY
    return max(days, Decimal('0'))


def validate_working_days_config(data: dict) -> Tuple[bool, str]:
    """Check a working-days payload; weekday flags default to False."""
    try:
        per_week = int(data.get('working_days_per_week'))
    except (TypeError, ValueError):
        return False, "working_days_per_week must be an integer"
    try:
        hours = float(data.get('working_hours_per_day'))
    except (TypeError, ValueError):
        return False, "working_hours_per_day must be a number"
    if not math.isfinite(hours):
        return False, "working_hours_per_day must be a number"

    if per_week < 1 or per_week > 7:
        return False, "Working days per week must be between 1 and 7"
    if hours < 1 or hours > 24:
        return False, "Working hours per day must be between 1 and 24"

    selected = sum(1 for field in WEEKDAY_FIELDS if data.get(field) is True)
    if selected == 0:
        return False, "At least one day must be selected as a working day"
    if selected != per_week:
        return False, (
            f"Number of selected working days ({selected}) must match "
            f"working days per week ({per_week})"
        )
    return True, ""
