"""Reporting week calculation.

Weeks start on the 1st of the month and each one ends on the same weekday
(Sunday unless configured otherwise). The last week of a month runs into the
following month until it reaches that weekday.
"""

import calendar
from datetime import date, timedelta
from typing import Dict, List, Tuple

SUNDAY = 6


def weeks_of(year: int, month_index: int, week_end: int = SUNDAY) -> Dict[int, List[date]]:
    """Group a month's days into reporting weeks.

    Args:
        year: Calendar year
        month_index: 0-based month (0 = January)
        week_end: Weekday every week ends on (0 = Monday .. 6 = Sunday)

    Returns:
        Mapping of 1-based week number to the ordered days of that week
    """
    if not 0 <= month_index <= 11:
        raise ValueError(f"month_index must be 0-11, got {month_index}")
    if not 0 <= week_end <= 6:
        raise ValueError(f"week_end must be 0-6, got {week_end}")

    month = month_index + 1
    last_day = date(year, month, calendar.monthrange(year, month)[1])

    weeks: Dict[int, List[date]] = {}
    current = date(year, month, 1)
    week_number = 1

    while current <= last_day:
        days_to_end = (week_end - current.weekday()) % 7
        end = current + timedelta(days=days_to_end)
        weeks[week_number] = [current + timedelta(days=i) for i in range((end - current).days + 1)]
        current = end + timedelta(days=1)
        week_number += 1

    return weeks


def week_number_of(d: date, week_end: int = SUNDAY) -> int:
    """1-based week number of a date within its month."""
    for number, days in weeks_of(d.year, d.month - 1, week_end).items():
        if days[0] <= d <= days[-1]:
            return number
    raise AssertionError(f"No week found for {d.isoformat()}")


def window_containing(d: date, week_end: int = SUNDAY) -> Tuple[date, date]:
    """Get the (start, end) of the reporting week containing a date.

    The week is looked up in the date's own month, so a date early in a month
    resolves to that month's first week even if the previous month's last
    week also spans it.
    """
    days = weeks_of(d.year, d.month - 1, week_end)[week_number_of(d, week_end)]
    return days[0], days[-1]
