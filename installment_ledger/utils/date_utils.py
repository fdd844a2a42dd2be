"""Date manipulation utilities"""

from datetime import date
from typing import List
from dateutil.relativedelta import relativedelta


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping to the last day of shorter months"""
    return from_date + relativedelta(months=months)


def month_key(day: date) -> str:
    """Bucket key for a date, e.g. 2024-03"""
    return f"{day.year:04d}-{day.month:02d}"


def recent_month_keys(as_of: date, count: int) -> List[str]:
    """Keys of the `count` months ending with as_of's month, oldest first"""
    first_of_month = as_of.replace(day=1)
    return [month_key(add_months(first_of_month, -offset)) for offset in range(count - 1, -1, -1)]


def started_periods(days: int, period_days: int = 30) -> int:
    """Number of started periods covering `days` (0 days -> 0 periods)"""
    if days <= 0:
        return 0
    return -(-days // period_days)
