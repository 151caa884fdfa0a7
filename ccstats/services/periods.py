"""Calendar ranges used to navigate stats by week or month."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Tuple

from dateutil.relativedelta import SU, relativedelta

from ccstats.core.exceptions import ValidationError


def week_start(day: date) -> date:
    """The Sunday on or before ``day``."""

    return day + relativedelta(weekday=SU(-1))


def week_bounds(year: int, week: int) -> Tuple[date, date]:
    """Sunday-to-Saturday range of ``week`` in ``year``.

    Week 1 is the week containing January 1st, so it may start in the
    previous year.
    """

    if not 1 <= week <= 53:
        raise ValidationError(f"Week must be between 1 and 53, got {week}")
    start = week_start(date(year, 1, 1)) + timedelta(weeks=week - 1)
    return start, start + timedelta(days=6)


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    if not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month}")
    start = date(year, month, 1)
    end = start + relativedelta(months=1) - timedelta(days=1)
    return start, end

