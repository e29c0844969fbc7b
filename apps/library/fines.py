import datetime
import math
from decimal import Decimal

SECONDS_PER_DAY = 24 * 60 * 60


def overdue_days(due_date, return_date):
    """
    Whole days between ``due_date`` and ``return_date``.

    Any partial day counts as a full day; early returns give 0. Dates and
    datetimes are both accepted, a bare date meaning midnight.
    """
    due = _as_datetime(due_date)
    returned = _as_datetime(return_date)

    if returned <= due:
        return 0

    return math.ceil((returned - due).total_seconds() / SECONDS_PER_DAY)


def calculate_fine(due_date, return_date, rate_per_day, max_fine=None):
    """Fine for returning on ``return_date`` a book due on ``due_date``"""
    fine = Decimal(overdue_days(due_date, return_date)) * Decimal(str(rate_per_day))
    if max_fine is not None:
        fine = min(fine, Decimal(str(max_fine)))
    return fine.quantize(Decimal('0.01'))


def _as_datetime(value):
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            value = value.replace(tzinfo=None) - (value.utcoffset() or datetime.timedelta())
        return value
    return datetime.datetime.combine(value, datetime.time.min)
