"""
Period arithmetic for the reservation day.

A day has two bookable periods. Timestamps are local wall-clock values and
are never converted between timezones.
"""
import datetime
from enum import Enum
from typing import NamedTuple


class Period(str, Enum):
    AFTERNOON = "AFTERNOON"
    NIGHT = "NIGHT"


NOON_MIN = 12 * 60
EVENING_CUTOFF_MIN = 17 * 60 + 30

_END_OF_DAY = datetime.time(23, 59, 59, 999999)
_AFTERNOON_END = datetime.time(17, 29, 59, 999999)


class Window(NamedTuple):
    start: datetime.datetime
    end: datetime.datetime

    def __contains__(self, moment: object) -> bool:
        return isinstance(moment, datetime.datetime) and self.start <= moment <= self.end


def classify_period(moment: datetime.datetime | datetime.time) -> Period:
    """
    Period of a timestamp. Mornings (before 12:00) fold into AFTERNOON,
    17:30 and later is NIGHT.
    """
    mins = moment.hour * 60 + moment.minute
    if mins < NOON_MIN:
        return Period.AFTERNOON
    if mins >= EVENING_CUTOFF_MIN:
        return Period.NIGHT
    return Period.AFTERNOON


def as_day(value: datetime.date | datetime.datetime) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    return value


def day_bounds(day: datetime.date | datetime.datetime) -> Window:
    d = as_day(day)
    return Window(
        datetime.datetime.combine(d, datetime.time.min),
        datetime.datetime.combine(d, _END_OF_DAY),
    )


def period_window(day: datetime.date | datetime.datetime, period: Period) -> Window:
    """Nominal service window: AFTERNOON 12:00-17:29:59.999, NIGHT 17:30-23:59:59.999."""
    d = as_day(day)
    if period == Period.AFTERNOON:
        return Window(
            datetime.datetime.combine(d, datetime.time(12, 0)),
            datetime.datetime.combine(d, _AFTERNOON_END),
        )
    return Window(
        datetime.datetime.combine(d, datetime.time(17, 30)),
        datetime.datetime.combine(d, _END_OF_DAY),
    )


def aggregation_window(day: datetime.date | datetime.datetime, period: Period) -> Window:
    """
    Window used to count seats already taken in a period.

    Same as the nominal window except AFTERNOON starts at midnight, so every
    timestamp that classifies as AFTERNOON (mornings included) is counted.
    """
    window = period_window(day, period)
    if period == Period.AFTERNOON:
        return Window(day_bounds(day).start, window.end)
    return window


def normalize_wall_clock(moment: datetime.datetime) -> datetime.datetime:
    """Drops tzinfo, keeping the wall-clock reading as sent by the client."""
    if moment.tzinfo is not None:
        return moment.replace(tzinfo=None)
    return moment


def start_of_day(value: datetime.date | datetime.datetime) -> datetime.datetime:
    return day_bounds(value).start
