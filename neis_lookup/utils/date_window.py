"""
Date window calculation for upstream queries.

Pure functions converting a reference instant or date string into the
YYYYMMDD strings the NEIS datasets expect. "Today" is computed at a fixed
UTC offset (KST by default) so results do not depend on the host timezone.
"""

import calendar
import re
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Tuple, Union

from neis_lookup.config import CalendarConfig
from neis_lookup.normalizer.schemas import DateWindow
from neis_lookup.utils.exceptions import InvalidInputError

YMD_FORMAT = "%Y%m%d"

_YMD_PATTERN = re.compile(r"^(\d{4})-?(\d{2})-?(\d{2})$")
_YEAR_MONTH_PATTERN = re.compile(r"^(\d{4})-?(\d{2})$")

Clock = Callable[[], datetime]

YearMonth = Union[str, Tuple[int, int]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_offset() -> timezone:
    """Fixed timezone used for "today"."""
    return timezone(timedelta(hours=CalendarConfig.UTC_OFFSET_HOURS))


def format_ymd(value: date) -> str:
    return value.strftime(YMD_FORMAT)


def today(clock: Optional[Clock] = None) -> str:
    """
    Get today's date as YYYYMMDD at the fixed UTC offset.

    Args:
        clock: Callable returning the current instant. Naive datetimes
            are interpreted as UTC. Defaults to the system clock.

    Returns:
        8-digit date string

    Example:
        >>> today(lambda: datetime(2024, 3, 10, 16, 0, tzinfo=timezone.utc))
        '20240311'
    """
    now = (clock or _utc_now)()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return format_ymd(now.astimezone(local_offset()))


def parse_ymd(value: str) -> date:
    """
    Parse a YYYYMMDD or YYYY-MM-DD string.

    Raises:
        InvalidInputError: If the string is malformed or not a real date
    """
    if not isinstance(value, str):
        raise InvalidInputError("Date must be a string", field="date", value=value)

    match = _YMD_PATTERN.match(value.strip())
    if match is None:
        raise InvalidInputError(
            "Date must be YYYYMMDD or YYYY-MM-DD", field="date", value=value
        )

    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise InvalidInputError(
            f"Invalid calendar date: {e}", field="date", value=value
        ) from e


def normalize_ymd(value: str) -> str:
    """Canonicalize a date string to YYYYMMDD."""
    return format_ymd(parse_ymd(value))


def day_window(value: str) -> DateWindow:
    """Single-day window."""
    ymd = normalize_ymd(value)
    return DateWindow(from_ymd=ymd, to_ymd=ymd)


def week_window(anchor: str) -> DateWindow:
    """
    Monday-to-Friday window for the week containing the anchor date.

    Sunday belongs to the preceding week (shifted back 6 days); any other
    day is shifted back to its Monday. The window always spans 5 days.

    Example:
        >>> week_window("2024-03-10")
        DateWindow(from_ymd='20240304', to_ymd='20240308')
    """
    anchor_date = parse_ymd(anchor)
    iso_weekday = anchor_date.isoweekday()

    if iso_weekday == 7:
        monday = anchor_date - timedelta(days=6)
    else:
        monday = anchor_date - timedelta(days=iso_weekday - 1)

    return DateWindow(
        from_ymd=format_ymd(monday),
        to_ymd=format_ymd(monday + timedelta(days=4)),
    )


def _parse_year_month(year_month: YearMonth) -> Tuple[int, int]:
    if isinstance(year_month, tuple):
        if len(year_month) != 2:
            raise InvalidInputError(
                "Year/month tuple must have two items", field="year_month", value=year_month
            )
        year, month = year_month
    elif isinstance(year_month, str):
        match = _YEAR_MONTH_PATTERN.match(year_month.strip())
        if match is None:
            raise InvalidInputError(
                "Year/month must be YYYYMM or YYYY-MM", field="year_month", value=year_month
            )
        year, month = (int(part) for part in match.groups())
    else:
        raise InvalidInputError(
            "Unsupported year/month value", field="year_month", value=year_month
        )

    if not isinstance(year, int) or not isinstance(month, int):
        raise InvalidInputError(
            "Year and month must be integers", field="year_month", value=year_month
        )
    if not 1 <= month <= 12 or not 1 <= year <= 9999:
        raise InvalidInputError(
            "Year/month out of range", field="year_month", value=year_month
        )
    return year, month


def month_window(year_month: YearMonth) -> DateWindow:
    """
    Window spanning the first to the last calendar day of a month.

    Args:
        year_month: "YYYYMM", "YYYY-MM" or a (year, month) tuple

    Example:
        >>> month_window("2024-02").to_ymd
        '20240229'
    """
    year, month = _parse_year_month(year_month)
    last_day = calendar.monthrange(year, month)[1]
    return DateWindow(
        from_ymd=format_ymd(date(year, month, 1)),
        to_ymd=format_ymd(date(year, month, last_day)),
    )
