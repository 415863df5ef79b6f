"""Recurrence expansion for recurring transaction templates.

A recurrence spec is either one of the shorthands in ``SHORTHAND_CRON`` or a
standard 5-field cron expression (minute hour day-of-month month
day-of-week, with 0 or 7 meaning Sunday). Expansion is delegated to
APScheduler's ``CronTrigger``; this module only validates specs, maps cron's
day-of-week numbering onto APScheduler's, and walks fire times lazily.
"""

import logging
from collections.abc import Iterator
from datetime import datetime, timezone

from apscheduler.triggers.cron import CronTrigger

from config import settings
from services.exceptions import InvalidRecurrence

logger = logging.getLogger(__name__)

SHORTHAND_CRON: dict[str, str] = {
    "every-minute": "* * * * *",
    "daily": "0 9 * * *",
    "weekly": "0 9 * * 1",
    "monthly": "0 9 1 * *",
    "quarterly": "0 9 1 */3 *",
    "yearly": "0 9 1 1 *",
}

# Index is the standard cron day-of-week number.
_CRON_DAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
_DAY_TITLES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
_MONTH_TITLES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

RECURRENCE_PERIODS = ("Day", "Week", "Month", "Quarter")


def normalize_recurrence(spec: str) -> str:
    """Resolve a recurrence spec to its canonical 5-field cron expression.

    Raises:
        InvalidRecurrence: If the spec is empty, not a known shorthand and not
            a 5-field cron expression.
    """
    if spec is None or not spec.strip():
        raise InvalidRecurrence(spec or "", "empty recurrence")
    text = " ".join(spec.split())
    shorthand = SHORTHAND_CRON.get(text.lower())
    if shorthand is not None:
        return shorthand
    if len(text.split(" ")) != 5:
        raise InvalidRecurrence(spec, "expected a shorthand or 5 cron fields")
    return text


def build_trigger(spec: str, tz: str | None = None) -> CronTrigger:
    """Build a CronTrigger for a recurrence spec.

    Raises:
        InvalidRecurrence: If the spec cannot be parsed.
    """
    cron = normalize_recurrence(spec)
    minute, hour, day, month, day_of_week = cron.split(" ")
    try:
        return CronTrigger(
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=_translate_day_of_week(day_of_week),
            timezone=tz or settings.RECURRENCE_TIMEZONE,
        )
    except ValueError as exc:
        raise InvalidRecurrence(spec, str(exc)) from exc


def validate_recurrence(spec: str) -> str:
    """Validate a spec and return its canonical cron form."""
    build_trigger(spec)
    return normalize_recurrence(spec)


def expand(
    spec: str,
    window_start: datetime,
    window_end: datetime,
    tz: str | None = None,
    limit: int | None = None,
) -> Iterator[datetime]:
    """Return the occurrences of ``spec`` within ``[window_start, window_end]``.

    The spec is validated eagerly, so an invalid spec raises here rather than
    on first iteration. The returned iterator is lazy, ascending and yields
    aware UTC datetimes; calling ``expand`` again restarts the sequence.

    Raises:
        InvalidRecurrence: If the spec is invalid.
        ValueError: If window_start is after window_end.
    """
    trigger = build_trigger(spec, tz)
    start = _aware(window_start)
    end = _aware(window_end)
    if start > end:
        raise ValueError("window_start must be on or before window_end.")
    return _iterate(trigger, start, end, limit)


def _iterate(
    trigger: CronTrigger, start: datetime, end: datetime, limit: int | None
) -> Iterator[datetime]:
    count = 0
    current = trigger.get_next_fire_time(None, start)
    while current is not None and current <= end:
        if limit is not None and count >= limit:
            return
        yield current.astimezone(timezone.utc)
        count += 1
        current = trigger.get_next_fire_time(current, current)


def recurrence_to_cron(
    period: str,
    hour: int,
    minute: int = 0,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
) -> str:
    """Build a cron expression from recurrence picker settings.

    Args:
        period: One of "Day", "Week", "Month", "Quarter".
        hour: Hour of day (clamped to 0-23).
        minute: Minute of hour (clamped to 0-59).
        day_of_week: 0-6 with 0 = Sunday, for weekly recurrence (default Sunday).
        day_of_month: 1-31 for monthly/quarterly recurrence (default 1st).
    """
    hour = max(0, min(23, hour))
    minute = max(0, min(59, minute))

    if period == "Day":
        return f"{minute} {hour} * * *"
    if period == "Week":
        return f"{minute} {hour} * * {day_of_week or 0}"
    if period == "Month":
        return f"{minute} {hour} {day_of_month or 1} * *"
    if period == "Quarter":
        return f"{minute} {hour} {day_of_month or 1} */3 *"
    raise InvalidRecurrence(period, f"period must be one of {', '.join(RECURRENCE_PERIODS)}")


def describe_recurrence(spec: str | None) -> str:
    """Render a recurrence spec as a short English description."""
    if spec is None or not spec.strip():
        return "No recurrence"
    cron = normalize_recurrence(spec)
    minute, hour, day_of_month, month, day_of_week = cron.split(" ")

    if day_of_week != "*" and day_of_month == "*":
        if "," in day_of_week:
            days = ", ".join(_day_title(d) for d in day_of_week.split(","))
            result = f"Weekly on {days}"
        elif "-" in day_of_week:
            first, last = day_of_week.split("-", 1)
            result = f"Weekly from {_day_title(first)} to {_day_title(last)}"
        else:
            result = f"Weekly on {_day_title(day_of_week)}"
    elif day_of_month != "*" and day_of_week == "*":
        if "," in day_of_month:
            days = ", ".join(_month_day(d) for d in day_of_month.split(","))
            result = f"Monthly on the {days}"
        else:
            result = f"Monthly on the {_month_day(day_of_month)}"
    elif day_of_month != "*" and day_of_week != "*":
        result = f"On the {_month_day(day_of_month)} and {_day_title(day_of_week)}"
    elif minute == "*" and hour == "*":
        return "Every minute"
    else:
        result = "Daily"

    if not all(f == "*" or f.isdigit() for f in (hour, minute)):
        result += f" at minute {minute} of hour {hour}"
    elif hour != "*" or minute != "*":
        hour_num = 0 if hour == "*" else int(hour)
        minute_num = 0 if minute == "*" else int(minute)
        suffix = "AM" if hour_num < 12 else "PM"
        result += f" at {(hour_num % 12) or 12}:{minute_num:02d} {suffix}"

    if month.startswith("*/"):
        result += f" every {month[2:]} months"
    elif month != "*":
        months = ", ".join(_MONTH_TITLES[int(m) - 1] if m.isdigit() else m for m in month.split(","))
        result += f" in {months}"

    return result


def _translate_day_of_week(field: str) -> str:
    """Rewrite a cron day-of-week field into APScheduler day names.

    APScheduler numbers weekdays from Monday = 0, while cron uses
    Sunday = 0 (and 7), so numeric fields are expanded to explicit names.
    """
    if field == "*":
        return "*"
    days: set[int] = set()
    for token in field.split(","):
        if not token:
            raise ValueError(f"Empty day-of-week entry in {field!r}")
        step = 1
        if "/" in token:
            token, step_text = token.split("/", 1)
            step = int(step_text)
            if step < 1:
                raise ValueError(f"Invalid day-of-week step in {field!r}")
        if token == "*":
            first, last = 0, 6
        elif "-" in token:
            first_text, last_text = token.split("-", 1)
            first, last = _day_number(first_text), _day_number(last_text, allow_seven=True)
        else:
            first = _day_number(token, allow_seven=True)
            last = 6 if step > 1 else first
        if first > last:
            raise ValueError(f"Invalid day-of-week range in {field!r}")
        for number in range(first, last + 1, step):
            days.add(number % 7)
    return ",".join(_CRON_DAY_NAMES[d] for d in sorted(days))


def _day_number(text: str, allow_seven: bool = False) -> int:
    lowered = text.strip().lower()
    if lowered[:3] in _CRON_DAY_NAMES and not lowered.isdigit():
        return _CRON_DAY_NAMES.index(lowered[:3])
    number = int(lowered)
    upper = 7 if allow_seven else 6
    if not 0 <= number <= upper:
        raise ValueError(f"Day-of-week value out of range: {text}")
    return number


def _day_title(text: str) -> str:
    try:
        return _DAY_TITLES[_day_number(text, allow_seven=True) % 7]
    except ValueError:
        return text


def _month_day(text: str) -> str:
    return _ordinal(int(text)) if text.isdigit() else text


def _ordinal(number: int) -> str:
    if number % 100 in (11, 12, 13):
        return f"{number}th"
    return f"{number}{({1: 'st', 2: 'nd', 3: 'rd'}).get(number % 10, 'th')}"


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
