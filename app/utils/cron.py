"""
Schedule expression parsing.

Accepts standard 5-field crontab expressions plus the descriptors
understood by common cron daemons, and turns them into APScheduler
triggers:

- "0 3 * * 0"            crontab fields (day of week 0 and 7 are Sunday)
- "@daily", "@weekly"... predefined schedules
- "@every 1h30m"         fixed interval
- "TZ=Europe/Paris ..."  per-expression timezone (CRON_TZ= also accepted)

APScheduler numbers weekdays from Monday, so the day-of-week field is
expanded to weekday names before the trigger is built. When both day of
month and day of week are restricted the job fires when either matches,
as cron does.
"""

import re

from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.interval import IntervalTrigger


DESCRIPTORS = {
    '@yearly': '0 0 1 1 *',
    '@annually': '0 0 1 1 *',
    '@monthly': '0 0 1 * *',
    '@weekly': '0 0 * * 0',
    '@daily': '0 0 * * *',
    '@midnight': '0 0 * * *',
    '@hourly': '0 * * * *',
}

# Crontab weekday numbers: 0 (and 7) is Sunday
WEEKDAY_NAMES = ['sun', 'mon', 'tue', 'wed', 'thu', 'fri', 'sat']

DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1,
    'm': 60,
    'h': 3600,
}

_DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')


def parse_duration(text: str) -> float:
    """
    Parse a duration such as "90s", "1h30m" or "1.5h" into seconds.

    Raises:
        ValueError: If the text is not a valid duration
    """
    text = text.strip()
    if not text:
        raise ValueError("empty duration")

    position = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        seconds += float(match.group(1)) * DURATION_UNITS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ValueError(f"invalid duration {text!r}")
    return seconds


def _weekday_number(token: str) -> int:
    token = token.lower()
    if token in WEEKDAY_NAMES:
        return WEEKDAY_NAMES.index(token)
    if token.isdigit() and 0 <= int(token) <= 7:
        return int(token) % 7
    raise ValueError(f"invalid day of week {token!r}")


def translate_day_of_week(field: str) -> str:
    """
    Convert a crontab day-of-week field into APScheduler weekday names.

    "0" -> "sun", "1-5" -> "mon,tue,wed,thu,fri", "*/2" -> "sun,tue,thu,sat"
    """
    if field in ('*', '?'):
        return '*'

    days = set()
    for item in field.split(','):
        base, _, step_text = item.partition('/')
        step = int(step_text) if step_text else 1
        if step < 1:
            raise ValueError(f"invalid step in day of week {item!r}")

        if base in ('*', '?'):
            first, last = 0, 6
        elif '-' in base:
            start, end = base.split('-', 1)
            first, last = _weekday_number(start), _weekday_number(end)
            # "5-7" keeps Sunday at the end of the range
            if end.strip() == '7':
                last = 7
        else:
            first = _weekday_number(base)
            last = 6 if step_text else first

        if first > last:
            raise ValueError(f"invalid day of week range {item!r}")
        days.update(day % 7 for day in range(first, last + 1, step))

    return ','.join(WEEKDAY_NAMES[day] for day in sorted(days))


def build_trigger(expression: str, timezone='UTC'):
    """
    Build an APScheduler trigger from a schedule expression.

    Args:
        expression: Crontab expression or descriptor
        timezone: Default timezone, overridden by a TZ= prefix

    Returns:
        CronTrigger, OrTrigger or IntervalTrigger

    Raises:
        ValueError: If the expression cannot be parsed
        LookupError: If the timezone is unknown
    """
    expression = expression.strip()

    if expression.startswith(('TZ=', 'CRON_TZ=')):
        prefix, _, expression = expression.partition(' ')
        timezone = prefix.split('=', 1)[1]
        expression = expression.strip()

    lowered = expression.lower()
    if lowered.startswith('@every'):
        seconds = parse_duration(expression[len('@every'):])
        if seconds <= 0:
            raise ValueError(f"@every needs a positive duration, got {expression!r}")
        # Intervals shorter than a second are rounded up, longer ones down
        return IntervalTrigger(seconds=max(1, int(seconds)), timezone=timezone)

    if lowered.startswith('@'):
        if lowered not in DESCRIPTORS:
            raise ValueError(f"unknown schedule descriptor {expression!r}")
        expression = DESCRIPTORS[lowered]

    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Wrong number of fields; got {len(fields)}, expected 5")

    minute, hour, day, month, day_of_week = (field.lower() for field in fields)
    day = '*' if day == '?' else day
    day_of_week = translate_day_of_week(day_of_week)

    def cron(day_field, day_of_week_field):
        return CronTrigger(
            minute=minute,
            hour=hour,
            day=day_field,
            month=month,
            day_of_week=day_of_week_field,
            timezone=timezone
        )

    if day != '*' and day_of_week != '*':
        return OrTrigger([cron(day, '*'), cron('*', day_of_week)])

    return cron(day, day_of_week)
