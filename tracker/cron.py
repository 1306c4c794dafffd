from datetime import datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from celery.schedules import ParseException, crontab

from tracker.exceptions import ScheduleError

# Long enough for "29 2 *" style expressions.
MAX_LOOKAHEAD_DAYS = 366 * 8


def parse_cron(expression: str) -> crontab:
    """Turns a 5-field cron expression ("0 2 * * *") into a Celery crontab."""
    fields = (expression or "").split()
    if len(fields) != 5:
        raise ScheduleError(f"Expected 5 cron fields, got {len(fields)}: {expression!r}")
    minute, hour, day_of_month, month_of_year, day_of_week = fields
    try:
        return crontab(
            minute=minute,
            hour=hour,
            day_of_month=day_of_month,
            month_of_year=month_of_year,
            day_of_week=day_of_week,
        )
    except (ParseException, ValueError) as exc:
        raise ScheduleError(f"Invalid cron expression {expression!r}: {exc}") from exc


def resolve_timezone(tz_name: str) -> tzinfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ScheduleError(f"Unknown timezone {tz_name!r}") from exc


def next_fire_time(schedule: crontab, now: datetime) -> datetime:
    """
    First minute strictly after `now` matching `schedule`, in now's timezone.
    Day-of-month and day-of-week must both match, as in Celery beat.

    Wall times skipped by a DST jump fire at the shifted instant (02:30 on
    a spring-forward night runs at 03:30). Repeated wall times fire once,
    on their first occurrence.
    """
    tz = now.tzinfo
    start = now.astimezone(timezone.utc).replace(second=0, microsecond=0) + timedelta(minutes=1)
    hours = sorted(schedule.hour)
    minutes = sorted(schedule.minute)
    day = start.astimezone(tz).date()
    for _ in range(MAX_LOOKAHEAD_DAYS):
        if (
            day.month in schedule.month_of_year
            and day.day in schedule.day_of_month
            and day.isoweekday() % 7 in schedule.day_of_week
        ):
            for hour in hours:
                for minute in minutes:
                    # Round-trip through UTC so gap and fold times become real instants.
                    candidate = datetime(day.year, day.month, day.day, hour, minute, tzinfo=tz).astimezone(timezone.utc)
                    if candidate >= start:
                        return candidate.astimezone(tz)
        day += timedelta(days=1)
    raise ScheduleError("Cron expression never fires.")
