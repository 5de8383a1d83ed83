"""
Scheduler - Cron fire-time computation

Wraps APScheduler's CronTrigger to answer one question for the run loop:
when is the next extraction due, strictly after a given moment.
"""

import re
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.triggers.cron import CronTrigger

CRON_FIELDS = ("minute", "hour", "day", "month", "day_of_week")

# Crontab numbering: 0 and 7 are Sunday. APScheduler counts from Monday, so
# numeric days are handed over as names.
WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
NUMERIC_WEEKDAY = re.compile(r"(?P<base>\*|[0-9]+(?:-[0-9]+)?)(?:/(?P<step>[0-9]+))?")


def crontab_day_of_week(field: str) -> str:
    """
    Translate a crontab day-of-week field to APScheduler weekday names

    Handles lists, ranges and steps ("1-5", "0,6", "*/2", "1-5/2").
    Non-numeric parts ("mon-fri") already mean the same to both and are kept.

    Raises:
        ValueError: for days outside 0-7 or a zero step
    """
    if field == "*":
        return field

    parts = []
    for part in field.split(","):
        match = NUMERIC_WEEKDAY.fullmatch(part)
        if not match:
            parts.append(part)
            continue

        base, step = match.group("base"), int(match.group("step") or 1)
        if step == 0:
            raise ValueError(f"Step must be positive in day of week {part!r}")

        if base == "*":
            first, last = 0, 6
        elif "-" in base:
            first, last = (int(value) for value in base.split("-"))
        else:
            first = int(base)
            last = 7 if match.group("step") else first

        if not 0 <= first <= last <= 7:
            raise ValueError(f"Invalid day of week {part!r}")

        for day in range(first, last + 1, step):
            name = WEEKDAY_NAMES[day % 7]
            if name not in parts:
                parts.append(name)

    return ",".join(parts)


class CronSchedule:
    """Cron expression evaluated in a fixed time zone

    Accepts standard 5-field crontab expressions and 6-field expressions
    with a leading seconds field. Day-of-week numbers follow crontab
    (0 or 7 is Sunday).
    """

    def __init__(self, expression: str, timezone: Optional[str] = None):
        self.expression = expression.strip()
        self.timezone = timezone
        self.trigger = self._build_trigger(self.expression, timezone)

    @staticmethod
    def _build_trigger(expression: str, timezone: Optional[str]) -> CronTrigger:
        fields = expression.split()

        if len(fields) == 5:
            second = "0"
        elif len(fields) == 6:
            second, fields = fields[0], fields[1:]
        else:
            raise ValueError(
                f"Wrong number of fields; got {len(fields)}, expected 5 or 6"
            )

        values = dict(zip(CRON_FIELDS, fields))
        values["day_of_week"] = crontab_day_of_week(values["day_of_week"])

        return CronTrigger(second=second, **values, timezone=timezone)

    def next_fire_time(self, now: datetime) -> datetime:
        """Next fire time strictly after `now` (an aware datetime)"""
        # The trigger may return `now` itself when it falls on a fire time
        fire_time = self.trigger.get_next_fire_time(None, now + timedelta(microseconds=1))
        if fire_time is None:
            raise ValueError(f"Cron expression {self.expression!r} never fires again")
        return fire_time

    def __repr__(self) -> str:
        return f"CronSchedule({self.expression!r}, timezone={self.timezone!r})"
