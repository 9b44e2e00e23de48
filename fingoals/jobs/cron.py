# fingoals/jobs/cron.py
"""Five-field cron expressions evaluated with dateutil's rrule."""
from datetime import datetime
from typing import List, Optional

from dateutil import tz
from dateutil.rrule import MINUTELY, rrule

# minute, hour, day of month, month, day of week (0 = Sunday)
_FIELD_RANGES = ((0, 59), (0, 23), (1, 31), (1, 12), (0, 6))


def _expand(field: str, low: int, high: int) -> Optional[List[int]]:
    """Values a cron field allows, or None when it allows everything."""
    if field == "*":
        return None

    values = set()
    for part in field.split(","):
        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            step = int(step_text)
            if step < 1:
                raise ValueError(f"Invalid step in cron field '{field}'")

        if part == "*":
            start, end = low, high
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            start, end = int(start_text), int(end_text)
        else:
            start = int(part)
            end = high if step > 1 else start

        if start < low or end > high or start > end:
            raise ValueError(f"Cron field '{field}' outside {low}-{high}")
        values.update(range(start, end + 1, step))
    return sorted(values)


class CronSchedule:
    """
    ``next_after`` returns the first fire time strictly after a moment.
    When both day-of-month and day-of-week are restricted, a day must match
    both of them.
    """

    def __init__(self, expression: str, timezone: str = "UTC"):
        fields = expression.split()
        if len(fields) != 5:
            raise ValueError(f"Cron expression '{expression}' must have five fields")

        self.expression = expression
        self.tzinfo = tz.gettz(timezone)
        if self.tzinfo is None:
            raise ValueError(f"Unknown timezone '{timezone}'")

        minutes, hours, days, months, weekdays = (
            _expand(f, low, high) for f, (low, high) in zip(fields, _FIELD_RANGES)
        )
        self._byminute = minutes
        self._byhour = hours
        self._bymonthday = days
        self._bymonth = months
        # rrule counts weekdays from Monday = 0
        self._byweekday = [(d - 1) % 7 for d in weekdays] if weekdays is not None else None

    def next_after(self, moment: datetime) -> datetime:
        local = moment.astimezone(self.tzinfo)
        rule = rrule(
            MINUTELY,
            dtstart=local.replace(second=0, microsecond=0),
            byminute=self._byminute,
            byhour=self._byhour,
            bymonthday=self._bymonthday,
            bymonth=self._bymonth,
            byweekday=self._byweekday,
            bysecond=0,
            cache=False,
        )
        nxt = rule.after(local, inc=False)
        if nxt is None:
            raise ValueError(f"Cron expression '{self.expression}' never fires")
        return nxt

    def __repr__(self):
        return f"<CronSchedule '{self.expression}'>"
