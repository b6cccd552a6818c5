"""When an approved event counts as over."""

from datetime import date, datetime, time


def has_ended(event_date: date, end_time: time | None, now: datetime) -> bool:
    """Return True once the event's effective end has passed.

    ``now`` is a wall-clock datetime in the event's time zone. The effective
    end is ``end_time`` on ``event_date``, or the end of ``event_date`` when no
    end time is set. An event dated before today has always ended.
    """
    today = now.date()
    if event_date < today:
        return True
    if event_date == today and end_time is not None:
        return end_time <= now.time()
    return False
