from datetime import datetime, timezone

_UNITS = (
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def relative_duration(seconds: float) -> str:
    """Render a future offset the way a person would say it ("in 2 hours")."""
    seconds = max(seconds, 0)

    for unit, size in _UNITS:
        if seconds >= size:
            amount = int(seconds // size)
            return f"in {amount} {unit}{'' if amount == 1 else 's'}"

    return "in 0 seconds"


def format_fire_time(moment: datetime) -> str:
    """Convert a fire time to e.g. 'Mon, Jan 6, 2025 at 03:00'."""
    return f"{moment.strftime('%a, %b')} {moment.day}, {moment.year} at {moment.strftime('%H:%M')}"
