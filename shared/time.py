# shared/time.py
import logging
from datetime import datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

# --- Internal override for testing ---
_current_time_override: Optional[datetime] = None

# Medium date + long time, e.g. "Aug 13, 2023 at 4:05:06 PM UTC"
MESSAGE_DATE_LAYOUT = "%b %d, %Y at %I:%M:%S %p"


def resolve_tz(tz_name: str | None) -> tzinfo:
    try:
        return ZoneInfo(tz_name) if tz_name else timezone.utc
    except ZoneInfoNotFoundError:
        logger.warning("Timezone %s not found. Using UTC fallback.", tz_name)
        return timezone.utc


class MessageDateFormatter:
    """
    The one formatter used for every stored date (message ids, message
    entries and latest_message previews). Writer and reader must share the
    same zone: a string written in one zone is rejected by a reader
    configured with another.
    """

    def __init__(self, tz_name: str | None = "UTC"):
        self.tz_name = tz_name
        self.tz = resolve_tz(tz_name)

    def format(self, dt: datetime) -> str:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        local = dt.astimezone(self.tz)
        hour = local.hour % 12 or 12
        return (
            f"{local:%b} {local.day}, {local.year} at "
            f"{hour}:{local:%M:%S} {local:%p} {local.tzname()}"
        )

    def parse(self, value: str) -> datetime:
        body, _, zone = value.strip().rpartition(" ")
        if not body or not zone:
            raise ValueError(f"not a message date: {value!r}")
        local = datetime.strptime(body, MESSAGE_DATE_LAYOUT).replace(tzinfo=self.tz)
        if local.tzname() == zone:
            return local
        # the hour repeated when clocks go back carries the second pass's zone name
        second_pass = local.replace(fold=1)
        if second_pass.tzname() == zone:
            return second_pass
        raise ValueError(f"date {value!r} was not written in zone {self.tz_name}")


# === Time Access ===

def utcnow() -> datetime:
    return _current_time_override or datetime.now(timezone.utc)


def set_fake_utcnow(fake_time: datetime) -> None:
    global _current_time_override
    _current_time_override = fake_time


def clear_fake_utcnow() -> None:
    global _current_time_override
    _current_time_override = None
