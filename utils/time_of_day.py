import re
from datetime import time
from typing import Any, Optional

MINUTES_PER_DAY = 24 * 60

_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_time_of_day(value: Any) -> Optional[int]:
    """Minutes since midnight for a business-hours bound, or None if unreadable.

    Accepts ``"HH:MM"`` strings (``"24:00"`` is end of day), ``datetime.time``
    values, and the integers YAML 1.1 produces for unquoted ``17:00``
    (base-60, so ``17:00`` loads as 1020).
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if isinstance(value, int):
        return value if 0 <= value <= MINUTES_PER_DAY else None
    if isinstance(value, str):
        match = _CLOCK_PATTERN.match(value.strip())
        if not match:
            return None
        hours, minutes = int(match.group(1)), int(match.group(2))
        if minutes > 59:
            return None
        total = hours * 60 + minutes
        return total if total <= MINUTES_PER_DAY else None
    return None
