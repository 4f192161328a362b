"""
Timezone-aware clock for rule evaluation.

Rule timezones are either fixed UTC offsets (+0530, -0800) or IANA names
(Asia/Kolkata). Anything that cannot be resolved falls back to the default
timezone so that one bad rule never stops enforcement for the others.
"""

import logging
import re
from datetime import datetime, timezone as dt_timezone
from typing import Callable, Optional

import pytz

logger = logging.getLogger(__name__)

OFFSET_PATTERN = re.compile(r'^([+-])(\d{2})(\d{2})$')

DEFAULT_TIMEZONE = '+0530'


def _utc_now() -> datetime:
    return datetime.now(dt_timezone.utc)


def parse_offset(descriptor: str) -> Optional[int]:
    """Parse a +HHMM/-HHMM offset into signed minutes, or None if it is not one"""
    match = OFFSET_PATTERN.match(descriptor)
    if not match:
        return None

    sign, hours, minutes = match.groups()
    hours, minutes = int(hours), int(minutes)
    if hours > 14 or minutes > 59:
        return None

    total = hours * 60 + minutes
    return -total if sign == '-' else total


class TimeProvider:
    """Resolves rule timezones and reports the current local time in them"""

    def __init__(self, default_timezone: str = DEFAULT_TIMEZONE,
                 clock: Callable[[], datetime] = None):
        self._clock = clock or _utc_now
        self._default_tz = self._resolve_strict(default_timezone)
        if self._default_tz is None:
            raise ValueError(f"Default timezone is not resolvable: {default_timezone!r}")
        self.default_timezone = default_timezone

    def _resolve_strict(self, descriptor: str):
        offset = parse_offset(descriptor)
        if offset is not None:
            return pytz.FixedOffset(offset)

        try:
            return pytz.timezone(descriptor)
        except pytz.UnknownTimeZoneError:
            return None

    def resolve_timezone(self, descriptor: Optional[str]):
        """Return a tzinfo for descriptor, substituting the default when unparseable"""
        if not descriptor:
            return self._default_tz

        tz = self._resolve_strict(descriptor.strip())
        if tz is None:
            logger.warning(f"Unparseable timezone {descriptor!r}, using default {self.default_timezone}")
            return self._default_tz
        return tz

    def is_valid_timezone(self, descriptor: str) -> bool:
        return bool(descriptor) and self._resolve_strict(descriptor.strip()) is not None

    def now(self, descriptor: Optional[str] = None) -> datetime:
        """Current date-time in the given timezone (second precision retained)"""
        return self._clock().astimezone(self.resolve_timezone(descriptor))

    def format_now(self, descriptor: Optional[str] = None) -> str:
        return self.now(descriptor).strftime('%Y-%m-%d %H:%M:%S %z')
