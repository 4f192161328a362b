"""
Time-of-day windows and the range checks used for enforcement and warnings.

Windows are compared on the same calendar day as the current local time.
There is no wraparound across midnight: a window whose end is earlier than its
start never matches.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from .errors import ValidationError

INTERVAL_PATTERN = re.compile(r'^\d{2}:\d{2}-\d{2}:\d{2}$')

# Minutes of advance notice, checked independently on every sweep
WARNING_LEADS = (15, 5)


@dataclass(frozen=True)
class TimeOfDay:
    hours: int
    minutes: int

    @classmethod
    def parse(cls, text: str) -> 'TimeOfDay':
        """Parse an HH:MM string"""
        try:
            hours, minutes = (int(part) for part in text.split(':'))
        except ValueError:
            raise ValidationError(f"Invalid time of day: {text!r}")

        if not 0 <= hours <= 23 or not 0 <= minutes <= 59:
            raise ValidationError(f"Time of day out of range: {text!r}")

        return cls(hours, minutes)

    def on(self, current: datetime) -> datetime:
        """Timestamp for this time of day on the same date (and tzinfo) as current"""
        return current.replace(hour=self.hours, minute=self.minutes, second=0, microsecond=0)

    def __str__(self):
        return f"{self.hours:02d}:{self.minutes:02d}"


@dataclass(frozen=True)
class TimeInterval:
    start: TimeOfDay
    end: TimeOfDay

    @classmethod
    def parse(cls, text: str) -> 'TimeInterval':
        """Parse and validate an HH:MM-HH:MM string"""
        if not isinstance(text, str) or not INTERVAL_PATTERN.match(text):
            raise ValidationError("Invalid time range format. Use HH:MM-HH:MM.")

        start, end = text.split('-')
        return cls(TimeOfDay.parse(start), TimeOfDay.parse(end))

    @property
    def is_empty(self) -> bool:
        """True for windows that can never match (end before start)"""
        return (self.end.hours, self.end.minutes) < (self.start.hours, self.start.minutes)

    def __str__(self):
        return f"{self.start}-{self.end}"


def in_range(current: datetime, interval: TimeInterval) -> bool:
    """Check whether current falls inside the window, both ends inclusive"""
    start_time = interval.start.on(current)
    end_time = interval.end.on(current)
    return start_time <= current <= end_time


def is_near(current: datetime, interval: TimeInterval, lead_minutes: int) -> bool:
    """
    Check whether current falls inside the window shifted earlier by lead_minutes.

    The shifted window spans the whole rule duration, so this holds throughout
    [start - lead, end - lead] and not only at the instant lead minutes before start.
    """
    lead = timedelta(minutes=lead_minutes)
    start_time = interval.start.on(current) - lead
    end_time = interval.end.on(current) - lead
    return start_time <= current <= end_time
